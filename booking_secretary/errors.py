"""Error kinds raised by the booking engine."""

from datetime import datetime
from typing import List, Optional

from booking_secretary.models import ValidationIssue


class BookingError(Exception):
    """Base class for all booking engine errors."""


class ValidationError(BookingError):
    """User-submitted data is malformed. Never raised while resolving slots."""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues) or "Invalid data")


class SourceUnavailable(BookingError):
    """The busy-interval source or the schedule store could not be reached.

    Callers must not treat this as "no conflicts" or "no schedule".
    """

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source} unavailable: {message}")


class SlotNoLongerAvailable(BookingError):
    """The chosen start failed the re-check right before commit."""

    def __init__(self, start: datetime):
        self.start = start
        super().__init__(f"Selected time {start.isoformat()} is no longer available")


class NoScheduleConfigured(BookingError):
    """The owner has never saved a schedule."""

    def __init__(self, owner_id: str):
        self.owner_id = owner_id
        super().__init__(f"No schedule configured for owner '{owner_id}'")


class EventNotFound(BookingError):
    def __init__(self, owner_id: str, event_id: Optional[str]):
        self.owner_id = owner_id
        self.event_id = event_id
        super().__init__(f"Event '{event_id}' not found for owner '{owner_id}'")


class CalendarWriteError(BookingError):
    """Writing the booking to the external calendar failed."""
