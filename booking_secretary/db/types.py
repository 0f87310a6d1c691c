"""Storage interface the engine services depend on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Optional, Sequence

from booking_secretary.models import Event, Meeting, Schedule, WeeklyAvailabilityRule

# Called with the saved (not yet committed) meeting; returns the calendar event id.
MeetingPublisher = Callable[[Meeting], Optional[str]]


class DatabaseInterface(ABC):
    """Persistence for schedules, event types and meetings.

    Implementations raise ``SourceUnavailable`` when the store cannot be
    reached.
    """

    @abstractmethod
    def initialize(self) -> None: ...

    @abstractmethod
    def connection(self) -> AbstractContextManager[Any]: ...

    @abstractmethod
    def close(self) -> None: ...

    # Schedules

    @abstractmethod
    def get_schedule(self, owner_id: str) -> Optional[Schedule]: ...

    @abstractmethod
    def replace_schedule(
        self,
        owner_id: str,
        timezone: str,
        rules: Sequence[WeeklyAvailabilityRule],
    ) -> Schedule:
        """Upsert the schedule and swap its whole rule set in one transaction."""

    # Event types

    @abstractmethod
    def create_event(self, event: Event) -> Event: ...

    @abstractmethod
    def update_event(self, event: Event) -> Optional[Event]:
        """Update an owner's event; ``None`` when it does not exist."""

    @abstractmethod
    def delete_event(self, owner_id: str, event_id: str) -> bool: ...

    @abstractmethod
    def get_event(self, owner_id: str, event_id: str) -> Optional[Event]: ...

    @abstractmethod
    def list_events(self, owner_id: str, active_only: bool = False) -> list[Event]: ...

    # Meetings

    @abstractmethod
    def record_meeting(self, meeting: Meeting, publish: MeetingPublisher) -> Meeting:
        """Insert ``meeting`` and run ``publish`` inside the same transaction.

        If ``publish`` raises, the insert is rolled back and the exception
        propagates.
        """

    @abstractmethod
    def list_meetings(self, owner_id: str) -> list[Meeting]: ...
