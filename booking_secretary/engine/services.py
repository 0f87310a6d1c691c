"""Engine services: schedules, event types, slot listing and bookings.

The services read from the store and the busy-interval source, and only then
call the pure resolver. Collaborator failures are never turned into an empty
result.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from booking_secretary.availability import accepted_rules, validate_rules
from booking_secretary.calendar_client import BusyIntervalSource, CalendarClient
from booking_secretary.candidates import generate_candidates
from booking_secretary.config import SlotConfig
from booking_secretary.db import DatabaseInterface
from booking_secretary.errors import (
    EventNotFound,
    NoScheduleConfigured,
    SlotNoLongerAvailable,
    ValidationError,
)
from booking_secretary.models import (
    Event,
    Meeting,
    Schedule,
    ValidationIssue,
    WeeklyAvailabilityRule,
)
from booking_secretary.resolver import resolve_bookable_slots
from booking_secretary.timeutils import UTC, get_zone, is_valid_timezone

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(self, database: DatabaseInterface):
        self.database = database

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        return self.database.get_schedule(owner_id)

    def require_schedule(self, owner_id: str) -> Schedule:
        schedule = self.database.get_schedule(owner_id)
        if schedule is None:
            raise NoScheduleConfigured(owner_id)
        return schedule

    def save_schedule(
        self,
        owner_id: str,
        timezone: str,
        rules: Sequence[WeeklyAvailabilityRule],
    ) -> Tuple[Schedule, List[ValidationIssue]]:
        """Replace an owner's schedule with the valid subset of ``rules``.

        Rules with issues are left out and the issues are returned so they can
        be shown to the user. An unknown timezone rejects the whole save.

        Raises:
            ValidationError: If ``timezone`` is not a known IANA timezone.
        """
        if not is_valid_timezone(timezone):
            raise ValidationError(
                [ValidationIssue("timezone", f"Unknown timezone '{timezone}'")]
            )

        issues = validate_rules(rules)
        kept = accepted_rules(rules, issues)
        schedule = self.database.replace_schedule(owner_id, timezone, kept)
        logger.info(
            f"Saved schedule for {owner_id}: {len(kept)} rule(s), {len(issues)} issue(s)"
        )
        return schedule, issues


class EventService:
    def __init__(self, database: DatabaseInterface, slots: Optional[SlotConfig] = None):
        self.database = database
        self.slots = slots or SlotConfig()

    def _validate(self, event: Event) -> None:
        issues: List[ValidationIssue] = []
        if not event.name or not event.name.strip():
            issues.append(ValidationIssue("name", "Required"))
        if event.duration_minutes <= 0:
            issues.append(
                ValidationIssue("duration_minutes", "Duration must be greater than 0")
            )
        elif event.duration_minutes > self.slots.max_duration_minutes:
            issues.append(
                ValidationIssue(
                    "duration_minutes",
                    f"Duration must be at most {self.slots.max_duration_minutes} minutes",
                )
            )
        if issues:
            raise ValidationError(issues)

    def create_event(self, event: Event) -> Event:
        self._validate(event)
        created = self.database.create_event(event)
        logger.info(f"Created event {created.id} for {created.owner_id}")
        return created

    def update_event(self, event: Event) -> Event:
        self._validate(event)
        updated = self.database.update_event(event)
        if updated is None:
            raise EventNotFound(event.owner_id, event.id)
        return updated

    def delete_event(self, owner_id: str, event_id: str) -> None:
        if not self.database.delete_event(owner_id, event_id):
            raise EventNotFound(owner_id, event_id)

    def get_event(self, owner_id: str, event_id: str, active_only: bool = False) -> Event:
        event = self.database.get_event(owner_id, event_id)
        if event is None or (active_only and not event.is_active):
            raise EventNotFound(owner_id, event_id)
        return event

    def list_events(self, owner_id: str, active_only: bool = False) -> List[Event]:
        return self.database.list_events(owner_id, active_only)


class AvailabilityService:
    """Lists the bookable start instants of an event."""

    def __init__(
        self,
        database: DatabaseInterface,
        busy_source: BusyIntervalSource,
        slots: Optional[SlotConfig] = None,
    ):
        self.database = database
        self.busy_source = busy_source
        self.slots = slots or SlotConfig()

    def resolve(
        self, owner_id: str, candidates: Sequence[datetime], duration_minutes: int
    ) -> List[datetime]:
        """Filter ``candidates`` against the owner's schedule and busy time.

        Returns ``[]`` when there are no candidates or no schedule. Store and
        busy source failures raise ``SourceUnavailable``.
        """
        if not candidates:
            return []

        schedule = self._load_schedule(owner_id)
        if schedule is None:
            return []
        return self._resolve_for(schedule, candidates, duration_minutes)

    def get_valid_times(
        self, owner_id: str, event: Event, now: Optional[datetime] = None
    ) -> List[datetime]:
        """Bookable start instants of ``event`` from now through the horizon.

        Raises:
            EventNotFound: If ``event`` does not belong to ``owner_id``.
        """
        if event.owner_id != owner_id:
            raise EventNotFound(owner_id, event.id)

        schedule = self._load_schedule(owner_id)
        if schedule is None:
            return []

        candidates = generate_candidates(
            now=now,
            timezone=schedule.timezone if is_valid_timezone(schedule.timezone) else "UTC",
            step_minutes=self.slots.step_minutes,
            horizon_years=self.slots.horizon_years,
        )
        return self._resolve_for(schedule, candidates, event.duration_minutes)

    def _load_schedule(self, owner_id: str) -> Optional[Schedule]:
        schedule = self.database.get_schedule(owner_id)
        if schedule is None:
            logger.info(f"No schedule configured for {owner_id}; no bookable times")
        return schedule

    def _resolve_for(
        self, schedule: Schedule, candidates: Sequence[datetime], duration_minutes: int
    ) -> List[datetime]:
        if not candidates or not schedule.rules:
            return []

        range_start = candidates[0]
        range_end = candidates[-1] + timedelta(minutes=duration_minutes)
        busy = self.busy_source.fetch_busy_intervals(
            schedule.owner_id, range_start, range_end
        )

        return resolve_bookable_slots(
            candidates, schedule.rules, schedule.timezone, busy, duration_minutes
        )


class BookingService:
    """Commits guest bookings after re-checking the chosen time."""

    def __init__(
        self,
        database: DatabaseInterface,
        calendar: CalendarClient,
        availability: AvailabilityService,
    ):
        self.database = database
        self.calendar = calendar
        self.availability = availability

    def _resolve_start(
        self, start_time: datetime, timezone: str, now: datetime
    ) -> datetime:
        if not is_valid_timezone(timezone):
            raise ValidationError(
                [ValidationIssue("timezone", f"Unknown timezone '{timezone}'")]
            )
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=get_zone(timezone))
        start_time = start_time.astimezone(UTC)
        if start_time < now:
            raise ValidationError(
                [ValidationIssue("start_time", "Start time must be in the future")]
            )
        return start_time

    def create_meeting(
        self,
        owner_id: str,
        event_id: str,
        start_time: datetime,
        guest_name: str,
        guest_email: str,
        timezone: str,
        guest_notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Meeting:
        """Book ``event_id`` at ``start_time`` for a guest.

        ``start_time`` is used as given when timezone-aware; a naive value is
        read as wall-clock time in the guest's ``timezone``. Busy intervals are
        fetched fresh for the re-check, and the meeting row and calendar event
        are written together or not at all.

        Raises:
            EventNotFound: The event is missing, inactive or not the owner's.
            ValidationError: Bad timezone or a start in the past.
            SourceUnavailable: The store or busy source could not be reached.
            SlotNoLongerAvailable: The time failed the re-check.
            CalendarWriteError: The calendar event could not be created; the
                meeting is not recorded.
        """
        event = self.database.get_event(owner_id, event_id)
        if event is None or not event.is_active:
            raise EventNotFound(owner_id, event_id)

        start = self._resolve_start(start_time, timezone, now or datetime.now(UTC))

        if not self.availability.resolve(owner_id, [start], event.duration_minutes):
            logger.info(f"Rejected booking of {event_id} at {start.isoformat()}: slot taken")
            raise SlotNoLongerAvailable(start)

        meeting = Meeting.for_event(
            event,
            start,
            guest_name=guest_name,
            guest_email=guest_email,
            timezone=timezone,
            guest_notes=guest_notes,
        )

        published: List[str] = []

        def publish(saved: Meeting) -> Optional[str]:
            calendar_event_id = self.calendar.create_booking_event(event, saved).get("id")
            if calendar_event_id:
                published.append(calendar_event_id)
            return calendar_event_id

        try:
            booked = self.database.record_meeting(meeting, publish)
        except Exception:
            # The row was rolled back; the calendar event must not outlive it
            for calendar_event_id in published:
                self.calendar.delete_booking_event(owner_id, calendar_event_id)
            raise

        logger.info(
            f"Booked meeting {booked.id} for {owner_id} at {start.isoformat()} "
            f"(calendar event {booked.calendar_event_id})"
        )
        return booked
