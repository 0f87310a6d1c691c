"""Domain models for schedules, event types, busy intervals and meetings."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional


class DayOfWeek(Enum):
    """Day of the week, in the same order as ``date.weekday()``."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_weekday(cls, weekday: int) -> "DayOfWeek":
        return DAYS_OF_WEEK_IN_ORDER[weekday]

    @classmethod
    def from_string(cls, value: str) -> "DayOfWeek":
        normalized = value.lower().strip()
        for day in cls:
            if day.value == normalized:
                return day
        raise ValueError(
            f"Invalid day of week '{value}'. Must be one of: "
            + ", ".join(d.value for d in cls)
        )


DAYS_OF_WEEK_IN_ORDER: List[DayOfWeek] = list(DayOfWeek)


@dataclass(frozen=True)
class WeeklyAvailabilityRule:
    """A recurring window, e.g. every Monday from 09:00 to 17:00."""

    day_of_week: DayOfWeek
    start_time: str
    end_time: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day_of_week": self.day_of_week.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass
class Schedule:
    """An owner's weekly availability, interpreted in ``timezone``."""

    owner_id: str
    timezone: str
    rules: List[WeeklyAvailabilityRule] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "timezone": self.timezone,
            "availabilities": [rule.to_dict() for rule in self.rules],
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class BusyInterval:
    """A half-open ``[start, end)`` range already booked elsewhere."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and self.end > start


@dataclass
class Event:
    """A bookable event type (e.g. "30 minute intro call")."""

    owner_id: str
    name: str
    duration_minutes: int
    description: Optional[str] = None
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "is_active": self.is_active,
        }


@dataclass
class Meeting:
    """A guest's booking of an event at a specific instant."""

    event_id: str
    owner_id: str
    start_time: datetime
    end_time: datetime
    guest_name: str
    guest_email: str
    timezone: str
    guest_notes: Optional[str] = None
    calendar_event_id: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def for_event(
        cls,
        event: Event,
        start_time: datetime,
        guest_name: str,
        guest_email: str,
        timezone: str,
        guest_notes: Optional[str] = None,
    ) -> "Meeting":
        if event.id is None:
            raise ValueError("Cannot book an event that has not been saved")
        return cls(
            event_id=event.id,
            owner_id=event.owner_id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=event.duration_minutes),
            guest_name=guest_name,
            guest_email=guest_email,
            timezone=timezone,
            guest_notes=guest_notes,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "owner_id": self.owner_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "guest_name": self.guest_name,
            "guest_email": self.guest_email,
            "guest_notes": self.guest_notes,
            "timezone": self.timezone,
            "calendar_event_id": self.calendar_event_id,
        }


@dataclass(frozen=True)
class ValidationIssue:
    """A problem found in user-submitted schedule data."""

    field: str
    message: str
    index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "field": self.field, "message": self.message}
