"""Pytest fixtures for booking engine tests."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from unittest.mock import MagicMock, patch

import pytest

from booking_secretary.config import (
    CalendarConfig,
    OAuth2Config,
    OwnerConfig,
    ServerConfig,
    SlotConfig,
)
from booking_secretary.db import DatabaseInterface, MeetingPublisher
from booking_secretary.errors import SourceUnavailable
from booking_secretary.models import (
    BusyInterval,
    DayOfWeek,
    Event,
    Meeting,
    Schedule,
    WeeklyAvailabilityRule,
)

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

OWNER_ID = "owner-1"

# 2030-01-07 is a Monday
MONDAY = datetime(2030, 1, 7, tzinfo=timezone.utc)


class InMemoryDatabase(DatabaseInterface):
    """DatabaseInterface backed by dicts, with the same transaction contract."""

    def __init__(self):
        self.schedules: Dict[str, Schedule] = {}
        self.events: Dict[str, Event] = {}
        self.meetings: List[Meeting] = []
        self.available = True

    def _check(self):
        if not self.available:
            raise SourceUnavailable("schedule_store", "connection refused")

    def initialize(self) -> None:
        pass

    @contextmanager
    def connection(self):
        self._check()
        yield MagicMock()

    def close(self) -> None:
        pass

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        self._check()
        return self.schedules.get(owner_id)

    def replace_schedule(
        self, owner_id: str, timezone: str, rules: Sequence[WeeklyAvailabilityRule]
    ) -> Schedule:
        self._check()
        existing = self.schedules.get(owner_id)
        schedule = Schedule(
            owner_id=owner_id,
            timezone=timezone,
            rules=list(rules),
            id=existing.id if existing else str(uuid.uuid4()),
        )
        self.schedules[owner_id] = schedule
        return schedule

    def create_event(self, event: Event) -> Event:
        self._check()
        event.id = str(uuid.uuid4())
        self.events[event.id] = event
        return event

    def update_event(self, event: Event) -> Optional[Event]:
        self._check()
        current = self.events.get(event.id or "")
        if current is None or current.owner_id != event.owner_id:
            return None
        self.events[event.id] = event  # type: ignore[index]
        return event

    def delete_event(self, owner_id: str, event_id: str) -> bool:
        self._check()
        current = self.events.get(event_id)
        if current is None or current.owner_id != owner_id:
            return False
        del self.events[event_id]
        return True

    def get_event(self, owner_id: str, event_id: str) -> Optional[Event]:
        self._check()
        event = self.events.get(event_id)
        if event is None or event.owner_id != owner_id:
            return None
        return event

    def list_events(self, owner_id: str, active_only: bool = False) -> List[Event]:
        self._check()
        return sorted(
            (
                e
                for e in self.events.values()
                if e.owner_id == owner_id and (e.is_active or not active_only)
            ),
            key=lambda e: e.name.lower(),
        )

    def record_meeting(self, meeting: Meeting, publish: MeetingPublisher) -> Meeting:
        self._check()
        meeting.id = str(uuid.uuid4())
        # Nothing is kept unless publish succeeds
        meeting.calendar_event_id = publish(meeting)
        self.meetings.append(meeting)
        return meeting

    def list_meetings(self, owner_id: str) -> List[Meeting]:
        self._check()
        return [m for m in self.meetings if m.owner_id == owner_id]


class StaticBusySource:
    """Busy-interval source returning a mutable list."""

    def __init__(self, intervals: Optional[List[BusyInterval]] = None):
        self.intervals: List[BusyInterval] = list(intervals or [])
        self.calls: List[tuple] = []
        self.error: Optional[Exception] = None

    def fetch_busy_intervals(self, owner_id, range_start, range_end):
        self.calls.append((owner_id, range_start, range_end))
        if self.error:
            raise self.error
        return [b for b in self.intervals if b.overlaps(range_start, range_end)]


def monday_rule(start: str = "09:00", end: str = "17:00") -> WeeklyAvailabilityRule:
    return WeeklyAvailabilityRule(DayOfWeek.MONDAY, start, end)


@pytest.fixture
def database():
    return InMemoryDatabase()


@pytest.fixture
def busy_source():
    return StaticBusySource()


@pytest.fixture
def mock_oauth2_config():
    """Create a mock OAuth2 configuration."""
    return OAuth2Config(
        client_id="mock_client_id",
        client_secret="mock_client_secret",
        refresh_token="mock_refresh_token",
        access_token="mock_access_token",
    )


@pytest.fixture
def owner_config():
    return OwnerConfig(
        owner_id=OWNER_ID,
        email="Owner@Example.com",
        full_name="Olivia Owner",
        calendar_id="owner@example.com",
    )


@pytest.fixture
def mock_server_config(mock_oauth2_config, owner_config):
    """Create a mock Server configuration."""
    return ServerConfig(
        default_timezone="UTC",
        google=mock_oauth2_config,
        calendar=CalendarConfig(enabled=True, send_updates="all", max_query_days=60),
        slots=SlotConfig(step_minutes=15),
        owners={OWNER_ID: owner_config},
    )


@pytest.fixture
def mock_calendar_service():
    """Create a mock Calendar API service."""
    with patch("booking_secretary.calendar_client.build") as mock_build:
        service = MagicMock()
        mock_build.return_value = service
        service.freebusy().query().execute.return_value = {
            "calendars": {"owner@example.com": {"busy": []}}
        }
        service.events().insert().execute.return_value = {
            "id": "gcal-1",
            "htmlLink": "https://calendar.google.com/event?eid=gcal-1",
        }
        yield service
