import logging
import os
import re
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from booking_secretary.availability import validate_schedule
from booking_secretary.calendar_client import CalendarClient
from booking_secretary.config import ServerConfig, load_config
from booking_secretary.db import DatabaseInterface
from booking_secretary.engine.database import create_database
from booking_secretary.engine.services import (
    AvailabilityService,
    BookingService,
    EventService,
    ScheduleService,
)
from booking_secretary.errors import (
    CalendarWriteError,
    EventNotFound,
    NoScheduleConfigured,
    SlotNoLongerAvailable,
    SourceUnavailable,
    ValidationError,
)
from booking_secretary.formatters import (
    format_event_description,
    format_slot_label,
    format_timezone_offset,
)
from booking_secretary.models import Event, WeeklyAvailabilityRule, DayOfWeek
from booking_secretary.timeutils import is_valid_timezone

logger = logging.getLogger(__name__)

logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EngineState:
    def __init__(self):
        self.config: Optional[ServerConfig] = None
        self.database: Optional[DatabaseInterface] = None
        self.calendar_client: Optional[CalendarClient] = None
        self.schedules: Optional[ScheduleService] = None
        self.events: Optional[EventService] = None
        self.availability: Optional[AvailabilityService] = None
        self.bookings: Optional[BookingService] = None
        self.running = False
        self.startup_error: Optional[str] = None

    def attach(
        self,
        config: ServerConfig,
        database: DatabaseInterface,
        calendar_client: Optional[CalendarClient],
    ) -> None:
        """Wire services around an initialized database and calendar client."""
        self.config = config
        self.database = database
        self.calendar_client = calendar_client
        self.schedules = ScheduleService(database)
        self.events = EventService(database, config.slots)
        if calendar_client is not None:
            self.availability = AvailabilityService(
                database, calendar_client, config.slots
            )
            self.bookings = BookingService(
                database, calendar_client, self.availability
            )
        else:
            self.availability = None
            self.bookings = None

    def reset(self) -> None:
        self.__init__()


state = EngineState()


def start_engine(config_path: Optional[str] = None) -> bool:
    """Load config, open the database and connect the calendar.

    Returns True when the engine is ready to serve bookings.
    """
    try:
        config = load_config(config_path)
        database = create_database(config.database)
        database.initialize()
        logger.info(f"Database initialized: {type(database).__name__}")
    except (ValueError, SourceUnavailable) as e:
        state.startup_error = str(e)
        logger.error(f"Engine startup failed: {e}")
        return False

    calendar_client: Optional[CalendarClient] = None
    if config.calendar.enabled:
        calendar_client = CalendarClient(config)
        try:
            calendar_client.connect()
        except Exception as e:
            state.startup_error = f"Calendar not connected: {e}"
            logger.warning(f"Calendar connection failed, will retry on demand: {e}")
    else:
        logger.warning("Calendar disabled - slot listing and booking are unavailable")

    state.attach(config, database, calendar_client)
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting booking-engine...")
    state.running = True
    start_engine(os.environ.get("CONFIG_PATH"))

    yield

    logger.info("Shutting down booking-engine...")
    state.running = False
    if state.database:
        state.database.close()


app = FastAPI(title="Booking Engine", lifespan=lifespan)


# Request models
class AvailabilityRuleModel(BaseModel):
    day_of_week: str
    start_time: str
    end_time: str

    @field_validator("day_of_week")
    @classmethod
    def _known_day(cls, value: str) -> str:
        return DayOfWeek.from_string(value).value

    def to_rule(self) -> WeeklyAvailabilityRule:
        return WeeklyAvailabilityRule(
            day_of_week=DayOfWeek.from_string(self.day_of_week),
            start_time=self.start_time,
            end_time=self.end_time,
        )


class ScheduleRequest(BaseModel):
    timezone: str = Field(min_length=1)
    availabilities: list[AvailabilityRuleModel] = []


class EventRequest(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    duration_minutes: int
    is_active: bool = True


class MeetingRequest(BaseModel):
    start_time: datetime
    guest_name: str = Field(min_length=1)
    guest_email: str
    guest_notes: Optional[str] = None
    timezone: str = Field(min_length=1)

    @field_validator("guest_email")
    @classmethod
    def _valid_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("guest_email must be a valid email address")
        return value


def _require_ready() -> None:
    if not state.database or not state.config:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=state.startup_error or "Engine not ready",
        )


def _require_calendar() -> None:
    _require_ready()
    if not state.calendar_client or not state.availability or not state.bookings:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Calendar not connected",
        )


def _require_owner(owner_id: str) -> None:
    assert state.config is not None
    if not state.config.get_owner(owner_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Owner '{owner_id}' not found",
        )


def _validation_detail(e: ValidationError) -> list[dict[str, Any]]:
    return [issue.to_dict() for issue in e.issues]


def _event_payload(event: Event) -> dict[str, Any]:
    payload = event.to_dict()
    payload["duration_label"] = format_event_description(event.duration_minutes)
    return payload


# ============================================================================
# Status endpoints
# ============================================================================


@app.get("/api/status")
async def get_status():
    return {
        "status": "running" if state.running else "stopped",
        "startup_error": state.startup_error,
        "calendar_connected": state.calendar_client is not None
        and state.calendar_client.service is not None,
        "database_type": type(state.database).__name__ if state.database else None,
        "owners": sorted(state.config.owners) if state.config else [],
    }


@app.get("/health")
async def health():
    return {
        "service": "booking-engine",
        "health": "healthy" if state.running else "stopped",
    }


# ============================================================================
# Schedule endpoints
# ============================================================================


@app.get("/api/owners/{owner_id}/schedule")
async def get_schedule(owner_id: str):
    _require_ready()
    assert state.schedules is not None

    try:
        schedule = state.schedules.require_schedule(owner_id)
    except NoScheduleConfigured as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    return {"status": "ok", "schedule": schedule.to_dict()}


@app.put("/api/owners/{owner_id}/schedule")
async def save_schedule(owner_id: str, req: ScheduleRequest):
    _require_ready()
    assert state.schedules is not None

    try:
        schedule, issues = state.schedules.save_schedule(
            owner_id, req.timezone, [a.to_rule() for a in req.availabilities]
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_validation_detail(e),
        )
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )

    return {
        "status": "ok",
        "schedule": schedule.to_dict(),
        "issues": [issue.to_dict() for issue in issues],
    }


@app.post("/api/schedule/validate")
async def validate_schedule_request(req: ScheduleRequest):
    issues = validate_schedule(req.timezone, [a.to_rule() for a in req.availabilities])
    return {
        "status": "ok",
        "valid": not issues,
        "issues": [issue.to_dict() for issue in issues],
    }


# ============================================================================
# Event endpoints
# ============================================================================


@app.get("/api/owners/{owner_id}/events")
async def list_events(owner_id: str, active_only: bool = Query(False)):
    _require_ready()
    assert state.events is not None

    try:
        events = state.events.list_events(owner_id, active_only=active_only)
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return {"status": "ok", "events": [_event_payload(e) for e in events]}


@app.post("/api/owners/{owner_id}/events", status_code=status.HTTP_201_CREATED)
async def create_event(owner_id: str, req: EventRequest):
    _require_ready()
    assert state.events is not None

    try:
        event = state.events.create_event(
            Event(
                owner_id=owner_id,
                name=req.name,
                description=req.description,
                duration_minutes=req.duration_minutes,
                is_active=req.is_active,
            )
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_validation_detail(e),
        )
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return {"status": "ok", "event": _event_payload(event)}


@app.put("/api/owners/{owner_id}/events/{event_id}")
async def update_event(owner_id: str, event_id: str, req: EventRequest):
    _require_ready()
    assert state.events is not None

    try:
        event = state.events.update_event(
            Event(
                id=event_id,
                owner_id=owner_id,
                name=req.name,
                description=req.description,
                duration_minutes=req.duration_minutes,
                is_active=req.is_active,
            )
        )
    except EventNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_validation_detail(e),
        )
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return {"status": "ok", "event": _event_payload(event)}


@app.delete("/api/owners/{owner_id}/events/{event_id}")
async def delete_event(owner_id: str, event_id: str):
    _require_ready()
    assert state.events is not None

    try:
        state.events.delete_event(owner_id, event_id)
    except EventNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return {"status": "ok"}


# ============================================================================
# Booking endpoints
# ============================================================================


@app.get("/api/owners/{owner_id}/events/{event_id}/slots")
async def get_event_slots(
    owner_id: str,
    event_id: str,
    timezone: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
):
    _require_calendar()
    _require_owner(owner_id)
    assert state.events is not None and state.availability is not None

    if timezone and not is_valid_timezone(timezone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown timezone '{timezone}'",
        )

    try:
        event = state.events.get_event(owner_id, event_id, active_only=True)
        valid_times = state.availability.get_valid_times(owner_id, event)
    except EventNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SourceUnavailable as e:
        logger.error(f"Cannot list slots for {owner_id}/{event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    except Exception as e:
        logger.exception(f"Unexpected error listing slots for {owner_id}/{event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list slots",
        )

    viewer_tz = timezone or state.config.default_timezone  # type: ignore[union-attr]
    shown = valid_times[:limit] if limit else valid_times
    return {
        "status": "ok",
        "event": _event_payload(event),
        "timezone": viewer_tz,
        "timezone_offset": format_timezone_offset(viewer_tz),
        "slots": [
            {"start": t.isoformat(), "label": format_slot_label(t, viewer_tz)}
            for t in shown
        ],
        "total": len(valid_times),
    }


@app.post(
    "/api/owners/{owner_id}/events/{event_id}/meetings",
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting(owner_id: str, event_id: str, req: MeetingRequest):
    _require_calendar()
    _require_owner(owner_id)
    assert state.bookings is not None

    try:
        meeting = state.bookings.create_meeting(
            owner_id=owner_id,
            event_id=event_id,
            start_time=req.start_time,
            guest_name=req.guest_name,
            guest_email=req.guest_email,
            guest_notes=req.guest_notes,
            timezone=req.timezone,
        )
    except EventNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=_validation_detail(e),
        )
    except SlotNoLongerAvailable:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Selected time is no longer available",
        )
    except SourceUnavailable as e:
        logger.error(f"Booking aborted, source unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    except CalendarWriteError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error booking {owner_id}/{event_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Booking failed"
        )

    return {"status": "ok", "meeting": meeting.to_dict()}


@app.get("/api/owners/{owner_id}/meetings")
async def list_meetings(owner_id: str):
    _require_ready()
    assert state.database is not None

    try:
        meetings = state.database.list_meetings(owner_id)
    except SourceUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        )
    return {"status": "ok", "meetings": [m.to_dict() for m in meetings]}


def run_engine():
    import argparse

    parser = argparse.ArgumentParser(description="Booking Engine API")
    parser.add_argument(
        "--host", type=str, default="127.0.0.1", help="TCP host to bind to"
    )
    parser.add_argument("--port", type=int, default=8001, help="TCP port to bind to")
    args = parser.parse_args()

    logger.info(f"Starting Engine API on TCP {args.host}:{args.port}")
    config = uvicorn.Config(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    server.run()
