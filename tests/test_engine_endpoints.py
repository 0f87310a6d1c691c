"""Tests for the engine HTTP API."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from booking_secretary.calendar_client import CalendarClient
from booking_secretary.engine.api import app, state
from booking_secretary.errors import SourceUnavailable
from booking_secretary.models import Event

from tests.conftest import MONDAY, OWNER_ID, InMemoryDatabase, monday_rule


@pytest.fixture(autouse=True)
def reset_state(mock_server_config, mock_calendar_service):
    database = InMemoryDatabase()
    calendar_client = CalendarClient(mock_server_config)
    calendar_client.service = mock_calendar_service
    state.attach(mock_server_config, database, calendar_client)
    state.running = True
    yield
    state.reset()


@pytest.fixture
def database():
    return state.database


@pytest.fixture
def event(database):
    return database.create_event(
        Event(owner_id=OWNER_ID, name="Intro call", duration_minutes=30)
    )


def _client():
    return TestClient(app)


def _meeting_body(**overrides):
    body = {
        "start_time": MONDAY.replace(hour=9).isoformat(),
        "guest_name": "Gina Guest",
        "guest_email": "gina@example.org",
        "timezone": "Europe/Berlin",
    }
    body.update(overrides)
    return body


def test_health():
    assert _client().get("/health").json() == {
        "service": "booking-engine",
        "health": "healthy",
    }


def test_status_reports_owners():
    body = _client().get("/api/status").json()
    assert body["status"] == "running"
    assert body["owners"] == [OWNER_ID]
    assert body["calendar_connected"] is True


def test_engine_not_ready():
    state.reset()
    state.startup_error = "Database unavailable"
    response = _client().get(f"/api/owners/{OWNER_ID}/schedule")
    assert response.status_code == 503
    assert response.json()["detail"] == "Database unavailable"


class TestScheduleEndpoints:
    def test_get_missing_schedule(self):
        response = _client().get(f"/api/owners/{OWNER_ID}/schedule")
        assert response.status_code == 404

    def test_put_then_get(self):
        client = _client()
        response = client.put(
            f"/api/owners/{OWNER_ID}/schedule",
            json={
                "timezone": "America/New_York",
                "availabilities": [
                    {"day_of_week": "monday", "start_time": "09:00", "end_time": "11:00"},
                    {"day_of_week": "monday", "start_time": "10:00", "end_time": "12:00"},
                ],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["issues"] == [
            {"index": 1, "field": "start_time", "message": "Availability overlaps with another"}
        ]

        schedule = client.get(f"/api/owners/{OWNER_ID}/schedule").json()["schedule"]
        assert schedule["timezone"] == "America/New_York"
        assert schedule["availabilities"] == [
            {"day_of_week": "monday", "start_time": "09:00", "end_time": "11:00"}
        ]

    def test_put_unknown_timezone(self):
        response = _client().put(
            f"/api/owners/{OWNER_ID}/schedule",
            json={"timezone": "Mars/Base", "availabilities": []},
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["field"] == "timezone"

    def test_put_unknown_day(self):
        response = _client().put(
            f"/api/owners/{OWNER_ID}/schedule",
            json={
                "timezone": "UTC",
                "availabilities": [
                    {"day_of_week": "caturday", "start_time": "09:00", "end_time": "10:00"}
                ],
            },
        )
        assert response.status_code == 422

    def test_store_down(self, database):
        database.available = False
        response = _client().get(f"/api/owners/{OWNER_ID}/schedule")
        assert response.status_code == 503

    def test_validate_only(self):
        response = _client().post(
            "/api/schedule/validate",
            json={
                "timezone": "UTC",
                "availabilities": [
                    {"day_of_week": "friday", "start_time": "17:00", "end_time": "09:00"}
                ],
            },
        )
        body = response.json()
        assert body["valid"] is False
        assert body["issues"][0]["field"] == "end_time"


class TestEventEndpoints:
    def test_create_list_update_delete(self):
        client = _client()
        created = client.post(
            f"/api/owners/{OWNER_ID}/events",
            json={"name": "Deep dive", "duration_minutes": 90},
        )
        assert created.status_code == 201
        event = created.json()["event"]
        assert event["duration_label"] == "1 hr 30 mins"

        listed = client.get(f"/api/owners/{OWNER_ID}/events").json()["events"]
        assert [e["id"] for e in listed] == [event["id"]]

        updated = client.put(
            f"/api/owners/{OWNER_ID}/events/{event['id']}",
            json={"name": "Deep dive", "duration_minutes": 60, "is_active": False},
        )
        assert updated.json()["event"]["is_active"] is False
        active = client.get(
            f"/api/owners/{OWNER_ID}/events", params={"active_only": True}
        ).json()["events"]
        assert active == []

        assert client.delete(f"/api/owners/{OWNER_ID}/events/{event['id']}").status_code == 200
        assert client.delete(f"/api/owners/{OWNER_ID}/events/{event['id']}").status_code == 404

    def test_invalid_duration(self):
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events",
            json={"name": "Too long", "duration_minutes": 1000},
        )
        assert response.status_code == 422


class TestSlotEndpoint:
    def test_lists_slots(self, database, event):
        database.replace_schedule(OWNER_ID, "UTC", [monday_rule("09:00", "10:00")])
        response = _client().get(
            f"/api/owners/{OWNER_ID}/events/{event.id}/slots",
            params={"timezone": "Europe/Berlin", "limit": 3},
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["slots"]) == 3
        assert body["total"] >= 3
        assert body["timezone"] == "Europe/Berlin"
        assert body["slots"][0]["label"].startswith("Monday")

    def test_no_schedule_means_no_slots(self, event):
        body = _client().get(f"/api/owners/{OWNER_ID}/events/{event.id}/slots").json()
        assert body["slots"] == []
        assert body["total"] == 0

    def test_unknown_owner(self, event):
        response = _client().get(f"/api/owners/stranger/events/{event.id}/slots")
        assert response.status_code == 404

    def test_unknown_event(self):
        response = _client().get(f"/api/owners/{OWNER_ID}/events/missing/slots")
        assert response.status_code == 404

    def test_bad_viewer_timezone(self, event):
        response = _client().get(
            f"/api/owners/{OWNER_ID}/events/{event.id}/slots",
            params={"timezone": "Mars/Base"},
        )
        assert response.status_code == 400

    def test_calendar_down(self, database, event, mock_calendar_service):
        database.replace_schedule(OWNER_ID, "UTC", [monday_rule()])
        mock_calendar_service.freebusy().query().execute.side_effect = OSError("down")
        response = _client().get(f"/api/owners/{OWNER_ID}/events/{event.id}/slots")
        assert response.status_code == 503

    def test_calendar_disabled(self, event):
        state.calendar_client = None
        response = _client().get(f"/api/owners/{OWNER_ID}/events/{event.id}/slots")
        assert response.status_code == 503
        assert response.json()["detail"] == "Calendar not connected"


class TestMeetingEndpoint:
    @pytest.fixture(autouse=True)
    def schedule(self, database):
        database.replace_schedule(OWNER_ID, "UTC", [monday_rule()])

    def test_books_meeting(self, database, event, mock_calendar_service):
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/{event.id}/meetings",
            json=_meeting_body(guest_notes="Hello"),
        )
        assert response.status_code == 201
        meeting = response.json()["meeting"]
        assert meeting["calendar_event_id"] == "gcal-1"
        assert meeting["end_time"] == (MONDAY.replace(hour=9) + timedelta(minutes=30)).isoformat()

        listed = _client().get(f"/api/owners/{OWNER_ID}/meetings").json()["meetings"]
        assert [m["id"] for m in listed] == [meeting["id"]]

    def test_slot_taken(self, event, mock_calendar_service):
        mock_calendar_service.freebusy().query().execute.return_value = {
            "calendars": {
                "owner@example.com": {
                    "busy": [{"start": "2030-01-07T09:00:00Z", "end": "2030-01-07T09:15:00Z"}]
                }
            }
        }
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/{event.id}/meetings", json=_meeting_body()
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Selected time is no longer available"

    def test_calendar_write_failure(self, database, event, mock_calendar_service):
        mock_calendar_service.events().insert().execute.side_effect = OSError("reset")
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/{event.id}/meetings", json=_meeting_body()
        )
        assert response.status_code == 502
        assert database.meetings == []

    def test_source_unavailable(self, event):
        state.availability.busy_source = MagicMock()
        state.availability.busy_source.fetch_busy_intervals.side_effect = SourceUnavailable(
            "google_calendar", "timeout"
        )
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/{event.id}/meetings", json=_meeting_body()
        )
        assert response.status_code == 503

    def test_invalid_email(self, event):
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/{event.id}/meetings",
            json=_meeting_body(guest_email="not-an-email"),
        )
        assert response.status_code == 422

    def test_unknown_event(self):
        response = _client().post(
            f"/api/owners/{OWNER_ID}/events/missing/meetings", json=_meeting_body()
        )
        assert response.status_code == 404
