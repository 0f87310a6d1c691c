"""Google Calendar client: busy-interval source and booking writer."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from booking_secretary.config import OwnerConfig, ServerConfig
from booking_secretary.errors import CalendarWriteError, SourceUnavailable
from booking_secretary.models import BusyInterval, Event, Meeting
from booking_secretary.timeutils import parse_instant, to_rfc3339, to_utc

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
]

SOURCE_NAME = "google_calendar"

# Failures of a single Google API call
_API_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


class BusyIntervalSource(ABC):
    """Anything that can list an owner's already-booked time ranges."""

    @abstractmethod
    def fetch_busy_intervals(
        self, owner_id: str, range_start: datetime, range_end: datetime
    ) -> List[BusyInterval]:
        """Return busy ``[start, end)`` intervals intersecting the range.

        Raises:
            SourceUnavailable: If the source cannot be queried. Callers must
                never read that as "no conflicts".
        """


class CalendarClient(BusyIntervalSource):
    """Client for interacting with Google Calendar API."""

    def __init__(self, config: ServerConfig):
        self.config: ServerConfig = config
        self.service: Any = None

    def _get_credentials(self) -> Optional[Credentials]:
        """Convert our OAuth2Config to Google Credentials."""
        if not self.config.google:
            logger.error("OAuth2 configuration missing for Calendar")
            return None

        oauth = self.config.google
        creds = Credentials(
            token=oauth.access_token,
            refresh_token=oauth.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=oauth.client_id,
            client_secret=oauth.client_secret,
            scopes=CALENDAR_SCOPES,
        )

        # Refresh if expired
        if creds and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        return creds

    def connect(self):
        """Initialize the Calendar service."""
        try:
            creds = self._get_credentials()
            if not creds:
                raise ValueError("Could not obtain credentials for Calendar")

            self.service = build(
                "calendar", "v3", credentials=creds, cache_discovery=False
            )
            logger.info("Successfully connected to Google Calendar API")
        except Exception as e:
            logger.error(f"Failed to connect to Google Calendar: {e}")
            raise

    def _ensure_connected(self) -> Any:
        """Ensure service is connected and return it."""
        if not self.service:
            self.connect()
        if not self.service:
            raise RuntimeError("Failed to connect to Calendar service")
        return self.service

    def _require_owner(self, owner_id: str) -> OwnerConfig:
        owner = self.config.get_owner(owner_id)
        if not owner:
            raise ValueError(f"Owner '{owner_id}' is not configured")
        return owner

    def get_availability(
        self, time_min: str, time_max: str, calendar_ids: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Check availability using the freebusy endpoint."""
        service = self._ensure_connected()

        body = {
            "timeMin": time_min,
            "timeMax": time_max,
            "items": [{"id": cid} for cid in (calendar_ids or ["primary"])],
        }

        return service.freebusy().query(body=body).execute()

    def fetch_busy_intervals(
        self, owner_id: str, range_start: datetime, range_end: datetime
    ) -> List[BusyInterval]:
        """List the owner's busy intervals via free/busy queries.

        Long ranges are split into ``calendar.max_query_days`` chunks.
        """
        try:
            calendar_id = self._require_owner(owner_id).calendar_id
        except ValueError as e:
            raise SourceUnavailable(SOURCE_NAME, str(e)) from e

        chunk = timedelta(days=self.config.calendar.max_query_days)
        intervals: List[BusyInterval] = []
        current = to_utc(range_start)
        end = to_utc(range_end)

        while current < end:
            chunk_end = min(current + chunk, end)
            intervals.extend(self._query_busy(calendar_id, current, chunk_end))
            current = chunk_end

        logger.debug(
            f"Fetched {len(intervals)} busy interval(s) for {owner_id} "
            f"between {range_start.isoformat()} and {range_end.isoformat()}"
        )
        return intervals

    def _query_busy(
        self, calendar_id: str, start: datetime, end: datetime
    ) -> List[BusyInterval]:
        try:
            result = self.get_availability(
                to_rfc3339(start), to_rfc3339(end), [calendar_id]
            )
        except (*_API_ERRORS, ValueError, RuntimeError) as e:
            logger.error(f"Free/busy query failed for {calendar_id}: {e}")
            raise SourceUnavailable(SOURCE_NAME, str(e)) from e

        calendar = result.get("calendars", {}).get(calendar_id)
        if calendar is None:
            raise SourceUnavailable(
                SOURCE_NAME, f"No free/busy data returned for {calendar_id}"
            )

        errors = calendar.get("errors") or []
        if errors:
            reasons = ", ".join(err.get("reason", "unknown") for err in errors)
            raise SourceUnavailable(
                SOURCE_NAME, f"Free/busy errors for {calendar_id}: {reasons}"
            )

        intervals = []
        for block in calendar.get("busy", []):
            try:
                intervals.append(
                    BusyInterval(
                        start=parse_instant(block["start"]),
                        end=parse_instant(block["end"]),
                    )
                )
            except (KeyError, ValueError) as e:
                # A busy block we cannot read must not silently free the slot
                raise SourceUnavailable(
                    SOURCE_NAME, f"Unreadable busy block {block!r}: {e}"
                ) from e
        return intervals

    def create_event(
        self,
        event_data: Dict[str, Any],
        calendar_id: str = "primary",
        send_updates: str = "all",
    ) -> Dict[str, Any]:
        """Create a new calendar event.

        Args:
            event_data: Event details
            calendar_id: Calendar ID
            send_updates: Which attendees Google should email (all, externalOnly, none)
        """
        service = self._ensure_connected()

        event = (
            service.events()
            .insert(
                calendarId=calendar_id,
                body=event_data,
                sendUpdates=send_updates,
            )
            .execute()
        )

        logger.info(f"Created event: {event.get('htmlLink')}")
        return event

    @staticmethod
    def build_booking_event(
        owner: OwnerConfig, event: Event, meeting: Meeting
    ) -> Dict[str, Any]:
        """Calendar event body for a booked meeting."""
        if meeting.guest_notes:
            description = f"Additional Details: {meeting.guest_notes}"
        else:
            description = "No additional details."

        return {
            "summary": f"{meeting.guest_name} + {owner.display_name}: {event.name}",
            "description": description,
            "start": {"dateTime": to_utc(meeting.start_time).isoformat()},
            "end": {"dateTime": to_utc(meeting.end_time).isoformat()},
            "attendees": [
                {"email": meeting.guest_email, "displayName": meeting.guest_name},
                {
                    "email": owner.email,
                    "displayName": owner.display_name,
                    "responseStatus": "accepted",
                },
            ],
        }

    def create_booking_event(self, event: Event, meeting: Meeting) -> Dict[str, Any]:
        """Write a booked meeting to the owner's calendar.

        Raises:
            CalendarWriteError: If the event could not be created.
        """
        try:
            owner = self._require_owner(meeting.owner_id)
            return self.create_event(
                self.build_booking_event(owner, event, meeting),
                calendar_id=owner.calendar_id,
                send_updates=self.config.calendar.send_updates,
            )
        except (*_API_ERRORS, ValueError, RuntimeError) as e:
            logger.error(f"Failed to create calendar event for meeting: {e}")
            raise CalendarWriteError(f"Failed to create calendar event: {e}") from e

    def delete_booking_event(self, owner_id: str, calendar_event_id: str) -> bool:
        """Remove a booking event written for a meeting that was not recorded.

        Returns False when the event could not be deleted; the failure is
        logged so the orphaned event can be cleaned up by hand.
        """
        try:
            owner = self._require_owner(owner_id)
            service = self._ensure_connected()
            service.events().delete(
                calendarId=owner.calendar_id,
                eventId=calendar_event_id,
                sendUpdates=self.config.calendar.send_updates,
            ).execute()
        except (*_API_ERRORS, ValueError, RuntimeError) as e:
            logger.error(
                f"Failed to delete orphaned calendar event {calendar_event_id} "
                f"for {owner_id}: {e}"
            )
            return False

        logger.info(f"Deleted calendar event {calendar_event_id} for {owner_id}")
        return True
