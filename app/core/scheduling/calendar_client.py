"""
Google Calendar client.

Exposes the two calls the slot engine needs:
- freebusy.query for a single calendar
- events.insert

The Google client library is blocking, so every call runs in a worker
thread. httplib2 connections are not thread-safe, so each call builds its own
service object from shared credentials.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

from google.oauth2 import service_account
from googleapiclient.discovery import build

from app.config import get_settings
from app.core.scheduling.models import BusyInterval, CalendarEvent, parse_timestamp

logger = logging.getLogger(__name__)

CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]


class CalendarClientError(Exception):
    """Raised when the calendar service reports a problem."""
    pass


class CalendarBackend(Protocol):
    """Calendar capability consumed by the slot engine."""

    async def query_free_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        ...

    async def insert_event(self, calendar_id: str, event: CalendarEvent) -> Optional[str]:
        ...


class GoogleCalendarClient:
    """
    Google Calendar API v3 client authenticated with a service account.

    The service account must have write access to every tenant calendar.
    """

    def __init__(self, credentials_file: Optional[str] = None):
        """Initialize client.

        Args:
            credentials_file: Service account JSON (defaults to settings)
        """
        self._credentials_file = (
            credentials_file or get_settings().google_application_credentials
        )
        self._credentials: Optional[service_account.Credentials] = None

    def _get_credentials(self) -> service_account.Credentials:
        """Load service account credentials once."""
        if self._credentials is None:
            if not self._credentials_file:
                raise CalendarClientError("GOOGLE_APPLICATION_CREDENTIALS is not set")
            self._credentials = service_account.Credentials.from_service_account_file(
                self._credentials_file,
                scopes=CALENDAR_SCOPES,
            )
        return self._credentials

    def _build_service(self):
        """Build a Calendar v3 service for the calling thread."""
        return build(
            "calendar",
            "v3",
            credentials=self._get_credentials(),
            cache_discovery=False,
        )

    async def query_free_busy(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[BusyInterval]:
        """Fetch busy intervals of one calendar.

        Args:
            calendar_id: Google calendar id
            time_min: Window start (timezone-aware)
            time_max: Window end (timezone-aware)

        Returns:
            Busy intervals in the window

        Raises:
            CalendarClientError: Google reported an error for the calendar
            googleapiclient.errors.HttpError: The request itself failed
        """
        body = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "items": [{"id": calendar_id}],
        }

        def _query() -> dict:
            return self._build_service().freebusy().query(body=body).execute()

        response = await asyncio.to_thread(_query)
        calendar = response.get("calendars", {}).get(calendar_id, {})

        errors = calendar.get("errors")
        if errors:
            reasons = ", ".join(e.get("reason", "unknown") for e in errors)
            raise CalendarClientError(f"freebusy failed for {calendar_id}: {reasons}")

        intervals: list[BusyInterval] = []
        for busy in calendar.get("busy", []):
            try:
                intervals.append(
                    BusyInterval(
                        start=parse_timestamp(busy["start"]),
                        end=parse_timestamp(busy["end"]),
                    )
                )
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed busy interval {busy}: {e}")

        logger.debug(f"freebusy {calendar_id}: {len(intervals)} busy intervals")
        return intervals

    async def insert_event(self, calendar_id: str, event: CalendarEvent) -> Optional[str]:
        """Create an event.

        Returns:
            Id of the created event
        """
        body = event.to_dict()

        def _insert() -> dict:
            return self._build_service().events().insert(
                calendarId=calendar_id,
                body=body,
            ).execute()

        created = await asyncio.to_thread(_insert)
        event_id = created.get("id")
        logger.info(f"Calendar event created: calendar={calendar_id} id={event_id}")
        return event_id


# Singleton
_client: Optional[GoogleCalendarClient] = None


def get_calendar_client() -> GoogleCalendarClient:
    """Get singleton GoogleCalendarClient."""
    global _client
    if _client is None:
        _client = GoogleCalendarClient()
    return _client
