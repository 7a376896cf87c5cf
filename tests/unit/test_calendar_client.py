"""Tests for the Google Calendar client."""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from unittest.mock import MagicMock, patch

from app.config import Settings
from app.core.scheduling import BusyInterval, CalendarEvent
from app.core.scheduling.calendar_client import CalendarClientError, GoogleCalendarClient

BA = ZoneInfo("America/Argentina/Buenos_Aires")
CALENDAR_ID = "broker@group.calendar.google.com"

TIME_MIN = datetime(2025, 1, 6, 8, 0, tzinfo=BA)
TIME_MAX = TIME_MIN + timedelta(days=10)


def freebusy_service(response: dict) -> MagicMock:
    """Mock Calendar v3 service answering freebusy.query with response."""
    service = MagicMock()
    service.freebusy.return_value.query.return_value.execute.return_value = response
    return service


@pytest.fixture
def client():
    """Client with a credentials path (never read, the service is mocked)."""
    return GoogleCalendarClient(credentials_file="/secrets/service-account.json")


class TestQueryFreeBusy:
    """Test freebusy.query handling."""

    @pytest.mark.asyncio
    async def test_request_body_and_intervals(self, client):
        """Test the query window and Z timestamps become aware intervals."""
        service = freebusy_service({
            "calendars": {
                CALENDAR_ID: {
                    "busy": [
                        {"start": "2025-01-06T13:00:00Z", "end": "2025-01-06T14:00:00Z"},
                        {"start": "2025-01-07T10:00:00-03:00", "end": "2025-01-07T11:30:00-03:00"},
                    ],
                },
            },
        })

        with patch.object(client, "_build_service", return_value=service):
            intervals = await client.query_free_busy(CALENDAR_ID, TIME_MIN, TIME_MAX)

        body = service.freebusy.return_value.query.call_args.kwargs["body"]
        assert body == {
            "timeMin": TIME_MIN.isoformat(),
            "timeMax": TIME_MAX.isoformat(),
            "items": [{"id": CALENDAR_ID}],
        }

        assert intervals[0] == BusyInterval(
            start=datetime(2025, 1, 6, 13, 0, tzinfo=timezone.utc),
            end=datetime(2025, 1, 6, 14, 0, tzinfo=timezone.utc),
        )
        # 13:00Z is 10:00 in Buenos Aires
        assert intervals[0].overlaps(
            datetime(2025, 1, 6, 10, 0, tzinfo=BA),
            datetime(2025, 1, 6, 11, 0, tzinfo=BA),
        )
        assert intervals[1].end == datetime(2025, 1, 7, 11, 30, tzinfo=BA)

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, client):
        """Test entries without start/end or with bad timestamps are dropped."""
        service = freebusy_service({
            "calendars": {
                CALENDAR_ID: {
                    "busy": [
                        {"start": "2025-01-06T13:00:00Z"},
                        {"start": "yesterday", "end": "today"},
                        {"start": "2025-01-06T15:00:00Z", "end": "2025-01-06T16:00:00Z"},
                    ],
                },
            },
        })

        with patch.object(client, "_build_service", return_value=service):
            intervals = await client.query_free_busy(CALENDAR_ID, TIME_MIN, TIME_MAX)

        assert len(intervals) == 1
        assert intervals[0].start == datetime(2025, 1, 6, 15, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_calendar_errors_raise(self, client):
        """Test per-calendar errors are reported instead of an empty calendar."""
        service = freebusy_service({
            "calendars": {
                CALENDAR_ID: {"errors": [{"domain": "global", "reason": "notFound"}]},
            },
        })

        with patch.object(client, "_build_service", return_value=service):
            with pytest.raises(CalendarClientError) as exc_info:
                await client.query_free_busy(CALENDAR_ID, TIME_MIN, TIME_MAX)

        assert "notFound" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_calendar_missing_from_response(self, client):
        """Test a response without the calendar means no busy time."""
        service = freebusy_service({"calendars": {}})

        with patch.object(client, "_build_service", return_value=service):
            intervals = await client.query_free_busy(CALENDAR_ID, TIME_MIN, TIME_MAX)

        assert intervals == []


class TestInsertEvent:
    """Test events.insert handling."""

    @pytest.mark.asyncio
    async def test_insert_body_and_id(self, client):
        """Test the event body is sent and the created id returned."""
        service = MagicMock()
        service.events.return_value.insert.return_value.execute.return_value = {
            "id": "evt-123",
            "status": "confirmed",
        }
        start = datetime(2025, 1, 6, 9, 0, tzinfo=BA)
        event = CalendarEvent(
            summary="Turno con Ana",
            description="Tel: 5491155550000",
            start=start,
            end=start + timedelta(hours=1),
        )

        with patch.object(client, "_build_service", return_value=service):
            event_id = await client.insert_event(CALENDAR_ID, event)

        assert event_id == "evt-123"
        service.events.return_value.insert.assert_called_once_with(
            calendarId=CALENDAR_ID,
            body={
                "summary": "Turno con Ana",
                "description": "Tel: 5491155550000",
                "start": {"dateTime": "2025-01-06T09:00:00-03:00"},
                "end": {"dateTime": "2025-01-06T10:00:00-03:00"},
            },
        )


class TestCredentials:
    """Test service account loading."""

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        """Test calls fail clearly without GOOGLE_APPLICATION_CREDENTIALS."""
        with patch(
            "app.core.scheduling.calendar_client.get_settings",
            return_value=Settings(_env_file=None, google_application_credentials=None),
        ):
            client = GoogleCalendarClient()

        with pytest.raises(CalendarClientError):
            await client.query_free_busy(CALENDAR_ID, TIME_MIN, TIME_MAX)

    def test_credentials_loaded_once(self, client):
        """Test the service account file is read a single time."""
        with patch(
            "app.core.scheduling.calendar_client.service_account.Credentials"
            ".from_service_account_file"
        ) as from_file:
            first = client._get_credentials()
            second = client._get_credentials()

        assert first is second
        from_file.assert_called_once_with(
            "/secrets/service-account.json",
            scopes=["https://www.googleapis.com/auth/calendar"],
        )
