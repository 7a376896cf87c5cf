"""
Slot Availability Engine.

Turns calendar busy data into up to three bookable one-hour slots and books
the slot a user confirms.

Availability algorithm:
1. Take "now" in the calendar's time zone
2. Ask the calendar for busy intervals once, for the whole scan window
3. Walk working days from today, hour by hour inside working hours
4. Keep slots that start after now and overlap no busy interval
5. Stop at MAX_SLOTS or after SCAN_DAYS days
"""

import logging
from datetime import datetime, timedelta, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.scheduling.calendar_client import CalendarBackend, get_calendar_client
from app.core.scheduling.models import (
    Attendee,
    BusyInterval,
    CalendarConfig,
    CalendarEvent,
    Slot,
    parse_timestamp,
)
from app.core.templating import render_vars

logger = logging.getLogger(__name__)

LOOKAHEAD = timedelta(days=7)
SCAN_DAYS = 10
MAX_SLOTS = 3
SLOT_DURATION = timedelta(hours=1)

# Monday first, matching datetime.weekday()
WEEKDAY_ABBREVIATIONS = ("Lun", "Mar", "Mié", "Jue", "Vie", "Sáb", "Dom")


class BookingError(Exception):
    """Raised when a booking request cannot be turned into an event."""
    pass


def resolve_timezone(name: str) -> tzinfo:
    """Load an IANA zone, falling back to the system local zone."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        local = datetime.now().astimezone().tzinfo
        logger.warning(f"Unknown timezone {name!r}, using local zone {local}")
        return local


def format_slot_label(start: datetime) -> str:
    """Human label such as "Lun 19 09:00"."""
    return f"{WEEKDAY_ABBREVIATIONS[start.weekday()]} {start:%d %H:%M}"


class SlotAvailabilityEngine:
    """
    Computes free slots and books appointments against a calendar backend.

    Stateless apart from the backend; safe to share between tasks.
    """

    def __init__(self, calendar: Optional[CalendarBackend] = None):
        """Initialize engine.

        Args:
            calendar: Calendar backend (defaults to the Google client)
        """
        self._calendar = calendar

    @property
    def calendar(self) -> CalendarBackend:
        """Lazy-load the calendar backend."""
        if self._calendar is None:
            self._calendar = get_calendar_client()
        return self._calendar

    async def available_slots(
        self,
        config: CalendarConfig,
        now: Optional[datetime] = None,
    ) -> list[Slot]:
        """
        Find the next free slots.

        Args:
            config: Tenant calendar settings
            now: Reference instant (defaults to the current time)

        Returns:
            At most MAX_SLOTS slots, earliest first, all strictly after now
        """
        tz = resolve_timezone(config.timezone)
        now = (now or datetime.now(tz)).astimezone(tz)

        today = now.replace(hour=0, minute=0, second=0, microsecond=0)
        scan_end = _at_midnight(today + timedelta(days=SCAN_DAYS), tz)
        window_end = max(now + LOOKAHEAD, scan_end)

        busy = await self.calendar.query_free_busy(config.calendar_id, now, window_end)
        logger.debug(
            f"Scanning {config.calendar_id} from {now.isoformat()} "
            f"with {len(busy)} busy intervals"
        )

        slots: list[Slot] = []
        for offset in range(SCAN_DAYS):
            day = today + timedelta(days=offset)
            if not config.is_working_day(day):
                continue

            for hour in range(config.start_hour, config.end_hour):
                start = _at_hour(day, hour, tz)
                if start <= now:
                    continue
                end = start + SLOT_DURATION
                if _is_busy(busy, start, end):
                    continue

                slots.append(
                    Slot(
                        slot_id=f"SLOT_{len(slots) + 1}",
                        label=format_slot_label(start),
                        start_iso=start.isoformat(),
                    )
                )
                if len(slots) >= MAX_SLOTS:
                    return slots

        if not slots:
            logger.info(f"No free slots for {config.calendar_id} in the next {SCAN_DAYS} days")
        return slots

    async def book(
        self,
        config: CalendarConfig,
        iso_start: str,
        attendee: Attendee,
    ) -> Optional[str]:
        """
        Create a one-hour event starting at iso_start.

        Args:
            config: Tenant calendar settings
            iso_start: RFC 3339 start; naive values are read in the calendar zone
            attendee: Who the appointment is for

        Returns:
            Created event id

        Raises:
            BookingError: iso_start is not a valid timestamp
        """
        try:
            start = parse_timestamp(iso_start)
        except (AttributeError, ValueError) as e:
            raise BookingError(f"invalid slot start {iso_start!r}: {e}") from e

        if start.tzinfo is None:
            start = start.replace(tzinfo=resolve_timezone(config.timezone))

        variables = {"name": attendee.name, "phone": attendee.phone}
        event = CalendarEvent(
            summary=render_vars(config.event_summary, variables),
            description=render_vars(config.event_description, variables),
            start=start,
            end=start + SLOT_DURATION,
        )

        logger.info(f"Booking {start.isoformat()} on {config.calendar_id} for {attendee.phone}")
        return await self.calendar.insert_event(config.calendar_id, event)


def _at_hour(day: datetime, hour: int, tz: tzinfo) -> datetime:
    """Wall-clock hour on a given day in tz."""
    return datetime(day.year, day.month, day.day, hour, tzinfo=tz)


def _at_midnight(day: datetime, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def _is_busy(busy: list[BusyInterval], start: datetime, end: datetime) -> bool:
    return any(interval.overlaps(start, end) for interval in busy)


# Singleton
_engine: Optional[SlotAvailabilityEngine] = None


def get_availability_engine() -> SlotAvailabilityEngine:
    """Get singleton SlotAvailabilityEngine."""
    global _engine
    if _engine is None:
        _engine = SlotAvailabilityEngine()
    return _engine
