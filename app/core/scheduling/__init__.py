"""
Scheduling Module

Computes free appointment slots from Google Calendar busy data and books
confirmed slots.

Usage:
    from app.core.scheduling import (
        get_availability_engine,
        get_calendar_config_cache,
    )

    config = get_calendar_config_cache().get_or_load("broker")
    slots = await get_availability_engine().available_slots(config)
    for slot in slots:
        print(slot.slot_id, slot.label)  # SLOT_1 Lun 19 09:00
"""

# Models
from app.core.scheduling.models import (
    Attendee,
    BusyInterval,
    CalendarConfig,
    CalendarEvent,
    Slot,
    parse_timestamp,
)

# Calendar Client
from app.core.scheduling.calendar_client import (
    CalendarBackend,
    CalendarClientError,
    GoogleCalendarClient,
    get_calendar_client,
)

# Calendar Config
from app.core.scheduling.config import (
    CalendarConfigError,
    get_calendar_config_cache,
    load_calendar_config,
)

# Availability Engine
from app.core.scheduling.availability import (
    BookingError,
    SlotAvailabilityEngine,
    format_slot_label,
    get_availability_engine,
)

__all__ = [
    # Models
    "Attendee",
    "BusyInterval",
    "CalendarConfig",
    "CalendarEvent",
    "Slot",
    "parse_timestamp",
    # Calendar Client
    "CalendarBackend",
    "CalendarClientError",
    "GoogleCalendarClient",
    "get_calendar_client",
    # Calendar Config
    "CalendarConfigError",
    "get_calendar_config_cache",
    "load_calendar_config",
    # Availability Engine
    "BookingError",
    "SlotAvailabilityEngine",
    "format_slot_label",
    "get_availability_engine",
]
