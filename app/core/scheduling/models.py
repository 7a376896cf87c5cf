"""
Scheduling data types.

Slots and busy intervals are transient: recomputed on every availability
request and never stored beyond the session that was offered them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"
DEFAULT_START_HOUR = 9
DEFAULT_END_HOUR = 17
DEFAULT_WORK_DAYS = (1, 2, 3, 4, 5)  # 0=Sunday ... 6=Saturday
DEFAULT_EVENT_SUMMARY = "Turno Flowly: {{name}}"
DEFAULT_EVENT_DESCRIPTION = "Paciente agendado vía WhatsApp.\nTeléfono: {{phone}}"


@dataclass(frozen=True)
class Slot:
    """Candidate appointment offered to a user."""

    slot_id: str  # SLOT_1, SLOT_2, ...
    label: str  # "Lun 19 09:00"
    start_iso: str  # RFC 3339 with UTC offset

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "slot_id": self.slot_id,
            "label": self.label,
            "start_iso": self.start_iso,
        }


@dataclass(frozen=True)
class BusyInterval:
    """Half-open [start, end) range reported busy by the calendar."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Half-open intersection with [start, end)."""
        return start < self.end and end > self.start


@dataclass(frozen=True)
class Attendee:
    """Person a booking is made for."""

    name: str
    phone: str


@dataclass(frozen=True)
class CalendarEvent:
    """Event to insert into the tenant's calendar."""

    summary: str
    description: str
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        """Google Calendar events.insert body."""
        return {
            "summary": self.summary,
            "description": self.description,
            "start": {"dateTime": self.start.isoformat()},
            "end": {"dateTime": self.end.isoformat()},
        }


class CalendarConfig(BaseModel):
    """Per-tenant calendar settings (configs/<tenant>/calendar.json).

    Missing or out-of-range values fall back to 9-17, Monday to Friday.
    ``work_days`` uses 0=Sunday, 1=Monday ... 6=Saturday.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    calendar_id: str
    timezone: str = DEFAULT_TIMEZONE
    start_hour: int = DEFAULT_START_HOUR
    end_hour: int = DEFAULT_END_HOUR
    work_days: tuple[int, ...] = Field(default=DEFAULT_WORK_DAYS)
    event_summary: str = DEFAULT_EVENT_SUMMARY
    event_description: str = DEFAULT_EVENT_DESCRIPTION

    @model_validator(mode="before")
    @classmethod
    def apply_defaults(cls, data: Any) -> Any:
        """Replace absent, null or out-of-range values with defaults."""
        if not isinstance(data, dict):
            return data
        data = {k: v for k, v in data.items() if v is not None}

        start = data.get("start_hour", DEFAULT_START_HOUR)
        end = data.get("end_hour", DEFAULT_END_HOUR)
        if not isinstance(start, int) or not 0 <= start <= 23:
            start = DEFAULT_START_HOUR
        if not isinstance(end, int) or not 1 <= end <= 24:
            end = DEFAULT_END_HOUR
        if start >= end:
            start, end = DEFAULT_START_HOUR, DEFAULT_END_HOUR
        data["start_hour"] = start
        data["end_hour"] = end

        days = data.get("work_days") or ()
        if not isinstance(days, (list, tuple)):
            days = ()
        days = tuple(sorted({d for d in days if isinstance(d, int) and 0 <= d <= 6}))
        data["work_days"] = days or DEFAULT_WORK_DAYS

        if not str(data.get("timezone", "")).strip():
            data["timezone"] = DEFAULT_TIMEZONE
        return data

    def is_working_day(self, day: datetime) -> bool:
        """Check a date against work_days (0=Sunday convention)."""
        return (day.weekday() + 1) % 7 in self.work_days


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a trailing "Z".

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    value = value.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
