"""Loads configs/<tenant>/calendar.json."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from app.config import get_settings
from app.core.flows.cache import ConfigCache
from app.core.scheduling.models import CalendarConfig

logger = logging.getLogger(__name__)

CALENDAR_FILENAME = "calendar.json"


class CalendarConfigError(Exception):
    """Raised when a tenant has no usable calendar configuration."""

    def __init__(self, tenant: str, message: str):
        self.tenant = tenant
        super().__init__(message)


def load_calendar_config(
    tenant: str,
    config_root: Union[str, Path],
    fallback_calendar_id: Optional[str] = None,
) -> CalendarConfig:
    """Read a tenant's calendar settings.

    When calendar.json does not exist, every setting takes its default and
    the calendar id comes from ``fallback_calendar_id`` (GOOGLE_CALENDAR_ID).

    Raises:
        CalendarConfigError: Unreadable/invalid file or no calendar id at all
    """
    path = Path(config_root) / tenant / CALENDAR_FILENAME
    raw: dict = {}

    if path.exists():
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise CalendarConfigError(tenant, f"could not read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CalendarConfigError(tenant, f"invalid JSON in {path}: {e}") from e
        if not isinstance(raw, dict):
            raise CalendarConfigError(tenant, f"invalid JSON in {path}: expected an object")
    else:
        logger.debug(f"No {path}, using GOOGLE_CALENDAR_ID for tenant={tenant}")
        raw = {"calendar_id": fallback_calendar_id}

    if not raw.get("calendar_id"):
        raise CalendarConfigError(tenant, f"no calendar_id found for tenant {tenant}")

    try:
        config = CalendarConfig.model_validate(raw)
    except ValidationError as e:
        raise CalendarConfigError(tenant, f"invalid calendar config for tenant={tenant}: {e}") from e

    logger.info(
        f"Loaded calendar for tenant={tenant} hours={config.start_hour}-{config.end_hour} "
        f"days={list(config.work_days)} tz={config.timezone}"
    )
    return config


# Singleton
_calendar_cache: Optional[ConfigCache[CalendarConfig]] = None


def get_calendar_config_cache() -> ConfigCache[CalendarConfig]:
    """Get singleton calendar config cache."""
    global _calendar_cache
    if _calendar_cache is None:
        settings = get_settings()
        _calendar_cache = ConfigCache(
            lambda tenant: load_calendar_config(
                tenant,
                settings.config_root,
                settings.google_calendar_id,
            ),
            name="calendar",
        )
    return _calendar_cache
