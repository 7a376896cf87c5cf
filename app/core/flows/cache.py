"""
Per-tenant configuration cache.

A dict guarded by a reader/writer lock. Loading is lazy and done by the
caller on a miss; two callers missing at the same time may both load and the
last write wins. Configs are read-mostly and reloading is idempotent, so the
race is harmless. A failed load inserts nothing.
"""

import asyncio
import logging
from typing import Callable, Generic, Optional, TypeVar

from app.config import get_settings
from app.core.flows.loader import load_flow_definition
from app.core.flows.models import FlowDefinition
from app.infra.locks import ReadWriteLock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConfigCache(Generic[T]):
    """Tenant → parsed config, loaded on first use."""

    def __init__(self, loader: Callable[[str], T], name: str = "config"):
        """Initialize cache.

        Args:
            loader: Called with the tenant name on a miss; may raise
            name: Label used in log lines
        """
        self._loader = loader
        self._name = name
        self._lock = ReadWriteLock()
        self._cache: dict[str, T] = {}

    def get(self, tenant: str) -> tuple[Optional[T], bool]:
        """Return (value, found) without loading."""
        with self._lock.read():
            if tenant in self._cache:
                return self._cache[tenant], True
            return None, False

    def set(self, tenant: str, value: T) -> None:
        """Insert or replace a tenant's entry."""
        with self._lock.write():
            self._cache[tenant] = value

    def get_or_load(self, tenant: str) -> T:
        """Return the cached value, loading and inserting it on a miss.

        Raises:
            Whatever the loader raises; nothing is cached in that case.
        """
        value, found = self.get(tenant)
        if found:
            return value

        logger.debug(f"{self._name} cache miss for tenant={tenant}")
        loaded = self._loader(tenant)
        self.set(tenant, loaded)
        return loaded

    async def get_or_load_async(self, tenant: str) -> T:
        """Like get_or_load, but a miss reads the file in a worker thread.

        Used from request handlers so config loading never blocks the event loop.
        """
        value, found = self.get(tenant)
        if found:
            return value

        logger.debug(f"{self._name} cache miss for tenant={tenant}")
        loaded = await asyncio.to_thread(self._loader, tenant)
        self.set(tenant, loaded)
        return loaded


def create_flow_cache(config_root: str) -> ConfigCache[FlowDefinition]:
    """Build a flow cache reading configs/<tenant>/flow.json under config_root."""
    return ConfigCache(
        lambda tenant: load_flow_definition(tenant, config_root),
        name="flow",
    )


# Singleton
_flow_cache: Optional[ConfigCache[FlowDefinition]] = None


def get_flow_cache() -> ConfigCache[FlowDefinition]:
    """Get singleton flow cache."""
    global _flow_cache
    if _flow_cache is None:
        _flow_cache = create_flow_cache(get_settings().config_root)
    return _flow_cache
