"""Maps WhatsApp phone number ids to tenants."""

import logging
from typing import Mapping, Optional

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class TenantResolver:
    """
    Resolves a channel account id (phone_number_id) to a tenant name.

    Built once and read-only afterwards, so it needs no locking. Unknown
    ids fall back to the default tenant; resolution never fails.
    """

    def __init__(self, mapping: Mapping[str, str], default: str = "broker"):
        self._mapping = {k: v for k, v in mapping.items() if k and v}
        self.default = default

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TenantResolver":
        """Build from TENANT_BY_PHONE_NUMBER_ID and DEFAULT_TENANT."""
        settings = settings or get_settings()
        resolver = cls(settings.tenant_mapping, settings.default_tenant)
        logger.info(
            f"Tenant resolver: {len(resolver._mapping)} mapped ids, default={resolver.default}"
        )
        return resolver

    def resolve(self, channel_account_id: str) -> str:
        """Tenant for a phone number id."""
        return self._mapping.get(channel_account_id.strip(), self.default)


# Singleton
_resolver: Optional[TenantResolver] = None


def get_tenant_resolver() -> TenantResolver:
    """Get singleton TenantResolver."""
    global _resolver
    if _resolver is None:
        _resolver = TenantResolver.from_settings()
    return _resolver
