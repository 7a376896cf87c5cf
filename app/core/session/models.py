"""Session data model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from app.core.flows.models import INITIAL_STATE
from app.core.scheduling.models import Slot


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def session_key(tenant: str, user_id: str) -> str:
    """Build the store key for a (tenant, user) pair.

    Tenant names never contain ":", so the same user id under two tenants
    cannot collide.
    """
    return f"{tenant}:{user_id}"


@dataclass(frozen=True)
class Session:
    """Conversation position of one user within one tenant.

    Sessions are replaced, never mutated in place: every processed message
    stores a new Session.
    """

    state: str = INITIAL_STATE
    updated_at: datetime = field(default_factory=_utcnow)

    # Slots shown by the last offer_slots state, keyed by slot id
    offered_slots: dict[str, Slot] = field(default_factory=dict)

    # Slot the user picked, consumed by the next book_slot state
    selected_slot: Optional[Slot] = None

    def is_expired(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        """Check if the session has been idle longer than ttl_seconds."""
        if ttl_seconds <= 0:
            return False
        now = now or _utcnow()
        return (now - self.updated_at).total_seconds() > ttl_seconds

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "state": self.state,
            "updated_at": self.updated_at.isoformat(),
            "offered_slots": [s.to_dict() for s in self.offered_slots.values()],
            "selected_slot": self.selected_slot.to_dict() if self.selected_slot else None,
        }
