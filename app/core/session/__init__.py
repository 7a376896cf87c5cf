"""
Session management module.

In-memory, per (tenant, user) conversation position with idle expiry.
"""

from .models import Session, session_key
from .store import SessionStore, get_session_store

__all__ = [
    # Models
    "Session",
    "session_key",
    # Store
    "SessionStore",
    "get_session_store",
]
