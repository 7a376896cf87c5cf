"""
Session Endpoints (development only)

Inspect or reset one user's conversation while testing a flow. Every route
answers 404 outside the development environment.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from app.config import get_settings
from app.core.session import get_session_store, session_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _require_development() -> None:
    if not get_settings().is_development:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not found",
        )


@router.get(
    "/{tenant}/{user_id}",
    summary="Get a session",
    include_in_schema=get_settings().is_development,
)
async def get_session(tenant: str, user_id: str) -> dict:
    """Current state of a user's conversation."""
    _require_development()

    session, found = get_session_store().get(session_key(tenant, user_id))
    if not found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )

    return {"tenant": tenant, "user_id": user_id, **session.to_dict()}


@router.delete(
    "/{tenant}/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Reset a session",
    include_in_schema=get_settings().is_development,
)
async def delete_session(tenant: str, user_id: str) -> None:
    """Forget a user's conversation so the next message starts at MENU."""
    _require_development()

    if not get_session_store().delete(session_key(tenant, user_id)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    logger.info(f"Session reset: tenant={tenant} user_id={user_id}")
