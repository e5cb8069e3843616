"""
Shared router dependencies.

The session manager is set by main.py during startup. Callers are
identified by the X-User-Id header; authentication happens upstream.
"""

import logging
from typing import AsyncIterator, NoReturn, Optional

from fastapi import Depends, Header, HTTPException

from game import InvalidStateError, ValidationError
from session import GameSessionController, PersistenceError, SessionManager

logger = logging.getLogger(__name__)

# Set by main.py during startup
_session_manager: Optional[SessionManager] = None


def set_session_manager(manager: Optional[SessionManager]) -> None:
    """Set the session manager instance (called from main.py)."""
    global _session_manager
    _session_manager = manager


def get_session_manager_dep() -> SessionManager:
    """Dependency to get the session manager."""
    if _session_manager is None:
        raise HTTPException(status_code=503, detail="Game service not initialized")
    return _session_manager


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Dependency to get the calling user's id from the X-User-Id header."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    return x_user_id.strip()


async def get_controller_dep(
    user_id: str = Depends(get_user_id),
    manager: SessionManager = Depends(get_session_manager_dep),
) -> AsyncIterator[GameSessionController]:
    """Dependency to get the calling user's game controller for one request."""
    controller = manager.acquire_controller(user_id)
    try:
        yield controller
    finally:
        manager.release_controller(user_id)


def raise_http_error(error: Exception) -> NoReturn:
    """
    Map a controller error to an HTTPException.

    PersistenceError bodies carry whatever local state survived the failure.
    """
    if isinstance(error, ValidationError):
        raise HTTPException(status_code=422, detail=str(error)) from error
    if isinstance(error, InvalidStateError):
        raise HTTPException(status_code=409, detail=str(error)) from error
    if isinstance(error, PersistenceError):
        detail = {"error": error.message, "queued": error.queued}
        if error.session is not None:
            detail["game"] = error.session.to_dict()
        if error.summary is not None:
            detail["summary"] = error.summary.to_dict()
        raise HTTPException(status_code=502, detail=detail) from error
    raise error
