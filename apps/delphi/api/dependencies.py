"""Shared API dependencies."""

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from delphi.core.database import get_session
from delphi.core.dependencies import get_session_store
from delphi.core.exceptions import AuthenticationError
from delphi.schemas.session import SessionData
from delphi.services.session_store import SessionStore


def get_db_session() -> Generator[Session, None, None]:
    """Provide a database session for request handlers."""
    yield from get_session()


def get_current_session(
    request: Request,
    store: SessionStore = Depends(get_session_store),
) -> SessionData:
    """Resolve the caller's session from the shared session cookie."""

    session_data = store.load_from_cookies(request.cookies)
    if session_data is None:
        raise AuthenticationError("Not authenticated")
    return session_data


__all__ = ["get_current_session", "get_db_session"]
