from __future__ import annotations

import secrets
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""

    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values.

    SQLite has no timezone storage, so timestamps come back naive even though
    they are always written as aware UTC.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_invite_code(nbytes: int = 6) -> str:
    """Opaque hex token; `nbytes` random bytes yield twice as many characters."""

    return secrets.token_hex(nbytes)


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


__all__ = ["ensure_utc", "generate_invite_code", "new_session_id", "utcnow"]
