"""Relational session store shared by HTTP routes and the realtime gateway.

The cookie carries only the session id, signed with itsdangerous; the session
payload itself lives in the `sessions` table written by the login flow.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from itsdangerous import BadSignature, URLSafeTimedSerializer
from sqlmodel import Session

from delphi.core.utils import ensure_utc, new_session_id, utcnow
from delphi.models.session import SessionRow
from delphi.schemas.session import SessionData

logger = logging.getLogger(__name__)


def _extract_user_id(data: Mapping[str, Any]) -> int | None:
    raw = data.get("user_id")
    if raw is None:
        # Sessions written by passport-style login flows nest the id.
        passport = data.get("passport")
        if isinstance(passport, Mapping):
            raw = passport.get("user")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


@dataclass
class SessionStore:
    """Loads, issues and revokes sessions keyed by opaque id."""

    session_factory: Callable[[], Session]
    secret_key: str
    cookie_name: str = "delphi.sid"
    max_age_seconds: int = 60 * 60 * 24 * 30

    def __post_init__(self) -> None:
        self._signer = URLSafeTimedSerializer(self.secret_key, salt="delphi-session")

    # Cookie signing
    def sign(self, sid: str) -> str:
        return self._signer.dumps(sid)

    def unsign(self, cookie_value: str) -> str | None:
        try:
            sid = self._signer.loads(cookie_value, max_age=self.max_age_seconds)
        except BadSignature:
            return None
        return sid if isinstance(sid, str) and sid else None

    # Rows
    def create(self, user_id: int, data: dict[str, Any] | None = None) -> str:
        """Persist a new session for `user_id` and return its id."""

        sid = new_session_id()
        payload = dict(data or {})
        payload["user_id"] = user_id
        row = SessionRow(
            sid=sid,
            data=payload,
            expire=utcnow() + timedelta(seconds=self.max_age_seconds),
        )
        with self.session_factory() as session:
            session.add(row)
            session.commit()
        return sid

    def load(self, sid: str) -> SessionData | None:
        """Return the live session for `sid`, or None if absent/expired."""

        with self.session_factory() as session:
            row = session.get(SessionRow, sid)
            if row is None:
                return None
            if ensure_utc(row.expire) <= utcnow():
                return None
            data = dict(row.data or {})
        user_id = _extract_user_id(data)
        if user_id is None:
            return None
        extra = {k: v for k, v in data.items() if k != "user_id"}
        return SessionData(sid=sid, user_id=user_id, expire=ensure_utc(row.expire), extra=extra)

    def destroy(self, sid: str) -> None:
        with self.session_factory() as session:
            row = session.get(SessionRow, sid)
            if row is not None:
                session.delete(row)
                session.commit()

    def load_from_cookies(self, cookies: Mapping[str, str]) -> SessionData | None:
        """Resolve the session referenced by the request's session cookie."""

        raw = cookies.get(self.cookie_name)
        if not raw:
            return None
        sid = self.unsign(raw)
        if sid is None:
            logger.debug("Rejected session cookie with bad signature")
            return None
        return self.load(sid)


__all__ = ["SessionStore"]
