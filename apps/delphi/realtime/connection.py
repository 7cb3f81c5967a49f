from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from delphi.core.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Connection:
    """One authenticated, accepted realtime socket.

    Compared by identity so the registry can tell a stale handle from the
    current one for the same user.
    """

    user_id: int
    username: str
    websocket: WebSocket
    video_id: int | None = None
    alive: bool = True
    busy: bool = False
    connected_at: datetime = field(default_factory=utcnow)
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.application_state == WebSocketState.CONNECTED
            and self.websocket.client_state == WebSocketState.CONNECTED
        )

    async def send(self, payload: dict[str, Any]) -> bool:
        """Deliver one envelope; returns False instead of raising on transport failure."""

        if not self.is_open:
            return False
        async with self._send_lock:
            try:
                await self.websocket.send_json(payload)
            except Exception as exc:  # noqa: BLE001 - delivery is fire-and-forget
                logger.debug("Send to user %s failed: %s", self.user_id, exc)
                return False
        return True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        if not self.is_open:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except Exception as exc:  # noqa: BLE001 - peer may already be gone
            logger.debug("Close for user %s failed: %s", self.user_id, exc)


__all__ = ["Connection"]
