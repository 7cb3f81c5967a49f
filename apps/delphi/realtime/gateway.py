"""Turn an upgrade request into an authenticated, registered channel."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from fastapi import WebSocket, WebSocketDisconnect, status
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool
from starlette.websockets import WebSocketState

from delphi.models.user import User
from delphi.realtime.connection import Connection
from delphi.realtime.registry import ConnectionRegistry
from delphi.realtime.router import MessageRouter
from delphi.schemas.chat import ConnectedOut, envelope
from delphi.services.session_store import SessionStore

logger = logging.getLogger(__name__)

CLOSE_SUPERSEDED = 4000
CLOSE_GOING_AWAY = status.WS_1001_GOING_AWAY


def _video_id_from_query(websocket: WebSocket) -> int | None:
    raw = websocket.query_params.get("videoId")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


class RealtimeGateway:
    """Handshake, registration, heartbeat and the per-connection receive loop."""

    def __init__(
        self,
        *,
        session_store: SessionStore,
        registry: ConnectionRegistry,
        router: MessageRouter,
        session_factory: Callable[[], Session],
        heartbeat_interval: float = 30.0,
        close_superseded: bool = True,
    ) -> None:
        self.session_store = session_store
        self.registry = registry
        self.router = router
        self.session_factory = session_factory
        self.heartbeat_interval = heartbeat_interval
        self.close_superseded = close_superseded

    def _lookup_identity(self, cookies: dict[str, str]) -> tuple[int, str] | None:
        session_data = self.session_store.load_from_cookies(cookies)
        if session_data is None:
            return None
        with self.session_factory() as session:
            user = session.get(User, session_data.user_id)
            if user is None:
                return None
            return user.id, user.username

    async def authenticate(self, websocket: WebSocket) -> tuple[int, str] | None:
        """Resolve (user_id, username) from the same session cookie HTTP routes use."""

        return await run_in_threadpool(self._lookup_identity, dict(websocket.cookies))

    async def serve(self, websocket: WebSocket) -> None:
        try:
            identity = await self.authenticate(websocket)
        except Exception:
            logger.exception("Realtime handshake failed while loading the session")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Session lookup failed")
            return

        if identity is None:
            client = websocket.client.host if websocket.client else "unknown"
            logger.info("Rejected realtime handshake from %s: no valid session", client)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
            return

        user_id, username = identity
        await websocket.accept()
        conn = Connection(
            user_id=user_id,
            username=username,
            websocket=websocket,
            video_id=_video_id_from_query(websocket),
        )
        previous = self.registry.set(user_id, conn)
        if previous is not None and self.close_superseded:
            await previous.close(code=CLOSE_SUPERSEDED, reason="superseded")
        logger.info("Realtime connection opened for user %s (%s live)", user_id, len(self.registry))

        heartbeat = asyncio.create_task(self._heartbeat(conn))
        try:
            await conn.send(envelope("connected", ConnectedOut(user_id=user_id, username=username)))
            while websocket.application_state == WebSocketState.CONNECTED:
                raw = await websocket.receive_text()
                conn.alive = True
                conn.busy = True
                try:
                    await self.router.dispatch(conn, raw)
                finally:
                    conn.busy = False
                    conn.alive = True
        except WebSocketDisconnect as exc:
            logger.debug("User %s disconnected (code=%s)", user_id, exc.code)
        except Exception:
            logger.exception("Realtime connection for user %s failed", user_id)
        finally:
            heartbeat.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await heartbeat
            self.registry.remove(user_id, conn)
            logger.info("Realtime connection closed for user %s (%s live)", user_id, len(self.registry))

    async def _heartbeat(self, conn: Connection) -> None:
        """Probe `conn` every interval; a missed probe counts as a close."""

        while True:
            await asyncio.sleep(self.heartbeat_interval)
            if conn.busy:
                # Pongs queue up unread while an envelope is being handled.
                continue
            if not conn.alive:
                logger.info("User %s missed heartbeat; dropping connection", conn.user_id)
                self.registry.remove(conn.user_id, conn)
                await conn.close(code=CLOSE_GOING_AWAY, reason="heartbeat timeout")
                return
            conn.alive = False
            if not await conn.send({"type": "ping"}):
                self.registry.remove(conn.user_id, conn)
                return


__all__ = ["CLOSE_SUPERSEDED", "RealtimeGateway"]
