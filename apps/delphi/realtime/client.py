"""Client-side reconnection agent for the realtime discussion channel.

A two-state machine (`disconnected` / `connected`) that owns at most one
reconnect timer. The timer is cleared on every transition into `connected`
and on teardown; retries run at a fixed delay with no cap while a session is
believed to exist.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from delphi.core.settings import settings
from delphi.realtime.gateway import CLOSE_SUPERSEDED

logger = logging.getLogger(__name__)

EnvelopeCallback = Callable[[dict[str, Any]], Awaitable[None] | None]
StateCallback = Callable[["ConnectionState"], None]


class ConnectionState(str, Enum):
    disconnected = "disconnected"
    connected = "connected"


class NotConnectedError(RuntimeError):
    """Raised when sending while the agent has no live connection."""


class ReconnectingClient:
    """Keeps one realtime connection open for as long as it is started.

    Use as an async context manager so the socket and any pending reconnect
    timer are released on exit:

        async with ReconnectingClient(url, cookie=cookie) as client:
            await client.send_message(video_id=42, content="hi")
    """

    def __init__(
        self,
        url: str,
        *,
        cookie: str | None = None,
        reconnect_delay: float | None = None,
        on_envelope: EnvelopeCallback | None = None,
        on_state_change: StateCallback | None = None,
        session_active: Callable[[], bool] = lambda: True,
        connect: Callable[..., Awaitable[Any]] | None = None,
    ) -> None:
        self.url = url
        self.cookie = cookie
        self.reconnect_delay = (
            settings.client_reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
        )
        self.on_envelope = on_envelope
        self.on_state_change = on_state_change
        self.session_active = session_active
        self._connect = connect or websockets.connect
        self._state = ConnectionState.disconnected
        self._ws: Any | None = None
        self._reader: asyncio.Task[None] | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._stopped = True

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.connected

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    async def __aenter__(self) -> ReconnectingClient:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        self._stopped = False
        await self._attempt()

    async def close(self) -> None:
        """Tear down: clear the pending timer and close the live socket."""

        self._stopped = True
        self._cancel_timer()
        if self._attempt_task is not None and not self._attempt_task.done():
            self._attempt_task.cancel()
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as exc:
                logger.debug("Error closing realtime socket: %s", exc)
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        self._reader = None
        self._set_state(ConnectionState.disconnected)

    # Transitions
    def _set_state(self, state: ConnectionState) -> None:
        if state is self._state:
            return
        self._state = state
        logger.info("Realtime client %s", state.value)
        if self.on_state_change is not None:
            self.on_state_change(state)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule_reconnect(self) -> None:
        if self._stopped:
            return
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.reconnect_delay, self._fire_reconnect)

    def _fire_reconnect(self) -> None:
        self._timer = None
        if self._stopped:
            return
        self._attempt_task = asyncio.get_running_loop().create_task(self._attempt())

    async def _attempt(self) -> None:
        if self._stopped or self.connected:
            return
        if not self.session_active():
            logger.debug("No active session; not reconnecting")
            return
        headers = {"Cookie": self.cookie} if self.cookie else None
        try:
            ws = await self._connect(self.url, additional_headers=headers)
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            logger.warning("Realtime connect failed: %s", exc)
            self._set_state(ConnectionState.disconnected)
            self._schedule_reconnect()
            return
        if self._stopped:
            await ws.close()
            return
        self._ws = ws
        self._cancel_timer()
        self._set_state(ConnectionState.connected)
        self._reader = asyncio.get_running_loop().create_task(self._read_loop(ws))

    async def _read_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                await self._handle_frame(raw)
        except ConnectionClosed as exc:
            code = exc.rcvd.code if exc.rcvd is not None else None
            if code == CLOSE_SUPERSEDED:
                # Another agent for this user took over; reconnecting would evict it in turn.
                logger.info("Realtime connection superseded by a newer one; not reconnecting")
                self._stopped = True
            else:
                logger.info("Realtime connection closed: %s", exc)
        except OSError as exc:
            logger.warning("Realtime connection error: %s", exc)
        except Exception:
            logger.exception("Realtime reader failed")
        finally:
            if self._ws is ws:
                self._ws = None
                try:
                    await ws.close()
                except (OSError, WebSocketException) as exc:
                    logger.debug("Error closing realtime socket: %s", exc)
                self._set_state(ConnectionState.disconnected)
                self._schedule_reconnect()

    async def _handle_frame(self, raw: str | bytes) -> None:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON realtime frame")
            return
        if not isinstance(data, dict):
            return
        kind = data.get("type")
        if kind == "ping":
            await self._send({"type": "pong"})
            return
        if kind == "error":
            logger.warning("Realtime server error: %s", data.get("message"))
        if self.on_envelope is None:
            return
        try:
            result = self.on_envelope(data)
            if asyncio.iscoroutine(result):
                await result
        except Exception:
            logger.exception("Envelope callback failed for %s frame", kind)

    # Sending
    async def _send(self, payload: dict[str, Any]) -> None:
        if self._ws is None or not self.connected:
            raise NotConnectedError("Not connected to chat server")
        await self._ws.send(json.dumps(payload))

    async def send(self, payload: dict[str, Any]) -> None:
        await self._send(payload)

    async def send_message(self, *, video_id: int, content: str) -> None:
        await self._send({"type": "message", "videoId": video_id, "content": content})

    async def send_group_message(self, *, group_id: int, content: str) -> None:
        await self._send({"type": "group_message", "groupId": group_id, "content": content})

    async def create_group(self, *, name: str, video_id: int | None = None) -> None:
        payload: dict[str, Any] = {"type": "create_group", "name": name}
        if video_id is not None:
            payload["videoId"] = video_id
        await self._send(payload)

    async def join_group(self, *, invite_code: str) -> None:
        await self._send({"type": "join_group", "inviteCode": invite_code})


__all__ = ["ConnectionState", "NotConnectedError", "ReconnectingClient"]
