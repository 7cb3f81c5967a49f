"""Validate, persist and fan out one inbound realtime envelope."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from delphi.core.exceptions import DelphiException, EnvelopeValidationError
from delphi.realtime.registry import ConnectionRegistry
from delphi.schemas.chat import (
    CreateGroupEnvelope,
    GroupMessageEnvelope,
    GroupMessageOut,
    GroupOut,
    JoinGroupEnvelope,
    MessageAuthor,
    PingEnvelope,
    PongEnvelope,
    VideoMessageEnvelope,
    VideoMessageOut,
    envelope,
    error_envelope,
    parse_envelope,
)
from delphi.services.chat_service import ChatService

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to process message"

Handler = Callable[[Any, Any], Awaitable[None]]


class MessageRouter:
    """Dispatches envelopes by type; one instance serves every connection.

    Persistence runs in the threadpool with a fresh DB session per envelope.
    Callers must await `dispatch` before reading the next frame from the same
    connection to keep per-connection ordering.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        session_factory: Callable[[], Session],
        *,
        invite_code_bytes: int = 6,
    ) -> None:
        self.registry = registry
        self.session_factory = session_factory
        self.invite_code_bytes = invite_code_bytes
        self._handlers: dict[type, Handler] = {
            VideoMessageEnvelope: self._handle_video_message,
            GroupMessageEnvelope: self._handle_group_message,
            CreateGroupEnvelope: self._handle_create_group,
            JoinGroupEnvelope: self._handle_join_group,
            PingEnvelope: self._handle_ping,
            PongEnvelope: self._handle_pong,
        }

    async def dispatch(self, conn: Any, raw: str | bytes | dict[str, Any]) -> None:
        """Handle one frame from `conn`; failures are answered, never raised."""

        try:
            env = parse_envelope(raw)
        except EnvelopeValidationError as exc:
            logger.debug("Rejected envelope from user %s: %s", conn.user_id, exc.message)
            await conn.send(error_envelope(exc.message))
            return

        handler = self._handlers.get(type(env))
        if handler is None:
            await conn.send(error_envelope(f"Unknown message type: {env.type}"))
            return

        try:
            await handler(conn, env)
        except DelphiException as exc:
            await conn.send(error_envelope(exc.message))
        except SQLAlchemyError:
            logger.exception("Persistence failure handling %r from user %s", env.type, conn.user_id)
            await conn.send(error_envelope(GENERIC_FAILURE))
        except Exception:
            logger.exception("Unexpected failure handling %r from user %s", env.type, conn.user_id)
            await conn.send(error_envelope(GENERIC_FAILURE))

    def _service(self, session: Session) -> ChatService:
        return ChatService(session, invite_code_bytes=self.invite_code_bytes)

    # Video discussion
    def _persist_video_message(
        self, user_id: int, username: str, env: VideoMessageEnvelope
    ) -> VideoMessageOut:
        with self.session_factory() as session:
            row = self._service(session).create_video_message(
                video_id=env.video_id, user_id=user_id, content=env.content
            )
            return VideoMessageOut(
                id=row.id,
                content=row.content,
                user_id=row.user_id,
                video_id=row.video_id,
                created_at=row.created_at,
                user=MessageAuthor(username=username),
            )

    async def _handle_video_message(self, conn: Any, env: VideoMessageEnvelope) -> None:
        message = await run_in_threadpool(
            self._persist_video_message, conn.user_id, conn.username, env
        )
        payload = envelope("new_message", message)
        delivered = 0
        for target in self.registry.connections():
            # Sockets that declared another video at handshake are not viewing this one.
            watching = getattr(target, "video_id", None)
            if target is not conn and watching is not None and watching != env.video_id:
                continue
            if await target.send(payload):
                delivered += 1
        logger.debug("Video %s message %s delivered to %s", env.video_id, message.id, delivered)

    # Group discussion
    def _persist_group_message(
        self, user_id: int, username: str, env: GroupMessageEnvelope
    ) -> tuple[GroupMessageOut, set[int]]:
        with self.session_factory() as session:
            svc = self._service(session)
            row = svc.create_group_message(
                group_id=env.group_id, user_id=user_id, content=env.content
            )
            message = GroupMessageOut(
                id=row.id,
                content=row.content,
                user_id=row.user_id,
                group_id=row.group_id,
                created_at=row.created_at,
                user=MessageAuthor(username=username),
            )
            return message, svc.member_ids(group_id=env.group_id)

    async def _handle_group_message(self, conn: Any, env: GroupMessageEnvelope) -> None:
        message, member_ids = await run_in_threadpool(
            self._persist_group_message, conn.user_id, conn.username, env
        )
        payload = envelope("new_group_message", message)
        for user_id in member_ids:
            target = self.registry.get(user_id)
            if target is not None:
                await target.send(payload)

    # Group lifecycle
    def _create_group(self, user_id: int, env: CreateGroupEnvelope) -> GroupOut:
        with self.session_factory() as session:
            group = self._service(session).create_group(
                creator_id=user_id,
                name=env.name,
                video_id=env.video_id,
                description=env.description,
                is_private=env.is_private,
            )
            return GroupOut.model_validate(group)

    async def _handle_create_group(self, conn: Any, env: CreateGroupEnvelope) -> None:
        group = await run_in_threadpool(self._create_group, conn.user_id, env)
        logger.info("User %s created group %s", conn.user_id, group.id)
        await conn.send(envelope("group_created", group))

    def _join_group(self, user_id: int, env: JoinGroupEnvelope) -> GroupOut:
        with self.session_factory() as session:
            group = self._service(session).join_group(invite_code=env.invite_code, user_id=user_id)
            return GroupOut.model_validate(group)

    async def _handle_join_group(self, conn: Any, env: JoinGroupEnvelope) -> None:
        group = await run_in_threadpool(self._join_group, conn.user_id, env)
        logger.info("User %s joined group %s", conn.user_id, group.id)
        await conn.send(envelope("group_joined", group))

    # Liveness
    async def _handle_ping(self, conn: Any, env: PingEnvelope) -> None:
        await conn.send({"type": "pong"})

    async def _handle_pong(self, conn: Any, env: PongEnvelope) -> None:
        return None


__all__ = ["MessageRouter"]
