"""Central dependency providers.

The realtime pieces are process-scoped: one registry, one router and one
gateway per process. They are cached here so HTTP routes and the WebSocket
endpoint share them, and tests can clear the caches or override them.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import TYPE_CHECKING

from sqlmodel import Session

from delphi.core.settings import settings

if TYPE_CHECKING:
    from delphi.realtime.gateway import RealtimeGateway
    from delphi.realtime.registry import ConnectionRegistry
    from delphi.realtime.router import MessageRouter
    from delphi.services.session_store import SessionStore


def get_session_factory() -> Callable[[], Session]:
    from delphi.core.database import SessionLocal

    return SessionLocal


@lru_cache(maxsize=1)
def get_session_store() -> SessionStore:
    from delphi.services.session_store import SessionStore

    return SessionStore(
        session_factory=get_session_factory(),
        secret_key=settings.secret_key.get_secret_value(),
        cookie_name=settings.session_cookie_name,
        max_age_seconds=settings.session_max_age_seconds,
    )


@lru_cache(maxsize=1)
def get_connection_registry() -> ConnectionRegistry:
    from delphi.realtime.registry import ConnectionRegistry

    return ConnectionRegistry()


@lru_cache(maxsize=1)
def get_message_router() -> MessageRouter:
    from delphi.realtime.router import MessageRouter

    return MessageRouter(
        get_connection_registry(),
        get_session_factory(),
        invite_code_bytes=settings.invite_code_bytes,
    )


@lru_cache(maxsize=1)
def get_realtime_gateway() -> RealtimeGateway:
    from delphi.realtime.gateway import RealtimeGateway

    return RealtimeGateway(
        session_store=get_session_store(),
        registry=get_connection_registry(),
        router=get_message_router(),
        session_factory=get_session_factory(),
        heartbeat_interval=settings.ws_heartbeat_interval_seconds,
        close_superseded=settings.ws_close_superseded,
    )


def clear_caches() -> None:
    """Drop process-scoped singletons (tests, settings reloads)."""

    for provider in (
        get_session_store,
        get_connection_registry,
        get_message_router,
        get_realtime_gateway,
    ):
        provider.cache_clear()


__all__ = [
    "clear_caches",
    "get_connection_registry",
    "get_message_router",
    "get_realtime_gateway",
    "get_session_factory",
    "get_session_store",
]
