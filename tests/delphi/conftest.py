from __future__ import annotations

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from delphi.api.dependencies import get_db_session
from delphi.core.dependencies import (
    get_connection_registry,
    get_realtime_gateway,
    get_session_store,
)
from delphi.main import app
from delphi.models.user import User
from delphi.realtime.gateway import RealtimeGateway
from delphi.realtime.registry import ConnectionRegistry
from delphi.realtime.router import MessageRouter
from delphi.services.chat_service import ChatService
from delphi.services.session_store import SessionStore


@pytest.fixture()
def session_store(session_factory: Callable[[], Session]) -> SessionStore:
    return SessionStore(session_factory=session_factory, secret_key="test-secret")


@pytest.fixture()
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture()
def gateway(
    session_factory: Callable[[], Session],
    session_store: SessionStore,
    registry: ConnectionRegistry,
) -> RealtimeGateway:
    return RealtimeGateway(
        session_store=session_store,
        registry=registry,
        router=MessageRouter(registry, session_factory),
        session_factory=session_factory,
        heartbeat_interval=3600,
    )


@pytest.fixture()
def client(
    session_factory: Callable[[], Session],
    session_store: SessionStore,
    registry: ConnectionRegistry,
    gateway: RealtimeGateway,
) -> Iterator[TestClient]:
    def _db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_connection_registry] = lambda: registry
    app.dependency_overrides[get_realtime_gateway] = lambda: gateway
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[[str], User]:
    def _make(username: str) -> User:
        return ChatService(db_session).ensure_user(username)

    return _make


@pytest.fixture()
def cookie_for(session_store: SessionStore) -> Callable[[User], dict[str, str]]:
    """Headers carrying a freshly issued session cookie for `user`."""

    def _cookie(user: User) -> dict[str, str]:
        sid = session_store.create(user.id)
        return {"cookie": f"{session_store.cookie_name}={session_store.sign(sid)}"}

    return _cookie
