from __future__ import annotations

import asyncio

from delphi.realtime.gateway import RealtimeGateway
from delphi.realtime.registry import ConnectionRegistry
from delphi.realtime.router import MessageRouter


def _gateway(session_factory, registry: ConnectionRegistry, interval: float) -> RealtimeGateway:
    return RealtimeGateway(
        session_store=None,  # type: ignore[arg-type]
        registry=registry,
        router=MessageRouter(registry, session_factory),
        session_factory=session_factory,
        heartbeat_interval=interval,
    )


def test_silent_connection_is_dropped_after_one_missed_probe(session_factory, make_conn) -> None:
    registry = ConnectionRegistry()
    conn = make_conn(1, "alice")
    registry.set(1, conn)
    gateway = _gateway(session_factory, registry, interval=0.01)

    asyncio.run(asyncio.wait_for(gateway._heartbeat(conn), timeout=2))

    assert conn.types() == ["ping"]
    assert conn.closed_with == (1001, "heartbeat timeout")
    assert 1 not in registry


def test_responsive_connection_keeps_being_probed(session_factory, make_conn) -> None:
    registry = ConnectionRegistry()
    conn = make_conn(1, "alice")
    registry.set(1, conn)
    gateway = _gateway(session_factory, registry, interval=0.05)

    async def scenario() -> None:
        task = asyncio.create_task(gateway._heartbeat(conn))
        for _ in range(40):
            await asyncio.sleep(0.005)
            # Any inbound frame marks the connection alive again.
            conn.alive = True
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())

    assert conn.closed_with is None
    assert 1 in registry
    assert conn.types().count("ping") >= 2


def test_failed_probe_unregisters_connection(session_factory, make_conn) -> None:
    registry = ConnectionRegistry()
    conn = make_conn(1, "alice", fail_sends=True)
    registry.set(1, conn)
    gateway = _gateway(session_factory, registry, interval=0.01)

    asyncio.run(asyncio.wait_for(gateway._heartbeat(conn), timeout=2))

    assert 1 not in registry


def test_dropping_stale_connection_leaves_replacement_registered(
    session_factory, make_conn
) -> None:
    registry = ConnectionRegistry()
    old = make_conn(1, "alice")
    registry.set(1, old)
    new = make_conn(1, "alice")
    registry.set(1, new)
    gateway = _gateway(session_factory, registry, interval=0.01)

    asyncio.run(asyncio.wait_for(gateway._heartbeat(old), timeout=2))

    assert old.closed_with is not None
    assert registry.get(1) is new


def test_probes_are_not_counted_while_an_envelope_is_in_flight(
    session_factory, make_conn
) -> None:
    registry = ConnectionRegistry()
    conn = make_conn(1, "alice", alive=False, busy=True)
    registry.set(1, conn)
    gateway = _gateway(session_factory, registry, interval=0.01)

    async def scenario() -> None:
        task = asyncio.create_task(gateway._heartbeat(conn))
        await asyncio.sleep(0.1)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())

    assert conn.closed_with is None
    assert conn.sent == []
    assert registry.get(1) is conn
