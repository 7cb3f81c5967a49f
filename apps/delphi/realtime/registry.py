"""In-process map from user id to that user's live realtime connection.

Mutated only by the gateway on connect/disconnect; read by the router for
fan-out. Everything runs on the event loop thread, so no locking is needed.
A multi-process deployment would need a shared pub/sub registry instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """At most one connection per user id; a newer one replaces the older."""

    def __init__(self) -> None:
        self._connections: dict[int, Any] = {}

    def set(self, user_id: int, connection: Any) -> Any | None:
        """Register `connection`, returning the one it replaced (if any)."""

        previous = self._connections.get(user_id)
        self._connections[user_id] = connection
        if previous is not None and previous is not connection:
            logger.info("User %s reconnected; superseding previous connection", user_id)
            return previous
        return None

    def get(self, user_id: int) -> Any | None:
        return self._connections.get(user_id)

    def remove(self, user_id: int, connection: Any) -> bool:
        """Drop the entry only if it still points at this exact connection."""

        if self._connections.get(user_id) is not connection:
            return False
        del self._connections[user_id]
        logger.debug("Unregistered connection for user %s", user_id)
        return True

    def for_each(self, fn: Callable[[Any], None]) -> None:
        for connection in self.connections():
            fn(connection)

    def connections(self) -> list[Any]:
        """Snapshot of live connections, safe to iterate across awaits."""

        return list(self._connections.values())

    def user_ids(self) -> set[int]:
        return set(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._connections

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._connections))


__all__ = ["ConnectionRegistry"]
