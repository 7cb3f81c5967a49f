from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest


@dataclass(eq=False)
class FakeConnection:
    """Stand-in for a live socket: records what the server sends."""

    user_id: int
    username: str
    video_id: int | None = None
    alive: bool = True
    busy: bool = False
    fail_sends: bool = False
    sent: list[dict[str, Any]] = field(default_factory=list)
    closed_with: tuple[int, str | None] | None = None

    async def send(self, payload: dict[str, Any]) -> bool:
        if self.fail_sends or self.closed_with is not None:
            return False
        self.sent.append(payload)
        return True

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = (code, reason)

    def types(self) -> list[str]:
        return [p["type"] for p in self.sent]


@pytest.fixture()
def make_conn() -> type[FakeConnection]:
    return FakeConnection
