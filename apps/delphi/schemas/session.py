from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SessionData(BaseModel):
    """What the realtime core reads from an authenticated session."""

    sid: str
    user_id: int
    expire: datetime
    extra: dict[str, Any] = Field(default_factory=dict)
