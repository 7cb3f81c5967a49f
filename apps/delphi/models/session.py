"""Server-side session rows shared by the HTTP front door and the realtime gateway."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


class SessionRow(SQLModel, table=True):
    """One authenticated session, keyed by its opaque id."""

    __tablename__ = "sessions"
    __table_args__ = (sa.Index("ix_sessions_expire", "expire"),)

    sid: str = Field(sa_column=sa.Column(sa.String(length=255), primary_key=True))
    data: dict = Field(default_factory=dict, sa_column=sa.Column(sa.JSON, nullable=False))
    expire: datetime = Field(sa_column=sa.Column(sa.DateTime(timezone=True), nullable=False))


__all__ = ["SessionRow"]
