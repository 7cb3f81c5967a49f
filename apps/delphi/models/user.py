"""User identity as seen by the discussion subsystem."""

from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from delphi.models.base import Model


class User(Model, table=True):
    """Application user account (owned by the auth subsystem)."""

    __tablename__ = "users"
    __table_args__ = (sa.Index("ix_users_username", "username", unique=True),)

    username: str = Field(sa_column=sa.Column(sa.String(length=255), nullable=False, unique=True))


__all__ = ["User"]
