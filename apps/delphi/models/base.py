"""SQLModel base classes and mixins for ORM models."""

from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from delphi.core.utils import utcnow


class TimestampMixin(SQLModel):
    """Adds created/updated timestamps, always written as aware UTC."""

    created_at: datetime | None = Field(
        default_factory=utcnow, sa_type=sa.DateTime(timezone=True)
    )
    updated_at: datetime | None = Field(
        default_factory=utcnow, sa_type=sa.DateTime(timezone=True)
    )


class Model(TimestampMixin, SQLModel):
    """Base for tables: integer `id` plus timestamps.

    Inherit this along with `table=True` on concrete models.
    """

    id: int | None = Field(default=None, primary_key=True)
