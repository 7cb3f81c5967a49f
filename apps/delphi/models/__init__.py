"""Convenient exports for writing ORM models (SQLModel)."""

from sqlmodel import Field, SQLModel

from delphi.models.base import Model, TimestampMixin
from delphi.models.chat import DiscussionGroup, GroupMember, GroupMessage, GroupRole, VideoMessage
from delphi.models.session import SessionRow
from delphi.models.user import User

__all__ = [
    "Model",
    "TimestampMixin",
    "User",
    "SessionRow",
    "DiscussionGroup",
    "GroupMember",
    "GroupRole",
    "GroupMessage",
    "VideoMessage",
    "SQLModel",
    "Field",
]
