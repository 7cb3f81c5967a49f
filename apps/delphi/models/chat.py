"""Discussion domain models: groups, memberships and both message scopes."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlmodel import Field

from delphi.models.base import Model


class GroupRole(str, Enum):
    admin = "admin"
    member = "member"


class DiscussionGroup(Model, table=True):
    """A named, invite-coded chat room, optionally tied to one video."""

    __tablename__ = "discussion_groups"
    __table_args__ = (
        Index("ix_discussion_groups_invite_code", "invite_code", unique=True),
        Index("ix_discussion_groups_video_id", "video_id"),
    )

    name: str = Field(sa_column=Column(String(255), nullable=False))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    creator_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    invite_code: str = Field(sa_column=Column(String(64), nullable=False))
    is_private: bool = Field(default=True, sa_column=Column(Boolean, nullable=False))
    video_id: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))


class GroupMember(Model, table=True):
    """Authorization record linking a user to a group with a role."""

    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
        Index("ix_group_members_user_id", "user_id"),
    )

    group_id: int = Field(
        sa_column=Column(Integer, ForeignKey("discussion_groups.id"), nullable=False)
    )
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    role: str = Field(default=GroupRole.member.value, sa_column=Column(String(16), nullable=False))
    notifications: bool = Field(default=True, sa_column=Column(Boolean, nullable=False))


class VideoMessage(Model, table=True):
    """Open discussion message scoped to a video."""

    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_video_created", "video_id", "created_at"),)

    video_id: int = Field(sa_column=Column(Integer, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))


class GroupMessage(Model, table=True):
    """Message visible only to members of one group."""

    __tablename__ = "group_messages"
    __table_args__ = (Index("ix_group_messages_group_created", "group_id", "created_at"),)

    group_id: int = Field(
        sa_column=Column(Integer, ForeignKey("discussion_groups.id"), nullable=False)
    )
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id"), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))


__all__ = ["DiscussionGroup", "GroupMember", "GroupMessage", "GroupRole", "VideoMessage"]
