"""Persistence for discussion groups, memberships and messages.

Every write commits before returning so the realtime router can fan out rows
that already carry their server-assigned id and timestamp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from delphi.core.exceptions import (
    AlreadyMemberError,
    EmptyContentError,
    GroupNotFoundError,
    MembershipRequiredError,
)
from delphi.core.utils import generate_invite_code
from delphi.models.chat import DiscussionGroup, GroupMember, GroupMessage, GroupRole, VideoMessage
from delphi.models.user import User

logger = logging.getLogger(__name__)

INVITE_CODE_ATTEMPTS = 5


def _clean_content(content: str) -> str:
    if not content or not content.strip():
        raise EmptyContentError("Message content must not be empty")
    return content


@dataclass
class ChatService:
    """Group/membership/message operations used by the router and history routes."""

    session: Session
    invite_code_bytes: int = 6

    # Users
    def get_user(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def ensure_user(self, username: str) -> User:
        """Fetch a user by username, creating the row if missing."""

        user = self.session.exec(select(User).where(User.username == username)).first()
        if user:
            return user
        user = User(username=username)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    # Video discussion
    def create_video_message(self, *, video_id: int, user_id: int, content: str) -> VideoMessage:
        message = VideoMessage(video_id=video_id, user_id=user_id, content=_clean_content(content))
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_video_messages(
        self, *, video_id: int, limit: int = 200
    ) -> list[tuple[VideoMessage, str]]:
        """Return (message, username) pairs oldest first."""

        stmt = (
            select(VideoMessage, User.username)
            .join(User, User.id == VideoMessage.user_id)
            .where(VideoMessage.video_id == video_id)
            .order_by(VideoMessage.created_at.asc(), VideoMessage.id.asc())
            .limit(limit)
        )
        return [(row, username) for row, username in self.session.exec(stmt)]

    # Groups
    def create_group(
        self,
        *,
        creator_id: int,
        name: str,
        video_id: int | None = None,
        description: str | None = None,
        is_private: bool = True,
    ) -> DiscussionGroup:
        """Create a group and its admin membership in one transaction.

        Invite codes are random; a collision surfaces as an IntegrityError on the
        unique index and is retried with a fresh code.
        """

        for attempt in range(1, INVITE_CODE_ATTEMPTS + 1):
            group = DiscussionGroup(
                name=name.strip(),
                description=description.strip() if description else None,
                creator_id=creator_id,
                invite_code=generate_invite_code(self.invite_code_bytes),
                is_private=is_private,
                video_id=video_id,
            )
            self.session.add(group)
            try:
                self.session.flush()
                self.session.add(
                    GroupMember(
                        group_id=group.id,
                        user_id=creator_id,
                        role=GroupRole.admin.value,
                    )
                )
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                logger.warning("Invite code collision on attempt %s; retrying", attempt)
                continue
            self.session.refresh(group)
            return group
        raise RuntimeError("Could not allocate a unique invite code")

    def get_group(self, group_id: int) -> DiscussionGroup | None:
        return self.session.get(DiscussionGroup, group_id)

    def get_group_by_invite_code(self, invite_code: str) -> DiscussionGroup | None:
        stmt = select(DiscussionGroup).where(DiscussionGroup.invite_code == invite_code)
        return self.session.exec(stmt).first()

    def list_user_groups(self, *, user_id: int) -> list[DiscussionGroup]:
        stmt = (
            select(DiscussionGroup)
            .join(GroupMember, GroupMember.group_id == DiscussionGroup.id)
            .where(GroupMember.user_id == user_id)
            .order_by(DiscussionGroup.created_at.asc(), DiscussionGroup.id.asc())
        )
        return list(self.session.exec(stmt))

    # Memberships
    def get_membership(self, *, group_id: int, user_id: int) -> GroupMember | None:
        stmt = select(GroupMember).where(
            GroupMember.group_id == group_id, GroupMember.user_id == user_id
        )
        return self.session.exec(stmt).first()

    def require_membership(self, *, group_id: int, user_id: int) -> GroupMember:
        membership = self.get_membership(group_id=group_id, user_id=user_id)
        if membership is None:
            raise MembershipRequiredError("You are not a member of this group")
        return membership

    def join_group(self, *, invite_code: str, user_id: int) -> DiscussionGroup:
        """Add `user_id` as a member of the group behind `invite_code`.

        Joining twice is an error rather than a silent no-op.
        """

        group = self.get_group_by_invite_code(invite_code)
        if group is None:
            raise GroupNotFoundError("Invalid invite code")
        if self.get_membership(group_id=group.id or 0, user_id=user_id) is not None:
            raise AlreadyMemberError("You are already a member of this group")

        self.session.add(
            GroupMember(group_id=group.id, user_id=user_id, role=GroupRole.member.value)
        )
        try:
            self.session.commit()
        except IntegrityError as exc:
            # Lost a race against a concurrent join for the same pair.
            self.session.rollback()
            raise AlreadyMemberError("You are already a member of this group") from exc
        return group

    def member_ids(self, *, group_id: int) -> set[int]:
        stmt = select(GroupMember.user_id).where(GroupMember.group_id == group_id)
        return set(self.session.exec(stmt))

    # Group discussion
    def create_group_message(self, *, group_id: int, user_id: int, content: str) -> GroupMessage:
        """Persist a group message after checking the sender's membership."""

        content = _clean_content(content)
        if self.get_group(group_id) is None:
            raise GroupNotFoundError("Group not found")
        self.require_membership(group_id=group_id, user_id=user_id)
        message = GroupMessage(group_id=group_id, user_id=user_id, content=content)
        self.session.add(message)
        self.session.commit()
        self.session.refresh(message)
        return message

    def list_group_messages(
        self, *, group_id: int, limit: int = 200
    ) -> list[tuple[GroupMessage, str]]:
        """Return (message, username) pairs ordered by creation time, then id."""

        stmt = (
            select(GroupMessage, User.username)
            .join(User, User.id == GroupMessage.user_id)
            .where(GroupMessage.group_id == group_id)
            .order_by(GroupMessage.created_at.asc(), GroupMessage.id.asc())
            .limit(limit)
        )
        return [(row, username) for row, username in self.session.exec(stmt)]


__all__ = ["ChatService", "INVITE_CODE_ATTEMPTS"]
