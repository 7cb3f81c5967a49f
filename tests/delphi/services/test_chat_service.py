from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from delphi.core.exceptions import (
    AlreadyMemberError,
    EmptyContentError,
    GroupNotFoundError,
    MembershipRequiredError,
)
from delphi.core.utils import ensure_utc
from delphi.models.chat import GroupMember, GroupMessage
from delphi.models.chat import VideoMessage as VideoMessageRow
from delphi.services import chat_service as chat_module
from delphi.services.chat_service import ChatService
from sqlmodel import select


def test_create_group_inserts_creator_as_only_admin(db_session) -> None:
    service = ChatService(db_session)
    creator = service.ensure_user("alice")

    group = service.create_group(creator_id=creator.id, name=" Study Buddies ", video_id=42)

    assert group.id is not None
    assert group.name == "Study Buddies"
    assert group.video_id == 42
    assert group.is_private is True
    assert len(group.invite_code) == 12
    members = list(db_session.exec(select(GroupMember).where(GroupMember.group_id == group.id)))
    assert [(m.user_id, m.role) for m in members] == [(creator.id, "admin")]


def test_invite_code_collision_is_retried(db_session, monkeypatch) -> None:
    service = ChatService(db_session)
    creator = service.ensure_user("alice")
    codes = iter(["aaaaaaaaaaaa", "aaaaaaaaaaaa", "bbbbbbbbbbbb"])
    monkeypatch.setattr(chat_module, "generate_invite_code", lambda _n: next(codes))

    first = service.create_group(creator_id=creator.id, name="One")
    second = service.create_group(creator_id=creator.id, name="Two")

    assert first.invite_code == "aaaaaaaaaaaa"
    assert second.invite_code == "bbbbbbbbbbbb"
    # The failed attempt must not leave a half-created group or membership behind.
    assert len(service.list_user_groups(user_id=creator.id)) == 2


def test_join_twice_leaves_one_membership_and_raises(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    bob = service.ensure_user("bob")
    group = service.create_group(creator_id=alice.id, name="G")

    joined = service.join_group(invite_code=group.invite_code, user_id=bob.id)
    assert joined.id == group.id

    with pytest.raises(AlreadyMemberError):
        service.join_group(invite_code=group.invite_code, user_id=bob.id)

    rows = list(
        db_session.exec(
            select(GroupMember).where(GroupMember.group_id == group.id, GroupMember.user_id == bob.id)
        )
    )
    assert len(rows) == 1
    assert rows[0].role == "member"


def test_creator_cannot_rejoin_own_group(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    group = service.create_group(creator_id=alice.id, name="G")

    with pytest.raises(AlreadyMemberError):
        service.join_group(invite_code=group.invite_code, user_id=alice.id)


def test_unknown_invite_code(db_session) -> None:
    service = ChatService(db_session)
    bob = service.ensure_user("bob")
    with pytest.raises(GroupNotFoundError):
        service.join_group(invite_code="nope", user_id=bob.id)


def test_non_member_group_message_is_not_persisted(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    mallory = service.ensure_user("mallory")
    group = service.create_group(creator_id=alice.id, name="G")

    with pytest.raises(MembershipRequiredError):
        service.create_group_message(group_id=group.id, user_id=mallory.id, content="hi")

    assert list(db_session.exec(select(GroupMessage))) == []


def test_group_message_to_missing_group(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    with pytest.raises(GroupNotFoundError):
        service.create_group_message(group_id=999, user_id=alice.id, content="hi")


def test_empty_content_is_rejected(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    with pytest.raises(EmptyContentError):
        service.create_video_message(video_id=1, user_id=alice.id, content="   ")


def test_group_history_round_trip_in_creation_order(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    bob = service.ensure_user("bob")
    group = service.create_group(creator_id=alice.id, name="G")
    service.join_group(invite_code=group.invite_code, user_id=bob.id)

    first = service.create_group_message(group_id=group.id, user_id=alice.id, content="hello")
    second = service.create_group_message(group_id=group.id, user_id=bob.id, content="hey")

    history = service.list_group_messages(group_id=group.id)
    assert [(m.id, m.content, m.user_id, m.group_id, name) for m, name in history] == [
        (first.id, "hello", alice.id, group.id, "alice"),
        (second.id, "hey", bob.id, group.id, "bob"),
    ]


def test_history_breaks_timestamp_ties_by_id(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    stamp = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)
    for content in ("a", "b", "c"):
        db_session.add(VideoMessageRow(video_id=5, user_id=alice.id, content=content, created_at=stamp))
    db_session.add(
        VideoMessageRow(video_id=5, user_id=alice.id, content="earlier", created_at=stamp - timedelta(1))
    )
    db_session.commit()

    history = service.list_video_messages(video_id=5)
    assert [m.content for m, _ in history] == ["earlier", "a", "b", "c"]


def test_member_ids_and_user_groups(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    bob = service.ensure_user("bob")
    carol = service.ensure_user("carol")
    group = service.create_group(creator_id=alice.id, name="G")
    service.join_group(invite_code=group.invite_code, user_id=bob.id)

    assert service.member_ids(group_id=group.id) == {alice.id, bob.id}
    assert [g.id for g in service.list_user_groups(user_id=bob.id)] == [group.id]
    assert service.list_user_groups(user_id=carol.id) == []


def test_ensure_user_is_idempotent(db_session) -> None:
    service = ChatService(db_session)
    assert service.ensure_user("alice").id == service.ensure_user("alice").id



def test_timestamps_are_written_as_aware_utc(db_session) -> None:
    service = ChatService(db_session)
    alice = service.ensure_user("alice")
    before = datetime.now(timezone.utc)

    message = service.create_video_message(video_id=9, user_id=alice.id, content="tick")
    db_session.expire_all()
    stored = db_session.get(VideoMessageRow, message.id)

    assert stored.created_at is not None
    assert ensure_utc(stored.created_at) >= before - timedelta(seconds=1)
    assert ensure_utc(stored.created_at).utcoffset() == timedelta(0)
