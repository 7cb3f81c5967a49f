from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from delphi.api.dependencies import get_current_session, get_db_session
from delphi.schemas.chat import GroupMessageOut, GroupOut, MessageAuthor, VideoMessageOut
from delphi.schemas.session import SessionData
from delphi.services.chat_service import ChatService

router = APIRouter(prefix="/api", tags=["discussion"])


@router.get("/messages", response_model=list[VideoMessageOut])
def list_video_messages(
    video_id: int = Query(alias="videoId", gt=0),
    limit: int = Query(default=200, ge=1, le=1000),
    _auth: SessionData = Depends(get_current_session),
    session: Session = Depends(get_db_session),
) -> list[VideoMessageOut]:
    service = ChatService(session)
    return [
        VideoMessageOut(
            id=row.id,
            content=row.content,
            user_id=row.user_id,
            video_id=row.video_id,
            created_at=row.created_at,
            user=MessageAuthor(username=username),
        )
        for row, username in service.list_video_messages(video_id=video_id, limit=limit)
    ]


@router.get("/group-messages", response_model=list[GroupMessageOut])
def list_group_messages(
    group_id: int = Query(alias="groupId", gt=0),
    limit: int = Query(default=200, ge=1, le=1000),
    auth: SessionData = Depends(get_current_session),
    session: Session = Depends(get_db_session),
) -> list[GroupMessageOut]:
    service = ChatService(session)
    service.require_membership(group_id=group_id, user_id=auth.user_id)
    return [
        GroupMessageOut(
            id=row.id,
            content=row.content,
            user_id=row.user_id,
            group_id=row.group_id,
            created_at=row.created_at,
            user=MessageAuthor(username=username),
        )
        for row, username in service.list_group_messages(group_id=group_id, limit=limit)
    ]


@router.get("/groups", response_model=list[GroupOut])
def list_my_groups(
    auth: SessionData = Depends(get_current_session),
    session: Session = Depends(get_db_session),
) -> list[GroupOut]:
    service = ChatService(session)
    return [GroupOut.model_validate(group) for group in service.list_user_groups(user_id=auth.user_id)]
