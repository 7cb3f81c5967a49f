"""Realtime envelopes (inbound union + outbound payloads) and history DTOs."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from delphi.core.exceptions import EnvelopeValidationError

MAX_CONTENT_LENGTH = 4000


class _InboundEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class _ContentEnvelope(_InboundEnvelope):
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)

    @field_validator("content")
    @classmethod
    def _reject_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class VideoMessageEnvelope(_ContentEnvelope):
    type: Literal["message"]
    video_id: int = Field(alias="videoId", gt=0)


class GroupMessageEnvelope(_ContentEnvelope):
    type: Literal["group_message"]
    group_id: int = Field(alias="groupId", gt=0)


class CreateGroupEnvelope(_InboundEnvelope):
    type: Literal["create_group"]
    name: str = Field(min_length=1, max_length=255)
    video_id: int | None = Field(default=None, alias="videoId")
    description: str | None = Field(default=None, max_length=2000)
    is_private: bool = Field(default=True, alias="isPrivate")

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class JoinGroupEnvelope(_InboundEnvelope):
    type: Literal["join_group"]
    invite_code: str = Field(alias="inviteCode", min_length=1, max_length=64)

    @field_validator("invite_code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        return value.strip()


class PingEnvelope(_InboundEnvelope):
    type: Literal["ping"]


class PongEnvelope(_InboundEnvelope):
    type: Literal["pong"]


InboundEnvelope = Annotated[
    Union[
        VideoMessageEnvelope,
        GroupMessageEnvelope,
        CreateGroupEnvelope,
        JoinGroupEnvelope,
        PingEnvelope,
        PongEnvelope,
    ],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundEnvelope] = TypeAdapter(InboundEnvelope)

ENVELOPE_TYPES = frozenset(
    {"message", "group_message", "create_group", "join_group", "ping", "pong"}
)


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    # loc[0] is the discriminator tag for tagged unions.
    loc = ".".join(str(part) for part in first.get("loc", ())[1:])
    msg = first.get("msg", "invalid value")
    return f"Invalid message: {loc}: {msg}" if loc else f"Invalid message: {msg}"


def parse_envelope(raw: str | bytes | dict[str, Any]) -> InboundEnvelope:
    """Decode one inbound frame into its envelope variant.

    Raises `EnvelopeValidationError` for bad JSON, non-object payloads, unknown
    `type` values and schema violations.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise EnvelopeValidationError("Invalid message format") from exc
    else:
        data = raw
    if not isinstance(data, dict):
        raise EnvelopeValidationError("Invalid message format")

    kind = data.get("type")
    if kind not in ENVELOPE_TYPES:
        raise EnvelopeValidationError(f"Unknown message type: {kind}", details={"type": kind})
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as exc:
        raise EnvelopeValidationError(
            _describe_validation_error(exc), details=exc.errors(include_url=False)
        ) from exc


# ---------------------------------------------------------------------------
# Outbound payloads (camelCase on the wire)
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True, alias_generator=to_camel)


class MessageAuthor(_CamelModel):
    username: str


class VideoMessageOut(_CamelModel):
    id: int
    content: str
    user_id: int
    video_id: int
    created_at: datetime | None = None
    user: MessageAuthor


class GroupMessageOut(_CamelModel):
    id: int
    content: str
    user_id: int
    group_id: int
    created_at: datetime | None = None
    user: MessageAuthor


class GroupOut(_CamelModel):
    id: int
    name: str
    description: str | None = None
    creator_id: int
    invite_code: str
    is_private: bool
    video_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ConnectedOut(_CamelModel):
    user_id: int
    username: str


def envelope(type_: str, data: BaseModel | dict[str, Any] | None = None) -> dict[str, Any]:
    """Build a server->client envelope; pydantic payloads are dumped by alias."""

    payload: dict[str, Any] = {"type": type_}
    if isinstance(data, BaseModel):
        payload["data"] = data.model_dump(mode="json", by_alias=True)
    elif data is not None:
        payload["data"] = data
    return payload


def error_envelope(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


__all__ = [
    "CreateGroupEnvelope",
    "ConnectedOut",
    "ENVELOPE_TYPES",
    "GroupMessageEnvelope",
    "GroupMessageOut",
    "GroupOut",
    "InboundEnvelope",
    "JoinGroupEnvelope",
    "MessageAuthor",
    "PingEnvelope",
    "PongEnvelope",
    "VideoMessageEnvelope",
    "VideoMessageOut",
    "envelope",
    "error_envelope",
    "parse_envelope",
]
