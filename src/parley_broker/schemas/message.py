"""Message-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from parley_broker.db.time import as_utc


class AttachmentIn(BaseModel):
    """An uploaded file referenced by a message."""

    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=255)
    byte_size: int = Field(..., ge=0)
    payload_ref: str = Field(..., min_length=1, description="Opaque payload reference")

    model_config = ConfigDict(extra="forbid")


class VoiceNoteIn(BaseModel):
    """A recorded voice note referenced by a message."""

    payload_ref: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1, max_length=255)
    byte_size: int = Field(..., ge=0)
    duration_seconds: float = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")


class MessageCreate(BaseModel):
    """Schema for sending a new message.

    Emptiness is checked by the message store so that an empty send is
    reported as ``invalid_content`` rather than a generic validation error.
    """

    body: str = Field("", description="Plain-text body; trimmed before storing")
    attachments: list[AttachmentIn] = Field(default_factory=list)
    voice_note: VoiceNoteIn | None = None
    client_message_id: str | None = Field(
        None,
        min_length=1,
        max_length=128,
        description="Idempotency key; resending with the same key returns the original message",
    )

    model_config = ConfigDict(extra="forbid")


class MessageEdit(BaseModel):
    """Schema for replacing a message body."""

    body: str

    model_config = ConfigDict(extra="forbid")


class ReactionToggle(BaseModel):
    """Schema for toggling a reaction."""

    emoji: str = Field(..., min_length=1, max_length=64)

    model_config = ConfigDict(extra="forbid")


class AttachmentResponse(BaseModel):
    name: str
    mime_type: str
    byte_size: int
    payload_ref: str

    model_config = ConfigDict(from_attributes=True)


class VoiceNoteResponse(BaseModel):
    payload_ref: str
    mime_type: str
    byte_size: int
    duration_seconds: float


class ReactionResponse(BaseModel):
    emoji: str
    principal_id: str

    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    """Schema for message information returned by the API and the stream."""

    id: int
    seq: int
    author_id: str
    author_name: str | None = None
    author_avatar: str | None = None
    body: str
    created_at: datetime
    edited: bool
    status: str
    read_by: list[str]
    reactions: list[ReactionResponse]
    reaction_counts: dict[str, int]
    pinned: bool
    pinned_by: str | None = None
    pinned_at: datetime | None = None
    attachments: list[AttachmentResponse]
    voice_note: VoiceNoteResponse | None = None
    client_message_id: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_model(cls, data: object) -> object:
        if isinstance(data, dict):
            return data

        author = getattr(data, "author", None)
        reactions = list(getattr(data, "reactions", []))
        counts: dict[str, int] = {}
        for reaction in reactions:
            counts[reaction.emoji] = counts.get(reaction.emoji, 0) + 1

        voice_note = None
        if getattr(data, "voice_payload_ref", None) is not None:
            voice_note = {
                "payload_ref": data.voice_payload_ref,
                "mime_type": data.voice_mime_type,
                "byte_size": data.voice_byte_size,
                "duration_seconds": data.voice_duration_seconds,
            }

        pinned_at = getattr(data, "pinned_at", None)
        return {
            "id": data.id,
            "seq": data.seq,
            "author_id": data.author_id,
            "author_name": author.display_name if author is not None else None,
            "author_avatar": author.avatar_ref if author is not None else None,
            "body": data.body,
            "created_at": as_utc(data.created_at),
            "edited": data.edited,
            "status": data.status,
            "read_by": list(data.read_by),
            "reactions": [
                {"emoji": reaction.emoji, "principal_id": reaction.principal_id}
                for reaction in reactions
            ],
            "reaction_counts": counts,
            "pinned": data.pinned,
            "pinned_by": data.pinned_by,
            "pinned_at": as_utc(pinned_at) if pinned_at is not None else None,
            "attachments": [
                {
                    "name": item.name,
                    "mime_type": item.mime_type,
                    "byte_size": item.byte_size,
                    "payload_ref": item.payload_ref,
                }
                for item in data.attachments
            ],
            "voice_note": voice_note,
            "client_message_id": data.client_message_id,
        }
