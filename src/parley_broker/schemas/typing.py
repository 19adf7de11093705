"""Typing indicator Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from parley_broker.db.time import as_utc


class TypingUpdate(BaseModel):
    """Keystroke notification; ``user_name`` defaults to the display name."""

    user_name: str | None = Field(None, max_length=120)

    model_config = ConfigDict(extra="forbid")


class TypingResponse(BaseModel):
    principal_id: str
    user_name: str
    timestamp: datetime
    label: str

    @model_validator(mode="before")
    @classmethod
    def _with_label(cls, data: object) -> object:
        if isinstance(data, dict):
            return data
        return {
            "principal_id": data.principal_id,
            "user_name": data.user_name,
            "timestamp": as_utc(data.timestamp),
            "label": data.label,
        }
