"""Frames exchanged over the subscription WebSocket."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class StreamName(str, Enum):
    """Live queries a client can subscribe to."""

    MESSAGES = "messages"
    PINNED = "pinned"
    TYPING = "typing"
    PRESENCE = "presence"


class ClientFrame(BaseModel):
    """Client to server frame.

    ``subscribe`` needs ``stream``; ``unsubscribe`` needs ``subscription_id``.
    """

    type: Literal["subscribe", "unsubscribe", "heartbeat", "typing", "stop_typing"]
    stream: StreamName | None = None
    subscription_id: str | None = None
    user_name: str | None = Field(None, max_length=120)

    model_config = ConfigDict(extra="forbid")
