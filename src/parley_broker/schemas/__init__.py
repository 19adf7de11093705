"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .blob import BlobResponse
from .message import (
    AttachmentIn,
    MessageCreate,
    MessageEdit,
    MessageResponse,
    ReactionToggle,
    VoiceNoteIn,
)
from .principal import (
    PresenceResponse,
    PresenceUpdate,
    PrincipalResponse,
    SessionRequest,
    SessionResponse,
)
from .stream import ClientFrame, StreamName
from .typing import TypingResponse, TypingUpdate

__all__ = [
    "BlobResponse",
    "AttachmentIn", "MessageCreate", "MessageEdit", "MessageResponse", "ReactionToggle", "VoiceNoteIn",
    "PresenceResponse", "PresenceUpdate", "PrincipalResponse", "SessionRequest", "SessionResponse",
    "ClientFrame", "StreamName",
    "TypingResponse", "TypingUpdate",
]
