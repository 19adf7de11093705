"""SQLAlchemy models for the Parley broker."""

from .blob import Blob
from .message import Message, MessageAttachment, MessageReaction, MessageReader
from .principal import PresenceRecord, Principal
from .system_clock import SystemClock
from .typing_signal import TypingSignal

__all__ = [
    "Blob",
    "Message", "MessageAttachment", "MessageReaction", "MessageReader",
    "PresenceRecord", "Principal",
    "SystemClock",
    "TypingSignal",
]
