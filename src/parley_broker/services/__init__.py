"""Service layer for the Parley broker."""

from .blob_store import BlobStore, get_blob_store
from .broker import ChatBroker, get_broker, reset_broker
from .delivery import DeliveryStateTracker
from .fanout import Delta, DeltaOp, FanoutEngine, Subscription
from .identity import IdentityRegistry
from .message_store import MessageChange, MessageStore
from .typing import TypingSignalStore

__all__ = [
    "BlobStore", "get_blob_store",
    "ChatBroker", "get_broker", "reset_broker",
    "DeliveryStateTracker",
    "Delta", "DeltaOp", "FanoutEngine", "Subscription",
    "IdentityRegistry",
    "MessageChange", "MessageStore",
    "TypingSignalStore",
]
