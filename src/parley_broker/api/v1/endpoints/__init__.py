# src/parley_broker/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .auth import router as auth_router
from .blobs import router as blobs_router
from .messages import router as messages_router
from .presence import router as presence_router
from .stream import router as stream_router
from .typing import router as typing_router

__all__ = [
    "auth_router",
    "blobs_router",
    "messages_router",
    "presence_router",
    "stream_router",
    "typing_router",
]
