# src/parley_broker/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    auth_router,
    blobs_router,
    messages_router,
    presence_router,
    stream_router,
    typing_router,
)

__all__ = [
    "auth_router",
    "blobs_router",
    "messages_router",
    "presence_router",
    "stream_router",
    "typing_router",
]
