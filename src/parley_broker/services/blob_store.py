"""Content-addressed storage for attachment and voice note payloads.

Payloads are uploaded before the message that references them is sent, and
messages only carry the returned ``payload_ref``. Identical uploads share
one row.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from parley_broker.core.errors import InvalidContent, NotFound
from parley_broker.core.settings import settings
from parley_broker.db.session import commit_or_unavailable
from parley_broker.models import Blob
from parley_broker.utils.hash import payload_ref_for

logger = logging.getLogger(__name__)


class BlobStore:
    """Stores payload bytes keyed by their BLAKE3 digest."""

    def put(self, db: Session, data: bytes, mime_type: str) -> Blob:
        if not data:
            raise InvalidContent("Upload is empty")
        if len(data) > settings.max_attachment_bytes:
            raise InvalidContent(
                f"Upload exceeds the {settings.max_attachment_bytes} byte limit"
            )

        payload_ref = payload_ref_for(data)
        blob = db.get(Blob, payload_ref)
        if blob is not None:
            return blob

        blob = Blob(
            payload_ref=payload_ref,
            mime_type=mime_type or "application/octet-stream",
            byte_size=len(data),
            data=data,
        )
        db.add(blob)
        commit_or_unavailable(db, "upload")
        db.refresh(blob)
        logger.debug("Stored blob %s (%d bytes)", payload_ref, len(data))
        return blob

    def get(self, db: Session, payload_ref: str) -> Blob:
        blob = db.get(Blob, payload_ref)
        if blob is None:
            raise NotFound(f"Payload {payload_ref} not found")
        return blob


def get_blob_store() -> BlobStore:
    """Return a blob store instance."""
    return BlobStore()
