"""BLAKE3 helpers for content-addressed payload references."""

from __future__ import annotations

from blake3 import blake3

PAYLOAD_REF_PREFIX = "blake3:"


def blake3_hexdigest(data: bytes) -> str:
    """Return the hex BLAKE3 digest of ``data``."""
    return blake3(data).hexdigest()


def payload_ref_for(data: bytes) -> str:
    """Return the content-addressed reference for ``data``."""
    return f"{PAYLOAD_REF_PREFIX}{blake3_hexdigest(data)}"


def is_blob_ref(payload_ref: str) -> bool:
    """Return True when ``payload_ref`` points into the broker's blob store."""
    return payload_ref.startswith(PAYLOAD_REF_PREFIX)
