"""Blob upload Pydantic schemas."""

from pydantic import BaseModel, ConfigDict


class BlobResponse(BaseModel):
    """Reference returned after an upload; pass ``payload_ref`` to a send."""

    payload_ref: str
    mime_type: str
    byte_size: int

    model_config = ConfigDict(from_attributes=True)
