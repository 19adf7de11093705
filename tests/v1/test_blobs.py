# tests/v1/test_blobs.py
"""Tests for payload upload endpoints."""

from __future__ import annotations

from urllib.parse import quote

from fastapi import status

from parley_broker.models import Blob
from parley_broker.utils.hash import payload_ref_for


def test_upload_and_download(client, alice_headers) -> None:
    data = b"%PDF-1.7 minutes of the meeting"

    response = client.post(
        "/api/v1/blobs",
        content=data,
        headers={**alice_headers, "Content-Type": "application/pdf"},
    )

    assert response.status_code == status.HTTP_201_CREATED
    blob = response.json()
    assert blob == {"payload_ref": payload_ref_for(data), "mime_type": "application/pdf", "byte_size": len(data)}

    download = client.get(f"/api/v1/blobs/{quote(blob['payload_ref'])}", headers=alice_headers)
    assert download.status_code == status.HTTP_200_OK
    assert download.content == data
    assert download.headers["content-type"].startswith("application/pdf")


def test_empty_upload_is_rejected(client, alice_headers) -> None:
    response = client.post("/api/v1/blobs", content=b"", headers=alice_headers)

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_unknown_blob_is_not_found(client, alice_headers) -> None:
    response = client.get("/api/v1/blobs/blake3:" + "a" * 64, headers=alice_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_upload_requires_authentication(client) -> None:
    response = client.post("/api/v1/blobs", content=b"data")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_oversized_upload_is_rejected(client, alice_headers, db_session, mocker) -> None:
    mocker.patch("parley_broker.api.v1.endpoints.blobs.settings.max_attachment_bytes", 4)

    response = client.post(
        "/api/v1/blobs",
        content=b"too many bytes",
        headers={**alice_headers, "Content-Type": "text/plain"},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert db_session.query(Blob).count() == 0


def test_oversized_streamed_upload_is_rejected(client, alice_headers, db_session, mocker) -> None:
    mocker.patch("parley_broker.api.v1.endpoints.blobs.settings.max_attachment_bytes", 4)

    def chunks():
        yield b"abc"
        yield b"def"

    response = client.post(
        "/api/v1/blobs",
        content=chunks(),
        headers={**alice_headers, "Content-Type": "text/plain"},
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert db_session.query(Blob).count() == 0
