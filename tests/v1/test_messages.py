# tests/v1/test_messages.py
"""Tests for message endpoints."""

from __future__ import annotations

from fastapi import status


def _send(client, headers, **payload) -> dict:
    response = client.post("/api/v1/messages", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def test_send_message(client, alice, alice_headers) -> None:
    data = _send(client, alice_headers, body="hello")

    assert data["body"] == "hello"
    assert data["author_id"] == alice.principal_id
    assert data["author_name"] == "Alice"
    assert data["status"] == "sent"
    assert data["read_by"] == [alice.principal_id]
    assert data["reactions"] == []
    assert data["reaction_counts"] == {}
    assert data["pinned"] is False
    assert data["voice_note"] is None


def test_send_empty_message_is_invalid_content(client, alice_headers) -> None:
    response = client.post("/api/v1/messages", json={"body": "   "}, headers=alice_headers)

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "invalid_content"
    assert client.get("/api/v1/messages", headers=alice_headers).json() == []


def test_send_rejects_unknown_fields(client, alice_headers) -> None:
    response = client.post(
        "/api/v1/messages",
        json={"body": "hi", "created_at": "1999-01-01T00:00:00Z"},
        headers=alice_headers,
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_retry_with_client_message_id_is_idempotent(client, alice_headers) -> None:
    first = _send(client, alice_headers, body="once", client_message_id="abc-1")
    second = _send(client, alice_headers, body="once", client_message_id="abc-1")

    assert first["id"] == second["id"]
    assert len(client.get("/api/v1/messages", headers=alice_headers).json()) == 1


def test_list_messages_in_order(client, alice_headers, bob_headers) -> None:
    for index, headers in enumerate([alice_headers, bob_headers, alice_headers]):
        _send(client, headers, body=f"m{index}")

    messages = client.get("/api/v1/messages", headers=bob_headers).json()
    assert [m["body"] for m in messages] == ["m0", "m1", "m2"]
    assert [m["seq"] for m in messages] == sorted(m["seq"] for m in messages)

    recent = client.get("/api/v1/messages", params={"limit": 2}, headers=bob_headers).json()
    assert [m["body"] for m in recent] == ["m1", "m2"]


def test_get_missing_message(client, alice_headers) -> None:
    response = client.get("/api/v1/messages/404", headers=alice_headers)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "not_found"


def test_edit_message(client, alice_headers) -> None:
    message = _send(client, alice_headers, body="tpyo")

    response = client.patch(f"/api/v1/messages/{message['id']}", json={"body": "typo"}, headers=alice_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["body"] == "typo"
    assert response.json()["edited"] is True


def test_edit_by_other_principal_is_forbidden(client, alice_headers, bob_headers) -> None:
    message = _send(client, alice_headers, body="mine")

    response = client.patch(f"/api/v1/messages/{message['id']}", json={"body": "theirs"}, headers=bob_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "not_author"
    unchanged = client.get(f"/api/v1/messages/{message['id']}", headers=bob_headers).json()
    assert unchanged["body"] == "mine"
    assert unchanged["edited"] is False


def test_delete_message(client, alice_headers, bob_headers) -> None:
    message = _send(client, alice_headers, body="temporary")

    forbidden = client.delete(f"/api/v1/messages/{message['id']}", headers=bob_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/messages/{message['id']}", headers=alice_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert client.get(f"/api/v1/messages/{message['id']}", headers=alice_headers).status_code == 404


def test_toggle_reaction(client, alice_headers, bob, bob_headers) -> None:
    message = _send(client, alice_headers, body="nice")
    url = f"/api/v1/messages/{message['id']}/reactions"

    added = client.post(url, json={"emoji": "👍"}, headers=bob_headers).json()
    assert added["reactions"] == [{"emoji": "👍", "principal_id": bob.principal_id}]
    assert added["reaction_counts"] == {"👍": 1}

    removed = client.post(url, json={"emoji": "👍"}, headers=bob_headers).json()
    assert removed["reactions"] == []


def test_put_and_delete_reaction_are_idempotent(client, alice_headers, bob_headers) -> None:
    message = _send(client, alice_headers, body="retry me")
    url = f"/api/v1/messages/{message['id']}/reactions/🔥"

    for _ in range(2):
        response = client.put(url, headers=bob_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["reaction_counts"] == {"🔥": 1}

    for _ in range(2):
        response = client.delete(url, headers=bob_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["reaction_counts"] == {}


def test_mark_read_flips_status(client, alice, alice_headers, bob, bob_headers) -> None:
    message = _send(client, alice_headers, body="read me")
    url = f"/api/v1/messages/{message['id']}/read"

    own = client.put(url, headers=alice_headers).json()
    assert own["status"] == "sent"

    first = client.put(url, headers=bob_headers).json()
    second = client.put(url, headers=bob_headers).json()
    assert first["status"] == "read"
    assert second["read_by"] == [alice.principal_id, bob.principal_id]


def test_pin_and_unpin(client, alice_headers, bob, bob_headers) -> None:
    message = _send(client, alice_headers, body="pin me")
    url = f"/api/v1/messages/{message['id']}/pin"

    pinned = client.put(url, headers=bob_headers).json()
    assert pinned["pinned"] is True
    assert pinned["pinned_by"] == bob.principal_id
    assert [m["id"] for m in client.get("/api/v1/messages/pinned", headers=alice_headers).json()] == [message["id"]]

    unpinned = client.delete(url, headers=alice_headers).json()
    assert unpinned["pinned"] is False
    assert unpinned["pinned_at"] is None
    assert client.get("/api/v1/messages/pinned", headers=alice_headers).json() == []


def test_attachment_flow(client, alice_headers) -> None:
    upload = client.post(
        "/api/v1/blobs",
        content=b"\x89PNG fake image",
        headers={**alice_headers, "Content-Type": "image/png"},
    )
    assert upload.status_code == status.HTTP_201_CREATED
    blob = upload.json()

    message = _send(
        client,
        alice_headers,
        attachments=[
            {
                "name": "cat.png",
                "mime_type": blob["mime_type"],
                "byte_size": blob["byte_size"],
                "payload_ref": blob["payload_ref"],
            }
        ],
    )

    assert message["body"] == ""
    assert message["attachments"][0]["payload_ref"] == blob["payload_ref"]


def test_attachment_declared_as_other_type_is_rejected(client, alice_headers) -> None:
    upload = client.post(
        "/api/v1/blobs",
        content=b"MZ\x90\x00 setup",
        headers={**alice_headers, "Content-Type": "application/x-msdownload"},
    )
    blob = upload.json()

    response = client.post(
        "/api/v1/messages",
        json={
            "attachments": [
                {"name": "cat.png", "mime_type": "image/png", "byte_size": 1, "payload_ref": blob["payload_ref"]}
            ]
        },
        headers=alice_headers,
    )

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert client.get("/api/v1/messages", headers=alice_headers).json() == []
