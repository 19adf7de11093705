# tests/v1/test_typing.py
"""Tests for typing indicator endpoints."""

from __future__ import annotations

from fastapi import status


def test_typing_visible_to_others_only(client, alice, alice_headers, bob_headers) -> None:
    response = client.put("/api/v1/typing", headers=alice_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"accepted": True}

    seen_by_bob = client.get("/api/v1/typing", headers=bob_headers).json()
    assert [(t["principal_id"], t["label"]) for t in seen_by_bob] == [(alice.principal_id, "Alice is typing")]

    assert client.get("/api/v1/typing", headers=alice_headers).json() == []


def test_typing_with_custom_name(client, alice_headers, bob_headers) -> None:
    client.put("/api/v1/typing", json={"user_name": "Ali"}, headers=alice_headers)

    typers = client.get("/api/v1/typing", headers=bob_headers).json()

    assert typers[0]["user_name"] == "Ali"
    assert typers[0]["label"] == "Ali is typing"


def test_clear_typing(client, alice_headers, bob_headers) -> None:
    client.put("/api/v1/typing", headers=alice_headers)

    assert client.delete("/api/v1/typing", headers=alice_headers).json() == {"cleared": True}
    assert client.delete("/api/v1/typing", headers=alice_headers).json() == {"cleared": False}
    assert client.get("/api/v1/typing", headers=bob_headers).json() == []


def test_sending_clears_typing(client, alice_headers, bob_headers) -> None:
    client.put("/api/v1/typing", headers=alice_headers)
    client.post("/api/v1/messages", json={"body": "sent"}, headers=alice_headers)

    assert client.get("/api/v1/typing", headers=bob_headers).json() == []
