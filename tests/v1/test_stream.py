# tests/v1/test_stream.py
"""End-to-end tests for the WebSocket subscription API."""

from __future__ import annotations

import pytest
from fastapi import WebSocketDisconnect

from parley_broker.api.v1.endpoints.stream import WS_CLOSE_UNAUTHORIZED
from parley_broker.core.security import create_access_token


def _connect(client, token: str):
    return client.websocket_connect(f"/api/v1/stream?token={token}")


def _subscribe(ws, stream: str) -> tuple[str, list]:
    ws.send_json({"type": "subscribe", "stream": stream})
    subscribed = ws.receive_json()
    assert subscribed["type"] == "subscribed"
    assert subscribed["stream"] == stream
    snapshot = ws.receive_json()
    assert snapshot["type"] == "snapshot"
    assert snapshot["subscription_id"] == subscribed["subscription_id"]
    return subscribed["subscription_id"], snapshot["items"]


def test_connection_without_token_is_rejected(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/v1/stream"):
            pass

    assert exc_info.value.code == WS_CLOSE_UNAUTHORIZED


def test_connection_for_unknown_principal_is_rejected(client) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with _connect(client, create_access_token("ghost@example.com")):
            pass

    assert exc_info.value.code == WS_CLOSE_UNAUTHORIZED


def test_read_receipt_reaches_author(client, alice, alice_token, alice_headers, bob, bob_token, bob_headers) -> None:
    message = client.post("/api/v1/messages", json={"body": "hello"}, headers=alice_headers).json()

    with _connect(client, alice_token) as alice_ws, _connect(client, bob_token) as bob_ws:
        _, bob_view = _subscribe(bob_ws, "messages")
        assert [(m["body"], m["status"], m["read_by"]) for m in bob_view] == [
            ("hello", "sent", [alice.principal_id])
        ]

        subscription_id, _ = _subscribe(alice_ws, "messages")
        response = client.put(f"/api/v1/messages/{message['id']}/read", headers=bob_headers)
        assert response.status_code == 200

        update = alice_ws.receive_json()
        assert update["type"] == "delta"
        assert update["subscription_id"] == subscription_id
        assert update["op"] == "update"
        assert update["key"] == str(message["id"])
        assert update["data"]["status"] == "read"
        assert update["data"]["read_by"] == [alice.principal_id, bob.principal_id]


def test_send_edit_delete_arrive_in_commit_order(client, alice_headers, bob_token) -> None:
    with _connect(client, bob_token) as bob_ws:
        _, snapshot = _subscribe(bob_ws, "messages")
        assert snapshot == []

        message = client.post("/api/v1/messages", json={"body": "draft"}, headers=alice_headers).json()
        client.patch(f"/api/v1/messages/{message['id']}", json={"body": "final"}, headers=alice_headers)
        client.delete(f"/api/v1/messages/{message['id']}", headers=alice_headers)

        frames = [bob_ws.receive_json() for _ in range(3)]

    assert [frame["op"] for frame in frames] == ["insert", "update", "delete"]
    assert {frame["key"] for frame in frames} == {str(message["id"])}
    assert [frame["seq"] for frame in frames] == [2, 3, 4]
    assert frames[1]["data"]["body"] == "final"
    assert frames[2]["data"] is None


def test_typing_indicator_over_stream(client, alice, alice_token, bob_token) -> None:
    with _connect(client, alice_token) as alice_ws, _connect(client, bob_token) as bob_ws:
        _, typers = _subscribe(bob_ws, "typing")
        assert typers == []

        alice_ws.send_json({"type": "typing"})
        started = bob_ws.receive_json()
        assert started["op"] == "insert"
        assert started["key"] == alice.principal_id
        assert started["data"]["label"] == "Alice is typing"

        alice_ws.send_json({"type": "stop_typing"})
        stopped = bob_ws.receive_json()
        assert (stopped["op"], stopped["key"]) == ("delete", alice.principal_id)


def test_own_typing_is_not_echoed(client, alice_token, bob, bob_token) -> None:
    with _connect(client, alice_token) as alice_ws, _connect(client, bob_token) as bob_ws:
        _subscribe(alice_ws, "typing")

        alice_ws.send_json({"type": "typing"})
        bob_ws.send_json({"type": "typing", "user_name": "Bobby"})

        frame = alice_ws.receive_json()
        assert frame["key"] == bob.principal_id
        assert frame["data"]["label"] == "Bobby is typing"


def test_presence_follows_connections(client, alice, alice_token, bob_token) -> None:
    with _connect(client, bob_token) as bob_ws:
        _, presence = _subscribe(bob_ws, "presence")
        assert {p["principal_id"]: p["online"] for p in presence}[alice.principal_id] is False

        with _connect(client, alice_token):
            online = bob_ws.receive_json()
            assert (online["key"], online["data"]["online"]) == (alice.principal_id, True)

        offline = bob_ws.receive_json()
        assert (offline["key"], offline["data"]["online"]) == (alice.principal_id, False)


def test_unsubscribe_stops_deltas(client, alice_headers, bob_token) -> None:
    with _connect(client, bob_token) as bob_ws:
        subscription_id, _ = _subscribe(bob_ws, "messages")

        bob_ws.send_json({"type": "unsubscribe", "subscription_id": subscription_id})
        assert bob_ws.receive_json() == {"type": "unsubscribed", "subscription_id": subscription_id}

        client.post("/api/v1/messages", json={"body": "unseen"}, headers=alice_headers)
        bob_ws.send_json({"type": "heartbeat"})

        assert bob_ws.receive_json() == {"type": "heartbeat_ack"}


def test_pinned_stream(client, alice_headers, bob_token) -> None:
    message = client.post("/api/v1/messages", json={"body": "pin me"}, headers=alice_headers).json()

    with _connect(client, bob_token) as bob_ws:
        _, pinned = _subscribe(bob_ws, "pinned")
        assert pinned == []

        client.put(f"/api/v1/messages/{message['id']}/pin", headers=alice_headers)
        client.delete(f"/api/v1/messages/{message['id']}/pin", headers=alice_headers)

        inserted = bob_ws.receive_json()
        removed = bob_ws.receive_json()

    assert (inserted["op"], inserted["data"]["pinned"]) == ("insert", True)
    assert (removed["op"], removed["key"]) == ("delete", str(message["id"]))


def test_protocol_errors(client, bob_token) -> None:
    with _connect(client, bob_token) as bob_ws:
        bob_ws.send_text("{not json")
        assert bob_ws.receive_json()["code"] == "invalid_frame"

        bob_ws.send_json({"type": "subscribe", "stream": "gossip"})
        assert bob_ws.receive_json()["code"] == "invalid_frame"

        bob_ws.send_json({"type": "subscribe"})
        error = bob_ws.receive_json()
        assert (error["type"], error["code"]) == ("error", "invalid_content")

        bob_ws.send_json({"type": "unsubscribe", "subscription_id": "missing"})
        assert bob_ws.receive_json()["code"] == "not_found"
