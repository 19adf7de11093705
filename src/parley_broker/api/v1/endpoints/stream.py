# src/parley_broker/api/v1/endpoints/stream.py
"""WebSocket subscription endpoint for the Parley API.

One socket multiplexes any number of subscriptions. Client frames::

    {"type": "subscribe", "stream": "messages" | "pinned" | "typing" | "presence"}
    {"type": "unsubscribe", "subscription_id": "..."}
    {"type": "heartbeat"}
    {"type": "typing", "user_name": "..."}
    {"type": "stop_typing"}

Server frames are ``subscribed``, ``snapshot``, ``delta``, ``unsubscribed``,
``resync``, ``heartbeat_ack`` and ``error``. After a ``resync`` (or a
reconnect) the client must subscribe again and rebuild its view from the new
snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.orm import Session

from parley_broker.core.errors import BrokerError, InvalidContent, NotFound, Unauthorized, error_payload
from parley_broker.core.security import decode_access_token
from parley_broker.schemas.stream import ClientFrame
from parley_broker.services.broker import ChatBroker
from parley_broker.services.fanout import DeltaOp, Subscription

from ..dependencies import BrokerDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])

# Application-defined close code mirroring HTTP 401.
WS_CLOSE_UNAUTHORIZED = 4401


class StreamSession:
    """State of one authenticated WebSocket connection."""

    def __init__(self, websocket: WebSocket, db: Session, broker: ChatBroker, principal_id: str) -> None:
        self.websocket = websocket
        self.db = db
        self.broker = broker
        self.principal_id = principal_id
        self._subscriptions: dict[str, Subscription] = {}
        self._forwarders: dict[str, asyncio.Task[None]] = {}
        self._send_lock = asyncio.Lock()

    async def run(self) -> None:
        self.broker.connect(self.db, self.principal_id)
        try:
            while True:
                raw = await self.websocket.receive_text()
                await self.handle(raw)
        except WebSocketDisconnect:
            logger.debug("Stream for %s disconnected", self.principal_id)
        finally:
            await self.close()

    async def send(self, frame: dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(frame)

    async def handle(self, raw: str) -> None:
        try:
            frame = ClientFrame.model_validate_json(raw)
        except ValidationError as exc:
            await self.send({"type": "error", "code": "invalid_frame", "detail": exc.errors()[0]["msg"]})
            return

        try:
            if frame.type == "subscribe":
                await self._subscribe(frame)
            elif frame.type == "unsubscribe":
                await self._unsubscribe(frame)
            elif frame.type == "heartbeat":
                self.broker.heartbeat(self.db, self.principal_id)
                await self.send({"type": "heartbeat_ack"})
            elif frame.type == "typing":
                self.broker.set_typing(self.db, self.principal_id, frame.user_name)
            else:
                self.broker.clear_typing(self.db, self.principal_id)
        except BrokerError as exc:
            await self.send({"type": "error", **error_payload(exc)})

    async def close(self) -> None:
        """Release every subscription and drop this connection's presence.

        Must not await before ``broker.disconnect``; the connection task may
        already be cancelled.
        """
        for subscription in list(self._subscriptions.values()):
            self.broker.unsubscribe(subscription)
        self._subscriptions.clear()

        forwarders = list(self._forwarders.values())
        self._forwarders.clear()
        for task in forwarders:
            task.cancel()

        self.broker.disconnect(self.db, self.principal_id)
        await asyncio.gather(*forwarders, return_exceptions=True)

    async def _subscribe(self, frame: ClientFrame) -> None:
        if frame.stream is None:
            raise InvalidContent("subscribe requires a stream")
        subscription = self.broker.subscribe(self.db, frame.stream, self.principal_id)
        self._subscriptions[subscription.id] = subscription
        await self.send(
            {"type": "subscribed", "subscription_id": subscription.id, "stream": frame.stream.value}
        )
        self._forwarders[subscription.id] = asyncio.create_task(self._forward(subscription))

    async def _unsubscribe(self, frame: ClientFrame) -> None:
        subscription = self._subscriptions.pop(frame.subscription_id or "", None)
        if subscription is None:
            raise NotFound("Unknown subscription")
        self.broker.unsubscribe(subscription)
        task = self._forwarders.pop(subscription.id, None)
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self.send({"type": "unsubscribed", "subscription_id": subscription.id})

    async def _forward(self, subscription: Subscription) -> None:
        try:
            async for seq, delta in subscription:
                await self.send(delta.as_frame(subscription.id, seq))
                if delta.op is DeltaOp.RESYNC:
                    break
        except (WebSocketDisconnect, RuntimeError) as exc:
            logger.debug("Forwarding for %s stopped: %s", subscription.id, exc)
        finally:
            if subscription.overflowed:
                self._subscriptions.pop(subscription.id, None)
                self._forwarders.pop(subscription.id, None)
                self.broker.unsubscribe(subscription)


@router.websocket("/stream")
async def stream(
    websocket: WebSocket,
    db: SessionDep,
    broker: BrokerDep,
    token: str | None = Query(None),
) -> None:
    """Authenticate with ``?token=`` and serve the subscription protocol."""
    try:
        if not token:
            raise Unauthorized("Not authenticated")
        principal_id = decode_access_token(token)
        broker.registry.require_principal(db, principal_id)
    except Unauthorized as exc:
        logger.info("Rejected stream connection: %s", exc.detail)
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    await StreamSession(websocket, db, broker, principal_id).run()
