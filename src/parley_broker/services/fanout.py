"""Subscription and fan-out engine.

Each subscription is a live query over one stream. Subscribing enqueues a
full snapshot; every later commit on that stream is enqueued as a delta in
commit order. Deltas for one entity therefore reach a subscriber in the
order they were committed; nothing is promised across entities.

The engine is driven from the event loop only. ``subscribe`` and
``publish`` never await, so a snapshot and the deltas that follow it can
not interleave with a concurrent commit.

There is no durable offset: a subscription that falls too far behind is
closed with a ``resync`` marker and the client must subscribe again to get
a fresh snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from parley_broker.core.settings import settings
from parley_broker.schemas.stream import StreamName

logger = logging.getLogger(__name__)


class DeltaOp(str, Enum):
    SNAPSHOT = "snapshot"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    RESYNC = "resync"


@dataclass(frozen=True)
class Delta:
    """A change to one stream.

    ``key`` identifies the entity (message id, principal id); snapshots and
    resync markers carry no key. ``data`` is the JSON-ready entity, the list
    of entities for a snapshot, or None for deletions.
    """

    stream: StreamName
    op: DeltaOp
    key: str | None = None
    data: Any = None

    def as_frame(self, subscription_id: str, seq: int) -> dict[str, Any]:
        """Render the delta as a stream frame for ``subscription_id``."""
        if self.op is DeltaOp.SNAPSHOT:
            return {
                "type": "snapshot",
                "subscription_id": subscription_id,
                "stream": self.stream.value,
                "seq": seq,
                "items": self.data,
            }
        if self.op is DeltaOp.RESYNC:
            return {
                "type": "resync",
                "subscription_id": subscription_id,
                "stream": self.stream.value,
            }
        return {
            "type": "delta",
            "subscription_id": subscription_id,
            "stream": self.stream.value,
            "seq": seq,
            "op": self.op.value,
            "key": self.key,
            "data": self.data,
        }


_CLOSED = object()


@dataclass(eq=False)
class Subscription:
    """One live query held by one client."""

    stream: StreamName
    principal_id: str | None
    limit: int
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    closed: bool = False
    overflowed: bool = False
    _queue: asyncio.Queue[Any] = field(default_factory=asyncio.Queue, repr=False)
    _seq: int = 0

    def accepts(self, delta: Delta) -> bool:
        """Typing subscriptions never see the subscriber's own signal."""
        if self.stream is StreamName.TYPING and delta.op is not DeltaOp.SNAPSHOT:
            return delta.key != self.principal_id
        return True

    def offer(self, delta: Delta) -> bool:
        """Enqueue ``delta``; returns False when the subscription is closed."""
        if self.closed:
            return False
        if self._queue.qsize() >= self.limit:
            logger.warning(
                "Subscription %s on %s overflowed after %d queued deltas",
                self.id,
                self.stream.value,
                self.limit,
            )
            self.overflowed = True
            self._drain()
            self._queue.put_nowait(Delta(self.stream, DeltaOp.RESYNC))
            self.close()
            return False
        self._queue.put_nowait(delta)
        return True

    def close(self) -> None:
        """Stop delivery; pending deltas other than a resync marker are dropped."""
        if self.closed:
            return
        self.closed = True
        if not self.overflowed:
            self._drain()
        self._queue.put_nowait(_CLOSED)

    def pending(self) -> int:
        return self._queue.qsize()

    async def next(self) -> tuple[int, Delta] | None:
        """Wait for the next delta and its per-subscription sequence number.

        Returns None once the subscription has been closed.
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the sentinel so concurrent or repeated readers also stop.
            self._queue.put_nowait(_CLOSED)
            return None
        self._seq += 1
        return self._seq, item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> tuple[int, Delta]:
        item = await self.next()
        if item is None:
            raise StopAsyncIteration
        return item

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return


class FanoutEngine:
    """Registry of live subscriptions keyed by stream."""

    def __init__(self, queue_size: int | None = None) -> None:
        self._queue_size = queue_size
        self._subscriptions: dict[StreamName, dict[str, Subscription]] = defaultdict(dict)

    @property
    def queue_size(self) -> int:
        return self._queue_size if self._queue_size is not None else settings.fanout_queue_size

    def subscribe(
        self,
        stream: StreamName,
        principal_id: str | None,
        snapshot: list[dict[str, Any]],
    ) -> Subscription:
        """Register a subscription whose first item is ``snapshot``.

        For the typing stream, the subscriber's own entry is filtered out of
        the snapshot as well as out of later deltas.
        """
        subscription = Subscription(stream=stream, principal_id=principal_id, limit=self.queue_size)
        if stream is StreamName.TYPING and principal_id is not None:
            snapshot = [item for item in snapshot if item.get("principal_id") != principal_id]
        subscription.offer(Delta(stream, DeltaOp.SNAPSHOT, data=snapshot))
        self._subscriptions[stream][subscription.id] = subscription
        logger.debug("Subscription %s opened on %s for %s", subscription.id, stream.value, principal_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Stop delivery to ``subscription``; safe to call more than once."""
        self._subscriptions[subscription.stream].pop(subscription.id, None)
        subscription.close()

    def publish(self, delta: Delta) -> int:
        """Deliver ``delta`` to every live subscription of its stream.

        Returns:
            The number of subscriptions the delta was enqueued for.
        """
        delivered = 0
        subscriptions = self._subscriptions[delta.stream]
        for subscription in list(subscriptions.values()):
            if not subscription.accepts(delta):
                continue
            if subscription.offer(delta):
                delivered += 1
            elif subscription.closed:
                subscriptions.pop(subscription.id, None)
        return delivered

    def subscriber_count(self, stream: StreamName | None = None) -> int:
        if stream is not None:
            return len(self._subscriptions[stream])
        return sum(len(subs) for subs in self._subscriptions.values())

    def close_all(self) -> None:
        """Close every subscription, e.g. on shutdown."""
        for subscriptions in self._subscriptions.values():
            for subscription in list(subscriptions.values()):
                subscription.close()
            subscriptions.clear()
