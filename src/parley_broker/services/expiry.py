"""Background expiry of ephemeral state.

Typing signals have a hard TTL and presence has a heartbeat timeout. Readers
already ignore expired typing rows, but subscribers only converge once a
``delete`` delta is published, so this worker sweeps both periodically.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from parley_broker.core.settings import settings
from parley_broker.db.session import SessionLocal
from parley_broker.services.broker import ChatBroker, ExpiredState

logger = logging.getLogger(__name__)


class ExpiryWorker:
    """Periodically expires typing signals and stale presence records."""

    def __init__(
        self,
        broker: ChatBroker,
        session_factory: Callable[[], Session] | None = None,
        interval_seconds: float | None = None,
    ) -> None:
        self.broker = broker
        self._session_factory = session_factory or SessionLocal
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def interval(self) -> float:
        seconds = settings.expiry_sweep_interval_seconds if self._interval is None else self._interval
        return max(0.05, float(seconds))

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def sweep_once(self, now: datetime | None = None) -> tuple[list[str], list[str]]:
        """Run a single sweep; storage work happens in a worker thread.

        Deltas are published back on the event loop, which owns the fan-out
        engine.
        """
        expired = await asyncio.to_thread(self._purge, now)
        self.broker.publish_expired(expired)
        return expired.typing_ids, expired.offline_ids

    def _purge(self, now: datetime | None) -> ExpiredState:
        db = self._session_factory()
        try:
            return self.broker.purge_expired(db, now=now)
        finally:
            db.close()

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                typing_ids, offline_ids = await self.sweep_once()
                if typing_ids or offline_ids:
                    logger.debug(
                        "Expired %d typing signal(s) and %d presence record(s)",
                        len(typing_ids),
                        len(offline_ids),
                    )
            except SQLAlchemyError as e:
                logger.warning("ExpiryWorker encountered a storage error: %s", e)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except TimeoutError:
                continue
