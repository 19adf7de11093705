"""Delivery-state tracking for messages.

Status is a single denormalised field per message moving through
``sent -> delivered -> read``. It answers "has anyone besides the author read
this" and never moves backwards. ``delivered`` is representable but nothing
in the broker currently evidences it separately from a read.
"""

from __future__ import annotations

from collections.abc import Iterable

from parley_broker.models.message import (
    STATUS_DELIVERED,
    STATUS_READ,
    STATUS_SENT,
    Message,
)

_STATUS_RANK = {
    STATUS_SENT: 0,
    STATUS_DELIVERED: 1,
    STATUS_READ: 2,
}


class DeliveryStateTracker:
    """Derives and advances per-message delivery status."""

    @staticmethod
    def advance(current: str, target: str) -> str:
        """Return whichever of ``current`` and ``target`` is further along."""
        if _STATUS_RANK[target] > _STATUS_RANK[current]:
            return target
        return current

    def derive(self, author_id: str, readers: Iterable[str], current: str = STATUS_SENT) -> str:
        """Return the status implied by ``readers`` without regressing ``current``."""
        if any(reader != author_id for reader in readers):
            return self.advance(current, STATUS_READ)
        return current

    def apply_read(self, message: Message, reader_id: str) -> bool:
        """Update ``message.status`` after ``reader_id`` joined its read set.

        Returns:
            True if the status changed.
        """
        if reader_id == message.author_id:
            return False
        updated = self.advance(message.status, STATUS_READ)
        if updated == message.status:
            return False
        message.status = updated
        return True

