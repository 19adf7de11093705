"""Tests for delivery-state derivation."""

from __future__ import annotations

import pytest

from parley_broker.services.delivery import DeliveryStateTracker


@pytest.fixture()
def tracker() -> DeliveryStateTracker:
    return DeliveryStateTracker()


def test_author_alone_is_sent(tracker: DeliveryStateTracker) -> None:
    assert tracker.derive("a", ["a"]) == "sent"


def test_any_other_reader_is_read(tracker: DeliveryStateTracker) -> None:
    assert tracker.derive("a", ["a", "b"]) == "read"


def test_status_never_regresses(tracker: DeliveryStateTracker) -> None:
    assert tracker.advance("read", "sent") == "read"
    assert tracker.advance("delivered", "sent") == "delivered"
    assert tracker.advance("sent", "delivered") == "delivered"
    assert tracker.derive("a", ["a"], current="read") == "read"
