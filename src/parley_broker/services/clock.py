"""Server-side stamps for the message log."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from parley_broker.db.time import as_utc, utcnow
from parley_broker.models import SystemClock

_TICK = timedelta(microseconds=1)


def get_system_clock(db: Session) -> SystemClock:
    """Return the singleton clock row, creating it on first use."""
    clock = (
        db.query(SystemClock)
        .filter(SystemClock.id == 1)
        .with_for_update()
        .first()
    )
    if clock is None:
        clock = SystemClock(id=1, message_seq=0, last_message_at=None)
        db.add(clock)
        db.flush()
    return clock


def next_message_stamp(db: Session, now: datetime | None = None) -> tuple[int, datetime]:
    """Reserve the next ``(seq, created_at)`` pair inside the caller's transaction.

    Both values are strictly increasing in assignment order. When the wall
    clock has not advanced past the previous stamp (coarse resolution or a
    backwards step) the timestamp is nudged one microsecond past it.
    """
    clock = get_system_clock(db)
    stamp = as_utc(now) if now is not None else utcnow()
    if clock.last_message_at is not None:
        previous = as_utc(clock.last_message_at)
        if stamp <= previous:
            stamp = previous + _TICK

    clock.message_seq = int(clock.message_seq) + 1
    clock.last_message_at = stamp
    return clock.message_seq, stamp
