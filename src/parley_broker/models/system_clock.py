"""System-level bookkeeping models."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from parley_broker.db.session import Base


class SystemClock(Base):
    """Monotonic counters used to order the message log.

    ``last_message_at`` lets the server hand out strictly increasing
    timestamps even when the wall clock is coarse or steps backwards.
    """

    __tablename__ = "system_clock"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, default=1)
    message_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
