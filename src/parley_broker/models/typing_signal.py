"""Ephemeral typing indicator rows."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from parley_broker.db.session import Base
from parley_broker.db.time import utcnow


class TypingSignal(Base):
    """Single-slot typing signal; overwritten on every keystroke."""

    __tablename__ = "typing_signal"

    principal_id: Mapped[str] = mapped_column(
        String(320),
        ForeignKey("principal.principal_id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def label(self) -> str:
        """Indicator text shown to other principals."""
        return f"{self.user_name} is typing"
