"""SQLAlchemy models for principals and their presence."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley_broker.db.session import Base
from parley_broker.db.time import utcnow


class Principal(Base):
    """A signed-in identity keyed by a stable email or account id.

    Principals are never deleted; messages reference them forever.
    """

    __tablename__ = "principal"

    principal_id: Mapped[str] = mapped_column(String(320), primary_key=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    presence: Mapped[PresenceRecord | None] = relationship(
        "PresenceRecord",
        back_populates="principal",
        cascade="all, delete-orphan",
        uselist=False,
    )

    @property
    def label(self) -> str:
        """Return the name shown to other principals."""
        return self.display_name or self.principal_id


class PresenceRecord(Base):
    """Last-write-wins online state, one row per principal."""

    __tablename__ = "presence"

    principal_id: Mapped[str] = mapped_column(
        String(320),
        ForeignKey("principal.principal_id", ondelete="CASCADE"),
        primary_key=True,
    )
    online: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    principal: Mapped[Principal] = relationship("Principal", back_populates="presence")
