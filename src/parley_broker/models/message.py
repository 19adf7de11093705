"""Models describing chat messages and their per-principal state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from parley_broker.db.session import Base
from parley_broker.db.time import utcnow

STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_READ = "read"


class Message(Base):
    """A chat message in the single room log.

    ``created_at`` and ``seq`` are assigned by the server; together they give
    the total order of the log.
    """

    __tablename__ = "message"
    __table_args__ = (
        CheckConstraint("status IN ('sent', 'delivered', 'read')", name="ck_message_status"),
        UniqueConstraint("author_id", "client_message_id", name="uq_message_client_id"),
        Index("ix_message_order", "created_at", "seq"),
        Index("ix_message_pinned", "pinned"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    author_id: Mapped[str] = mapped_column(
        String(320), ForeignKey("principal.principal_id"), nullable=False
    )
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_SENT)

    # Caller-chosen key making retried sends idempotent.
    client_message_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pinned_by: Mapped[str | None] = mapped_column(
        String(320), ForeignKey("principal.principal_id"), nullable=True
    )
    pinned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    voice_payload_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    voice_mime_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    voice_byte_size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    voice_duration_seconds: Mapped[float | None] = mapped_column(Float, nullable=True)

    author = relationship("Principal", foreign_keys=[author_id], lazy="joined")

    readers: Mapped[list[MessageReader]] = relationship(
        "MessageReader",
        cascade="all, delete-orphan",
        order_by="MessageReader.read_at",
        lazy="selectin",
    )
    reactions: Mapped[list[MessageReaction]] = relationship(
        "MessageReaction",
        cascade="all, delete-orphan",
        order_by="MessageReaction.created_at",
        lazy="selectin",
    )
    attachments: Mapped[list[MessageAttachment]] = relationship(
        "MessageAttachment",
        cascade="all, delete-orphan",
        order_by="MessageAttachment.position",
        lazy="selectin",
    )

    @property
    def read_by(self) -> list[str]:
        """Return reader ids in the order they first read the message."""
        return [reader.principal_id for reader in self.readers]

    @property
    def has_voice_note(self) -> bool:
        return self.voice_payload_ref is not None


class MessageReader(Base):
    """Membership of a principal in a message's read set."""

    __tablename__ = "message_reader"

    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("message.id", ondelete="CASCADE"), primary_key=True
    )
    principal_id: Mapped[str] = mapped_column(
        String(320), ForeignKey("principal.principal_id"), primary_key=True
    )
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class MessageReaction(Base):
    """One reaction record per (message, principal, emoji)."""

    __tablename__ = "message_reaction"

    # Composite primary key prevents duplicate reactions from the same principal.
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("message.id", ondelete="CASCADE"), primary_key=True
    )
    principal_id: Mapped[str] = mapped_column(
        String(320), ForeignKey("principal.principal_id"), primary_key=True
    )
    emoji: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class MessageAttachment(Base):
    """File attached to a message; the payload itself lives behind ``payload_ref``."""

    __tablename__ = "message_attachment"

    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("message.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    byte_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    payload_ref: Mapped[str] = mapped_column(Text, nullable=False)
