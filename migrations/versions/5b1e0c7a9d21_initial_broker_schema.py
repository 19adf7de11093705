"""initial broker schema

Revision ID: 5b1e0c7a9d21
Revises:
Create Date: 2026-10-18 09:12:40.118204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7a9d21"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create principals, presence, typing, blobs and the message log."""
    op.create_table(
        "principal",
        sa.Column("principal_id", sa.String(length=320), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("avatar_ref", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("principal_id"),
    )
    op.create_table(
        "presence",
        sa.Column("principal_id", sa.String(length=320), nullable=False),
        sa.Column("online", sa.Boolean(), nullable=False),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["principal_id"], ["principal.principal_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("principal_id"),
    )
    op.create_table(
        "typing_signal",
        sa.Column("principal_id", sa.String(length=320), nullable=False),
        sa.Column("user_name", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["principal_id"], ["principal.principal_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("principal_id"),
    )
    op.create_table(
        "blob",
        sa.Column("payload_ref", sa.String(length=80), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False),
        sa.Column("byte_size", sa.BigInteger(), nullable=False),
        sa.Column("data", sa.LargeBinary(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("payload_ref"),
    )
    op.create_table(
        "system_clock",
        sa.Column("id", sa.BigInteger(), nullable=False),
        sa.Column("message_seq", sa.BigInteger(), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "message",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("seq", sa.BigInteger(), nullable=False),
        sa.Column("author_id", sa.String(length=320), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("edited", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("client_message_id", sa.String(length=128), nullable=True),
        sa.Column("pinned", sa.Boolean(), nullable=False),
        sa.Column("pinned_by", sa.String(length=320), nullable=True),
        sa.Column("pinned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("voice_payload_ref", sa.Text(), nullable=True),
        sa.Column("voice_mime_type", sa.String(length=255), nullable=True),
        sa.Column("voice_byte_size", sa.BigInteger(), nullable=True),
        sa.Column("voice_duration_seconds", sa.Float(), nullable=True),
        sa.CheckConstraint("status IN ('sent', 'delivered', 'read')", name="ck_message_status"),
        sa.ForeignKeyConstraint(["author_id"], ["principal.principal_id"]),
        sa.ForeignKeyConstraint(["pinned_by"], ["principal.principal_id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("seq"),
        sa.UniqueConstraint("author_id", "client_message_id", name="uq_message_client_id"),
    )
    op.create_index("ix_message_order", "message", ["created_at", "seq"])
    op.create_index("ix_message_pinned", "message", ["pinned"])
    op.create_table(
        "message_reader",
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("principal_id", sa.String(length=320), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["message_id"], ["message.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["principal_id"], ["principal.principal_id"]),
        sa.PrimaryKeyConstraint("message_id", "principal_id"),
    )
    op.create_table(
        "message_reaction",
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("principal_id", sa.String(length=320), nullable=False),
        sa.Column("emoji", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["message_id"], ["message.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["principal_id"], ["principal.principal_id"]),
        sa.PrimaryKeyConstraint("message_id", "principal_id", "emoji"),
    )
    op.create_table(
        "message_attachment",
        sa.Column("message_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False),
        sa.Column("byte_size", sa.BigInteger(), nullable=False),
        sa.Column("payload_ref", sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(["message_id"], ["message.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("message_id", "position"),
    )


def downgrade() -> None:
    """Drop every broker table."""
    op.drop_table("message_attachment")
    op.drop_table("message_reaction")
    op.drop_table("message_reader")
    op.drop_index("ix_message_pinned", table_name="message")
    op.drop_index("ix_message_order", table_name="message")
    op.drop_table("message")
    op.drop_table("system_clock")
    op.drop_table("blob")
    op.drop_table("typing_signal")
    op.drop_table("presence")
    op.drop_table("principal")
