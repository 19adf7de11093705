"""Durable message log with author-checked mutations.

Messages are totally ordered by ``(created_at, seq)``; both values come from
the server clock row so ordering never depends on client clocks. Read sets
and reactions are add/toggle-only collections, so concurrent writers from
different principals never conflict on them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from fnmatch import fnmatch

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from parley_broker.core.errors import InvalidContent, NotAuthor, NotFound, Unavailable
from parley_broker.core.settings import settings
from parley_broker.db.session import commit_or_unavailable
from parley_broker.db.time import utcnow
from parley_broker.models import (
    Blob,
    Message,
    MessageAttachment,
    MessageReaction,
    MessageReader,
)
from parley_broker.schemas.message import AttachmentIn, MessageCreate, VoiceNoteIn
from parley_broker.services.clock import next_message_stamp
from parley_broker.services.delivery import DeliveryStateTracker
from parley_broker.services.identity import IdentityRegistry
from parley_broker.utils.hash import is_blob_ref

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessageChange:
    """Outcome of a mutation, carrying what the fan-out needs.

    ``message`` is None when the message was deleted. ``was_pinned`` is the
    pinned flag before the mutation.
    """

    message_id: int
    message: Message | None
    changed: bool
    was_pinned: bool


class MessageStore:
    """Command side of the message log."""

    def __init__(
        self,
        registry: IdentityRegistry,
        tracker: DeliveryStateTracker | None = None,
    ) -> None:
        self.registry = registry
        self.tracker = tracker or DeliveryStateTracker()

    # --- Queries -----------------------------------------------------------------
    def get(self, db: Session, message_id: int) -> Message:
        """Return the message or raise ``NotFound``."""
        message = db.get(Message, message_id)
        if message is None:
            raise NotFound(f"Message {message_id} not found")
        return message

    def find_by_client_id(self, db: Session, author_id: str, client_message_id: str) -> Message | None:
        return (
            db.query(Message)
            .filter(
                Message.author_id == author_id,
                Message.client_message_id == client_message_id,
            )
            .first()
        )

    def list_messages(self, db: Session, limit: int | None = None) -> list[Message]:
        """Return messages in log order; with ``limit``, the most recent ones."""
        if limit is None:
            return db.query(Message).order_by(Message.created_at, Message.seq).all()
        recent = (
            db.query(Message)
            .order_by(desc(Message.created_at), desc(Message.seq))
            .limit(limit)
            .all()
        )
        recent.reverse()
        return recent

    def list_pinned(self, db: Session) -> list[Message]:
        return (
            db.query(Message)
            .filter(Message.pinned.is_(True))
            .order_by(Message.created_at, Message.seq)
            .all()
        )

    # --- Commands ----------------------------------------------------------------
    def send(
        self,
        db: Session,
        author_id: str,
        content: MessageCreate,
        now: datetime | None = None,
    ) -> Message:
        """Append a message and return it; see ``append``."""
        return self.append(db, author_id, content, now=now).message  # type: ignore[return-value]

    def append(
        self,
        db: Session,
        author_id: str,
        content: MessageCreate,
        now: datetime | None = None,
    ) -> MessageChange:
        """Append a message authored by ``author_id``.

        A repeated ``client_message_id`` from the same author returns the
        message committed by the first attempt, with ``changed`` False.

        Raises:
            InvalidContent: If the body, attachments and voice note are all empty,
                any of them breaks the configured limits, or an uploaded payload
                does not match the declared type and size.
            Unauthorized: If ``author_id`` is not a registered principal.
        """
        self.registry.require_principal(db, author_id)

        if content.client_message_id is not None:
            existing = self.find_by_client_id(db, author_id, content.client_message_id)
            if existing is not None:
                return self._duplicate(existing)

        body = content.body.strip()
        if not body and not content.attachments and content.voice_note is None:
            raise InvalidContent("Message must contain text, attachments or a voice note")
        self._validate_body(body)
        self._validate_attachments(db, content.attachments)
        if content.voice_note is not None:
            self._validate_voice_note(db, content.voice_note)

        seq, created_at = next_message_stamp(db, now)
        message = Message(
            seq=seq,
            author_id=author_id,
            body=body,
            created_at=created_at,
            edited=False,
            status=self.tracker.derive(author_id, [author_id]),
            client_message_id=content.client_message_id,
            pinned=False,
        )
        message.readers.append(MessageReader(principal_id=author_id, read_at=created_at))
        for position, item in enumerate(content.attachments):
            message.attachments.append(
                MessageAttachment(
                    position=position,
                    name=item.name,
                    mime_type=item.mime_type,
                    byte_size=item.byte_size,
                    payload_ref=item.payload_ref,
                )
            )
        if content.voice_note is not None:
            message.voice_payload_ref = content.voice_note.payload_ref
            message.voice_mime_type = content.voice_note.mime_type
            message.voice_byte_size = content.voice_note.byte_size
            message.voice_duration_seconds = content.voice_note.duration_seconds

        db.add(message)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if content.client_message_id is not None:
                # Lost a race with a concurrent retry carrying the same key.
                existing = self.find_by_client_id(db, author_id, content.client_message_id)
                if existing is not None:
                    return self._duplicate(existing)
            raise Unavailable("Could not append message") from exc
        commit_or_unavailable(db, "send")
        db.refresh(message)
        logger.debug("Message %s appended by %s at seq %s", message.id, author_id, seq)
        return MessageChange(message.id, message, True, False)

    def edit(self, db: Session, message_id: int, by_id: str, new_body: str) -> MessageChange:
        """Replace the body of a message owned by ``by_id``."""
        message = self._owned(db, message_id, by_id)
        body = new_body.strip()
        if not body and not message.attachments and not message.has_voice_note:
            raise InvalidContent("Edit would leave the message empty")
        self._validate_body(body)

        message.body = body
        message.edited = True
        commit_or_unavailable(db, "edit")
        db.refresh(message)
        return MessageChange(message.id, message, True, message.pinned)

    def delete(self, db: Session, message_id: int, by_id: str) -> MessageChange:
        """Hard-delete a message owned by ``by_id`` with its readers, reactions and attachments."""
        message = self._owned(db, message_id, by_id)
        was_pinned = message.pinned
        db.delete(message)
        commit_or_unavailable(db, "delete")
        return MessageChange(message_id, None, True, was_pinned)

    def react(self, db: Session, message_id: int, by_id: str, emoji: str) -> MessageChange:
        """Toggle ``(emoji, by_id)`` on the message.

        Calling twice restores the original reaction set. A blind retry of a
        single logical toggle is therefore not safe; see ``set_reaction``.
        """
        message = self.get(db, message_id)
        emoji = emoji.strip()
        existing = self._reaction(db, message_id, by_id, emoji)
        return self._apply_reaction(db, message, by_id, emoji, desired=existing is None)

    def set_reaction(
        self, db: Session, message_id: int, by_id: str, emoji: str, desired: bool
    ) -> MessageChange:
        """Idempotently add (``desired=True``) or remove a reaction."""
        message = self.get(db, message_id)
        return self._apply_reaction(db, message, by_id, emoji, desired=desired)

    def mark_read(
        self, db: Session, message_id: int, by_id: str, now: datetime | None = None
    ) -> MessageChange:
        """Add ``by_id`` to the read set; a no-op if already present."""
        message = self.get(db, message_id)
        if by_id in message.read_by:
            return MessageChange(message.id, message, False, message.pinned)

        message.readers.append(MessageReader(principal_id=by_id, read_at=now or utcnow()))
        self.tracker.apply_read(message, by_id)
        commit_or_unavailable(db, "mark_read")
        db.refresh(message)
        return MessageChange(message.id, message, True, message.pinned)

    def pin(self, db: Session, message_id: int, by_id: str, now: datetime | None = None) -> MessageChange:
        """Pin the message. Any principal may pin any message."""
        message = self.get(db, message_id)
        if message.pinned:
            return MessageChange(message.id, message, False, True)
        message.pinned = True
        message.pinned_by = by_id
        message.pinned_at = now or utcnow()
        commit_or_unavailable(db, "pin")
        db.refresh(message)
        return MessageChange(message.id, message, True, False)

    def unpin(self, db: Session, message_id: int, by_id: str) -> MessageChange:
        """Clear the pinned flag and its metadata."""
        message = self.get(db, message_id)
        if not message.pinned:
            return MessageChange(message.id, message, False, False)
        message.pinned = False
        message.pinned_by = None
        message.pinned_at = None
        commit_or_unavailable(db, "unpin")
        db.refresh(message)
        logger.debug("Message %s unpinned by %s", message.id, by_id)
        return MessageChange(message.id, message, True, True)

    # --- Helpers -----------------------------------------------------------------
    @staticmethod
    def _duplicate(message: Message) -> MessageChange:
        logger.info(
            "Duplicate send %s from %s returned message %s",
            message.client_message_id,
            message.author_id,
            message.id,
        )
        return MessageChange(message.id, message, False, message.pinned)

    def _owned(self, db: Session, message_id: int, by_id: str) -> Message:
        message = self.get(db, message_id)
        if message.author_id != by_id:
            raise NotAuthor("Only the author may change this message")
        return message

    @staticmethod
    def _reaction(db: Session, message_id: int, by_id: str, emoji: str) -> MessageReaction | None:
        return db.get(MessageReaction, (message_id, by_id, emoji))

    def _apply_reaction(
        self, db: Session, message: Message, by_id: str, emoji: str, desired: bool
    ) -> MessageChange:
        emoji = emoji.strip()
        if not emoji:
            raise InvalidContent("Reaction emoji must not be empty")

        existing = self._reaction(db, message.id, by_id, emoji)
        if desired and existing is None:
            message.reactions.append(MessageReaction(principal_id=by_id, emoji=emoji))
        elif not desired and existing is not None:
            message.reactions.remove(existing)
        else:
            return MessageChange(message.id, message, False, message.pinned)

        commit_or_unavailable(db, "react")
        db.refresh(message)
        return MessageChange(message.id, message, True, message.pinned)

    @staticmethod
    def _validate_body(body: str) -> None:
        if len(body) > settings.max_body_chars:
            raise InvalidContent(f"Message body exceeds {settings.max_body_chars} characters")

    def _validate_attachments(self, db: Session, attachments: list[AttachmentIn]) -> None:
        if len(attachments) > settings.max_attachments:
            raise InvalidContent(f"At most {settings.max_attachments} attachments per message")
        for item in attachments:
            self._ensure_payload(db, item.payload_ref, item.mime_type, item.byte_size)
            if item.byte_size > settings.max_attachment_bytes:
                raise InvalidContent(f"File {item.name} is too large")
            if not _matches_any(item.mime_type, settings.allowed_attachment_types):
                raise InvalidContent(f"File type {item.mime_type} is not supported")

    def _validate_voice_note(self, db: Session, voice_note: VoiceNoteIn) -> None:
        self._ensure_payload(db, voice_note.payload_ref, voice_note.mime_type, voice_note.byte_size)
        if voice_note.byte_size > settings.max_attachment_bytes:
            raise InvalidContent("Voice note is too large")
        if not _matches_any(voice_note.mime_type, settings.voice_note_types):
            raise InvalidContent(f"Voice note type {voice_note.mime_type} is not supported")

    @staticmethod
    def _ensure_payload(db: Session, payload_ref: str, mime_type: str, byte_size: int) -> None:
        """Check a ``blake3:`` reference against the uploaded blob.

        Uploads happen before the send, so the blob must exist and the
        declared type and size must be the ones recorded at upload. Limits
        are then enforced on values the client cannot misstate.
        """
        if not is_blob_ref(payload_ref):
            return
        blob = db.get(Blob, payload_ref)
        if blob is None:
            raise InvalidContent(f"Payload {payload_ref} has not been uploaded")
        if blob.mime_type.lower() != mime_type.lower() or blob.byte_size != byte_size:
            raise InvalidContent(
                f"Payload {payload_ref} was uploaded as {blob.mime_type} ({blob.byte_size} bytes)"
            )


def _matches_any(mime_type: str, patterns: list[str]) -> bool:
    mime_type = mime_type.lower()
    return any(fnmatch(mime_type, pattern.lower()) for pattern in patterns)
