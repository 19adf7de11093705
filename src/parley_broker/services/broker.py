"""Command facade tying the stores to the fan-out engine.

Every accepted mutation is committed against its owning store first and only
then published, so subscribers never observe a change that was rolled back.
Message commands surface their failures to the caller. Presence and typing
are best-effort: storage failures are logged and swallowed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from parley_broker.core.errors import Unavailable
from parley_broker.models import Message, PresenceRecord, Principal, TypingSignal
from parley_broker.schemas.message import MessageCreate, MessageResponse
from parley_broker.schemas.principal import PresenceResponse
from parley_broker.schemas.stream import StreamName
from parley_broker.schemas.typing import TypingResponse
from parley_broker.services.fanout import Delta, DeltaOp, FanoutEngine, Subscription
from parley_broker.services.identity import IdentityRegistry
from parley_broker.services.message_store import MessageChange, MessageStore
from parley_broker.services.typing import TypingSignalStore

logger = logging.getLogger(__name__)


def message_payload(message: Message) -> dict[str, Any]:
    return MessageResponse.model_validate(message).model_dump(mode="json")


def presence_payload(record: PresenceRecord) -> dict[str, Any]:
    return PresenceResponse.model_validate(record).model_dump(mode="json")


def typing_payload(signal: TypingSignal) -> dict[str, Any]:
    return TypingResponse.model_validate(signal).model_dump(mode="json")


@dataclass(frozen=True)
class ExpiredState:
    """What one expiry sweep removed, detached from the session."""

    typing_ids: list[str] = field(default_factory=list)
    presence: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    @property
    def offline_ids(self) -> list[str]:
        return [principal_id for principal_id, _ in self.presence]


class ChatBroker:
    """Single entry point for commands and subscriptions."""

    def __init__(
        self,
        registry: IdentityRegistry | None = None,
        typing: TypingSignalStore | None = None,
        messages: MessageStore | None = None,
        engine: FanoutEngine | None = None,
    ) -> None:
        self.registry = registry or IdentityRegistry()
        self.typing = typing or TypingSignalStore(self.registry)
        self.messages = messages or MessageStore(self.registry)
        self.engine = engine or FanoutEngine()
        self._connections: dict[str, int] = defaultdict(int)

    # --- Identity and presence ---------------------------------------------------
    def sign_in(
        self,
        db: Session,
        principal_id: str,
        display_name: str | None = None,
        avatar_ref: str | None = None,
    ) -> Principal:
        """Register the principal on first sign-in or update its profile."""
        known = self.registry.get_principal(db, principal_id) is not None
        principal = self.registry.register(db, principal_id, display_name, avatar_ref)
        if principal.presence is not None:
            op = DeltaOp.UPDATE if known else DeltaOp.INSERT
            self._publish_presence(principal.presence, op)
        return principal

    def upsert_presence(
        self,
        db: Session,
        principal_id: str,
        display_name: str | None = None,
        avatar_ref: str | None = None,
        online: bool = True,
        now: datetime | None = None,
    ) -> PresenceRecord | None:
        try:
            record = self.registry.upsert_presence(
                db, principal_id, display_name, avatar_ref, online, now=now
            )
        except Unavailable as exc:
            logger.warning("Presence update for %s dropped: %s", principal_id, exc)
            return None
        self._publish_presence(record)
        return record

    def heartbeat(self, db: Session, principal_id: str, now: datetime | None = None) -> PresenceRecord | None:
        try:
            record = self.registry.heartbeat(db, principal_id, now=now)
        except Unavailable as exc:
            logger.warning("Heartbeat for %s dropped: %s", principal_id, exc)
            return None
        self._publish_presence(record)
        return record

    def mark_offline(self, db: Session, principal_id: str, now: datetime | None = None) -> PresenceRecord | None:
        try:
            record = self.registry.mark_offline(db, principal_id, now=now)
        except Unavailable as exc:
            logger.warning("Offline transition for %s dropped: %s", principal_id, exc)
            return None
        if record is not None:
            self._publish_presence(record)
        return record

    def list_presence(self, db: Session) -> list[PresenceRecord]:
        return self.registry.list_presence(db)

    def connect(self, db: Session, principal_id: str) -> None:
        """Count a new live connection and assert presence."""
        self._connections[principal_id] += 1
        self.heartbeat(db, principal_id)

    def disconnect(self, db: Session, principal_id: str) -> None:
        """Drop a live connection; the last one to close takes the principal offline."""
        remaining = self._connections[principal_id] - 1
        if remaining > 0:
            self._connections[principal_id] = remaining
            return
        self._connections.pop(principal_id, None)
        self.clear_typing(db, principal_id)
        self.mark_offline(db, principal_id)

    def connection_count(self, principal_id: str) -> int:
        return self._connections.get(principal_id, 0)

    # --- Typing ------------------------------------------------------------------
    def set_typing(
        self,
        db: Session,
        principal_id: str,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> TypingSignal | None:
        previous = db.get(TypingSignal, principal_id)
        was_live = previous is not None and self.typing.is_live(previous, now)
        try:
            signal = self.typing.set_typing(db, principal_id, user_name, now=now)
        except Unavailable as exc:
            logger.warning("Typing signal for %s dropped: %s", principal_id, exc)
            return None
        op = DeltaOp.UPDATE if was_live else DeltaOp.INSERT
        self.engine.publish(Delta(StreamName.TYPING, op, principal_id, typing_payload(signal)))
        return signal

    def clear_typing(self, db: Session, principal_id: str) -> bool:
        try:
            removed = self.typing.clear_typing(db, principal_id)
        except Unavailable as exc:
            logger.warning("Typing clear for %s dropped: %s", principal_id, exc)
            return False
        if removed:
            self.engine.publish(Delta(StreamName.TYPING, DeltaOp.DELETE, principal_id))
        return removed

    def current_typers(
        self, db: Session, principal_id: str | None = None, now: datetime | None = None
    ) -> list[TypingSignal]:
        """Live typing signals, excluding the caller's own."""
        return self.typing.current_typers(db, now=now, exclude=principal_id)

    # --- Messages ----------------------------------------------------------------
    def send(
        self,
        db: Session,
        author_id: str,
        content: MessageCreate,
        now: datetime | None = None,
    ) -> Message:
        change = self.messages.append(db, author_id, content, now=now)
        if change.changed:
            self._publish_message(change, DeltaOp.INSERT)
            # Sending ends the author's typing burst.
            self.clear_typing(db, author_id)
        return change.message  # type: ignore[return-value]

    def edit(self, db: Session, message_id: int, by_id: str, new_body: str) -> Message:
        change = self.messages.edit(db, message_id, by_id, new_body)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def delete(self, db: Session, message_id: int, by_id: str) -> None:
        change = self.messages.delete(db, message_id, by_id)
        self._publish_message(change)

    def react(self, db: Session, message_id: int, by_id: str, emoji: str) -> Message:
        change = self.messages.react(db, message_id, by_id, emoji)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def set_reaction(
        self, db: Session, message_id: int, by_id: str, emoji: str, desired: bool
    ) -> Message:
        change = self.messages.set_reaction(db, message_id, by_id, emoji, desired)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def mark_read(self, db: Session, message_id: int, by_id: str) -> Message:
        change = self.messages.mark_read(db, message_id, by_id)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def pin(self, db: Session, message_id: int, by_id: str) -> Message:
        change = self.messages.pin(db, message_id, by_id)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def unpin(self, db: Session, message_id: int, by_id: str) -> Message:
        change = self.messages.unpin(db, message_id, by_id)
        self._publish_message(change)
        return change.message  # type: ignore[return-value]

    def list_messages(self, db: Session, limit: int | None = None) -> list[Message]:
        return self.messages.list_messages(db, limit=limit)

    def list_pinned(self, db: Session) -> list[Message]:
        return self.messages.list_pinned(db)

    # --- Subscriptions -----------------------------------------------------------
    def snapshot(
        self, db: Session, stream: StreamName, principal_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Return the current full view of ``stream``."""
        if stream is StreamName.MESSAGES:
            return [message_payload(message) for message in self.list_messages(db)]
        if stream is StreamName.PINNED:
            return [message_payload(message) for message in self.list_pinned(db)]
        if stream is StreamName.TYPING:
            return [typing_payload(signal) for signal in self.current_typers(db, principal_id)]
        return [presence_payload(record) for record in self.list_presence(db)]

    def subscribe(self, db: Session, stream: StreamName, principal_id: str | None) -> Subscription:
        """Open a live query; the first item delivered is a fresh snapshot."""
        return self.engine.subscribe(stream, principal_id, self.snapshot(db, stream, principal_id))

    def unsubscribe(self, subscription: Subscription) -> None:
        self.engine.unsubscribe(subscription)

    # --- Expiry ------------------------------------------------------------------
    def expire(self, db: Session, now: datetime | None = None) -> tuple[list[str], list[str]]:
        """Purge expired typing signals and stale presence, publishing the changes.

        Returns:
            ``(typing_principal_ids, offline_principal_ids)``.
        """
        expired = self.purge_expired(db, now=now)
        self.publish_expired(expired)
        return expired.typing_ids, expired.offline_ids

    def purge_expired(self, db: Session, now: datetime | None = None) -> ExpiredState:
        """Delete expired typing signals and take stale principals offline.

        Touches storage only, so it may run off the event loop. Hand the
        result to :meth:`publish_expired` on the loop.
        """
        try:
            expired_typing = self.typing.purge_expired(db, now=now)
        except Unavailable as exc:
            logger.warning("Typing expiry skipped: %s", exc)
            expired_typing = []

        try:
            stale = self.registry.expire_stale(db, now=now)
        except Unavailable as exc:
            logger.warning("Presence expiry skipped: %s", exc)
            stale = []

        return ExpiredState(
            typing_ids=expired_typing,
            presence=[(record.principal_id, presence_payload(record)) for record in stale],
        )

    def publish_expired(self, expired: ExpiredState) -> None:
        for principal_id in expired.typing_ids:
            self.engine.publish(Delta(StreamName.TYPING, DeltaOp.DELETE, principal_id))
        for principal_id, payload in expired.presence:
            self.engine.publish(Delta(StreamName.PRESENCE, DeltaOp.UPDATE, principal_id, payload))

    # --- Publishing --------------------------------------------------------------
    def _publish_presence(self, record: PresenceRecord, op: DeltaOp = DeltaOp.UPDATE) -> None:
        self.engine.publish(Delta(StreamName.PRESENCE, op, record.principal_id, presence_payload(record)))

    def _publish_message(self, change: MessageChange, op: DeltaOp = DeltaOp.UPDATE) -> None:
        if not change.changed:
            return

        key = str(change.message_id)
        message = change.message
        if message is None:
            self.engine.publish(Delta(StreamName.MESSAGES, DeltaOp.DELETE, key))
            if change.was_pinned:
                self.engine.publish(Delta(StreamName.PINNED, DeltaOp.DELETE, key))
            return

        payload = message_payload(message)
        self.engine.publish(Delta(StreamName.MESSAGES, op, key, payload))

        if message.pinned and not change.was_pinned:
            self.engine.publish(Delta(StreamName.PINNED, DeltaOp.INSERT, key, payload))
        elif message.pinned:
            self.engine.publish(Delta(StreamName.PINNED, DeltaOp.UPDATE, key, payload))
        elif change.was_pinned:
            self.engine.publish(Delta(StreamName.PINNED, DeltaOp.DELETE, key))


class _BrokerSingleton:
    """Singleton wrapper for ChatBroker."""

    _instance: ChatBroker | None = None

    @classmethod
    def get_instance(cls) -> ChatBroker:
        """Get or create the singleton ChatBroker instance."""
        if cls._instance is None:
            cls._instance = ChatBroker()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.engine.close_all()
        cls._instance = None


def get_broker() -> ChatBroker:
    """Return the process-wide broker instance."""
    return _BrokerSingleton.get_instance()


def reset_broker() -> None:
    """Discard the process-wide broker, closing its subscriptions."""
    _BrokerSingleton.reset()
