"""Ephemeral typing signals.

One slot per principal, overwritten on every keystroke. Clients are expected
to clear their slot after a short idle period, but readers never trust that:
any signal older than the TTL is treated as absent whether or not it has
been deleted yet.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from parley_broker.core.settings import settings
from parley_broker.db.session import commit_or_unavailable
from parley_broker.db.time import as_utc, utcnow
from parley_broker.models import TypingSignal
from parley_broker.services.identity import IdentityRegistry


class TypingSignalStore:
    """TTL'd typing indicators keyed by principal."""

    def __init__(self, registry: IdentityRegistry, ttl_seconds: float | None = None) -> None:
        self.registry = registry
        self._ttl_seconds = ttl_seconds

    @property
    def ttl(self) -> timedelta:
        seconds = settings.typing_ttl_seconds if self._ttl_seconds is None else self._ttl_seconds
        return timedelta(seconds=seconds)

    def is_live(self, signal: TypingSignal, now: datetime | None = None) -> bool:
        """Return True while ``signal`` is younger than the TTL."""
        return as_utc(signal.timestamp) > (now or utcnow()) - self.ttl

    def set_typing(
        self,
        db: Session,
        principal_id: str,
        user_name: str | None = None,
        now: datetime | None = None,
    ) -> TypingSignal:
        """Upsert the principal's signal with a fresh timestamp."""
        principal = self.registry.require_principal(db, principal_id)
        name = user_name or principal.label
        signal = db.get(TypingSignal, principal_id)
        if signal is None:
            signal = TypingSignal(principal_id=principal_id, user_name=name)
            db.add(signal)
        signal.user_name = name
        signal.timestamp = now or utcnow()
        commit_or_unavailable(db, "set_typing")
        db.refresh(signal)
        return signal

    def clear_typing(self, db: Session, principal_id: str) -> bool:
        """Delete the principal's signal.

        Returns:
            True if a signal was removed.
        """
        signal = db.get(TypingSignal, principal_id)
        if signal is None:
            return False
        db.delete(signal)
        commit_or_unavailable(db, "clear_typing")
        return True

    def current_typers(
        self,
        db: Session,
        now: datetime | None = None,
        exclude: str | None = None,
    ) -> list[TypingSignal]:
        """Return live signals, oldest first, optionally without ``exclude``."""
        cutoff = (now or utcnow()) - self.ttl
        query = db.query(TypingSignal).filter(TypingSignal.timestamp > cutoff)
        if exclude is not None:
            query = query.filter(TypingSignal.principal_id != exclude)
        return query.order_by(TypingSignal.timestamp, TypingSignal.principal_id).all()

    def purge_expired(self, db: Session, now: datetime | None = None) -> list[str]:
        """Delete expired signals and return the principals they belonged to."""
        cutoff = (now or utcnow()) - self.ttl
        expired = db.query(TypingSignal).filter(TypingSignal.timestamp <= cutoff).all()
        if not expired:
            return []
        principal_ids = [signal.principal_id for signal in expired]
        for signal in expired:
            db.delete(signal)
        commit_or_unavailable(db, "purge_typing")
        return principal_ids
