"""Identity and session registry.

Tracks principals and their last-write-wins presence records. Presence is
asserted by clients (connect, heartbeat, page-hide) and additionally expired
on the server once a principal stops sending heartbeats, so a crashed client
does not stay online forever.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import case
from sqlalchemy.orm import Session, joinedload

from parley_broker.core.errors import Unauthorized
from parley_broker.core.settings import settings
from parley_broker.db.session import commit_or_unavailable
from parley_broker.db.time import utcnow
from parley_broker.models import PresenceRecord, Principal

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Principal registration and presence bookkeeping."""

    def get_principal(self, db: Session, principal_id: str) -> Principal | None:
        return db.get(Principal, principal_id)

    def require_principal(self, db: Session, principal_id: str) -> Principal:
        """Return the principal or raise ``Unauthorized`` for unknown ids."""
        principal = self.get_principal(db, principal_id)
        if principal is None:
            raise Unauthorized("Unknown principal")
        return principal

    def register(
        self,
        db: Session,
        principal_id: str,
        display_name: str | None = None,
        avatar_ref: str | None = None,
    ) -> Principal:
        """Create the principal on first sign-in or apply a profile change."""
        principal = self.get_principal(db, principal_id)
        if principal is None:
            principal = Principal(
                principal_id=principal_id,
                display_name=display_name,
                avatar_ref=avatar_ref,
            )
            principal.presence = PresenceRecord(
                principal_id=principal_id, online=False, last_seen=utcnow()
            )
            db.add(principal)
            logger.info("Registered principal %s", principal_id)
        else:
            self._merge_profile(principal, display_name, avatar_ref)

        commit_or_unavailable(db, "register")
        db.refresh(principal)
        return principal

    def upsert_presence(
        self,
        db: Session,
        principal_id: str,
        display_name: str | None = None,
        avatar_ref: str | None = None,
        online: bool = True,
        now: datetime | None = None,
    ) -> PresenceRecord:
        """Merge-write profile fields and the online flag; last write wins."""
        principal = self.require_principal(db, principal_id)
        self._merge_profile(principal, display_name, avatar_ref)
        record = self._presence_for(db, principal)
        record.online = online
        record.last_seen = now or utcnow()
        commit_or_unavailable(db, "upsert_presence")
        db.refresh(record)
        return record

    def heartbeat(self, db: Session, principal_id: str, now: datetime | None = None) -> PresenceRecord:
        """Assert that the principal is still connected."""
        return self.upsert_presence(db, principal_id, online=True, now=now)

    def mark_offline(
        self, db: Session, principal_id: str, now: datetime | None = None
    ) -> PresenceRecord | None:
        """Flip the principal offline.

        Returns:
            The updated record, or None when the principal is unknown or was
            already offline (duplicate calls are harmless).
        """
        principal = self.get_principal(db, principal_id)
        if principal is None:
            return None
        record = principal.presence
        if record is None or not record.online:
            return None
        record.online = False
        record.last_seen = now or utcnow()
        commit_or_unavailable(db, "mark_offline")
        db.refresh(record)
        return record

    def expire_stale(
        self,
        db: Session,
        now: datetime | None = None,
        timeout_seconds: float | None = None,
    ) -> list[PresenceRecord]:
        """Force offline every online record whose last heartbeat is too old."""
        timeout = settings.presence_timeout_seconds if timeout_seconds is None else timeout_seconds
        cutoff = (now or utcnow()) - timedelta(seconds=timeout)
        stale = (
            db.query(PresenceRecord)
            .filter(PresenceRecord.online.is_(True), PresenceRecord.last_seen < cutoff)
            .all()
        )
        if not stale:
            return []
        for record in stale:
            record.online = False
        commit_or_unavailable(db, "expire_presence")
        for record in stale:
            db.refresh(record)
        logger.info("Expired presence for %d principal(s)", len(stale))
        return stale

    def get_presence(self, db: Session, principal_id: str) -> PresenceRecord | None:
        return db.get(PresenceRecord, principal_id)

    def list_presence(self, db: Session) -> list[PresenceRecord]:
        """Return every presence record, online principals first."""
        return (
            db.query(PresenceRecord)
            .join(Principal)
            .options(joinedload(PresenceRecord.principal))
            .order_by(
                case((PresenceRecord.online.is_(True), 0), else_=1),
                Principal.display_name,
                Principal.principal_id,
            )
            .all()
        )

    @staticmethod
    def _merge_profile(principal: Principal, display_name: str | None, avatar_ref: str | None) -> None:
        if display_name is not None:
            principal.display_name = display_name
        if avatar_ref is not None:
            principal.avatar_ref = avatar_ref

    @staticmethod
    def _presence_for(db: Session, principal: Principal) -> PresenceRecord:
        record = principal.presence
        if record is None:
            record = PresenceRecord(principal_id=principal.principal_id, online=False, last_seen=utcnow())
            principal.presence = record
            db.add(record)
        return record
