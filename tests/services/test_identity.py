"""Tests for the identity and presence registry."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from parley_broker.core.errors import Unauthorized
from parley_broker.models import Principal
from parley_broker.services.broker import ChatBroker
from parley_broker.services.identity import IdentityRegistry
from tests.conftest import T0


@pytest.fixture()
def registry(broker: ChatBroker) -> IdentityRegistry:
    return broker.registry


def test_register_creates_offline_presence(registry: IdentityRegistry, db_session: Session) -> None:
    principal = registry.register(db_session, "carol@example.com", "Carol", "https://img.example.com/c.png")

    assert principal.label == "Carol"
    assert principal.presence is not None
    assert principal.presence.online is False


def test_register_again_updates_profile_only_for_given_fields(
    registry: IdentityRegistry, db_session: Session, alice: Principal
) -> None:
    registry.register(db_session, alice.principal_id, avatar_ref="avatar-2")

    principal = registry.get_principal(db_session, alice.principal_id)
    assert principal.display_name == "Alice"
    assert principal.avatar_ref == "avatar-2"


def test_label_falls_back_to_principal_id(registry: IdentityRegistry, db_session: Session) -> None:
    principal = registry.register(db_session, "anon@example.com")

    assert principal.label == "anon@example.com"


def test_require_principal_rejects_unknown(registry: IdentityRegistry, db_session: Session) -> None:
    with pytest.raises(Unauthorized):
        registry.require_principal(db_session, "ghost@example.com")


def test_upsert_presence_is_last_write_wins(
    registry: IdentityRegistry, db_session: Session, alice: Principal
) -> None:
    registry.upsert_presence(db_session, alice.principal_id, online=True, now=T0)
    record = registry.upsert_presence(
        db_session, alice.principal_id, display_name="Alice L.", online=False, now=T0 + timedelta(seconds=1)
    )

    assert record.online is False
    assert record.principal.display_name == "Alice L."


def test_mark_offline_is_idempotent(registry: IdentityRegistry, db_session: Session, alice: Principal) -> None:
    registry.heartbeat(db_session, alice.principal_id, now=T0)

    first = registry.mark_offline(db_session, alice.principal_id, now=T0)
    second = registry.mark_offline(db_session, alice.principal_id, now=T0)

    assert first is not None and first.online is False
    assert second is None
    assert registry.mark_offline(db_session, "ghost@example.com") is None


def test_expire_stale_forces_offline_after_timeout(
    registry: IdentityRegistry, db_session: Session, alice: Principal, bob: Principal
) -> None:
    registry.heartbeat(db_session, alice.principal_id, now=T0)
    registry.heartbeat(db_session, bob.principal_id, now=T0 + timedelta(seconds=50))

    expired = registry.expire_stale(db_session, now=T0 + timedelta(seconds=61), timeout_seconds=60)

    assert [record.principal_id for record in expired] == [alice.principal_id]
    assert registry.get_presence(db_session, alice.principal_id).online is False
    assert registry.get_presence(db_session, bob.principal_id).online is True


def test_list_presence_puts_online_first(
    registry: IdentityRegistry, db_session: Session, alice: Principal, bob: Principal
) -> None:
    registry.register(db_session, "aaron@example.com", "Aaron")
    registry.heartbeat(db_session, bob.principal_id)

    names = [record.principal.display_name for record in registry.list_presence(db_session)]

    assert names == ["Bob", "Aaron", "Alice"]
