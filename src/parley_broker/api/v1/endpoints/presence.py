# src/parley_broker/api/v1/endpoints/presence.py
"""Presence endpoints for the Parley API."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from parley_broker.schemas.principal import PresenceResponse, PresenceUpdate

from ..dependencies import BrokerDep, CurrentPrincipalDep, SessionDep

router = APIRouter(prefix="/presence", tags=["presence"])


@router.get("", response_model=list[PresenceResponse])
async def list_presence(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> list[PresenceResponse]:
    """Return all principals, online first."""
    return [PresenceResponse.model_validate(record) for record in broker.list_presence(db)]


@router.put("")
async def upsert_presence(
    payload: PresenceUpdate, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> dict[str, Any]:
    """Merge-write the caller's profile and online flag."""
    record = broker.upsert_presence(
        db,
        current.principal_id,
        display_name=payload.display_name,
        avatar_ref=payload.avatar_ref,
        online=payload.online,
    )
    return {"accepted": record is not None}


@router.post("/heartbeat")
async def heartbeat(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> dict[str, Any]:
    """Keep the caller online for another presence timeout window."""
    record = broker.heartbeat(db, current.principal_id)
    return {"accepted": record is not None}


@router.post("/offline")
async def mark_offline(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> dict[str, Any]:
    """Flip the caller offline (page hide, explicit sign-out)."""
    broker.mark_offline(db, current.principal_id)
    return {"accepted": True}
