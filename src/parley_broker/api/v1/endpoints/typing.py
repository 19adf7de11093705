# src/parley_broker/api/v1/endpoints/typing.py
"""Typing indicator endpoints for the Parley API.

Failures here are best-effort: a dropped signal is logged by the broker and
reported to the caller as ``accepted: false`` rather than as an error.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from parley_broker.schemas.typing import TypingResponse, TypingUpdate

from ..dependencies import BrokerDep, CurrentPrincipalDep, SessionDep

router = APIRouter(prefix="/typing", tags=["typing"])


@router.get("", response_model=list[TypingResponse])
async def current_typers(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> list[TypingResponse]:
    """Return principals currently typing, excluding the caller."""
    signals = broker.current_typers(db, current.principal_id)
    return [TypingResponse.model_validate(signal) for signal in signals]


@router.put("")
async def set_typing(
    current: CurrentPrincipalDep,
    db: SessionDep,
    broker: BrokerDep,
    payload: TypingUpdate | None = None,
) -> dict[str, Any]:
    """Refresh the caller's typing signal."""
    user_name = payload.user_name if payload is not None else None
    signal = broker.set_typing(db, current.principal_id, user_name)
    return {"accepted": signal is not None}


@router.delete("")
async def clear_typing(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> dict[str, Any]:
    """Remove the caller's typing signal."""
    return {"cleared": broker.clear_typing(db, current.principal_id)}
