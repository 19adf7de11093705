# src/parley_broker/api/v1/endpoints/auth.py
"""Session endpoints for the Parley API.

Identity verification (OAuth and friends) happens upstream; this endpoint
records the principal and issues the bearer token used by every command.
"""

from __future__ import annotations

from fastapi import APIRouter

from parley_broker.core.security import create_access_token
from parley_broker.core.settings import settings
from parley_broker.schemas.principal import PrincipalResponse, SessionRequest, SessionResponse

from ..dependencies import BrokerDep, SessionDep

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/session", response_model=SessionResponse)
async def create_session(payload: SessionRequest, db: SessionDep, broker: BrokerDep) -> SessionResponse:
    """Sign in, registering the principal on first use."""
    principal = broker.sign_in(db, payload.principal_id, payload.display_name, payload.avatar_ref)
    return SessionResponse(
        access_token=create_access_token(principal.principal_id),
        principal=PrincipalResponse.model_validate(principal),
        typing_idle_seconds=settings.typing_idle_seconds,
        typing_ttl_seconds=settings.typing_ttl_seconds,
        presence_timeout_seconds=settings.presence_timeout_seconds,
    )
