# src/parley_broker/api/v1/endpoints/messages.py
"""Message endpoints for the Parley API."""

from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from parley_broker.schemas.message import (
    MessageCreate,
    MessageEdit,
    MessageResponse,
    ReactionToggle,
)

from ..dependencies import BrokerDep, CurrentPrincipalDep, SessionDep

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=list[MessageResponse])
async def list_messages(
    current: CurrentPrincipalDep,
    db: SessionDep,
    broker: BrokerDep,
    limit: int | None = Query(None, ge=1, le=1000),
) -> list[MessageResponse]:
    """Return messages in log order (oldest first)."""
    return [MessageResponse.model_validate(m) for m in broker.list_messages(db, limit=limit)]


@router.get("/pinned", response_model=list[MessageResponse])
async def list_pinned(current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep) -> list[MessageResponse]:
    """Return pinned messages in log order."""
    return [MessageResponse.model_validate(m) for m in broker.list_pinned(db)]


@router.get("/{message_id}", response_model=MessageResponse)
async def get_message(
    message_id: int, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    return MessageResponse.model_validate(broker.messages.get(db, message_id))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
async def send_message(
    payload: MessageCreate,
    current: CurrentPrincipalDep,
    db: SessionDep,
    broker: BrokerDep,
) -> MessageResponse:
    """Append a message authored by the caller."""
    message = broker.send(db, current.principal_id, payload)
    return MessageResponse.model_validate(message)


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    payload: MessageEdit,
    current: CurrentPrincipalDep,
    db: SessionDep,
    broker: BrokerDep,
) -> MessageResponse:
    """Replace the body of one of the caller's messages."""
    message = broker.edit(db, message_id, current.principal_id, payload.body)
    return MessageResponse.model_validate(message)


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    message_id: int, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> Response:
    """Hard-delete one of the caller's messages."""
    broker.delete(db, message_id, current.principal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{message_id}/reactions", response_model=MessageResponse)
async def toggle_reaction(
    message_id: int,
    payload: ReactionToggle,
    current: CurrentPrincipalDep,
    db: SessionDep,
    broker: BrokerDep,
) -> MessageResponse:
    """Toggle the caller's reaction. Not retry-safe; prefer PUT/DELETE below."""
    message = broker.react(db, message_id, current.principal_id, payload.emoji)
    return MessageResponse.model_validate(message)


@router.put("/{message_id}/reactions/{emoji}", response_model=MessageResponse)
async def add_reaction(
    message_id: int, emoji: str, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    message = broker.set_reaction(db, message_id, current.principal_id, emoji, desired=True)
    return MessageResponse.model_validate(message)


@router.delete("/{message_id}/reactions/{emoji}", response_model=MessageResponse)
async def remove_reaction(
    message_id: int, emoji: str, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    message = broker.set_reaction(db, message_id, current.principal_id, emoji, desired=False)
    return MessageResponse.model_validate(message)


@router.put("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: int, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    """Add the caller to the message's read set."""
    message = broker.mark_read(db, message_id, current.principal_id)
    return MessageResponse.model_validate(message)


@router.put("/{message_id}/pin", response_model=MessageResponse)
async def pin_message(
    message_id: int, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    message = broker.pin(db, message_id, current.principal_id)
    return MessageResponse.model_validate(message)


@router.delete("/{message_id}/pin", response_model=MessageResponse)
async def unpin_message(
    message_id: int, current: CurrentPrincipalDep, db: SessionDep, broker: BrokerDep
) -> MessageResponse:
    message = broker.unpin(db, message_id, current.principal_id)
    return MessageResponse.model_validate(message)
