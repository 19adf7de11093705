"""Shared API dependencies for authentication and common functionality."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from parley_broker.core.errors import Unauthorized
from parley_broker.core.security import decode_access_token
from parley_broker.db.session import get_db
from parley_broker.models import Principal
from parley_broker.services.blob_store import BlobStore, get_blob_store
from parley_broker.services.broker import ChatBroker, get_broker

# HTTP Bearer scheme; missing credentials are reported as ``Unauthorized``
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_broker_dep() -> ChatBroker:
    """Return the shared broker."""
    return get_broker()


def get_blob_store_dep() -> BlobStore:
    return get_blob_store()


BrokerDep = Annotated[ChatBroker, Depends(get_broker_dep)]
BlobStoreDep = Annotated[BlobStore, Depends(get_blob_store_dep)]


def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: SessionDep,
    broker: BrokerDep,
) -> Principal:
    """Get the current authenticated principal from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent
        db: Database session
        broker: Broker whose registry knows the principal

    Returns:
        Principal for the authenticated caller

    Raises:
        Unauthorized: If the token is missing, invalid or names an unknown principal
    """
    if credentials is None:
        raise Unauthorized("Not authenticated")
    principal_id = decode_access_token(credentials.credentials)
    return broker.registry.require_principal(db, principal_id)


# Type alias for current principal dependency
CurrentPrincipalDep = Annotated[Principal, Depends(get_current_principal)]
