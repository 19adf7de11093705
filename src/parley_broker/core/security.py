"""Bearer token helpers built on python-jose."""

from __future__ import annotations

from datetime import timedelta

from jose import JWTError, jwt

from parley_broker.core.errors import Unauthorized
from parley_broker.core.settings import settings
from parley_broker.db.time import utcnow


def create_access_token(principal_id: str, expires_minutes: int | None = None) -> str:
    """Issue a signed access token whose subject is ``principal_id``."""
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "sub": principal_id,
        "exp": utcnow() + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Return the principal id carried by ``token``.

    Raises:
        Unauthorized: If the token is malformed, expired or carries no subject.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise Unauthorized("Could not validate credentials") from err

    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("Could not validate credentials")
    return str(subject)
