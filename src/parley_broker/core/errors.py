"""Broker error taxonomy.

Every command failure surfaced to a caller is one of the exceptions below.
Each carries the HTTP status it maps to and a stable machine-readable code so
that the command API and the stream API report failures the same way.
"""

from __future__ import annotations

from fastapi import status


class BrokerError(RuntimeError):
    """Base exception for broker command failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "broker_error"
    retryable: bool = False

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class InvalidContent(BrokerError):
    """Message content is empty or malformed."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "invalid_content"


class NotFound(BrokerError):
    """The referenced entity does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class NotAuthor(BrokerError):
    """Only the author of a message may change or remove it."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "not_author"


class Unauthorized(BrokerError):
    """The command was issued without valid credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class Unavailable(BrokerError):
    """Transient storage or network failure; the caller may retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "unavailable"
    retryable = True


def error_payload(exc: BrokerError) -> dict[str, object]:
    """Return the JSON body used to report a broker error."""
    return {"detail": exc.detail, "code": exc.code, "retryable": exc.retryable}
