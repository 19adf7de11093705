"""Principal, session and presence Pydantic schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from parley_broker.db.time import as_utc


class SessionRequest(BaseModel):
    """Sign-in request; registers the principal on first use."""

    principal_id: str = Field(..., min_length=1, max_length=320, description="Stable email or account id")
    display_name: str | None = Field(None, max_length=120)
    avatar_ref: str | None = Field(None, max_length=2048)

    model_config = ConfigDict(extra="forbid")


class PrincipalResponse(BaseModel):
    principal_id: str
    display_name: str | None
    avatar_ref: str | None

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    """Bearer token issued for a principal."""

    access_token: str
    token_type: str = "bearer"
    principal: PrincipalResponse
    typing_idle_seconds: float
    typing_ttl_seconds: float
    presence_timeout_seconds: float


class PresenceUpdate(BaseModel):
    """Merge-write of a principal's profile and online flag."""

    display_name: str | None = Field(None, max_length=120)
    avatar_ref: str | None = Field(None, max_length=2048)
    online: bool = True

    model_config = ConfigDict(extra="forbid")


class PresenceResponse(BaseModel):
    """Presence record joined with the principal's profile."""

    principal_id: str
    display_name: str | None = None
    avatar_ref: str | None = None
    online: bool
    last_seen: datetime

    @model_validator(mode="before")
    @classmethod
    def _join_principal(cls, data: object) -> object:
        if isinstance(data, dict):
            return data
        principal = getattr(data, "principal", None)
        return {
            "principal_id": data.principal_id,
            "display_name": principal.display_name if principal is not None else None,
            "avatar_ref": principal.avatar_ref if principal is not None else None,
            "online": data.online,
            "last_seen": as_utc(data.last_seen),
        }
