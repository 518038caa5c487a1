"""
Domain models for the delegated OAuth credential.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TokenGrant(BaseModel):
    """Token endpoint response for either the code or the refresh grant."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None

    def expires_at(self, issued_at: datetime) -> datetime | None:
        """Absolute expiry, or ``None`` when the provider sent no lifetime."""
        if self.expires_in is None:
            return None
        return _as_utc(issued_at) + timedelta(seconds=self.expires_in)


class CredentialRecord(BaseModel):
    """The single persisted credential held for the service identity."""

    model_config = ConfigDict(frozen=True)

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None
    updated_at: Optional[datetime] = None

    @field_validator("expires_at", "updated_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @classmethod
    def from_grant(cls, grant: TokenGrant, *, issued_at: datetime) -> "CredentialRecord":
        return cls(
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at(issued_at),
            scope=grant.scope,
            token_type=grant.token_type,
            updated_at=issued_at,
        )

    def has_usable_access_token(
        self, now: datetime, skew: timedelta = timedelta(0)
    ) -> bool:
        """
        Local validity check that never touches the network.

        Without expiry metadata a non-empty access token counts as valid until
        an authorization failure invalidates it.
        """
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        return self.expires_at - skew > _as_utc(now)

    def merge_grant(self, grant: TokenGrant, *, issued_at: datetime) -> "CredentialRecord":
        """Apply a refresh response, keeping the refresh token when none is reissued."""
        return self.model_copy(
            update={
                "access_token": grant.access_token,
                "refresh_token": grant.refresh_token or self.refresh_token,
                "expires_at": grant.expires_at(issued_at),
                "scope": grant.scope or self.scope,
                "token_type": grant.token_type or self.token_type,
                "updated_at": _as_utc(issued_at),
            }
        )

    def without_access_token(self, *, updated_at: datetime) -> "CredentialRecord":
        return self.model_copy(
            update={
                "access_token": None,
                "expires_at": None,
                "updated_at": _as_utc(updated_at),
            }
        )


__all__ = ["CredentialRecord", "TokenGrant"]
