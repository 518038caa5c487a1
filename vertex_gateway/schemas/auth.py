"""Schemas related to OAuth flows."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AuthorizationUrlResponse(BaseModel):
    """Consent URL returned when the caller opts out of the redirect."""

    authorization_url: str = Field(..., description="Google consent screen URL.")
    state: str = Field(..., description="Signed state token echoed on callback.")


class AuthorizationResult(BaseModel):
    """Outcome of a completed authorization code exchange."""

    status: str = "connected"
    expires_at: Optional[datetime] = Field(
        None, description="Expiry of the initial access token, when reported."
    )
    has_refresh_token: bool = Field(
        ..., description="Whether the provider issued a refresh token."
    )


__all__ = ["AuthorizationResult", "AuthorizationUrlResponse"]
