"""
Google OAuth utilities.

These helpers build the consent URL, sign the OAuth state and talk to the
token endpoint for both the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime, timezone
from hashlib import sha256
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from vertex_gateway.core.config import GoogleSettings, OAuthSettings
from vertex_gateway.core.logging import truncate
from vertex_gateway.models.credentials import TokenGrant

logger = logging.getLogger(__name__)


class InvalidStateError(ValueError):
    """Raised when an OAuth state token is forged, malformed or stale."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(
        self,
        token: str,
        *,
        max_age_seconds: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidStateError("Malformed OAuth state token.") from exc

        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidStateError("Invalid OAuth state signature.")

        payload = json.loads(serialized)
        if max_age_seconds is None:
            return payload

        issued_at_raw = payload.get("issued_at")
        if not issued_at_raw:
            raise InvalidStateError("Missing issued_at in state token.")
        try:
            issued_at = datetime.fromisoformat(issued_at_raw)
        except ValueError as exc:
            raise InvalidStateError("Invalid issued_at in state token.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)

        current = now or datetime.now(timezone.utc)
        if (current - issued_at).total_seconds() > max_age_seconds:
            raise InvalidStateError("OAuth state token has expired.")
        return payload


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint fails or returns an unusable payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class GoogleOAuthClient:
    """Build Google authorization URLs and call the token endpoint."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    def build_authorization_url(
        self,
        scopes: Iterable[str] | None = None,
        *,
        state: str | None = None,
        access_type: str = "offline",
    ) -> str:
        """Construct the Google OAuth consent URL."""
        requested = sorted(set(scopes if scopes is not None else self._oauth.scopes))
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(requested),
            "access_type": access_type,
            "include_granted_scopes": "true",
            "prompt": "consent",
        }
        if state is not None:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for the initial token set."""
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        return await self._request_token(payload)

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token."""
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        return await self._request_token(payload)

    async def _request_token(self, payload: Dict[str, str]) -> TokenGrant:
        grant_type = payload["grant_type"]
        try:
            async with httpx.AsyncClient(
                timeout=self._oauth.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(
                f"Token endpoint unreachable during {grant_type} grant: {exc}"
            ) from exc

        body = _decode_body(response)
        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Token endpoint rejected %s grant with status %s: %s",
                grant_type,
                response.status_code,
                truncate(response.text),
            )
            raise OAuthTokenExchangeError(
                f"Token endpoint returned status {response.status_code}.",
                status_code=response.status_code,
                payload=body,
            )

        if not isinstance(body, dict):
            raise OAuthTokenExchangeError(
                "Token endpoint returned a non-JSON payload.",
                status_code=response.status_code,
                payload=body,
            )
        try:
            return TokenGrant.model_validate(body)
        except ValidationError as exc:
            raise OAuthTokenExchangeError(
                "Incomplete token payload returned from Google.",
                status_code=response.status_code,
                payload={key: value for key, value in body.items() if "token" not in key},
            ) from exc


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = [
    "GoogleOAuthClient",
    "InvalidStateError",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
]
