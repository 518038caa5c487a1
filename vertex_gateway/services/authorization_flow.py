"""One-time bootstrap of the credential through the authorization-code grant."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from vertex_gateway.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from vertex_gateway.core.errors import ExchangeFailedError
from vertex_gateway.models.credentials import CredentialRecord
from vertex_gateway.services.token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class AuthorizationFlowHandler:
    """Builds the consent URL and turns the returned code into a stored credential."""

    def __init__(
        self,
        oauth_client: GoogleOAuthClient,
        token_manager: TokenLifecycleManager,
    ) -> None:
        self._oauth = oauth_client
        self._tokens = token_manager

    def build_authorization_url(
        self, scopes: Iterable[str] | None = None, *, state: Optional[str] = None
    ) -> str:
        return self._oauth.build_authorization_url(scopes, state=state)

    async def exchange_code(self, code: str) -> CredentialRecord:
        """Exchange ``code`` once; failures carry the provider payload and are not retried."""
        issued_at = datetime.now(timezone.utc)
        try:
            grant = await self._oauth.exchange_authorization_code(code)
        except OAuthTokenExchangeError as exc:
            logger.warning("Authorization code exchange failed: %s", exc)
            raise ExchangeFailedError(
                "Failed to exchange authorization code.",
                provider_payload=exc.payload,
            ) from exc

        record = CredentialRecord.from_grant(grant, issued_at=issued_at)
        if not record.refresh_token:
            logger.warning(
                "Provider issued no refresh token; the credential cannot be renewed after expiry."
            )
        await self._tokens.store(record)
        logger.info("Authorization completed; credential stored.")
        return record


__all__ = ["AuthorizationFlowHandler"]
