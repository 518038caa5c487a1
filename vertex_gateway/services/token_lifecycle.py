"""
Lifecycle management for the delegated Google OAuth credential.

Every inbound request asks the manager for a usable access token. The manager
answers from the persisted record when the token is still valid and otherwise
drives a refresh against the identity provider. Refreshes are single-flight:
concurrent callers share one provider call and its outcome.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from vertex_gateway.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from vertex_gateway.core.errors import NotAuthorizedError, RefreshFailedError
from vertex_gateway.models.credentials import CredentialRecord
from vertex_gateway.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenLifecycleManager:
    """Owns expiry decisions and refreshes for the single stored credential."""

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: GoogleOAuthClient,
        *,
        expiry_skew: timedelta = timedelta(0),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._skew = expiry_skew
        self._clock = clock
        self._lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Future[CredentialRecord]] = None

    async def get_valid_access_token(self) -> str:
        """Return an access token usable at the instant of return."""
        record = await self._store.get()
        if record is None:
            raise NotAuthorizedError(
                "No credential stored. Complete the authorization flow via /auth."
            )
        if record.has_usable_access_token(self._clock(), self._skew):
            return record.access_token  # type: ignore[return-value]
        if not record.refresh_token:
            raise NotAuthorizedError(
                "Access token expired and no refresh token is available. Re-authorize via /auth."
            )

        refreshed = await self._refresh_single_flight(force=False)
        return refreshed.access_token  # type: ignore[return-value]

    async def refresh(self) -> str:
        """Refresh unconditionally, joining any refresh already in flight."""
        refreshed = await self._refresh_single_flight(force=True)
        return refreshed.access_token  # type: ignore[return-value]

    async def store(self, record: CredentialRecord) -> None:
        """Overwrite the persisted record once any in-flight refresh has persisted."""
        async with self._lock:
            await self._wait_for_inflight()
            await self._store.put(record)

    async def invalidate(self, access_token: str) -> bool:
        """
        Discard ``access_token`` after the downstream API rejected it.

        The refresh token is kept, so the next request refreshes. Returns
        whether the stored record was changed.
        """
        async with self._lock:
            await self._wait_for_inflight()
            record = await self._store.get()
            if record is None or record.access_token != access_token:
                return False
            await self._store.put(record.without_access_token(updated_at=self._clock()))
        logger.info("Stored access token invalidated after an authorization failure.")
        return True

    async def _refresh_single_flight(self, *, force: bool) -> CredentialRecord:
        async with self._lock:
            task = self._inflight
            if task is None or task.done():
                record = await self._store.get()
                if record is None:
                    raise NotAuthorizedError(
                        "No credential stored. Complete the authorization flow via /auth."
                    )
                if not force and record.has_usable_access_token(self._clock(), self._skew):
                    # Another caller refreshed while this one waited on the lock.
                    return record
                if not record.refresh_token:
                    raise NotAuthorizedError(
                        "No refresh token is available. Re-authorize via /auth."
                    )
                task = asyncio.ensure_future(self._perform_refresh(record))
                task.add_done_callback(self._release_inflight)
                self._inflight = task

        # Shielded so a cancelled caller never aborts the refresh others await.
        return await asyncio.shield(task)

    async def _wait_for_inflight(self) -> None:
        # Caller holds the lock, so no new refresh can start until it writes.
        task = self._inflight
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _release_inflight(self, task: asyncio.Future[CredentialRecord]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Marks the outcome retrieved even when every waiter was cancelled.
            task.exception()

    async def _perform_refresh(self, record: CredentialRecord) -> CredentialRecord:
        logger.info("Refreshing access token with the identity provider.")
        issued_at = self._clock()
        try:
            grant = await self._oauth.refresh_token(record.refresh_token)  # type: ignore[arg-type]
        except OAuthTokenExchangeError as exc:
            logger.warning("Access token refresh failed: %s", exc)
            raise RefreshFailedError(
                f"Identity provider rejected the refresh: {exc}",
                provider_payload=exc.payload,
            ) from exc

        merged = record.merge_grant(grant, issued_at=issued_at)
        await self._store.put(merged)
        logger.info(
            "Access token refreshed (expires_at=%s, refresh_token_rotated=%s).",
            merged.expires_at.isoformat() if merged.expires_at else "untracked",
            bool(grant.refresh_token),
        )
        return merged


__all__ = ["TokenLifecycleManager"]
