from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from vertex_gateway.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from vertex_gateway.core.config import GoogleSettings, OAuthSettings
from vertex_gateway.core.errors import NotAuthorizedError, RefreshFailedError
from vertex_gateway.models.credentials import CredentialRecord, TokenGrant
from vertex_gateway.services.credential_store import (
    InMemoryCredentialStore,
    RecordCredentialStore,
)
from vertex_gateway.services.token_cipher import TokenCipherService
from vertex_gateway.services.token_lifecycle import TokenLifecycleManager


class DummyOAuthClient:
    def __init__(
        self,
        *,
        grant: TokenGrant | None = None,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.grant = grant or TokenGrant(access_token="refreshed-access", expires_in=3600)
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        self.calls.append(refresh_token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.grant


class FakeRecordBackend:
    def __init__(self) -> None:
        self._storage: dict[tuple[str, str], dict] = {}

    def put_item(self, item: dict) -> None:
        self._storage[(item["pk"], item["sk"])] = dict(item)

    def get_item(self, *, partition_key: str, sort_key: str) -> dict | None:
        return self._storage.get((partition_key, sort_key))


class SlowCredentialStore(InMemoryCredentialStore):
    def __init__(self, record: CredentialRecord | None = None, latency: float = 0.05) -> None:
        super().__init__(record)
        self.latency = latency

    async def get(self) -> CredentialRecord | None:
        await asyncio.sleep(self.latency)
        return await super().get()

    async def put(self, record: CredentialRecord) -> None:
        await asyncio.sleep(self.latency)
        await super().put(record)


def _past() -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=1)


def _future() -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=30)


@pytest.mark.asyncio
async def test_valid_token_is_returned_without_provider_call() -> None:
    store = InMemoryCredentialStore(
        CredentialRecord(access_token="live", refresh_token="r1", expires_at=_future())
    )
    oauth_client = DummyOAuthClient()
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.get_valid_access_token() == "live"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_token_without_expiry_metadata_is_not_refreshed() -> None:
    store = InMemoryCredentialStore(CredentialRecord(access_token="forever", refresh_token="r1"))
    oauth_client = DummyOAuthClient()
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.get_valid_access_token() == "forever"
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_empty_store_is_not_authorized_without_network() -> None:
    oauth_client = DummyOAuthClient()
    manager = TokenLifecycleManager(InMemoryCredentialStore(), oauth_client)

    with pytest.raises(NotAuthorizedError):
        await manager.get_valid_access_token()
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token_is_not_authorized() -> None:
    store = InMemoryCredentialStore(CredentialRecord(access_token="stale", expires_at=_past()))
    oauth_client = DummyOAuthClient()
    manager = TokenLifecycleManager(store, oauth_client)

    with pytest.raises(NotAuthorizedError):
        await manager.get_valid_access_token()
    assert oauth_client.calls == []


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_and_refresh_token_preserved() -> None:
    store = InMemoryCredentialStore(
        CredentialRecord(access_token="stale", refresh_token="r1", expires_at=_past())
    )
    oauth_client = DummyOAuthClient(grant=TokenGrant(access_token="a2", expires_in=3600))
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.get_valid_access_token() == "a2"

    stored = await store.get()
    assert stored is not None
    assert stored.access_token == "a2"
    assert stored.refresh_token == "r1"
    assert stored.expires_at is not None and stored.expires_at > datetime.now(timezone.utc)


@pytest.mark.asyncio
async def test_expiry_skew_triggers_early_refresh() -> None:
    soon = datetime.now(timezone.utc) + timedelta(seconds=30)
    store = InMemoryCredentialStore(
        CredentialRecord(access_token="almost", refresh_token="r1", expires_at=soon)
    )
    oauth_client = DummyOAuthClient()
    manager = TokenLifecycleManager(store, oauth_client, expiry_skew=timedelta(minutes=5))

    assert await manager.get_valid_access_token() == "refreshed-access"
    assert oauth_client.calls == ["r1"]


@pytest.mark.asyncio
async def test_concurrent_callers_share_a_single_refresh() -> None:
    store = InMemoryCredentialStore(
        CredentialRecord(access_token="stale", refresh_token="r1", expires_at=_past())
    )
    oauth_client = DummyOAuthClient(
        grant=TokenGrant(access_token="a1", expires_in=3600), delay=0.05
    )
    manager = TokenLifecycleManager(store, oauth_client)

    tokens = await asyncio.gather(*(manager.get_valid_access_token() for _ in range(10)))

    assert tokens == ["a1"] * 10
    assert oauth_client.calls == ["r1"]


@pytest.mark.asyncio
async def test_concurrent_callers_share_the_same_refresh_failure() -> None:
    store = InMemoryCredentialStore(CredentialRecord(refresh_token="revoked"))
    failure = OAuthTokenExchangeError(
        "Token endpoint returned status 400.",
        status_code=400,
        payload={"error": "invalid_grant"},
    )
    oauth_client = DummyOAuthClient(error=failure, delay=0.05)
    manager = TokenLifecycleManager(store, oauth_client)

    results = await asyncio.gather(
        *(manager.get_valid_access_token() for _ in range(5)), return_exceptions=True
    )

    assert all(isinstance(result, RefreshFailedError) for result in results)
    assert all(result.provider_payload == {"error": "invalid_grant"} for result in results)
    assert oauth_client.calls == ["revoked"]

    # The failure is not cached: a later call reaches the provider again.
    with pytest.raises(RefreshFailedError):
        await manager.get_valid_access_token()
    assert len(oauth_client.calls) == 2


@pytest.mark.asyncio
async def test_transport_failure_is_reported_as_refresh_failed() -> None:
    store = InMemoryCredentialStore(CredentialRecord(refresh_token="r1"))
    oauth_client = DummyOAuthClient(error=OAuthTokenExchangeError("Token endpoint unreachable"))
    manager = TokenLifecycleManager(store, oauth_client)

    with pytest.raises(RefreshFailedError):
        await manager.get_valid_access_token()

    stored = await store.get()
    assert stored == CredentialRecord(refresh_token="r1")


@pytest.mark.asyncio
async def test_caller_timeout_does_not_hold_lock_or_abort_refresh() -> None:
    store = InMemoryCredentialStore(CredentialRecord(refresh_token="r1"))
    oauth_client = DummyOAuthClient(
        grant=TokenGrant(access_token="a1", expires_in=3600), delay=0.2
    )
    manager = TokenLifecycleManager(store, oauth_client)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(manager.get_valid_access_token(), timeout=0.01)

    assert not manager._lock.locked()
    assert await manager.get_valid_access_token() == "a1"
    assert oauth_client.calls == ["r1"]


@pytest.mark.asyncio
async def test_refresh_forces_new_token_even_when_current_is_valid() -> None:
    store = InMemoryCredentialStore(
        CredentialRecord(access_token="live", refresh_token="r1", expires_at=_future())
    )
    oauth_client = DummyOAuthClient(grant=TokenGrant(access_token="forced"))
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.refresh() == "forced"
    assert oauth_client.calls == ["r1"]
    assert await manager.get_valid_access_token() == "forced"


@pytest.mark.asyncio
async def test_invalidate_clears_matching_token_and_next_call_refreshes() -> None:
    store = InMemoryCredentialStore(CredentialRecord(access_token="rejected", refresh_token="r1"))
    oauth_client = DummyOAuthClient(grant=TokenGrant(access_token="a2", expires_in=3600))
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.invalidate("some-other-token") is False
    assert await manager.invalidate("rejected") is True

    stored = await store.get()
    assert stored is not None
    assert stored.access_token is None
    assert stored.refresh_token == "r1"

    assert await manager.get_valid_access_token() == "a2"
    assert oauth_client.calls == ["r1"]


@pytest.mark.asyncio
async def test_store_overwrites_existing_record() -> None:
    store = InMemoryCredentialStore(CredentialRecord(access_token="old", refresh_token="r0"))
    manager = TokenLifecycleManager(store, DummyOAuthClient())

    await manager.store(CredentialRecord(access_token="new"))

    assert await store.get() == CredentialRecord(access_token="new")


@pytest.mark.asyncio
async def test_invalidate_during_refresh_keeps_rotated_refresh_token() -> None:
    store = SlowCredentialStore(
        CredentialRecord(access_token="A", refresh_token="R1", expires_at=_past())
    )
    oauth_client = DummyOAuthClient(
        grant=TokenGrant(access_token="B", refresh_token="R2", expires_in=3600), delay=0.05
    )
    manager = TokenLifecycleManager(store, oauth_client)

    refreshing = asyncio.create_task(manager.get_valid_access_token())
    await asyncio.sleep(0.11)
    invalidated = await manager.invalidate("A")

    assert await refreshing == "B"
    assert invalidated is False
    final = await store.get()
    assert final is not None
    assert final.access_token == "B"
    assert final.refresh_token == "R2"


@pytest.mark.asyncio
async def test_store_during_refresh_is_written_after_refresh_persists() -> None:
    store = SlowCredentialStore(
        CredentialRecord(access_token="A", refresh_token="R1", expires_at=_past())
    )
    oauth_client = DummyOAuthClient(
        grant=TokenGrant(access_token="B", refresh_token="R2", expires_in=3600), delay=0.05
    )
    manager = TokenLifecycleManager(store, oauth_client)
    reauthorized = CredentialRecord(access_token="C", refresh_token="R3", expires_at=_future())

    refreshing = asyncio.create_task(manager.get_valid_access_token())
    await asyncio.sleep(0.11)
    await manager.store(reauthorized)

    assert await refreshing == "B"
    assert oauth_client.calls == ["R1"]
    assert await store.get() == reauthorized


@pytest.mark.asyncio
async def test_seeded_refresh_token_end_to_end_against_token_endpoint() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"access_token": "a1", "expires_in": 3600})

    oauth_client = GoogleOAuthClient(
        GoogleSettings(
            GOOGLE_CLIENT_ID="client",
            GOOGLE_CLIENT_SECRET="secret",
            GOOGLE_REDIRECT_URI="https://example.com/oauth2callback",
        ),
        OAuthSettings(),
        transport=httpx.MockTransport(handler),
    )
    backend = FakeRecordBackend()
    cipher = TokenCipherService(secret="secret-key")
    store = RecordCredentialStore(backend, cipher)
    await store.put(CredentialRecord(refresh_token="r1"))
    manager = TokenLifecycleManager(store, oauth_client)

    assert await manager.get_valid_access_token() == "a1"
    assert await manager.get_valid_access_token() == "a1"

    assert len(requests) == 1
    form = parse_qs(requests[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["r1"]

    persisted = await store.get()
    assert persisted is not None
    assert persisted.refresh_token == "r1"
    assert persisted.access_token == "a1"
