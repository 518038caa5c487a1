"""
Persistence adapters for the single credential record.

The token lifecycle manager only sees the ``CredentialStore`` protocol; the
concrete adapter is chosen from ``StorageSettings.backend``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from vertex_gateway.clients.dynamodb import DynamoDBClient
from vertex_gateway.clients.sqlite_store import SQLiteStore
from vertex_gateway.core.config import StorageSettings
from vertex_gateway.models.credentials import CredentialRecord
from vertex_gateway.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Get/put capability set over exactly one credential record."""

    async def get(self) -> Optional[CredentialRecord]:
        ...

    async def put(self, record: CredentialRecord) -> None:
        ...


class RecordBackend(Protocol):
    """Key/value item store shared by ``SQLiteStore`` and ``DynamoDBClient``."""

    def get_item(self, *, partition_key: str, sort_key: str) -> Optional[Dict[str, Any]]:
        ...

    def put_item(self, item: Dict[str, Any]) -> None:
        ...


class InMemoryCredentialStore:
    """Process-lifetime store; everything is lost on restart."""

    def __init__(self, record: Optional[CredentialRecord] = None) -> None:
        self._record = record

    async def get(self) -> Optional[CredentialRecord]:
        return self._record

    async def put(self, record: CredentialRecord) -> None:
        self._record = record


class RecordCredentialStore:
    """Durable store persisting an encrypted record under a fixed key."""

    SORT_KEY = "oauth#google"

    def __init__(
        self,
        backend: RecordBackend,
        cipher: TokenCipherService,
        *,
        identity: str = "default",
    ) -> None:
        self._backend = backend
        self._cipher = cipher
        self._partition_key = f"credential#{identity}"

    async def get(self) -> Optional[CredentialRecord]:
        item = await asyncio.to_thread(
            self._backend.get_item,
            partition_key=self._partition_key,
            sort_key=self.SORT_KEY,
        )
        if not item:
            return None
        return self._deserialize(item)

    async def put(self, record: CredentialRecord) -> None:
        await asyncio.to_thread(self._backend.put_item, self._serialize(record))
        logger.debug("Persisted credential record %s", self._partition_key)

    def _serialize(self, record: CredentialRecord) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "pk": self._partition_key,
            "sk": self.SORT_KEY,
            "access_token_encrypted": self._cipher.encrypt(record.access_token),
            "refresh_token_encrypted": self._cipher.encrypt(record.refresh_token),
            "expires_at": _isoformat(record.expires_at),
            "scope": record.scope,
            "token_type": record.token_type,
            "updated_at": _isoformat(record.updated_at),
        }
        # DynamoDB rejects empty attributes; absence is the null signal.
        return {key: value for key, value in item.items() if value is not None}

    def _deserialize(self, item: Dict[str, Any]) -> CredentialRecord:
        return CredentialRecord(
            access_token=self._cipher.decrypt(item.get("access_token_encrypted")),
            refresh_token=self._cipher.decrypt(item.get("refresh_token_encrypted")),
            expires_at=item.get("expires_at"),
            scope=item.get("scope"),
            token_type=item.get("token_type"),
            updated_at=item.get("updated_at"),
        )


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def build_credential_store(
    settings: StorageSettings, cipher: TokenCipherService
) -> CredentialStore:
    """Instantiate the adapter selected by configuration."""
    if settings.backend == "memory":
        logger.warning("Using in-memory credential store; the grant will not survive restarts.")
        return InMemoryCredentialStore()

    backend: RecordBackend
    if settings.backend == "dynamodb":
        backend = DynamoDBClient(settings)
    else:
        backend = SQLiteStore(settings.sqlite_path)
    return RecordCredentialStore(backend, cipher, identity=settings.identity)


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "RecordBackend",
    "RecordCredentialStore",
    "build_credential_store",
]
