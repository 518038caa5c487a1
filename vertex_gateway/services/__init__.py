"""Service layer exports."""

from .authorization_flow import AuthorizationFlowHandler
from .credential_store import (
    CredentialStore,
    InMemoryCredentialStore,
    RecordCredentialStore,
    build_credential_store,
)
from .token_cipher import TokenCipherService
from .token_lifecycle import TokenLifecycleManager

__all__ = [
    "AuthorizationFlowHandler",
    "CredentialStore",
    "InMemoryCredentialStore",
    "RecordCredentialStore",
    "TokenCipherService",
    "TokenLifecycleManager",
    "build_credential_store",
]
