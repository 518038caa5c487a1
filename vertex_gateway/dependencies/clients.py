"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from datetime import timedelta
from functools import lru_cache

from vertex_gateway.clients import GoogleOAuthClient, InferenceGateway, OAuthStateEncoder
from vertex_gateway.core.config import get_settings
from vertex_gateway.services import (
    AuthorizationFlowHandler,
    CredentialStore,
    TokenCipherService,
    TokenLifecycleManager,
    build_credential_store,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Google client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.google.client_secret)


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.google.client_secret
    return TokenCipherService(secret=secret)


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the configured credential store."""
    settings = _settings()
    return build_credential_store(settings.storage, get_token_cipher_service())


@lru_cache()
def get_token_lifecycle_manager() -> TokenLifecycleManager:
    """Provide the process-wide token lifecycle manager."""
    settings = _settings()
    return TokenLifecycleManager(
        store=get_credential_store(),
        oauth_client=get_google_oauth_client(),
        expiry_skew=timedelta(seconds=settings.oauth.expiry_skew_seconds),
    )


def get_authorization_flow_handler() -> AuthorizationFlowHandler:
    """Build an authorization flow handler around the shared manager."""
    return AuthorizationFlowHandler(
        oauth_client=get_google_oauth_client(),
        token_manager=get_token_lifecycle_manager(),
    )


@lru_cache()
def get_inference_gateway() -> InferenceGateway:
    """Provide the Vertex AI inference gateway."""
    settings = _settings()
    return InferenceGateway(settings.vertex)


__all__ = [
    "get_authorization_flow_handler",
    "get_credential_store",
    "get_google_oauth_client",
    "get_inference_gateway",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_lifecycle_manager",
]
