"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_flow_handler,
    get_credential_store,
    get_google_oauth_client,
    get_inference_gateway,
    get_oauth_state_encoder,
    get_token_cipher_service,
    get_token_lifecycle_manager,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_flow_handler",
    "get_credential_store",
    "get_google_oauth_client",
    "get_inference_gateway",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "get_token_lifecycle_manager",
]
