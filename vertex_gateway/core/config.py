"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the token lifecycle
manager and the seeding script share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(
    populate_by_name=True, extra="ignore", protected_namespaces=()
)


class GoogleSettings(BaseSettings):
    """Client registration used against the Google identity provider."""

    model_config = _SETTINGS_CONFIG

    client_id: str = Field(..., validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="GOOGLE_REDIRECT_URI")


class OAuthSettings(BaseSettings):
    """OAuth flow and token lifecycle configuration."""

    model_config = _SETTINGS_CONFIG

    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        ("https://www.googleapis.com/auth/cloud-platform",),
        validation_alias="OAUTH_SCOPES",
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    require_state: bool = Field(
        False,
        validation_alias="OAUTH_REQUIRE_STATE",
        description="Reject callbacks that do not echo a signed state token.",
    )
    expiry_skew_seconds: int = Field(
        0,
        ge=0,
        validation_alias="OAUTH_EXPIRY_SKEW_SECONDS",
        description="Treat access tokens as expired this many seconds early.",
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class VertexSettings(BaseSettings):
    """Configuration for the Vertex AI generateContent endpoint."""

    model_config = _SETTINGS_CONFIG

    project_id: str = Field(..., validation_alias="VERTEX_PROJECT_ID")
    location: str = Field("us-central1", validation_alias="VERTEX_LOCATION")
    model_id: str = Field("gemini-1.5-pro-002", validation_alias="VERTEX_MODEL_ID")
    endpoint_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="VERTEX_ENDPOINT_URL",
        description="Full generateContent URL; derived from project/location/model when omitted.",
    )
    retrieval_mode: str = Field("MODE_DYNAMIC", validation_alias="VERTEX_RETRIEVAL_MODE")
    dynamic_threshold: float = Field(0.7, validation_alias="VERTEX_DYNAMIC_THRESHOLD")
    placeholder_answer: str = Field(
        "No response", validation_alias="VERTEX_PLACEHOLDER_ANSWER"
    )
    http_timeout_seconds: float = Field(60.0, validation_alias="VERTEX_HTTP_TIMEOUT")

    def generate_content_url(self) -> str:
        if self.endpoint_url is not None:
            return str(self.endpoint_url)
        return (
            f"https://{self.location}-aiplatform.googleapis.com/v1beta1/"
            f"projects/{self.project_id}/locations/{self.location}/"
            f"publishers/google/models/{self.model_id}:generateContent"
        )


class StorageSettings(BaseSettings):
    """Where the credential record is persisted."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["memory", "sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="CREDENTIAL_STORE_BACKEND"
    )
    sqlite_path: str = Field(
        "data/credentials.db", validation_alias="CREDENTIAL_SQLITE_PATH"
    )
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    identity: str = Field(
        "default",
        validation_alias="CREDENTIAL_IDENTITY",
        description="Fixed identifier of the single service identity record.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _SETTINGS_CONFIG

    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    port: int = Field(3000, validation_alias="PORT")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting browsers after authorization.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    vertex: VertexSettings = Field(default_factory=VertexSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "VertexSettings",
    "get_settings",
]
