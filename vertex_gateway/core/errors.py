"""
Error taxonomy shared by the credential lifecycle and inference layers.

Every exception here is converted into a structured ``{"error": ...}`` body at
the request boundary in ``vertex_gateway.api.routes``.
"""

from __future__ import annotations

from typing import Any


class GatewayServiceError(Exception):
    """Base class for all errors raised by the gateway core."""


class AuthError(GatewayServiceError):
    """Raised when no usable credential can be produced."""


class NotAuthorizedError(AuthError):
    """No credential record, or no refresh token to recover an expired one."""


class RefreshFailedError(AuthError):
    """The identity provider rejected or never answered a refresh request."""

    def __init__(self, message: str, *, provider_payload: Any = None) -> None:
        super().__init__(message)
        self.provider_payload = provider_payload


class ExchangeFailedError(AuthError):
    """The authorization code could not be exchanged for tokens."""

    def __init__(self, message: str, *, provider_payload: Any = None) -> None:
        super().__init__(message)
        self.provider_payload = provider_payload


class GatewayError(GatewayServiceError):
    """Raised when the inference endpoint call does not yield a result."""


class UpstreamError(GatewayError):
    """Non-success HTTP status (or no response at all) from the model endpoint."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(GatewayError):
    """Successful HTTP status but the payload lacks a candidate list."""


class StorageError(GatewayServiceError):
    """The credential persistence backend failed."""


__all__ = [
    "AuthError",
    "ExchangeFailedError",
    "GatewayError",
    "GatewayServiceError",
    "MalformedResponseError",
    "NotAuthorizedError",
    "RefreshFailedError",
    "StorageError",
    "UpstreamError",
]
