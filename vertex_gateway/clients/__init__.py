"""Expose constructed client wrappers."""

from .dynamodb import DynamoDBClient
from .google_auth import (
    GoogleOAuthClient,
    InvalidStateError,
    OAuthStateEncoder,
    OAuthTokenExchangeError,
)
from .sqlite_store import SQLiteStore
from .vertex_ai import InferenceGateway

__all__ = [
    "DynamoDBClient",
    "GoogleOAuthClient",
    "InferenceGateway",
    "InvalidStateError",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "SQLiteStore",
]
