"""Public schema exports."""

from .ask import AskRequest, AskResult, ErrorResponse
from .auth import AuthorizationResult, AuthorizationUrlResponse

__all__ = [
    "AskRequest",
    "AskResult",
    "AuthorizationResult",
    "AuthorizationUrlResponse",
    "ErrorResponse",
]
