"""Service layer exports."""

from .pkce_sessions import PKCESession, PKCESessionCache
from .publisher import PublishService
from .token_cipher import TokenCipherService
from .uploads import UnauthorizedError, UploadOrchestrator
from .x_auth import (
    InvalidCallbackError,
    InvalidSessionError,
    OAuthConfigurationError,
    XAuthFlow,
)
from .x_tokens import XTokenService

__all__ = [
    "InvalidCallbackError",
    "InvalidSessionError",
    "OAuthConfigurationError",
    "PKCESession",
    "PKCESessionCache",
    "PublishService",
    "TokenCipherService",
    "UnauthorizedError",
    "UploadOrchestrator",
    "XAuthFlow",
    "XTokenService",
]
