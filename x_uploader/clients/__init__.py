"""Expose constructed client wrappers."""

from .credential_store import CredentialStore
from .upload_store import UploadRecordStore
from .x_api import XApiError
from .x_media import (
    AppendFailed,
    FinalizeFailed,
    InitFailed,
    MediaUploadError,
    MediaUploadResult,
    XMediaClient,
)
from .x_oauth import TokenExchangeError, TokenGrant, XOAuthClient
from .x_posts import PublishFailed, XPostsClient

__all__ = [
    "AppendFailed",
    "CredentialStore",
    "FinalizeFailed",
    "InitFailed",
    "MediaUploadError",
    "MediaUploadResult",
    "PublishFailed",
    "TokenExchangeError",
    "TokenGrant",
    "UploadRecordStore",
    "XApiError",
    "XMediaClient",
    "XOAuthClient",
    "XPostsClient",
]
