"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from x_uploader.clients import (
    CredentialStore,
    UploadRecordStore,
    XMediaClient,
    XOAuthClient,
    XPostsClient,
)
from x_uploader.core.config import get_settings
from x_uploader.services import (
    PKCESessionCache,
    PublishService,
    TokenCipherService,
    UploadOrchestrator,
    XAuthFlow,
    XTokenService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the SQLite token store."""
    return CredentialStore(_settings().database_path)


@lru_cache()
def get_upload_store() -> UploadRecordStore:
    """Provide the SQLite upload record store."""
    return UploadRecordStore(_settings().database_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.x.client_secret
    if not secret:
        raise RuntimeError(
            "Set TOKEN_ENCRYPTION_SECRET or X_CLIENT_SECRET to store X credentials."
        )
    return TokenCipherService(secret=secret)


@lru_cache()
def get_x_oauth_client() -> XOAuthClient:
    """Create a singleton X OAuth client."""
    settings = _settings()
    return XOAuthClient(settings.x, settings.oauth)


@lru_cache()
def get_pkce_session_cache() -> PKCESessionCache:
    """Process-wide cache of pending authorization requests."""
    settings = _settings()
    return PKCESessionCache(
        ttl_seconds=settings.oauth.state_ttl_seconds,
        maxsize=settings.oauth.state_cache_size,
    )


@lru_cache()
def get_x_token_service() -> XTokenService:
    """Provide helper for managing X OAuth credentials."""
    return XTokenService(
        store=get_credential_store(),
        oauth_client=get_x_oauth_client(),
        token_cipher=get_token_cipher_service(),
        refresh_on_expiry=_settings().x.refresh_on_expiry,
    )


@lru_cache()
def get_x_auth_flow() -> XAuthFlow:
    """Provide the PKCE authorization flow."""
    return XAuthFlow(
        oauth_client=get_x_oauth_client(),
        sessions=get_pkce_session_cache(),
        token_service=get_x_token_service(),
        x_settings=_settings().x,
    )


@lru_cache()
def get_x_media_client() -> XMediaClient:
    settings = _settings()
    return XMediaClient(settings.x, settings.upload)


@lru_cache()
def get_x_posts_client() -> XPostsClient:
    return XPostsClient(_settings().x)


@lru_cache()
def get_publish_service() -> PublishService:
    """Provide the retrying post publisher."""
    settings = _settings()
    return PublishService(
        get_x_posts_client(),
        max_retries=settings.upload.publish_max_retries,
        base_delay_seconds=settings.upload.publish_base_delay_seconds,
    )


@lru_cache()
def get_upload_orchestrator() -> UploadOrchestrator:
    """Provide the process-wide upload orchestrator."""
    return UploadOrchestrator(
        store=get_upload_store(),
        media_client=get_x_media_client(),
        publisher=get_publish_service(),
        max_concurrent=_settings().upload.max_concurrent,
    )


__all__ = [
    "get_credential_store",
    "get_pkce_session_cache",
    "get_publish_service",
    "get_token_cipher_service",
    "get_upload_orchestrator",
    "get_upload_store",
    "get_x_auth_flow",
    "get_x_media_client",
    "get_x_oauth_client",
    "get_x_posts_client",
    "get_x_token_service",
]
