"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_store,
    get_pkce_session_cache,
    get_publish_service,
    get_token_cipher_service,
    get_upload_orchestrator,
    get_upload_store,
    get_x_auth_flow,
    get_x_media_client,
    get_x_oauth_client,
    get_x_posts_client,
    get_x_token_service,
)
from .config import get_app_settings, get_current_user_id

__all__ = [
    "get_app_settings",
    "get_credential_store",
    "get_current_user_id",
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
