"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the background upload
tasks and the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
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


class XApiSettings(BaseSettings):
    """Configuration required for interacting with the X API."""

    model_config = SettingsConfigDict(env_prefix="X_", extra="ignore")

    client_id: Optional[str] = Field(
        None,
        description="OAuth 2.0 client identifier issued in the X developer portal.",
    )
    client_secret: Optional[str] = Field(
        None,
        description="OAuth 2.0 client secret used for HTTP Basic client authentication.",
    )
    redirect_uri: Optional[str] = Field(
        None,
        description=(
            "Explicit OAuth callback URL. Derived from the incoming request when omitted."
        ),
    )
    api_base_url: str = Field("https://api.x.com/2")
    oauth_base_url: str = Field("https://api.twitter.com/2")
    authorize_url: str = Field("https://twitter.com/i/oauth2/authorize")
    request_timeout_seconds: float = Field(30.0)
    refresh_on_expiry: bool = Field(
        False,
        description=(
            "Exchange the stored refresh token when the access token has expired "
            "instead of asking the user to reconnect."
        ),
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(env_prefix="OAUTH_", extra="ignore")

    state_ttl_seconds: int = Field(600)
    state_cache_size: int = Field(1024)
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "tweet.read",
            "tweet.write",
            "users.read",
            "media.write",
            "offline.access",
        ),
    )

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


class UploadSettings(BaseSettings):
    """Chunked upload and publishing behaviour."""

    model_config = SettingsConfigDict(env_prefix="UPLOAD_", extra="ignore")

    chunk_size_bytes: int = Field(2 * 1024 * 1024, gt=0)
    max_file_size_bytes: int = Field(512 * 1024 * 1024, gt=0)
    media_category: str = Field("tweet_video")
    max_concurrent: int = Field(
        4,
        ge=1,
        description="Upper bound on upload tasks running at the same time.",
    )
    publish_max_retries: int = Field(3, ge=0)
    publish_base_delay_seconds: float = Field(15.0, ge=0)


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    database_path: str = Field("data/uploader.db", validation_alias="DATABASE_PATH")
    default_user_id: str = Field("default_user", validation_alias="DEFAULT_USER_ID")
    auth_ui_path: str = Field(
        "/auth",
        validation_alias="AUTH_UI_PATH",
        description="Where browsers land after completing the OAuth callback.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    x: XApiSettings = Field(default_factory=XApiSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "UploadSettings",
    "XApiSettings",
    "get_settings",
]
