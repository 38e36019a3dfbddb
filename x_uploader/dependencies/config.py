"""
FastAPI dependency utilities for injecting configuration.
"""

from x_uploader.core.config import AppSettings, get_settings


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return get_settings()


def get_current_user_id() -> str:
    """Identity uploads and credentials are stored under.

    The service acts for a single configured account; callers are not
    authenticated.
    """
    return get_settings().default_user_id


__all__ = ["get_app_settings", "get_current_user_id"]
