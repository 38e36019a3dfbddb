"""
OAuth 2.0 PKCE flow for connecting an X account.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from typing import Optional

from x_uploader.clients.x_oauth import TokenExchangeError, XOAuthClient
from x_uploader.core.config import XApiSettings
from x_uploader.models import Credential
from x_uploader.services.pkce_sessions import PKCESession, PKCESessionCache
from x_uploader.services.x_tokens import XTokenService

logger = logging.getLogger(__name__)


class OAuthConfigurationError(Exception):
    """Raised when the X client credentials are not configured."""


class InvalidCallbackError(Exception):
    """Raised when the callback is missing parameters or reports a provider error."""


class InvalidSessionError(Exception):
    """Raised when the callback state does not match a pending authorization."""


def generate_code_verifier() -> str:
    """32 random bytes, base64url encoded without padding."""
    return secrets.token_urlsafe(32)


def derive_code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class XAuthFlow:
    """Start and complete the authorization code flow, persisting the result."""

    def __init__(
        self,
        oauth_client: XOAuthClient,
        sessions: PKCESessionCache,
        token_service: XTokenService,
        x_settings: XApiSettings,
    ) -> None:
        self._oauth = oauth_client
        self._sessions = sessions
        self._tokens = token_service
        self._x = x_settings

    def begin_authorization(self, user_id: str, redirect_uri: Optional[str] = None) -> str:
        """Register a PKCE session and return the consent URL to send the user to."""
        if not self._x.client_id:
            raise OAuthConfigurationError("X API credentials not configured")

        callback_url = self._resolve_redirect_uri(redirect_uri)
        state = secrets.token_urlsafe(32)
        code_verifier = generate_code_verifier()
        self._sessions.put(
            PKCESession(
                state=state,
                code_verifier=code_verifier,
                user_id=user_id,
                redirect_uri=callback_url,
            )
        )
        logger.info("Started X authorization", extra={"user_id": user_id})
        return self._oauth.build_authorization_url(
            state=state,
            code_challenge=derive_code_challenge(code_verifier),
            redirect_uri=callback_url,
        )

    async def complete_authorization(
        self,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> Credential:
        """Redeem the callback parameters for a stored credential.

        The PKCE session is removed before the token exchange, so a failed
        exchange still requires a fresh authorization.
        """
        if error:
            logger.warning(
                "X reported an authorization error",
                extra={"error": error, "error_description": error_description},
            )
            raise InvalidCallbackError(f"Authentication failed: {error_description or error}")

        if not code or not state:
            raise InvalidCallbackError("Invalid callback parameters")

        session = self._sessions.consume(state)
        if session is None:
            logger.warning("Callback state did not match a pending authorization")
            raise InvalidSessionError("Invalid state parameter. Please try again.")

        if not self._x.client_id or not self._x.client_secret:
            raise OAuthConfigurationError("X API credentials not configured")

        grant = await self._oauth.exchange_authorization_code(
            code=code,
            code_verifier=session.code_verifier,
            redirect_uri=session.redirect_uri or self._resolve_redirect_uri(redirect_uri),
        )
        logger.info("Token exchange successful", extra={"user_id": session.user_id})

        username = await self._oauth.fetch_username(grant.access_token)
        credential = self._tokens.save_credential(
            user_id=session.user_id, grant=grant, username=username
        )
        logger.info(
            "Connected X account",
            extra={"user_id": session.user_id, "username": username},
        )
        return credential

    def disconnect(self, user_id: str) -> None:
        self._tokens.delete_credential(user_id)
        logger.info("Disconnected X account", extra={"user_id": user_id})

    def _resolve_redirect_uri(self, redirect_uri: Optional[str]) -> str:
        resolved = self._x.redirect_uri or redirect_uri
        if not resolved:
            raise OAuthConfigurationError("No OAuth redirect URI available")
        return resolved


__all__ = [
    "InvalidCallbackError",
    "InvalidSessionError",
    "OAuthConfigurationError",
    "TokenExchangeError",
    "XAuthFlow",
    "derive_code_challenge",
    "generate_code_verifier",
]
