"""
X OAuth 2.0 utilities.

These helpers drive the authorization code flow with PKCE and the token
refresh lifecycle against the X token endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlencode

import httpx

from fastapi import status

from x_uploader.clients.x_api import data_object, extract_error_detail, json_body
from x_uploader.core.config import OAuthSettings, XApiSettings


class TokenExchangeError(Exception):
    """Raised when the token endpoint or the profile lookup returns an error."""

    def __init__(self, description: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(description)
        self.description = description
        self.status_code = status_code


@dataclass(frozen=True)
class TokenGrant:
    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]


class XOAuthClient:
    """Build X authorization URLs and exchange authorization codes."""

    def __init__(
        self,
        x_settings: XApiSettings,
        oauth_settings: OAuthSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._x = x_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def token_url(self) -> str:
        return f"{self._x.oauth_base_url.rstrip('/')}/oauth2/token"

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._x.request_timeout_seconds, transport=self._transport
        )

    def build_authorization_url(
        self, *, state: str, code_challenge: str, redirect_uri: str
    ) -> str:
        """Construct the X OAuth consent URL."""
        params = {
            "response_type": "code",
            "client_id": self._x.client_id,
            "redirect_uri": redirect_uri,
            "scope": " ".join(self._oauth.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        query = urlencode(params, quote_via=quote)
        return f"{self._x.authorize_url}?{query}"

    async def exchange_authorization_code(
        self, *, code: str, code_verifier: str, redirect_uri: str
    ) -> TokenGrant:
        """Exchange an authorization code and its PKCE verifier for tokens."""
        payload = {
            "code": code,
            "grant_type": "authorization_code",
            "client_id": self._x.client_id or "",
            "redirect_uri": redirect_uri,
            "code_verifier": code_verifier,
        }
        token_payload = await self._post_token_request(payload)
        access_token = token_payload.get("access_token")
        if not access_token:
            raise TokenExchangeError("Incomplete token payload returned from X.")

        return TokenGrant(
            access_token=access_token,
            refresh_token=token_payload.get("refresh_token"),
            expires_in=_optional_int(token_payload.get("expires_in")),
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Refresh the access token using a stored refresh token."""
        payload = {
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
            "client_id": self._x.client_id or "",
        }
        token_payload = await self._post_token_request(payload)
        access_token = token_payload.get("access_token")
        if not access_token:
            raise TokenExchangeError("Incomplete refresh payload returned from X.")

        return TokenGrant(
            access_token=access_token,
            # X rotates refresh tokens; keep the old one if none came back.
            refresh_token=token_payload.get("refresh_token") or refresh_token,
            expires_in=_optional_int(token_payload.get("expires_in")),
        )

    async def fetch_username(self, access_token: str) -> str:
        """Return the handle of the account that authorized ``access_token``."""
        url = f"{self._x.oauth_base_url.rstrip('/')}/users/me"
        try:
            async with self._http_client() as client:
                response = await client.get(
                    url, headers={"Authorization": f"Bearer {access_token}"}
                )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Failed to fetch X user profile: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise TokenExchangeError(
                _describe_failure(response, "Failed to fetch X user profile."),
                status_code=response.status_code,
            )

        username = data_object(json_body(response)).get("username")
        if not username:
            raise TokenExchangeError("X user profile did not include a username.")
        return username

    async def _post_token_request(self, payload: dict[str, str]) -> dict:
        try:
            async with self._http_client() as client:
                response = await client.post(
                    self.token_url,
                    data=payload,
                    auth=(self._x.client_id or "", self._x.client_secret or ""),
                )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Token request failed: {exc}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise TokenExchangeError(
                _describe_failure(response, "Token request was rejected by X."),
                status_code=response.status_code,
            )
        return json_body(response)


def _describe_failure(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    return extract_error_detail(payload) or response.text or fallback


def _optional_int(value: object) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)  # type: ignore[arg-type]


__all__ = ["TokenExchangeError", "TokenGrant", "XOAuthClient"]
