"""Client for publishing posts that reference uploaded media."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from x_uploader.clients.x_api import XApiError, bearer_headers, json_body
from x_uploader.core.config import XApiSettings


class PublishFailed(XApiError):
    """Raised when creating the post referencing the uploaded media fails."""


class XPostsClient:
    """Create posts through the X API v2 ``/tweets`` endpoint."""

    def __init__(
        self,
        x_settings: XApiSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = x_settings.api_base_url.rstrip("/")
        self._timeout = x_settings.request_timeout_seconds
        self._transport = transport

    async def create_post(self, *, access_token: str, media_id: str, text: str) -> Dict[str, Any]:
        """Publish ``text`` with the media attached and return the response body."""
        body = {"text": text, "media": {"media_ids": [media_id]}}
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self._base_url}/tweets",
                    json=body,
                    headers=bearer_headers(access_token),
                )
        except httpx.HTTPError as exc:
            raise PublishFailed.from_transport_error(exc, "Post request failed") from exc

        if response.is_error:
            raise PublishFailed.from_response(response, "Post request failed")
        return json_body(response)


__all__ = ["PublishFailed", "XPostsClient"]
