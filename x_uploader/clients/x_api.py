"""
Shared error types and helpers for talking to the X API.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx


def extract_error_detail(payload: Any) -> Optional[str]:
    """Pull the most descriptive message out of an X API error body."""
    if not isinstance(payload, dict):
        return None
    for key in ("detail", "error_description", "title"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    errors = payload.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            message = first.get("message") or first.get("detail")
            if message:
                return str(message)
    error = payload.get("error")
    if isinstance(error, str) and error:
        return error
    return None


class XApiError(Exception):
    """Raised when an X API call fails, carrying the upstream status and detail."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    @classmethod
    def from_response(cls, response: httpx.Response, message: str, **kwargs: Any) -> "XApiError":
        detail = extract_error_detail(json_body(response))
        return cls(
            f"{message} (HTTP {response.status_code})",
            status_code=response.status_code,
            detail=detail,
            **kwargs,
        )

    @classmethod
    def from_transport_error(cls, exc: httpx.HTTPError, message: str, **kwargs: Any) -> "XApiError":
        return cls(f"{message}: {exc}", **kwargs)


def json_body(response: httpx.Response) -> dict:
    """Return the decoded JSON object body, or an empty dict for anything else."""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def data_object(payload: Any, key: str = "data") -> dict:
    """Return ``payload[key]`` when it is a JSON object, else an empty dict."""
    if not isinstance(payload, dict):
        return {}
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def bearer_headers(access_token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }


__all__ = ["XApiError", "bearer_headers", "data_object", "extract_error_detail", "json_body"]
