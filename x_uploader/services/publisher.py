"""
Publish a post referencing freshly uploaded media, retrying while X
finishes processing the video.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from x_uploader.clients.x_api import XApiError, data_object
from x_uploader.clients.x_posts import PublishFailed, XPostsClient
from x_uploader.utils.retry import RetryConfig, retry_always, retry_async

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 15.0


def is_media_processing_error(exc: Exception) -> bool:
    """True for the 400 X returns while attached media is still processing."""
    if not isinstance(exc, XApiError) or exc.status_code != 400:
        return False
    return "media" in (exc.detail or "").lower()


class PublishService:
    """Create the post for an upload with linear backoff between attempts.

    Every failure is retried by default; pass ``retry_if`` to narrow that,
    e.g. to :func:`is_media_processing_error`.
    """

    def __init__(
        self,
        posts_client: XPostsClient,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        retry_if: Callable[[Exception], bool] = retry_always,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._posts = posts_client
        self._max_retries = max_retries
        self._base_delay = base_delay_seconds
        self._retry_if = retry_if
        self._sleep = sleep

    async def publish(
        self,
        *,
        access_token: str,
        media_id: str,
        text: str,
        max_retries: Optional[int] = None,
        base_delay_seconds: Optional[float] = None,
        upload_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        retries = self._max_retries if max_retries is None else max_retries
        delay = self._base_delay if base_delay_seconds is None else base_delay_seconds
        config = RetryConfig(attempts=retries + 1, backoff_seconds=delay)
        attempt_counter = {"attempt": 0}

        async def _attempt() -> Dict[str, Any]:
            attempt_counter["attempt"] += 1
            logger.info(
                "Publishing post",
                extra={
                    "upload_id": upload_id,
                    "media_id": media_id,
                    "attempt": attempt_counter["attempt"],
                    "max_attempts": config.attempts,
                },
            )
            return await self._posts.create_post(
                access_token=access_token, media_id=media_id, text=text
            )

        def _on_retry(attempt: int, exc: Exception, delay_seconds: float) -> None:
            logger.warning(
                "Publish attempt failed, retrying",
                extra={
                    "upload_id": upload_id,
                    "media_id": media_id,
                    "attempt": attempt,
                    "delay_seconds": delay_seconds,
                    "status": getattr(exc, "status_code", None),
                    "media_processing": is_media_processing_error(exc),
                },
            )

        try:
            response = await retry_async(
                _attempt,
                retry_config=config,
                retry_if=self._retry_if,
                on_retry=_on_retry,
                sleep=self._sleep,
            )
        except Exception as exc:
            status_code = getattr(exc, "status_code", None)
            logger.error(
                "All publish attempts failed",
                extra={"upload_id": upload_id, "media_id": media_id, "status": status_code},
            )
            if isinstance(exc, PublishFailed):
                raise
            raise PublishFailed(
                str(exc), status_code=status_code, detail=getattr(exc, "detail", None)
            ) from exc

        logger.info(
            "Post published",
            extra={
                "upload_id": upload_id,
                "media_id": media_id,
                "attempt": attempt_counter["attempt"],
                "post_id": data_object(response).get("id"),
            },
        )
        return response


__all__ = [
    "DEFAULT_BASE_DELAY_SECONDS",
    "DEFAULT_MAX_RETRIES",
    "PublishService",
    "is_media_processing_error",
]
