"""
Chunked media upload client for the X API v2 media endpoints.

Uploads follow the INIT -> APPEND -> FINALIZE sequence. Segments are sent one
at a time in ascending index order; the append endpoint is order-sensitive,
so segment ``i + 1`` is never started before segment ``i`` has been accepted.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional, Union

import httpx

from x_uploader.clients.x_api import XApiError, bearer_headers, data_object, json_body
from x_uploader.core.config import UploadSettings, XApiSettings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 2 * 1024 * 1024
DEFAULT_PROCESSING_STATE = "succeeded"

MediaSource = Union[bytes, bytearray, memoryview, BinaryIO]


class MediaUploadError(XApiError):
    """Base class for failures of the chunked upload protocol."""


class InitFailed(MediaUploadError):
    pass


class AppendFailed(MediaUploadError):
    def __init__(self, message: str, *, segment_index: int, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.segment_index = segment_index


class FinalizeFailed(MediaUploadError):
    pass


@dataclass(frozen=True)
class MediaUploadResult:
    media_id: str
    media_key: Optional[str]
    processing_state: str


def iter_segments(
    source: MediaSource, chunk_size: int = CHUNK_SIZE
) -> Iterator[tuple[int, bytes]]:
    """Yield ``(segment_index, chunk)`` pairs covering ``source`` in order.

    In-memory buffers are sliced; readable objects are consumed in a single
    pass. Every chunk except the last is exactly ``chunk_size`` bytes.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    if isinstance(source, (bytes, bytearray, memoryview)):
        view = memoryview(source)
        for index, offset in enumerate(range(0, len(view), chunk_size)):
            yield index, bytes(view[offset : offset + chunk_size])
        return

    index = 0
    while True:
        chunk = _read_exactly(source, chunk_size)
        if not chunk:
            return
        yield index, chunk
        index += 1


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    # Short reads from pipes or sockets would otherwise shrink a segment.
    parts: list[bytes] = []
    remaining = size
    while remaining:
        data = stream.read(remaining)
        if not data:
            break
        parts.append(data)
        remaining -= len(data)
    return b"".join(parts)


class XMediaClient:
    """Upload a media payload through the three-phase chunked protocol."""

    def __init__(
        self,
        x_settings: XApiSettings,
        upload_settings: UploadSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = x_settings.api_base_url.rstrip("/")
        self._timeout = x_settings.request_timeout_seconds
        self._chunk_size = upload_settings.chunk_size_bytes
        self._media_category = upload_settings.media_category
        self._transport = transport

    async def upload(
        self,
        source: MediaSource,
        *,
        mime_type: str,
        access_token: str,
        total_bytes: Optional[int] = None,
        upload_id: Optional[str] = None,
    ) -> MediaUploadResult:
        """Run INIT, APPEND and FINALIZE for ``source`` and return the media handle."""
        if total_bytes is None:
            if not isinstance(source, (bytes, bytearray, memoryview)):
                raise ValueError("total_bytes is required for stream sources")
            total_bytes = len(source)

        headers = bearer_headers(access_token)
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            media_id = await self._initialize(
                client, total_bytes=total_bytes, mime_type=mime_type, upload_id=upload_id
            )
            await self._append_segments(client, media_id, source, upload_id=upload_id)
            return await self._finalize(client, media_id, upload_id=upload_id)

    async def _initialize(
        self,
        client: httpx.AsyncClient,
        *,
        total_bytes: int,
        mime_type: str,
        upload_id: Optional[str],
    ) -> str:
        body = {
            "media_type": mime_type,
            "total_bytes": total_bytes,
            "media_category": self._media_category,
        }
        logger.info(
            "INIT started",
            extra={"upload_id": upload_id, "total_bytes": total_bytes, "mime_type": mime_type},
        )
        try:
            response = await client.post("/media/upload/initialize", json=body)
        except httpx.HTTPError as exc:
            raise InitFailed.from_transport_error(exc, "INIT request failed") from exc
        if response.is_error:
            raise InitFailed.from_response(response, "INIT request failed")

        media_id = data_object(json_body(response)).get("id")
        if not media_id:
            raise InitFailed("Failed to extract media ID from INIT response")

        media_id = str(media_id)
        logger.info("INIT completed", extra={"upload_id": upload_id, "media_id": media_id})
        return media_id

    async def _append_segments(
        self,
        client: httpx.AsyncClient,
        media_id: str,
        source: MediaSource,
        *,
        upload_id: Optional[str],
    ) -> int:
        segments = 0
        for segment_index, chunk in iter_segments(source, self._chunk_size):
            logger.debug(
                "APPEND segment",
                extra={
                    "upload_id": upload_id,
                    "media_id": media_id,
                    "segment_index": segment_index,
                    "segment_bytes": len(chunk),
                },
            )
            body = {
                "segment_index": segment_index,
                "media": base64.b64encode(chunk).decode("ascii"),
            }
            try:
                response = await client.post(f"/media/upload/{media_id}/append", json=body)
            except httpx.HTTPError as exc:
                raise AppendFailed.from_transport_error(
                    exc,
                    f"APPEND failed for segment {segment_index}",
                    segment_index=segment_index,
                ) from exc
            if response.is_error:
                raise AppendFailed.from_response(
                    response,
                    f"APPEND failed for segment {segment_index}",
                    segment_index=segment_index,
                )
            segments += 1

        logger.info(
            "APPEND completed",
            extra={"upload_id": upload_id, "media_id": media_id, "segments": segments},
        )
        return segments

    async def _finalize(
        self, client: httpx.AsyncClient, media_id: str, *, upload_id: Optional[str]
    ) -> MediaUploadResult:
        logger.info("FINALIZE started", extra={"upload_id": upload_id, "media_id": media_id})
        try:
            response = await client.post(f"/media/upload/{media_id}/finalize", json={})
        except httpx.HTTPError as exc:
            raise FinalizeFailed.from_transport_error(exc, "FINALIZE request failed") from exc
        if response.is_error:
            raise FinalizeFailed.from_response(response, "FINALIZE request failed")

        data = data_object(json_body(response))
        processing_info = data_object(data, "processing_info")
        result = MediaUploadResult(
            media_id=media_id,
            media_key=data.get("media_key"),
            processing_state=processing_info.get("state") or DEFAULT_PROCESSING_STATE,
        )
        logger.info(
            "FINALIZE completed",
            extra={
                "upload_id": upload_id,
                "media_id": media_id,
                "processing_state": result.processing_state,
            },
        )
        return result


__all__ = [
    "AppendFailed",
    "CHUNK_SIZE",
    "FinalizeFailed",
    "InitFailed",
    "MediaUploadError",
    "MediaUploadResult",
    "XMediaClient",
    "iter_segments",
]
