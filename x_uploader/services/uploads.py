"""
Upload orchestration: record creation, the background upload task and its
state machine.

``processing`` is written before any network call. The background task then
runs the chunked upload, records the media handle, publishes the post and
writes exactly one terminal status (``success`` or ``failed``).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from x_uploader.clients.upload_store import UploadRecordStore
from x_uploader.clients.x_api import XApiError, data_object
from x_uploader.clients.x_media import MediaSource, XMediaClient
from x_uploader.models import Credential, UploadRecord, UploadStatus
from x_uploader.services.publisher import PublishService

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Video"
DEFAULT_POST_TEXT = "Check out this video!"
FORBIDDEN_MESSAGE = (
    "Access forbidden. Your X account token may be invalid or expired. "
    "Please reconnect your account."
)
UNAUTHORIZED_MESSAGE = "Unauthorized. Please reconnect your X account."
GENERIC_FAILURE_MESSAGE = "Upload failed"
CANCELLED_MESSAGE = "Upload cancelled"


class UnauthorizedError(Exception):
    """Raised when no usable credential is available for an upload."""

    def __init__(self, message: str, *, needs_reauth: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.needs_reauth = needs_reauth


def compose_post_text(title: Optional[str], description: Optional[str]) -> str:
    text = " - ".join(part for part in (title, description) if part).strip()
    return text or DEFAULT_POST_TEXT


def describe_upload_error(exc: BaseException) -> str:
    """Turn a background failure into the message stored on the record."""
    status_code = getattr(exc, "status_code", None)
    if status_code == 403:
        return FORBIDDEN_MESSAGE
    if status_code == 401:
        return UNAUTHORIZED_MESSAGE
    if isinstance(exc, XApiError) and exc.detail:
        return exc.detail
    return str(exc) or GENERIC_FAILURE_MESSAGE


def check_credential(credential: Optional[Credential]) -> Credential:
    """Return ``credential`` if it can be used for an upload.

    Distinguishes a never-connected account from an expired token; only the
    latter sets ``needs_reauth``.
    """
    if credential is None:
        raise UnauthorizedError(
            "Authentication required. Please connect your X account first."
        )
    if credential.is_expired():
        logger.warning(
            "Access token expired",
            extra={"user_id": credential.user_id, "expires_at": credential.expires_at},
        )
        raise UnauthorizedError(
            "Access token expired. Please reconnect your X account.",
            needs_reauth=True,
        )
    return credential


class UploadOrchestrator:
    """Own the upload state machine and supervise one task per submission."""

    def __init__(
        self,
        store: UploadRecordStore,
        media_client: XMediaClient,
        publisher: PublishService,
        *,
        max_concurrent: int = 4,
    ) -> None:
        self._store = store
        self._media = media_client
        self._publisher = publisher
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: Dict[str, asyncio.Task] = {}

    async def submit(
        self,
        *,
        title: Optional[str],
        description: Optional[str],
        payload: MediaSource,
        mime_type: str,
        credential: Optional[Credential],
        file_size: Optional[int] = None,
    ) -> UploadRecord:
        """Create the ``processing`` record and schedule the upload.

        Returns as soon as the record exists; the caller never waits on the
        network work.
        """
        credential = check_credential(credential)

        if file_size is None:
            if not isinstance(payload, (bytes, bytearray, memoryview)):
                raise ValueError("file_size is required for stream payloads")
            file_size = len(payload)

        record = self._store.create(
            title=title or DEFAULT_TITLE,
            description=description or None,
            file_size=file_size,
            mime_type=mime_type,
            status=UploadStatus.PROCESSING,
        )
        logger.info(
            "Upload accepted",
            extra={"upload_id": record.id, "file_size": file_size, "mime_type": mime_type},
        )

        task = asyncio.create_task(
            self._run_upload(
                record.id,
                payload=payload,
                file_size=file_size,
                mime_type=mime_type,
                access_token=credential.access_token,
                post_text=compose_post_text(title, description),
            ),
            name=f"upload-{record.id}",
        )
        self._tasks[record.id] = task
        task.add_done_callback(lambda _task, upload_id=record.id: self._tasks.pop(upload_id, None))
        return record

    async def wait_for(
        self, upload_id: str, timeout: Optional[float] = None
    ) -> Optional[UploadRecord]:
        """Wait for the task behind ``upload_id`` (if any) and return the stored record."""
        task = self._tasks.get(upload_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return self._store.get(upload_id)

    async def wait_all(self) -> None:
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def active_uploads(self) -> list[str]:
        return [upload_id for upload_id, task in self._tasks.items() if not task.done()]

    async def shutdown(self) -> None:
        """Cancel outstanding uploads; each one records ``failed`` before exiting."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling in-flight uploads", extra={"count": len(tasks)})
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run_upload(
        self,
        upload_id: str,
        *,
        payload: MediaSource,
        file_size: int,
        mime_type: str,
        access_token: str,
        post_text: str,
    ) -> None:
        try:
            async with self._semaphore:
                result = await self._media.upload(
                    payload,
                    mime_type=mime_type,
                    access_token=access_token,
                    total_bytes=file_size,
                    upload_id=upload_id,
                )
                self._store.update_status(
                    upload_id,
                    UploadStatus.PROCESSING,
                    media_id=result.media_id,
                    media_key=result.media_key,
                    processing_state=result.processing_state,
                )

                response = await self._publisher.publish(
                    access_token=access_token,
                    media_id=result.media_id,
                    text=post_text,
                    upload_id=upload_id,
                )
                post_id = data_object(response).get("id")
                self._store.update_status(
                    upload_id, UploadStatus.SUCCESS, post_id=post_id
                )
                logger.info(
                    "Upload completed",
                    extra={
                        "upload_id": upload_id,
                        "media_id": result.media_id,
                        "post_id": post_id,
                        "status": UploadStatus.SUCCESS.value,
                    },
                )
        except asyncio.CancelledError:
            self._record_failure(upload_id, CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.error(
                "Background upload failed",
                exc_info=exc,
                extra={
                    "upload_id": upload_id,
                    "status": getattr(exc, "status_code", None),
                    "segment_index": getattr(exc, "segment_index", None),
                },
            )
            self._record_failure(upload_id, describe_upload_error(exc))

    def _record_failure(self, upload_id: str, message: str) -> None:
        try:
            self._store.update_status(
                upload_id, UploadStatus.FAILED, error_message=message
            )
        except Exception:
            logger.exception(
                "Could not persist failed upload status", extra={"upload_id": upload_id}
            )
            return
        logger.info(
            "Upload marked failed",
            extra={"upload_id": upload_id, "status": UploadStatus.FAILED.value, "error": message},
        )


__all__ = [
    "DEFAULT_POST_TEXT",
    "DEFAULT_TITLE",
    "UnauthorizedError",
    "UploadOrchestrator",
    "check_credential",
    "compose_post_text",
    "describe_upload_error",
]
