"""Schemas for the upload endpoints."""

from __future__ import annotations

from pydantic import BaseModel

from x_uploader.models import UploadRecord


class UploadAcceptedResponse(BaseModel):
    """Returned as soon as the upload record exists; the upload runs in the background."""

    success: bool = True
    upload: UploadRecord
    message: str = "Video upload and post publishing started successfully"


__all__ = ["UploadAcceptedResponse"]
