"""
Domain models describing upload attempts and their lifecycle.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UploadStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({UploadStatus.SUCCESS, UploadStatus.FAILED})


class UploadRecord(BaseModel):
    """Status record for one upload attempt, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    status: UploadStatus = UploadStatus.PENDING
    media_id: Optional[str] = None
    media_key: Optional[str] = None
    error_message: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    processing_state: Optional[str] = None
    post_id: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


__all__ = ["TERMINAL_STATUSES", "UploadRecord", "UploadStatus"]
