"""SQLite-backed store for upload status records."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from x_uploader.models import UploadRecord, UploadStatus

_STATUS_RANK = {
    UploadStatus.PENDING: 0,
    UploadStatus.PROCESSING: 1,
    UploadStatus.SUCCESS: 2,
    UploadStatus.FAILED: 2,
}


class UploadRecordStore:
    """Create, read and advance upload records.

    ``update_status`` never moves a record backwards: updates against a record
    that already reached ``success`` or ``failed`` are ignored, and media
    identifiers keep the first value written.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS uploads (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    media_id TEXT,
                    media_key TEXT,
                    error_message TEXT,
                    file_size INTEGER,
                    mime_type TEXT,
                    processing_state TEXT,
                    post_id TEXT,
                    created_at TEXT NOT NULL,
                    completed_at TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_uploads_created_at ON uploads (created_at)"
            )

    def create(
        self,
        *,
        title: Optional[str],
        description: Optional[str],
        file_size: int,
        mime_type: Optional[str],
        status: UploadStatus = UploadStatus.PROCESSING,
    ) -> UploadRecord:
        record = UploadRecord(
            id=uuid4().hex,
            title=title,
            description=description,
            status=status,
            file_size=file_size,
            mime_type=mime_type,
            created_at=datetime.now(timezone.utc),
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO uploads (
                    id, title, description, status, file_size, mime_type, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.title,
                    record.description,
                    record.status.value,
                    record.file_size,
                    record.mime_type,
                    record.created_at.isoformat(),
                ),
            )
        return record

    def get(self, upload_id: str) -> Optional[UploadRecord]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM uploads WHERE id = ?",
                (upload_id,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def list_recent(self, limit: Optional[int] = None) -> list[UploadRecord]:
        """Return records newest first."""
        query = "SELECT * FROM uploads ORDER BY created_at DESC, rowid DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update_status(
        self,
        upload_id: str,
        status: UploadStatus,
        *,
        media_id: Optional[str] = None,
        media_key: Optional[str] = None,
        error_message: Optional[str] = None,
        processing_state: Optional[str] = None,
        post_id: Optional[str] = None,
    ) -> Optional[UploadRecord]:
        """Advance a record and return its stored state.

        Returns ``None`` only when no record exists for ``upload_id``.
        """
        completed_at = (
            datetime.now(timezone.utc).isoformat() if status.is_terminal else None
        )
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE uploads SET
                    status = ?,
                    media_id = COALESCE(media_id, ?),
                    media_key = COALESCE(media_key, ?),
                    post_id = COALESCE(post_id, ?),
                    error_message = COALESCE(?, error_message),
                    processing_state = COALESCE(?, processing_state),
                    completed_at = COALESCE(completed_at, ?)
                WHERE id = ?
                    AND status NOT IN ('success', 'failed')
                    AND (
                        CASE status WHEN 'pending' THEN 0 ELSE 1 END
                    ) <= ?
                """,
                (
                    status.value,
                    media_id,
                    media_key,
                    post_id,
                    error_message,
                    processing_state,
                    completed_at,
                    upload_id,
                    _STATUS_RANK[status],
                ),
            )
        return self.get(upload_id)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> UploadRecord:
        data = dict(row)
        for key in ("created_at", "completed_at"):
            if data.get(key):
                data[key] = datetime.fromisoformat(data[key])
        return UploadRecord.model_validate(data)


__all__ = ["UploadRecordStore"]
