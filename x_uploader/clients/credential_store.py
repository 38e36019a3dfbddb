"""SQLite-backed token store keyed by user identity."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional


class CredentialStore:
    """Persist one encrypted credential row per user identity."""

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
                CREATE TABLE IF NOT EXISTS oauth_tokens (
                    user_id TEXT PRIMARY KEY,
                    access_token_encrypted TEXT NOT NULL,
                    refresh_token_encrypted TEXT,
                    expires_at TEXT,
                    username TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def upsert(
        self,
        *,
        user_id: str,
        access_token_encrypted: str,
        refresh_token_encrypted: Optional[str],
        expires_at: Optional[datetime],
        username: Optional[str],
    ) -> Dict[str, Any]:
        """Insert the credential row or replace the existing one for ``user_id``."""
        if not user_id:
            raise ValueError("Credential must include a user_id")

        now_iso = datetime.now(timezone.utc).isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO oauth_tokens (
                    user_id, access_token_encrypted, refresh_token_encrypted,
                    expires_at, username, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    access_token_encrypted = excluded.access_token_encrypted,
                    refresh_token_encrypted = excluded.refresh_token_encrypted,
                    expires_at = excluded.expires_at,
                    username = excluded.username,
                    updated_at = excluded.updated_at
                """,
                (
                    user_id,
                    access_token_encrypted,
                    refresh_token_encrypted,
                    expires_at.isoformat() if expires_at else None,
                    username,
                    now_iso,
                    now_iso,
                ),
            )
        row = self.get(user_id)
        if row is None:
            raise RuntimeError(f"Credential row for {user_id!r} missing after upsert")
        return row

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM oauth_tokens WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return dict(row)

    def delete(self, user_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM oauth_tokens WHERE user_id = ?", (user_id,))


__all__ = ["CredentialStore"]
