"""
Domain model for persisted X OAuth credentials.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(BaseModel):
    """Bearer credential stored for a single user identity."""

    user_id: str = Field(..., description="Unique user identity the token belongs to.")
    access_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(None, repr=False)
    expires_at: Optional[datetime] = None
    username: Optional[str] = Field(None, description="X handle of the connected account.")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True once ``now`` has reached the expiry instant."""
        if self.expires_at is None:
            return False
        current = now or _utcnow()
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return current >= expires_at


__all__ = ["Credential"]
