"""
Helpers for storing, retrieving and refreshing X OAuth credentials.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from x_uploader.clients.credential_store import CredentialStore
from x_uploader.clients.x_oauth import TokenExchangeError, TokenGrant, XOAuthClient
from x_uploader.models import Credential
from x_uploader.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class XTokenService:
    """Manages access to persisted X OAuth credentials."""

    def __init__(
        self,
        store: CredentialStore,
        oauth_client: XOAuthClient,
        token_cipher: TokenCipherService,
        refresh_on_expiry: bool = False,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._cipher = token_cipher
        self._refresh_on_expiry = refresh_on_expiry

    def save_credential(
        self, *, user_id: str, grant: TokenGrant, username: Optional[str]
    ) -> Credential:
        """Upsert the credential for ``user_id`` from a fresh token grant."""
        expires_at = None
        if grant.expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=grant.expires_in)
        row = self._store.upsert(
            user_id=user_id,
            access_token_encrypted=self._cipher.encrypt(grant.access_token),
            refresh_token_encrypted=self._cipher.encrypt_optional(grant.refresh_token),
            expires_at=expires_at,
            username=username,
        )
        return self._row_to_credential(row)

    def get_stored_credential(self, user_id: str) -> Optional[Credential]:
        row = self._store.get(user_id)
        if not row:
            return None
        return self._row_to_credential(row)

    async def get_credential(self, *, user_id: str) -> Optional[Credential]:
        """Return the user's credential, refreshing it first when configured to."""
        credential = self.get_stored_credential(user_id)
        if credential is None:
            return None

        if (
            self._refresh_on_expiry
            and credential.refresh_token
            and credential.is_expired()
        ):
            try:
                grant = await self._oauth.refresh_access_token(credential.refresh_token)
            except TokenExchangeError as exc:
                logger.warning(
                    "Refreshing expired X credential failed",
                    extra={"user_id": user_id, "error": exc.description},
                )
                return credential
            logger.info("Refreshed expired X credential", extra={"user_id": user_id})
            return self.save_credential(
                user_id=user_id, grant=grant, username=credential.username
            )

        return credential

    def delete_credential(self, user_id: str) -> None:
        self._store.delete(user_id)

    def _row_to_credential(self, row: Dict[str, Any]) -> Credential:
        expires_at = row.get("expires_at")
        return Credential(
            user_id=row["user_id"],
            access_token=self._cipher.decrypt(row["access_token_encrypted"]),
            refresh_token=self._cipher.decrypt_optional(row.get("refresh_token_encrypted")),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            username=row.get("username"),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


__all__ = ["XTokenService"]
