from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from x_uploader.clients.credential_store import CredentialStore
from x_uploader.clients.x_oauth import TokenExchangeError, TokenGrant
from x_uploader.services.token_cipher import TokenCipherService
from x_uploader.services.x_tokens import XTokenService


class DummyOAuthClient:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.refresh_calls: list[str] = []

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.refresh_calls.append(refresh_token)
        if self.fail:
            raise TokenExchangeError("invalid_grant", status_code=400)
        return TokenGrant(
            access_token="refreshed-access", refresh_token="rotated-refresh", expires_in=7200
        )


def _credential_rows(tmp_path: Path, user_id: str) -> int:
    with sqlite3.connect(tmp_path / "tokens.db") as conn:
        (total,) = conn.execute(
            "SELECT COUNT(*) FROM oauth_tokens WHERE user_id = ?", (user_id,)
        ).fetchone()
    return total


def _service(
    tmp_path: Path, *, refresh_on_expiry: bool = False, oauth_client=None
) -> tuple[XTokenService, CredentialStore]:
    store = CredentialStore(str(tmp_path / "tokens.db"))
    service = XTokenService(
        store=store,
        oauth_client=oauth_client or DummyOAuthClient(),
        token_cipher=TokenCipherService(secret="secret-key"),
        refresh_on_expiry=refresh_on_expiry,
    )
    return service, store


def _expire(store: CredentialStore, user_id: str) -> None:
    row = store.get(user_id)
    assert row is not None
    store.upsert(
        user_id=user_id,
        access_token_encrypted=row["access_token_encrypted"],
        refresh_token_encrypted=row["refresh_token_encrypted"],
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        username=row["username"],
    )


def test_save_credential_upserts_single_row(tmp_path: Path) -> None:
    service, store = _service(tmp_path)

    service.save_credential(
        user_id="default_user",
        grant=TokenGrant(access_token="first", refresh_token="r1", expires_in=3600),
        username="first_handle",
    )
    service.save_credential(
        user_id="default_user",
        grant=TokenGrant(access_token="second", refresh_token=None, expires_in=None),
        username="second_handle",
    )

    assert _credential_rows(tmp_path, "default_user") == 1
    credential = service.get_stored_credential("default_user")
    assert credential is not None
    assert credential.access_token == "second"
    assert credential.refresh_token is None
    assert credential.expires_at is None
    assert credential.username == "second_handle"


def test_tokens_are_encrypted_at_rest(tmp_path: Path) -> None:
    service, store = _service(tmp_path)

    service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="plain-access", refresh_token="plain-refresh", expires_in=60),
        username="handle",
    )

    row = store.get("u1")
    assert row is not None
    assert row["access_token_encrypted"] != "plain-access"
    assert row["refresh_token_encrypted"] != "plain-refresh"


def test_expiry_is_computed_from_expires_in(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    before = datetime.now(timezone.utc)

    credential = service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="a", refresh_token=None, expires_in=7200),
        username="handle",
    )

    assert credential.expires_at is not None
    assert before + timedelta(seconds=7200) <= credential.expires_at
    assert credential.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=7200)


def test_delete_credential_is_idempotent(tmp_path: Path) -> None:
    service, store = _service(tmp_path)
    service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="a", refresh_token=None, expires_in=None),
        username=None,
    )

    service.delete_credential("u1")
    service.delete_credential("u1")

    assert store.get("u1") is None


@pytest.mark.anyio
async def test_expired_credential_is_returned_unchanged_by_default(tmp_path: Path) -> None:
    oauth_client = DummyOAuthClient()
    service, store = _service(tmp_path, oauth_client=oauth_client)
    service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="old", refresh_token="r1", expires_in=60),
        username="handle",
    )
    _expire(store, "u1")

    credential = await service.get_credential(user_id="u1")

    assert credential is not None
    assert credential.is_expired()
    assert oauth_client.refresh_calls == []


@pytest.mark.anyio
async def test_expired_credential_is_refreshed_when_enabled(tmp_path: Path) -> None:
    oauth_client = DummyOAuthClient()
    service, store = _service(tmp_path, refresh_on_expiry=True, oauth_client=oauth_client)
    service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="old", refresh_token="r1", expires_in=60),
        username="handle",
    )
    _expire(store, "u1")

    credential = await service.get_credential(user_id="u1")

    assert oauth_client.refresh_calls == ["r1"]
    assert credential is not None
    assert credential.access_token == "refreshed-access"
    assert credential.refresh_token == "rotated-refresh"
    assert credential.username == "handle"
    assert not credential.is_expired()
    assert _credential_rows(tmp_path, "u1") == 1


@pytest.mark.anyio
async def test_failed_refresh_leaves_expired_credential(tmp_path: Path) -> None:
    oauth_client = DummyOAuthClient(fail=True)
    service, store = _service(tmp_path, refresh_on_expiry=True, oauth_client=oauth_client)
    service.save_credential(
        user_id="u1",
        grant=TokenGrant(access_token="old", refresh_token="r1", expires_in=60),
        username="handle",
    )
    _expire(store, "u1")

    credential = await service.get_credential(user_id="u1")

    assert credential is not None
    assert credential.access_token == "old"
    assert credential.is_expired()


@pytest.mark.anyio
async def test_missing_credential_returns_none(tmp_path: Path) -> None:
    service, _ = _service(tmp_path)
    assert await service.get_credential(user_id="nobody") is None


def test_upsert_raises_when_row_cannot_be_read_back(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    store = CredentialStore(str(tmp_path / "tokens.db"))
    monkeypatch.setattr(store, "get", lambda user_id: None)

    with pytest.raises(RuntimeError, match="missing after upsert"):
        store.upsert(
            user_id="u1",
            access_token_encrypted="ciphertext",
            refresh_token_encrypted=None,
            expires_at=None,
            username=None,
        )
