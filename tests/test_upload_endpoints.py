try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from x_uploader.clients.upload_store import UploadRecordStore
from x_uploader.clients.x_media import MediaUploadResult
from x_uploader.main import app
from x_uploader.models import Credential, UploadStatus
from x_uploader.services.uploads import UploadOrchestrator


class DummyTokenService:
    def __init__(self) -> None:
        self.credential: Credential | None = None

    async def get_credential(self, *, user_id: str) -> Credential | None:
        return self.credential

    def get_stored_credential(self, user_id: str) -> Credential | None:
        return self.credential


class DummyMediaClient:
    def __init__(self) -> None:
        self.uploads: list[dict] = []

    async def upload(self, source, *, mime_type, access_token, total_bytes=None, upload_id=None):
        self.uploads.append(
            {"bytes": bytes(source), "mime_type": mime_type, "total_bytes": total_bytes}
        )
        return MediaUploadResult(media_id="media-9", media_key="7_media-9", processing_state="succeeded")


class DummyPublisher:
    def __init__(self) -> None:
        self.texts: list[str] = []

    async def publish(self, *, access_token, media_id, text, upload_id=None, **kwargs):
        self.texts.append(text)
        return {"data": {"id": "post-9"}}


@pytest.fixture()
def upload_overrides(tmp_path):
    from x_uploader import dependencies
    from x_uploader.core.config import get_settings

    store = UploadRecordStore(str(tmp_path / "uploads.db"))
    token_service = DummyTokenService()
    media = DummyMediaClient()
    publisher = DummyPublisher()
    orchestrator = UploadOrchestrator(store, media, publisher)
    base_settings = copy.deepcopy(get_settings())

    overrides = {
        dependencies.get_upload_store: lambda: store,
        dependencies.get_x_token_service: lambda: token_service,
        dependencies.get_upload_orchestrator: lambda: orchestrator,
        dependencies.get_app_settings: lambda: base_settings,
    }

    app.dependency_overrides.update(overrides)

    yield {
        "store": store,
        "tokens": token_service,
        "media": media,
        "publisher": publisher,
        "orchestrator": orchestrator,
        "settings": base_settings,
    }

    app.dependency_overrides.clear()


def _connect(token_service: DummyTokenService, *, expires_in: timedelta = timedelta(hours=2)) -> None:
    token_service.credential = Credential(
        user_id="default_user",
        access_token="access-token",
        expires_at=datetime.now(timezone.utc) + expires_in,
        username="uploader",
    )


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.mark.anyio
async def test_health() -> None:
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_upload_without_file_is_rejected(upload_overrides):
    async with _client() as client:
        response = await client.post("/api/upload", data={"title": "No file"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "No video file provided"}


@pytest.mark.anyio
async def test_upload_without_connected_account(upload_overrides):
    async with _client() as client:
        response = await client.post(
            "/api/upload",
            files={"video": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "Authentication required. Please connect your X account first."
    assert "needsReauth" not in body
    assert upload_overrides["store"].list_recent() == []


@pytest.mark.anyio
async def test_upload_with_expired_token_requests_reauth(upload_overrides):
    _connect(upload_overrides["tokens"], expires_in=timedelta(seconds=-1))

    async with _client() as client:
        response = await client.post(
            "/api/upload",
            files={"video": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

    assert response.status_code == 401
    body = response.json()
    assert body["needsReauth"] is True
    assert body["error"] == "Access token expired. Please reconnect your X account."
    assert upload_overrides["media"].uploads == []


@pytest.mark.anyio
async def test_upload_too_large(upload_overrides):
    _connect(upload_overrides["tokens"])
    upload_overrides["settings"].upload.max_file_size_bytes = 4

    async with _client() as client:
        response = await client.post(
            "/api/upload",
            files={"video": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

    assert response.status_code == 413
    assert response.json()["success"] is False
    assert upload_overrides["store"].list_recent() == []


@pytest.mark.anyio
async def test_upload_is_accepted_and_completes_in_background(upload_overrides):
    _connect(upload_overrides["tokens"])

    async with _client() as client:
        response = await client.post(
            "/api/upload",
            data={"title": "Launch", "description": "Liftoff"},
            files={"video": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Video upload and post publishing started successfully"
        upload = body["upload"]
        assert upload["status"] == "processing"
        assert upload["title"] == "Launch"
        assert upload["fileSize"] == len(b"video-bytes")
        assert upload["mimeType"] == "video/mp4"

        await upload_overrides["orchestrator"].wait_for(upload["id"])

        detail = await client.get(f"/api/uploads/{upload['id']}")
        listing = await client.get("/api/uploads")

    assert detail.status_code == 200
    record = detail.json()
    assert record["status"] == UploadStatus.SUCCESS.value
    assert record["mediaId"] == "media-9"
    assert record["postId"] == "post-9"
    assert record["completedAt"] is not None
    assert [item["id"] for item in listing.json()] == [upload["id"]]
    assert upload_overrides["media"].uploads[0]["bytes"] == b"video-bytes"
    assert upload_overrides["publisher"].texts == ["Launch - Liftoff"]


@pytest.mark.anyio
async def test_uploads_listed_newest_first(upload_overrides):
    store = upload_overrides["store"]
    older = store.create(title="older", description=None, file_size=1, mime_type="video/mp4")
    newer = store.create(title="newer", description=None, file_size=1, mime_type="video/mp4")

    async with _client() as client:
        response = await client.get("/api/uploads")

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [newer.id, older.id]


@pytest.mark.anyio
async def test_unknown_upload_returns_404(upload_overrides):
    async with _client() as client:
        response = await client.get("/api/uploads/does-not-exist")

    assert response.status_code == 404


@pytest.mark.anyio
async def test_uploads_listing_honours_limit(upload_overrides):
    store = upload_overrides["store"]
    store.create(title="older", description=None, file_size=1, mime_type="video/mp4")
    newer = store.create(title="newer", description=None, file_size=1, mime_type="video/mp4")

    async with _client() as client:
        limited = await client.get("/api/uploads", params={"limit": 1})
        invalid = await client.get("/api/uploads", params={"limit": 0})

    assert limited.status_code == 200
    assert [item["id"] for item in limited.json()] == [newer.id]
    assert invalid.status_code == 422
