try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from x_uploader.clients.credential_store import CredentialStore
from x_uploader.clients.x_oauth import XOAuthClient
from x_uploader.core.config import OAuthSettings, XApiSettings
from x_uploader.main import app
from x_uploader.services.pkce_sessions import PKCESessionCache
from x_uploader.services.token_cipher import TokenCipherService
from x_uploader.services.x_auth import XAuthFlow
from x_uploader.services.x_tokens import XTokenService


class DummyXApi:
    def __init__(self) -> None:
        self.token_status = 200
        self.codes: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            form = parse_qs(request.content.decode())
            self.codes.append(form["code"][0])
            if self.token_status != 200:
                return httpx.Response(
                    self.token_status, json={"error_description": "Invalid code"}
                )
            return httpx.Response(
                200,
                json={"access_token": "x-access", "refresh_token": "x-refresh", "expires_in": 7200},
            )
        if request.url.path.endswith("/users/me"):
            return httpx.Response(200, json={"data": {"username": "uploader"}})
        return httpx.Response(404)


def _build_flow(tmp_path, api: DummyXApi, x_settings: XApiSettings):
    oauth_client = XOAuthClient(x_settings, OAuthSettings(), transport=httpx.MockTransport(api))
    token_service = XTokenService(
        store=CredentialStore(str(tmp_path / "tokens.db")),
        oauth_client=oauth_client,
        token_cipher=TokenCipherService(secret="secret"),
    )
    flow = XAuthFlow(
        oauth_client=oauth_client,
        sessions=PKCESessionCache(),
        token_service=token_service,
        x_settings=x_settings,
    )
    return flow, token_service


@pytest.fixture()
def auth_overrides(tmp_path):
    from x_uploader import dependencies
    from x_uploader.core.config import get_settings

    api = DummyXApi()
    x_settings = XApiSettings(client_id="client-123", client_secret="shh", redirect_uri=None)
    flow, token_service = _build_flow(tmp_path, api, x_settings)
    base_settings = copy.deepcopy(get_settings())
    base_settings.auth_ui_path = "/auth"

    overrides = {
        dependencies.get_x_auth_flow: lambda: flow,
        dependencies.get_x_token_service: lambda: token_service,
        dependencies.get_app_settings: lambda: base_settings,
    }

    app.dependency_overrides.update(overrides)

    yield api, token_service, x_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def _state_from(location: str) -> str:
    return parse_qs(urlsplit(location).query)["state"][0]


@pytest.mark.anyio
async def test_status_before_connecting(auth_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/status")

    assert response.status_code == 200
    assert response.json() == {"authenticated": False}


@pytest.mark.anyio
async def test_connect_redirects_to_x(auth_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/connect")

    assert response.status_code == 307
    location = response.headers["location"]
    assert location.startswith("https://twitter.com/i/oauth2/authorize?")
    params = parse_qs(urlsplit(location).query)
    assert params["redirect_uri"] == ["http://testserver/api/auth/callback"]
    assert params["code_challenge_method"] == ["S256"]


@pytest.mark.anyio
async def test_connect_without_client_id(auth_overrides):
    _, _, x_settings = auth_overrides
    x_settings.client_id = None

    async with _client() as client:
        response = await client.get("/api/auth/connect")

    assert response.status_code == 500
    assert response.json() == {"error": "X API credentials not configured"}


@pytest.mark.anyio
async def test_full_connect_flow(auth_overrides):
    api, _, _ = auth_overrides

    async with _client() as client:
        connect = await client.get("/api/auth/connect")
        state = _state_from(connect.headers["location"])

        callback = await client.get(
            "/api/auth/callback", params={"code": "auth-code", "state": state}
        )
        status_resp = await client.get("/api/auth/status")
        replay = await client.get(
            "/api/auth/callback", params={"code": "auth-code", "state": state}
        )

    assert callback.status_code == 307
    assert callback.headers["location"] == "/auth"
    assert api.codes == ["auth-code"]
    assert status_resp.json() == {
        "authenticated": True,
        "user": {"userId": "default_user", "username": "uploader"},
    }
    assert replay.status_code == 400
    assert replay.text == "Invalid state parameter. Please try again."


@pytest.mark.anyio
async def test_callback_with_unknown_state(auth_overrides):
    api, token_service, _ = auth_overrides

    async with _client() as client:
        response = await client.get(
            "/api/auth/callback", params={"code": "auth-code", "state": "forged"}
        )

    assert response.status_code == 400
    assert api.codes == []
    assert token_service.get_stored_credential("default_user") is None


@pytest.mark.anyio
async def test_callback_reports_provider_error(auth_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/callback",
            params={"error": "access_denied", "error_description": "User cancelled"},
        )

    assert response.status_code == 400
    assert response.text == "Authentication failed: User cancelled"


@pytest.mark.anyio
async def test_callback_missing_parameters(auth_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/callback", params={"code": "auth-code"})

    assert response.status_code == 400
    assert response.text == "Invalid callback parameters"


@pytest.mark.anyio
async def test_callback_token_exchange_failure(auth_overrides):
    api, token_service, _ = auth_overrides
    api.token_status = 400

    async with _client() as client:
        connect = await client.get("/api/auth/connect")
        response = await client.get(
            "/api/auth/callback",
            params={"code": "bad-code", "state": _state_from(connect.headers["location"])},
        )

    assert response.status_code == 500
    assert response.text == "Authentication failed: Invalid code"
    assert token_service.get_stored_credential("default_user") is None


@pytest.mark.anyio
async def test_disconnect_clears_credential(auth_overrides):
    api, token_service, _ = auth_overrides

    async with _client() as client:
        connect = await client.get("/api/auth/connect")
        await client.get(
            "/api/auth/callback",
            params={"code": "auth-code", "state": _state_from(connect.headers["location"])},
        )
        response = await client.post("/api/auth/disconnect")
        status_resp = await client.get("/api/auth/status")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Account disconnected successfully"}
    assert status_resp.json() == {"authenticated": False}
