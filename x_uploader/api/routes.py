"""
FastAPI routes for the X video uploader.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from x_uploader.clients.x_oauth import TokenExchangeError
from x_uploader.dependencies import (
    get_app_settings,
    get_current_user_id,
    get_upload_orchestrator,
    get_upload_store,
    get_x_auth_flow,
    get_x_token_service,
)
from x_uploader.models import UploadRecord
from x_uploader.schemas import (
    AuthStatusResponse,
    ConnectedUser,
    DisconnectResponse,
    UploadAcceptedResponse,
)
from x_uploader.services.uploads import UnauthorizedError, check_credential
from x_uploader.services.x_auth import (
    InvalidCallbackError,
    InvalidSessionError,
    OAuthConfigurationError,
)

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/uploads", response_model=list[UploadRecord])
async def list_uploads(
    store: Annotated[Any, Depends(get_upload_store)],
    limit: Optional[int] = Query(None, ge=1, description="Return at most this many records."),
) -> list[UploadRecord]:
    """Return upload records, newest first."""
    return store.list_recent(limit=limit)


@router.get("/uploads/{upload_id}", response_model=UploadRecord)
async def get_upload(
    upload_id: str,
    store: Annotated[Any, Depends(get_upload_store)],
) -> UploadRecord:
    record = store.get(upload_id)
    if record is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Upload not found.")
    return record


@router.post("/upload", response_model=UploadAcceptedResponse)
async def upload_video(
    orchestrator: Annotated[Any, Depends(get_upload_orchestrator)],
    token_service: Annotated[Any, Depends(get_x_token_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    user_id: Annotated[str, Depends(get_current_user_id)],
    video: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
) -> Any:
    """Accept a video and start uploading and publishing it in the background."""
    if video is None:
        return JSONResponse(
            status_code=HTTPStatus.BAD_REQUEST,
            content={"success": False, "error": "No video file provided"},
        )

    max_size = settings.upload.max_file_size_bytes
    if video.size is not None and video.size > max_size:
        return _file_too_large(max_size)

    credential = await token_service.get_credential(user_id=user_id)

    try:
        # Check the credential before buffering the whole file.
        check_credential(credential)
    except UnauthorizedError as exc:
        return _unauthorized(exc)

    payload = await video.read()
    if len(payload) > max_size:
        return _file_too_large(max_size)

    try:
        record = await orchestrator.submit(
            title=title,
            description=description,
            payload=payload,
            mime_type=video.content_type or DEFAULT_MIME_TYPE,
            credential=credential,
        )
    except UnauthorizedError as exc:
        return _unauthorized(exc)
    except Exception as exc:
        logger.exception("Error in upload endpoint")
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={"success": False, "error": str(exc) or "Internal server error"},
        )

    return UploadAcceptedResponse(upload=record)


@router.get("/auth/status", response_model=AuthStatusResponse, response_model_exclude_none=True)
async def auth_status(
    token_service: Annotated[Any, Depends(get_x_token_service)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> AuthStatusResponse:
    """Report whether an X account is connected."""
    credential = token_service.get_stored_credential(user_id)
    if credential is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(
        authenticated=True,
        user=ConnectedUser(user_id=credential.user_id, username=credential.username),
    )


@router.get("/auth/connect")
async def connect_x_account(
    request: Request,
    auth_flow: Annotated[Any, Depends(get_x_auth_flow)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> Response:
    """Redirect the browser to the X consent screen."""
    try:
        authorization_url = auth_flow.begin_authorization(
            user_id, redirect_uri=_callback_url(request)
        )
    except OAuthConfigurationError as exc:
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content={"error": str(exc)}
        )
    return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.get("/auth/callback")
async def handle_x_oauth_callback(
    request: Request,
    auth_flow: Annotated[Any, Depends(get_x_auth_flow)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: Optional[str] = Query(None, description="Authorization code returned by X."),
    state: Optional[str] = Query(None, description="State token issued by /auth/connect."),
    error: Optional[str] = Query(None),
    error_description: Optional[str] = Query(None),
) -> Response:
    """Complete the OAuth exchange and send the browser back to the auth page."""
    try:
        await auth_flow.complete_authorization(
            code=code,
            state=state,
            error=error,
            error_description=error_description,
            redirect_uri=_callback_url(request),
        )
    except (InvalidCallbackError, InvalidSessionError) as exc:
        return PlainTextResponse(str(exc), status_code=HTTPStatus.BAD_REQUEST)
    except OAuthConfigurationError as exc:
        return PlainTextResponse(str(exc), status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
    except TokenExchangeError as exc:
        logger.error(
            "OAuth callback failed",
            extra={"status": exc.status_code, "error": exc.description},
        )
        return PlainTextResponse(
            f"Authentication failed: {exc.description}",
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    return RedirectResponse(url=settings.auth_ui_path, status_code=HTTPStatus.TEMPORARY_REDIRECT)


@router.post("/auth/disconnect", response_model=DisconnectResponse)
async def disconnect_x_account(
    auth_flow: Annotated[Any, Depends(get_x_auth_flow)],
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> DisconnectResponse:
    auth_flow.disconnect(user_id)
    return DisconnectResponse()


def _callback_url(request: Request) -> str:
    return str(request.url_for("handle_x_oauth_callback"))


def _unauthorized(exc: UnauthorizedError) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": exc.message}
    if exc.needs_reauth:
        content["needsReauth"] = True
    return JSONResponse(status_code=HTTPStatus.UNAUTHORIZED, content=content)


def _file_too_large(max_size: int) -> JSONResponse:
    return JSONResponse(
        status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
        content={
            "success": False,
            "error": f"Video exceeds the maximum upload size of {max_size} bytes",
        },
    )


__all__ = ["router"]
