"""
FastAPI routes for the grounded question gateway.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from vertex_gateway.clients.google_auth import InvalidStateError
from vertex_gateway.core.errors import (
    ExchangeFailedError,
    GatewayError,
    NotAuthorizedError,
    RefreshFailedError,
    StorageError,
    UpstreamError,
)
from vertex_gateway.dependencies import (
    get_app_settings,
    get_authorization_flow_handler,
    get_inference_gateway,
    get_oauth_state_encoder,
    get_token_lifecycle_manager,
)
from vertex_gateway.schemas import (
    AskRequest,
    AskResult,
    AuthorizationResult,
    AuthorizationUrlResponse,
    ErrorResponse,
)

router = APIRouter()
logger = logging.getLogger(__name__)

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.value: {"model": ErrorResponse}
    for status in (
        HTTPStatus.BAD_REQUEST,
        HTTPStatus.UNAUTHORIZED,
        HTTPStatus.BAD_GATEWAY,
        HTTPStatus.SERVICE_UNAVAILABLE,
    )
}


def _error_response(status: HTTPStatus, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"error": message})


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth", responses={HTTPStatus.OK.value: {"model": AuthorizationUrlResponse}})
async def start_authorization(
    flow: Annotated[Any, Depends(get_authorization_flow_handler)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    redirect: bool = Query(
        default=True,
        description="When false, return the consent URL as JSON instead of redirecting.",
    ),
) -> Response:
    """Send the operator to the Google consent screen."""
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = flow.build_authorization_url(settings.oauth.scopes, state=state)

    if redirect:
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    body = AuthorizationUrlResponse(authorization_url=authorization_url, state=state)
    return JSONResponse(content=body.model_dump())


@router.get(
    "/oauth2callback",
    response_model=AuthorizationResult,
    responses=_ERROR_RESPONSES,
)
async def handle_oauth_callback(
    request: Request,
    flow: Annotated[Any, Depends(get_authorization_flow_handler)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code returned by Google."),
    state: str | None = Query(default=None, description="State token issued by /auth."),
    error: str | None = Query(default=None, description="Error reported by the consent screen."),
) -> Response:
    """Complete the authorization-code exchange and persist the credential."""
    if error:
        return _error_response(HTTPStatus.BAD_REQUEST, f"Authorization was not granted: {error}")
    if not code:
        return _error_response(HTTPStatus.BAD_REQUEST, "Missing authorization code.")

    if state:
        try:
            state_encoder.decode(state, max_age_seconds=settings.oauth.state_ttl_seconds)
        except InvalidStateError as exc:
            return _error_response(HTTPStatus.BAD_REQUEST, str(exc))
    elif settings.oauth.require_state:
        return _error_response(HTTPStatus.BAD_REQUEST, "Missing OAuth state token.")

    try:
        record = await flow.exchange_code(code)
    except ExchangeFailedError as exc:
        reason = exc.provider_payload.get("error") if isinstance(exc.provider_payload, dict) else None
        message = f"{exc} ({reason})" if reason else str(exc)
        return _error_response(HTTPStatus.BAD_REQUEST, message)
    except StorageError as exc:
        logger.error("Credential could not be persisted after exchange: %s", exc)
        return _error_response(HTTPStatus.SERVICE_UNAVAILABLE, "Credential storage is unavailable.")

    result = AuthorizationResult(
        expires_at=record.expires_at,
        has_refresh_token=bool(record.refresh_token),
    )
    if settings.frontend_base_url and _wants_html(request):
        return RedirectResponse(
            url=str(settings.frontend_base_url), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    return JSONResponse(content=result.model_dump(mode="json"))


@router.post("/ask", response_model=AskResult, responses=_ERROR_RESPONSES)
async def ask_question(
    payload: AskRequest,
    token_manager: Annotated[Any, Depends(get_token_lifecycle_manager)],
    gateway: Annotated[Any, Depends(get_inference_gateway)],
) -> Any:
    """Answer a question through the grounded model using the held credential."""
    access_token: str | None = None
    try:
        access_token = await token_manager.get_valid_access_token()
        return await gateway.ask(access_token, payload.question, payload.context)
    except NotAuthorizedError as exc:
        return _error_response(HTTPStatus.UNAUTHORIZED, str(exc))
    except RefreshFailedError as exc:
        return _error_response(HTTPStatus.BAD_GATEWAY, str(exc))
    except UpstreamError as exc:
        if exc.status_code == HTTPStatus.UNAUTHORIZED and access_token:
            try:
                await token_manager.invalidate(access_token)
            except StorageError as storage_exc:
                logger.error("Could not invalidate rejected access token: %s", storage_exc)
        return _error_response(HTTPStatus.BAD_GATEWAY, f"Failed to process the request: {exc}")
    except GatewayError as exc:
        return _error_response(HTTPStatus.BAD_GATEWAY, f"Failed to process the request: {exc}")
    except StorageError as exc:
        logger.error("Credential storage failure while serving /ask: %s", exc)
        return _error_response(HTTPStatus.SERVICE_UNAVAILABLE, "Credential storage is unavailable.")


__all__ = ["router"]
