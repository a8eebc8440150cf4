"""
Webhook Handler Module

FastAPI integration for receiving GitHub webhooks inside an existing
application.

Usage:
    app = FastAPI()
    install_octoapp(app, config)

    @app.post("/github")
    async def github(webhook: WebHook = Depends(webhook_payload())):
        ...

    @app.post("/github/ping")
    async def ping(webhook: WebHook[PingEvent] = Depends(webhook_payload(PingEvent))):
        return {"zen": webhook.payload.zen}

Design Decisions:
- Read the body as raw bytes under a size limit before anything else
- Verify the signature before the body is parsed
- Map every OctoAppError to a JSON error response with a fitting status
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from octoapp.config import DEFAULT_MAX_PAYLOAD_BYTES, OctoAppConfig
from octoapp.errors import (
    ConfigurationError,
    OctoAppError,
    PayloadTooLargeError,
    WebhookParseError,
)
from octoapp.logging_config import get_logger
from octoapp.models import WebhookPayload
from octoapp.webhook.events import WebHook, receive_webhook
from octoapp.webhook.security import SignatureError

logger = get_logger(__name__)


@dataclass(frozen=True)
class OctoAppState:
    """Shared state for webhook routes, stored on app.state.octoapp."""
    config: OctoAppConfig
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES


def install_octoapp(
    app: FastAPI,
    config: OctoAppConfig,
    max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
) -> OctoAppState:
    """
    Attach octoapp state and error handlers to a FastAPI application.

    Returns:
        The installed OctoAppState
    """
    state = OctoAppState(config=config, max_payload_bytes=max_payload_bytes)
    app.state.octoapp = state
    register_exception_handlers(app)

    logger.debug("Installed octoapp on FastAPI application", app_id=config.app_id)
    return state


def get_octoapp_state(request: Request) -> OctoAppState:
    """
    FastAPI dependency returning the installed OctoAppState.

    Raises:
        ConfigurationError: If install_octoapp() was never called
    """
    state = getattr(request.app.state, "octoapp", None)
    if not isinstance(state, OctoAppState):
        raise ConfigurationError(
            "octoapp is not installed on this application, call install_octoapp()"
        )
    return state


async def read_body(request: Request, limit: int) -> bytes:
    """
    Read the raw request body, refusing anything larger than ``limit``.

    Raises:
        PayloadTooLargeError: If the body exceeds the limit
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > limit:
        raise PayloadTooLargeError(limit)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise PayloadTooLargeError(limit)

    return bytes(body)


def webhook_payload(
    model: Optional[Type[WebhookPayload]] = None
) -> Callable[[Request], Awaitable[WebHook]]:
    """
    Build a FastAPI dependency that yields a verified WebHook.

    Args:
        model: Payload model to require; chosen from X-GitHub-Event if omitted
    """

    async def dependency(request: Request) -> WebHook:
        state = get_octoapp_state(request)
        raw_body = await read_body(request, state.max_payload_bytes)
        return receive_webhook(state.config, raw_body, request.headers, model=model)

    return dependency


def error_status(exc: OctoAppError) -> int:
    """HTTP status code for an octoapp error."""
    if isinstance(exc, SignatureError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(exc, PayloadTooLargeError):
        return 413
    if isinstance(exc, WebhookParseError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(exc: OctoAppError) -> JSONResponse:
    """
    JSON error body for an octoapp error.

    Server-side failures get a generic message so upstream details and
    configuration problems are not exposed to the caller.
    """
    status_code = error_status(exc)
    if status_code >= 500:
        message = "Internal server error"
    else:
        message = str(exc)

    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message}
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render OctoAppError subclasses as JSON error responses."""

    @app.exception_handler(OctoAppError)
    async def octoapp_exception_handler(
        request: Request,
        exc: OctoAppError
    ) -> JSONResponse:
        status_code = error_status(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "Webhook request failed",
            path=request.url.path,
            status_code=status_code,
            error=str(exc),
            error_type=type(exc).__name__
        )
        return error_response(exc)
