"""
Standalone Webhook Server

Runs a GitHub webhook receiver without an existing web application:

    server = (
        WebhookServer(config)
        .path("/github")
        .on_event(handle_event)
    )
    server.serve("127.0.0.1:4242")

The handler receives a verified WebHook and may be a plain function
(run in a worker thread) or a coroutine function.

Design Decisions:
- Build a FastAPI app and serve it with uvicorn
- Use lifespan events for startup/shutdown logging
- Reuse the FastAPI integration for verification and error mapping
- Expose health and readiness endpoints
"""

import inspect
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Optional, Tuple, Type

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from octoapp import __version__
from octoapp.config import DEFAULT_MAX_PAYLOAD_BYTES, OctoAppConfig, get_settings
from octoapp.errors import ConfigurationError, WebhookHandlerError
from octoapp.logging_config import get_logger, setup_logging
from octoapp.models import WebhookPayload
from octoapp.webhook.events import WebHook
from octoapp.webhook.handler import install_octoapp, webhook_payload

logger = get_logger(__name__)

EventHandler = Callable[[WebHook], Any]


def parse_address(addr: str) -> Tuple[str, int]:
    """
    Split a "host:port" bind address.

    Raises:
        ConfigurationError: If the address is malformed
    """
    host, sep, port = addr.rpartition(":")
    host = host.strip("[]")
    if not sep or not host or not port.isdigit():
        raise ConfigurationError(f"Invalid bind address: {addr!r}", field="addr")

    port_int = int(port)
    if not 1 <= port_int <= 65535:
        raise ConfigurationError(f"Invalid port in bind address: {addr!r}", field="addr")

    return host, port_int


class WebhookServer:
    """
    Builder for a standalone webhook receiver.

    Only POST requests to the configured path are treated as deliveries.
    Other methods on that path get FastAPI's 405 and other paths 404.
    """

    def __init__(
        self,
        config: OctoAppConfig,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
    ):
        self.config = config
        self.max_payload_bytes = max_payload_bytes
        self._path = "/"
        self._handler: Optional[EventHandler] = None
        self._model: Optional[Type[WebhookPayload]] = None

    def path(self, path: str) -> "WebhookServer":
        """Set the webhook endpoint path (default "/")."""
        self._path = path if path.startswith("/") else "/" + path
        return self

    def on_event(
        self,
        handler: EventHandler,
        model: Optional[Type[WebhookPayload]] = None
    ) -> "WebhookServer":
        """
        Register the event handler.

        Args:
            handler: Called with each verified WebHook
            model: Only accept deliveries of this payload model
        """
        self._handler = handler
        self._model = model
        return self

    async def dispatch(self, webhook: WebHook) -> None:
        """
        Run the registered handler for a webhook.

        Raises:
            WebhookHandlerError: If the handler raises
        """
        if self._handler is None:
            logger.debug("No event handler registered", event_type=webhook.event)
            return

        try:
            if inspect.iscoroutinefunction(self._handler):
                await self._handler(webhook)
            else:
                result = await run_in_threadpool(self._handler, webhook)
                if inspect.isawaitable(result):
                    await result
        except Exception as e:
            logger.error(
                "Webhook handler failed",
                event_type=webhook.event,
                delivery_id=webhook.delivery_id,
                error=str(e),
                error_type=type(e).__name__
            )
            raise WebhookHandlerError(f"Handler failed for '{webhook.event}': {e}") from e

    def create_app(self) -> FastAPI:
        """
        Create the FastAPI application serving the webhook path.

        Returns:
            Configured FastAPI application instance
        """
        config = self.config
        webhook_path = self._path

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            logger.info(
                "Starting webhook server",
                app_id=config.app_id,
                app_name=config.app_name,
                path=webhook_path
            )
            if not config.has_webhook_secret:
                logger.warning("No webhook secret configured, all deliveries will be rejected")

            yield

            logger.info("Shutting down webhook server")

        app = FastAPI(
            title=config.app_name or "octoapp",
            description="GitHub App webhook receiver",
            version=__version__,
            lifespan=lifespan,
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )

        install_octoapp(app, config, max_payload_bytes=self.max_payload_bytes)

        receive_dependency = webhook_payload(self._model)

        async def receive(webhook: WebHook = Depends(receive_dependency)) -> Dict[str, Any]:
            await self.dispatch(webhook)
            return {
                "status": "ok",
                "event": webhook.event,
                "delivery_id": webhook.delivery_id
            }

        app.add_api_route(
            webhook_path,
            receive,
            methods=["POST"],
            status_code=status.HTTP_200_OK
        )

        @app.get("/health")
        async def health_check():
            """Health check endpoint for load balancers and monitors."""
            return {
                "status": "healthy",
                "service": "octoapp",
                "version": __version__
            }

        @app.get("/ready")
        async def readiness_check():
            """Ready once deliveries can actually be verified."""
            if not config.has_webhook_secret:
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail="Not ready: webhook secret not configured"
                )
            return {"status": "ready", "service": "octoapp"}

        return app

    def serve(self, addr: str, log_level: str = "info", access_log: bool = False) -> None:
        """
        Serve the webhook app with uvicorn, blocking until shutdown.

        Raises:
            ConfigurationError: If the bind address is malformed
        """
        host, port = parse_address(addr)
        logger.info("Webhook server listening", url=f"http://{addr}{self._path}")

        uvicorn.run(
            self.create_app(),
            host=host,
            port=port,
            log_level=log_level,
            access_log=access_log
        )

    async def serve_async(self, addr: str, log_level: str = "info") -> None:
        """Serve from inside a running event loop."""
        host, port = parse_address(addr)
        server = uvicorn.Server(
            uvicorn.Config(self.create_app(), host=host, port=port, log_level=log_level)
        )
        await server.serve()


def log_event(webhook: WebHook) -> None:
    """Default handler: record each delivery."""
    logger.info(
        "Received webhook event",
        event_type=webhook.event,
        action=webhook.action,
        delivery_id=webhook.delivery_id,
        installation_id=webhook.installation_id
    )


def create_app_from_env() -> FastAPI:
    """
    Application factory reading everything from the environment.

    Usage:
        uvicorn octoapp.main:create_app_from_env --factory
    """
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json_format)

    config = OctoAppConfig.init(settings).build()

    return (
        WebhookServer(config, max_payload_bytes=settings.max_payload_bytes)
        .path(settings.webhook_path)
        .on_event(log_event)
        .create_app()
    )
