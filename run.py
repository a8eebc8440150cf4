"""
Webhook Server Runner

Starts a standalone webhook receiver configured from the environment
(see .env.example). Every verified delivery is logged.

Use: python run.py
"""

from octoapp.config import OctoAppConfig, get_settings
from octoapp.logging_config import get_logger, setup_logging
from octoapp.main import WebhookServer, log_event

logger = get_logger(__name__)


def main():
    """Build the configuration and serve webhooks with uvicorn."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json_format)

    config = OctoAppConfig.init(settings).build()
    logger.info("Loaded configuration", config=str(config))

    server = (
        WebhookServer(config, max_payload_bytes=settings.max_payload_bytes)
        .path(settings.webhook_path)
        .on_event(log_event)
    )

    server.serve(
        f"{settings.host}:{settings.port}",
        log_level=settings.log_level.lower(),
        access_log=settings.log_requests
    )


if __name__ == "__main__":
    main()
