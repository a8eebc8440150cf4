"""
octoapp

A library for building GitHub Apps: credential configuration, an
authenticated GitHub API client, webhook signature verification and
webhook receivers for FastAPI or a standalone uvicorn server.
"""

__version__ = "0.3.0"
__author__ = "octoapp contributors"

from octoapp.config import OctoAppConfig, OctoAppConfigBuilder
from octoapp.errors import (
    ConfigurationError,
    InstallationError,
    OctoAppError,
    PayloadTooLargeError,
    WebhookHandlerError,
    WebhookParseError,
)
from octoapp.webhook.events import WebHook, parse_webhook
from octoapp.webhook.security import (
    RejectionReason,
    SignatureError,
    VerificationResult,
    compute_signature,
    verify_signature,
)

__all__ = [
    "OctoAppConfig",
    "OctoAppConfigBuilder",
    "OctoAppError",
    "ConfigurationError",
    "InstallationError",
    "PayloadTooLargeError",
    "WebhookHandlerError",
    "WebhookParseError",
    "WebHook",
    "parse_webhook",
    "RejectionReason",
    "SignatureError",
    "VerificationResult",
    "compute_signature",
    "verify_signature",
]
