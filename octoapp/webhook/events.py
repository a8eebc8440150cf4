"""
Webhook Events Module

The WebHook envelope and the framework-independent receive path:
verify the raw body first, then parse it into a payload model chosen
by the X-GitHub-Event header.
"""

from dataclasses import dataclass
from typing import Generic, Mapping, Optional, Type, TypeVar

from pydantic import ValidationError

from octoapp.config import OctoAppConfig
from octoapp.errors import InstallationError, WebhookParseError
from octoapp.logging_config import get_logger
from octoapp.models import WebhookPayload, event_for_model, model_for_event
from octoapp.services.github_client import GitHubClient
from octoapp.webhook.security import (
    SIGNATURE_HEADER,
    SignatureError,
    ensure_valid_signature,
)

logger = get_logger(__name__)

EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"

PayloadT = TypeVar("PayloadT", bound=WebhookPayload)


@dataclass(frozen=True)
class WebHook(Generic[PayloadT]):
    """
    A verified webhook delivery.

    Attributes:
        event: X-GitHub-Event header value
        payload: Parsed payload model
        delivery_id: X-GitHub-Delivery header value
    """
    event: str
    payload: PayloadT
    delivery_id: Optional[str] = None

    @property
    def installation_id(self) -> Optional[int]:
        """Installation that triggered the delivery, if the payload names one."""
        if self.payload.installation is None:
            return None
        return self.payload.installation.id

    @property
    def action(self) -> Optional[str]:
        return self.payload.action

    def github_client(self, config: OctoAppConfig) -> GitHubClient:
        """
        Create an API client scoped to this delivery's installation.

        Raises:
            InstallationError: If the payload carries no installation
            ConfigurationError: If the config has no private key
        """
        if self.installation_id is None:
            raise InstallationError(
                f"Webhook '{self.event}' ({self.delivery_id}) has no installation"
            )
        return config.github_client(installation_id=self.installation_id)


def parse_webhook(
    body: bytes,
    event: Optional[str],
    delivery_id: Optional[str] = None,
    model: Optional[Type[PayloadT]] = None,
) -> WebHook:
    """
    Parse a webhook body into a WebHook.

    Only call this on a body whose signature has already been verified.

    Args:
        body: Raw request body bytes
        event: X-GitHub-Event header value
        delivery_id: X-GitHub-Delivery header value
        model: Payload model to parse into; chosen from ``event`` if omitted

    Raises:
        WebhookParseError: If the event header is missing or does not match
            ``model``, or the body does not fit the model
    """
    if model is None:
        if not event:
            raise WebhookParseError(f"Missing {EVENT_HEADER} header")
        model = model_for_event(event)
    else:
        expected = event_for_model(model)
        if event and expected and event != expected:
            raise WebhookParseError(
                f"Expected '{expected}' event, received '{event}'"
            )
        event = event or expected or "unknown"

    try:
        payload = model.model_validate_json(body)
    except ValidationError as e:
        logger.warning(
            "Invalid webhook payload",
            event_type=event,
            delivery_id=delivery_id,
            errors=e.error_count()
        )
        raise WebhookParseError(f"Invalid '{event}' payload: {e}") from e

    return WebHook(event=event, payload=payload, delivery_id=delivery_id)


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def receive_webhook(
    config: OctoAppConfig,
    body: bytes,
    headers: Mapping[str, str],
    model: Optional[Type[PayloadT]] = None,
) -> WebHook:
    """
    Verify and parse a webhook delivery.

    Works with any framework: pass the raw body bytes and the request
    headers (looked up case-insensitively).

    Raises:
        SignatureError: If the signature is rejected; the body is not parsed
        WebhookParseError: If the verified body cannot be parsed
    """
    delivery_id = _header(headers, DELIVERY_HEADER)
    event = _header(headers, EVENT_HEADER)

    try:
        ensure_valid_signature(body, _header(headers, SIGNATURE_HEADER), config.webhook_secret)
    except SignatureError as e:
        logger.warning(
            "Webhook signature rejected",
            reason=e.reason.value,
            event_type=event,
            delivery_id=delivery_id
        )
        raise

    webhook = parse_webhook(body, event, delivery_id=delivery_id, model=model)

    logger.info(
        "Webhook verified",
        event_type=webhook.event,
        action=webhook.action,
        delivery_id=delivery_id,
        installation_id=webhook.installation_id
    )
    return webhook
