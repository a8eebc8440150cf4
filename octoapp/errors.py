"""
Error Types

Every error raised by octoapp derives from OctoAppError so callers can
catch library failures in one place. Errors specific to a single component
live beside it (SignatureError in webhook.security, GitHubAuthError and
GitHubAPIError in services) and subclass OctoAppError as well.
"""

from typing import Optional


class OctoAppError(Exception):
    """Base exception for all octoapp errors."""
    pass


class ConfigurationError(OctoAppError):
    """A required credential is missing or a configured value is invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    @classmethod
    def missing(cls, field: str) -> "ConfigurationError":
        return cls(f"Missing required field: {field}", field=field)


class PayloadTooLargeError(OctoAppError):
    """Webhook body exceeded the configured size limit."""

    def __init__(self, limit: int):
        super().__init__(f"Payload exceeds limit of {limit} bytes")
        self.limit = limit


class WebhookParseError(OctoAppError):
    """A verified webhook body could not be turned into an event."""
    pass


class InstallationError(OctoAppError):
    """A webhook delivery carries no installation to authenticate as."""
    pass


class WebhookHandlerError(OctoAppError):
    """The application's event handler raised."""
    pass
