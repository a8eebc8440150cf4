"""
Configuration Management Module

This module handles GitHub App credentials and runtime settings.

Settings are loaded from environment variables with Pydantic Settings.
Credentials are then assembled into an immutable OctoAppConfig through a
chained builder, which validates everything up front:

    config = (
        OctoAppConfig.init()
        .app_name("My App")
        .app_id(12345)
        .client_id("Iv1.abc")
        .client_secret("client-secret")
        .webhook_secret("webhook-secret")
        .build()
    )

Design Decisions:
- Environment provides defaults, explicit builder calls override them
- Validate credentials at build time (fail-fast approach)
- Hold secrets as SecretStr so they never render in logs or reprs
- Support both file path and direct content for the private key
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import load_pem_private_key
from aiolimiter import AsyncLimiter
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from octoapp.errors import ConfigurationError
from octoapp.logging_config import get_logger
from octoapp.services.github_auth import GitHubAppAuth
from octoapp.services.github_client import DEFAULT_RATE_LIMIT, GitHubClient
from octoapp.webhook.security import VerificationResult, verify_signature

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"

# GitHub caps webhook payloads at 25 MB
DEFAULT_MAX_PAYLOAD_BYTES = 25 * 1024 * 1024

MIN_WEBHOOK_SECRET_LENGTH = 8
RECOMMENDED_WEBHOOK_SECRET_LENGTH = 16


class Settings(BaseSettings):
    """
    Settings loaded from environment variables.

    Credential fields are all optional here; OctoAppConfigBuilder.build()
    decides what is required.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # =========================================================================
    # GitHub App Configuration
    # =========================================================================
    github_app_id: Optional[str] = Field(
        default=None,
        description="GitHub App ID from app settings"
    )

    github_app_name: Optional[str] = Field(
        default=None,
        description="Display name of the GitHub App"
    )

    github_client_id: Optional[str] = Field(
        default=None,
        description="OAuth client ID of the GitHub App"
    )

    github_client_secret: Optional[SecretStr] = Field(
        default=None,
        description="OAuth client secret of the GitHub App"
    )

    github_webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Webhook secret for signature verification"
    )

    github_private_key: Optional[SecretStr] = Field(
        default=None,
        description="GitHub App private key content (alternative to path)"
    )

    github_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to GitHub App private key .pem file"
    )

    github_api_url: str = Field(
        default=DEFAULT_API_URL,
        description="GitHub REST API base URL (GitHub Enterprise Server support)"
    )

    # =========================================================================
    # Webhook Server Configuration
    # =========================================================================
    host: str = Field(
        default="127.0.0.1",
        description="Host to bind the webhook server"
    )

    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port to bind the webhook server"
    )

    webhook_path: str = Field(
        default="/github",
        description="Path that receives webhook deliveries"
    )

    max_payload_bytes: int = Field(
        default=DEFAULT_MAX_PAYLOAD_BYTES,
        ge=1024,
        description="Largest accepted webhook body in bytes"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        if not v.startswith("/"):
            return "/" + v
        return v


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings.

    Uses lru_cache so the environment is only read once per process.
    Call get_settings.cache_clear() to reload.

    Raises:
        ConfigurationError: If an environment value is invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ConfigurationError(
            f"Invalid setting {field}: {error['msg']}",
            field=field
        ) from e


def _reveal(value: Union[str, SecretStr, None]) -> Optional[str]:
    if isinstance(value, SecretStr):
        return value.get_secret_value()
    return value


class OctoAppConfig(BaseModel):
    """
    Immutable GitHub App credentials.

    Construct through OctoAppConfig.init()...build() so that every field
    is validated. Secrets are never included in str() or repr().
    """

    model_config = ConfigDict(frozen=True)

    app_id: int = Field(gt=0)
    client_id: str
    client_secret: SecretStr
    webhook_secret: Optional[SecretStr] = None
    private_key: Optional[SecretStr] = None
    app_name: Optional[str] = None
    api_url: str = DEFAULT_API_URL

    # Shared by every client built from this config
    _auth: Optional[GitHubAppAuth] = PrivateAttr(default=None)
    _rate_limiter: Optional[AsyncLimiter] = PrivateAttr(default=None)

    @classmethod
    def init(cls, settings: Optional[Settings] = None) -> "OctoAppConfigBuilder":
        """
        Start a builder pre-populated from the environment.

        Args:
            settings: Settings to read defaults from (defaults to get_settings())
        """
        return OctoAppConfigBuilder(settings)

    @property
    def has_webhook_secret(self) -> bool:
        return self.webhook_secret is not None

    def verify_webhook_signature(
        self,
        body: bytes,
        signature_header: Optional[str]
    ) -> VerificationResult:
        """Verify a webhook delivery against the configured secret."""
        return verify_signature(body, signature_header, self.webhook_secret)

    def github_auth(self) -> GitHubAppAuth:
        """
        The app-level authentication manager.

        Created on first use and reused afterwards, so installation tokens
        stay cached across clients and webhook deliveries.

        Raises:
            ConfigurationError: If no private key is configured
        """
        if self.private_key is None:
            raise ConfigurationError.missing("private_key")
        if self._auth is None:
            self._auth = GitHubAppAuth(
                app_id=self.app_id,
                private_key=self.private_key.get_secret_value(),
                api_url=self.api_url
            )
        return self._auth

    def github_client(self, installation_id: Optional[int] = None) -> GitHubClient:
        """
        Create an authenticated GitHub API client.

        Without an installation id the client authenticates as the app
        itself (JWT); with one it uses that installation's access token.
        All clients of a config share one token cache and one rate limit.

        Raises:
            ConfigurationError: If no private key is configured
        """
        auth = self.github_auth()
        if self._rate_limiter is None:
            self._rate_limiter = AsyncLimiter(max_rate=DEFAULT_RATE_LIMIT, time_period=3600)
        return GitHubClient(
            auth,
            installation_id=installation_id,
            rate_limiter=self._rate_limiter
        )

    def __str__(self) -> str:
        return f"OctoAppConfig(app_name={self.app_name!r}, app_id={self.app_id})"

    def __repr__(self) -> str:
        return str(self)


class OctoAppConfigBuilder:
    """
    Chained builder for OctoAppConfig.

    Every setter returns the builder. Values not set explicitly come from
    the Settings the builder was created with.
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings if settings is not None else get_settings()

        self._app_name: Optional[str] = settings.github_app_name
        self._app_id: Union[int, str, None] = settings.github_app_id
        self._client_id: Optional[str] = settings.github_client_id
        self._client_secret: Optional[SecretStr] = settings.github_client_secret
        self._private_key: Optional[SecretStr] = settings.github_private_key
        self._private_key_path: Optional[Path] = (
            Path(settings.github_private_key_path)
            if settings.github_private_key_path else None
        )
        self._webhook_secret: Optional[SecretStr] = settings.github_webhook_secret
        self._api_url: str = settings.github_api_url

    def app_name(self, app_name: str) -> "OctoAppConfigBuilder":
        self._app_name = app_name
        return self

    def app_id(self, app_id: Union[int, str]) -> "OctoAppConfigBuilder":
        self._app_id = app_id
        return self

    def client_id(self, client_id: str) -> "OctoAppConfigBuilder":
        self._client_id = client_id
        return self

    def client_secret(self, client_secret: Union[str, SecretStr]) -> "OctoAppConfigBuilder":
        self._client_secret = SecretStr(_reveal(client_secret))
        return self

    def private_key(self, private_key: Union[str, SecretStr]) -> "OctoAppConfigBuilder":
        self._private_key = SecretStr(_reveal(private_key))
        return self

    def private_key_path(self, path: Union[str, Path]) -> "OctoAppConfigBuilder":
        self._private_key_path = Path(path)
        return self

    def webhook_secret(self, webhook_secret: Union[str, SecretStr]) -> "OctoAppConfigBuilder":
        self._webhook_secret = SecretStr(_reveal(webhook_secret))
        return self

    def api_url(self, api_url: str) -> "OctoAppConfigBuilder":
        self._api_url = api_url
        return self

    def build(self) -> OctoAppConfig:
        """
        Validate the collected values and build the configuration.

        Raises:
            ConfigurationError: If a required field is missing or invalid
        """
        logger.debug("Building OctoAppConfig")

        app_id = self._validated_app_id()

        if not self._client_id:
            raise ConfigurationError.missing("client_id")

        if not _reveal(self._client_secret):
            raise ConfigurationError.missing("client_secret")

        config = OctoAppConfig(
            app_name=self._app_name,
            app_id=app_id,
            client_id=self._client_id,
            client_secret=self._client_secret,
            webhook_secret=self._validated_webhook_secret(),
            private_key=self._load_private_key(),
            api_url=self._api_url.rstrip("/")
        )

        logger.info(
            "GitHub App configuration loaded",
            app_id=config.app_id,
            app_name=config.app_name,
            webhook_verification=config.has_webhook_secret,
            api_auth=config.private_key is not None
        )
        return config

    def _validated_app_id(self) -> int:
        if self._app_id is None or self._app_id == "":
            raise ConfigurationError.missing("app_id")
        try:
            app_id = int(self._app_id)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Invalid app_id: {self._app_id!r} is not an integer",
                field="app_id"
            )
        if app_id <= 0:
            raise ConfigurationError(
                f"Invalid app_id: {app_id} must be positive",
                field="app_id"
            )
        return app_id

    def _validated_webhook_secret(self) -> Optional[SecretStr]:
        secret = _reveal(self._webhook_secret)

        if not secret:
            logger.warning(
                "No webhook secret configured, deliveries will be rejected"
            )
            return None

        if len(secret) < MIN_WEBHOOK_SECRET_LENGTH:
            raise ConfigurationError(
                f"Webhook secret is less than {MIN_WEBHOOK_SECRET_LENGTH} "
                f"characters: {len(secret)}",
                field="webhook_secret"
            )

        if len(secret) < RECOMMENDED_WEBHOOK_SECRET_LENGTH:
            logger.warning(
                "Webhook secret is shorter than recommended",
                length=len(secret),
                recommended=RECOMMENDED_WEBHOOK_SECRET_LENGTH
            )

        return SecretStr(secret)

    def _load_private_key(self) -> Optional[SecretStr]:
        """
        Load and validate the GitHub App private key.

        Supports two modes, file path taking precedence:
        1. File path via private_key_path() / GITHUB_PRIVATE_KEY_PATH
        2. Direct content via private_key() / GITHUB_PRIVATE_KEY
        """
        if self._private_key_path is not None:
            try:
                pem = self._private_key_path.read_text()
            except OSError as e:
                raise ConfigurationError(
                    f"Private key file could not be read: {self._private_key_path} ({e})",
                    field="private_key"
                ) from e
        elif _reveal(self._private_key):
            # Handle newline escaping in env vars
            pem = _reveal(self._private_key).replace("\\n", "\n")
        else:
            return None

        try:
            key = load_pem_private_key(pem.encode(), password=None)
        except (TypeError, ValueError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(
                "Private key is not a valid PEM private key",
                field="private_key"
            ) from e

        if not isinstance(key, rsa.RSAPrivateKey):
            raise ConfigurationError(
                "Private key must be an RSA key (GitHub Apps sign with RS256)",
                field="private_key"
            )

        return SecretStr(pem)
