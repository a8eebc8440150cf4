"""
GitHub App Authentication Service

This module handles GitHub App authentication including:
- JWT generation for App authentication
- Installation access token generation
- Automatic token refresh when expired
- Discovery of the app's installations

Design Decisions:
- Use RS256 algorithm for JWT signing (GitHub requirement)
- Cache tokens to minimize API calls
- Automatically refresh tokens before they expire
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import jwt
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from octoapp.errors import OctoAppError
from octoapp.logging_config import get_logger

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


@dataclass
class CachedToken:
    """Cached installation access token with expiration."""
    token: str
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        """Check if token is expired or will expire within 5 minutes."""
        buffer = timedelta(minutes=5)
        return datetime.now(timezone.utc) >= (self.expires_at - buffer)


class GitHubAuthError(OctoAppError):
    """Raised when authenticating as the app or an installation fails."""
    pass


class GitHubAppAuth:
    """
    GitHub App Authentication Manager.

    Handles JWT generation and installation access token management
    for GitHub App authentication.

    Usage:
        auth = config.github_auth()
        token = await auth.get_installation_token(installation_id)
    """

    def __init__(
        self,
        app_id: int,
        private_key: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0
    ):
        """
        Initialize the auth manager.

        Args:
            app_id: GitHub App ID (JWT issuer)
            private_key: PEM encoded RSA private key
            api_url: REST API base URL
            timeout: HTTP timeout in seconds
        """
        self.app_id = app_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._private_key = private_key
        # Cache tokens by installation_id
        self._token_cache: Dict[int, CachedToken] = {}

    def __repr__(self) -> str:
        return f"GitHubAppAuth(app_id={self.app_id}, api_url={self.api_url!r})"

    def generate_jwt(self) -> str:
        """
        Generate a JWT for GitHub App authentication.

        The JWT is used to authenticate as the GitHub App itself,
        not as an installation. GitHub accepts at most 10 minutes.

        Returns:
            Signed JWT string

        Raises:
            GitHubAuthError: If JWT generation fails
        """
        now = int(time.time())

        payload = {
            # Issued at time (60 seconds in the past for clock drift)
            "iat": now - 60,
            "exp": now + (9 * 60),
            "iss": str(self.app_id),
        }

        try:
            token = jwt.encode(payload, self._private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            logger.error("Failed to generate JWT", error_type=type(e).__name__)
            raise GitHubAuthError(f"Failed to generate JWT: {e}") from e

        logger.debug("Generated GitHub App JWT", app_id=self.app_id)
        return token

    def app_headers(self) -> Dict[str, str]:
        """Headers authenticating as the app itself."""
        return {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def _app_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """Make a request authenticated with the app JWT."""
        url = f"{self.api_url}{endpoint}"

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.request(
                method,
                url,
                headers=self.app_headers(),
                **kwargs
            )

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub App request failed",
                endpoint=endpoint,
                status_code=response.status_code,
                error=error_body[:500]
            )
            raise GitHubAuthError(
                f"GitHub App request failed: {response.status_code} - {error_body}"
            )

        return response

    async def _fetch_installation_token(self, installation_id: int) -> CachedToken:
        """
        Fetch a new installation access token from GitHub.

        Args:
            installation_id: GitHub App installation ID

        Returns:
            CachedToken with the access token and expiration

        Raises:
            GitHubAuthError: If token fetch fails
        """
        response = await self._app_request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens"
        )

        data = response.json()
        token = data["token"]
        # Parse expiration time from GitHub response
        expires_at = datetime.fromisoformat(
            data["expires_at"].replace("Z", "+00:00")
        )

        logger.info(
            "Obtained installation access token",
            installation_id=installation_id,
            expires_at=expires_at.isoformat()
        )

        return CachedToken(token=token, expires_at=expires_at)

    async def get_installation_token(self, installation_id: int) -> str:
        """
        Get an installation access token, using cache when possible.

        Args:
            installation_id: GitHub App installation ID

        Returns:
            Valid installation access token

        Raises:
            GitHubAuthError: If authentication fails
        """
        cached = self._token_cache.get(installation_id)

        if cached and not cached.is_expired:
            logger.debug(
                "Using cached installation token",
                installation_id=installation_id
            )
            return cached.token

        logger.debug(
            "Fetching new installation token",
            installation_id=installation_id,
            reason="expired" if cached else "not_cached"
        )

        new_token = await self._fetch_installation_token(installation_id)
        self._token_cache[installation_id] = new_token

        return new_token.token

    def invalidate_token(self, installation_id: int) -> None:
        """
        Invalidate a cached token.

        Call this if an API request fails with 401 Unauthorized,
        indicating the token may have been revoked.
        """
        if installation_id in self._token_cache:
            del self._token_cache[installation_id]
            logger.info(
                "Invalidated cached token",
                installation_id=installation_id
            )

    async def get_app(self) -> Dict[str, Any]:
        """Get the authenticated GitHub App."""
        response = await self._app_request("GET", "/app")
        return response.json()

    async def list_installations(self) -> List[Dict[str, Any]]:
        """
        List every installation of the GitHub App.

        Follows pagination until all installations are collected.
        """
        installations: List[Dict[str, Any]] = []
        page = 1
        per_page = 100

        while True:
            response = await self._app_request(
                "GET",
                "/app/installations",
                params={"page": page, "per_page": per_page}
            )
            batch = response.json()
            installations.extend(batch)

            if len(batch) < per_page:
                break
            page += 1

        logger.info(
            "Listed GitHub App installations",
            app_id=self.app_id,
            count=len(installations)
        )
        return installations

    async def get_repository_installation(self, owner: str, repo: str) -> int:
        """
        Find the installation ID covering a repository.

        Raises:
            GitHubAuthError: If the app is not installed on the repository
        """
        response = await self._app_request("GET", f"/repos/{owner}/{repo}/installation")
        return response.json()["id"]
