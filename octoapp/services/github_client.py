"""
GitHub API Client Module

This module provides an authenticated client for the GitHub REST and
GraphQL APIs, built from an OctoAppConfig.

Design Decisions:
- Use httpx for async HTTP requests
- Integrate with GitHub App auth for automatic token management
- Retry transport failures with exponential backoff
- Support pagination through Link headers
"""

import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from aiolimiter import AsyncLimiter
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from octoapp.errors import OctoAppError
from octoapp.logging_config import get_logger
from octoapp.services.github_auth import GITHUB_API_VERSION, GitHubAppAuth

logger = get_logger(__name__)

# GitHub allows 5000 requests/hour for installation tokens
DEFAULT_RATE_LIMIT = 5000


class GitHubAPIError(OctoAppError):
    """Raised when the GitHub API answers with an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class GitHubRateLimitError(GitHubAPIError):
    """Exception raised when GitHub rate limit is exceeded."""

    def __init__(self, message: str, reset_at: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at


class GitHubClient:
    """
    Async GitHub API client with authentication and rate limiting.

    Authenticates as the app (JWT) when no installation_id is given,
    otherwise as that installation.

    Usage:
        client = config.github_client(installation_id=123)
        repo = await client.get_repository("owner", "repo")
        async for issue in client.paginate("/repos/owner/repo/issues"):
            ...
    """

    def __init__(
        self,
        auth: GitHubAppAuth,
        installation_id: Optional[int] = None,
        rate_limit: int = DEFAULT_RATE_LIMIT,
        timeout: float = 30.0,
        rate_limiter: Optional[AsyncLimiter] = None
    ):
        """
        Initialize the GitHub client.

        Args:
            auth: App authentication manager
            installation_id: Installation to act as, None to act as the app
            rate_limit: Client side request budget per hour
            timeout: HTTP timeout in seconds
            rate_limiter: Limiter shared with other clients; overrides rate_limit
        """
        self.auth = auth
        self.installation_id = installation_id
        self.api_url = auth.api_url
        self.timeout = timeout

        if rate_limiter is None:
            rate_limiter = AsyncLimiter(max_rate=rate_limit, time_period=3600)
        self._rate_limiter = rate_limiter

    def __repr__(self) -> str:
        return (
            f"GitHubClient(app_id={self.auth.app_id}, "
            f"installation_id={self.installation_id})"
        )

    async def _get_headers(self) -> Dict[str, str]:
        """Get authenticated headers for API requests."""
        if self.installation_id is None:
            return self.auth.app_headers()

        token = await self.auth.get_installation_token(self.installation_id)
        return {
            "Authorization": f"token {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    def _check_rate_limit(self, response: httpx.Response) -> None:
        """
        Inspect rate limit headers from a GitHub response.

        Warns when the budget runs low and raises when it is exhausted.
        """
        remaining = response.headers.get("x-ratelimit-remaining")
        reset_time = response.headers.get("x-ratelimit-reset")

        if remaining is None:
            return

        remaining_int = int(remaining)
        if remaining_int < 100:
            logger.warning(
                "GitHub API rate limit running low",
                remaining=remaining_int,
                reset_at=reset_time
            )

        if remaining_int == 0 and response.status_code in (403, 429):
            reset_at = int(reset_time) if reset_time else None
            wait_seconds = max(0, reset_at - int(time.time())) if reset_at else None
            logger.warning(
                "GitHub API rate limit exceeded",
                reset_at=reset_at,
                wait_seconds=wait_seconds
            )
            raise GitHubRateLimitError(
                "Rate limit exceeded",
                reset_at=reset_at,
                status_code=response.status_code,
                response_body=response.text
            )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True
    )
    async def request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make an authenticated request to the GitHub API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API path (e.g. "/repos/o/r") or absolute URL
            **kwargs: Additional arguments to pass to httpx

        Returns:
            httpx.Response object

        Raises:
            GitHubAPIError: If the request fails
        """
        url = endpoint if endpoint.startswith("http") else f"{self.api_url}{endpoint}"

        async with self._rate_limiter:
            headers = await self._get_headers()

            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    **kwargs
                )

        self._check_rate_limit(response)

        if response.status_code == 401 and self.installation_id is not None:
            # Token might be revoked, refresh on the next call
            self.auth.invalidate_token(self.installation_id)

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                status_code=response.status_code,
                endpoint=endpoint,
                error=error_body[:500]
            )
            raise GitHubAPIError(
                f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body
            )

        return response

    async def get(self, endpoint: str, **kwargs) -> Any:
        response = await self.request("GET", endpoint, **kwargs)
        return response.json()

    async def post(self, endpoint: str, **kwargs) -> Any:
        response = await self.request("POST", endpoint, **kwargs)
        return response.json() if response.content else None

    async def patch(self, endpoint: str, **kwargs) -> Any:
        response = await self.request("PATCH", endpoint, **kwargs)
        return response.json() if response.content else None

    async def delete(self, endpoint: str, **kwargs) -> None:
        await self.request("DELETE", endpoint, **kwargs)

    async def paginate(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100
    ) -> AsyncIterator[Any]:
        """
        Iterate over every item of a paginated list endpoint.

        Follows the Link header's rel="next" until it is absent.
        """
        url: Optional[str] = endpoint
        query: Optional[Dict[str, Any]] = {**(params or {}), "per_page": per_page}

        while url:
            response = await self.request("GET", url, params=query)
            data = response.json()

            # Some endpoints wrap the list, e.g. {"total_count": n, "repositories": [...]}
            if isinstance(data, dict):
                items = next(
                    (v for v in data.values() if isinstance(v, list)),
                    []
                )
            else:
                items = data

            for item in items:
                yield item

            url = response.links.get("next", {}).get("url")
            # The next URL already carries the query string
            query = None

    async def graphql(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Run a GraphQL query.

        Returns:
            The "data" member of the response

        Raises:
            GitHubAPIError: If the response carries GraphQL errors
        """
        response = await self.request(
            "POST",
            "/graphql",
            json={"query": query, "variables": variables or {}}
        )
        body = response.json()

        errors = body.get("errors")
        if errors:
            messages = "; ".join(e.get("message", "unknown error") for e in errors)
            logger.error("GitHub GraphQL error", errors=messages[:500])
            raise GitHubAPIError(
                f"GitHub GraphQL error: {messages}",
                status_code=response.status_code,
                response_body=response.text
            )

        return body.get("data") or {}

    async def get_repository(self, owner: str, repo: str) -> Dict[str, Any]:
        """Fetch a repository."""
        return await self.get(f"/repos/{owner}/{repo}")

    async def list_installation_repositories(self) -> List[Dict[str, Any]]:
        """List repositories accessible to the client's installation."""
        return [repo async for repo in self.paginate("/installation/repositories")]

    async def create_issue_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str
    ) -> Dict[str, Any]:
        """
        Comment on an issue or pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            issue_number: Issue or pull request number
            body: Markdown comment body
        """
        logger.info(
            "Creating issue comment",
            owner=owner,
            repo=repo,
            issue_number=issue_number
        )
        return await self.post(
            f"/repos/{owner}/{repo}/issues/{issue_number}/comments",
            json={"body": body}
        )
