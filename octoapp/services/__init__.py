"""
Services Package

This package contains the GitHub API service modules:
- github_auth: GitHub App authentication (JWT, installation tokens)
- github_client: Authenticated REST/GraphQL client
"""

from octoapp.services.github_auth import GitHubAppAuth, GitHubAuthError
from octoapp.services.github_client import (
    GitHubAPIError,
    GitHubClient,
    GitHubRateLimitError,
)

__all__ = [
    "GitHubAppAuth",
    "GitHubAuthError",
    "GitHubClient",
    "GitHubAPIError",
    "GitHubRateLimitError",
]
