"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import json
import os
from typing import Callable, Dict, Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from octoapp.config import OctoAppConfig, Settings, get_settings
from octoapp.webhook.security import compute_signature

WEBHOOK_SECRET = "test-webhook-secret-0123456789"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's GITHUB_* variables out of every test."""
    for name in list(os.environ):
        if name.startswith("GITHUB_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """A throwaway RSA key standing in for the GitHub App key."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_key_pem(rsa_private_key: rsa.RSAPrivateKey) -> str:
    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


@pytest.fixture
def settings() -> Settings:
    """Settings with nothing taken from the environment or a .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def config(settings: Settings, private_key_pem: str) -> OctoAppConfig:
    """A complete, valid configuration."""
    return (
        OctoAppConfig.init(settings)
        .app_name("Test App")
        .app_id(12345)
        .client_id("Iv1.testclient")
        .client_secret("test-client-secret")
        .webhook_secret(WEBHOOK_SECRET)
        .private_key(private_key_pem)
        .build()
    )


@pytest.fixture
def delivery_headers() -> Callable[..., Dict[str, str]]:
    """Build the headers GitHub sends with a delivery."""

    def build(
        body: bytes,
        event: Optional[str] = "ping",
        secret: str = WEBHOOK_SECRET,
        delivery_id: str = "72d3162e-cc78-11e3-81ab-4c9367dc0958"
    ) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "X-Hub-Signature-256": compute_signature(secret, body),
            "X-GitHub-Delivery": delivery_id,
        }
        if event:
            headers["X-GitHub-Event"] = event
        return headers

    return build


@pytest.fixture
def sample_ping_payload() -> dict:
    """Sample ping webhook payload."""
    return {
        "zen": "Design for failure.",
        "hook_id": 109948940,
        "hook": {
            "type": "App",
            "id": 109948940,
            "active": True,
            "events": ["pull_request", "push"],
        },
        "sender": {"login": "octocat", "id": 583231, "type": "User"},
    }


@pytest.fixture
def sample_push_payload() -> dict:
    """Sample push webhook payload."""
    return {
        "ref": "refs/heads/main",
        "before": "6113728f27ae82c7b1a177c8d03f9e96e0adf246",
        "after": "0000000000000000000000000000000000000001",
        "created": False,
        "deleted": False,
        "forced": False,
        "commits": [
            {
                "id": "0000000000000000000000000000000000000001",
                "message": "Update README.md",
                "timestamp": "2024-01-15T10:00:00Z",
                "author": {"name": "Octo Cat", "email": "octocat@github.com", "username": "octocat"},
            }
        ],
        "pusher": {"name": "octocat", "email": "octocat@github.com"},
        "repository": {
            "id": 111,
            "name": "repo",
            "full_name": "owner/repo",
            "private": False,
            "owner": {"login": "owner", "id": 1, "type": "User"},
            "html_url": "https://github.com/owner/repo",
            "default_branch": "main",
        },
        "sender": {"login": "octocat", "id": 583231, "type": "User"},
        "installation": {"id": 987654},
    }


@pytest.fixture
def sample_pr_payload() -> dict:
    """Sample pull request webhook payload."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {
            "id": 123456789,
            "number": 42,
            "state": "open",
            "title": "Add new feature",
            "body": "This PR adds a new feature to the application.",
            "user": {
                "login": "testuser",
                "id": 12345,
                "type": "User"
            },
            "html_url": "https://github.com/owner/repo/pull/42",
            "head": {
                "ref": "feature-branch",
                "sha": "abc123def456",
                "repo": None
            },
            "base": {
                "ref": "main",
                "sha": "xyz789abc012",
                "repo": None
            },
            "merged": False,
            "draft": False,
            "created_at": "2024-01-15T10:00:00Z",
            "updated_at": "2024-01-15T10:00:00Z"
        },
        "repository": {
            "id": 111,
            "name": "repo",
            "full_name": "owner/repo",
            "private": False,
            "owner": {
                "login": "owner",
                "id": 1,
                "type": "User"
            },
            "html_url": "https://github.com/owner/repo",
            "default_branch": "main"
        },
        "sender": {
            "login": "testuser",
            "id": 12345,
            "type": "User"
        },
        "installation": {
            "id": 987654
        }
    }


@pytest.fixture
def to_body() -> Callable[[dict], bytes]:
    """Serialize a payload the way GitHub does (compact JSON)."""

    def serialize(payload: dict) -> bytes:
        return json.dumps(payload, separators=(",", ":")).encode()

    return serialize
