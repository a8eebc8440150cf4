"""
Webhook Security Module

This module handles verification of GitHub webhook payloads.
It implements HMAC-SHA256 signature verification to ensure deliveries
were sent by GitHub and not altered in transit.

Design Decisions:
- Verification is a pure function of body, header and secret
- Use constant-time comparison to prevent timing attacks
- Only the sha256 scheme (X-Hub-Signature-256) is accepted
- Every rejection carries a distinguishable reason
"""

import hashlib
import hmac
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import SecretStr

from octoapp.errors import OctoAppError

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="

_DIGEST_PATTERN = re.compile(r"[0-9a-fA-F]{64}")

Secret = Union[str, bytes, SecretStr, None]


class RejectionReason(str, Enum):
    """Why a webhook signature was rejected."""
    MALFORMED_HEADER = "malformed_header"
    SECRET_MISMATCH = "secret_mismatch"
    MISSING_SECRET = "missing_secret"


class SignatureError(OctoAppError):
    """Raised when a webhook signature is rejected."""

    def __init__(self, reason: RejectionReason, message: Optional[str] = None):
        super().__init__(message or f"Signature verification failed: {reason.value}")
        self.reason = reason


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a signature check: accepted, or rejected with a reason."""
    accepted: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def accept(cls) -> "VerificationResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectionReason) -> "VerificationResult":
        return cls(accepted=False, reason=reason)

    def __bool__(self) -> bool:
        return self.accepted


def _secret_bytes(secret: Secret) -> bytes:
    if secret is None:
        return b""
    if isinstance(secret, SecretStr):
        secret = secret.get_secret_value()
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


def _hex_digest(key: bytes, body: bytes) -> str:
    return hmac.new(key, body, hashlib.sha256).hexdigest()


def compute_signature(secret: Secret, body: bytes) -> str:
    """
    Compute the X-Hub-Signature-256 header value for a body.

    Args:
        secret: Webhook secret
        body: Raw payload bytes

    Returns:
        Header value in the form ``sha256=<64 lowercase hex chars>``

    Raises:
        ValueError: If the secret is empty
    """
    key = _secret_bytes(secret)
    if not key:
        raise ValueError("Cannot sign a payload with an empty webhook secret")
    return SIGNATURE_PREFIX + _hex_digest(key, body)


def verify_signature(
    body: bytes,
    signature_header: Optional[str],
    secret: Secret,
) -> VerificationResult:
    """
    Verify a GitHub webhook signature.

    The digest is computed over ``body`` exactly as received. Callers must
    not decode or re-serialize the payload before calling this, and must
    not parse it until the result is accepted.

    Args:
        body: Raw request body bytes
        signature_header: Value of the X-Hub-Signature-256 header
        secret: Configured webhook secret

    Returns:
        VerificationResult, truthy only when accepted
    """
    key = _secret_bytes(secret)
    if not key:
        return VerificationResult.reject(RejectionReason.MISSING_SECRET)

    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return VerificationResult.reject(RejectionReason.MALFORMED_HEADER)

    provided = signature_header[len(SIGNATURE_PREFIX):]
    if not _DIGEST_PATTERN.fullmatch(provided):
        return VerificationResult.reject(RejectionReason.MALFORMED_HEADER)

    expected = _hex_digest(key, body)

    # Constant-time comparison to prevent timing attacks
    if not hmac.compare_digest(expected, provided.lower()):
        return VerificationResult.reject(RejectionReason.SECRET_MISMATCH)

    return VerificationResult.accept()


def ensure_valid_signature(
    body: bytes,
    signature_header: Optional[str],
    secret: Secret,
) -> None:
    """
    Verify a signature and raise on rejection.

    Raises:
        SignatureError: With the rejection reason attached
    """
    result = verify_signature(body, signature_header, secret)
    if not result:
        raise SignatureError(result.reason)
