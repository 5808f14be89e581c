"""Domain errors and upstream error classification.

Every failure that reaches the HTTP layer is an ``OsfitError`` subclass with a
status code and a JSON body. Upstream failures (LLM providers, translation)
carry an ``ErrorKind`` plus the key source, so "your key is out of quota" and
"the shared key is out of quota" are reported differently.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal


KeySource = Literal["user", "system", "none"]


class ErrorKind(str, Enum):
    """Taxonomy for raw upstream error text."""
    QUOTA = "quota"
    INVALID_CREDENTIAL = "invalid_credential"
    NETWORK = "network"
    UNKNOWN = "unknown"


# Matched case-insensitively, in this order: quota first, then credential, then network.
_QUOTA_PATTERNS: tuple[str, ...] = (
    "quota",
    "rate limit",
    "rate_limit",
    "429",
    "too many requests",
    "resource_exhausted",
    "exceeded",
)

_CREDENTIAL_PATTERNS: tuple[str, ...] = (
    "api key not valid",
    "invalid api key",
    "invalid_api_key",
    "api key is required",
    "api key not configured",
    "401",
    "403",
    "unauthorized",
    "permission denied",
    "forbidden",
)

_NETWORK_PATTERNS: tuple[str, ...] = (
    "network",
    "connection",
    "connect",
    "timeout",
    "timed out",
    "name resolution",
    "fetch failed",
    "service unavailable",
    "503",
)


def classify_error(message: str) -> ErrorKind:
    """Map raw upstream error text to an ``ErrorKind``.

    Args:
        message: Error text as reported by the provider or transport

    Returns:
        The first matching kind, ``ErrorKind.UNKNOWN`` if nothing matches
    """
    text = (message or "").lower()

    if any(p in text for p in _QUOTA_PATTERNS):
        return ErrorKind.QUOTA
    # "invalid ... key" phrased in any order
    if "invalid" in text and "key" in text:
        return ErrorKind.INVALID_CREDENTIAL
    if any(p in text for p in _CREDENTIAL_PATTERNS):
        return ErrorKind.INVALID_CREDENTIAL
    if any(p in text for p in _NETWORK_PATTERNS):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


# =============================================================================
# Exceptions
# =============================================================================

class OsfitError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(OsfitError):
    """Missing or malformed input, rejected before any external call."""
    status_code = 400


class AuthenticationError(OsfitError):
    """Missing or invalid bearer token."""
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(OsfitError):
    """Resource does not exist or is not owned by the caller.

    Both cases share one message so existence is never confirmed to
    someone who does not own the resource.
    """
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class InvalidTransitionError(OsfitError):
    """Requested action is not allowed from the row's current step."""
    status_code = 400


class IssueFetchError(OsfitError):
    """The issue fetcher could not retrieve or parse the issue."""
    status_code = 500


class UpstreamServiceError(OsfitError):
    """A third-party API call failed; tagged with kind, service and key source."""
    status_code = 500

    def __init__(
        self,
        message: str,
        service: str,
        source: KeySource = "none",
        kind: ErrorKind | None = None,
    ):
        super().__init__(message)
        self.service = service
        self.source = source
        self.kind = kind or classify_error(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "error_type": self.kind.value,
            "service": self.service,
            "source": self.source,
        }


class GenerationError(UpstreamServiceError):
    """The language-model gateway call failed or returned nothing."""


class TranslationError(UpstreamServiceError):
    """The translation service call failed."""
