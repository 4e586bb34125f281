"""Errors raised by the API client."""
from typing import Any


class ApiError(Exception):
    """Base class for every error surfaced by ApiClient."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RequestTimeoutError(ApiError):
    """
    Raised when a request exceeds its allotted duration.

    Transient: the caller may retry.
    """

    def __init__(self, method: str, endpoint: str, timeout: float) -> None:
        self.method = method
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(f"Request timeout: {method} {endpoint} exceeded {timeout:g}s")


class NetworkError(ApiError):
    """Raised when the server could not be reached (DNS, connection refused, reset)."""


class HttpError(ApiError):
    """Raised for a non-success status that is not a tolerated soft absence."""

    def __init__(
        self,
        status_code: int,
        message: str,
        body: dict[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body or {}
        super().__init__(message)


class AuthInvalidatedError(HttpError):
    """
    Raised for a 401 the client does not recognize as a soft failure.

    By the time this propagates, the stored credential, the current user ID, and the
    outgoing user's cache have already been purged.
    """

    def __init__(self, message: str, body: dict[str, Any] | None = None) -> None:
        super().__init__(401, message, body)


class InvalidResponseError(ApiError):
    """Raised when a success response body is not a JSON object or array."""
