"""Request coordination for the PrimeForm backend API."""
from api_client.client import ApiClient, ApiResponse
from api_client.exceptions import (
    ApiError,
    AuthInvalidatedError,
    HttpError,
    InvalidResponseError,
    NetworkError,
    RequestTimeoutError,
)
from api_client.results import SoftAbsence

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiResponse",
    "AuthInvalidatedError",
    "HttpError",
    "InvalidResponseError",
    "NetworkError",
    "RequestTimeoutError",
    "SoftAbsence",
]
