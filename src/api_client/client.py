"""HTTP client for the PrimeForm backend API."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from api_client.coalescer import Coalescer, request_fingerprint
from api_client.exceptions import (
    AuthInvalidatedError,
    HttpError,
    NetworkError,
    RequestTimeoutError,
)
from api_client.results import SoftAbsence, parse_response
from core.config import Settings

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[str | None]]
AuthInvalidatedHandler = Callable[[], Awaitable[None]]

ApiResponse = dict[str, Any] | list[Any] | SoftAbsence

# Endpoint fragments that need more than the default timeout
GENERATION_ENDPOINT_MARKER = "/generate"
CHAT_ENDPOINT_MARKER = "/ai-trainer/send-message"

# Login, signup, and password reset endpoints
CREDENTIAL_ENDPOINT_PREFIX = "/auth/"


def _get_headers(token: str | None) -> dict[str, str]:
    """Get common headers for API requests."""
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class ApiClient:
    """
    Single chokepoint for every outbound backend call.

    - attaches the stored bearer token to each request
    - bounds each request by a per-endpoint timeout
    - collapses concurrent identical GETs into one network round-trip
    - turns an unrecognized 401 into credential invalidation before raising

    Nothing is retried here; retries are the caller's decision.
    """

    def __init__(
        self,
        settings: Settings,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._token_provider = token_provider
        self._on_auth_invalidated: AuthInvalidatedHandler | None = None
        self._coalescer = Coalescer()
        self._http = httpx.AsyncClient(
            base_url=settings.api_base_url_normalized,
            timeout=settings.api_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP connection pool."""
        if not self._http.is_closed:
            await self._http.aclose()

    def set_auth_invalidated_handler(self, handler: AuthInvalidatedHandler | None) -> None:
        """Set the coroutine run when the server rejects the stored credential."""
        self._on_auth_invalidated = handler

    @property
    def in_flight_count(self) -> int:
        """Number of GET requests currently registered for de-duplication."""
        return self._coalescer.in_flight_count

    def timeout_for(self, endpoint: str, override: float | None = None) -> float:
        """
        Resolve the timeout for an endpoint.

        An explicit override wins; plan generation and AI trainer chat get extended
        timeouts; everything else uses the default.
        """
        if override is not None:
            return override
        if GENERATION_ENDPOINT_MARKER in endpoint:
            return self._settings.generation_timeout
        if CHAT_ENDPOINT_MARKER in endpoint:
            return self._settings.chat_timeout
        return self._settings.api_timeout

    async def get(self, endpoint: str, timeout: float | None = None) -> ApiResponse:
        """Make a GET request. Concurrent identical GETs share one network call."""
        return await self.request("GET", endpoint, timeout=timeout)

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        timeout: float | None = None,
    ) -> ApiResponse:
        """Make a POST request."""
        return await self.request("POST", endpoint, body=body, timeout=timeout)

    async def patch(self, endpoint: str, body: Any = None) -> ApiResponse:
        """Make a PATCH request."""
        return await self.request("PATCH", endpoint, body=body)

    async def put(self, endpoint: str, body: Any = None) -> ApiResponse:
        """Make a PUT request."""
        return await self.request("PUT", endpoint, body=body)

    async def delete(self, endpoint: str) -> ApiResponse:
        """Make a DELETE request."""
        return await self.request("DELETE", endpoint)

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any = None,
        timeout: float | None = None,
    ) -> ApiResponse:
        """
        Send a request through the coordinator.

        Args:
            method: HTTP method. Only GET is de-duplicated.
            endpoint: Path relative to the API base URL (e.g. '/user-profile').
            body: JSON-serializable request body.
            timeout: Per-call timeout override in seconds.

        Returns:
            Parsed JSON payload, or SoftAbsence for tolerated 404/401 responses.

        Raises:
            RequestTimeoutError: The request exceeded its timeout.
            NetworkError: The server could not be reached.
            AuthInvalidatedError: The server rejected the credential (already purged).
            HttpError: Any other non-success status.
            InvalidResponseError: A success response without a JSON body.
        """
        method = method.upper()
        request_timeout = self.timeout_for(endpoint, timeout)
        token = await self._token_provider() if self._token_provider else None

        if method != "GET":
            return await self._send(method, endpoint, body, token, request_timeout)

        key = request_fingerprint(method, endpoint, body, credential=token)
        result, was_coalesced = await self._coalescer.do(
            key,
            lambda: self._send(method, endpoint, body, token, request_timeout),
        )
        if was_coalesced:
            logger.debug("api_request_coalesced method=%s endpoint=%s", method, endpoint)
        return result

    async def _send(
        self,
        method: str,
        endpoint: str,
        body: Any,
        token: str | None,
        timeout: float,
    ) -> ApiResponse:
        """Issue one network call and parse the outcome."""
        logger.debug(
            "api_request method=%s endpoint=%s auth=%s timeout=%s",
            method,
            endpoint,
            "present" if token else "none",
            timeout,
        )
        try:
            async with asyncio.timeout(timeout):
                response = await self._http.request(
                    method,
                    endpoint,
                    json=body,
                    headers=_get_headers(token),
                    timeout=timeout,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.warning("api_request_timeout method=%s endpoint=%s timeout=%s", method, endpoint, timeout)
            raise RequestTimeoutError(method, endpoint, timeout) from e
        except httpx.RequestError as e:
            logger.warning("api_request_network_error method=%s endpoint=%s error=%s", method, endpoint, e)
            raise NetworkError(f"Network error occurred: {e}") from e

        try:
            result = parse_response(response)
        except HttpError as e:
            # A 401 from /auth/* rejects the submitted credentials, not the stored token
            if e.status_code == 401 and not endpoint.startswith(CREDENTIAL_ENDPOINT_PREFIX):
                logger.warning("api_auth_invalidated endpoint=%s message=%s", endpoint, e.message)
                await self._invalidate_credentials()
                raise AuthInvalidatedError(e.message, e.body) from e
            logger.warning(
                "api_http_error method=%s endpoint=%s status=%s message=%s",
                method,
                endpoint,
                e.status_code,
                e.message,
            )
            raise

        if isinstance(result, SoftAbsence):
            logger.info(
                "api_soft_absence endpoint=%s status=%s message=%s",
                endpoint,
                result.status_code,
                result.message,
            )
        else:
            logger.debug("api_response method=%s endpoint=%s status=%s", method, endpoint, response.status_code)
        return result

    async def _invalidate_credentials(self) -> None:
        if self._on_auth_invalidated is None:
            return
        try:
            await self._on_auth_invalidated()
        except Exception:
            # The 401 still has to reach the caller even if the purge broke
            logger.exception("api_auth_invalidation_failed")
