"""Parsing of backend responses into payloads, soft absences, or typed errors."""
from dataclasses import dataclass, field
from typing import Any

import httpx

from api_client.exceptions import HttpError, InvalidResponseError

# 404 messages meaning "the user simply has no plan yet"
NO_ACTIVE_PLAN_MESSAGES = frozenset({
    "No active workout plan found",
    "No active diet plan found",
})

# 401 message the backend sends when no credential was attached
NOT_AUTHORIZED_MESSAGE = "Not authorized to access this route"


@dataclass
class SoftAbsence:
    """
    A tolerated non-success response, delivered as data instead of an exception.

    UI code treats "plan absent" or "not signed in yet" as a normal state. The response
    body is kept intact in `body`.
    """

    status_code: int
    message: str
    body: dict[str, Any] = field(default_factory=dict)


def _safe_json(response: httpx.Response) -> Any:
    """Decode a response body, or None if it is not JSON."""
    try:
        return response.json()
    except ValueError:
        return None


def error_message(body: Any, status_code: int) -> str:
    """Server-provided message, falling back to the status code."""
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return f"HTTP {status_code}"


def soft_absence_from(status_code: int, body: Any) -> SoftAbsence | None:
    """
    Recognize the two tolerated soft-failure shapes.

    Returns:
        SoftAbsence for 404 "no active plan" and 401 "not authorized" bodies, else None.
    """
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if not isinstance(message, str):
        return None
    if status_code == 404 and message in NO_ACTIVE_PLAN_MESSAGES:
        return SoftAbsence(status_code=status_code, message=message, body=body)
    if status_code == 401 and message == NOT_AUTHORIZED_MESSAGE:
        return SoftAbsence(status_code=status_code, message=message, body=body)
    return None


def parse_response(response: httpx.Response) -> dict[str, Any] | list[Any] | SoftAbsence:
    """
    Parse a completed response.

    Unrecognized 401s are not handled here; the client inspects the raised HttpError and
    escalates it to credential invalidation.

    Returns:
        The decoded JSON payload, or a SoftAbsence for tolerated failures.

    Raises:
        HttpError: Non-success status that is not a soft absence.
        InvalidResponseError: Success status whose body is not a JSON object or array.
    """
    body = _safe_json(response)

    if not response.is_success:
        absence = soft_absence_from(response.status_code, body)
        if absence is not None:
            return absence
        raise HttpError(
            response.status_code,
            error_message(body, response.status_code),
            body if isinstance(body, dict) else None,
        )

    if not isinstance(body, (dict, list)):
        raise InvalidResponseError(
            f"Expected JSON body from {response.request.method} {response.request.url.path}",
        )
    return body
