"""Response schemas for the backend's /auth endpoints."""
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

UNEXPECTED_RESPONSE_MESSAGE = "Unexpected response from server"


class AuthUser(BaseModel):
    """User record embedded in login/signup responses."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    full_name: str | None = Field(default=None, alias="fullName")
    email: str | None = None


class AuthData(BaseModel):
    """The 'data' object of login/signup responses."""

    model_config = ConfigDict(extra="allow")

    user: AuthUser | None = None


class AuthResponse(BaseModel):
    """
    Login/signup response.

    The backend answers both success and failure with this shape; `token` is only present
    on success, and `show_signup_button` is set when the account does not exist.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    success: bool = False
    message: str = ""
    token: str | None = None
    data: AuthData | None = None
    show_signup_button: bool = Field(default=False, alias="showSignupButton")


class MessageResponse(BaseModel):
    """Generic {success, message} response (password reset flow)."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    message: str = ""

    @classmethod
    def failure(cls, message: str) -> "MessageResponse":
        """Build a failed response from a client-side error message."""
        return cls(success=False, message=message)


def parse_auth_response(
    payload: Any,
    fallback_message: str = UNEXPECTED_RESPONSE_MESSAGE,
) -> AuthResponse:
    """
    Parse a login/signup payload into an AuthResponse. Never raises.

    Bodies that are not objects, or that do not fit the schema (e.g. a non-string token),
    become a failed response carrying `fallback_message`.
    """
    if not isinstance(payload, dict):
        return AuthResponse(success=False, message=fallback_message)
    try:
        return AuthResponse.model_validate(payload)
    except ValidationError as e:
        logger.warning("auth_response_invalid errors=%s", e.error_count())
        return AuthResponse(success=False, message=fallback_message)
