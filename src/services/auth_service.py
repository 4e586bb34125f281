"""Service layer for login, signup, logout, and password reset."""
import logging
from typing import TYPE_CHECKING, Any

from api_client.exceptions import ApiError, HttpError
from api_client.results import SoftAbsence
from schemas.auth import AuthResponse, MessageResponse, parse_auth_response

if TYPE_CHECKING:
    from api_client.client import ApiClient
    from core.session import SessionManager

logger = logging.getLogger(__name__)

ACCOUNT_NOT_FOUND_FRAGMENT = "Account not found"


class AuthService:
    """
    Authentication flows on top of the API client and the session manager.

    Failures are returned as unsuccessful responses rather than raised, so screens can
    show the server's message directly.
    """

    def __init__(self, api: "ApiClient", session: "SessionManager") -> None:
        self._api = api
        self._session = session

    async def login(self, email: str, password: str) -> AuthResponse:
        """
        Log in and, on success, make the returned token the active identity.

        A token from which no user ID can be recovered counts as a failed login.
        """
        response = await self._authenticate("/auth/login", {"email": email, "password": password})
        if response.success:
            return response

        if response.show_signup_button or ACCOUNT_NOT_FOUND_FRAGMENT in response.message:
            return AuthResponse(
                success=False,
                message=response.message or "Account not found",
                show_signup_button=True,
            )
        return AuthResponse(
            success=False,
            message=response.message or "Login failed. Please try again.",
        )

    async def signup(self, full_name: str, email: str, password: str) -> AuthResponse:
        """Create an account and, on success, make the returned token the active identity."""
        response = await self._authenticate(
            "/auth/signup",
            {"fullName": full_name, "email": email, "password": password},
        )
        if not response.success and not response.message:
            response.message = "Signup failed. Please try again."
        return response

    async def logout(self) -> None:
        """Log out locally: purge the user's cache and clear the credential."""
        await self._session.end_session()

    async def forgot_password(self, email: str) -> MessageResponse:
        """Request a password reset code by email."""
        return await self._message_call(
            "/auth/forgot-password",
            {"email": email},
            "Failed to send reset email. Please try again.",
        )

    async def verify_reset_otp(self, email: str, otp: str) -> MessageResponse:
        """Verify the password reset code."""
        return await self._message_call(
            "/auth/verify-reset-otp",
            {"email": email, "otp": otp},
            "OTP verification failed. Please try again.",
        )

    async def reset_password(self, email: str, otp: str, new_password: str) -> MessageResponse:
        """Set a new password using a verified reset code."""
        return await self._message_call(
            "/auth/reset-password",
            {"email": email, "otp": otp, "newPassword": new_password},
            "Password reset failed. Please try again.",
        )

    async def _authenticate(self, endpoint: str, body: dict[str, Any]) -> AuthResponse:
        try:
            payload = await self._api.post(endpoint, body)
        except HttpError as e:
            logger.info("auth_rejected endpoint=%s status=%s", endpoint, e.status_code)
            return parse_auth_response(
                {**e.body, "success": False, "message": e.message},
                fallback_message=e.message,
            )
        except ApiError as e:
            logger.warning("auth_request_failed endpoint=%s error=%s", endpoint, e)
            return AuthResponse(success=False, message=e.message)

        if isinstance(payload, SoftAbsence):
            return AuthResponse(success=False, message=payload.message)

        response = parse_auth_response(payload)
        if not (response.success and response.token):
            return response

        identity = await self._session.start_session(response.token)
        if identity is None:
            return AuthResponse(
                success=False,
                message="Received an invalid session token. Please try again.",
            )
        logger.info("auth_succeeded endpoint=%s user_id=%s", endpoint, identity.user_id)
        return response

    async def _message_call(
        self,
        endpoint: str,
        body: dict[str, Any],
        fallback: str,
    ) -> MessageResponse:
        try:
            payload = await self._api.post(endpoint, body)
        except ApiError as e:
            return MessageResponse.failure(e.message or fallback)
        if isinstance(payload, SoftAbsence) or not isinstance(payload, dict):
            return MessageResponse.failure(fallback)
        return MessageResponse.model_validate(payload)
