"""Identity lifecycle: login, logout, and restore of the active user."""
import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from core.identity import Identity, extract_user_id_from_token

if TYPE_CHECKING:
    from core.redis import RedisClient
    from core.user_cache import UserCache

logger = logging.getLogger(__name__)

# Storage key of the bearer token issued at login
AUTH_TOKEN_KEY = "auth_token"


class IdentityState(StrEnum):
    """Where the device is in the identity lifecycle."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    ACTIVE = "active"
    LOGGING_OUT = "logging_out"


class SessionManager:
    """
    Owns the bearer token, the current user slot, and the transitions between them.

    ANONYMOUS -> AUTHENTICATING -> ACTIVE -> LOGGING_OUT -> ANONYMOUS, cycling across app
    sessions. The token and the user ID are always cleared together.
    """

    def __init__(self, redis_client: "RedisClient", user_cache: "UserCache") -> None:
        self._redis = redis_client
        self._user_cache = user_cache
        self._state = IdentityState.ANONYMOUS
        self._identity: Identity | None = None

    @property
    def state(self) -> IdentityState:
        """Current lifecycle state."""
        return self._state

    @property
    def identity(self) -> Identity | None:
        """The active identity, or None unless ACTIVE."""
        return self._identity

    def is_current(self, identity: Identity) -> bool:
        """Check that an identity is still the active one (not logged out or switched)."""
        return self._state == IdentityState.ACTIVE and self._identity == identity

    async def get_token(self) -> str | None:
        """Get the stored bearer token. Used as the API client's token provider."""
        raw = await self._redis.get(AUTH_TOKEN_KEY)
        if not raw:
            return None
        return raw.decode() if isinstance(raw, bytes) else raw

    async def start_session(self, token: str) -> Identity | None:
        """
        Commit a freshly issued token as the active identity.

        The user ID is committed (write acknowledged by storage) before any cache cleanup
        or validation runs, so those steps always observe the new ID.

        Args:
            token: Bearer token from a successful login/signup response.

        Returns:
            The new Identity, or None if no user ID could be recovered from the token. A
            token without a user ID is unusable and is discarded.
        """
        self._state = IdentityState.AUTHENTICATING
        user_id = extract_user_id_from_token(token)
        if user_id is None:
            logger.warning("session_start_rejected reason=malformed_token")
            await self._clear_credentials()
            return None

        previous_user_id = await self._user_cache.get_current_user_id()
        if previous_user_id and previous_user_id != user_id:
            logger.info("session_account_switch from_user_id=%s to_user_id=%s", previous_user_id, user_id)

        await self._redis.set(AUTH_TOKEN_KEY, token)
        await self._user_cache.set_current_user_id(user_id)
        await self._user_cache.cleanup_orphaned_cache(user_id)
        await self._user_cache.validate_cache_on_login(user_id)

        self._identity = Identity(user_id=user_id, token=token)
        self._state = IdentityState.ACTIVE
        logger.info("session_started user_id=%s", user_id)
        return self._identity

    async def end_session(self) -> None:
        """
        Log out: purge the outgoing user's cache, then clear token and user ID.

        The outgoing ID is read before it is cleared. Safe to call repeatedly and when
        already anonymous.
        """
        self._state = IdentityState.LOGGING_OUT
        outgoing = await self._user_cache.get_current_user_id()
        if outgoing is None and self._identity is not None:
            outgoing = self._identity.user_id

        await self._user_cache.clear_user_cache(outgoing)
        await self._clear_credentials()
        logger.info("session_ended user_id=%s", outgoing)

    async def handle_auth_invalidated(self) -> None:
        """Invalidate the session after the server rejected the credential."""
        logger.info("session_auth_invalidated user_id=%s", self._identity.user_id if self._identity else None)
        await self.end_session()

    async def restore(self) -> Identity | None:
        """
        Rebuild the active identity from a persisted token at app start.

        Re-commits the user ID if the slot was lost (e.g. across an app update),
        re-validates the user's cache the same way login does, and clears the session if
        the stored token is unusable.

        Returns:
            The restored Identity, or None if there is no usable stored token.
        """
        token = await self.get_token()
        if not token:
            self._identity = None
            self._state = IdentityState.ANONYMOUS
            return None

        user_id = extract_user_id_from_token(token)
        if user_id is None:
            logger.warning("session_restore_rejected reason=malformed_token")
            await self._clear_credentials()
            return None

        stored_user_id = await self._user_cache.get_current_user_id()
        if stored_user_id != user_id:
            logger.info("session_restore_recommit user_id=%s stored=%s", user_id, stored_user_id)
            await self._user_cache.set_current_user_id(user_id)
            await self._user_cache.cleanup_orphaned_cache(user_id)
        await self._user_cache.validate_cache_on_login(user_id)

        self._identity = Identity(user_id=user_id, token=token)
        self._state = IdentityState.ACTIVE
        logger.info("session_restored user_id=%s", user_id)
        return self._identity

    async def _clear_credentials(self) -> None:
        await self._redis.delete(AUTH_TOKEN_KEY)
        await self._user_cache.clear_current_user_id()
        self._identity = None
        self._state = IdentityState.ANONYMOUS
