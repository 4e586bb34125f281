"""
Base service class for backend resources cached per user.

Provides the shared read-through logic for the profile, diet plan, and workout plan
services. Resource-specific behavior is defined via class attributes.
"""
import logging
from abc import ABC
from typing import TYPE_CHECKING, Any

from api_client.results import SoftAbsence

if TYPE_CHECKING:
    from api_client.client import ApiClient
    from core.identity import Identity
    from core.session import SessionManager
    from core.user_cache import UserCache

logger = logging.getLogger(__name__)


class BaseCachedService(ABC):
    """
    Abstract base class for read-through cached resources.

    Subclasses must define:
    - cache_name: Logical name of the namespaced cache entry (e.g., "cached_diet_plan")
    - resource_name: Human-readable name for log messages (e.g., "diet_plan")
    """

    cache_name: str
    resource_name: str

    def __init__(
        self,
        api: "ApiClient",
        user_cache: "UserCache",
        session: "SessionManager",
        cache_ttl: int,
    ) -> None:
        self._api = api
        self._cache = user_cache
        self._session = session
        self._cache_ttl = cache_ttl

    async def _read_through(
        self,
        identity: "Identity",
        endpoint: str,
        force_refresh: bool = False,
    ) -> Any | None:
        """
        Serve the resource from the identity's cache, falling back to the network.

        A cache entry is only trusted after ownership and staleness checks; a network
        result is only cached if the identity is still the active one when it arrives, so
        a fetch that raced a logout or account switch cannot repopulate a purged
        namespace.

        Returns:
            The resource's `data` payload, or None when the backend reports it absent.
        """
        if not force_refresh:
            cached = await self._cache.get_cached(
                self.cache_name, identity.user_id, max_age=self._cache_ttl,
            )
            if cached is not None:
                return cached

        payload = await self._api.get(endpoint)
        data = self._extract_data(payload)
        if data is None:
            logger.info("%s_absent user_id=%s", self.resource_name, identity.user_id)
            await self._cache.invalidate(self.cache_name, identity.user_id)
            return None

        await self._store(identity, data)
        return data

    async def _store(self, identity: "Identity", data: Any) -> None:
        if not self._session.is_current(identity):
            logger.info(
                "%s_cache_skipped user_id=%s reason=identity_changed",
                self.resource_name,
                identity.user_id,
            )
            return
        await self._cache.set_cached(self.cache_name, identity.user_id, data, ttl=self._cache_ttl)

    async def invalidate_cache(self, identity: "Identity") -> None:
        """Drop the cached resource so the next read goes to the network."""
        await self._cache.invalidate(self.cache_name, identity.user_id)

    @staticmethod
    def _extract_data(payload: Any) -> Any | None:
        """Unwrap a `{success, data}` response; None for soft absences and failures."""
        if isinstance(payload, SoftAbsence):
            return None
        if not isinstance(payload, dict) or not payload.get("success"):
            return None
        return payload.get("data")
