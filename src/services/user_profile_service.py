"""Service layer for the user's onboarding profile."""
from typing import TYPE_CHECKING, Any

from services.base_cached_service import BaseCachedService

if TYPE_CHECKING:
    from core.identity import Identity


class UserProfileService(BaseCachedService):
    """Profile reads go through the per-user cache; mutations invalidate it."""

    cache_name = "cached_user_profile"
    resource_name = "user_profile"

    async def get_user_profile(
        self,
        identity: "Identity",
        force_refresh: bool = False,
    ) -> dict[str, Any] | None:
        """
        Get the user's profile.

        Returns:
            The profile, or None for a new user who has not completed onboarding.
        """
        return await self._read_through(identity, "/user-profile", force_refresh)

    async def create_or_update_profile(
        self,
        identity: "Identity",
        user_info: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Submit the onboarding answers; the saved profile replaces the cached one."""
        await self.invalidate_cache(identity)
        payload = await self._api.post("/user-profile", user_info)
        data = self._extract_data(payload)
        if data is not None:
            await self._store(identity, data)
        return data

    async def update_profile_field(
        self,
        identity: "Identity",
        field: str,
        value: Any,
    ) -> dict[str, Any] | None:
        """Update a single profile field."""
        await self.invalidate_cache(identity)
        payload = await self._api.patch("/user-profile/field", {"field": field, "value": value})
        data = self._extract_data(payload)
        if data is not None:
            await self._store(identity, data)
        return data

    async def delete_profile(self, identity: "Identity") -> bool:
        """Delete the profile. Returns whether the backend reported success."""
        await self.invalidate_cache(identity)
        payload = await self._api.delete("/user-profile")
        return isinstance(payload, dict) and bool(payload.get("success"))

    async def get_completion_status(self) -> dict[str, Any] | None:
        """Get which onboarding fields are still missing. Not cached."""
        payload = await self._api.get("/user-profile/completion")
        return self._extract_data(payload)
