"""Service layer for AI-generated diet and workout plans."""
import logging
from typing import TYPE_CHECKING, Any

from services.base_cached_service import BaseCachedService

if TYPE_CHECKING:
    from core.identity import Identity

logger = logging.getLogger(__name__)


class BasePlanService(BaseCachedService):
    """
    Shared plan operations.

    Subclasses must define:
    - base_path: API path of the plan resource (e.g., "/diet-plans")
    - item_complete_path: Path (under base_path) marking one meal/exercise done
    """

    base_path: str
    item_complete_path: str

    async def get_active_plan(
        self,
        identity: "Identity",
        force_refresh: bool = False,
    ) -> dict[str, Any] | None:
        """
        Get the user's active plan.

        Returns:
            The plan, or None when the backend reports no active plan. Absence is a
            normal state, not an error.
        """
        return await self._read_through(identity, f"{self.base_path}/active", force_refresh)

    async def generate_plan(
        self,
        identity: "Identity",
        request: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Ask the backend to generate a new plan and cache it as the active one.

        Generation runs with the extended timeout resolved by the API client.
        """
        payload = await self._api.post(f"{self.base_path}/generate", request)
        data = self._extract_data(payload)
        if data is None:
            logger.warning("%s_generation_failed user_id=%s", self.resource_name, identity.user_id)
            return None
        await self._store(identity, data)
        logger.info("%s_generated user_id=%s", self.resource_name, identity.user_id)
        return data

    async def delete_plan(self, identity: "Identity", plan_id: str) -> bool:
        """Delete a plan. Returns whether the backend reported success."""
        await self.invalidate_cache(identity)
        payload = await self._api.delete(f"{self.base_path}/{plan_id}")
        return isinstance(payload, dict) and bool(payload.get("success"))

    async def get_stats(self) -> dict[str, Any] | None:
        """Get progress statistics for the active plan. Not cached."""
        payload = await self._api.get(f"{self.base_path}/stats")
        return self._extract_data(payload)

    async def complete_item(self, identity: "Identity", details: dict[str, Any]) -> dict[str, Any] | None:
        """Mark one meal or exercise as completed."""
        return await self._complete(identity, f"{self.base_path}{self.item_complete_path}", details)

    async def complete_day(self, identity: "Identity", day: int, week: int) -> dict[str, Any] | None:
        """Mark a whole plan day as completed."""
        return await self._complete(
            identity, f"{self.base_path}/day/complete", {"day": day, "week": week},
        )

    async def _complete(
        self,
        identity: "Identity",
        endpoint: str,
        body: dict[str, Any],
    ) -> dict[str, Any] | None:
        # Completion records live inside the plan, so the cached copy is now stale
        await self.invalidate_cache(identity)
        payload = await self._api.post(endpoint, body)
        return self._extract_data(payload)


class DietPlanService(BasePlanService):
    """Diet plans: meals are the completable items."""

    cache_name = "cached_diet_plan"
    resource_name = "diet_plan"
    base_path = "/diet-plans"
    item_complete_path = "/meal/complete"

    async def log_water_intake(self, day: int, week: int, amount: float) -> dict[str, Any] | None:
        """Log water intake for a plan day."""
        payload = await self._api.post(
            f"{self.base_path}/water/log", {"day": day, "week": week, "amount": amount},
        )
        return self._extract_data(payload)


class WorkoutPlanService(BasePlanService):
    """Workout plans: exercises are the completable items."""

    cache_name = "cached_workout_plan"
    resource_name = "workout_plan"
    base_path = "/workout-plans"
    item_complete_path = "/exercise/complete"
