"""Tests for the user profile service."""
import json
from collections.abc import Callable

import pytest
import respx
from httpx import Response

from api_client.client import ApiClient
from core.identity import Identity
from core.session import SessionManager
from core.user_cache import UserCache
from services.user_profile_service import UserProfileService

PROFILE = {"_id": "p1", "age": 30, "goal": "build muscle"}


@pytest.fixture
def profile_service(
    api_client: ApiClient, user_cache: UserCache, session: SessionManager,
) -> UserProfileService:
    """Profile service wired to the mocked API."""
    return UserProfileService(api_client, user_cache, session, cache_ttl=1800)


@pytest.fixture
async def identity(session: SessionManager, make_token: Callable[..., str]) -> Identity:
    """An active identity for user u1."""
    result = await session.start_session(make_token("u1"))
    assert result is not None
    return result


class TestGetUserProfile:
    """Tests for UserProfileService.get_user_profile."""

    async def test__miss__fetches_and_caches(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """The first read goes to the network and fills the user's cache."""
        route = mock_api.get("/user-profile").mock(
            return_value=Response(200, json={"success": True, "data": PROFILE}),
        )

        first = await profile_service.get_user_profile(identity)
        second = await profile_service.get_user_profile(identity)

        assert first == PROFILE
        assert second == PROFILE
        assert route.call_count == 1
        assert await user_cache.get_cached("cached_user_profile", "u1") == PROFILE

    async def test__force_refresh__bypasses_cache(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """force_refresh always hits the network."""
        await user_cache.set_cached("cached_user_profile", "u1", {"age": 20})
        mock_api.get("/user-profile").mock(
            return_value=Response(200, json={"success": True, "data": PROFILE}),
        )

        result = await profile_service.get_user_profile(identity, force_refresh=True)

        assert result == PROFILE

    async def test__other_users_cache__never_served(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """A profile cached for another user is not returned to u1."""
        await user_cache.set_cached("cached_user_profile", "u0", {"owner": "u0"})
        route = mock_api.get("/user-profile").mock(
            return_value=Response(200, json={"success": True, "data": PROFILE}),
        )

        result = await profile_service.get_user_profile(identity)

        assert result == PROFILE
        assert route.call_count == 1

    async def test__no_profile__returns_none_and_clears_cache(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """A new user without a profile gets None, and nothing stale remains."""
        await user_cache.set_cached("cached_user_profile", "u1", {"age": 20})
        mock_api.get("/user-profile").mock(
            return_value=Response(200, json={"success": False, "message": "Profile not found"}),
        )

        result = await profile_service.get_user_profile(identity, force_refresh=True)

        assert result is None
        assert await user_cache.get_cached("cached_user_profile", "u1") is None

    async def test__fetch_finishing_after_logout__not_cached(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        session: SessionManager,
        identity: Identity,
    ) -> None:
        """A result for an identity that is no longer active never lands in the cache."""
        mock_api.get("/user-profile").mock(
            return_value=Response(200, json={"success": True, "data": PROFILE}),
        )
        await session.end_session()

        result = await profile_service.get_user_profile(identity)

        assert result == PROFILE
        assert await user_cache.get_cached("cached_user_profile", "u1") is None


class TestProfileMutations:
    """Tests for profile writes."""

    async def test__create_or_update__stores_saved_profile(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """The profile returned by the backend replaces the cached one."""
        route = mock_api.post("/user-profile").mock(
            return_value=Response(201, json={"success": True, "data": PROFILE}),
        )

        result = await profile_service.create_or_update_profile(identity, {"age": 30})

        assert result == PROFILE
        assert json.loads(route.calls[0].request.content) == {"age": 30}
        assert await user_cache.get_cached("cached_user_profile", "u1") == PROFILE

    async def test__update_field__patches_single_field(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        identity: Identity,
    ) -> None:
        """Field updates send the field name and value."""
        route = mock_api.patch("/user-profile/field").mock(
            return_value=Response(200, json={"success": True, "data": {**PROFILE, "age": 31}}),
        )

        result = await profile_service.update_profile_field(identity, "age", 31)

        assert result is not None
        assert result["age"] == 31
        assert json.loads(route.calls[0].request.content) == {"field": "age", "value": 31}

    async def test__failed_update__leaves_cache_empty(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """A rejected update drops the cached copy instead of keeping a stale one."""
        await user_cache.set_cached("cached_user_profile", "u1", PROFILE)
        mock_api.patch("/user-profile/field").mock(
            return_value=Response(200, json={"success": False, "message": "Invalid field"}),
        )

        assert await profile_service.update_profile_field(identity, "bogus", 1) is None
        assert await user_cache.get_cached("cached_user_profile", "u1") is None

    async def test__delete__invalidates_cache(
        self,
        profile_service: UserProfileService,
        mock_api: respx.MockRouter,
        user_cache: UserCache,
        identity: Identity,
    ) -> None:
        """Deleting the profile removes the cached copy."""
        await user_cache.set_cached("cached_user_profile", "u1", PROFILE)
        mock_api.delete("/user-profile").mock(return_value=Response(200, json={"success": True}))

        assert await profile_service.delete_profile(identity) is True
        assert await user_cache.get_cached("cached_user_profile", "u1") is None

    async def test__completion_status__not_cached(
        self, profile_service: UserProfileService, mock_api: respx.MockRouter,
    ) -> None:
        """Completion status always comes from the network."""
        route = mock_api.get("/user-profile/completion").mock(
            return_value=Response(200, json={"success": True, "data": {"isComplete": False}}),
        )

        await profile_service.get_completion_status()
        result = await profile_service.get_completion_status()

        assert result == {"isComplete": False}
        assert route.call_count == 2
