"""Client entry point: wires storage, the API client, the session, and services."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from redis.asyncio import Redis

from api_client.client import ApiClient
from core.config import Settings, get_settings
from core.redis import RedisClient
from core.session import SessionManager
from core.user_cache import UserCache
from services.auth_service import AuthService
from services.plan_service import DietPlanService, WorkoutPlanService
from services.user_profile_service import UserProfileService

logger = logging.getLogger(__name__)


@dataclass
class ClientApp:
    """Everything a UI layer needs, built once per app run."""

    settings: Settings
    redis: RedisClient
    api: ApiClient
    user_cache: UserCache
    session: SessionManager
    auth: AuthService
    profile: UserProfileService
    diet_plans: DietPlanService
    workout_plans: WorkoutPlanService


@asynccontextmanager
async def client_lifespan(
    settings: Settings | None = None,
    redis: Redis | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncGenerator[ClientApp]:
    """
    Manage the client lifespan - startup and shutdown.

    Args:
        settings: Settings to use; defaults to environment-derived settings.
        redis: Pre-built Redis client (e.g. fakeredis in tests).
        transport: Optional httpx transport for the API client.
    """
    app_settings = settings or get_settings()

    # Startup: Connect to storage
    redis_client = RedisClient(
        url=app_settings.redis_url,
        enabled=app_settings.redis_enabled,
        pool_size=app_settings.redis_pool_size,
        client=redis,
    )
    await redis_client.connect()

    user_cache = UserCache(redis_client)
    session = SessionManager(redis_client, user_cache)

    # Startup: API client reads the token from the session and reports 401s back to it
    api = ApiClient(app_settings, token_provider=session.get_token, transport=transport)
    api.set_auth_invalidated_handler(session.handle_auth_invalidated)

    app = ClientApp(
        settings=app_settings,
        redis=redis_client,
        api=api,
        user_cache=user_cache,
        session=session,
        auth=AuthService(api, session),
        profile=UserProfileService(api, user_cache, session, app_settings.profile_cache_ttl),
        diet_plans=DietPlanService(api, user_cache, session, app_settings.plan_cache_ttl),
        workout_plans=WorkoutPlanService(api, user_cache, session, app_settings.plan_cache_ttl),
    )

    # Startup: Resume a persisted session, if any
    identity = await session.restore()
    logger.info("client_started user_id=%s", identity.user_id if identity else None)

    try:
        yield app
    finally:
        # Shutdown: Close HTTP and storage connections
        await api.aclose()
        await redis_client.close()
        logger.info("client_stopped")
