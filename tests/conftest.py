"""Pytest fixtures for testing."""
from collections.abc import AsyncGenerator, Callable, Generator

import jwt
import pytest
import respx
from fakeredis import FakeAsyncRedis

from api_client.client import ApiClient
from core.config import Settings
from core.redis import RedisClient
from core.session import SessionManager
from core.user_cache import UserCache

TEST_API_URL = "http://api.test"
TEST_REDIS_URL = "redis://localhost:6379"
TEST_JWT_SECRET = "test-secret-key-used-only-for-signing-test-tokens"


@pytest.fixture
def settings() -> Settings:
    """Settings pointing at the mocked API, isolated from any local .env."""
    return Settings(
        _env_file=None,
        EXPO_PUBLIC_API_URL=TEST_API_URL,
        REDIS_ENABLED="true",
    )


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Factory for backend-style JWTs carrying a user ID in the 'id' claim."""

    def _make_token(user_id: str, **claims: object) -> str:
        return jwt.encode({"id": user_id, **claims}, TEST_JWT_SECRET, algorithm="HS256")

    return _make_token


@pytest.fixture
async def redis_client() -> AsyncGenerator[RedisClient]:
    """In-process Redis, flushed after each test."""
    client = RedisClient(TEST_REDIS_URL, client=FakeAsyncRedis())
    await client.connect()
    yield client
    await client.flushdb()
    await client.close()


@pytest.fixture
def user_cache(redis_client: RedisClient) -> UserCache:
    """User cache backed by the in-process Redis."""
    return UserCache(redis_client)


@pytest.fixture
def session(redis_client: RedisClient, user_cache: UserCache) -> SessionManager:
    """Session manager starting in the anonymous state."""
    return SessionManager(redis_client, user_cache)


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Context manager for mocking API responses."""
    with respx.mock(base_url=TEST_API_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def api_client(
    settings: Settings,
    session: SessionManager,
    mock_api: respx.MockRouter,  # noqa: ARG001
) -> AsyncGenerator[ApiClient]:
    """API client wired to the session, created inside the respx context."""
    client = ApiClient(settings, token_provider=session.get_token)
    client.set_auth_invalidated_handler(session.handle_auth_invalidated)
    yield client
    await client.aclose()
