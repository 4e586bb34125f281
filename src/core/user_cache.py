"""Per-user namespacing of locally persisted data."""
import json
import logging
import time
from typing import TYPE_CHECKING, Any

from schemas.cached_entry import CachedEntry

if TYPE_CHECKING:
    from core.redis import RedisClient

logger = logging.getLogger(__name__)

# Cache schema version - included in all namespaced keys (e.g., "cache:v1:user:...")
#
# Bump this version when CachedEntry fields are added, removed, or renamed. Entries
# written under the previous version are never read again and are purged by the next
# cleanup_orphaned_cache() pass.
CACHE_SCHEMA_VERSION = 1

CACHE_NAMESPACE_PREFIX = f"cache:v{CACHE_SCHEMA_VERSION}:user:"

# Single slot holding the active user's ID
CURRENT_USER_ID_KEY = "current_user_id"

# Global (un-namespaced) keys written by app versions before per-user caching.
# They cannot be attributed to any user, so they are always purged.
LEGACY_GLOBAL_KEYS = (
    "cached_diet_plan",
    "cached_workout_plan",
    "cached_user_profile",
    "completed_meals",
    "completed_exercises",
    "completed_diet_days",
    "completed_workout_days",
    "water_intake",
    "water_completed",
    "ai_trainer_chat",
    "ai_trainer_conversations",
    "ai_trainer_current_conversation_id",
    "last_checked_day",
    "personalizedWorkout",
    "lastWorkoutCompletion",
)

# Fields naming the owning user: our envelope uses 'user_id', backend documents 'userId'
OWNERSHIP_MARKERS = ("user_id", "userId")

GLOB_METACHARACTERS = frozenset("*?[]\\")


def get_user_cache_key(logical_name: str, user_id: str) -> str:
    """
    Build the namespaced storage key for one resource of one user.

    Args:
        logical_name: Resource name (e.g. 'cached_user_profile').
        user_id: Owning user's ID.

    Returns:
        Key of the form 'cache:v1:user:<user_id>:<logical_name>'.
    """
    return f"{CACHE_NAMESPACE_PREFIX}{user_id}:{logical_name}"


def _escape_glob(value: str) -> str:
    """Escape Redis glob metacharacters so a user ID only ever matches itself."""
    return "".join(f"\\{c}" if c in GLOB_METACHARACTERS else c for c in value)


def _user_namespace_pattern(user_id: str) -> str:
    return f"{CACHE_NAMESPACE_PREFIX}{_escape_glob(user_id)}:*"


def _owner_of_key(key: str) -> str | None:
    """Extract the user ID segment from a namespaced key, or None if not namespaced."""
    if not key.startswith(CACHE_NAMESPACE_PREFIX):
        return None
    owner, sep, _ = key[len(CACHE_NAMESPACE_PREFIX):].partition(":")
    if not sep:
        return None
    return owner


def validate_cached_data(data: Any, user_id: str | None) -> bool:
    """
    Check that a cached payload belongs to the given user.

    Payloads carrying a 'user_id' or 'userId' ownership marker must match it. Payloads
    without a marker are accepted since the namespaced key already scopes them to the user.

    Args:
        data: Decoded cached payload.
        user_id: The reader's user ID.

    Returns:
        False when there is no user ID or a marker mismatches, True otherwise.
    """
    if not user_id:
        return False
    if not isinstance(data, dict):
        return True
    return all(
        str(data[marker]) == user_id for marker in OWNERSHIP_MARKERS if marker in data
    )


class UserCache:
    """
    Cache of per-user resources on device-local storage.

    Every entry lives under a key that embeds the owner's ID and is additionally wrapped in
    a CachedEntry envelope carrying that ID, so a read addressed with the wrong identity
    can never return another user's data.

    Purge operations are idempotent and never raise.
    """

    def __init__(self, redis_client: "RedisClient") -> None:
        """Initialize user cache with Redis client."""
        self._redis = redis_client

    # ── Current user slot ───────────────────────────────────

    async def get_current_user_id(self) -> str | None:
        """Get the active user's ID, or None when anonymous."""
        raw = await self._redis.get(CURRENT_USER_ID_KEY)
        if not raw:
            return None
        return raw.decode() if isinstance(raw, bytes) else raw

    async def set_current_user_id(self, user_id: str) -> bool:
        """
        Commit the active user's ID.

        Returns once storage has acknowledged the write, so dependent cache validation can
        start immediately afterwards.

        Returns:
            True if the write was acknowledged, False if storage is unavailable.
        """
        stored = await self._redis.set(CURRENT_USER_ID_KEY, user_id)
        if stored:
            logger.debug("current_user_set user_id=%s", user_id)
        else:
            logger.warning("current_user_set_failed user_id=%s", user_id)
        return stored

    async def clear_current_user_id(self) -> None:
        """Clear the active user's ID. Safe to call repeatedly."""
        await self._redis.delete(CURRENT_USER_ID_KEY)
        logger.debug("current_user_cleared")

    # ── Namespaced entries ──────────────────────────────────

    async def get_cached(
        self,
        logical_name: str,
        user_id: str,
        max_age: float | None = None,
    ) -> Any | None:
        """
        Read a cached resource for a user.

        Entries that fail to decode, belong to someone else, or are older than max_age are
        deleted and reported as a miss, so the caller falls back to a network fetch.

        Args:
            logical_name: Resource name.
            user_id: The reader's user ID.
            max_age: Optional staleness threshold in seconds.

        Returns:
            The cached payload, or None on miss.
        """
        key = get_user_cache_key(logical_name, user_id)
        raw = await self._redis.get(key)
        if raw is None:
            logger.debug("user_cache_miss key=%s", key)
            return None

        entry = self._deserialize(raw)
        if entry is None:
            logger.warning("user_cache_corrupt key=%s", key)
            await self._redis.delete(key)
            return None
        if not self._owned_by(entry, user_id):
            logger.warning(
                "user_cache_owner_mismatch key=%s owner=%s reader=%s",
                key,
                entry.user_id,
                user_id,
            )
            await self._redis.delete(key)
            return None
        if max_age is not None and time.time() - entry.stored_at > max_age:
            logger.debug("user_cache_stale key=%s", key)
            await self._redis.delete(key)
            return None

        logger.debug("user_cache_hit key=%s", key)
        return entry.data

    async def set_cached(
        self,
        logical_name: str,
        user_id: str,
        data: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Write a resource snapshot for a user.

        Args:
            logical_name: Resource name.
            user_id: Owning user's ID.
            data: JSON-serializable payload.
            ttl: Optional expiry in seconds.

        Returns:
            True if stored, False if storage is unavailable.
        """
        key = get_user_cache_key(logical_name, user_id)
        entry = CachedEntry(user_id=user_id, data=data, stored_at=time.time())
        value = json.dumps(entry.__dict__)
        if ttl:
            stored = await self._redis.setex(key, ttl, value)
        else:
            stored = await self._redis.set(key, value)
        logger.debug("user_cache_set key=%s stored=%s", key, stored)
        return stored

    async def invalidate(self, logical_name: str, user_id: str) -> None:
        """Drop one cached resource for a user."""
        key = get_user_cache_key(logical_name, user_id)
        await self._redis.delete(key)
        logger.debug("user_cache_invalidate key=%s", key)

    # ── Purges ──────────────────────────────────────────────

    async def clear_user_cache(self, user_id: str | None) -> int:
        """
        Purge every namespaced entry of one user (called on logout).

        Returns:
            Number of keys removed.
        """
        if not user_id:
            return 0
        try:
            keys = await self._scan_namespace(user_id)
            await self._redis.delete(*keys)
        except Exception:
            logger.exception("user_cache_clear_failed user_id=%s", user_id)
            return 0
        logger.info("user_cache_clear user_id=%s removed=%s", user_id, len(keys))
        return len(keys)

    async def cleanup_orphaned_cache(self, new_user_id: str) -> int:
        """
        Purge everything not owned by the user who is logging in.

        Removes namespaced entries of any other user ID, plus legacy global keys that
        cannot be attributed to anyone. Keeps the growth of a shared device's storage
        bounded to the active account.

        Returns:
            Number of keys removed.
        """
        try:
            keys = await self._redis.scan_keys(f"{CACHE_NAMESPACE_PREFIX}*")
            orphaned = [key for key in keys if _owner_of_key(key) != new_user_id]
            # Entries under an older schema version are orphaned too
            stale_versions = [
                key
                for key in await self._redis.scan_keys("cache:v*:user:*")
                if not key.startswith(CACHE_NAMESPACE_PREFIX)
            ]
            to_remove = orphaned + stale_versions + list(LEGACY_GLOBAL_KEYS)
            await self._redis.delete(*to_remove)
        except Exception:
            logger.exception("user_cache_orphan_cleanup_failed user_id=%s", new_user_id)
            return 0
        removed = len(orphaned) + len(stale_versions)
        logger.info("user_cache_orphan_cleanup user_id=%s removed=%s", new_user_id, removed)
        return removed

    async def validate_cache_on_login(self, user_id: str) -> int:
        """
        Re-validate every entry in a user's namespace and drop the bad ones.

        Runs after the user ID is committed and before dependent services read their
        caches. Corrupt entries and entries whose envelope or payload ownership marker
        does not match are removed.

        Returns:
            Number of entries removed.
        """
        removed = 0
        try:
            keys = await self._scan_namespace(user_id)
            for key in keys:
                raw = await self._redis.get(key)
                if raw is None:
                    continue
                entry = self._deserialize(raw)
                if entry is None or not self._owned_by(entry, user_id):
                    await self._redis.delete(key)
                    removed += 1
        except Exception:
            logger.exception("user_cache_validate_failed user_id=%s", user_id)
            return removed
        logger.info("user_cache_validate user_id=%s checked=%s removed=%s", user_id, len(keys), removed)
        return removed

    async def _scan_namespace(self, user_id: str) -> list[str]:
        keys = await self._redis.scan_keys(_user_namespace_pattern(user_id))
        return [key for key in keys if _owner_of_key(key) == user_id]

    @staticmethod
    def _owned_by(entry: CachedEntry, user_id: str) -> bool:
        """Check both the envelope owner and any marker inside the stored payload."""
        return entry.user_id == user_id and validate_cached_data(entry.data, user_id)

    def _deserialize(self, raw: bytes | str) -> CachedEntry | None:
        """Decode a stored envelope, or None if it is not a valid CachedEntry."""
        try:
            d = json.loads(raw)
            if not isinstance(d, dict):
                return None
            return CachedEntry(
                user_id=str(d["user_id"]),
                data=d.get("data"),
                stored_at=float(d.get("stored_at", 0)),
            )
        except (ValueError, KeyError, TypeError):
            return None
