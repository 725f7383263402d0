"""Redis service for distributed locks."""

import uuid

from redis.asyncio import Redis


class RedisService:
    """Service class for Redis lock operations."""

    # Lua script for safe lock release (only delete own lock)
    RELEASE_LOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis: Redis):
        """Initialize Redis service with a Redis client.

        Args:
            redis: Async Redis client instance
        """
        self.redis = redis
        self._release_lock_script = None

    async def _get_release_lock_script(self):
        """Get or register the release lock Lua script."""
        if self._release_lock_script is None:
            self._release_lock_script = self.redis.register_script(self.RELEASE_LOCK_SCRIPT)
        return self._release_lock_script

    @staticmethod
    def lock_key(resource: str) -> str:
        return f"lock:{resource}"

    # ==================== Distributed Lock Operations ====================

    async def acquire_lock(
        self, resource: str, owner_id: str | None = None, ttl: int = 30
    ) -> tuple[bool, str]:
        """Acquire a distributed lock on a resource.

        Key pattern: lock:{resource}, e.g. lock:checkout:{buyer_id}
        Uses SET NX EX for atomic lock acquisition.

        Args:
            resource: Resource name to lock
            owner_id: Unique identifier for lock owner (auto-generated if None)
            ttl: Lock timeout in seconds so a crashed holder cannot block forever

        Returns:
            Tuple of (success, owner_id)
        """
        if owner_id is None:
            owner_id = str(uuid.uuid4())

        acquired = await self.redis.set(self.lock_key(resource), owner_id, nx=True, ex=ttl)
        return (acquired is not None and acquired is not False, owner_id)

    async def release_lock(self, resource: str, owner_id: str) -> bool:
        """Release a distributed lock (only if owner matches).

        Args:
            resource: Resource name passed to acquire_lock
            owner_id: The owner_id returned from acquire_lock

        Returns:
            True if lock was released, False if not owner or not locked
        """
        script = await self._get_release_lock_script()
        result = await script(keys=[self.lock_key(resource)], args=[owner_id])
        return int(result) == 1
