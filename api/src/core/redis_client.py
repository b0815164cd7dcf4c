"""
Redis Client for Sandbox Session Tracking

Provides:
1. Conversation -> sandbox id mapping, so a follow-up request can reconnect
   to the same sandbox even when the client did not echo the id back
2. Last-activity timestamps with a TTL equal to the sandbox idle timeout

Session Flow:
1. Agent request provisions or reconnects a sandbox
2. Registry records the sandbox id for the conversation (TTL = idle timeout)
3. Each executed command refreshes the TTL
4. Cleanup (abort or explicit) deletes the key

Entries expire on their own when a sandbox goes idle, which mirrors the
backend's own idle-timeout semantics.
"""

import json
import logging
from datetime import datetime
from typing import TypedDict

import redis.asyncio as redis

from src.config import get_settings

logger = logging.getLogger(__name__)

# Redis key prefix
SANDBOX_SESSION_KEY_PREFIX = "tsugi:sandbox:session:"


class SandboxSessionRecord(TypedDict):
    """Schema for sandbox session data stored in Redis."""
    conversation_id: str
    sandbox_id: str
    backend: str
    created_at: str  # ISO format
    last_activity: str  # ISO format


class RedisClient:
    """
    Redis client wrapper for sandbox session tracking.

    Provides:
    - set/get/touch/delete for conversation sandbox sessions
    """

    def __init__(self):
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            settings = get_settings()
            self._redis = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        return self._redis

    async def set_sandbox_session(
        self,
        conversation_id: str,
        sandbox_id: str,
        backend: str,
        ttl_seconds: int,
    ) -> None:
        """
        Record the sandbox used by a conversation.

        Args:
            conversation_id: Conversation that owns the sandbox
            sandbox_id: Backend sandbox identifier
            backend: Backend name ("local" or "remote")
            ttl_seconds: Idle timeout of the sandbox
        """
        redis_client = await self._get_redis()
        key = f"{SANDBOX_SESSION_KEY_PREFIX}{conversation_id}"
        now = datetime.utcnow().isoformat()

        data: SandboxSessionRecord = {
            "conversation_id": conversation_id,
            "sandbox_id": sandbox_id,
            "backend": backend,
            "created_at": now,
            "last_activity": now,
        }

        await redis_client.setex(key, ttl_seconds, json.dumps(data))
        logger.debug(f"Stored sandbox session: {key} -> {sandbox_id}")

    async def get_sandbox_session(self, conversation_id: str) -> SandboxSessionRecord | None:
        """
        Get the sandbox recorded for a conversation.

        Returns:
            Session record or None if missing or expired
        """
        redis_client = await self._get_redis()
        key = f"{SANDBOX_SESSION_KEY_PREFIX}{conversation_id}"

        data = await redis_client.get(key)
        if not data:
            return None
        return json.loads(data)

    async def touch_sandbox_session(self, conversation_id: str, ttl_seconds: int) -> bool:
        """
        Refresh the last-activity timestamp and TTL.

        Returns:
            True if the session existed, False otherwise
        """
        redis_client = await self._get_redis()
        key = f"{SANDBOX_SESSION_KEY_PREFIX}{conversation_id}"

        data = await redis_client.get(key)
        if not data:
            return False

        record = json.loads(data)
        record["last_activity"] = datetime.utcnow().isoformat()
        await redis_client.setex(key, ttl_seconds, json.dumps(record))
        return True

    async def delete_sandbox_session(self, conversation_id: str) -> bool:
        """
        Forget the sandbox recorded for a conversation.

        Returns:
            True if a session was deleted
        """
        redis_client = await self._get_redis()
        key = f"{SANDBOX_SESSION_KEY_PREFIX}{conversation_id}"

        result = await redis_client.delete(key)
        if result:
            logger.debug(f"Deleted sandbox session: {key}")
        return result > 0

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None


# Singleton instance
_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """Get singleton Redis client instance."""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client


async def close_redis_client() -> None:
    """Close Redis client."""
    global _redis_client
    if _redis_client:
        await _redis_client.close()
        _redis_client = None
