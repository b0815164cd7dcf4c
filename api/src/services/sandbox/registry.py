"""
Sandbox Session Registry

Maps conversation ids to live sandbox executors. One registry lives on the
application state and is handed to each request through its
ExecutionContext, so a conversation never sees another conversation's
sandbox.

The conversation -> sandbox id mapping is mirrored in Redis (TTL = idle
timeout) so a follow-up request served by another worker can reconnect
without the client echoing the id back.
"""

import asyncio
import logging
from collections.abc import Callable

from src.config import Settings, get_settings
from src.core.redis_client import RedisClient
from src.services.sandbox.base import SandboxExecutor
from src.services.sandbox.local_executor import LocalSandboxExecutor
from src.services.sandbox.remote_executor import RemoteSandboxExecutor

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[str | None], SandboxExecutor]


def create_executor(settings: Settings, sandbox_id: str | None = None) -> SandboxExecutor:
    """Create an executor for the configured backend."""
    if settings.is_remote_sandbox:
        return RemoteSandboxExecutor(
            base_url=settings.remote_sandbox_url,
            token=settings.remote_sandbox_token,
            sandbox_id=sandbox_id,
            idle_timeout_seconds=settings.remote_idle_timeout_seconds,
            command_timeout_seconds=settings.command_timeout_seconds,
            runtime=settings.remote_sandbox_runtime,
            workdir=settings.remote_sandbox_workdir,
        )
    return LocalSandboxExecutor(
        sandbox_root=settings.sandbox_root,
        sandbox_id=sandbox_id,
        idle_timeout_seconds=settings.local_idle_timeout_seconds,
        command_timeout_seconds=settings.command_timeout_seconds,
    )


class SandboxRegistry:
    """
    Conversation-keyed executor cache.

    Each key has its own asyncio.Lock so two concurrent requests for the same
    conversation cannot provision two sandboxes.
    """

    def __init__(
        self,
        factory: ExecutorFactory | None = None,
        tracker: RedisClient | None = None,
        idle_timeout_seconds: int | None = None,
    ):
        settings = get_settings()
        self._factory = factory or (lambda sandbox_id: create_executor(settings, sandbox_id))
        self._tracker = tracker
        self._ttl = idle_timeout_seconds or settings.sandbox_idle_timeout_seconds
        self._executors: dict[str, SandboxExecutor] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def peek(self, conversation_id: str) -> SandboxExecutor | None:
        """Cached executor for a conversation, without creating one."""
        return self._executors.get(conversation_id)

    async def get_executor(
        self,
        conversation_id: str,
        sandbox_id: str | None = None,
        force_new: bool = False,
    ) -> SandboxExecutor:
        """
        Get the executor for a conversation.

        Returns the live cached executor when it matches, otherwise reconnects
        to ``sandbox_id`` (or the id recorded in Redis) or creates a fresh
        sandbox. Dead cached executors are replaced transparently.

        Args:
            conversation_id: Registry key
            sandbox_id: Sandbox to reconnect to, if known
            force_new: Ignore any cached or recorded sandbox
        """
        async with self._lock_for(conversation_id):
            cached = self._executors.get(conversation_id)
            if cached is not None and not force_new and cached.is_alive():
                if sandbox_id is None or sandbox_id == cached.get_sandbox_id():
                    await self._touch(conversation_id)
                    return cached

            if cached is not None:
                self._executors.pop(conversation_id, None)
                await cached.aclose()

            if sandbox_id is None and not force_new:
                sandbox_id = await self._recorded_sandbox_id(conversation_id)

            executor = self._factory(sandbox_id)
            self._executors[conversation_id] = executor
            logger.debug(
                f"Registered {executor.backend} executor for conversation {conversation_id}"
                + (f" (reconnect {sandbox_id})" if sandbox_id else "")
            )
            return executor

    async def record(self, conversation_id: str, executor: SandboxExecutor) -> None:
        """Mirror the executor's sandbox id into Redis once it is known."""
        sandbox_id = executor.get_sandbox_id()
        if self._tracker is None or sandbox_id is None:
            return
        try:
            await self._tracker.set_sandbox_session(
                conversation_id, sandbox_id, executor.backend, self._ttl
            )
        except Exception as e:
            logger.warning(f"Failed to record sandbox session for {conversation_id}: {e}")

    async def release(self, conversation_id: str) -> None:
        """Clean up and forget the conversation's sandbox."""
        async with self._lock_for(conversation_id):
            executor = self._executors.pop(conversation_id, None)
            try:
                if executor is not None:
                    await executor.cleanup()
                    await executor.aclose()
            finally:
                await self._forget(conversation_id)
                self._locks.pop(conversation_id, None)

    async def detach(self, conversation_id: str) -> None:
        """
        Drop the cached executor without stopping its sandbox.

        Used for request-scoped keys: the sandbox stays reachable by id until
        its idle timeout, but the registry no longer holds it.
        """
        async with self._lock_for(conversation_id):
            executor = self._executors.pop(conversation_id, None)
            try:
                if executor is not None:
                    await executor.aclose()
            finally:
                self._locks.pop(conversation_id, None)

    async def close(self) -> None:
        """Close client-side resources of all cached executors (sandboxes keep running)."""
        for executor in list(self._executors.values()):
            await executor.aclose()
        self._executors.clear()
        self._locks.clear()

    async def _recorded_sandbox_id(self, conversation_id: str) -> str | None:
        if self._tracker is None:
            return None
        try:
            record = await self._tracker.get_sandbox_session(conversation_id)
        except Exception as e:
            logger.warning(f"Failed to look up sandbox session for {conversation_id}: {e}")
            return None
        return record["sandbox_id"] if record else None

    async def _touch(self, conversation_id: str) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.touch_sandbox_session(conversation_id, self._ttl)
        except Exception as e:
            logger.warning(f"Failed to refresh sandbox session for {conversation_id}: {e}")

    async def _forget(self, conversation_id: str) -> None:
        if self._tracker is None:
            return
        try:
            await self._tracker.delete_sandbox_session(conversation_id)
        except Exception as e:
            logger.warning(f"Failed to delete sandbox session for {conversation_id}: {e}")
