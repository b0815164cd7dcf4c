"""
Unit tests for the conversation-keyed sandbox registry.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.services.commands.context import ExecutionContext, merge_playground_env
from src.services.sandbox.local_executor import LocalSandboxExecutor
from src.services.sandbox.registry import SandboxRegistry


def _tracker(recorded: str | None = None) -> MagicMock:
    tracker = MagicMock()
    tracker.get_sandbox_session = AsyncMock(
        return_value={"sandbox_id": recorded, "backend": "local"} if recorded else None
    )
    tracker.set_sandbox_session = AsyncMock()
    tracker.touch_sandbox_session = AsyncMock(return_value=True)
    tracker.delete_sandbox_session = AsyncMock(return_value=True)
    return tracker


class TestSandboxRegistry:
    @pytest.mark.asyncio
    async def test_reuses_live_executor(self, registry):
        first = await registry.get_executor("conv-1")
        second = await registry.get_executor("conv-1")

        assert first is second

    @pytest.mark.asyncio
    async def test_conversations_are_isolated(self, registry):
        first = await registry.get_executor("conv-1")
        other = await registry.get_executor("conv-2")

        assert first is not other
        assert first.get_sandbox_id() != other.get_sandbox_id()

    @pytest.mark.asyncio
    async def test_dead_executor_is_replaced(self, registry):
        first = await registry.get_executor("conv-1")
        await first.cleanup()

        second = await registry.get_executor("conv-1")

        assert second is not first
        assert second.is_alive()

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_one_executor(self, sandbox_root):
        created = []

        def factory(sandbox_id):
            executor = LocalSandboxExecutor(sandbox_root, sandbox_id)
            created.append(executor)
            return executor

        registry = SandboxRegistry(factory=factory, idle_timeout_seconds=300)

        results = await asyncio.gather(*(registry.get_executor("conv-1") for _ in range(5)))

        assert len(created) == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_reconnects_to_recorded_sandbox(self, sandbox_root):
        factory = MagicMock(side_effect=lambda sid: LocalSandboxExecutor(sandbox_root, sid))
        registry = SandboxRegistry(factory=factory, tracker=_tracker("local-recorded"), idle_timeout_seconds=300)

        executor = await registry.get_executor("conv-1")

        factory.assert_called_once_with("local-recorded")
        assert executor.get_sandbox_id() == "local-recorded"

    @pytest.mark.asyncio
    async def test_force_new_ignores_recorded_sandbox(self, sandbox_root):
        factory = MagicMock(side_effect=lambda sid: LocalSandboxExecutor(sandbox_root, sid))
        tracker = _tracker("local-recorded")
        registry = SandboxRegistry(factory=factory, tracker=tracker, idle_timeout_seconds=300)

        await registry.get_executor("conv-1", force_new=True)

        factory.assert_called_once_with(None)
        tracker.get_sandbox_session.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_record_and_release(self, sandbox_root):
        tracker = _tracker()
        registry = SandboxRegistry(
            factory=lambda sid: LocalSandboxExecutor(sandbox_root, sid or "local-abc"),
            tracker=tracker,
            idle_timeout_seconds=300,
        )
        executor = await registry.get_executor("conv-1")

        await registry.record("conv-1", executor)
        tracker.set_sandbox_session.assert_awaited_once_with("conv-1", "local-abc", "local", 300)

        await registry.release("conv-1")
        tracker.delete_sandbox_session.assert_awaited_once_with("conv-1")
        assert registry.peek("conv-1") is None
        assert executor.is_alive() is False

    @pytest.mark.asyncio
    async def test_detach_forgets_without_stopping(self, registry, sandbox_root):
        executor = await registry.get_executor("request-1")
        await executor.initialize()

        await registry.detach("request-1")

        assert registry.peek("request-1") is None
        assert "request-1" not in registry._locks
        assert executor.is_alive() is True
        assert (sandbox_root / executor.get_sandbox_id()).is_dir()

    @pytest.mark.asyncio
    async def test_tracker_failures_are_not_fatal(self, sandbox_root):
        tracker = _tracker()
        tracker.get_sandbox_session = AsyncMock(side_effect=ConnectionError("redis down"))
        registry = SandboxRegistry(
            factory=lambda sid: LocalSandboxExecutor(sandbox_root, sid),
            tracker=tracker,
            idle_timeout_seconds=300,
        )

        executor = await registry.get_executor("conv-1")

        assert executor.is_alive()


class TestExecutionContext:
    @pytest.mark.asyncio
    async def test_resolves_executor_once(self, context, registry):
        first = await context.get_executor()
        await first.cleanup()

        # A dead executor is not silently replaced within one request
        assert await context.get_executor() is first
        assert context.active_sandbox_id == first.get_sandbox_id()

    def test_merge_playground_env(self, tmp_path):
        env_file = tmp_path / ".env.playground"
        env_file.write_text("API_TOKEN=from-file\nREGION=eu\nEMPTY\n")

        merged = merge_playground_env({"API_TOKEN": "from-request"}, env_file)

        assert merged == {"API_TOKEN": "from-request", "REGION": "eu"}

    def test_merge_without_file(self, tmp_path):
        assert merge_playground_env(None, tmp_path / "missing.env") == {}

    def test_context_defaults(self, registry, skill_store):
        context = ExecutionContext(session_key="k", registry=registry, skill_store=skill_store)
        assert context.sandbox_used is False
        assert context.active_sandbox_id is None
