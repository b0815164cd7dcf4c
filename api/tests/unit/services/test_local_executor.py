"""
Unit tests for the local subprocess sandbox.
"""

import pytest

from src.core.exceptions import SandboxError, SandboxTimeoutError
from src.services.sandbox.base import ExecuteOptions
from src.services.sandbox.local_executor import LocalSandboxExecutor


class TestExecute:
    @pytest.mark.asyncio
    async def test_runs_in_sandbox_directory(self, local_executor):
        await local_executor.initialize()
        await local_executor.write_file("hello.txt", "hi")

        result = await local_executor.execute("cat hello.txt")

        assert result.exit_code == 0
        assert result.stdout == "hi"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, local_executor):
        result = await local_executor.execute("cat missing.txt")

        assert result.exit_code != 0
        assert "missing.txt" in result.stderr

    @pytest.mark.asyncio
    async def test_disallowed_binary(self, local_executor):
        result = await local_executor.execute("nc -l 8080")

        assert result.exit_code == 1
        assert result.stderr.startswith('Command "nc" not allowed. Allowed: sh, curl, cat')

    @pytest.mark.asyncio
    async def test_command_timeout(self, sandbox_root):
        executor = LocalSandboxExecutor(sandbox_root, "slow", command_timeout_seconds=0.2)

        result = await executor.execute("sleep 5")

        assert result.exit_code == 124
        assert result.stderr == "Command timed out (0.2s)"

    @pytest.mark.asyncio
    async def test_env_overrides(self, local_executor):
        result = await local_executor.execute(
            "echo $TSUGI_TEST_VALUE", ExecuteOptions(env={"TSUGI_TEST_VALUE": "from-env"})
        )

        assert result.stdout == "from-env"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_idle_timeout_kills_session(self, sandbox_root):
        executor = LocalSandboxExecutor(sandbox_root, "idle", idle_timeout_seconds=0)
        executor._last_activity -= 1

        assert executor.is_alive() is False
        assert await executor.reset_timeout() is False
        with pytest.raises(SandboxTimeoutError):
            await executor.execute("ls")

    @pytest.mark.asyncio
    async def test_cleanup_empties_directory_and_marks_dead(self, local_executor):
        await local_executor.write_file("a.txt", "a")

        await local_executor.cleanup()

        assert await local_executor.list_files() == []
        assert local_executor.is_alive() is False
        with pytest.raises(SandboxTimeoutError):
            await local_executor.execute("ls")

    def test_generated_id(self, sandbox_root):
        executor = LocalSandboxExecutor(sandbox_root)
        assert executor.get_sandbox_id().startswith("local-")

    def test_rejects_unsafe_id(self, sandbox_root):
        with pytest.raises(SandboxError):
            LocalSandboxExecutor(sandbox_root, "../escape")


class TestFiles:
    @pytest.mark.asyncio
    async def test_list_and_read(self, local_executor):
        await local_executor.write_file("b.txt", "b")
        await local_executor.write_file("a.txt", "a")

        assert await local_executor.list_files() == ["a.txt", "b.txt"]
        assert await local_executor.read_file("a.txt") == "a"
        assert await local_executor.read_file("missing.txt") is None

    @pytest.mark.asyncio
    async def test_path_escape_is_refused(self, local_executor):
        with pytest.raises(SandboxError):
            await local_executor.write_file("../outside.txt", "x")
