"""
Sandbox Executor Interface

Uniform interface for running commands and touching files in an isolated
per-conversation workspace:
- LocalSandboxExecutor: asyncio subprocesses in a local directory (development)
- RemoteSandboxExecutor: isolated microVM behind an HTTP control API (production)

Idle expiry is detected lazily: a session whose last activity is older than
its idle timeout reports itself dead on the next liveness check, and every
later operation raises SandboxTimeoutError.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

DEFAULT_TIMEOUT_SECONDS = 10.0
TIMEOUT_EXIT_CODE = 124


@dataclass
class CommandResult:
    """Outcome of one command."""

    stdout: str
    stderr: str
    exit_code: int


@dataclass
class ExecuteOptions:
    """Per-command execution options."""

    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout: float | None = None
    sudo: bool = False


class SandboxExecutor(ABC):
    """Abstract sandbox session."""

    backend: str = ""

    def __init__(self, idle_timeout_seconds: float):
        self.idle_timeout_seconds = idle_timeout_seconds
        self._last_activity = time.monotonic()
        self._dead = False

    def is_alive(self) -> bool:
        """False once cleaned up or idle longer than the idle timeout."""
        if self._dead:
            return False
        if time.monotonic() - self._last_activity > self.idle_timeout_seconds:
            self._dead = True
            return False
        return True

    async def reset_timeout(self) -> bool:
        """Refresh the idle clock. Returns False if the session is already dead."""
        if not self.is_alive():
            return False
        self._touch()
        return True

    def _touch(self) -> None:
        self._last_activity = time.monotonic()

    def _mark_dead(self) -> None:
        self._dead = True

    @abstractmethod
    async def initialize(self) -> str:
        """Eagerly provision (or reconnect) and return the sandbox id."""
        ...

    @abstractmethod
    async def execute(self, command: str, options: ExecuteOptions | None = None) -> CommandResult:
        """
        Run a command.

        Raises:
            SandboxTimeoutError: If the session is dead
        """
        ...

    @abstractmethod
    async def write_file(self, path: str, content: str | bytes) -> None:
        ...

    @abstractmethod
    async def read_file(self, path: str) -> str | None:
        """Read a file, or None if it does not exist."""
        ...

    @abstractmethod
    async def list_files(self, path: str | None = None) -> list[str]:
        ...

    @abstractmethod
    async def cleanup(self) -> None:
        """Release backend resources and mark the session dead."""
        ...

    @abstractmethod
    def get_sandbox_id(self) -> str | None:
        """Current sandbox id, for reconnection across requests."""
        ...

    async def aclose(self) -> None:
        """Release client-side resources without stopping the sandbox."""
        return None
