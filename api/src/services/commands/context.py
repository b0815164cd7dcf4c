"""
Per-request execution context handed to command handlers.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import dotenv_values

from src.services.sandbox.base import SandboxExecutor
from src.services.sandbox.registry import SandboxRegistry
from src.services.skills.storage import SkillStore

logger = logging.getLogger(__name__)


def merge_playground_env(
    request_env: dict[str, str] | None,
    env_file: str | Path | None = None,
) -> dict[str, str]:
    """
    Environment overrides for shell commands.

    Values from the playground dotenv file, overlaid with the request's env
    (request wins). Keys without a value in the file are dropped.
    """
    merged: dict[str, str] = {}
    if env_file and Path(env_file).is_file():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    if request_env:
        merged.update(request_env)
    return merged


@dataclass
class ExecutionContext:
    """
    Everything a command needs for one agent request.

    The sandbox executor is resolved once per request and then reused, so an
    idle expiry surfaces as SandboxTimeoutError instead of being papered over
    by a fresh sandbox mid-loop.
    """

    session_key: str
    registry: SandboxRegistry
    skill_store: SkillStore
    env: dict[str, str] = field(default_factory=dict)
    sandbox_id: str | None = None
    conversation_id: str | None = None
    force_new_sandbox: bool = False
    sandbox_used: bool = False
    _executor: SandboxExecutor | None = field(default=None, repr=False)

    async def get_executor(self) -> SandboxExecutor:
        if self._executor is None:
            self._executor = await self.registry.get_executor(
                self.session_key,
                sandbox_id=self.sandbox_id,
                force_new=self.force_new_sandbox,
            )
        return self._executor

    async def use_sandbox(self) -> SandboxExecutor:
        """Get the executor and mark the sandbox as used by this request."""
        executor = await self.get_executor()
        self.sandbox_used = True
        return executor

    async def record_sandbox(self) -> None:
        """Persist the sandbox id for reconnection once it is known."""
        if self._executor is not None:
            await self.registry.record(self.session_key, self._executor)

    @property
    def active_sandbox_id(self) -> str | None:
        """Id of the sandbox resolved for this request, if any."""
        if self._executor is None:
            return None
        return self._executor.get_sandbox_id()
