"""
Local Sandbox Executor

Runs commands as asyncio subprocesses inside ``{sandbox_root}/{sandbox_id}``.
Intended for development: isolation is limited to an allow-list on the first
token of the command and a dedicated working directory.
"""

import asyncio
import logging
import os
import re
import shutil
import signal
from pathlib import Path
from uuid import uuid4

from src.core.exceptions import SandboxError, SandboxTimeoutError
from src.services.sandbox.base import (
    DEFAULT_TIMEOUT_SECONDS,
    TIMEOUT_EXIT_CODE,
    CommandResult,
    ExecuteOptions,
    SandboxExecutor,
)

logger = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 1024 * 1024  # 1 MiB

ALLOWED_COMMANDS = [
    "sh",
    "curl",
    "cat",
    "ls",
    "head",
    "tail",
    "find",
    "tree",
    "jq",
    "grep",
    "export",
    "source",
    "python",
    "python3",
    "pip",
    "pip3",
    "cd",
    "rm",
    "mv",
    "cp",
    "echo",
    "touch",
    "mkdir",
    "rmdir",
    "pwd",
    "sleep",
]

_SANDBOX_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _decode(data: bytes) -> str:
    if len(data) > MAX_OUTPUT_BYTES:
        data = data[:MAX_OUTPUT_BYTES]
    return data.decode("utf-8", errors="replace").strip()


class LocalSandboxExecutor(SandboxExecutor):
    """Subprocess-backed sandbox session in a local directory."""

    backend = "local"

    def __init__(
        self,
        sandbox_root: str | Path,
        sandbox_id: str | None = None,
        idle_timeout_seconds: float = 300,
        command_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(idle_timeout_seconds)
        sandbox_id = sandbox_id or f"local-{uuid4().hex[:12]}"
        if not _SANDBOX_ID_PATTERN.match(sandbox_id):
            raise SandboxError(f"Invalid sandbox id: {sandbox_id}")
        self.sandbox_id = sandbox_id
        self.sandbox_dir = Path(sandbox_root) / sandbox_id
        self.command_timeout_seconds = command_timeout_seconds

    def get_sandbox_id(self) -> str | None:
        return self.sandbox_id

    async def initialize(self) -> str:
        if not self.is_alive():
            raise SandboxTimeoutError()
        self.sandbox_dir.mkdir(parents=True, exist_ok=True)
        return self.sandbox_id

    async def execute(self, command: str, options: ExecuteOptions | None = None) -> CommandResult:
        if not self.is_alive():
            raise SandboxTimeoutError()
        self._touch()

        options = options or ExecuteOptions()
        self.sandbox_dir.mkdir(parents=True, exist_ok=True)

        tokens = command.strip().split()
        binary = tokens[0] if tokens else ""
        if binary not in ALLOWED_COMMANDS:
            return CommandResult(
                stdout="",
                stderr=f'Command "{binary}" not allowed. Allowed: {", ".join(ALLOWED_COMMANDS)}',
                exit_code=1,
            )

        timeout = options.timeout or self.command_timeout_seconds
        env = {**os.environ, **options.env} if options.env else None

        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=options.cwd or str(self.sandbox_dir),
            env=env,
            start_new_session=True,
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            # Kill the whole process group so shell children don't keep pipes open
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            await process.wait()
            return CommandResult(
                stdout="",
                stderr=f"Command timed out ({timeout:g}s)",
                exit_code=TIMEOUT_EXIT_CODE,
            )

        return CommandResult(
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            exit_code=process.returncode if process.returncode is not None else 1,
        )

    def _resolve(self, path: str) -> Path:
        """Resolve a path relative to the sandbox directory, refusing escapes."""
        root = self.sandbox_dir.resolve()
        full_path = (root / path).resolve()
        if full_path != root and root not in full_path.parents:
            raise SandboxError(f"Path escapes sandbox: {path}")
        return full_path

    async def write_file(self, path: str, content: str | bytes) -> None:
        full_path = self._resolve(path)
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                full_path.write_bytes(content)
            else:
                full_path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise SandboxError(f"Could not write {path}: {e.strerror or e}") from e

    async def read_file(self, path: str) -> str | None:
        full_path = self._resolve(path)
        if not full_path.is_file():
            return None
        return full_path.read_text(encoding="utf-8", errors="replace")

    async def list_files(self, path: str | None = None) -> list[str]:
        directory = self._resolve(path) if path else self.sandbox_dir
        if not directory.is_dir():
            return []
        return sorted(entry.name for entry in directory.iterdir())

    async def cleanup(self) -> None:
        await asyncio.to_thread(shutil.rmtree, self.sandbox_dir, True)
        self.sandbox_dir.mkdir(parents=True, exist_ok=True)
        self._mark_dead()
        logger.info(f"Cleaned up local sandbox {self.sandbox_id}")
