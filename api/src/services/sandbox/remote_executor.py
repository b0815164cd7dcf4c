"""
Remote Sandbox Executor

Isolated microVM sandbox reached over an HTTP control API:

    POST   /sandboxes                         create  -> {"id": ...}
    GET    /sandboxes/{id}                    status  -> {"id": ..., "status": "running"}
    POST   /sandboxes/{id}/commands           run     -> {"stdout", "stderr", "exitCode"}
    PUT    /sandboxes/{id}/files?path=...     write (raw body)
    GET    /sandboxes/{id}/files?path=...     read  (raw body, 404 when missing)
    DELETE /sandboxes/{id}                    stop

The sandbox is provisioned lazily on first use, or reconnected by id with an
``echo ok`` health check. A failed reconnect provisions a replacement.
"""

import logging
import re
from typing import Any

import httpx

from src.core.exceptions import SandboxError, SandboxTimeoutError
from src.services.sandbox.base import (
    DEFAULT_TIMEOUT_SECONDS,
    TIMEOUT_EXIT_CODE,
    CommandResult,
    ExecuteOptions,
    SandboxExecutor,
)

logger = logging.getLogger(__name__)

DEFAULT_WORKDIR = "/vercel/sandbox"
DEFAULT_RUNTIME = "python3.13"
REQUEST_TIMEOUT_SECONDS = 60.0
# Extra time the HTTP request waits beyond the command's own timeout
COMMAND_TIMEOUT_GRACE_SECONDS = 5.0

_SHELL_OPERATORS = re.compile(r"[|><&;`$]")


def needs_shell(command: str) -> bool:
    """True when the command uses shell operators and must run under sh -c."""
    return bool(_SHELL_OPERATORS.search(command))


def build_argv(command: str) -> tuple[str, list[str]]:
    """Split a command into (cmd, args), wrapping in sh -c when needed."""
    if needs_shell(command):
        return "sh", ["-c", command]
    parts = command.strip().split()
    return parts[0], parts[1:]


class RemoteSandboxExecutor(SandboxExecutor):
    """Sandbox session backed by the remote control API."""

    backend = "remote"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        sandbox_id: str | None = None,
        idle_timeout_seconds: float = 600,
        command_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        runtime: str = DEFAULT_RUNTIME,
        workdir: str = DEFAULT_WORKDIR,
        client: httpx.AsyncClient | None = None,
    ):
        super().__init__(idle_timeout_seconds)
        self.command_timeout_seconds = command_timeout_seconds
        self.runtime = runtime
        self.workdir = workdir.rstrip("/")
        self._existing_sandbox_id = sandbox_id
        self._sandbox_id: str | None = None

        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    def get_sandbox_id(self) -> str | None:
        return self._sandbox_id

    @staticmethod
    def is_sandbox_dead_error(error: Exception) -> bool:
        """Check whether an error means the sandbox has stopped or vanished."""
        if isinstance(error, httpx.HTTPStatusError):
            if error.response.status_code in (404, 410):
                return True
        message = str(error).lower()
        return "sandbox" in message and (
            "stopped" in message or "not found" in message or "timeout" in message
        )

    def _wrap_error(self, error: Exception, action: str) -> SandboxError:
        """Map an HTTP failure to SandboxTimeoutError (dead sandbox) or SandboxError."""
        if self.is_sandbox_dead_error(error):
            self._mark_dead()
            return SandboxTimeoutError()
        return SandboxError(f"Sandbox {action} failed: {error}")

    async def _create(self) -> str:
        response = await self._client.post(
            "/sandboxes",
            json={
                "runtime": self.runtime,
                "timeoutMs": int(self.idle_timeout_seconds * 1000),
            },
        )
        response.raise_for_status()
        sandbox_id = response.json()["id"]
        logger.info(f"Created remote sandbox {sandbox_id}")
        return sandbox_id

    async def _reconnect(self, sandbox_id: str) -> str:
        response = await self._client.get(f"/sandboxes/{sandbox_id}")
        response.raise_for_status()
        status = response.json().get("status", "running")
        if status != "running":
            raise SandboxError(f"Sandbox {sandbox_id} is {status}")

        health = await self._run(sandbox_id, "echo", ["ok"])
        if health.exit_code != 0:
            raise SandboxError("Health check failed")
        return sandbox_id

    async def _ensure_sandbox(self) -> str:
        if self._dead:
            raise SandboxTimeoutError()
        if self._sandbox_id is None:
            if self._existing_sandbox_id:
                try:
                    self._sandbox_id = await self._reconnect(self._existing_sandbox_id)
                except (httpx.HTTPError, SandboxError, KeyError, ValueError) as e:
                    logger.warning(
                        f"Reconnect to sandbox {self._existing_sandbox_id} failed, "
                        f"creating new sandbox: {e}"
                    )
                    self._existing_sandbox_id = None
                    self._sandbox_id = await self._create()
            else:
                self._sandbox_id = await self._create()
            self._touch()
        return self._sandbox_id

    async def _run(
        self,
        sandbox_id: str,
        cmd: str,
        args: list[str],
        options: ExecuteOptions | None = None,
    ) -> CommandResult:
        options = options or ExecuteOptions()
        payload: dict[str, Any] = {
            "cmd": cmd,
            "args": args,
            "cwd": options.cwd or self.workdir,
        }
        if options.env:
            payload["env"] = options.env
        if options.sudo:
            payload["sudo"] = True

        request_timeout: float | httpx.Timeout = self._client.timeout
        if options.timeout:
            payload["timeoutMs"] = int(options.timeout * 1000)
            request_timeout = max(
                options.timeout + COMMAND_TIMEOUT_GRACE_SECONDS, REQUEST_TIMEOUT_SECONDS
            )

        response = await self._client.post(
            f"/sandboxes/{sandbox_id}/commands", json=payload, timeout=request_timeout
        )
        response.raise_for_status()
        data = response.json()
        return CommandResult(
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
            exit_code=int(data.get("exitCode", 0)),
        )

    async def initialize(self) -> str:
        return await self._ensure_sandbox()

    async def execute(self, command: str, options: ExecuteOptions | None = None) -> CommandResult:
        if not self.is_alive():
            raise SandboxTimeoutError()
        self._touch()

        options = options or ExecuteOptions()
        timeout = options.timeout or self.command_timeout_seconds
        run_options = ExecuteOptions(
            cwd=options.cwd, env=options.env, timeout=timeout, sudo=options.sudo
        )

        try:
            sandbox_id = await self._ensure_sandbox()
            cmd, args = build_argv(command)
            return await self._run(sandbox_id, cmd, args, run_options)
        except SandboxError:
            raise
        except httpx.TimeoutException:
            return CommandResult(
                stdout="",
                stderr=f"Command timed out ({timeout:g}s)",
                exit_code=TIMEOUT_EXIT_CODE,
            )
        except httpx.HTTPError as e:
            raise self._wrap_error(e, "command") from e

    def _full_path(self, path: str) -> str:
        return f"{self.workdir}/{path.lstrip('/')}"

    async def write_file(self, path: str, content: str | bytes) -> None:
        body = content.encode("utf-8") if isinstance(content, str) else content
        try:
            sandbox_id = await self._ensure_sandbox()
            response = await self._client.put(
                f"/sandboxes/{sandbox_id}/files",
                params={"path": self._full_path(path)},
                content=body,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._wrap_error(e, "file write") from e

    async def read_file(self, path: str) -> str | None:
        try:
            sandbox_id = await self._ensure_sandbox()
            response = await self._client.get(
                f"/sandboxes/{sandbox_id}/files",
                params={"path": self._full_path(path)},
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to read {path} from sandbox {self._sandbox_id}: {e}")
            return None
        return response.content.decode("utf-8", errors="replace")

    async def list_files(self, path: str | None = None) -> list[str]:
        directory = self._full_path(path) if path else self.workdir
        try:
            sandbox_id = await self._ensure_sandbox()
            result = await self._run(sandbox_id, "ls", ["-1", directory])
        except httpx.HTTPError as e:
            logger.warning(f"Failed to list files in sandbox {self._sandbox_id}: {e}")
            return []
        return [line for line in result.stdout.strip().split("\n") if line]

    async def cleanup(self) -> None:
        if self._sandbox_id:
            try:
                response = await self._client.delete(f"/sandboxes/{self._sandbox_id}")
                if response.status_code not in (404, 410):
                    response.raise_for_status()
                logger.info(f"Stopped remote sandbox {self._sandbox_id}")
            finally:
                self._sandbox_id = None
                self._mark_dead()
        else:
            self._mark_dead()

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
