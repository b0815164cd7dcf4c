"""
Sandbox execution backends and the per-conversation session registry.
"""

from src.services.sandbox.base import CommandResult, ExecuteOptions, SandboxExecutor
from src.services.sandbox.local_executor import LocalSandboxExecutor
from src.services.sandbox.registry import SandboxRegistry, create_executor
from src.services.sandbox.remote_executor import RemoteSandboxExecutor

__all__ = [
    "CommandResult",
    "ExecuteOptions",
    "LocalSandboxExecutor",
    "RemoteSandboxExecutor",
    "SandboxExecutor",
    "SandboxRegistry",
    "create_executor",
]
