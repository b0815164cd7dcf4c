"""
Pytest fixtures for Tsugi API unit tests.

This module provides:
1. Test settings (environment variables applied before src is imported)
2. Filesystem-backed skill store and local sandbox fixtures
3. Sandbox registry and execution context fixtures
"""

import os
import sys
from pathlib import Path

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# ==================== CONFIGURATION ====================

os.environ.setdefault("TSUGI_ENVIRONMENT", "testing")
os.environ.setdefault("TSUGI_LLM_API_KEY", "test-key")
os.environ.setdefault("TSUGI_SANDBOX_BACKEND", "local")

from src.config import get_settings  # noqa: E402
from src.services.commands.context import ExecutionContext  # noqa: E402
from src.services.sandbox.local_executor import LocalSandboxExecutor  # noqa: E402
from src.services.sandbox.registry import SandboxRegistry  # noqa: E402
from src.services.skills.storage import FileSkillStore  # noqa: E402


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Each test sees settings built from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ==================== SKILLS ====================


@pytest.fixture
def skills_dir(tmp_path: Path) -> Path:
    path = tmp_path / "skills"
    path.mkdir()
    return path


@pytest.fixture
def skill_store(skills_dir: Path) -> FileSkillStore:
    return FileSkillStore(skills_dir)


# ==================== SANDBOX ====================


@pytest.fixture
def sandbox_root(tmp_path: Path) -> Path:
    path = tmp_path / "sandbox"
    path.mkdir()
    return path


@pytest.fixture
def local_executor(sandbox_root: Path) -> LocalSandboxExecutor:
    return LocalSandboxExecutor(sandbox_root=sandbox_root, sandbox_id="test-sandbox")


@pytest.fixture
def registry(sandbox_root: Path) -> SandboxRegistry:
    """Registry creating local executors under the test sandbox root."""
    return SandboxRegistry(
        factory=lambda sandbox_id: LocalSandboxExecutor(sandbox_root=sandbox_root, sandbox_id=sandbox_id),
        idle_timeout_seconds=300,
    )


@pytest.fixture
def context(registry: SandboxRegistry, skill_store: FileSkillStore) -> ExecutionContext:
    return ExecutionContext(
        session_key="conv-1",
        registry=registry,
        skill_store=skill_store,
        conversation_id="conv-1",
    )
