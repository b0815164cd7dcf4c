"""
Skill Store

Skills are reusable procedural knowledge written by the codification agent.
Each skill is a directory holding ``SKILL.md`` (markdown with YAML
frontmatter carrying ``name`` and ``description``) plus any attached files:

    {skills_dir}/
        notion-api-auth/
            SKILL.md
            create_page.py
"""

from __future__ import annotations

import logging
import re
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.config import get_settings
from src.core.exceptions import SkillStorageError

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n?---\s*\n?(.*)$", re.DOTALL)


@dataclass
class SkillInfo:
    """Skill listing entry."""

    name: str
    description: str = ""


@dataclass
class Skill:
    """Full skill with the names of its attached files."""

    name: str
    description: str
    content: str
    files: list[str] = field(default_factory=list)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """
    Split YAML frontmatter from the markdown body.

    Returns ({}, content) when there is no frontmatter or it is not a mapping.
    """
    match = _FRONTMATTER_PATTERN.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Invalid skill frontmatter: {e}")
        return {}, content
    if not isinstance(meta, dict):
        return {}, content
    return meta, match.group(2)


def validate_name(name: str) -> str:
    """Validate a skill or file name and return it."""
    if not name or not _NAME_PATTERN.match(name) or ".." in name:
        raise SkillStorageError(f'Invalid name "{name}"')
    return name


class SkillStore(ABC):
    """Abstract skill storage."""

    @abstractmethod
    async def list(self) -> list[SkillInfo]:
        ...

    @abstractmethod
    async def search(self, query: str) -> list[SkillInfo]:
        """Skills whose name, description or content contain the query phrase."""
        ...

    @abstractmethod
    async def get(self, name: str) -> Skill | None:
        ...

    @abstractmethod
    async def set(self, name: str, content: str) -> None:
        """Create or replace a skill's SKILL.md."""
        ...

    @abstractmethod
    async def add_file(self, name: str, filename: str, content: str) -> None:
        ...

    @abstractmethod
    async def get_file(self, name: str, filename: str) -> str | None:
        ...

    @abstractmethod
    async def delete(self, name: str) -> bool:
        ...


class FileSkillStore(SkillStore):
    """Filesystem-backed skill store."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _skill_dir(self, name: str) -> Path:
        return self.root / validate_name(name)

    def _read_info(self, skill_dir: Path) -> SkillInfo | None:
        skill_file = skill_dir / SKILL_FILE
        if not skill_file.is_file():
            return None
        meta, _ = parse_frontmatter(skill_file.read_text(encoding="utf-8"))
        return SkillInfo(
            name=skill_dir.name,
            description=str(meta.get("description") or "").strip(),
        )

    async def list(self) -> list[SkillInfo]:
        if not self.root.is_dir():
            return []
        skills = []
        for skill_dir in sorted(self.root.iterdir()):
            if skill_dir.is_dir():
                info = self._read_info(skill_dir)
                if info:
                    skills.append(info)
        return skills

    async def search(self, query: str) -> list[SkillInfo]:
        phrase = query.strip().lower()
        if not phrase:
            return []
        results = []
        for info in await self.list():
            content = (self.root / info.name / SKILL_FILE).read_text(encoding="utf-8")
            haystack = f"{info.name}\n{info.description}\n{content}".lower()
            if phrase in haystack:
                results.append(info)
        return results

    async def get(self, name: str) -> Skill | None:
        skill_dir = self._skill_dir(name)
        skill_file = skill_dir / SKILL_FILE
        if not skill_file.is_file():
            return None
        content = skill_file.read_text(encoding="utf-8")
        meta, _ = parse_frontmatter(content)
        files = sorted(
            p.name for p in skill_dir.iterdir() if p.is_file() and p.name != SKILL_FILE
        )
        return Skill(
            name=name,
            description=str(meta.get("description") or "").strip(),
            content=content,
            files=files,
        )

    async def set(self, name: str, content: str) -> None:
        skill_dir = self._skill_dir(name)
        skill_dir.mkdir(parents=True, exist_ok=True)
        (skill_dir / SKILL_FILE).write_text(content, encoding="utf-8")
        logger.info(f"Saved skill {name}")

    async def add_file(self, name: str, filename: str, content: str) -> None:
        skill_dir = self._skill_dir(name)
        if not (skill_dir / SKILL_FILE).is_file():
            raise SkillStorageError(f'Skill "{name}" not found')
        if validate_name(filename) == SKILL_FILE:
            raise SkillStorageError(f'Cannot overwrite {SKILL_FILE} with add-file')
        (skill_dir / filename).write_text(content, encoding="utf-8")
        logger.info(f"Added file {filename} to skill {name}")

    async def get_file(self, name: str, filename: str) -> str | None:
        path = self._skill_dir(name) / validate_name(filename)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    async def delete(self, name: str) -> bool:
        skill_dir = self._skill_dir(name)
        if not skill_dir.is_dir():
            return False
        shutil.rmtree(skill_dir)
        logger.info(f"Deleted skill {name}")
        return True


_skill_store: SkillStore | None = None


def get_skill_store() -> SkillStore:
    """Get the skill store for the configured skills directory."""
    global _skill_store
    if _skill_store is None:
        _skill_store = FileSkillStore(get_settings().skills_dir)
    return _skill_store
