"""
Unit tests for the filesystem skill store.
"""

import typing

import pytest

from src.core.exceptions import SkillStorageError
from src.services.skills.storage import (
    FileSkillStore,
    SkillInfo,
    SkillStore,
    parse_frontmatter,
    validate_name,
)


class TestStoreInterface:
    @pytest.mark.parametrize("store_class", [SkillStore, FileSkillStore])
    def test_list_methods_return_builtin_lists(self, store_class):
        """A method named list must not shadow the builtin in return annotations."""
        hints = typing.get_type_hints(store_class.list)
        assert hints["return"] == list[SkillInfo]
        assert typing.get_type_hints(store_class.search)["return"] == list[SkillInfo]


class TestParseFrontmatter:
    def test_parses_yaml_header(self):
        meta, body = parse_frontmatter("---\nname: x\ndescription: Does x\n---\n# X\n")
        assert meta == {"name": "x", "description": "Does x"}
        assert body == "# X\n"

    def test_without_frontmatter(self):
        assert parse_frontmatter("# Just markdown") == ({}, "# Just markdown")

    def test_non_mapping_frontmatter(self):
        content = "---\n- a\n- b\n---\nbody"
        assert parse_frontmatter(content) == ({}, content)


class TestValidateName:
    @pytest.mark.parametrize("name", ["notion-api-auth", "script.py", "a_b"])
    def test_valid(self, name):
        assert validate_name(name) == name

    @pytest.mark.parametrize("name", ["", "../x", "a/b", ".hidden", "a..b"])
    def test_invalid(self, name):
        with pytest.raises(SkillStorageError):
            validate_name(name)


class TestFileSkillStore:
    @pytest.mark.asyncio
    async def test_set_get_delete(self, skill_store):
        await skill_store.set("csv-cleanup", "---\ndescription: Normalize CSV\n---\nBody")

        skill = await skill_store.get("csv-cleanup")
        assert skill is not None
        assert skill.description == "Normalize CSV"
        assert skill.files == []

        assert await skill_store.delete("csv-cleanup") is True
        assert await skill_store.get("csv-cleanup") is None
        assert await skill_store.delete("csv-cleanup") is False

    @pytest.mark.asyncio
    async def test_list_is_sorted_and_skips_incomplete_dirs(self, skill_store, skills_dir):
        await skill_store.set("zeta", "Z")
        await skill_store.set("alpha", "A")
        (skills_dir / "not-a-skill").mkdir()

        names = [s.name for s in await skill_store.list()]

        assert names == ["alpha", "zeta"]

    @pytest.mark.asyncio
    async def test_add_file_rejects_skill_md(self, skill_store):
        await skill_store.set("alpha", "A")

        with pytest.raises(SkillStorageError):
            await skill_store.add_file("alpha", "SKILL.md", "overwrite")

    @pytest.mark.asyncio
    async def test_search_empty_phrase(self, skill_store):
        await skill_store.set("alpha", "A")
        assert await skill_store.search("   ") == []
