from src.services.skills.storage import (
    FileSkillStore,
    Skill,
    SkillInfo,
    SkillStore,
    get_skill_store,
    parse_frontmatter,
)

__all__ = [
    "FileSkillStore",
    "Skill",
    "SkillInfo",
    "SkillStore",
    "get_skill_store",
    "parse_frontmatter",
]
