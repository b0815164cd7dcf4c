"""
Skill contract models for Tsugi.
"""

from pydantic import Field

from src.models.contracts.agent import CamelModel


class SkillSummary(CamelModel):
    """Skill listing entry."""
    name: str
    description: str = ""


class SkillDetail(SkillSummary):
    """Full skill content plus the names of its attached files."""
    content: str
    files: list[str] = Field(default_factory=list)


class SkillWrite(CamelModel):
    """Request model for creating or replacing a skill."""
    content: str = Field(..., min_length=1)
