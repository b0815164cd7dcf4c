"""
Skills Router

Read and manage the skill library the agents work with.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, status

from src.core.exceptions import SkillStorageError
from src.models.contracts.skills import SkillDetail, SkillSummary, SkillWrite
from src.services.skills.storage import get_skill_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/skills", tags=["Skills"])


def _bad_name(e: SkillStorageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)


@router.get("")
async def list_skills(q: str | None = Query(default=None)) -> list[SkillSummary]:
    """List skills, or search them by phrase with ?q=."""
    store = get_skill_store()
    skills = await store.search(q) if q else await store.list()
    return [SkillSummary(name=s.name, description=s.description) for s in skills]


@router.get("/{name}")
async def get_skill(name: str) -> SkillDetail:
    try:
        skill = await get_skill_store().get(name)
    except SkillStorageError as e:
        raise _bad_name(e)
    if skill is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Skill {name} not found")
    return SkillDetail(
        name=skill.name,
        description=skill.description,
        content=skill.content,
        files=skill.files,
    )


@router.put("/{name}")
async def put_skill(name: str, request: SkillWrite) -> SkillDetail:
    """Create or replace a skill's SKILL.md."""
    store = get_skill_store()
    try:
        await store.set(name, request.content)
        skill = await store.get(name)
    except SkillStorageError as e:
        raise _bad_name(e)
    assert skill is not None
    return SkillDetail(
        name=skill.name,
        description=skill.description,
        content=skill.content,
        files=skill.files,
    )


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_skill(name: str) -> None:
    try:
        deleted = await get_skill_store().delete(name)
    except SkillStorageError as e:
        raise _bad_name(e)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Skill {name} not found")
