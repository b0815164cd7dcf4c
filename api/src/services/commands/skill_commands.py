"""
Skill sub-commands.

Handles ``skill <subcommand> ...`` directives against the skill store (and,
for copy-to-sandbox / add-file, the conversation's sandbox). Every outcome,
including usage errors and missing skills, is returned as text for the LLM.
"""

import json
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import PurePosixPath

from src.core.exceptions import SandboxError, SandboxTimeoutError, SkillStorageError
from src.services.commands.context import ExecutionContext
from src.services.commands.parser import truncate_output

logger = logging.getLogger(__name__)

SkillHandler = Callable[[str, ExecutionContext], Awaitable[str]]

HELP_TEXT = """Available commands:
  skill list                                  - List all skills
  skill search <keyword>                      - Search skills by keyword or phrase
  skill get <name>                            - Read a skill (includes file list)
  skill set <name> "<content>"                - Create or replace a skill
  skill get-file <name> <file>                - Read a file attached to a skill
  skill copy-to-sandbox <name> <file>         - Copy a skill file into the sandbox
  skill add-file <file> <name>                - Attach a sandbox file to a skill
  skill suggest "<learned>" --name="<name>"   - Suggest codifying a learned procedure
                [--force]                       (skip the similar-skill check)"""

_SET_PATTERN = re.compile(r'^(\S+)\s+"([\s\S]+)"$')
_SUGGEST_PATTERN = re.compile(r'^"([^"]+)"(.*)$', re.DOTALL)
_NAME_FLAG_PATTERN = re.compile(r'--name="([^"]+)"')
_FORCE_FLAG_PATTERN = re.compile(r"(?:^|\s)--force(?:\s|$)")


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1].strip()
    return value


def _format_listing(skills) -> str:
    return "\n".join(f"- {s.name}: {s.description}" for s in skills)


async def _help(args: str, context: ExecutionContext) -> str:
    return HELP_TEXT


async def _list(args: str, context: ExecutionContext) -> str:
    skills = await context.skill_store.list()
    if not skills:
        return "(no skills found)"
    return _format_listing(skills)


async def _search(args: str, context: ExecutionContext) -> str:
    # The whole argument is one phrase: skill search "foo bar" matches "foo bar", not foo OR bar
    keyword = _unquote(args)
    if not keyword:
        return "Usage: skill search <keyword>"
    results = await context.skill_store.search(keyword)
    if not results:
        return f'No skills matching "{keyword}"'
    return _format_listing(results)


async def _get(args: str, context: ExecutionContext) -> str:
    name = args.strip()
    if not name:
        return "Usage: skill get <name>"
    skill = await context.skill_store.get(name)
    if skill is None:
        return f'Skill "{name}" not found'

    output = skill.content
    if skill.files:
        output += "\n\n---\n## Skill Files\n"
        output += "\n".join(f"- {name}/{f}" for f in skill.files)
    return output


async def _set(args: str, context: ExecutionContext) -> str:
    match = _SET_PATTERN.match(args)
    if not match:
        return 'Usage: skill set <name> "<content>"'
    name, content = match.groups()
    await context.skill_store.set(name, content)
    return f'Skill "{name}" saved'


async def _get_file(args: str, context: ExecutionContext) -> str:
    parts = args.split()
    if len(parts) != 2:
        return "Usage: skill get-file <name> <file>"
    name, filename = parts
    content = await context.skill_store.get_file(name, filename)
    if content is None:
        return f'File "{filename}" not found in skill "{name}"'
    return content


async def _copy_to_sandbox(args: str, context: ExecutionContext) -> str:
    parts = args.split()
    if len(parts) != 2:
        return "Usage: skill copy-to-sandbox <name> <file>"
    name, filename = parts
    content = await context.skill_store.get_file(name, filename)
    if content is None:
        return f'File "{filename}" not found in skill "{name}"'

    executor = await context.use_sandbox()
    await executor.write_file(filename, content)
    await context.record_sandbox()
    return f'Copied "{name}/{filename}" to sandbox as "{filename}"'


async def _add_file(args: str, context: ExecutionContext) -> str:
    parts = args.split()
    if len(parts) != 2:
        return "Usage: skill add-file <file> <name>"
    filename, name = parts

    executor = await context.use_sandbox()
    content = await executor.read_file(filename)
    if content is None:
        return f'File "{filename}" not found in sandbox'

    stored_name = PurePosixPath(filename).name
    await context.skill_store.add_file(name, stored_name, content)
    return f'File "{stored_name}" added to skill "{name}"'


def _similar_skills(suggested_name: str, skills) -> list:
    keywords = {w for w in re.split(r"[-_.\s]+", suggested_name.lower()) if len(w) > 2}
    similar = []
    for skill in skills:
        if skill.name == suggested_name:
            similar.append(skill)
            continue
        words = set(re.split(r"[-_.\s]+", skill.name.lower()))
        if keywords & words:
            similar.append(skill)
    return similar


async def _suggest(args: str, context: ExecutionContext) -> str:
    match = _SUGGEST_PATTERN.match(args.strip())
    name_match = _NAME_FLAG_PATTERN.search(match.group(2)) if match else None
    if not match or not name_match:
        return json.dumps({
            "type": "skill-suggestion-error",
            "error": 'Usage: skill suggest "description" --name="skill-name" [--force]',
        })

    learned = match.group(1)
    name = name_match.group(1)
    force = bool(_FORCE_FLAG_PATTERN.search(match.group(2)))

    if not force:
        similar = _similar_skills(name, await context.skill_store.list())
        if similar:
            names = ", ".join(s.name for s in similar)
            return json.dumps({
                "type": "skill-suggestion",
                "status": "guidance",
                "learned": learned,
                "suggestedName": name,
                "similarSkills": [
                    {"name": s.name, "description": s.description} for s in similar
                ],
                "message": (
                    f"Similar skill(s) found: {names}. Review with \"skill get <name>\", "
                    "then re-run with --force to proceed."
                ),
            })

    return json.dumps({
        "type": "skill-suggestion",
        "status": "success",
        "learned": learned,
        "name": name,
    })


SKILL_COMMANDS: dict[str, SkillHandler] = {
    "help": _help,
    "list": _list,
    "search": _search,
    "get": _get,
    "set": _set,
    "get-file": _get_file,
    "copy-to-sandbox": _copy_to_sandbox,
    "add-file": _add_file,
    "suggest": _suggest,
}

# Longest names first so "get-file" wins over "get"
_DISPATCH_ORDER = sorted(SKILL_COMMANDS, key=len, reverse=True)


async def execute_skill_command(args: str, context: ExecutionContext) -> str:
    """
    Dispatch ``skill <args>`` to the matching sub-command.

    The longest registered name that equals args, or prefixes it followed by
    a space, wins.
    """
    for name in _DISPATCH_ORDER:
        if args == name or args.startswith(name + " "):
            rest = args[len(name):].strip()
            try:
                result = await SKILL_COMMANDS[name](rest, context)
            except SandboxTimeoutError:
                raise
            except (SandboxError, SkillStorageError) as e:
                result = f"Error: {e.message}"
            return truncate_output(result)

    return f'Unknown skill command: "{args}". Run "skill help" for usage.'
