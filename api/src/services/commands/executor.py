"""
Command Executor Router

Parses a directive once into a shell or skill command and routes it to the
matching handler. SandboxTimeoutError propagates to the caller; everything
else comes back as text for the LLM.
"""

from dataclasses import dataclass

from src.services.commands import shell, skill_commands
from src.services.commands.context import ExecutionContext
from src.services.sandbox.base import ExecuteOptions


@dataclass(frozen=True)
class ShellCommand:
    command: str


@dataclass(frozen=True)
class SkillCommand:
    args: str


ParsedCommand = ShellCommand | SkillCommand


def parse_command(raw: str) -> ParsedCommand:
    """A skill command iff the trimmed text is "skill" or starts with "skill "."""
    command = raw.strip()
    if command == "skill" or command.startswith("skill "):
        return SkillCommand(args=command[len("skill"):].strip())
    return ShellCommand(command=command)


async def execute_command(
    command: str,
    context: ExecutionContext,
    options: ExecuteOptions | None = None,
) -> str:
    """
    Execute a directive and return the text fed back to the LLM.

    Raises:
        SandboxTimeoutError: If the sandbox session has expired
    """
    parsed = parse_command(command)
    if isinstance(parsed, SkillCommand):
        return await skill_commands.execute_skill_command(parsed.args, context)
    return await shell.execute_shell_command(parsed.command, context, options)
