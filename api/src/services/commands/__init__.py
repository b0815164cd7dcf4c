"""
Directive detection and execution.

Usage:
    from src.services.commands import detect_commands, execute_command

    for detected in detect_commands(text, iteration):
        result = await execute_command(detected.command, context)
"""

from src.services.commands.context import ExecutionContext, merge_playground_env
from src.services.commands.executor import (
    ShellCommand,
    SkillCommand,
    execute_command,
    parse_command,
)
from src.services.commands.parser import (
    DetectedCommand,
    detect_commands,
    extract_commands,
    format_tool_results,
    strip_directives,
    truncate_output,
)

__all__ = [
    "DetectedCommand",
    "ExecutionContext",
    "ShellCommand",
    "SkillCommand",
    "detect_commands",
    "execute_command",
    "extract_commands",
    "format_tool_results",
    "merge_playground_env",
    "parse_command",
    "strip_directives",
    "truncate_output",
]
