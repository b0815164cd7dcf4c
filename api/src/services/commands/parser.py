"""
Shell directive detection.

The LLM requests commands by writing ``<shell>...</shell>`` anywhere in its
reply. Detection never modifies the source text: the exact assistant output
is replayed verbatim in later iterations so the provider's prompt cache
stays valid.
"""

import re
from dataclasses import dataclass

SHELL_PATTERN = re.compile(r"<shell>(.*?)</shell>", re.DOTALL)
_UNTERMINATED_PATTERN = re.compile(r"<shell>(?:(?!</shell>).)*$", re.DOTALL)
_BLANK_LINES_PATTERN = re.compile(r"\n{3,}")

MAX_OUTPUT_LENGTH = 5000
TRUNCATION_MARKER = "\n... (truncated)"


@dataclass(frozen=True)
class DetectedCommand:
    """A directive found in one iteration's text."""

    command_id: str
    command: str


def detect_commands(text: str, iteration: int) -> list[DetectedCommand]:
    """
    Find directives in document order and assign ``cmd-{iteration}-{index}`` ids.

    Directives that are empty after trimming are skipped and do not consume
    an index.
    """
    detected: list[DetectedCommand] = []
    for command in extract_commands(text):
        detected.append(DetectedCommand(f"cmd-{iteration}-{len(detected)}", command))
    return detected


def extract_commands(text: str) -> list[str]:
    """Trimmed, non-empty directive bodies in document order."""
    commands = []
    for match in SHELL_PATTERN.finditer(text):
        command = match.group(1).strip()
        if command:
            commands.append(command)
    return commands


def strip_directives(text: str) -> str:
    """
    Remove directives for display.

    Also drops a trailing directive that was never closed (mid-stream text)
    and collapses runs of blank lines.
    """
    stripped = SHELL_PATTERN.sub("", text)
    stripped = _UNTERMINATED_PATTERN.sub("", stripped)
    return _BLANK_LINES_PATTERN.sub("\n\n", stripped).strip()


def format_tool_results(executions: list[tuple[str, str]]) -> str:
    """Render (command, result) pairs as the user message fed back to the LLM."""
    return "\n\n".join(f"$ {command}\n{result}" for command, result in executions)


def truncate_output(output: str, max_length: int = MAX_OUTPUT_LENGTH) -> str:
    """Cut output to max_length characters followed by a truncation marker."""
    if len(output) <= max_length:
        return output
    return output[:max_length] + TRUNCATION_MARKER
