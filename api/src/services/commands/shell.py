"""
Shell command handler.

Runs a directive in the conversation's sandbox and renders the outcome as the
text fed back to the LLM.
"""

import logging

from src.core.exceptions import SandboxError, SandboxTimeoutError
from src.services.commands.context import ExecutionContext
from src.services.commands.parser import truncate_output
from src.services.sandbox.base import CommandResult, ExecuteOptions

logger = logging.getLogger(__name__)


def format_command_result(result: CommandResult) -> str:
    """
    Render a command result.

    Exit 0: stdout plus stderr (newline separated), trimmed, or "(no output)".
    Non-zero: the stderr as an error, or the exit code when stderr is empty.
    """
    if result.exit_code == 0:
        output = result.stdout
        if result.stderr:
            output = f"{output}\n{result.stderr}"
        return output.strip() or "(no output)"
    if result.stderr:
        return f"Error: {result.stderr}"
    return f"Command failed with exit code {result.exit_code}"


async def execute_shell_command(
    command: str,
    context: ExecutionContext,
    options: ExecuteOptions | None = None,
) -> str:
    """
    Execute a shell command in the sandbox.

    Raises:
        SandboxTimeoutError: If the sandbox session has expired
    """
    executor = await context.use_sandbox()
    if options is None:
        options = ExecuteOptions(env=context.env or None)

    try:
        result = await executor.execute(command, options)
    except SandboxTimeoutError:
        raise
    except SandboxError as e:
        return f"Error: {e.message}"

    await context.record_sandbox()
    return truncate_output(format_command_result(result))
