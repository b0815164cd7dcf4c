"""
Core Exceptions

Custom exceptions for the Tsugi agent platform.
"""


class SandboxError(Exception):
    """
    Base class for sandbox executor failures.

    Recoverable command failures (non-zero exit, per-command timeout,
    disallowed binary) are returned as CommandResult values and never
    raised. Backend failures (rejected paths, failed HTTP calls) raise
    SandboxError and are reported to the LLM as text; only
    SandboxTimeoutError ends the iteration.
    """

    def __init__(self, message: str = "Sandbox error"):
        self.message = message
        super().__init__(self.message)


class SandboxTimeoutError(SandboxError):
    """
    Raised when a sandbox session is no longer alive.

    This happens when the idle timeout has elapsed since the last activity,
    after an explicit cleanup, or when the remote backend reports that the
    sandbox was stopped. The agent loop treats it as fatal for the remaining
    commands of the current iteration.

    Usage:
        try:
            result = await executor.execute("ls")
        except SandboxTimeoutError:
            # Emit sandbox_timeout and stop issuing commands
            ...
    """

    def __init__(self, message: str = "Sandbox timed out due to inactivity"):
        super().__init__(message)


class SkillStorageError(Exception):
    """
    Raised by the skill store for invalid names, paths or missing skills
    when adding files.

    Skill sub-commands catch this and report the message to the LLM as
    plain text.
    """

    def __init__(self, message: str = "Skill storage error"):
        self.message = message
        super().__init__(self.message)


class LLMStreamError(Exception):
    """
    Raised by the agent loop when the provider stream reports an error.

    Ends the loop with a single error event; there is no automatic retry.
    """

    def __init__(self, message: str = "LLM request failed"):
        self.message = message
        super().__init__(self.message)
