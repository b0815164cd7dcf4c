"""
Enumeration types used across the application.
"""

from enum import Enum


class MessageRole(str, Enum):
    """Message roles stored for a conversation"""
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMode(str, Enum):
    """Which agent a conversation is driven by"""
    TASK = "task"
    CODIFY_SKILL = "codify-skill"


class AgentName(str, Enum):
    """Agent that produced a message"""
    TASK = "task"
    SKILL = "skill"


class ToolStatus(str, Enum):
    """Lifecycle of a shell directive. Only ever moves forward."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"


class SandboxBackend(str, Enum):
    """Sandbox executor backends"""
    LOCAL = "local"
    REMOTE = "remote"
