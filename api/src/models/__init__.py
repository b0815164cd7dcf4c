"""
Tsugi Models

ORM models (database tables):
    from src.models import Conversation, Message
    from src.models.orm.conversations import Message  # Granular access

Pydantic contracts (API request/response):
    from src.models.contracts.agent import ChatMessage, StreamEvent
    from src.models.contracts.conversations import ConversationPublic

Enums:
    from src.models import ConversationMode
    from src.models.enums import ConversationMode
"""

# ORM models (database tables)
from src.models.orm import (
    Base,
    Conversation,
    Message,
)

# Enums
from src.models.enums import (
    AgentName,
    ConversationMode,
    MessageRole,
    SandboxBackend,
    ToolStatus,
)

__all__ = [
    # ORM
    "Base",
    "Conversation",
    "Message",
    # Enums
    "AgentName",
    "ConversationMode",
    "MessageRole",
    "SandboxBackend",
    "ToolStatus",
]
