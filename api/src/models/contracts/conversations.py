"""
Conversation contract models for Tsugi.
"""

from datetime import datetime

from pydantic import ConfigDict, Field

from src.models.contracts.agent import CamelModel, ChatMessage
from src.models.enums import ConversationMode


class ConversationCreate(CamelModel):
    """Request model for creating a conversation."""
    title: str = Field(default="New task", min_length=1, max_length=500)
    mode: ConversationMode = ConversationMode.TASK


class ConversationUpdate(CamelModel):
    """Request model for updating a conversation."""
    title: str | None = Field(default=None, min_length=1, max_length=500)
    mode: ConversationMode | None = None


class ConversationPublic(CamelModel):
    """Conversation output for API responses."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    mode: ConversationMode
    created_at: datetime
    updated_at: datetime


class ConversationWithMessages(ConversationPublic):
    """Conversation with its ordered messages."""
    messages: list[ChatMessage] = Field(default_factory=list)


class MessageSave(CamelModel):
    """Request model for saving a message; sequence is appended when omitted."""
    message: ChatMessage
    sequence: int | None = None
