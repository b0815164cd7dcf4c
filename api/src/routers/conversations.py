"""
Conversations Router

CRUD for stored conversations and their messages.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from src.core.database import DbSession
from src.models.contracts.agent import ChatMessage
from src.models.contracts.conversations import (
    ConversationCreate,
    ConversationPublic,
    ConversationUpdate,
    ConversationWithMessages,
    MessageSave,
)
from src.repositories.conversations import ConversationRepository, message_to_contract

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/conversations", tags=["Conversations"])


def _not_found(conversation_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Conversation {conversation_id} not found",
    )


@router.get("")
async def list_conversations(db: DbSession) -> list[ConversationPublic]:
    """List conversations, most recently updated first."""
    conversations = await ConversationRepository(db).list_conversations()
    return [ConversationPublic.model_validate(c) for c in conversations]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(request: ConversationCreate, db: DbSession) -> ConversationPublic:
    conversation = await ConversationRepository(db).create_conversation(request.title, request.mode)
    logger.info(f"Created conversation {conversation.id}")
    return ConversationPublic.model_validate(conversation)


@router.get("/{conversation_id}")
async def get_conversation(conversation_id: str, db: DbSession) -> ConversationWithMessages:
    """Get a conversation with its messages in order."""
    conversation = await ConversationRepository(db).get_with_messages(conversation_id)
    if conversation is None:
        raise _not_found(conversation_id)
    return ConversationWithMessages(
        id=conversation.id,
        title=conversation.title,
        mode=conversation.mode,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        messages=[message_to_contract(m) for m in conversation.messages],
    )


@router.patch("/{conversation_id}")
async def update_conversation(
    conversation_id: str,
    request: ConversationUpdate,
    db: DbSession,
) -> ConversationPublic:
    conversation = await ConversationRepository(db).update_conversation(
        conversation_id, title=request.title, mode=request.mode
    )
    if conversation is None:
        raise _not_found(conversation_id)
    return ConversationPublic.model_validate(conversation)


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: str, db: DbSession) -> None:
    if not await ConversationRepository(db).delete_conversation(conversation_id):
        raise _not_found(conversation_id)
    logger.info(f"Deleted conversation {conversation_id}")


@router.put("/{conversation_id}/messages")
async def save_message(
    conversation_id: str,
    request: MessageSave,
    db: DbSession,
) -> ChatMessage:
    """Insert or replace a message (upsert by message id)."""
    repo = ConversationRepository(db)
    if await repo.get_by_id(conversation_id) is None:
        raise _not_found(conversation_id)
    message = await repo.save_message(conversation_id, request.message, request.sequence)
    return message_to_contract(message)
