"""
Conversation Repository

Persistence for conversations and their messages. Messages are upserted by
id; saving one bumps the conversation's updated_at.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from src.models.contracts.agent import ChatMessage
from src.models.enums import ConversationMode, MessageRole
from src.models.orm import Conversation, Message
from src.repositories.base import BaseRepository


def message_to_contract(message: Message) -> ChatMessage:
    """Hydrate an ORM message into the API contract."""
    return ChatMessage.model_validate({
        "id": message.id,
        "role": message.role,
        "content": message.content,
        "parts": message.parts or [],
        "stats": message.stats,
        "raw_payload": message.raw_payload,
        "iterations": message.iterations,
        "agent": message.agent,
        "created_at": message.created_at,
    })


class ConversationRepository(BaseRepository[Conversation]):
    """Conversation repository."""

    model = Conversation

    async def create_conversation(
        self,
        title: str,
        mode: ConversationMode = ConversationMode.TASK,
        conversation_id: str | None = None,
    ) -> Conversation:
        conversation = Conversation(title=title, mode=mode.value)
        if conversation_id:
            conversation.id = conversation_id
        return await self.create(conversation)

    async def list_conversations(self) -> list[Conversation]:
        """All conversations, most recently updated first."""
        result = await self.session.execute(
            select(Conversation).order_by(Conversation.updated_at.desc())
        )
        return list(result.scalars().all())

    async def get_with_messages(self, conversation_id: str) -> Conversation | None:
        """Get a conversation with its messages loaded in sequence order."""
        result = await self.session.execute(
            select(Conversation)
            .options(selectinload(Conversation.messages))
            .where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def get_messages(self, conversation_id: str) -> list[ChatMessage] | None:
        """Messages of a conversation as contracts, or None if it does not exist."""
        conversation = await self.get_with_messages(conversation_id)
        if conversation is None:
            return None
        return [message_to_contract(m) for m in conversation.messages]

    async def update_conversation(
        self,
        conversation_id: str,
        title: str | None = None,
        mode: ConversationMode | None = None,
    ) -> Conversation | None:
        conversation = await self.get_by_id(conversation_id)
        if conversation is None:
            return None
        if title is not None:
            conversation.title = title
        if mode is not None:
            conversation.mode = mode.value
        conversation.updated_at = datetime.utcnow()
        await self.session.flush()
        return conversation

    async def delete_conversation(self, conversation_id: str) -> bool:
        conversation = await self.get_by_id(conversation_id)
        if conversation is None:
            return False
        await self.delete(conversation)
        return True

    async def next_sequence(self, conversation_id: str) -> int:
        result = await self.session.execute(
            select(func.max(Message.sequence)).where(Message.conversation_id == conversation_id)
        )
        current = result.scalar_one_or_none()
        return 0 if current is None else current + 1

    async def save_message(
        self,
        conversation_id: str,
        message: ChatMessage,
        sequence: int | None = None,
    ) -> Message:
        """
        Insert or replace a message.

        User messages store their text; assistant messages store parts. An
        existing message keeps its sequence unless one is given.
        """
        existing = await self.session.get(Message, message.id) if message.id else None
        if existing is None:
            entity = Message(conversation_id=conversation_id)
            if message.id:
                entity.id = message.id
            entity.sequence = sequence if sequence is not None else await self.next_sequence(conversation_id)
            self.session.add(entity)
        else:
            entity = existing
            if sequence is not None:
                entity.sequence = sequence

        entity.role = message.role.value
        entity.agent = message.agent.value
        entity.content = message.text() if message.role == MessageRole.USER else None
        entity.parts = [p.model_dump(mode="json", by_alias=True, exclude_none=True) for p in message.parts]
        entity.iterations = (
            [i.model_dump(mode="json", by_alias=True, exclude_none=True) for i in message.iterations]
            if message.iterations
            else None
        )
        entity.stats = (
            message.stats.model_dump(mode="json", by_alias=True, exclude_none=True)
            if message.stats
            else None
        )
        entity.raw_payload = message.raw_payload

        conversation = await self.get_by_id(conversation_id)
        if conversation is not None:
            conversation.updated_at = datetime.utcnow()

        await self.session.flush()
        return entity
