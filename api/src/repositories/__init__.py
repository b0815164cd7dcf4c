# Data access layer - PostgreSQL repositories
from src.repositories.base import BaseRepository
from src.repositories.conversations import ConversationRepository, message_to_contract

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "message_to_contract",
]
