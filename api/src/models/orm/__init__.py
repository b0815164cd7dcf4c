"""
SQLAlchemy ORM Models for Tsugi

Pure database models using SQLAlchemy 2.0 declarative style.
For API schemas, see src.models.contracts.
"""

from src.models.orm.base import Base
from src.models.orm.conversations import Conversation, Message

__all__ = [
    # Base
    "Base",
    # Conversations
    "Conversation",
    "Message",
]
