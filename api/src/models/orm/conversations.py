"""
Conversation and Message ORM models.

Assistant messages store their ordered parts (the rendering source of truth)
plus the exact per-iteration transcript used to rebuild LLM history.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.orm.base import Base


def generate_id() -> str:
    return uuid4().hex


class Conversation(Base):
    """Conversation database table."""

    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="New task")
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="task")
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        server_default=text("NOW()"),
        onupdate=datetime.utcnow,
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.sequence",
    )

    __table_args__ = (
        Index("ix_conversations_updated_at", "updated_at"),
    )


class Message(Base):
    """Message database table."""

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_id)
    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    agent: Mapped[str] = mapped_column(String(20), nullable=False, default="task")
    # User messages: the typed text. Assistant messages: empty.
    content: Mapped[str | None] = mapped_column(Text, default=None)
    parts: Mapped[list] = mapped_column(JSONB, default=list)
    # [{rawContent, toolOutput}] per iteration, for cache-friendly replay
    iterations: Mapped[list | None] = mapped_column(JSONB, default=None)
    stats: Mapped[dict | None] = mapped_column(JSONB, default=None)
    raw_payload: Mapped[list | None] = mapped_column(JSONB, default=None)
    # Order within conversation
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default=text("NOW()")
    )

    # Relationships
    conversation: Mapped["Conversation"] = relationship(back_populates="messages")

    __table_args__ = (
        Index("ix_messages_conversation_sequence", "conversation_id", "sequence"),
    )
