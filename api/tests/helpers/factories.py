"""
Factory functions for test data.

Usage:
    from tests.helpers.factories import make_user_message, text_turn

    def test_something():
        message = make_user_message("list files")
"""

from typing import Any

from src.models.contracts.agent import ChatMessage, StreamEvent, TextPart
from src.models.enums import AgentName, MessageRole
from src.services.llm.base import LLMStreamChunk, ToolCallRequest


def make_user_message(text: str = "hello", **overrides: Any) -> ChatMessage:
    data: dict[str, Any] = {
        "role": MessageRole.USER,
        "parts": [TextPart(content=text)],
    }
    data.update(overrides)
    return ChatMessage(**data)


def make_assistant_message(parts: list | None = None, **overrides: Any) -> ChatMessage:
    data: dict[str, Any] = {
        "role": MessageRole.ASSISTANT,
        "parts": parts or [],
        "agent": AgentName.TASK,
    }
    data.update(overrides)
    return ChatMessage(**data)


def text_turn(
    *deltas: str,
    input_tokens: int | None = 10,
    output_tokens: int | None = 5,
) -> list[LLMStreamChunk]:
    """Chunks for one streamed LLM turn made of text deltas."""
    chunks = [LLMStreamChunk(type="delta", content=d) for d in deltas]
    chunks.append(
        LLMStreamChunk(
            type="done",
            finish_reason="end_turn",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
    )
    return chunks


def tool_call_turn(call_id: str, name: str, arguments: dict | None = None) -> list[LLMStreamChunk]:
    """Chunks for one LLM turn that only invokes a native tool."""
    return [
        LLMStreamChunk(
            type="tool_call",
            tool_call=ToolCallRequest(id=call_id, name=name, arguments=arguments or {}),
        ),
        LLMStreamChunk(type="done", finish_reason="tool_use", input_tokens=10, output_tokens=5),
    ]


def event_types(events: list[StreamEvent]) -> list[str]:
    return [e.type for e in events]
