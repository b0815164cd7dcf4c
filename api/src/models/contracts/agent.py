"""
Agent stream and message contract models for Tsugi.

Wire field names are camelCase (the browser client consumes them directly);
Python attributes stay snake_case. Dump with ``by_alias=True, exclude_none=True``
so absent fields are omitted.
"""

import json
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.enums import AgentName, ConversationMode, MessageRole, ToolStatus


class CamelModel(BaseModel):
    """Base model serializing to camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ==================== STREAM EVENTS ====================


StreamEventType = Literal[
    "text",
    "reasoning",
    "tool-call",
    "tool-start",
    "tool-result",
    "agent-tool-call",
    "agent-tool-result",
    "source",
    "usage",
    "raw-content",
    "tool-output",
    "iteration-end",
    "sandbox_active",
    "sandbox_timeout",
    "sandbox_terminated",
    "raw_payload",
    "error",
    "done",
]


class UsageInfo(CamelModel):
    """Token usage for one LLM call. Unknown counts are omitted."""
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    cached_content_token_count: int | None = None
    reasoning_tokens: int | None = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.prompt_tokens,
                self.completion_tokens,
                self.cached_content_token_count,
                self.reasoning_tokens,
            )
        )


class StreamEvent(CamelModel):
    """
    A single event pushed to the client over SSE.

    Events are transient; the assembler folds them into message parts.
    """
    type: StreamEventType
    content: str | None = None
    command: str | None = None
    command_id: str | None = None
    result: str | None = None
    has_more_commands: bool | None = None
    tool_name: str | None = None
    tool_args: dict[str, Any] | None = None
    tool_call_id: str | None = None
    source_id: str | None = None
    source_url: str | None = None
    source_title: str | None = None
    usage: UsageInfo | None = None
    execution_time_ms: int | None = None
    raw_content: str | None = None
    tool_output: str | None = None
    agent: AgentName | None = None
    sandbox_id: str | None = None
    raw_payload: list[Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize for the wire, omitting absent fields."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # usage: null is meaningful (provider reported nothing)
        if self.type == "usage" and self.usage is None:
            data["usage"] = None
        return data

    def to_sse(self) -> str:
        """Format as a Server-Sent Events frame."""
        return f"data: {json.dumps(self.to_wire())}\n\n"


# ==================== MESSAGE PARTS ====================


class TextPart(CamelModel):
    type: Literal["text"] = "text"
    content: str = ""


class ReasoningPart(CamelModel):
    type: Literal["reasoning"] = "reasoning"
    content: str = ""


class ToolPart(CamelModel):
    """A shell directive and its output."""
    type: Literal["tool"] = "tool"
    command: str
    command_id: str
    content: str = ""
    tool_status: ToolStatus = ToolStatus.QUEUED


class AgentToolPart(CamelModel):
    """A native tool invocation made by the LLM (e.g. get_processed_transcript)."""
    type: Literal["agent-tool"] = "agent-tool"
    tool_name: str
    tool_args: dict[str, Any] = Field(default_factory=dict)
    tool_call_id: str | None = None
    content: str = ""


class Source(CamelModel):
    id: str
    url: str
    title: str | None = None


class SourcesPart(CamelModel):
    type: Literal["sources"] = "sources"
    sources: list[Source] = Field(default_factory=list)


MessagePart = Annotated[
    Union[TextPart, ReasoningPart, ToolPart, AgentToolPart, SourcesPart],
    Field(discriminator="type"),
]


# ==================== MESSAGES ====================


class MessageStats(CamelModel):
    """Token and timing statistics for an assistant message."""
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    cached_tokens: int | None = None
    reasoning_tokens: int | None = None
    execution_time_ms: int | None = None
    tokens_unavailable: bool | None = None


class AgentIteration(CamelModel):
    """Exact assistant text and fed-back tool output for one loop iteration."""
    raw_content: str
    tool_output: str | None = None


class ChatMessage(CamelModel):
    """
    A conversation message as exchanged with the client.

    For assistant messages ``parts`` is the rendering source of truth and is
    used to rebuild LLM history when ``iterations`` is absent.
    """
    id: str | None = None
    role: MessageRole
    content: str | None = None
    parts: list[MessagePart] = Field(default_factory=list)
    stats: MessageStats | None = None
    raw_payload: list[Any] | None = None
    iterations: list[AgentIteration] | None = None
    agent: AgentName = AgentName.TASK
    created_at: datetime | None = None

    def text(self) -> str:
        """Plain text of the message (content, or concatenated text parts)."""
        if self.content:
            return self.content
        return "".join(p.content for p in self.parts if isinstance(p, TextPart))


# ==================== REQUESTS ====================


class AgentRequest(CamelModel):
    """Request body for POST /api/agent."""
    messages: list[ChatMessage] = Field(default_factory=list)
    mode: ConversationMode = ConversationMode.TASK
    conversation_id: str | None = None
    env: dict[str, str] | None = None
    sandbox_id: str | None = None
