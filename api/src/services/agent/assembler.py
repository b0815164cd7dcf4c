"""
Message Assembler

Folds the transient stream events of one agent run into the persistent
assistant message: ordered parts, summed stats and the per-iteration
transcript used for replay.
"""

from typing import Any

from src.models.contracts.agent import (
    AgentIteration,
    AgentToolPart,
    ChatMessage,
    MessagePart,
    MessageStats,
    ReasoningPart,
    Source,
    SourcesPart,
    StreamEvent,
    TextPart,
    ToolPart,
)
from src.models.enums import AgentName, MessageRole, ToolStatus
from src.services.commands.parser import strip_directives

_STATUS_ORDER = {ToolStatus.QUEUED: 0, ToolStatus.RUNNING: 1, ToolStatus.COMPLETED: 2}


def _add(current: int | None, value: int | None) -> int | None:
    if value is None:
        return current
    return (current or 0) + value


class MessageAssembler:
    """
    Builds an assistant message from stream events.

    Text parts hold the display text with directives stripped. A text or
    reasoning segment ends whenever another kind of part is started, so
    parts keep the order in which things happened.
    """

    def __init__(self, agent: AgentName = AgentName.TASK):
        self.agent = agent
        self.parts: list[MessagePart] = []
        self.iterations: list[AgentIteration] = []
        self.stats = MessageStats()
        self.raw_payload: list[Any] | None = None
        self.sandbox_id: str | None = None
        self.errors: list[str] = []
        self._has_usage = False
        self._text_part: TextPart | None = None
        self._text_raw = ""
        self._reasoning_part: ReasoningPart | None = None
        self._tools: dict[str, ToolPart] = {}
        self._agent_tools: dict[str, AgentToolPart] = {}

    def apply(self, event: StreamEvent) -> None:
        handler = getattr(self, f"_on_{event.type.replace('-', '_')}", None)
        if handler is not None:
            handler(event)

    def build_message(self, message_id: str | None = None) -> ChatMessage:
        parts = [
            part
            for part in self.parts
            if not isinstance(part, (TextPart, ReasoningPart)) or part.content
        ]
        return ChatMessage(
            id=message_id,
            role=MessageRole.ASSISTANT,
            parts=parts,
            stats=self.stats if self._has_usage else None,
            raw_payload=self.raw_payload,
            iterations=self.iterations or None,
            agent=self.agent,
        )

    def _end_segments(self) -> None:
        self._text_part = None
        self._text_raw = ""
        self._reasoning_part = None

    # Event handlers

    def _on_text(self, event: StreamEvent) -> None:
        self._reasoning_part = None
        if self._text_part is None:
            self._text_part = TextPart()
            self._text_raw = ""
            self.parts.append(self._text_part)
        self._text_raw += event.content or ""
        self._text_part.content = strip_directives(self._text_raw)

    def _on_reasoning(self, event: StreamEvent) -> None:
        self._text_part = None
        self._text_raw = ""
        if self._reasoning_part is None:
            self._reasoning_part = ReasoningPart()
            self.parts.append(self._reasoning_part)
        self._reasoning_part.content += event.content or ""

    def _on_tool_call(self, event: StreamEvent) -> None:
        self._end_segments()
        if not event.command_id or event.command_id in self._tools:
            return
        part = ToolPart(command=event.command or "", command_id=event.command_id)
        self._tools[event.command_id] = part
        self.parts.append(part)

    def _advance(self, command_id: str | None, status: ToolStatus) -> ToolPart | None:
        part = self._tools.get(command_id or "")
        if part is None:
            return None
        if _STATUS_ORDER[status] > _STATUS_ORDER[part.tool_status]:
            part.tool_status = status
        return part

    def _on_tool_start(self, event: StreamEvent) -> None:
        self._advance(event.command_id, ToolStatus.RUNNING)

    def _on_tool_result(self, event: StreamEvent) -> None:
        part = self._advance(event.command_id, ToolStatus.COMPLETED)
        if part is not None:
            part.content = event.result or ""

    def _on_agent_tool_call(self, event: StreamEvent) -> None:
        self._end_segments()
        part = AgentToolPart(
            tool_name=event.tool_name or "",
            tool_args=event.tool_args or {},
            tool_call_id=event.tool_call_id,
        )
        if event.tool_call_id:
            self._agent_tools[event.tool_call_id] = part
        self.parts.append(part)

    def _on_agent_tool_result(self, event: StreamEvent) -> None:
        part = self._agent_tools.get(event.tool_call_id or "")
        if part is not None:
            part.content = event.result or ""

    def _on_source(self, event: StreamEvent) -> None:
        if not event.source_id or not event.source_url:
            return
        self._end_segments()
        source = Source(id=event.source_id, url=event.source_url, title=event.source_title)
        sources = next((p for p in self.parts if isinstance(p, SourcesPart)), None)
        if sources is None:
            sources = SourcesPart()
            self.parts.append(sources)
        if all(s.id != source.id for s in sources.sources):
            sources.sources.append(source)

    def _on_usage(self, event: StreamEvent) -> None:
        self._has_usage = True
        stats = self.stats
        stats.execution_time_ms = _add(stats.execution_time_ms, event.execution_time_ms)
        if event.usage is None:
            stats.tokens_unavailable = True
            return
        stats.prompt_tokens = _add(stats.prompt_tokens, event.usage.prompt_tokens)
        stats.completion_tokens = _add(stats.completion_tokens, event.usage.completion_tokens)
        stats.cached_tokens = _add(stats.cached_tokens, event.usage.cached_content_token_count)
        stats.reasoning_tokens = _add(stats.reasoning_tokens, event.usage.reasoning_tokens)

    def _on_raw_content(self, event: StreamEvent) -> None:
        self.iterations.append(AgentIteration(raw_content=event.raw_content or ""))

    def _on_tool_output(self, event: StreamEvent) -> None:
        if self.iterations:
            self.iterations[-1].tool_output = event.tool_output

    def _on_iteration_end(self, event: StreamEvent) -> None:
        self._end_segments()

    def _on_raw_payload(self, event: StreamEvent) -> None:
        self.raw_payload = event.raw_payload

    def _on_sandbox_active(self, event: StreamEvent) -> None:
        self.sandbox_id = event.sandbox_id

    def _on_sandbox_terminated(self, event: StreamEvent) -> None:
        self.sandbox_id = None

    def _on_error(self, event: StreamEvent) -> None:
        if event.content:
            self.errors.append(event.content)
