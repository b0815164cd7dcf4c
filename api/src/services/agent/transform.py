"""
Message Transforms

Conversions between stored conversation messages and the LLM history /
transcript formats. Assistant messages are replayed from their exact
per-iteration transcript when available; otherwise history is rebuilt from
parts. Raw assistant text is never re-parsed for directives.
"""

import json
import logging

from src.models.contracts.agent import (
    AgentToolPart,
    ChatMessage,
    ReasoningPart,
    TextPart,
    ToolPart,
)
from src.models.enums import AgentName, MessageRole
from src.services.agent.prompts import CODIFY_START_MESSAGE
from src.services.commands.parser import format_tool_results
from src.services.llm.base import LLMMessage, ToolCallRequest

logger = logging.getLogger(__name__)


def _from_iterations(message: ChatMessage) -> list[LLMMessage]:
    result: list[LLMMessage] = []
    for iteration in message.iterations or []:
        result.append(LLMMessage(role="assistant", content=iteration.raw_content))
        if iteration.tool_output:
            result.append(LLMMessage(role="user", content=iteration.tool_output))
    return result


def _from_parts(message: ChatMessage) -> list[LLMMessage]:
    """
    Rebuild history from parts.

    Each run of text followed by tool parts becomes one assistant turn (text
    plus the re-serialized directives) and one user turn with their output.
    """
    result: list[LLMMessage] = []
    text_buffer: list[str] = []
    pending_tools: list[ToolPart] = []

    def flush() -> None:
        content = "".join(text_buffer)
        if pending_tools:
            directives = "\n".join(f"<shell>{p.command}</shell>" for p in pending_tools)
            content = f"{content}\n{directives}" if content else directives
            result.append(LLMMessage(role="assistant", content=content))
            result.append(
                LLMMessage(
                    role="user",
                    content=format_tool_results([(p.command, p.content) for p in pending_tools]),
                )
            )
        elif content:
            result.append(LLMMessage(role="assistant", content=content))
        text_buffer.clear()
        pending_tools.clear()

    for part in message.parts:
        if isinstance(part, TextPart):
            if pending_tools:
                flush()
            text_buffer.append(part.content)
        elif isinstance(part, ToolPart):
            pending_tools.append(part)
        elif isinstance(part, AgentToolPart) and part.tool_call_id:
            flush()
            result.append(
                LLMMessage(
                    role="assistant",
                    tool_calls=[
                        ToolCallRequest(
                            id=part.tool_call_id,
                            name=part.tool_name,
                            arguments=part.tool_args,
                        )
                    ],
                )
            )
            result.append(
                LLMMessage(
                    role="tool",
                    content=part.content,
                    tool_call_id=part.tool_call_id,
                    tool_name=part.tool_name,
                )
            )
        # Reasoning and sources are display-only

    flush()
    return result


def to_llm_messages(messages: list[ChatMessage]) -> list[LLMMessage]:
    """Convert conversation messages to LLM history (without the system prompt)."""
    result: list[LLMMessage] = []
    for message in messages:
        if message.role == MessageRole.USER:
            result.append(LLMMessage(role="user", content=message.text()))
        elif message.iterations and not any(isinstance(p, AgentToolPart) for p in message.parts):
            # Iterations do not carry native tool calls
            result.extend(_from_iterations(message))
        else:
            result.extend(_from_parts(message))
    return result


def to_transcript_string(messages: list[ChatMessage]) -> str:
    """
    Render messages as a human-readable transcript for skill codification.

    Lines are tagged [user], [assistant], [reasoning], [tool-call] and
    [tool-output] and separated by blank lines.
    """
    output: list[str] = []

    for message in messages:
        if message.role == MessageRole.USER:
            text = message.text()
            if text:
                output.append(f"[user] {text}")
            continue

        for part in message.parts:
            if isinstance(part, TextPart):
                if part.content:
                    output.append(f"[assistant] {part.content}")
            elif isinstance(part, ReasoningPart):
                if part.content:
                    output.append(f"[reasoning] {part.content}")
            elif isinstance(part, ToolPart):
                output.append(f"[tool-call] shell: {json.dumps({'command': part.command})}")
                if part.content:
                    output.append(f"[tool-output] {part.content}")
            elif isinstance(part, AgentToolPart):
                output.append(f"[tool-call] {part.tool_name}: {json.dumps(part.tool_args)}")
                if part.content:
                    output.append(f"[tool-output] {part.content}")

    return "\n\n".join(output)


def prepare_codify_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """
    History for a codification request.

    Only prior skill-agent messages are kept so the task agent's history does
    not confuse the skill agent; a fresh codification starts from a synthetic
    "Start" user message.
    """
    skill_messages = [m for m in messages if m.agent == AgentName.SKILL]
    if skill_messages:
        return skill_messages
    return [
        ChatMessage(
            role=MessageRole.USER,
            content=CODIFY_START_MESSAGE,
            parts=[TextPart(content=CODIFY_START_MESSAGE)],
            agent=AgentName.SKILL,
        )
    ]
