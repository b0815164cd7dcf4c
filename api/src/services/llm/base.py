"""
LLM Provider Base Interface

Provider-neutral message, tool and stream-chunk types plus the abstract
client the agent loop talks to.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class ToolDefinition:
    """Native tool offered to the LLM (JSON Schema parameters)."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


@dataclass
class ToolCallRequest:
    """Tool invocation requested by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMMessage:
    """
    Message in the LLM history.

    Assistant messages may carry tool calls; tool messages answer one of them
    via tool_call_id.
    """

    role: Literal["user", "assistant", "system", "tool"]
    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None


@dataclass
class LLMResponse:
    """Response from a non-streaming completion."""

    content: str | None = None
    tool_calls: list[ToolCallRequest] | None = None
    finish_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    model: str | None = None


@dataclass
class LLMStreamChunk:
    """
    Streaming chunk.

    ``delta`` and ``reasoning`` carry text in ``content``; ``tool_call`` carries
    a complete invocation; ``done`` carries whatever token counts the provider
    reported (None when unknown); ``error`` carries a readable message.
    """

    type: Literal["delta", "reasoning", "tool_call", "done", "error"]
    content: str | None = None
    tool_call: ToolCallRequest | None = None
    finish_reason: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    cached_tokens: int | None = None
    reasoning_tokens: int | None = None
    error: str | None = None


@dataclass
class LLMConfig:
    """Configuration for an LLM client."""

    provider: Literal["openai", "anthropic"]
    model: str
    api_key: str | None
    endpoint: str | None = None
    max_tokens: int = 8192
    temperature: float = 0.05
    extra_params: dict[str, Any] = field(default_factory=dict)


class BaseLLMClient(ABC):
    """Abstract base class for LLM providers."""

    def __init__(self, config: LLMConfig):
        self.config = config

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        """Non-streaming completion."""
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> AsyncGenerator[LLMStreamChunk, None]:
        """
        Streaming completion.

        Transport failures are reported as a final ``error`` chunk rather than
        raised, so callers see every chunk produced before the failure.
        """
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @property
    def model_name(self) -> str:
        return self.config.model
