"""
Anthropic LLM Client

Claude binding for the agent loop. The system prompt is sent with an
ephemeral cache breakpoint so iterations over the same history reuse the
provider's prompt cache.
"""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from anthropic import AsyncAnthropic
from anthropic.types import (
    ContentBlockParam,
    MessageParam,
    TextBlockParam,
    ToolParam,
    ToolResultBlockParam,
    ToolUseBlockParam,
)

from src.services.llm.base import (
    BaseLLMClient,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMStreamChunk,
    ToolCallRequest,
    ToolDefinition,
)

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude LLM client implementation."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self.client = AsyncAnthropic(api_key=config.api_key, base_url=config.endpoint or None)

    @property
    def provider_name(self) -> str:
        return "anthropic"

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None,
        max_tokens: int | None,
        temperature: float | None,
        model: str | None,
    ) -> dict[str, Any]:
        system_prompt, anthropic_messages = self._convert_messages(messages)

        kwargs: dict[str, Any] = {
            "model": model or self.config.model,
            "messages": anthropic_messages,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": temperature if temperature is not None else self.config.temperature,
            **self.config.extra_params,
        }
        if system_prompt:
            kwargs["system"] = [
                {
                    "type": "text",
                    "text": system_prompt,
                    "cache_control": {"type": "ephemeral"},
                }
            ]
        if tools:
            kwargs["tools"] = self._convert_tools(tools)
        return kwargs

    async def complete(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> LLMResponse:
        kwargs = self._build_kwargs(messages, tools, max_tokens, temperature, model)
        response = await self.client.messages.create(**kwargs)

        content_parts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in response.content:
            if block.type == "text":
                content_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCallRequest(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        return LLMResponse(
            content="".join(content_parts) if content_parts else None,
            tool_calls=tool_calls or None,
            finish_reason=response.stop_reason,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
        )

    async def stream(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
    ) -> AsyncGenerator[LLMStreamChunk, None]:
        kwargs = self._build_kwargs(messages, tools, max_tokens, temperature, model)

        # Tool use block being assembled from input_json deltas
        current_tool: dict[str, Any] | None = None
        input_tokens: int | None = None
        cached_tokens: int | None = None
        output_tokens: int | None = None

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "message_start":
                        usage = event.message.usage
                        if usage:
                            input_tokens = usage.input_tokens
                            cached_tokens = getattr(usage, "cache_read_input_tokens", None)

                    elif event.type == "content_block_start":
                        if event.content_block.type == "tool_use":
                            current_tool = {
                                "id": event.content_block.id,
                                "name": event.content_block.name,
                                "input_json": "",
                            }

                    elif event.type == "content_block_delta":
                        if event.delta.type == "text_delta":
                            yield LLMStreamChunk(type="delta", content=event.delta.text)
                        elif event.delta.type == "thinking_delta":
                            yield LLMStreamChunk(type="reasoning", content=event.delta.thinking)
                        elif event.delta.type == "input_json_delta" and current_tool:
                            current_tool["input_json"] += event.delta.partial_json

                    elif event.type == "content_block_stop":
                        if current_tool:
                            yield LLMStreamChunk(
                                type="tool_call",
                                tool_call=ToolCallRequest(
                                    id=current_tool["id"],
                                    name=current_tool["name"],
                                    arguments=_parse_arguments(current_tool["input_json"]),
                                ),
                            )
                            current_tool = None

                    elif event.type == "message_delta":
                        if event.usage:
                            output_tokens = event.usage.output_tokens
                        yield LLMStreamChunk(
                            type="done",
                            finish_reason=event.delta.stop_reason,
                            input_tokens=input_tokens,
                            output_tokens=output_tokens,
                            cached_tokens=cached_tokens,
                        )

        except Exception as e:
            logger.error(f"Anthropic streaming error: {e}")
            yield LLMStreamChunk(type="error", error=str(e))

    def _convert_messages(
        self, messages: list[LLMMessage]
    ) -> tuple[str | None, list[MessageParam]]:
        """
        Convert to Anthropic format.

        The system prompt travels separately; tool results become user
        messages holding tool_result blocks.
        """
        system_prompt: str | None = None
        result: list[MessageParam] = []

        for msg in messages:
            if msg.role == "system":
                system_prompt = msg.content

            elif msg.role == "user":
                result.append({"role": "user", "content": msg.content or ""})

            elif msg.role == "assistant":
                content: list[ContentBlockParam] = []
                if msg.content:
                    content.append(TextBlockParam(type="text", text=msg.content))
                for tc in msg.tool_calls or []:
                    content.append(
                        ToolUseBlockParam(
                            type="tool_use",
                            id=tc.id,
                            name=tc.name,
                            input=tc.arguments,
                        )
                    )
                result.append({"role": "assistant", "content": content or ""})

            elif msg.role == "tool":
                result.append({
                    "role": "user",
                    "content": [
                        ToolResultBlockParam(
                            type="tool_result",
                            tool_use_id=msg.tool_call_id or "",
                            content=msg.content or "",
                        )
                    ],
                })

        return system_prompt, result

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[ToolParam]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.parameters,
            }
            for tool in tools
        ]


def _parse_arguments(raw: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool input: {raw}")
        return {}
