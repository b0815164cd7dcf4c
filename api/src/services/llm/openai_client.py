"""
OpenAI LLM Client

Chat Completions binding. Also serves OpenAI-compatible endpoints
(``TSUGI_LLM_ENDPOINT``); their ``reasoning_content`` deltas are surfaced as
reasoning chunks.
"""

import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam, ChatCompletionToolParam

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


class OpenAIClient(BaseLLMClient):
    """OpenAI LLM client implementation."""

    def __init__(self, config: LLMConfig):
        super().__init__(config)
        self.client = AsyncOpenAI(api_key=config.api_key, base_url=config.endpoint or None)

    @property
    def provider_name(self) -> str:
        return "openai"

    def _build_kwargs(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None,
        max_tokens: int | None,
        temperature: float | None,
        model: str | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model or self.config.model,
            "messages": self._convert_messages(messages),
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": temperature if temperature is not None else self.config.temperature,
            **self.config.extra_params,
        }
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
        response = await self.client.chat.completions.create(**kwargs)

        choice = response.choices[0]
        message = choice.message

        tool_calls = None
        if message.tool_calls:
            tool_calls = [
                ToolCallRequest(
                    id=tc.id,
                    name=tc.function.name,
                    arguments=_parse_arguments(tc.function.arguments),
                )
                for tc in message.tool_calls
            ]

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            input_tokens=response.usage.prompt_tokens if response.usage else None,
            output_tokens=response.usage.completion_tokens if response.usage else None,
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
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}

        # Tool calls arrive as fragments keyed by index
        tool_call_builders: dict[int, dict[str, Any]] = {}
        finish_reason: str | None = None
        done = LLMStreamChunk(type="done")

        try:
            async with await self.client.chat.completions.create(**kwargs) as stream:
                async for chunk in stream:
                    # Usage arrives in a trailing chunk with no choices
                    if chunk.usage:
                        done.input_tokens = chunk.usage.prompt_tokens
                        done.output_tokens = chunk.usage.completion_tokens
                        prompt_details = getattr(chunk.usage, "prompt_tokens_details", None)
                        if prompt_details is not None:
                            done.cached_tokens = prompt_details.cached_tokens
                        completion_details = getattr(chunk.usage, "completion_tokens_details", None)
                        if completion_details is not None:
                            done.reasoning_tokens = completion_details.reasoning_tokens

                    if not chunk.choices:
                        continue

                    choice = chunk.choices[0]
                    delta = choice.delta

                    reasoning = getattr(delta, "reasoning_content", None)
                    if reasoning:
                        yield LLMStreamChunk(type="reasoning", content=reasoning)

                    if delta.content:
                        yield LLMStreamChunk(type="delta", content=delta.content)

                    for tc_delta in delta.tool_calls or []:
                        builder = tool_call_builders.setdefault(
                            tc_delta.index, {"id": "", "name": "", "arguments": ""}
                        )
                        if tc_delta.id:
                            builder["id"] = tc_delta.id
                        if tc_delta.function:
                            if tc_delta.function.name:
                                builder["name"] = tc_delta.function.name
                            if tc_delta.function.arguments:
                                builder["arguments"] += tc_delta.function.arguments

                    if choice.finish_reason:
                        finish_reason = choice.finish_reason

            for tc_data in tool_call_builders.values():
                if tc_data["id"] and tc_data["name"]:
                    yield LLMStreamChunk(
                        type="tool_call",
                        tool_call=ToolCallRequest(
                            id=tc_data["id"],
                            name=tc_data["name"],
                            arguments=_parse_arguments(tc_data["arguments"]),
                        ),
                    )

            done.finish_reason = finish_reason
            yield done

        except Exception as e:
            logger.error(f"OpenAI streaming error: {e}")
            yield LLMStreamChunk(type="error", error=str(e))

    def _convert_messages(self, messages: list[LLMMessage]) -> list[ChatCompletionMessageParam]:
        result: list[ChatCompletionMessageParam] = []

        for msg in messages:
            if msg.role in ("system", "user"):
                result.append({"role": msg.role, "content": msg.content or ""})

            elif msg.role == "assistant":
                assistant_msg: dict[str, Any] = {"role": "assistant"}
                if msg.content:
                    assistant_msg["content"] = msg.content
                if msg.tool_calls:
                    assistant_msg["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                result.append(assistant_msg)  # type: ignore[arg-type]

            elif msg.role == "tool":
                result.append({
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id or "",
                    "content": msg.content or "",
                })

        return result

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[ChatCompletionToolParam]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]


def _parse_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Failed to parse tool arguments: {raw}")
        return {}
