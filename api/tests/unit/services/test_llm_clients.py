"""
Unit tests for the LLM client factory and the Anthropic stream binding.

The SDK's streaming call is replaced with a scripted event sequence.
"""

from types import SimpleNamespace as NS
from unittest.mock import MagicMock

import pytest

from src.config import get_settings
from src.services.llm.anthropic_client import AnthropicClient
from src.services.llm.base import LLMConfig, LLMMessage, ToolCallRequest, ToolDefinition
from src.services.llm.factory import create_llm_client, get_llm_client
from src.services.llm.openai_client import OpenAIClient


class FakeStream:
    def __init__(self, events, error: Exception | None = None):
        self.events = events
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event
        if self.error:
            raise self.error


def _client() -> AnthropicClient:
    return AnthropicClient(LLMConfig(provider="anthropic", model="claude-test", api_key="test"))


async def _collect(client, messages, tools=None):
    return [chunk async for chunk in client.stream(messages, tools)]


class TestFactory:
    def test_default_provider(self):
        client = get_llm_client(get_settings())
        assert isinstance(client, AnthropicClient)
        assert client.config.temperature == 0.05

    def test_openai_provider(self):
        client = create_llm_client(LLMConfig(provider="openai", model="gpt-test", api_key="test"))
        assert isinstance(client, OpenAIClient)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_llm_client(LLMConfig(provider="other", model="x", api_key="k"))  # type: ignore[arg-type]


class TestAnthropicMessages:
    def test_converts_history(self):
        client = _client()
        system, messages = client._convert_messages([
            LLMMessage(role="system", content="You are helpful."),
            LLMMessage(role="user", content="hi"),
            LLMMessage(role="assistant", tool_calls=[ToolCallRequest(id="t1", name="tool", arguments={})]),
            LLMMessage(role="tool", content="result", tool_call_id="t1", tool_name="tool"),
        ])

        assert system == "You are helpful."
        assert messages[0] == {"role": "user", "content": "hi"}
        assert messages[1]["content"][0]["type"] == "tool_use"
        assert messages[2]["content"][0] == {"type": "tool_result", "tool_use_id": "t1", "content": "result"}

    def test_system_prompt_is_cached(self):
        kwargs = _client()._build_kwargs(
            [LLMMessage(role="system", content="prompt"), LLMMessage(role="user", content="hi")],
            [ToolDefinition(name="t", description="d")],
            None,
            None,
            None,
        )

        assert kwargs["system"][0]["cache_control"] == {"type": "ephemeral"}
        assert kwargs["tools"][0]["input_schema"] == {"type": "object", "properties": {}}
        assert kwargs["max_tokens"] == 8192


class TestAnthropicStream:
    @pytest.mark.asyncio
    async def test_text_reasoning_tool_and_usage(self):
        events = [
            NS(type="message_start", message=NS(usage=NS(input_tokens=50, cache_read_input_tokens=40))),
            NS(type="content_block_delta", delta=NS(type="thinking_delta", thinking="hmm")),
            NS(type="content_block_delta", delta=NS(type="text_delta", text="Hello")),
            NS(type="content_block_stop"),
            NS(type="content_block_start", content_block=NS(type="tool_use", id="t1", name="get_processed_transcript")),
            NS(type="content_block_delta", delta=NS(type="input_json_delta", partial_json='{"a": ')),
            NS(type="content_block_delta", delta=NS(type="input_json_delta", partial_json="1}")),
            NS(type="content_block_stop"),
            NS(type="message_delta", delta=NS(stop_reason="tool_use"), usage=NS(output_tokens=9)),
        ]
        client = _client()
        client.client = MagicMock()
        client.client.messages.stream = MagicMock(return_value=FakeStream(events))

        chunks = await _collect(client, [LLMMessage(role="user", content="hi")])

        assert [c.type for c in chunks] == ["reasoning", "delta", "tool_call", "done"]
        assert chunks[2].tool_call == ToolCallRequest(id="t1", name="get_processed_transcript", arguments={"a": 1})
        done = chunks[3]
        assert (done.input_tokens, done.output_tokens, done.cached_tokens) == (50, 9, 40)

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_error_chunk(self):
        client = _client()
        client.client = MagicMock()
        client.client.messages.stream = MagicMock(
            return_value=FakeStream(
                [NS(type="content_block_delta", delta=NS(type="text_delta", text="par"))],
                error=ConnectionError("reset by peer"),
            )
        )

        chunks = await _collect(client, [LLMMessage(role="user", content="hi")])

        assert [c.type for c in chunks] == ["delta", "error"]
        assert chunks[1].error == "reset by peer"
