"""
LLM provider abstraction.

Usage:
    from src.services.llm import get_llm_client, LLMMessage

    client = get_llm_client()
    async for chunk in client.stream([LLMMessage(role="user", content="hi")]):
        ...
"""

from src.services.llm.base import (
    BaseLLMClient,
    LLMConfig,
    LLMMessage,
    LLMResponse,
    LLMStreamChunk,
    ToolCallRequest,
    ToolDefinition,
)
from src.services.llm.factory import create_llm_client, get_llm_client, get_llm_config

__all__ = [
    "BaseLLMClient",
    "LLMConfig",
    "LLMMessage",
    "LLMResponse",
    "LLMStreamChunk",
    "ToolCallRequest",
    "ToolDefinition",
    "create_llm_client",
    "get_llm_client",
    "get_llm_config",
]
