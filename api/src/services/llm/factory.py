"""
LLM Client Factory

Creates the LLM client for the configured provider. Provider, model and key
come from deployment settings (TSUGI_LLM_*).
"""

import logging

from src.config import Settings, get_settings
from src.services.llm.anthropic_client import AnthropicClient
from src.services.llm.base import BaseLLMClient, LLMConfig
from src.services.llm.openai_client import OpenAIClient

logger = logging.getLogger(__name__)


def get_llm_config(settings: Settings | None = None, model: str | None = None) -> LLMConfig:
    """Build an LLMConfig from settings, optionally overriding the model."""
    settings = settings or get_settings()
    return LLMConfig(
        provider=settings.llm_provider,
        model=model or settings.llm_model,
        api_key=settings.llm_api_key,
        endpoint=settings.llm_endpoint,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )


def create_llm_client(config: LLMConfig) -> BaseLLMClient:
    """
    Create a client for the given config.

    Raises:
        ValueError: If the provider is unknown
    """
    if config.provider == "openai":
        return OpenAIClient(config)
    if config.provider == "anthropic":
        return AnthropicClient(config)
    raise ValueError(f"Unknown LLM provider: {config.provider}")


def get_llm_client(settings: Settings | None = None, model: str | None = None) -> BaseLLMClient:
    """Get an LLM client for the configured provider."""
    config = get_llm_config(settings, model)
    logger.debug(f"Creating {config.provider} client for model {config.model}")
    return create_llm_client(config)
