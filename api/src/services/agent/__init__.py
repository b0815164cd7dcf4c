"""
Agent runtime.

Usage:
    from src.services.agent import AgentLoop, MessageAssembler

    loop = AgentLoop(llm_client, context, mode)
    await loop.run(messages, channel)
"""

from src.services.agent.assembler import MessageAssembler
from src.services.agent.loop import AgentLoop, AgentTool
from src.services.agent.prompts import get_agent_name, get_system_prompt
from src.services.agent.transcript import ProcessedTranscriptTool
from src.services.agent.transform import (
    prepare_codify_messages,
    to_llm_messages,
    to_transcript_string,
)

__all__ = [
    "AgentLoop",
    "AgentTool",
    "MessageAssembler",
    "ProcessedTranscriptTool",
    "get_agent_name",
    "get_system_prompt",
    "prepare_codify_messages",
    "to_llm_messages",
    "to_transcript_string",
]
