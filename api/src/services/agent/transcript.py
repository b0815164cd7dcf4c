"""
Processed Transcript Tool

The one native tool offered to the skill agent. It loads the task
conversation, renders it as a tagged transcript, lists the files the task
left in the sandbox and asks the LLM for a structured summary to codify.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.config import get_settings
from src.core.database import get_db_context
from src.models.contracts.agent import ChatMessage
from src.repositories.conversations import ConversationRepository
from src.services.agent.prompts import TRANSCRIPT_PROCESSING_PROMPT
from src.services.agent.transform import to_transcript_string
from src.services.commands.context import ExecutionContext
from src.services.llm.base import BaseLLMClient, LLMMessage, ToolDefinition

logger = logging.getLogger(__name__)

MessageLoader = Callable[[str], Awaitable[list[ChatMessage] | None]]


async def load_conversation_messages(conversation_id: str) -> list[ChatMessage] | None:
    """Messages of a stored conversation, or None if it does not exist."""
    async with get_db_context() as db:
        return await ConversationRepository(db).get_messages(conversation_id)


class ProcessedTranscriptTool:
    """get_processed_transcript agent tool."""

    name = "get_processed_transcript"

    def __init__(
        self,
        context: ExecutionContext,
        llm_client: BaseLLMClient,
        load_messages: MessageLoader | None = None,
    ):
        self.context = context
        self.llm_client = llm_client
        self._load_messages = load_messages or load_conversation_messages

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=(
                "Get a processed summary of the task conversation, including the "
                "steps taken, gotchas, files generated and the optimal procedure. "
                "Call this first before codifying a skill."
            ),
        )

    async def execute(self, arguments: dict[str, Any]) -> str:
        conversation_id = self.context.conversation_id
        if not conversation_id:
            return "Error: Conversation not found"

        messages = await self._load_messages(conversation_id)
        if messages is None:
            return "Error: Conversation not found"
        if not messages:
            return "Error: No messages found in conversation"

        files_generated = await self._list_sandbox_files()
        prompt = TRANSCRIPT_PROCESSING_PROMPT.format(files_generated=files_generated)
        transcript = to_transcript_string(messages)

        settings = get_settings()
        response = await self.llm_client.complete(
            [LLMMessage(role="user", content=prompt + transcript)],
            model=settings.transcript_model or None,
        )
        logger.info(
            f"Processed transcript for conversation {conversation_id} "
            f"({len(messages)} messages, {response.output_tokens or 0} output tokens)"
        )
        return response.content or ""

    async def _list_sandbox_files(self) -> str:
        # Only look at a sandbox the conversation already has
        has_sandbox = self.context.sandbox_id or self.context.registry.peek(self.context.session_key)
        if not has_sandbox:
            return "(No sandbox files available)"

        try:
            executor = await self.context.get_executor()
            files = await executor.list_files()
        except Exception as e:
            logger.warning(f"Could not list sandbox files: {e}")
            return "(Could not retrieve sandbox files)"

        if not files:
            return "(No files created)"
        return "\n".join(f"- {name}" for name in files)
