"""
Agent Router

POST /api/agent runs one agent request and streams its events as
Server-Sent Events. The loop runs in its own task and feeds an
EventChannel; the response drains the channel. If the client goes away the
channel is detached, which aborts the loop before its next iteration.

When a conversationId is given the user's latest message and the assembled
assistant message are persisted once the run finishes.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from src.config import get_settings
from src.core.database import get_db_context
from src.core.exceptions import SandboxError
from src.models.contracts.agent import AgentRequest, ChatMessage
from src.models.enums import ConversationMode, MessageRole
from src.repositories.conversations import ConversationRepository
from src.services.agent.assembler import MessageAssembler
from src.services.agent.loop import AgentLoop, AgentTool
from src.services.agent.transcript import ProcessedTranscriptTool
from src.services.agent.transform import prepare_codify_messages
from src.services.commands.context import ExecutionContext, merge_playground_env
from src.services.llm.factory import get_llm_client
from src.services.sandbox.registry import SandboxRegistry
from src.services.skills.storage import get_skill_store
from src.services.streaming.channel import ChannelState, EventChannel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agent", tags=["Agent"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

# Keeps persistence tasks of detached streams alive until they finish
_background_tasks: set[asyncio.Task] = set()


def get_sandbox_registry(request: Request) -> SandboxRegistry:
    return request.app.state.sandbox_registry


SandboxRegistryDep = Annotated[SandboxRegistry, Depends(get_sandbox_registry)]


def _is_new_task(body: AgentRequest) -> bool:
    return (
        body.mode == ConversationMode.TASK
        and not body.sandbox_id
        and not any(m.role == MessageRole.ASSISTANT for m in body.messages)
    )


async def persist_exchange(
    conversation_id: str,
    mode: ConversationMode,
    user_message: ChatMessage | None,
    assistant_message: ChatMessage,
) -> None:
    """Save the latest user message and the assistant reply."""
    try:
        async with get_db_context() as db:
            repo = ConversationRepository(db)
            if await repo.get_by_id(conversation_id) is None:
                title = (user_message.text() if user_message else "")[:100] or "New task"
                await repo.create_conversation(title, mode, conversation_id=conversation_id)
            if user_message is not None:
                await repo.save_message(conversation_id, user_message)
            await repo.save_message(conversation_id, assistant_message)
    except Exception as e:
        logger.error(f"Failed to persist messages for {conversation_id}: {e}", exc_info=True)


@router.post("")
async def run_agent(
    body: AgentRequest,
    registry: SandboxRegistryDep,
) -> StreamingResponse:
    """Run the agent and stream its events."""
    if body.mode == ConversationMode.TASK and not body.messages:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="messages must not be empty",
        )
    if body.mode == ConversationMode.CODIFY_SKILL and not body.conversation_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="conversationId is required in codify-skill mode",
        )

    settings = get_settings()
    request_scoped = not (body.conversation_id or body.sandbox_id)
    session_key = body.conversation_id or body.sandbox_id or f"request-{uuid4().hex}"
    context = ExecutionContext(
        session_key=session_key,
        registry=registry,
        skill_store=get_skill_store(),
        env=merge_playground_env(body.env, settings.playground_env_file),
        sandbox_id=body.sandbox_id,
        conversation_id=body.conversation_id,
    )

    llm_client = get_llm_client(settings)

    headers = dict(SSE_HEADERS)
    if _is_new_task(body):
        # Provision up front so the client learns the id from the headers
        try:
            executor = await context.get_executor()
            sandbox_id = await executor.initialize()
            await context.record_sandbox()
            headers["X-Sandbox-Id"] = sandbox_id
        except SandboxError as e:
            logger.warning(f"Eager sandbox initialization failed for {session_key}: {e.message}")

    agent_tools: list[AgentTool] = []
    messages = body.messages
    if body.mode == ConversationMode.CODIFY_SKILL:
        messages = prepare_codify_messages(body.messages)
        agent_tools.append(ProcessedTranscriptTool(context, llm_client))

    loop = AgentLoop(
        llm_client,
        context,
        mode=body.mode,
        agent_tools=agent_tools,
        emit_raw_payload=settings.debug,
    )
    channel = EventChannel()
    assembler = MessageAssembler(loop.agent)
    user_message = messages[-1] if messages and messages[-1].role == MessageRole.USER else None
    if user_message is not None and user_message.agent != loop.agent:
        user_message = None

    logger.info(f"Agent request for {session_key} ({body.mode.value}, {len(messages)} messages)")
    loop_task = asyncio.create_task(loop.run(messages, channel))

    async def finish() -> None:
        await loop_task
        if request_scoped:
            # Nothing can look this key up again; the client reconnects by sandbox id
            await registry.detach(session_key)
        if body.conversation_id:
            await persist_exchange(
                body.conversation_id,
                body.mode,
                user_message,
                assembler.build_message(uuid4().hex),
            )

    async def event_stream() -> AsyncGenerator[str, None]:
        completed = False
        try:
            async for event in channel:
                assembler.apply(event)
                yield event.to_sse()
            completed = True
        finally:
            if channel.state != ChannelState.CLOSED:
                channel.detach()
            if completed:
                await finish()
            else:
                task = asyncio.create_task(finish())
                _background_tasks.add(task)
                task.add_done_callback(_background_tasks.discard)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers=headers,
    )
