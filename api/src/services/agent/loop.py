"""
Agent Iteration Loop

Drives one agent request: stream the LLM, forward deltas, detect
<shell> directives in the finished turn, execute them in order and feed the
results back until the agent stops asking for commands.

Every event goes through the EventChannel. The stream always ends with a
"done" event, after which the channel is closed.
"""

import asyncio
import dataclasses
import logging
import time
from typing import Any, Protocol

from src.config import get_settings
from src.core.exceptions import LLMStreamError, SandboxTimeoutError
from src.models.contracts.agent import ChatMessage, StreamEvent, UsageInfo
from src.models.enums import ConversationMode
from src.services.agent.prompts import get_agent_name, get_system_prompt
from src.services.agent.transform import to_llm_messages
from src.services.commands import executor as command_executor
from src.services.commands.context import ExecutionContext
from src.services.commands.parser import DetectedCommand, detect_commands, format_tool_results
from src.services.llm.base import (
    BaseLLMClient,
    LLMMessage,
    LLMStreamChunk,
    ToolCallRequest,
    ToolDefinition,
)
from src.services.streaming.channel import EventChannel

logger = logging.getLogger(__name__)


class AgentTool(Protocol):
    """Native tool the LLM may invoke."""

    name: str

    @property
    def definition(self) -> ToolDefinition: ...

    async def execute(self, arguments: dict[str, Any]) -> str: ...


def _usage_from(chunk: LLMStreamChunk | None) -> UsageInfo | None:
    if chunk is None:
        return None
    usage = UsageInfo(
        prompt_tokens=chunk.input_tokens,
        completion_tokens=chunk.output_tokens,
        cached_content_token_count=chunk.cached_tokens,
        reasoning_tokens=chunk.reasoning_tokens,
    )
    return None if usage.is_empty() else usage


class AgentLoop:
    """
    One agent run over a conversation.

    The loop is strictly sequential: one LLM call per iteration and one
    command at a time. Abort is checked at the top of each iteration only.
    """

    def __init__(
        self,
        llm_client: BaseLLMClient,
        context: ExecutionContext,
        mode: ConversationMode = ConversationMode.TASK,
        max_iterations: int | None = None,
        agent_tools: list[AgentTool] | None = None,
        emit_raw_payload: bool = False,
    ):
        self.llm_client = llm_client
        self.context = context
        self.mode = mode
        self.agent = get_agent_name(mode)
        self.max_iterations = max_iterations or get_settings().max_iterations
        self.tools = {tool.name: tool for tool in agent_tools or []}
        self.emit_raw_payload = emit_raw_payload
        self._announced_sandbox: str | None = None
        self._payloads: list[Any] = []

    async def run(
        self,
        messages: list[ChatMessage],
        channel: EventChannel,
        abort_event: asyncio.Event | None = None,
    ) -> None:
        abort_event = abort_event or channel.abort_event
        history = [LLMMessage(role="system", content=get_system_prompt(self.mode))]
        history.extend(to_llm_messages(messages))

        try:
            for iteration in range(1, self.max_iterations + 1):
                if abort_event.is_set():
                    await self._abort(channel)
                    return

                if not await self._run_iteration(iteration, history, channel):
                    return
            else:
                logger.info(f"Agent loop reached max iterations ({self.max_iterations})")
        except Exception as e:
            logger.error(f"Agent loop error: {e}", exc_info=True)
            message = e.message if isinstance(e, LLMStreamError) else str(e) or type(e).__name__
            channel.send(StreamEvent(type="error", content=message))
        finally:
            if self.emit_raw_payload and self._payloads:
                channel.send(StreamEvent(type="raw_payload", raw_payload=self._payloads))
            channel.send(StreamEvent(type="done"))
            channel.close()

    async def _run_iteration(
        self,
        iteration: int,
        history: list[LLMMessage],
        channel: EventChannel,
    ) -> bool:
        """Run one LLM turn. Returns False when the loop should stop."""
        started = time.monotonic()
        text_chunks: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        final_chunk: LLMStreamChunk | None = None

        if self.emit_raw_payload:
            self._payloads.append([dataclasses.asdict(m) for m in history])

        tool_definitions = [tool.definition for tool in self.tools.values()]
        async for chunk in self.llm_client.stream(history, tools=tool_definitions or None):
            if chunk.type == "delta" and chunk.content:
                text_chunks.append(chunk.content)
                channel.send(StreamEvent(type="text", content=chunk.content))
            elif chunk.type == "reasoning" and chunk.content:
                channel.send(StreamEvent(type="reasoning", content=chunk.content))
            elif chunk.type == "tool_call" and chunk.tool_call:
                tool_calls.append(chunk.tool_call)
                channel.send(
                    StreamEvent(
                        type="agent-tool-call",
                        tool_name=chunk.tool_call.name,
                        tool_args=chunk.tool_call.arguments,
                        tool_call_id=chunk.tool_call.id,
                    )
                )
            elif chunk.type == "done":
                final_chunk = chunk
            elif chunk.type == "error":
                raise LLMStreamError(chunk.error or "LLM request failed")

        channel.send(
            StreamEvent(
                type="usage",
                usage=_usage_from(final_chunk),
                execution_time_ms=int((time.monotonic() - started) * 1000),
                agent=self.agent,
            )
        )

        text = "".join(text_chunks)
        detected = detect_commands(text, iteration)

        if not detected and not tool_calls:
            if text:
                channel.send(StreamEvent(type="raw-content", raw_content=text))
            channel.send(StreamEvent(type="iteration-end", has_more_commands=False))
            return False

        if tool_calls:
            history.append(LLMMessage(role="assistant", content=text or None, tool_calls=tool_calls))
            for call in tool_calls:
                result = await self._run_agent_tool(call)
                channel.send(
                    StreamEvent(
                        type="agent-tool-result",
                        tool_name=call.name,
                        tool_call_id=call.id,
                        result=result,
                    )
                )
                history.append(
                    LLMMessage(role="tool", content=result, tool_call_id=call.id, tool_name=call.name)
                )
        else:
            history.append(LLMMessage(role="assistant", content=text))

        tool_output: str | None = None
        if detected:
            executions = await self._run_commands(detected, channel)
            if executions is None:
                return False
            tool_output = format_tool_results(executions)
            history.append(LLMMessage(role="user", content=tool_output))

        if text:
            channel.send(StreamEvent(type="raw-content", raw_content=text))
        if tool_output is not None:
            channel.send(StreamEvent(type="tool-output", tool_output=tool_output))
        channel.send(StreamEvent(type="iteration-end", has_more_commands=True))
        return True

    async def _run_commands(
        self,
        detected: list[DetectedCommand],
        channel: EventChannel,
    ) -> list[tuple[str, str]] | None:
        """
        Execute directives in detection order.

        Returns the (command, result) pairs, or None when the sandbox expired
        and the loop must stop.
        """
        for command in detected:
            channel.send(
                StreamEvent(type="tool-call", command=command.command, command_id=command.command_id)
            )

        executions: list[tuple[str, str]] = []
        for command in detected:
            channel.send(
                StreamEvent(type="tool-start", command=command.command, command_id=command.command_id)
            )
            try:
                result = await command_executor.execute_command(command.command, self.context)
            except SandboxTimeoutError as e:
                logger.warning(f"Sandbox expired while running {command.command_id}: {e.message}")
                channel.send(
                    StreamEvent(
                        type="sandbox_timeout",
                        sandbox_id=self.context.active_sandbox_id,
                        content=e.message,
                    )
                )
                channel.send(StreamEvent(type="error", content=e.message))
                return None

            self._announce_sandbox(channel)
            channel.send(
                StreamEvent(
                    type="tool-result",
                    command=command.command,
                    command_id=command.command_id,
                    result=result,
                )
            )
            executions.append((command.command, result))
        return executions

    async def _run_agent_tool(self, call: ToolCallRequest) -> str:
        tool = self.tools.get(call.name)
        if tool is None:
            return f"Error: Unknown tool {call.name}"
        try:
            return await tool.execute(call.arguments)
        except Exception as e:
            logger.error(f"Agent tool error for {call.name}: {e}", exc_info=True)
            return f"Error: {e}"

    def _announce_sandbox(self, channel: EventChannel) -> None:
        sandbox_id = self.context.active_sandbox_id
        if self.context.sandbox_used and sandbox_id and sandbox_id != self._announced_sandbox:
            self._announced_sandbox = sandbox_id
            channel.send(StreamEvent(type="sandbox_active", sandbox_id=sandbox_id))

    async def _abort(self, channel: EventChannel) -> None:
        logger.info(f"Agent loop aborted for {self.context.session_key}")
        if not self.context.sandbox_used:
            return
        sandbox_id = self.context.active_sandbox_id
        try:
            await self.context.registry.release(self.context.session_key)
        except Exception as e:
            logger.warning(f"Failed to clean up sandbox {sandbox_id}: {e}")
        channel.send(StreamEvent(type="sandbox_terminated", sandbox_id=sandbox_id))
