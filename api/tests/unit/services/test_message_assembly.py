"""
Unit tests for message assembly and history reconstruction.

Tests:
- MessageAssembler: stream events -> parts, stats, iterations
- to_llm_messages: stored messages -> LLM history
- to_transcript_string / prepare_codify_messages: codification input
"""

from src.models.contracts.agent import (
    AgentIteration,
    AgentToolPart,
    ReasoningPart,
    SourcesPart,
    StreamEvent,
    TextPart,
    ToolPart,
    UsageInfo,
)
from src.models.enums import AgentName, MessageRole, ToolStatus
from src.services.agent.assembler import MessageAssembler
from src.services.agent.transform import (
    prepare_codify_messages,
    to_llm_messages,
    to_transcript_string,
)
from tests.helpers.factories import make_assistant_message, make_user_message


def _assemble(*events: StreamEvent) -> MessageAssembler:
    assembler = MessageAssembler()
    for event in events:
        assembler.apply(event)
    return assembler


# =============================================================================
# MessageAssembler
# =============================================================================


class TestMessageAssembler:
    def test_text_parts_hide_directives(self):
        assembler = _assemble(
            StreamEvent(type="text", content="Listing.\n<shell>l"),
            StreamEvent(type="text", content="s</shell>"),
            StreamEvent(type="tool-call", command="ls", command_id="cmd-1-0"),
        )

        message = assembler.build_message("msg-1")

        assert message.id == "msg-1"
        assert message.role == MessageRole.ASSISTANT
        assert message.parts[0] == TextPart(content="Listing.")
        assert message.parts[1] == ToolPart(command="ls", command_id="cmd-1-0")

    def test_tool_status_moves_forward_only(self):
        assembler = _assemble(
            StreamEvent(type="tool-call", command="ls", command_id="cmd-1-0"),
            StreamEvent(type="tool-start", command="ls", command_id="cmd-1-0"),
            StreamEvent(type="tool-result", command="ls", command_id="cmd-1-0", result="a.txt"),
            StreamEvent(type="tool-start", command="ls", command_id="cmd-1-0"),
            StreamEvent(type="tool-result", command="x", command_id="cmd-9-9", result="ignored"),
        )

        [part] = assembler.build_message().parts

        assert part.tool_status == ToolStatus.COMPLETED
        assert part.content == "a.txt"

    def test_identical_commands_stay_separate(self):
        assembler = _assemble(
            StreamEvent(type="text", content="<shell>ls</shell><shell>ls</shell>"),
            StreamEvent(type="tool-call", command="ls", command_id="cmd-1-0"),
            StreamEvent(type="tool-call", command="ls", command_id="cmd-1-1"),
            StreamEvent(type="tool-start", command="ls", command_id="cmd-1-0"),
            StreamEvent(type="tool-result", command="ls", command_id="cmd-1-0", result="first"),
            StreamEvent(type="tool-start", command="ls", command_id="cmd-1-1"),
            StreamEvent(type="tool-result", command="ls", command_id="cmd-1-1", result="second"),
        )

        parts = assembler.build_message().parts

        assert parts == [
            ToolPart(command="ls", command_id="cmd-1-0", tool_status=ToolStatus.COMPLETED, content="first"),
            ToolPart(command="ls", command_id="cmd-1-1", tool_status=ToolStatus.COMPLETED, content="second"),
        ]

    def test_segments_keep_order(self):
        assembler = _assemble(
            StreamEvent(type="reasoning", content="plan"),
            StreamEvent(type="text", content="Running."),
            StreamEvent(type="tool-call", command="pwd", command_id="cmd-1-0"),
            StreamEvent(type="iteration-end", has_more_commands=True),
            StreamEvent(type="text", content="Done."),
        )

        parts = assembler.build_message().parts

        assert [type(p) for p in parts] == [ReasoningPart, TextPart, ToolPart, TextPart]
        assert parts[-1].content == "Done."

    def test_directive_only_text_is_dropped(self):
        assembler = _assemble(
            StreamEvent(type="text", content="<shell>ls</shell>"),
            StreamEvent(type="tool-call", command="ls", command_id="cmd-1-0"),
        )

        assert [p.type for p in assembler.build_message().parts] == ["tool"]

    def test_agent_tools_and_sources(self):
        assembler = _assemble(
            StreamEvent(type="agent-tool-call", tool_name="get_processed_transcript", tool_args={}, tool_call_id="c1"),
            StreamEvent(type="agent-tool-result", tool_name="get_processed_transcript", tool_call_id="c1", result="sum"),
            StreamEvent(type="source", source_id="s1", source_url="https://example.com", source_title="Ex"),
            StreamEvent(type="source", source_id="s1", source_url="https://example.com"),
        )

        parts = assembler.build_message().parts

        assert parts[0] == AgentToolPart(
            tool_name="get_processed_transcript", tool_args={}, tool_call_id="c1", content="sum"
        )
        assert isinstance(parts[1], SourcesPart)
        assert len(parts[1].sources) == 1

    def test_stats_are_summed(self):
        assembler = _assemble(
            StreamEvent(type="usage", usage=UsageInfo(prompt_tokens=10, completion_tokens=2), execution_time_ms=100),
            StreamEvent(type="usage", usage=UsageInfo(prompt_tokens=20, completion_tokens=3, cached_content_token_count=8), execution_time_ms=50),
        )

        stats = assembler.build_message().stats

        assert stats.prompt_tokens == 30
        assert stats.completion_tokens == 5
        assert stats.cached_tokens == 8
        assert stats.execution_time_ms == 150
        assert stats.tokens_unavailable is None

    def test_null_usage_marks_tokens_unavailable(self):
        assembler = _assemble(StreamEvent(type="usage", execution_time_ms=5))

        stats = assembler.build_message().stats

        assert stats.tokens_unavailable is True
        assert stats.prompt_tokens is None

    def test_no_usage_means_no_stats(self):
        assert _assemble(StreamEvent(type="text", content="hi")).build_message().stats is None

    def test_iterations_from_raw_content(self):
        assembler = _assemble(
            StreamEvent(type="raw-content", raw_content="<shell>ls</shell>"),
            StreamEvent(type="tool-output", tool_output="$ ls\na.txt"),
            StreamEvent(type="raw-content", raw_content="Done."),
        )

        assert assembler.build_message().iterations == [
            AgentIteration(raw_content="<shell>ls</shell>", tool_output="$ ls\na.txt"),
            AgentIteration(raw_content="Done."),
        ]

    def test_sandbox_and_errors_are_tracked(self):
        assembler = _assemble(
            StreamEvent(type="sandbox_active", sandbox_id="sbx-1"),
            StreamEvent(type="error", content="Sandbox timed out due to inactivity"),
        )

        assert assembler.sandbox_id == "sbx-1"
        assert assembler.errors == ["Sandbox timed out due to inactivity"]


# =============================================================================
# History reconstruction
# =============================================================================


class TestToLLMMessages:
    def test_replays_iterations_verbatim(self):
        message = make_assistant_message(
            parts=[TextPart(content="Listing.")],
            iterations=[
                AgentIteration(raw_content="Listing.\n<shell>ls</shell>", tool_output="$ ls\na.txt"),
                AgentIteration(raw_content="Found a.txt."),
            ],
        )

        history = to_llm_messages([make_user_message("list"), message])

        assert [(m.role, m.content) for m in history] == [
            ("user", "list"),
            ("assistant", "Listing.\n<shell>ls</shell>"),
            ("user", "$ ls\na.txt"),
            ("assistant", "Found a.txt."),
        ]

    def test_rebuilds_from_parts(self):
        message = make_assistant_message(
            parts=[
                ReasoningPart(content="hidden"),
                TextPart(content="Listing."),
                ToolPart(command="ls", command_id="cmd-1-0", content="a.txt", tool_status=ToolStatus.COMPLETED),
                TextPart(content="Found a.txt."),
            ]
        )

        history = to_llm_messages([message])

        assert [(m.role, m.content) for m in history] == [
            ("assistant", "Listing.\n<shell>ls</shell>"),
            ("user", "$ ls\na.txt"),
            ("assistant", "Found a.txt."),
        ]

    def test_agent_tool_parts_become_tool_messages(self):
        message = make_assistant_message(
            parts=[
                AgentToolPart(tool_name="get_processed_transcript", tool_call_id="c1", content="summary"),
                TextPart(content="COMPLETE"),
            ],
            iterations=[AgentIteration(raw_content="COMPLETE")],
            agent=AgentName.SKILL,
        )

        history = to_llm_messages([message])

        assert history[0].role == "assistant"
        assert history[0].tool_calls[0].id == "c1"
        assert (history[1].role, history[1].tool_call_id, history[1].content) == ("tool", "c1", "summary")
        assert (history[2].role, history[2].content) == ("assistant", "COMPLETE")


class TestCodification:
    def test_transcript_tags(self):
        messages = [
            make_user_message("Refund charge ch_1"),
            make_assistant_message(
                parts=[
                    ReasoningPart(content="need the API"),
                    TextPart(content="Refunding."),
                    ToolPart(command="curl -X POST ...", command_id="cmd-1-0", content='{"ok":true}'),
                ]
            ),
        ]

        transcript = to_transcript_string(messages)

        assert transcript == "\n\n".join([
            "[user] Refund charge ch_1",
            "[reasoning] need the API",
            "[assistant] Refunding.",
            '[tool-call] shell: {"command": "curl -X POST ..."}',
            '[tool-output] {"ok":true}',
        ])

    def test_codify_starts_fresh(self):
        messages = [make_user_message("task"), make_assistant_message(parts=[TextPart(content="done")])]

        [start] = prepare_codify_messages(messages)

        assert start.role == MessageRole.USER
        assert start.text() == "Start"
        assert start.agent == AgentName.SKILL

    def test_codify_keeps_skill_messages_only(self):
        skill_reply = make_assistant_message(parts=[TextPart(content="saved")], agent=AgentName.SKILL)
        messages = [make_user_message("task"), skill_reply]

        assert prepare_codify_messages(messages) == [skill_reply]
