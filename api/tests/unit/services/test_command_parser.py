"""
Unit tests for shell directive detection and result formatting.
"""

from src.services.commands.parser import (
    TRUNCATION_MARKER,
    detect_commands,
    extract_commands,
    format_tool_results,
    strip_directives,
    truncate_output,
)


class TestDetectCommands:
    """Tests for detect_commands()."""

    def test_assigns_ids_in_document_order(self):
        """Three directives at iteration 1 get cmd-1-0 .. cmd-1-2."""
        text = "<shell>ls</shell> <shell>cat file1.py</shell> <shell>cat file2.py</shell>"

        detected = detect_commands(text, 1)

        assert [d.command_id for d in detected] == ["cmd-1-0", "cmd-1-1", "cmd-1-2"]
        assert [d.command for d in detected] == ["ls", "cat file1.py", "cat file2.py"]

    def test_trims_and_keeps_multiline_bodies(self):
        text = "Run this:\n<shell>\n  python3 -c 'print(1)\nprint(2)'\n</shell>"

        detected = detect_commands(text, 3)

        assert len(detected) == 1
        assert detected[0].command_id == "cmd-3-0"
        assert detected[0].command == "python3 -c 'print(1)\nprint(2)'"

    def test_empty_directives_do_not_consume_an_index(self):
        text = "<shell>ls</shell><shell>   </shell><shell></shell><shell>pwd</shell>"

        detected = detect_commands(text, 2)

        assert [(d.command_id, d.command) for d in detected] == [
            ("cmd-2-0", "ls"),
            ("cmd-2-1", "pwd"),
        ]

    def test_no_directives(self):
        assert detect_commands("Just an answer.", 1) == []

    def test_unterminated_directive_is_ignored(self):
        assert extract_commands("<shell>ls</shell> then <shell>cat x") == ["ls"]

    def test_source_text_is_not_modified(self):
        text = "<shell>ls</shell>"
        detect_commands(text, 1)
        assert text == "<shell>ls</shell>"


class TestStripDirectives:
    """Tests for strip_directives()."""

    def test_removes_complete_directives(self):
        assert strip_directives("Listing files.\n<shell>ls</shell>") == "Listing files."

    def test_removes_trailing_unterminated_directive(self):
        assert strip_directives("Checking <shell>cat fi") == "Checking"

    def test_collapses_blank_lines(self):
        text = "Before\n\n<shell>ls</shell>\n\n\nAfter"
        assert strip_directives(text) == "Before\n\nAfter"


class TestFormatting:
    """Tests for format_tool_results() and truncate_output()."""

    def test_format_tool_results(self):
        output = format_tool_results([("ls", "a.txt"), ("pwd", "/sandbox")])
        assert output == "$ ls\na.txt\n\n$ pwd\n/sandbox"

    def test_truncate_short_output_unchanged(self):
        assert truncate_output("short") == "short"

    def test_truncate_long_output(self):
        output = truncate_output("x" * 6000)
        assert output == "x" * 5000 + TRUNCATION_MARKER
        assert output.endswith("... (truncated)")

    def test_truncate_at_exact_limit(self):
        assert truncate_output("x" * 5000) == "x" * 5000
