"""Tests for strata.shared.formatters.tool_activity — raw tool calls to bounded records."""

import pytest

from strata.shared.diff import DiffLineKind, split_lines
from strata.shared.formatters.tool_activity import (
    TruncationLimits,
    ingest,
    normalize_tool_name,
    start_activity,
)
from strata.shared.models.tool_activity import (
    ActivityState,
    FailureReason,
    ToolActivity,
    ToolName,
)


def _numbered(n: int) -> str:
    return "\n".join(f"line {i}" for i in range(1, n + 1))


# ── tool name normalisation ──


class TestNormalizeToolName:
    @pytest.mark.parametrize("name,expected", [
        ("Bash", ToolName.BASH),
        ("bash", ToolName.BASH),
        ("run_shell_command", ToolName.BASH),
        ("Read", ToolName.READ),
        ("read_file", ToolName.READ),
        ("Write", ToolName.WRITE),
        ("Edit", ToolName.EDIT),
        ("replace_string", ToolName.EDIT),
        ("Glob", ToolName.GLOB),
        ("Grep", ToolName.GREP),
        ("mcp__fs__read_file", ToolName.READ),
    ])
    def test_known_names(self, name, expected):
        assert normalize_tool_name(name) is expected

    @pytest.mark.parametrize("name", ["WebFetch", "TodoWrite", "", None, "mcp__x__unknown"])
    def test_unknown_names_are_other(self, name):
        assert normalize_tool_name(name) is ToolName.OTHER


# ── truncation ──


class TestRead:
    def test_fifty_line_read_stores_twenty(self):
        activity = ingest("Read", {"file_path": "/p/a.py"}, {"file": {"content": _numbered(50)}})
        preview = activity.result.file_content
        assert activity.state is ActivityState.COMPLETED
        assert activity.tool_name is ToolName.READ
        assert len(preview.lines) == 20
        assert preview.total_lines == 50
        assert preview.hidden_lines == 30
        assert preview.marker == "+30 more lines"
        assert preview.lines[0] == "line 1"
        assert preview.lines[-1] == "line 20"

    def test_short_read_is_not_truncated(self):
        activity = ingest("Read", {"file_path": "/p/a.py"}, "a\nb\n")
        preview = activity.result.file_content
        assert preview.lines == ("a", "b")
        assert preview.total_lines == 2
        assert not preview.is_truncated
        assert preview.marker == ""

    def test_trailing_newline_counts_differ_from_diff_split(self):
        activity = ingest("Read", {"file_path": "/p/a.py"}, "a\n")
        assert activity.result.file_content.total_lines == 1
        assert split_lines("a\n") == ["a", ""]

    def test_plain_content_key(self):
        activity = ingest("Read", {"file_path": "/p/a.py"}, {"content": "x"})
        assert activity.result.file_content.lines == ("x",)

    def test_character_budget_applies_after_line_cap(self):
        limits = TruncationLimits(preview_lines=5, stdout_chars=10)
        text = "\n".join(["abcdef"] * 5)
        activity = ingest("Read", {}, text, limits=limits)
        preview = activity.result.file_content
        assert len(preview.lines) == 5
        assert preview.lines[0] == "abcdef"
        assert preview.lines[1] == "abcd"
        assert preview.lines[2:] == ("", "", "")
        assert preview.truncated_chars == 20
        assert preview.is_truncated

    def test_only_one_family_populated(self):
        activity = ingest("Read", {}, "content")
        assert activity.result.populated_families() == ["file_content"]


class TestBash:
    def test_stdout_and_stderr(self):
        activity = ingest(
            "Bash",
            {"command": "make test"},
            {"stdout": "ok\n", "stderr": "warn", "interrupted": False},
        )
        assert activity.result.stdout.lines == ("ok",)
        assert activity.result.stderr == "warn"
        assert activity.result.populated_families() == ["output"]
        assert activity.summary_text == "make test"

    def test_stderr_capped(self):
        activity = ingest("Bash", {"command": "x"}, {"stdout": "", "stderr": "e" * 900})
        stderr = activity.result.stderr
        assert stderr.startswith("e" * 500)
        assert stderr.endswith("(+400 chars)")
        assert activity.result.stdout is None

    def test_stdout_line_cap(self):
        activity = ingest("Bash", {"command": "seq 100"}, {"stdout": _numbered(100)})
        assert len(activity.result.stdout.lines) == 20
        assert activity.result.stdout.total_lines == 100

    def test_interrupted(self):
        activity = ingest("Bash", {"command": "sleep 9"}, {"stdout": "", "interrupted": True})
        assert activity.result.interrupted is True
        assert activity.detail_summary == "Interrupted"

    def test_error_dict_keeps_output(self):
        activity = ingest(
            "Bash", {"command": "false"}, {"stdout": "", "stderr": "boom"}, is_error=True,
        )
        assert activity.state is ActivityState.FAILED
        assert activity.failure is FailureReason.TOOL_ERROR
        assert activity.result.stderr == "boom"

    def test_string_result_goes_to_stdout(self):
        activity = ingest("Bash", {"command": "echo hi"}, "hi")
        assert activity.result.stdout.lines == ("hi",)


class TestListing:
    def test_glob_caps_filenames(self):
        names = [f"src/f{i}.py" for i in range(40)]
        activity = ingest("Glob", {"pattern": "**/*.py"}, {"filenames": names, "numFiles": 40})
        listing = activity.result.filenames
        assert len(listing.names) == 15
        assert listing.total == 40
        assert listing.hidden == 25
        assert activity.summary_text == "Search **/*.py — 40 files"

    def test_grep_newline_string(self):
        activity = ingest("Grep", {"pattern": "TODO"}, "a.py\nb.py\n\n")
        assert activity.result.filenames.names == ("a.py", "b.py")
        assert activity.result.filenames.total == 2

    def test_understated_total_is_ignored(self):
        activity = ingest("Glob", {}, {"filenames": ["a", "b", "c"], "numFiles": 1})
        assert activity.result.filenames.total == 3


class TestWrite:
    def test_preview_from_input(self):
        activity = ingest("Write", {"file_path": "/p/new.py", "content": _numbered(30)}, "ok")
        assert len(activity.result.file_content.lines) == 20
        assert activity.result.file_content.total_lines == 30
        assert activity.summary_text == "Write new.py"


class TestEdit:
    def test_diff_from_content(self):
        activity = ingest(
            "Edit",
            {"file_path": "/p/m.py", "old_string": "b", "new_string": "x"},
            {},
            content=("a\nb\nc", "a\nx\nc"),
        )
        assert activity.state is ActivityState.COMPLETED
        kinds = [line.kind for line in activity.result.diff_lines]
        assert kinds == [
            DiffLineKind.CONTEXT,
            DiffLineKind.REMOVED,
            DiffLineKind.ADDED,
            DiffLineKind.CONTEXT,
        ]
        assert activity.detail_summary == "1 added, 1 removed"
        assert activity.result.populated_families() == ["diff_lines"]

    def test_missing_content(self):
        activity = ingest("Edit", {"file_path": "/p/m.py"}, {}, content=None)
        assert activity.state is ActivityState.FAILED
        assert activity.failure is FailureReason.MISSING_CONTENT
        assert activity.result.diff_lines is None
        assert activity.result.populated_families() == []
        assert activity.detail_summary == "Missing content"

    def test_binary_content(self):
        activity = ingest(
            "Edit", {"file_path": "/p/blob.bin"}, {}, content=(b"\x00\x01", b"\x00\x02"),
        )
        assert activity.state is ActivityState.FAILED
        assert activity.failure is FailureReason.DIFF_UNAVAILABLE
        assert activity.result.diff_lines is None


class TestOtherAndErrors:
    def test_unknown_tool_is_other(self):
        activity = ingest("WebFetch", {"url": "https://example.com"}, {"status": 200})
        assert activity.tool_name is ToolName.OTHER
        assert activity.raw_tool_name == "WebFetch"
        assert activity.state is ActivityState.COMPLETED
        assert activity.icon == "wrench"
        assert activity.summary_text == "WebFetch"
        assert '"status": 200' in activity.result.stdout.text

    def test_tool_error_recorded(self):
        activity = ingest("Read", {"file_path": "/nope"}, "File not found", is_error=True)
        assert activity.state is ActivityState.FAILED
        assert activity.failure is FailureReason.TOOL_ERROR
        assert activity.result.error == "File not found"
        assert activity.result.populated_families() == ["error"]

    def test_activity_id_is_kept(self):
        activity = ingest("Read", {}, "x", activity_id="tool-7")
        assert activity.id == "tool-7"


class TestMerge:
    def test_completion_merges_into_running_record(self):
        running = start_activity("Bash", {"command": "ls"}, "t1")
        assert running.state is ActivityState.RUNNING
        done = ingest("Bash", {"command": "ls", "description": "list"}, "a\nb", activity_id="t1")
        running.merge(done)
        assert running.id == "t1"
        assert running.state is ActivityState.COMPLETED
        assert running.input.description == "list"
        assert running.result.stdout.lines == ("a", "b")

    def test_finished_record_rejects_merge(self):
        done = ingest("Read", {}, "x")
        with pytest.raises(ValueError):
            done.merge(ingest("Read", {}, "y"))

    def test_default_state_is_pending(self):
        assert ToolActivity(tool_name=ToolName.OTHER).state is ActivityState.PENDING
