"""Tests for agate.lib.invocation_log module."""

from agate.lib.invocation_log import (
    InvocationLogger,
    SequenceCounter,
    extract_reviewer_feedback,
    find_last_reviewer_log,
    get_logs_dir,
    list_logs,
)


class TestSequenceCounter:
    """Tests for SequenceCounter."""

    def test_counts_from_start(self):
        counter = SequenceCounter()
        assert [counter.next(), counter.next()] == [1, 2]

    def test_continues_after_existing_logs(self, tmp_path):
        (tmp_path / "004-implement-01-coder-claude.md").write_text("x")
        (tmp_path / "012-implement-01-_reviewer-claude.md").write_text("x")
        (tmp_path / "notes.md").write_text("x")
        assert SequenceCounter.from_directory(tmp_path).next() == 13

    def test_missing_directory(self, tmp_path):
        assert SequenceCounter.from_directory(tmp_path / "nope").next() == 1


class TestInvocationLogger:
    """Tests for InvocationLogger and Invocation."""

    def test_filename_layout(self, tmp_path):
        inv_logger = InvocationLogger(tmp_path, 2)
        inv = inv_logger.start("implement", "Build it", 1, "claude", "coder")
        assert inv.path == tmp_path / ".ai" / "logs" / "sprint-002" / "001-implement-01-coder-claude.md"
        assert inv.path.parent.is_dir()

    def test_two_loggers_do_not_collide(self, tmp_path):
        first = InvocationLogger(tmp_path, 1).start("plan", "interview", 0, "dummy", "_interviewer")
        first.close()
        second = InvocationLogger(tmp_path, 1).start("plan", "interview", 0, "dummy", "_interviewer")
        assert second.path != first.path
        assert second.path.name.startswith("002-")

    def test_close_writes_markdown(self, tmp_path):
        inv = InvocationLogger(tmp_path, 1).start("implement", "Build it", 0, "claude", "coder")
        inv.prompt = "do the thing"
        inv.response = "done"
        inv.files_written = ["hello.txt"]
        inv.close()

        content = inv.path.read_text()
        assert content.startswith("# Agent Invocation Log")
        assert "| Task | 0 - Build it |" in content
        assert "| Status | success |" in content
        assert "## Prompt\n\n```\ndo the thing\n```" in content
        assert "## Files Written\n\n- hello.txt" in content
        assert "## Error" not in content

    def test_error_recorded(self, tmp_path):
        inv = InvocationLogger(tmp_path, 1).start("implement", "Build it", 0, "claude", "coder")
        inv.set_error("timed out")
        inv.close()
        content = inv.path.read_text()
        assert "| Status | error |" in content
        assert "## Error\n\n```\ntimed out\n```" in content


class TestReviewerLogs:
    """Tests for finding reviewer feedback in logs."""

    def _log(self, project_dir, skill, response):
        inv = InvocationLogger(project_dir, 1).start("implement", "Build it", 0, "claude", skill)
        inv.response = response
        inv.close()
        return inv.path

    def test_list_logs_sorted(self, tmp_path):
        self._log(tmp_path, "coder", "a")
        self._log(tmp_path, "_reviewer", "b")
        names = [p.name for p in list_logs(tmp_path, 1)]
        assert names == ["001-implement-00-coder-claude.md", "002-implement-00-_reviewer-claude.md"]
        assert list_logs(tmp_path, 9) == []

    def test_finds_last_reviewer(self, tmp_path):
        self._log(tmp_path, "_reviewer", "first")
        self._log(tmp_path, "coder", "code")
        last = self._log(tmp_path, "_reviewer", "second")
        self._log(tmp_path, "coder", "more code")
        assert find_last_reviewer_log(tmp_path, 1) == last

    def test_no_reviewer(self, tmp_path):
        self._log(tmp_path, "coder", "code")
        assert find_last_reviewer_log(tmp_path, 1) is None

    def test_extract_feedback(self, tmp_path):
        path = self._log(tmp_path, "_reviewer", "REJECTED\nMissing tests.")
        assert extract_reviewer_feedback(path) == "REJECTED\nMissing tests."

    def test_extract_feedback_missing_file(self, tmp_path):
        assert extract_reviewer_feedback(get_logs_dir(tmp_path, 1) / "nope.md") == ""
