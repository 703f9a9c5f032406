"""Tests for agate.lib.checkbox module."""

import pytest

from agate.lib.checkbox import (
    FAILURE_GLYPH,
    REPLAN_GLYPH,
    LineNumberError,
    TaskLineError,
    add_glyph,
    check_line,
    clear_failure_glyphs,
    normalize_task_text,
    parse_checkboxes,
    uncheck_line,
)

X = FAILURE_GLYPH
R = REPLAN_GLYPH

DOC = """# Sprint 1

Some intro text.

- [ ] Set up project
  - [x] coder: Create skeleton
  - [ ] _reviewer: Validate setup

- [X] Write docs

- [ ] Add feature
  - [ ] coder: Write logic
"""


class TestParseCheckboxes:
    """Tests for the lenient task/subtask parser."""

    def test_tasks_and_subtasks(self):
        tasks = parse_checkboxes(DOC)
        assert [t.text for t in tasks] == ["Set up project", "Write docs", "Add feature"]
        assert [t.index for t in tasks] == [0, 1, 2]
        assert [len(t.subtasks) for t in tasks] == [2, 0, 1]

    def test_line_numbers_are_one_based(self):
        tasks = parse_checkboxes(DOC)
        assert tasks[0].line_number == 5
        assert tasks[0].subtasks[0].line_number == 6

    def test_uppercase_x_is_checked(self):
        tasks = parse_checkboxes(DOC)
        assert tasks[1].checked is True
        assert tasks[0].checked is False

    def test_subtask_fields(self):
        sub = parse_checkboxes(DOC)[0].subtasks[1]
        assert sub.skill == "_reviewer"
        assert sub.text == "Validate setup"
        assert sub.checked is False
        assert sub.index == 1
        assert sub.parent_index == 0

    def test_glyphs_counted_and_stripped(self):
        tasks = parse_checkboxes(f"- [ ] {X}{R}{X} Retry me\n")
        assert tasks[0].failure_count == 2
        assert tasks[0].replan_count == 1
        assert tasks[0].text == "Retry me"

    def test_glyphs_without_space(self):
        tasks = parse_checkboxes(f"- [ ] {X}Retry me")
        assert tasks[0].failure_count == 1
        assert tasks[0].text == "Retry me"

    def test_subtask_before_any_task_ignored(self):
        tasks = parse_checkboxes("  - [ ] coder: orphan\n- [ ] Real task\n")
        assert len(tasks) == 1
        assert tasks[0].subtasks == []

    def test_inert_lines_do_not_close_task(self):
        content = "- [ ] Task\n\nSome prose\n  - [ ] coder: still attached\n"
        tasks = parse_checkboxes(content)
        assert len(tasks[0].subtasks) == 1

    def test_subtask_needs_two_space_indent_and_colon(self):
        content = "- [ ] Task\n    - [ ] coder: four spaces\n  - [ ] no colon here\n"
        assert parse_checkboxes(content)[0].subtasks == []

    def test_empty_document(self):
        assert parse_checkboxes("") == []

    def test_crlf_line_endings(self):
        tasks = parse_checkboxes("- [ ] Task\r\n  - [x] coder: do it\r\n")
        assert tasks[0].text == "Task"
        assert tasks[0].subtasks[0].skill == "coder"
        assert tasks[0].subtasks[0].text == "do it"
        assert tasks[0].subtasks[0].checked


class TestLineEditors:
    """Tests for the pure line editors."""

    def test_check_line_keeps_carriage_return(self):
        assert check_line("- [ ] Task\r\n- [ ] Next\r\n", 1) == "- [x] Task\r\n- [ ] Next\r\n"

    def test_check_line(self):
        new = check_line(DOC, 7)
        assert new.split("\n")[6] == "  - [x] _reviewer: Validate setup"

    def test_check_line_only_touches_target(self):
        new = check_line(DOC, 7)
        old_lines = DOC.split("\n")
        new_lines = new.split("\n")
        assert len(old_lines) == len(new_lines)
        assert [i for i, (a, b) in enumerate(zip(old_lines, new_lines)) if a != b] == [6]

    def test_check_already_checked_is_noop(self):
        assert check_line(DOC, 6) == DOC

    def test_check_line_without_box_is_noop(self):
        assert check_line(DOC, 1) == DOC

    def test_uncheck_line(self):
        new = uncheck_line(DOC, 6)
        assert new.split("\n")[5] == "  - [ ] coder: Create skeleton"

    def test_uncheck_uppercase(self):
        new = uncheck_line(DOC, 9)
        assert new.split("\n")[8] == "- [ ] Write docs"

    def test_trailing_newline_preserved(self):
        assert check_line("- [ ] a\n", 1) == "- [x] a\n"
        assert check_line("- [ ] a", 1) == "- [x] a"

    @pytest.mark.parametrize("line_number", [0, -1, 100])
    def test_line_number_out_of_range(self, line_number):
        with pytest.raises(LineNumberError):
            check_line(DOC, line_number)


class TestGlyphs:
    """Tests for failure and replan glyph editing."""

    def test_add_first_failure(self):
        assert add_glyph("- [ ] Task", 1, X) == f"- [ ] {X}Task"

    def test_add_appends_to_run(self):
        assert add_glyph(f"- [ ] {X}Task", 1, X) == f"- [ ] {X}{X}Task"
        assert add_glyph(f"- [ ] {X}Task", 1, R) == f"- [ ] {X}{R}Task"

    @pytest.mark.parametrize("sequence", [
        [X, X, X],
        [R, R],
        [X, R, X],
        [R, X, X, R],
        [X, X, R, R, X],
        [R, R, R, X],
    ])
    def test_interleaved_adds_keep_order_and_counts(self, sequence):
        content = "- [ ] Task\n"
        for glyph in sequence:
            content = add_glyph(content, 1, glyph)

        assert content == f"- [ ] {''.join(sequence)}Task\n"
        task = parse_checkboxes(content)[0]
        assert task.failure_count == sequence.count(X)
        assert task.replan_count == sequence.count(R)
        assert task.text == "Task"

    def test_added_glyphs_round_trip_through_parser(self):
        content = add_glyph(add_glyph("- [ ] Task", 1, X), 1, X)
        task = parse_checkboxes(content)[0]
        assert task.failure_count == 2
        assert task.text == "Task"

    def test_add_to_non_task_line(self):
        with pytest.raises(TaskLineError) as exc_info:
            add_glyph(DOC, 6, X)
        assert exc_info.value.line_number == 6
        assert "coder" in exc_info.value.line

    def test_add_unknown_glyph(self):
        with pytest.raises(ValueError):
            add_glyph("- [ ] Task", 1, "*")

    def test_clear_failures_keeps_replan(self):
        new = clear_failure_glyphs(f"- [ ] {X}{R}{X} Task", 1)
        assert new == f"- [ ] {R}Task"
        task = parse_checkboxes(new)[0]
        assert task.failure_count == 0
        assert task.replan_count == 1

    def test_clear_failures_without_glyphs(self):
        assert clear_failure_glyphs("- [x] Task", 1) == "- [x] Task"

    def test_clear_failures_on_prose(self):
        with pytest.raises(TaskLineError):
            clear_failure_glyphs("Just prose", 1)


class TestNormalizeTaskText:
    """Tests for normalize_task_text."""

    def test_strips_glyphs_and_whitespace(self):
        assert normalize_task_text(f"  {X}{R} Add   login\tform ") == "Add login form"

    def test_plain_text_unchanged(self):
        assert normalize_task_text("Add login") == "Add login"
