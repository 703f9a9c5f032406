"""Tests for agate.workflow.fsm module."""

import logging

import pytest
from transitions import MachineError

from agate.lib.checkbox import FAILURE_GLYPH, REPLAN_GLYPH, Task
from agate.lib.fsview import MemoryFileSystem
from agate.workflow.fsm import (
    STATES,
    TaskAction,
    TaskLifecycle,
    decide,
    initial_state,
)
from agate.workflow.sprint import SprintWriteError, parse_sprint, parse_sprint_content

X = FAILURE_GLYPH
R = REPLAN_GLYPH

PATH = ".ai/sprints/01-initial.md"


def make_sprint(task_line: str):
    fs = MemoryFileSystem({PATH: f"# Sprint\n\n{task_line}\n  - [ ] coder: do it\n  - [ ] _reviewer: check it\n"})
    return parse_sprint(PATH, fs), fs


class TestStates:
    """Tests for state definitions and derivation."""

    def test_all_states_defined(self):
        assert set(STATES) == {"pending", "failing", "exhausted", "replanned", "escalated", "done"}

    @pytest.mark.parametrize("checked,failures,replans,expected", [
        (True, 0, 0, "done"),
        (True, 3, 0, "done"),
        (False, 0, 0, "pending"),
        (False, 1, 0, "failing"),
        (False, 3, 0, "exhausted"),
        (False, 5, 1, "exhausted"),
        (False, 0, 1, "replanned"),
        (False, 2, 1, "failing"),
    ])
    def test_initial_state(self, checked, failures, replans, expected):
        task = Task(index=0, text="t", checked=checked, line_number=1,
                    failure_count=failures, replan_count=replans)
        assert initial_state(task, max_retries=3) == expected


class TestDecide:
    """Tests for the replan/escalate policy."""

    def _task(self, failures, replans):
        return Task(index=0, text="t", checked=False, line_number=1,
                    failure_count=failures, replan_count=replans)

    def test_below_threshold_executes(self):
        assert decide(self._task(2, 0), 3) == TaskAction.EXECUTE

    def test_threshold_replans(self):
        assert decide(self._task(3, 0), 3) == TaskAction.REPLAN

    def test_threshold_after_replan_needs_human(self):
        assert decide(self._task(3, 1), 3) == TaskAction.HUMAN

    def test_custom_threshold(self):
        assert decide(self._task(1, 0), 1) == TaskAction.REPLAN
        assert decide(self._task(4, 0), 5) == TaskAction.EXECUTE


class TestTransitions:
    """Tests for TaskLifecycle transitions and their sprint side effects."""

    def test_review_failed_adds_glyph(self):
        sprint, fs = make_sprint("- [ ] Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        assert lifecycle.state == "pending"

        lifecycle.review_failed()

        assert lifecycle.state == "failing"
        assert f"- [ ] {X}Build it" in fs.files[PATH]

    def test_third_failure_exhausts(self):
        sprint, fs = make_sprint(f"- [ ] {X}{X}Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        assert lifecycle.state == "failing"

        lifecycle.review_failed()

        assert lifecycle.state == "exhausted"
        assert lifecycle.task.failure_count == 3

    def test_replan_clears_failures(self):
        sprint, fs = make_sprint(f"- [ ] {X}{X}{X}Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        assert lifecycle.state == "exhausted"

        assert lifecycle.replan() is True

        assert lifecycle.state == "replanned"
        assert f"- [ ] {R}Build it" in fs.files[PATH]

    def test_replan_only_once(self):
        sprint, fs = make_sprint(f"- [ ] {X}{X}{X}{R}Build it")
        before = fs.files[PATH]
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)

        assert lifecycle.replan() is False

        assert lifecycle.state == "exhausted"
        assert fs.files[PATH] == before

    def test_escalate(self):
        sprint, _ = make_sprint(f"- [ ] {X}{X}{X}{R}Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        lifecycle.escalate()
        assert lifecycle.state == "escalated"

    def test_approve_checks_task(self):
        sprint, fs = make_sprint(f"- [ ] {X}Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)

        lifecycle.approve()

        assert lifecycle.state == "done"
        assert sprint.get_task(0).checked
        assert f"- [x] {X}Build it" in fs.files[PATH]

    def test_approve_not_allowed_when_exhausted(self):
        sprint, _ = make_sprint(f"- [ ] {X}{X}{X}Build it")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        assert not lifecycle.can("approve")
        with pytest.raises(MachineError):
            lifecycle.approve()

    def test_failed_write_aborts_transition(self):
        sprint = parse_sprint_content("- [ ] Build it\n")
        lifecycle = TaskLifecycle(sprint, 0, max_retries=3)
        with pytest.raises(SprintWriteError):
            lifecycle.review_failed()
        assert lifecycle.state == "pending"


class TestCallbacks:
    """Tests for transition logging and the on_transition hook."""

    def test_on_transition_called(self):
        sprint, _ = make_sprint("- [ ] Build it")
        seen = []
        lifecycle = TaskLifecycle(sprint, 0, on_transition=lambda *a: seen.append(a))

        lifecycle.review_failed()

        assert seen == [("pending", "failing", "review_failed")]

    def test_transition_logged(self, caplog):
        caplog.set_level(logging.INFO)
        sprint, _ = make_sprint("- [ ] Build it")
        TaskLifecycle(sprint, 0).approve()
        assert "[FSM] task 0 (Build it): pending -> done (approve)" in caplog.text
