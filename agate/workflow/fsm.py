"""Task lifecycle state machine using transitions library.

Tracks one sprint task through review failures, replanning and escalation.
The sprint file is the persisted state: failure and replan glyphs on the
task line are written by the transition callbacks, and the initial state is
read back from them.

    pending -> failing (1..N-1 failed reviews) -> exhausted (N failures)
    exhausted -> replanned (failures cleared, replan glyph added)
    exhausted -> escalated (already replanned once; a human takes over)
    pending / failing / replanned -> done (task checked)

Usage:
    from agate.workflow.fsm import TaskLifecycle

    lifecycle = TaskLifecycle(sprint, task.index, max_retries=3)
    lifecycle.review_failed()
    if lifecycle.state == "exhausted":
        lifecycle.replan()
"""

import logging
from enum import Enum
from typing import Callable

from transitions import Machine

from agate.lib.checkbox import Task
from agate.workflow.sprint import SprintState

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

STATES = [
    "pending",
    "failing",
    "exhausted",
    "replanned",
    "escalated",
    "done",
]

# Transitions are tried in order; the first whose conditions pass wins.
TRANSITIONS = [
    # Failed review: one more failure glyph
    {"trigger": "review_failed", "source": ["pending", "failing", "replanned"], "dest": "exhausted",
     "conditions": "_will_exhaust", "before": "_record_failure"},
    {"trigger": "review_failed", "source": ["pending", "failing", "replanned"], "dest": "failing",
     "before": "_record_failure"},

    # Replan: allowed once. Sources beyond "exhausted" cover a replanner that
    # rewrote the task line and dropped its glyphs.
    {"trigger": "replan", "source": ["exhausted", "failing", "pending"], "dest": "replanned",
     "conditions": "_can_replan", "before": "_apply_replan"},

    {"trigger": "escalate", "source": "exhausted", "dest": "escalated"},

    {"trigger": "approve", "source": ["pending", "failing", "replanned"], "dest": "done",
     "before": "_check_task"},
]


class TaskAction(str, Enum):
    EXECUTE = "execute"
    REPLAN = "replan"
    HUMAN = "human"


def initial_state(task: Task, max_retries: int = DEFAULT_MAX_RETRIES) -> str:
    """Lifecycle state implied by a parsed task's checkbox and glyphs."""
    if task.checked:
        return "done"
    if task.failure_count >= max_retries:
        return "exhausted"
    if task.failure_count > 0:
        return "failing"
    if task.replan_count > 0:
        return "replanned"
    return "pending"


def decide(task: Task, max_retries: int = DEFAULT_MAX_RETRIES) -> TaskAction:
    """What to do with the current task before running its next subtask."""
    if task.failure_count >= max_retries:
        if task.replan_count > 0:
            return TaskAction.HUMAN
        return TaskAction.REPLAN
    return TaskAction.EXECUTE


class TaskLifecycle:
    """State machine for one task of a sprint.

    Wraps the transitions library with sprint-specific logic:
    - Derives the initial state from the task's glyphs
    - Writes glyph changes to the sprint file before each state change
    - Logs all transitions
    """

    def __init__(
        self,
        sprint: SprintState,
        task_index: int,
        max_retries: int = DEFAULT_MAX_RETRIES,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """
        Args:
            sprint: Sprint backed by a file; mutated by the callbacks
            task_index: Index of the task within the sprint
            max_retries: Failed reviews before the task is exhausted
            on_transition: Optional callback(from_state, to_state, trigger)
        """
        self.sprint = sprint
        self.task_index = task_index
        self.max_retries = max_retries
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=initial_state(sprint.get_task(task_index), max_retries),
            auto_transitions=False,
            send_event=True,
            after_state_change="on_state_change",
        )

    @property
    def task(self) -> Task:
        return self.sprint.get_task(self.task_index)

    # Conditions

    def _will_exhaust(self, event) -> bool:
        return self.task.failure_count + 1 >= self.max_retries

    def _can_replan(self, event) -> bool:
        return self.task.replan_count == 0

    # Side effects (run before the state changes; a SprintError aborts the transition)

    def _record_failure(self, event) -> None:
        self.sprint.add_failure(self.task_index)

    def _apply_replan(self, event) -> None:
        self.sprint.clear_failures(self.task_index)
        self.sprint.add_replan_marker(self.task_index)

    def _check_task(self, event) -> None:
        self.sprint.check_task(self.task_index)

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[FSM] task {self.task_index} ({self.task.text}): {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)
