"""
Phase derivation.

Works out where a project stands purely from which files exist and what their
checkboxes say. There is no state file: every call re-derives everything from
a read-only filesystem view.

Phase lattice (first match wins):
    no GOAL.md                         -> interview
    interview missing or unanswered    -> interview
    no design overview                 -> design
    no design decisions                -> decisions
    no sprint file                     -> sprint
    otherwise                          -> execution
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from rich.markup import escape

from agate.lib import project
from agate.lib.fsview import list_markdown_files
from agate.workflow.sprint import SprintState, find_current_sprint, parse_sprint, truncate_text

logger = logging.getLogger(__name__)

RULE_WIDTH = 40

INTERVIEW_DONE_MARKERS = (
    "- [x] All questions answered",
    "- [X] All questions answered",
    "Status: COMPLETE",  # legacy interview files
)


class Phase(str, Enum):
    INTERVIEW = "interview"
    DESIGN = "design"
    DECISIONS = "decisions"
    SPRINT = "sprint"
    EXECUTION = "execution"

    def __str__(self) -> str:
        return self.value


@dataclass
class StatusResult:
    """Snapshot of the project state."""
    has_goal: bool = False
    phase: Phase = Phase.INTERVIEW

    interview_exists: bool = False
    interview_complete: bool = False

    has_design_overview: bool = False
    has_design_decisions: bool = False
    design_files: list[str] = field(default_factory=list)

    skills: list[str] = field(default_factory=list)

    current_sprint_path: str = ""  # relative, e.g. ".ai/sprints/01-initial.md"
    current_sprint_num: int = 0
    sprint: SprintState | None = None


def parse_interview_status(content: str) -> bool:
    """True when the interview is marked complete (checkbox or legacy marker)."""
    return any(marker in content for marker in INTERVIEW_DONE_MARKERS)


def get_status(fs) -> StatusResult:
    """Derive the project state from a filesystem view."""
    result = StatusResult()

    result.has_goal = fs.exists(project.GOAL_FILE)
    if not result.has_goal:
        result.phase = Phase.INTERVIEW
        return result

    result.interview_exists = fs.exists(project.INTERVIEW_FILE)
    if result.interview_exists:
        try:
            result.interview_complete = parse_interview_status(fs.read_text(project.INTERVIEW_FILE))
        except OSError as e:
            logger.debug(f"Could not read interview: {e}")

    result.has_design_overview = fs.exists(project.DESIGN_OVERVIEW_FILE)
    result.has_design_decisions = fs.exists(project.DESIGN_DECISIONS_FILE)
    result.design_files = list_markdown_files(fs, project.DESIGN_DIR)
    result.skills = list_markdown_files(fs, project.SKILLS_DIR)

    sprint_path, sprint_num = find_current_sprint(fs)
    result.current_sprint_path = sprint_path
    result.current_sprint_num = sprint_num

    if sprint_path:
        try:
            result.sprint = parse_sprint(sprint_path, fs)
        except OSError as e:
            logger.debug(f"Could not load sprint {sprint_path}: {e}")

    result.phase = derive_phase(result)
    return result


def derive_phase(result: StatusResult) -> Phase:
    """Current phase from the detected facts."""
    if not result.has_goal:
        return Phase.INTERVIEW
    if not result.interview_exists or not result.interview_complete:
        return Phase.INTERVIEW
    if not result.has_design_overview:
        return Phase.DESIGN
    if not result.has_design_decisions:
        return Phase.DECISIONS
    if not result.current_sprint_path:
        return Phase.SPRINT
    return Phase.EXECUTION


PLAN_ACTIONS = {
    Phase.INTERVIEW: "Generate interview questions",
    Phase.DESIGN: "Generate design overview",
    Phase.DECISIONS: "Generate technical decisions",
    Phase.SPRINT: "Generate sprint plan",
    Phase.EXECUTION: "Execute sprint tasks",
}


def get_next_plan_action(phase: Phase) -> str:
    return PLAN_ACTIONS.get(phase, "Unknown phase")


def get_next_action(result: StatusResult) -> str:
    """Human-readable next step for a status snapshot."""
    if not result.has_goal:
        return "Create GOAL.md describing what you want to build"

    if result.phase != Phase.EXECUTION:
        if result.phase == Phase.INTERVIEW and result.interview_exists and not result.interview_complete:
            return "Answer questions in .ai/interview.md, then check completion box"
        return f"agate next ({get_next_plan_action(result.phase)})"

    if result.sprint is None:
        return "agate next (generate sprints)"

    if result.sprint.is_complete():
        return "All tasks complete! Check for more sprints."

    sub = result.sprint.get_next_subtask()
    if sub is not None:
        return f"agate next ([{sub.skill}] {truncate_text(sub.text, 30)})"

    return "agate next"


def format_status(project_name: str, result: StatusResult) -> str:
    """Render the status report as Rich markup."""
    lines = [escape(project_name), "=" * RULE_WIDTH, ""]

    def label(name: str) -> str:
        return f"[bold]{name}[/bold]"

    if not result.has_goal:
        lines.append(f"{label('GOAL')}     [yellow](missing)[/yellow] Create GOAL.md to get started")
        lines.append("")
        lines.append("-" * RULE_WIDTH)
        lines.append(f"Next: {escape(get_next_action(result))}")
        return "\n".join(lines) + "\n"

    lines.append(f"{label('GOAL')}     [dim]-> GOAL.md[/dim]")

    if result.phase != Phase.EXECUTION:
        lines.append(f"{label('PHASE')}    {result.phase}")

    if result.interview_exists:
        if result.interview_complete:
            lines.append(f"{label('INTERVIEW')} [green]+ complete[/green]")
        else:
            lines.append(f"{label('INTERVIEW')} [yellow]+ awaiting answers[/yellow]")
            lines.append("         [dim]-> .ai/interview.md[/dim]")
    elif result.phase == Phase.INTERVIEW:
        lines.append(f"{label('INTERVIEW')} [yellow](pending)[/yellow]")

    if result.has_design_overview:
        lines.append(f"{label('DESIGN')}   [green]+ complete[/green]")
        for name in result.design_files:
            lines.append(f"         [dim]-> .ai/design/{escape(name)}[/dim]")
    elif result.phase != Phase.INTERVIEW:
        lines.append(f"{label('DESIGN')}   [yellow](pending)[/yellow]")

    if result.skills:
        lines.append(f"{label('SKILLS')}   [green]+ {len(result.skills)} available[/green]")
        for name in result.skills:
            lines.append(f"         [dim]-> .ai/skills/{escape(name)}[/dim]")

    if result.sprint is not None:
        bar = result.sprint.render_progress_bar(result.current_sprint_num)
        lines.append(f"{label('SPRINT')}   {escape(bar)}")
        if not result.sprint.is_complete():
            sub = result.sprint.get_next_subtask()
            if sub is not None:
                lines.append(f"         Next: {escape(f'[{sub.skill}] {truncate_text(sub.text, 40)}')}")
    elif result.phase in (Phase.SPRINT, Phase.EXECUTION):
        lines.append(f"{label('SPRINT')}   [yellow](pending)[/yellow]")

    lines.append("")
    lines.append("-" * RULE_WIDTH)
    lines.append(f"Next: {escape(get_next_action(result))}")

    return "\n".join(lines) + "\n"
