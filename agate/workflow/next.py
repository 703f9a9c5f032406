"""
One step of work: `agate next`.

Derives the phase, then does exactly one thing:

- a planning phase (delegated to agate.workflow.plan)
- one sprint sub-task, with review failures tracked on the task line
- a replan of a task that keeps failing review
- a goal assessment once the current sprint is complete

The sprint file is re-read after anything that may have changed it on disk.
"""

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from agate.agents import (
    AgentError,
    ExecuteOptions,
    ExecuteResult,
    execute_with_logging,
    get_agent_by_name,
    is_review_approved,
    parse_file_blocks,
    resolve_agent,
    select_agent_for_skill,
    write_file_blocks,
)
from agate.lib.agents_config import load_agents_config
from agate.lib.config import AgateConfig, load_config
from agate.lib.fsview import LocalFileSystem
from agate.lib.invocation_log import InvocationLogger, extract_reviewer_feedback, find_last_reviewer_log
from agate.lib.project import Project, can_agent_use_skill, get_skill, load_skills
from agate.lib.prompts import build_section, render_prompt
from agate.workflow.fsm import TaskAction, TaskLifecycle, decide
from agate.workflow.plan import (
    PlanError,
    PlanOptions,
    StepResult,
    accept_document,
    build_design_section,
    execute_plan_phase,
    find_skill_by_pattern,
)
from agate.workflow.sprint import (
    SprintError,
    SprintState,
    extract_sprint_num,
    find_sprint_by_num,
    format_sprint_filename,
    load_sprint_summaries,
    parse_sprint,
    truncate_text,
)
from agate.workflow.status import Phase, get_status

logger = logging.getLogger(__name__)

# Replan and recovery run on this agent unless one is forced with --agent
SUPPORT_AGENT = "claude"

GOAL_COMPLETE_TOKEN = "GOAL_COMPLETE"
NEXT_SPRINT_SLUG = "next"


class NextError(Exception):
    """The step failed; the sprint file may need attention."""


class HumanNeededError(Exception):
    """Automation can't make progress without a person."""


@dataclass
class NextOptions:
    agent: str = ""  # Force this agent for every invocation
    stream: TextIO | None = None  # Echo agent output here (--tail)


def is_implementation_skill(skill: str) -> bool:
    return "coder" in skill or skill == "implement"


def is_reviewer_skill(skill: str) -> bool:
    return skill == "_reviewer" or skill.endswith("-reviewer")


def next_step(project_dir: Path | str, opts: NextOptions | None = None) -> StepResult:
    """Run one step of work.

    Raises:
        HumanNeededError: a task is stuck even after a replan
        NextError: the step could not be carried out
        PlanError: a planning phase failed
        AgentError: no agent could run
    """
    opts = opts or NextOptions()
    proj = Project(project_dir)

    if not proj.has_goal():
        raise NextError("GOAL.md not found. Create a GOAL.md file describing what you want to build")

    fs = LocalFileSystem(proj.dir)
    status = get_status(fs)

    if status.phase != Phase.EXECUTION:
        return execute_plan_phase(proj.dir, PlanOptions(agent=opts.agent, stream=opts.stream))

    if not status.current_sprint_path:
        return StepResult("No sprint files found. Run 'agate next' to continue planning.")

    config = load_config(proj.dir)
    sprint_num = status.current_sprint_num

    try:
        sprint = parse_sprint(status.current_sprint_path, fs)
    except OSError as e:
        raise NextError(f"failed to parse sprint: {e}") from e

    if sprint.is_complete():
        return assess_goal_and_plan_next(proj, sprint_num, opts, config)

    sub = sprint.get_next_subtask()
    if sub is None:
        fixed = sprint.auto_check_orphaned_tasks()
        if fixed:
            print(f"Auto-checked {fixed} task(s) with no remaining sub-tasks")
            sprint = sprint.reload()
            if sprint.is_complete():
                return assess_goal_and_plan_next(proj, sprint_num, opts, config)
            sub = sprint.get_next_subtask()
        if sub is None:
            return StepResult("No more tasks in current sprint.", more_work=False)

    task = sprint.get_task(sub.parent_index)
    invocation_logger = InvocationLogger(proj.dir, sprint_num)
    max_retries = config.max_review_retries

    action = decide(task, max_retries)
    if action == TaskAction.HUMAN:
        TaskLifecycle(sprint, task.index, max_retries).escalate()
        raise HumanNeededError(
            f"task {task.text!r} has failed review {task.failure_count} times (max {max_retries}) "
            "even after replan, human intervention needed"
        )

    if action == TaskAction.REPLAN:
        print("⚠ Review failed too many times. Attempting sprint replan...")
        try:
            return attempt_replan(proj, sprint, task.index, invocation_logger, opts, config)
        except (AgentError, NextError, SprintError) as e:
            raise HumanNeededError(
                f"task {task.text!r} has failed review {task.failure_count} times and replan failed: {e}"
            ) from e

    return execute_subtask(proj, sprint, task.index, sub.index, invocation_logger, opts, config)


# ----------------------------------------------------------------------
# Sub-task execution
# ----------------------------------------------------------------------

def build_subtask_prompt(task_text: str, skill_name: str, subtask_text: str, design: str, skill_content: str) -> str:
    if is_implementation_skill(skill_name):
        instructions = render_prompt("implement_instructions")
    elif "reviewer" in skill_name:
        instructions = render_prompt("review_instructions")
    else:
        instructions = "Complete the sub-task described above.\n"

    return render_prompt(
        "subtask",
        design_section=build_section(design, "## Design Context"),
        skill_section=build_section(skill_content, "## Skill Guidelines"),
        task_text=task_text,
        subtask_text=subtask_text,
        instructions=instructions,
    )


def _choose_agent_name(skill_name: str, skills, opts: NextOptions, config: AgateConfig) -> str:
    name = opts.agent or config.default_agent or select_agent_for_skill(skill_name)
    skill = get_skill(skills, skill_name)
    if not opts.agent and skill is not None and not can_agent_use_skill(skill, name):
        name = skill.agents[0]
    return name


def execute_subtask(
    proj: Project,
    sprint: SprintState,
    task_index: int,
    subtask_index: int,
    invocation_logger: InvocationLogger,
    opts: NextOptions,
    config: AgateConfig,
    is_recovery: bool = False,
) -> StepResult:
    """Run one sub-task and record the outcome in the sprint file.

    On an agent failure a recovery agent gets one chance to repair the
    environment before the sub-task is retried.
    """
    task = sprint.get_task(task_index)
    sub = sprint.get_subtask(task_index, subtask_index)

    skills = load_skills(proj.skills_dir)
    skill = get_skill(skills, sub.skill)
    agent = resolve_agent(
        _choose_agent_name(sub.skill, skills, opts, config),
        load_agents_config(proj.dir),
        config.agent_timeout,
    )

    prompt = build_subtask_prompt(
        task.text,
        sub.skill,
        sub.text,
        proj.read_optional(proj.overview_path),
        skill.content if skill is not None else "",
    )

    sprint_num = extract_sprint_num(posixpath.basename(sprint.file_path))
    print(sprint.render_progress_bar(sprint_num, task.index, sub.index))

    result = execute_with_logging(agent, prompt, proj.dir, ExecuteOptions(
        logger=invocation_logger,
        phase="implement",
        task=sub.text,
        task_index=sub.index,
        skill=sub.skill,
        summary=truncate_text(sub.text, 50),
        stream=opts.stream,
    ))

    if result.error is not None:
        if is_recovery:
            raise NextError(f"failed to execute sub-task (after recovery): {result.error}") from result.error
        print("⚠ Agent execution failed. Attempting recovery...")
        try:
            attempt_recovery(proj, task.text, sub.text, sub.skill, sub.index, result, invocation_logger, opts, config)
        except (AgentError, NextError) as e:
            print(f"  Recovery failed: {e}")
            raise NextError(f"failed to execute sub-task: {result.error}") from result.error
        print("  Recovery complete. Retrying original task...")
        return execute_subtask(
            proj, sprint.reload(), task_index, subtask_index, invocation_logger, opts, config, is_recovery=True
        )

    if is_implementation_skill(sub.skill):
        written = write_file_blocks(proj.dir, parse_file_blocks(result.output))
        for path in written:
            print(f"  Wrote: {path}")
        if written:
            print(f"  Wrote {len(written)} file(s)")

    if is_reviewer_skill(sub.skill) and not is_review_approved(result.output):
        return _handle_review_failure(sprint, task_index, subtask_index, config.max_review_retries)

    try:
        sprint.check_subtask(task_index, subtask_index)
    except SprintError as e:
        raise NextError(f"failed to mark sub-task complete: {e}") from e

    sprint = sprint.reload()
    if sprint.all_subtasks_complete(task_index):
        try:
            TaskLifecycle(sprint, task_index, config.max_review_retries).approve()
        except SprintError as e:
            logger.warning(f"Failed to mark task complete: {e}")
        print(f"✓ Task complete: {task.text}")

    sprint = sprint.reload()
    if sprint.is_complete():
        _, total = sprint.get_progress()
        return StepResult(f"Sprint complete! All {total} tasks done.")

    return StepResult(f"Sub-task complete ({sprint.get_overall_percent()}%). Run 'agate next' to continue.")


def _handle_review_failure(sprint: SprintState, task_index: int, subtask_index: int, max_retries: int) -> StepResult:
    """Add a failure glyph and reopen this and every later checked sub-task."""
    print("⚠ Review failed. Adding failure marker and unchecking tasks for retry...")

    lifecycle = TaskLifecycle(sprint, task_index, max_retries)
    try:
        lifecycle.review_failed()
    except SprintError as e:
        logger.warning(f"Failed to add failure marker: {e}")

    for index in range(subtask_index, len(sprint.get_task(task_index).subtasks)):
        if not sprint.get_subtask(task_index, index).checked:
            continue
        try:
            sprint.uncheck_subtask(task_index, index)
        except SprintError as e:
            logger.warning(f"Failed to uncheck sub-task {index}: {e}")

    if lifecycle.state == "exhausted":
        print(f"  Task has failed review {lifecycle.task.failure_count} times; it will be replanned next")

    return StepResult("Review failed. Tasks unchecked for retry. Run 'agate next' to try again.")


def _support_agent(proj: Project, opts: NextOptions, config: AgateConfig, purpose: str):
    name = opts.agent or SUPPORT_AGENT
    agent = get_agent_by_name(name, load_agents_config(proj.dir), config.planning_timeout)
    if agent is None or not agent.available():
        raise NextError(f"{name} agent not available for {purpose}")
    return agent


def attempt_recovery(
    proj: Project,
    task_text: str,
    subtask_text: str,
    skill_name: str,
    subtask_index: int,
    failed: ExecuteResult,
    invocation_logger: InvocationLogger,
    opts: NextOptions,
    config: AgateConfig,
) -> None:
    """Ask a recovery agent to diagnose and fix the environment after a failure.

    Raises:
        NextError: no recovery agent, or the recovery agent itself failed
    """
    agent = _support_agent(proj, opts, config, "recovery")
    skill = get_skill(load_skills(proj.skills_dir), "_recover")

    log_line = f"**Log file**: {failed.log_path}\n" if failed.log_path else ""
    prompt = render_prompt(
        "recovery",
        skill_section=f"{skill.content}\n\n" if skill is not None and skill.content else "",
        agent=failed.agent_name,
        error=failed.error,
        log_line=log_line,
        task_text=task_text,
        subtask_text=subtask_text,
        skill=skill_name,
    )

    result = execute_with_logging(agent, prompt, proj.dir, ExecuteOptions(
        logger=invocation_logger,
        phase="recover",
        task=subtask_text,
        task_index=subtask_index,
        skill="_recover",
        summary="Recovery: " + truncate_text(subtask_text, 40),
        stream=opts.stream,
    ))

    if result.error is not None:
        raise NextError(f"recovery agent failed: {result.error}") from result.error


# ----------------------------------------------------------------------
# Replan
# ----------------------------------------------------------------------

def attempt_replan(
    proj: Project,
    sprint: SprintState,
    task_index: int,
    invocation_logger: InvocationLogger,
    opts: NextOptions,
    config: AgateConfig,
) -> StepResult:
    """Have a replanner rewrite the sub-tasks of a task that keeps failing review.

    The replanner edits the sprint file itself, so the sprint is re-read
    afterwards and the task found again by its normalized text.

    Raises:
        NextError: replanner unavailable or failed, or the task vanished
    """
    agent = _support_agent(proj, opts, config, "replan")
    task = sprint.get_task(task_index)
    skill = get_skill(load_skills(proj.skills_dir), "_replanner")

    feedback = ""
    last_review = find_last_reviewer_log(proj.dir, invocation_logger.sprint_num)
    if last_review is not None:
        feedback = extract_reviewer_feedback(last_review)

    try:
        sprint_content = sprint.fs.read_text(sprint.file_path)
    except OSError as e:
        raise NextError(f"failed to read sprint file: {e}") from e

    prompt = render_prompt(
        "replan",
        skill_section=f"{skill.content}\n\n" if skill is not None and skill.content else "",
        design_section=build_design_section(proj),
        sprint_path=proj.dir / sprint.file_path,
        sprint_content=sprint_content,
        task_number=task.index + 1,
        task_text=task.text,
        failure_count=task.failure_count,
        feedback_section=build_section(feedback, "## Reviewer Feedback (from last review)"),
    )

    result = execute_with_logging(agent, prompt, proj.dir, ExecuteOptions(
        logger=invocation_logger,
        phase="replan",
        task=task.text,
        task_index=task.index,
        skill="_replanner",
        summary="Replan: " + truncate_text(task.text, 40),
        stream=opts.stream,
    ))
    if result.error is not None:
        raise NextError(f"replan agent failed: {result.error}") from result.error

    try:
        sprint = sprint.reload()
    except OSError as e:
        raise NextError(f"failed to re-parse sprint after replan: {e}") from e

    replanned = sprint.find_task_by_text(task.text)
    if replanned is None:
        raise NextError(f"could not find task {task.text!r} after replan")

    lifecycle = TaskLifecycle(sprint, replanned.index, config.max_review_retries)
    try:
        if not (lifecycle.can("replan") and lifecycle.replan()):
            logger.warning(f"Task already carries a replan marker: {replanned.text}")
    except SprintError as e:
        logger.warning(f"Failed to update replan markers: {e}")

    print("  Replan complete. Sprint file updated. Run 'agate next' to retry.")
    return StepResult("Sprint replanned. Run 'agate next' to retry the task.")


# ----------------------------------------------------------------------
# Sprint completion
# ----------------------------------------------------------------------

def _format_completed_sprints(summaries) -> str:
    return "".join(f"### Sprint {s.num}\n\n{s.content}\n\n" for s in summaries)


def assess_goal_and_plan_next(
    proj: Project,
    completed_num: int,
    opts: NextOptions,
    config: AgateConfig,
) -> StepResult:
    """After a sprint completes: continue, declare the goal met, or plan more.

    Raises:
        NextError: the agent failed or wrote no valid next sprint
    """
    next_num = completed_num + 1
    fs = LocalFileSystem(proj.dir)

    if find_sprint_by_num(fs, next_num):
        return StepResult(f"Sprint {completed_num} complete! Run 'agate next' to start sprint {next_num}.")

    try:
        goal = proj.goal_path.read_text(encoding="utf-8")
    except OSError as e:
        raise NextError(f"failed to read GOAL.md: {e}") from e

    skill_names = [
        s.name for s in load_skills(proj.skills_dir)
        if not s.name.startswith("_") or s.name == "_reviewer"
    ]
    output_path = proj.sprints_dir / format_sprint_filename(next_num, NEXT_SPRINT_SLUG)

    prompt = render_prompt(
        "next_sprint",
        goal=goal,
        design_section=build_section(proj.read_optional(proj.overview_path), "## Design"),
        completed_sprints=_format_completed_sprints(load_sprint_summaries(fs, completed_num)),
        coder_skill=find_skill_by_pattern(skill_names, "coder", "coder"),
        reviewer_skill=find_skill_by_pattern(skill_names, "reviewer", "_reviewer"),
        skills_line=f"Available skills: {', '.join(skill_names)}\n\n" if skill_names else "",
        output_path=output_path,
    )

    agent = resolve_agent(
        opts.agent or config.default_agent or select_agent_for_skill("_planner"),
        load_agents_config(proj.dir),
        config.planning_timeout,
    )

    result = execute_with_logging(agent, prompt, proj.dir, ExecuteOptions(
        logger=InvocationLogger(proj.dir, completed_num),
        phase="assess",
        task="Assess goal and plan next sprint",
        task_index=0,
        skill="_planner",
        summary="Assessing goal completion",
        stream=opts.stream,
    ))
    if result.error is not None:
        raise NextError(f"failed to assess goal: {result.error}") from result.error

    if GOAL_COMPLETE_TOKEN in result.output:
        return StepResult(
            f"Sprint {completed_num} complete. All sprints done - goal is fully met.",
            more_work=False,
        )

    try:
        accept_document(output_path, result.output)
    except PlanError as e:
        raise NextError(f"agent did not write a valid next sprint: {e}") from e

    return StepResult(f"Sprint {completed_num} complete! Next sprint planned. Run 'agate next' to continue.")
