"""
Planning phases: interview, design, decisions, first sprint.

Each call to execute_plan_phase() runs exactly one phase, the one derived
from the files on disk, and then returns. The agent is expected to write the
design and sprint documents itself; the written file is validated before the
phase counts as done.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from agate.agents import (
    Agent,
    DocumentError,
    ExecuteOptions,
    NoAgentsError,
    execute_with_logging,
    get_agent_by_name,
    get_available_agents,
    validate_markdown_content,
)
from agate.agents.output import check_markdown_text
from agate.lib.agents_config import load_agents_config
from agate.lib.config import load_config
from agate.lib.fsview import LocalFileSystem
from agate.lib.invocation_log import InvocationLogger
from agate.lib.project import Project, load_skills, parse_goal
from agate.lib.prompts import build_section, render_prompt
from agate.workflow.sprint import format_sprint_filename
from agate.workflow.status import Phase, get_status, parse_interview_status

logger = logging.getLogger(__name__)

FIRST_SPRINT_SLUG = "initial"

QUESTION_PREFIX = "QUESTION:"
OPTIONS_PREFIX = "OPTIONS:"
ANSWER_PREFIX = "**Answer**:"


class PlanError(Exception):
    """A planning phase could not complete."""


@dataclass
class StepResult:
    """Outcome of one `agate next` step."""
    message: str
    more_work: bool = True


@dataclass
class PlanOptions:
    agent: str = ""  # Preferred agent name, empty = automatic
    stream: TextIO | None = None


# ----------------------------------------------------------------------
# Interview document
# ----------------------------------------------------------------------

@dataclass
class InterviewQuestion:
    title: str
    question: str = ""
    options: list[str] = field(default_factory=list)


def _strip_bold(line: str) -> str:
    if line.startswith("**"):
        line = line[2:]
    if line.endswith("**"):
        line = line[:-2]
    return line.strip()


def parse_interview_questions(response: str) -> list[InterviewQuestion]:
    """Parse QUESTION:/OPTIONS: blocks out of an agent response.

    Lines after a QUESTION: line are joined into the question text until the
    next QUESTION:. Markdown bold around the markers is tolerated.
    """
    questions = []
    current: InterviewQuestion | None = None

    for raw in response.split("\n"):
        line = raw.strip()
        stripped = _strip_bold(line)

        if stripped.startswith(QUESTION_PREFIX):
            if current is not None:
                questions.append(current)
            title = stripped[len(QUESTION_PREFIX):].strip()
            current = InterviewQuestion(title=title.removesuffix("**").strip())
        elif stripped.startswith(OPTIONS_PREFIX) and current is not None:
            options = stripped[len(OPTIONS_PREFIX):].split(",")
            current.options.extend(o.strip() for o in options if o.strip())
        elif current is not None and line:
            current.question = f"{current.question} {line}" if current.question else line

    if current is not None:
        questions.append(current)

    return questions


def format_interview(questions: list[InterviewQuestion]) -> str:
    """Render questions as .ai/interview.md with an unchecked completion box."""
    parts = [
        "# Project Interview\n\n",
        "Answer each question, then check the completion box at the bottom.\n\n",
        "## Questions\n\n",
    ]

    for i, q in enumerate(questions, 1):
        parts.append(f"### Q{i}: {q.title}\n\n")
        parts.append(f"{q.question}\n\n")
        if q.options:
            parts.extend(f"- [ ] {opt}\n" for opt in q.options)
            parts.append("\n")
        parts.append(f"{ANSWER_PREFIX} \n\n")

    parts.append("---\n")
    parts.append("- [ ] All questions answered (check when complete)\n")
    return "".join(parts)


def parse_interview_answers(content: str) -> dict[str, str]:
    """Map question title to answer text from a filled-in interview.

    An answer is the text after **Answer**: on the same line, or the
    non-blank lines that follow it, up to a '---' or 'Status:' line.
    """
    answers: dict[str, str] = {}
    question = ""
    in_answer = False

    for line in content.split("\n"):
        if line.startswith("### Q"):
            _, sep, title = line.partition(": ")
            if sep:
                question = title
            in_answer = False
        elif line.startswith(ANSWER_PREFIX):
            answer = line[len(ANSWER_PREFIX):].strip()
            if answer:
                answers[question] = answer
                in_answer = False
            else:
                in_answer = True
        elif line.startswith("---") or line.startswith("Status:"):
            in_answer = False
        elif in_answer and line.strip():
            if question in answers:
                answers[question] += "\n" + line.strip()
            else:
                answers[question] = line.strip()

    return answers


def format_interview_context(answers: dict[str, str]) -> str:
    if not answers:
        return ""
    lines = ["## Interview Answers\n\n"]
    for question, answer in answers.items():
        lines.append(f"**{question}**: {answer}\n\n")
    return "".join(lines)


# ----------------------------------------------------------------------
# Helpers shared with the execution step
# ----------------------------------------------------------------------

def find_skill_by_pattern(skill_names: list[str], pattern: str, fallback: str) -> str:
    """First skill name containing pattern, or fallback."""
    for name in skill_names:
        if pattern in name:
            return name
    return fallback


def select_planning_agent(project_dir: Path, preferred: str = "") -> Agent:
    """Preferred agent, then DEFAULT_AGENT from settings, then first available.

    Raises:
        NoAgentsError: nothing available
    """
    config = load_config(project_dir)
    agents_config = load_agents_config(project_dir)

    for name in (preferred, config.default_agent):
        if not name:
            continue
        agent = get_agent_by_name(name, agents_config, config.planning_timeout)
        if agent is not None and agent.available():
            return agent
        logger.info(f"Agent '{name}' not available")

    agents = get_available_agents(agents_config, config.planning_timeout)
    if not agents:
        raise NoAgentsError()
    return agents[0]


def accept_document(path: Path, output: str) -> None:
    """Validate an agent-written document.

    Agents without write access (or the dummy agent) answer with the document
    as their output; when the file is missing and the output itself is a
    valid document, it is saved to path.

    Raises:
        PlanError: neither the file nor the output is a valid document
    """
    if not path.exists() and output.strip():
        try:
            check_markdown_text(output, path)
        except DocumentError:
            pass
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(output.strip() + "\n", encoding="utf-8")
            logger.info(f"Saved agent output to {path}")

    try:
        validate_markdown_content(path)
    except DocumentError as e:
        raise PlanError(str(e)) from e


def _run(agent: Agent, prompt: str, proj: Project, opts: PlanOptions, exec_opts: ExecuteOptions, action: str) -> str:
    exec_opts.logger = InvocationLogger(proj.dir, 0)
    exec_opts.stream = opts.stream
    result = execute_with_logging(agent, prompt, proj.dir, exec_opts)
    if result.error is not None:
        raise PlanError(f"failed to {action}: {result.error}") from result.error
    return result.output


# ----------------------------------------------------------------------
# Phases
# ----------------------------------------------------------------------

def execute_plan_phase(project_dir: Path | str, opts: PlanOptions | None = None) -> StepResult:
    """Run the one planning phase the project is currently in.

    Raises:
        PlanError: missing GOAL.md, agent failure, or a bad document
        NoAgentsError: no agent available
    """
    opts = opts or PlanOptions()
    proj = Project(project_dir)

    if not proj.has_goal():
        raise PlanError("GOAL.md not found. Create a GOAL.md file describing what you want to build")

    try:
        proj.ensure_directories()
    except OSError as e:
        raise PlanError(f"failed to create directories: {e}") from e

    phase = get_status(LocalFileSystem(proj.dir)).phase
    logger.debug(f"Planning phase: {phase}")

    if phase == Phase.INTERVIEW:
        return execute_interview_phase(proj, opts)
    if phase == Phase.DESIGN:
        return execute_design_phase(proj, opts)
    if phase == Phase.DECISIONS:
        return execute_decisions_phase(proj, opts)
    if phase == Phase.SPRINT:
        return execute_sprint_phase(proj, opts)

    return StepResult("Planning complete. Run 'agate next' to execute sprint tasks.")


def execute_interview_phase(proj: Project, opts: PlanOptions) -> StepResult:
    path = proj.interview_path

    if path.exists():
        if not parse_interview_status(path.read_text(encoding="utf-8")):
            return StepResult(
                f"Interview questions pending. Please answer the questions in:\n  {path}\n\n"
                "Check the completion box at the bottom when done, then run 'agate next' again."
            )
        return StepResult("Interview complete. Run 'agate next' to generate design.")

    goal = parse_goal(proj.goal_path)
    agent = select_planning_agent(proj.dir, opts.agent)

    prompt = render_prompt("interview", goal=goal.content)
    output = _run(agent, prompt, proj, opts, ExecuteOptions(
        phase="interview",
        task="Generate project interview questions",
        task_index=0,
        skill="_interviewer",
        summary="Generating interview questions",
        safe_mode=True,
    ), "generate interview")

    questions = parse_interview_questions(output)
    if not questions:
        raise PlanError("no interview questions generated")

    try:
        path.write_text(format_interview(questions), encoding="utf-8")
    except OSError as e:
        raise PlanError(f"failed to write interview: {e}") from e

    return StepResult(
        f"Interview questions generated. Please answer the questions in:\n  {path}\n\n"
        "Check the completion box when done, then run 'agate next' again."
    )


def _interview_section(proj: Project) -> str:
    content = proj.read_optional(proj.interview_path)
    if not content:
        return ""
    return format_interview_context(parse_interview_answers(content))


def _read_design(proj: Project) -> str:
    try:
        return proj.overview_path.read_text(encoding="utf-8")
    except OSError as e:
        raise PlanError(f"failed to read design: {e}") from e


def execute_design_phase(proj: Project, opts: PlanOptions) -> StepResult:
    goal = parse_goal(proj.goal_path)
    agent = select_planning_agent(proj.dir, opts.agent)
    path = proj.overview_path

    prompt = render_prompt(
        "design",
        goal=goal.content,
        interview_section=_interview_section(proj),
        output_path=path,
    )
    output = _run(agent, prompt, proj, opts, ExecuteOptions(
        phase="design",
        task="Generate design overview",
        task_index=1,
        skill="_planner",
        summary="Generating design overview",
    ), "generate design")

    accept_document(path, output)
    return StepResult("Design overview generated. Run 'agate next' to generate technical decisions.")


def execute_decisions_phase(proj: Project, opts: PlanOptions) -> StepResult:
    goal = parse_goal(proj.goal_path)
    design = _read_design(proj)
    agent = select_planning_agent(proj.dir, opts.agent)
    path = proj.decisions_path

    prompt = render_prompt("decisions", goal=goal.content, design=design, output_path=path)
    output = _run(agent, prompt, proj, opts, ExecuteOptions(
        phase="decisions",
        task="Generate technical decisions",
        task_index=2,
        skill="_planner",
        summary="Generating technical decisions",
    ), "generate decisions")

    accept_document(path, output)
    return StepResult("Technical decisions generated. Run 'agate next' to generate sprint plan.")


def execute_sprint_phase(proj: Project, opts: PlanOptions) -> StepResult:
    goal = parse_goal(proj.goal_path)
    design = _read_design(proj)
    agent = select_planning_agent(proj.dir, opts.agent)
    path = proj.sprints_dir / format_sprint_filename(1, FIRST_SPRINT_SLUG)

    skill_names = [s.name for s in load_skills(proj.skills_dir)]
    available = list(skill_names)
    if "_reviewer" not in available:
        available.append("_reviewer")

    prompt = render_prompt(
        "sprint",
        goal=goal.content,
        interview_section=_interview_section(proj),
        design=design,
        coder_skill=find_skill_by_pattern(skill_names, "coder", "coder"),
        reviewer_skill=find_skill_by_pattern(skill_names, "reviewer", "_reviewer"),
        available_skills=", ".join(available),
        output_path=path,
    )
    output = _run(agent, prompt, proj, opts, ExecuteOptions(
        phase="sprint_plan",
        task="Generate sprint 1 plan",
        task_index=3,
        skill="_planner",
        summary="Generating sprint plan",
    ), "generate sprint")

    accept_document(path, output)
    return StepResult("Sprint plan generated. Run 'agate next' to start implementation.")


def build_design_section(proj: Project) -> str:
    """'## Design Context' section from the overview, or empty."""
    return build_section(proj.read_optional(proj.overview_path), "## Design Context")
