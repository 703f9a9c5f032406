"""
Prompt templates sent to agents.

Each template in agate/prompts/ is a str.format() string preceded by an HTML
comment naming its variables; the comment never reaches the agent.
PROMPT_VARIABLES is the catalogue of templates and the variables each one
needs, so a caller that forgets one fails before the agent is started.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

from agate.lib.fsview import printable

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"

_HTML_COMMENT_PATTERN = re.compile(r'<!--.*?-->\s*', re.DOTALL)

PROMPT_VARIABLES: dict[str, frozenset[str]] = {
    # planning
    "interview": frozenset({"goal"}),
    "design": frozenset({"goal", "interview_section", "output_path"}),
    "decisions": frozenset({"goal", "design", "output_path"}),
    "sprint": frozenset({
        "goal", "interview_section", "design", "coder_skill",
        "reviewer_skill", "available_skills", "output_path",
    }),
    "next_sprint": frozenset({
        "goal", "design_section", "completed_sprints", "coder_skill",
        "reviewer_skill", "skills_line", "output_path",
    }),
    # execution
    "subtask": frozenset({
        "design_section", "skill_section", "task_text", "subtask_text", "instructions",
    }),
    "implement_instructions": frozenset(),
    "review_instructions": frozenset(),
    "replan": frozenset({
        "skill_section", "design_section", "sprint_path", "sprint_content",
        "task_number", "task_text", "failure_count", "feedback_section",
    }),
    "recovery": frozenset({
        "skill_section", "agent", "error", "log_line",
        "task_text", "subtask_text", "skill",
    }),
}


class PromptError(Exception):
    """Raised when a prompt cannot be loaded or rendered."""
    pass


@lru_cache(maxsize=len(PROMPT_VARIABLES))
def load_prompt(name: str) -> str:
    """Template text for `name` with its header comment removed."""
    if name not in PROMPT_VARIABLES:
        raise PromptError(f"Unknown prompt '{name}'")

    prompt_path = PROMPTS_DIR / f"{name}.md"
    if not prompt_path.exists():
        raise PromptError(f"Prompt template '{name}' not found. Expected file: {prompt_path}")

    logger.debug(f"Loading prompt template: {name}")
    content = prompt_path.read_text(encoding="utf-8")
    return _HTML_COMMENT_PATTERN.sub('', content).lstrip()


def render_prompt(name: str, **kwargs) -> str:
    """Render a template. Every variable it declares must be supplied.

    Bytes from project files that are not valid UTF-8 come out as U+FFFD.
    """
    template = load_prompt(name)

    missing = PROMPT_VARIABLES[name] - kwargs.keys()
    if missing:
        raise PromptError(
            f"Prompt '{name}' is missing variables: {', '.join(sorted(missing))}"
        )

    return printable(template.format(**kwargs))


def build_section(content: str | None, header: str, empty_msg: str | None = None) -> str:
    """A markdown section under `header`, or "" when there is nothing to say."""
    body = content if content else empty_msg
    if body is None:
        return ""
    return f"{header}\n\n{body}\n\n"
