"""
Project layout for agate.

All state lives in the project directory:

    GOAL.md                    what to build (written by a human)
    .ai/interview.md           clarifying questions and answers
    .ai/design/overview.md     design overview
    .ai/design/decisions.md    technical decisions
    .ai/skills/*.md            skill guidelines, optional YAML frontmatter
    .ai/sprints/NN-slug.md     sprint plans
    .ai/logs/                  agent invocation logs
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

GOAL_FILE = "GOAL.md"
AI_DIR = ".ai"
INTERVIEW_FILE = ".ai/interview.md"
DESIGN_DIR = ".ai/design"
DESIGN_OVERVIEW_FILE = ".ai/design/overview.md"
DESIGN_DECISIONS_FILE = ".ai/design/decisions.md"
SKILLS_DIR = ".ai/skills"
SPRINTS_DIR = ".ai/sprints"


class Project:
    """Paths and simple lookups for one project directory."""

    def __init__(self, project_dir: Path | str):
        self.dir = Path(project_dir)

    @property
    def name(self) -> str:
        return self.dir.resolve().name

    @property
    def goal_path(self) -> Path:
        return self.dir / GOAL_FILE

    @property
    def interview_path(self) -> Path:
        return self.dir / INTERVIEW_FILE

    @property
    def design_dir(self) -> Path:
        return self.dir / DESIGN_DIR

    @property
    def overview_path(self) -> Path:
        return self.dir / DESIGN_OVERVIEW_FILE

    @property
    def decisions_path(self) -> Path:
        return self.dir / DESIGN_DECISIONS_FILE

    @property
    def skills_dir(self) -> Path:
        return self.dir / SKILLS_DIR

    @property
    def sprints_dir(self) -> Path:
        return self.dir / SPRINTS_DIR

    def has_goal(self) -> bool:
        return self.goal_path.exists()

    def ensure_directories(self) -> None:
        for directory in (self.dir / AI_DIR, self.design_dir, self.sprints_dir, self.skills_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def read_optional(self, path: Path) -> str:
        """File content, or "" if it doesn't exist or can't be read."""
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            return ""


# ----------------------------------------------------------------------
# Goal
# ----------------------------------------------------------------------

@dataclass
class Goal:
    content: str
    language: str
    project_type: str


_LANGUAGE_PATTERNS = [
    ("go", re.compile(r'\b(go|golang)\b')),
    ("python", re.compile(r'\b(python|py)\b')),
    ("rust", re.compile(r'\brust\b')),
    ("typescript", re.compile(r'\b(typescript|ts)\b')),
    ("javascript", re.compile(r'\b(javascript|js|node|nodejs)\b')),
    ("java", re.compile(r'\bjava\b')),
    ("ruby", re.compile(r'\bruby\b')),
    ("c++", re.compile(r'(c\+\+|\bcpp\b)')),
]

_PROJECT_TYPES = [
    ("cli", ("cli", "command line", "command-line")),
    ("webapp", ("web app", "webapp", "web application")),
    ("api", ("api", "rest", "graphql")),
    ("library", ("library", "package", "module")),
    ("mobile", ("mobile", "ios", "android")),
]


def detect_language(content: str) -> str:
    lower = content.lower()
    for language, pattern in _LANGUAGE_PATTERNS:
        if pattern.search(lower):
            return language
    return "unknown"


def detect_project_type(content: str) -> str:
    lower = content.lower()
    for project_type, keywords in _PROJECT_TYPES:
        if any(k in lower for k in keywords):
            return project_type
    return "general"


def parse_goal(path: Path) -> Goal:
    """Read GOAL.md.

    Raises:
        OSError: if the file can't be read
    """
    content = Path(path).read_text(encoding="utf-8")
    return Goal(
        content=content,
        language=detect_language(content),
        project_type=detect_project_type(content),
    )


# ----------------------------------------------------------------------
# Skills
# ----------------------------------------------------------------------

@dataclass
class Skill:
    """A skill guideline file."""
    name: str
    content: str
    agents: list[str] = field(default_factory=list)  # Empty = any agent
    phase: str = ""


def parse_skill(name: str, text: str) -> Skill:
    """Split optional YAML frontmatter from a skill body."""
    if not text.startswith("---\n"):
        return Skill(name=name, content=text)

    end = text.find("\n---", 4)
    if end == -1:
        return Skill(name=name, content=text)

    try:
        meta = yaml.safe_load(text[4:end]) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Invalid frontmatter in skill '{name}': {e}")
        return Skill(name=name, content=text)

    if not isinstance(meta, dict):
        meta = {}

    body = text[end + len("\n---"):].lstrip("\n")
    agents = meta.get("agents") or []
    if isinstance(agents, str):
        agents = [a.strip() for a in agents.split(",") if a.strip()]

    return Skill(
        name=name,
        content=body,
        agents=[str(a) for a in agents],
        phase=str(meta.get("phase", "")),
    )


def load_skills(skills_dir: Path) -> list[Skill]:
    """Load every skill in the directory, sorted by name.

    When both _foo.md and foo.md exist, foo.md is appended to the built-in
    _foo as user customizations and not listed on its own.
    """
    skills_dir = Path(skills_dir)
    if not skills_dir.is_dir():
        return []

    skills: dict[str, Skill] = {}
    for path in sorted(skills_dir.glob("*.md")):
        try:
            skills[path.stem] = parse_skill(path.stem, path.read_text(encoding="utf-8"))
        except OSError as e:
            logger.warning(f"Skipping unreadable skill {path}: {e}")

    for name in [n for n in skills if not n.startswith("_")]:
        builtin = skills.get("_" + name)
        if builtin is not None:
            builtin.content += "\n\n## User Customizations\n\n" + skills.pop(name).content

    return [skills[name] for name in sorted(skills)]


def get_skill(skills: list[Skill], name: str) -> Skill | None:
    for skill in skills:
        if skill.name == name:
            return skill
    return None


def can_agent_use_skill(skill: Skill | None, agent_name: str) -> bool:
    if skill is None or not skill.agents:
        return True
    return agent_name in skill.agents
