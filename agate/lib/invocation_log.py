"""
Per-invocation agent logs.

Every agent call is recorded as a markdown file under
.ai/logs/sprint-NNN/SSS-phase-TT-skill-agent.md, where SSS is a sequence
number handed out by a SequenceCounter owned by the logger. The counter
starts after the highest sequence already on disk so runs never overwrite
each other's logs.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

LOGS_DIR = Path(".ai") / "logs"

_SEQ_RE = re.compile(r'^(\d+)-')


class SequenceCounter:
    """Monotonic sequence numbers for log filenames."""

    def __init__(self, start: int = 0):
        self.value = start

    def next(self) -> int:
        self.value += 1
        return self.value

    @classmethod
    def from_directory(cls, directory: Path) -> "SequenceCounter":
        """Counter that continues after the highest sequence in directory."""
        highest = 0
        if directory.is_dir():
            for path in directory.glob("*.md"):
                match = _SEQ_RE.match(path.name)
                if match:
                    highest = max(highest, int(match.group(1)))
        return cls(highest)


def get_logs_dir(project_dir: Path, sprint_num: int) -> Path:
    return Path(project_dir) / LOGS_DIR / f"sprint-{sprint_num:03d}"


@dataclass
class Invocation:
    """One agent invocation being recorded."""
    path: Path
    sprint: int
    phase: str
    task: str
    task_index: int
    agent: str
    skill: str
    timestamp: datetime = field(default_factory=lambda: datetime.now().astimezone())
    prompt: str = ""
    response: str = ""
    status: str = ""
    error: str = ""
    files_written: list[str] = field(default_factory=list)
    notes: str = ""
    duration: float = 0.0
    _started: float = field(default_factory=time.monotonic, repr=False)

    def set_error(self, error) -> None:
        self.error = str(error)
        self.status = "error"

    def close(self) -> None:
        """Write the formatted log to disk."""
        self.duration = time.monotonic() - self._started
        if not self.status:
            self.status = "success"
        self.path.write_text(format_invocation(self), encoding="utf-8", errors="surrogateescape")


def _fenced(text: str) -> str:
    if not text.endswith("\n"):
        text += "\n"
    return f"```\n{text}```\n\n"


def format_invocation(inv: Invocation) -> str:
    """Render an invocation as markdown."""
    parts = [
        "# Agent Invocation Log\n\n",
        "## Metadata\n\n",
        "| Field | Value |\n",
        "|-------|-------|\n",
        f"| Timestamp | {inv.timestamp.isoformat(timespec='seconds')} |\n",
        f"| Sprint | {inv.sprint} |\n",
        f"| Phase | {inv.phase} |\n",
        f"| Task | {inv.task_index} - {inv.task} |\n",
        f"| Agent | {inv.agent} |\n",
        f"| Skill | {inv.skill} |\n",
        f"| Duration | {inv.duration:.2f}s |\n",
        f"| Status | {inv.status} |\n",
        "\n",
        "## Prompt\n\n",
        _fenced(inv.prompt),
        "## Response\n\n",
        _fenced(inv.response),
    ]

    if inv.files_written:
        parts.append("## Files Written\n\n")
        parts.extend(f"- {f}\n" for f in inv.files_written)
        parts.append("\n")

    if inv.error:
        parts.append("## Error\n\n")
        parts.append(_fenced(inv.error))

    if inv.notes:
        parts.append(f"## Notes\n\n{inv.notes}\n")

    return "".join(parts)


class InvocationLogger:
    """Creates invocation logs for one sprint."""

    def __init__(self, project_dir: Path, sprint_num: int, counter: SequenceCounter | None = None):
        self.project_dir = Path(project_dir)
        self.sprint_num = sprint_num
        self.log_dir = get_logs_dir(self.project_dir, sprint_num)
        self.counter = counter if counter is not None else SequenceCounter.from_directory(self.log_dir)

    def start(self, phase: str, task: str, task_index: int, agent: str, skill: str) -> Invocation:
        """Begin logging an invocation.

        Raises:
            OSError: if the log directory can't be created
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        seq = self.counter.next()
        filename = f"{seq:03d}-{phase}-{task_index:02d}-{skill}-{agent}.md"
        return Invocation(
            path=self.log_dir / filename,
            sprint=self.sprint_num,
            phase=phase,
            task=task,
            task_index=task_index,
            agent=agent,
            skill=skill,
        )


def list_logs(project_dir: Path, sprint_num: int) -> list[Path]:
    """All log files for a sprint, sorted by name (sequence order)."""
    log_dir = get_logs_dir(project_dir, sprint_num)
    if not log_dir.is_dir():
        return []
    return sorted(p for p in log_dir.iterdir() if p.is_file() and p.suffix == ".md")


def find_last_reviewer_log(project_dir: Path, sprint_num: int) -> Path | None:
    """Most recent log written by a reviewer skill, or None."""
    last = None
    for path in list_logs(project_dir, sprint_num):
        if "_reviewer" in path.name or "-reviewer-" in path.name:
            last = path
    return last


def extract_reviewer_feedback(log_path: Path) -> str:
    """Text of the fenced block under '## Response' in a log file."""
    try:
        content = Path(log_path).read_text(encoding="utf-8")
    except OSError as e:
        logger.debug(f"Could not read reviewer log {log_path}: {e}")
        return ""

    in_response = False
    in_block = False
    feedback = []

    for line in content.split("\n"):
        if line.startswith("## Response"):
            in_response = True
            continue
        if not in_response:
            continue
        if line.startswith("## "):
            break
        if line.startswith("```"):
            if in_block:
                break
            in_block = True
            continue
        if in_block:
            feedback.append(line)

    return "\n".join(feedback)
