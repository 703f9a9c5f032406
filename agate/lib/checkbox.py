"""
Checkbox document model for sprint files.

A sprint file is ordinary markdown in which two kinds of lines carry state:

    - [ ] ❌🔄Task description            top-level task
      - [x] skill-name: subtask text      subtask (exactly two spaces)

Everything else (headings, prose, blank lines) is inert and passes through
unchanged. Parsing is lenient: unrecognized lines are skipped. Editing is
strict: a targeted line that no longer has the expected shape raises instead
of being patched by guesswork.

All editors take and return the full document text and touch only the
addressed line.
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

FAILURE_GLYPH = "\u274c"  # ❌
REPLAN_GLYPH = "\U0001f504"  # 🔄

UNCHECKED_BOX = "[ ]"
CHECKED_BOX = "[x]"
CHECKED_BOX_UPPER = "[X]"

_GLYPHS = f"(?:{FAILURE_GLYPH}|{REPLAN_GLYPH})*"

TASK_RE = re.compile(rf'^- \[([ xX])\] ({_GLYPHS})\s*(.*)$')
SUBTASK_RE = re.compile(r'^  - \[([ xX])\] ([^:]+): (.*)$')

# Edit form of TASK_RE: keeps whatever follows the glyph run verbatim
TASK_EDIT_RE = re.compile(rf'^(- \[[ xX]\]) ({_GLYPHS})(.*)$')
TASK_CLEAR_RE = re.compile(rf'^(- \[[ xX]\]) ({_GLYPHS})\s*(.*)$')

_WHITESPACE_RE = re.compile(r'\s+')


class CheckboxError(Exception):
    """A targeted edit could not be applied to the document."""


class LineNumberError(CheckboxError):
    """Line number falls outside the document."""

    def __init__(self, line_number: int, line_count: int):
        self.line_number = line_number
        self.line_count = line_count
        super().__init__(f"Invalid line number: {line_number} (document has {line_count} lines)")


class TaskLineError(CheckboxError):
    """Addressed line is not a task line any more."""

    def __init__(self, line_number: int, line: str):
        self.line_number = line_number
        self.line = line
        super().__init__(f"Could not parse task line {line_number}: {line!r}")


@dataclass
class SubTask:
    """A skill-tagged subtask nested under a task."""
    index: int
    skill: str
    text: str
    checked: bool
    line_number: int  # 1-based
    parent_index: int


@dataclass
class Task:
    """A top-level sprint task."""
    index: int
    text: str
    checked: bool
    line_number: int  # 1-based
    failure_count: int = 0
    replan_count: int = 0
    subtasks: list[SubTask] = field(default_factory=list)


def _is_checked(mark: str) -> bool:
    return mark.lower() == "x"


def parse_checkboxes(content: str) -> list[Task]:
    """Parse task and subtask lines from sprint markdown.

    Subtask lines attach to the most recently seen task; a subtask line before
    any task is ignored. Inert lines do not close the open task.
    """
    tasks: list[Task] = []
    current: Task | None = None

    for lineno, line in enumerate(content.split("\n"), 1):
        task_match = TASK_RE.match(line)
        if task_match:
            markers = task_match.group(2)
            current = Task(
                index=len(tasks),
                text=task_match.group(3).strip(),
                checked=_is_checked(task_match.group(1)),
                line_number=lineno,
                failure_count=markers.count(FAILURE_GLYPH),
                replan_count=markers.count(REPLAN_GLYPH),
            )
            tasks.append(current)
            continue

        if current is None:
            continue

        sub_match = SUBTASK_RE.match(line)
        if sub_match:
            current.subtasks.append(SubTask(
                index=len(current.subtasks),
                skill=sub_match.group(2).strip(),
                text=sub_match.group(3).strip(),
                checked=_is_checked(sub_match.group(1)),
                line_number=lineno,
                parent_index=current.index,
            ))

    logger.debug(f"Parsed {len(tasks)} tasks")
    return tasks


def _split(content: str, line_number: int) -> list[str]:
    lines = content.split("\n")
    if line_number < 1 or line_number > len(lines):
        raise LineNumberError(line_number, len(lines))
    return lines


def _replace_line(lines: list[str], line_number: int, new_line: str) -> str:
    lines[line_number - 1] = new_line
    return "\n".join(lines)


def check_line(content: str, line_number: int) -> str:
    """Turn the first `[ ]` on a line into `[x]`.

    Returns the content unchanged when the line has no unchecked box.
    """
    lines = _split(content, line_number)
    line = lines[line_number - 1]
    new_line = line.replace(UNCHECKED_BOX, CHECKED_BOX, 1)
    if new_line == line:
        return content
    return _replace_line(lines, line_number, new_line)


def uncheck_line(content: str, line_number: int) -> str:
    """Turn the first `[x]` (or `[X]`) on a line into `[ ]`."""
    lines = _split(content, line_number)
    line = lines[line_number - 1]
    new_line = line.replace(CHECKED_BOX, UNCHECKED_BOX, 1)
    if new_line == line:
        new_line = line.replace(CHECKED_BOX_UPPER, UNCHECKED_BOX, 1)
    if new_line == line:
        return content
    return _replace_line(lines, line_number, new_line)


def add_glyph(content: str, line_number: int, glyph: str) -> str:
    """Append one glyph to the end of a task line's glyph run.

    Raises:
        LineNumberError: line outside the document
        TaskLineError: line is not a task line
    """
    if glyph not in (FAILURE_GLYPH, REPLAN_GLYPH):
        raise ValueError(f"Unknown marker glyph: {glyph!r}")

    lines = _split(content, line_number)
    line = lines[line_number - 1]
    match = TASK_EDIT_RE.match(line)
    if not match:
        raise TaskLineError(line_number, line)

    box, markers, rest = match.groups()
    return _replace_line(lines, line_number, f"{box} {markers}{glyph}{rest}")


def clear_failure_glyphs(content: str, line_number: int) -> str:
    """Remove every failure glyph from a task line, keeping replan glyphs."""
    lines = _split(content, line_number)
    line = lines[line_number - 1]
    match = TASK_CLEAR_RE.match(line)
    if not match:
        raise TaskLineError(line_number, line)

    box, markers, rest = match.groups()
    markers = markers.replace(FAILURE_GLYPH, "")
    if markers:
        new_line = f"{box} {markers}{rest}"
    else:
        new_line = f"{box} {rest}"
    return _replace_line(lines, line_number, new_line)


def normalize_task_text(text: str) -> str:
    """Reduce task text to a comparable form: no glyphs, single spaces."""
    text = text.strip()
    text = text.replace(FAILURE_GLYPH, "").replace(REPLAN_GLYPH, "")
    text = _WHITESPACE_RE.sub(" ", text)
    return text.strip()
