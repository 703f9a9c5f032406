"""
Sprint state machine.

Wraps the checkbox document model with task/subtask semantics: which subtask
runs next, when a task or sprint is complete, progress accounting and the
failure/replan bookkeeping primitives.

A SprintState is one parse of one sprint file. Every mutator writes the whole
document back before it updates the in-memory copy, so `content` always
matches the last successful write. Agents edit sprint files directly, so any
state held across an agent invocation must be replaced with reload().

Usage:
    from agate.workflow.sprint import parse_sprint

    sprint = parse_sprint(".ai/sprints/01-initial.md", fs)
    sub = sprint.get_next_subtask()
    sprint.check_subtask(sub.parent_index, sub.index)
"""

import logging
import posixpath
import re
from dataclasses import dataclass

from agate.lib import checkbox
from agate.lib.checkbox import SubTask, Task, normalize_task_text
from agate.lib.fsview import LocalFileSystem, list_markdown_files
from agate.lib.project import SPRINTS_DIR

logger = logging.getLogger(__name__)

SPRINT_NUM_RE = re.compile(r'^(\d+)')

RUNNING_MARK = "o"
TASK_TEXT_WIDTH = 40


class SprintError(Exception):
    """Base class for sprint mutation failures."""


class InvalidIndexError(SprintError):
    """Task or subtask index out of range."""

    def __init__(self, kind: str, index: int):
        self.kind = kind
        self.index = index
        super().__init__(f"Invalid {kind} index: {index}")


class SprintParseError(SprintError):
    """A targeted line no longer has the expected shape."""


class SprintWriteError(SprintError):
    """The updated document could not be persisted."""


class SprintState:
    """Parsed sprint document plus its backing file."""

    def __init__(self, file_path: str = "", content: str = "", tasks: list[Task] | None = None, fs=None):
        self.file_path = file_path
        self.content = content
        self.tasks = tasks if tasks is not None else checkbox.parse_checkboxes(content)
        self.fs = fs

    def __repr__(self) -> str:
        return f"SprintState({self.file_path!r}, tasks={len(self.tasks)})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_index: int) -> Task:
        if task_index < 0 or task_index >= len(self.tasks):
            raise InvalidIndexError("task", task_index)
        return self.tasks[task_index]

    def get_subtask(self, task_index: int, subtask_index: int) -> SubTask:
        task = self.get_task(task_index)
        if subtask_index < 0 or subtask_index >= len(task.subtasks):
            raise InvalidIndexError("sub-task", subtask_index)
        return task.subtasks[subtask_index]

    def get_next_subtask(self) -> SubTask | None:
        """First unchecked subtask of the first unchecked task.

        Returns None when that task has no subtasks or all of them are
        checked; auto_check_orphaned_tasks() resolves those.
        """
        for task in self.tasks:
            if task.checked:
                continue
            for sub in task.subtasks:
                if not sub.checked:
                    return sub
            return None
        return None

    def get_current_task(self) -> Task | None:
        for task in self.tasks:
            if not task.checked:
                return task
        return None

    def find_task_by_text(self, text: str) -> Task | None:
        """Find a task by normalized text (survives reordering and glyph edits)."""
        wanted = normalize_task_text(text)
        for task in self.tasks:
            if normalize_task_text(task.text) == wanted:
                return task
        return None

    def is_complete(self) -> bool:
        """True when every task is checked. An empty sprint is never complete."""
        return bool(self.tasks) and all(task.checked for task in self.tasks)

    def all_subtasks_complete(self, task_index: int) -> bool:
        """True when the task has subtasks and all are checked."""
        if task_index < 0 or task_index >= len(self.tasks):
            return False
        subtasks = self.tasks[task_index].subtasks
        return bool(subtasks) and all(sub.checked for sub in subtasks)

    def get_progress(self) -> tuple[int, int]:
        """(completed, total) over top-level tasks."""
        completed = sum(1 for task in self.tasks if task.checked)
        return completed, len(self.tasks)

    def get_subtask_progress(self) -> tuple[int, int]:
        """(completed, total) over the current task's subtasks."""
        task = self.get_current_task()
        if task is None:
            return 0, 0
        completed = sum(1 for sub in task.subtasks if sub.checked)
        return completed, len(task.subtasks)

    def get_overall_progress(self) -> tuple[int, int]:
        """(completed, total) where a task without subtasks counts as one unit
        and a task with subtasks counts one unit per subtask."""
        completed = 0
        total = 0
        for task in self.tasks:
            if not task.subtasks:
                total += 1
                completed += 1 if task.checked else 0
                continue
            for sub in task.subtasks:
                total += 1
                completed += 1 if sub.checked else 0
        return completed, total

    def get_overall_percent(self) -> int:
        completed, total = self.get_overall_progress()
        return completed * 100 // total if total else 0

    def render_progress_bar(self, sprint_num: int, running_task: int = -1, running_subtask: int = -1) -> str:
        """Compact progress line, e.g. "[xx. xo. ...] 45% Sprint 1 - Add login".

        Tasks without subtasks are grouped into one run of single characters;
        every task with subtasks gets its own run, one character per subtask.
        """
        segments: list[str] = []
        singles = ""

        for task in self.tasks:
            if not task.subtasks:
                singles += "x" if task.checked else "."
                continue

            if singles:
                segments.append(singles)
                singles = ""

            chars = []
            for sub in task.subtasks:
                if sub.checked:
                    chars.append("x")
                elif task.index == running_task and sub.index == running_subtask:
                    chars.append(RUNNING_MARK)
                else:
                    chars.append(".")
            segments.append("".join(chars))

        if singles:
            segments.append(singles)

        bar = "[" + " ".join(segments) + "]"
        pct = self.get_overall_percent()

        current = self.get_current_task()
        if current is not None:
            return f"{bar} {pct}% Sprint {sprint_num} - {truncate_text(current.text, TASK_TEXT_WIDTH)}"
        return f"{bar} {pct}% Sprint {sprint_num} - Complete"

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def _commit(self, new_content: str) -> None:
        """Persist new content, then adopt it in memory."""
        if new_content == self.content:
            return
        if not self.file_path or self.fs is None:
            raise SprintWriteError("Sprint has no backing file; parsed from content only")

        try:
            self.fs.write_text(self.file_path, new_content)
        except OSError as e:
            raise SprintWriteError(f"Failed to write {self.file_path}: {e}") from e

        self.content = new_content
        self.tasks = checkbox.parse_checkboxes(new_content)

    def _line_holds(self, item: Task | SubTask) -> bool:
        lines = self.content.split("\n")
        if not 0 < item.line_number <= len(lines):
            return False
        line = lines[item.line_number - 1]
        if isinstance(item, SubTask):
            match = checkbox.SUBTASK_RE.match(line)
            return match is not None and (match.group(2).strip(), match.group(3).strip()) == (item.skill, item.text)
        match = checkbox.TASK_RE.match(line)
        return match is not None and match.group(3).strip() == item.text

    def _edit(self, editor, item: Task | SubTask, *args) -> None:
        """Apply a line editor to the line holding `item`.

        Raises SprintParseError when that line no longer holds the item, so an
        edit addressed by a stale line number never lands on another line.
        """
        if not self._line_holds(item):
            raise SprintParseError(f"Line {item.line_number} no longer holds {item.text!r}")
        try:
            new_content = editor(self.content, item.line_number, *args)
        except checkbox.CheckboxError as e:
            raise SprintParseError(str(e)) from e
        self._commit(new_content)

    def check_subtask(self, task_index: int, subtask_index: int) -> None:
        """Mark a subtask complete. No-op if already checked."""
        sub = self.get_subtask(task_index, subtask_index)
        self._edit(checkbox.check_line, sub)

    def uncheck_subtask(self, task_index: int, subtask_index: int) -> None:
        """Mark a subtask incomplete (after a failed review)."""
        sub = self.get_subtask(task_index, subtask_index)
        self._edit(checkbox.uncheck_line, sub)

    def check_task(self, task_index: int) -> None:
        """Mark a top-level task complete. No-op if already checked."""
        task = self.get_task(task_index)
        self._edit(checkbox.check_line, task)

    def add_failure(self, task_index: int) -> None:
        """Append one failure glyph to a task."""
        task = self.get_task(task_index)
        self._edit(checkbox.add_glyph, task, checkbox.FAILURE_GLYPH)

    def add_replan_marker(self, task_index: int) -> None:
        """Append one replan glyph to a task."""
        task = self.get_task(task_index)
        self._edit(checkbox.add_glyph, task, checkbox.REPLAN_GLYPH)

    def clear_failures(self, task_index: int) -> None:
        """Remove all failure glyphs from a task; replan glyphs stay."""
        task = self.get_task(task_index)
        self._edit(checkbox.clear_failure_glyphs, task)

    def auto_check_orphaned_tasks(self) -> int:
        """Check unchecked tasks that have no subtasks or only checked ones.

        Returns the number of tasks fixed. A task whose line can no longer be
        parsed is skipped with a warning; write failures propagate.
        """
        fixed = 0
        for index in range(len(self.tasks)):
            task = self.tasks[index]
            if task.checked:
                continue
            if task.subtasks and not self.all_subtasks_complete(index):
                continue
            try:
                self.check_task(index)
            except SprintParseError as e:
                logger.warning(f"Failed to auto-check task {index}: {e}")
                continue
            logger.info(f"Auto-checked orphaned task: {task.text}")
            fixed += 1
        return fixed

    def reload(self) -> "SprintState":
        """Return a fresh parse of the backing file."""
        if not self.file_path or self.fs is None:
            raise SprintWriteError("Sprint has no backing file to reload from")
        return parse_sprint(self.file_path, self.fs)


def parse_sprint_content(content: str) -> SprintState:
    """Parse sprint markdown with no backing file (read-only)."""
    return SprintState(content=content)


def parse_sprint(path: str, fs=None) -> SprintState:
    """Read and parse a sprint file.

    Args:
        path: Path relative to the filesystem view (or to cwd when fs is None)
        fs: Filesystem view; defaults to the local filesystem

    Raises:
        FileNotFoundError / OSError: if the file can't be read
    """
    if fs is None:
        fs = LocalFileSystem(".")
    content = fs.read_text(path)
    return SprintState(file_path=str(path), content=content, fs=fs)


def merge_failure_counts(old_path: str, new_path: str, fs=None) -> int:
    """Carry failure glyphs from an old sprint revision into a regenerated one.

    Tasks are matched by normalized text. Returns the number of new tasks
    that received glyphs.
    """
    old_sprint = parse_sprint(old_path, fs)

    failure_counts: dict[str, int] = {}
    for task in old_sprint.tasks:
        if task.failure_count > 0:
            failure_counts[normalize_task_text(task.text)] = task.failure_count

    if not failure_counts:
        return 0

    new_sprint = parse_sprint(new_path, fs)
    updated = 0

    for index in range(len(new_sprint.tasks)):
        count = failure_counts.get(normalize_task_text(new_sprint.tasks[index].text), 0)
        if count <= 0:
            continue
        for _ in range(count):
            try:
                new_sprint.add_failure(index)
            except SprintParseError as e:
                logger.warning(f"Failed to add failure marker to task {index}: {e}")
                break
        updated += 1

    return updated


def truncate_text(text: str, max_len: int) -> str:
    """Truncate text to max_len characters, ending with '...'."""
    if len(text) <= max_len:
        return text
    if max_len <= 3:
        return "..."
    return text[:max_len - 3] + "..."


# ----------------------------------------------------------------------
# Sprint files
# ----------------------------------------------------------------------

def extract_sprint_num(filename: str) -> int:
    """Sprint number from a filename like "01-initial.md" (0 if none)."""
    match = SPRINT_NUM_RE.match(filename)
    return int(match.group(1)) if match else 0


def format_sprint_filename(num: int, slug: str) -> str:
    """format_sprint_filename(1, "initial") -> "01-initial.md"."""
    return f"{num:02d}-{slug}.md"


def sprint_path(name: str) -> str:
    return posixpath.join(SPRINTS_DIR, name)


def find_current_sprint(fs) -> tuple[str, int]:
    """Locate the current sprint.

    The current sprint is the first, in filename order, that is not complete.
    When every sprint is complete the last one is returned.

    Returns:
        (relative path, sprint number), or ("", 0) if there are no sprints.
    """
    names = list_markdown_files(fs, SPRINTS_DIR)

    for name in names:
        path = sprint_path(name)
        try:
            sprint = parse_sprint(path, fs)
        except OSError as e:
            logger.debug(f"Skipping unreadable sprint {path}: {e}")
            continue
        if not sprint.is_complete():
            return path, extract_sprint_num(name)

    if names:
        return sprint_path(names[-1]), extract_sprint_num(names[-1])

    return "", 0


def find_sprint_by_num(fs, num: int) -> str:
    """Path of the sprint file whose name starts with the zero-padded number, or ""."""
    prefix = f"{num:02d}-"
    for name in list_markdown_files(fs, SPRINTS_DIR):
        if name.startswith(prefix):
            return sprint_path(name)
    return ""


@dataclass
class SprintSummary:
    """Number and raw content of a sprint file."""
    num: int
    content: str


def load_sprint_summaries(fs, up_to_num: int) -> list[SprintSummary]:
    """All sprints numbered 1..up_to_num, in numeric order."""
    results = []
    for name in list_markdown_files(fs, SPRINTS_DIR):
        num = extract_sprint_num(name)
        if num <= 0 or num > up_to_num:
            continue
        try:
            content = fs.read_text(sprint_path(name))
        except OSError:
            continue
        results.append(SprintSummary(num=num, content=content))

    results.sort(key=lambda s: s.num)
    return results
