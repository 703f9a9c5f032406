"""
Contracts on agent output.

Agents return free text. Only three things are read out of it: whether a
review approved the work, whether a generated document is real markdown
rather than a chatty summary, and any files an implementation skill emitted
in "### File: path" blocks.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

REVIEW_APPROVED_TOKEN = "APPROVED"

# Openings that mean the agent described the document instead of writing it
META_COMMENTARY_PREFIXES = (
    "I've created ",
    "I created ",
    "Created ",
    "Here's ",
    "Here is ",
    "Perfect! I've ",
    "Done! I've ",
)

FILE_HEADER = "### File:"


class DocumentError(ValueError):
    """A generated document is missing, empty, or not markdown content."""


def is_review_approved(output: str) -> bool:
    """A review passes when its output contains APPROVED (any case)."""
    return REVIEW_APPROVED_TOKEN in output.upper()


def check_markdown_text(text: str, path: Path | str = "document") -> None:
    """Raise DocumentError unless text looks like a markdown document."""
    text = text.strip()
    if not text:
        raise DocumentError(f"file is empty: {path}")

    for prefix in META_COMMENTARY_PREFIXES:
        if text.startswith(prefix):
            raise DocumentError(
                f"agent wrote meta-commentary instead of document content to {path} - retry with 'agate next'"
            )

    if not text.startswith("#"):
        raise DocumentError(f"document doesn't start with markdown heading: {path}")


def validate_markdown_content(path: Path) -> None:
    """Check that an agent-written file holds a real markdown document.

    Raises:
        DocumentError: file missing, empty, meta-commentary, or no heading
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError:
        raise DocumentError(f"file not found: {path}") from None
    check_markdown_text(text, path)


@dataclass
class FileBlock:
    path: str
    content: str


def parse_file_blocks(output: str) -> list[FileBlock]:
    """Extract "### File: path" headers each followed by a fenced block."""
    blocks = []
    current_path = ""
    current_lines: list[str] = []
    in_code = False

    def flush():
        if current_path and current_lines:
            blocks.append(FileBlock(current_path, "\n".join(current_lines)))

    for line in output.split("\n"):
        if line.startswith(FILE_HEADER):
            flush()
            current_path = line[len(FILE_HEADER):].strip()
            current_lines = []
            in_code = False
            continue

        if not current_path:
            continue

        if line.startswith("```"):
            in_code = not in_code
            continue

        if in_code:
            current_lines.append(line)

    flush()
    return blocks


def write_file_blocks(project_dir: Path, blocks: list[FileBlock]) -> list[str]:
    """Write blocks under project_dir. Returns the relative paths written.

    Paths that would land outside the project are skipped.
    """
    root = Path(project_dir).resolve()
    written = []

    for block in blocks:
        target = (root / block.path).resolve()
        if root not in target.parents:
            logger.warning(f"Skipping file outside project: {block.path}")
            continue
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(block.content, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to write {block.path}: {e}")
            continue
        written.append(block.path)

    return written
