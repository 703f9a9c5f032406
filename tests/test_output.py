"""Tests for agate.agents.output module."""

import logging

import pytest

from agate.agents.output import (
    DocumentError,
    FileBlock,
    check_markdown_text,
    is_review_approved,
    parse_file_blocks,
    validate_markdown_content,
    write_file_blocks,
)


class TestReviewApproval:
    """Tests for is_review_approved()."""

    @pytest.mark.parametrize("output,expected", [
        ("APPROVED - All requirements met.", True),
        ("Looks good, approved.", True),
        ("REJECTED: tests are missing", False),
        ("", False),
    ])
    def test_approval(self, output, expected):
        assert is_review_approved(output) is expected


class TestMarkdownValidation:
    """Tests for document checks."""

    def test_valid(self, tmp_path):
        path = tmp_path / "overview.md"
        path.write_text("# Design\n\nBody")
        validate_markdown_content(path)

    def test_missing(self, tmp_path):
        with pytest.raises(DocumentError, match="file not found"):
            validate_markdown_content(tmp_path / "overview.md")

    def test_empty(self):
        with pytest.raises(DocumentError, match="file is empty"):
            check_markdown_text("  \n")

    @pytest.mark.parametrize("text", [
        "I've created the design document at .ai/design/overview.md",
        "Here's the design you asked for",
        "Done! I've written everything.",
    ])
    def test_meta_commentary(self, text):
        with pytest.raises(DocumentError, match="meta-commentary"):
            check_markdown_text(text)

    def test_no_heading(self):
        with pytest.raises(DocumentError, match="markdown heading"):
            check_markdown_text("Just some prose")


IMPLEMENTATION = """Here are the files.

### File: src/app.py
```python
print("hi")
```

### File: README.md
```
# App

Usage notes
```

Done.
"""


class TestFileBlocks:
    """Tests for parse_file_blocks() and write_file_blocks()."""

    def test_parse(self):
        assert parse_file_blocks(IMPLEMENTATION) == [
            FileBlock("src/app.py", 'print("hi")'),
            FileBlock("README.md", "# App\n\nUsage notes"),
        ]

    def test_parse_without_blocks(self):
        assert parse_file_blocks("Implementation complete.") == []

    def test_write(self, tmp_path):
        written = write_file_blocks(tmp_path, parse_file_blocks(IMPLEMENTATION))
        assert written == ["src/app.py", "README.md"]
        assert (tmp_path / "src" / "app.py").read_text() == 'print("hi")'

    def test_refuses_paths_outside_project(self, tmp_path, caplog):
        caplog.set_level(logging.WARNING)
        project_dir = tmp_path / "project"
        project_dir.mkdir()
        written = write_file_blocks(project_dir, [FileBlock("../escape.txt", "x"), FileBlock("ok.txt", "y")])
        assert written == ["ok.txt"]
        assert not (tmp_path / "escape.txt").exists()
        assert "Skipping file outside project: ../escape.txt" in caplog.text
