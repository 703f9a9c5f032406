"""
Filesystem views used by phase derivation and sprint mutation.

Paths are POSIX-style strings relative to the view's root
(e.g. ".ai/sprints/01-initial.md"). Phase derivation only reads; sprint
mutation also writes whole files and creates directories.
"""

import posixpath
from pathlib import Path


def printable(text: str) -> str:
    """Text from LocalFileSystem.read_text with undecodable bytes replaced by U+FFFD."""
    return text.encode("utf-8", errors="surrogateescape").decode("utf-8", errors="replace")


class LocalFileSystem:
    """A view over a real directory."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        return self.root / path

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def is_dir(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    def read_text(self, path: str) -> str:
        # Raw bytes: line endings are kept and undecodable bytes survive a rewrite.
        return self._resolve(path).read_bytes().decode("utf-8", errors="surrogateescape")

    def list_dir(self, path: str) -> list[str]:
        """Sorted entry names. Raises FileNotFoundError if the directory is absent."""
        directory = self._resolve(path)
        if not directory.is_dir():
            raise FileNotFoundError(f"Directory not found: {directory}")
        return sorted(p.name for p in directory.iterdir())

    def write_text(self, path: str, content: str) -> None:
        self._resolve(path).write_bytes(content.encode("utf-8", errors="surrogateescape"))

    def makedirs(self, path: str) -> None:
        self._resolve(path).mkdir(parents=True, exist_ok=True)


class MemoryFileSystem:
    """An in-memory view: a mapping of file path to content.

    Directories are implied by the file paths plus any created with makedirs().
    """

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, str] = {}
        self.dirs: set[str] = set()
        for path, content in (files or {}).items():
            self.write_text(path, content)

    @staticmethod
    def _norm(path: str) -> str:
        path = posixpath.normpath(path)
        return "" if path == "." else path

    def _add_parents(self, path: str) -> None:
        parent = posixpath.dirname(path)
        while parent:
            self.dirs.add(parent)
            parent = posixpath.dirname(parent)

    def exists(self, path: str) -> bool:
        path = self._norm(path)
        return path in self.files or self.is_dir(path)

    def is_dir(self, path: str) -> bool:
        path = self._norm(path)
        return path == "" or path in self.dirs

    def read_text(self, path: str) -> str:
        path = self._norm(path)
        if path not in self.files:
            raise FileNotFoundError(f"File not found: {path}")
        return self.files[path]

    def list_dir(self, path: str) -> list[str]:
        path = self._norm(path)
        if not self.is_dir(path):
            raise FileNotFoundError(f"Directory not found: {path}")
        names = set()
        for candidate in list(self.files) + list(self.dirs):
            if posixpath.dirname(candidate) == path:
                names.add(posixpath.basename(candidate))
        return sorted(names)

    def write_text(self, path: str, content: str) -> None:
        path = self._norm(path)
        if path in self.dirs:
            raise IsADirectoryError(f"Is a directory: {path}")
        self._add_parents(path)
        self.files[path] = content

    def makedirs(self, path: str) -> None:
        path = self._norm(path)
        if path in self.files:
            raise FileExistsError(f"File exists: {path}")
        if path:
            self.dirs.add(path)
            self._add_parents(path)


def list_markdown_files(fs, directory: str) -> list[str]:
    """List .md file names (not paths) in a directory, sorted.

    Returns an empty list if the directory doesn't exist.
    """
    try:
        names = fs.list_dir(directory)
    except (FileNotFoundError, NotADirectoryError):
        return []

    return sorted(
        name for name in names
        if name.endswith(".md") and not fs.is_dir(posixpath.join(directory, name))
    )
