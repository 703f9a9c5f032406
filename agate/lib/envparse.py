"""
Parser for agate's KEY=value settings file (.ai/agate.env).

Values are read literally; nothing is expanded or executed. Values that look
like shell constructs are rejected so the file stays safe to source elsewhere.
"""

import re
from pathlib import Path

FORBIDDEN_PATTERNS = [
    r'`',           # backticks
    r'\$\(',        # command substitution
    r'\$\{',        # variable expansion
    r';',           # command chaining
    r'&&',
    r'\|',          # pipes and OR chaining
]

KEY_PATTERN = re.compile(r'^[A-Z][A-Z0-9_]*$')


class EnvSyntaxError(ValueError):
    """A settings line could not be accepted."""

    def __init__(self, lineno: int, message: str):
        self.lineno = lineno
        super().__init__(f"Line {lineno}: {message}")


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_env(text: str) -> dict[str, str]:
    """
    Parse settings text into a dict.

    Blank lines and '#' comments are skipped. An optional leading
    "export " is tolerated.

    Raises:
        EnvSyntaxError: on a malformed line, bad key or forbidden value
    """
    result = {}

    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue

        if line.startswith("export "):
            line = line[len("export "):].lstrip()

        if '=' not in line:
            raise EnvSyntaxError(lineno, "Invalid syntax (no '=')")

        key, _, value = line.partition('=')
        key = key.strip()
        value = _unquote(value.strip())

        if not KEY_PATTERN.match(key):
            raise EnvSyntaxError(lineno, f"Invalid key '{key}'")

        for pattern in FORBIDDEN_PATTERNS:
            if re.search(pattern, value):
                raise EnvSyntaxError(lineno, f"Forbidden pattern in value of {key}")

        result[key] = value

    return result


def load_env(filepath: Path | str) -> dict[str, str]:
    """
    Read and parse a settings file.

    Raises:
        FileNotFoundError: if the file doesn't exist
        EnvSyntaxError: see parse_env()
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text(encoding="utf-8"))
