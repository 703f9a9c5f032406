"""
Terminal output helpers.

User-facing text is Rich markup; consoles are created per call so output
follows whatever sys.stdout / sys.stderr are at that moment.
"""

from rich.console import Console
from rich.markup import escape

from agate.lib.fsview import printable


def get_console(stderr: bool = False) -> Console:
    return Console(stderr=stderr, highlight=False, soft_wrap=True)


def print_error(message) -> None:
    """Print 'Error: message' to stderr."""
    get_console(stderr=True).print(f"[red]Error:[/red] {escape(printable(str(message)))}")
