"""
agate status - Show project state and the next action.
"""

from pathlib import Path

from agate.lib.console import get_console
from agate.lib.fsview import LocalFileSystem, printable
from agate.lib.project import Project
from agate.workflow.exitcode import get_exit_code
from agate.workflow.status import format_status, get_status


def cmd_status(args, project_dir: Path) -> int:
    """Print the status report. Exit code follows the exit code policy."""
    result = get_status(LocalFileSystem(project_dir))
    report = format_status(Project(project_dir).name, result)
    get_console().print(printable(report), end="")
    return int(get_exit_code(result))
