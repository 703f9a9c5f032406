"""
agate next - Run one step of work.
"""

import logging
import sys
from pathlib import Path

from agate.agents import AgentError
from agate.lib.console import print_error
from agate.lib.fsview import LocalFileSystem, printable
from agate.lib.prompts import PromptError
from agate.workflow.exitcode import ExitCode, get_exit_code
from agate.workflow.next import HumanNeededError, NextError, NextOptions, next_step
from agate.workflow.plan import PlanError
from agate.workflow.sprint import SprintError
from agate.workflow.status import get_status

logger = logging.getLogger(__name__)


def cmd_next(args, project_dir: Path) -> int:
    """Run one step.

    Exit code comes from the re-derived status on success. On failure it is
    255 when a human is needed (explicitly, or because the project state
    says so) and 2 otherwise.
    """
    opts = NextOptions(
        agent=args.agent or "",
        stream=sys.stdout if args.tail else None,
    )

    try:
        result = next_step(project_dir, opts)
    except HumanNeededError as e:
        print_error(e)
        return int(ExitCode.HUMAN_NEEDED)
    except (NextError, PlanError, AgentError, SprintError, PromptError, OSError) as e:
        logger.debug(f"next failed: {type(e).__name__}: {e}")
        print_error(e)
        if get_exit_code(get_status(LocalFileSystem(project_dir))) == ExitCode.HUMAN_NEEDED:
            return int(ExitCode.HUMAN_NEEDED)
        return int(ExitCode.ERROR)

    print(printable(result.message))
    return int(get_exit_code(get_status(LocalFileSystem(project_dir))))
