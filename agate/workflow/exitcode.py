"""
Exit code policy.

Maps a status snapshot to the process contract used by `agate status`,
`agate next` and the `agate auto` loop.
"""

from enum import IntEnum

from agate.workflow.status import Phase, StatusResult


class ExitCode(IntEnum):
    DONE = 0  # All work complete
    MORE_WORK = 1  # Automation can continue
    ERROR = 2
    HUMAN_NEEDED = 255  # Create GOAL.md, answer the interview, ...


def get_exit_code(result: StatusResult) -> ExitCode:
    """
    Decision tree:
      - No GOAL.md -> HUMAN_NEEDED
      - Interview awaiting answers -> HUMAN_NEEDED
      - Planning phases incomplete -> MORE_WORK
      - Sprint missing or incomplete -> MORE_WORK
      - Current sprint complete -> DONE

    ERROR never comes from here; callers use it for failures.
    """
    if not result.has_goal:
        return ExitCode.HUMAN_NEEDED

    if result.interview_exists and not result.interview_complete:
        return ExitCode.HUMAN_NEEDED

    if result.phase != Phase.EXECUTION:
        return ExitCode.MORE_WORK

    if result.sprint is None:
        return ExitCode.MORE_WORK

    if result.sprint.is_complete():
        return ExitCode.DONE

    return ExitCode.MORE_WORK
