#!/usr/bin/env python3
"""agate CLI entrypoint.

agate turns a GOAL.md into working software one step at a time. Every
command exits with the same contract:

    0    all work complete
    1    more work, run again
    2    error
    255  human action needed
"""

import argparse
import logging
import sys
from pathlib import Path

from agate import __version__
from agate.commands import auto as cmd_auto_module
from agate.commands import next as cmd_next_module
from agate.commands import status as cmd_status_module
from agate.commands import suggest as cmd_suggest_module
from agate.lib.console import print_error
from agate.workflow.exitcode import ExitCode

logger = logging.getLogger(__name__)

AGENTS_HELP = "Select agent: claude, haiku, codex, dummy"

EPILOG = """\
Quick start:
  mkdir my-project && cd my-project
  echo "Build a hello world CLI in Python" > GOAL.md
  agate auto

Agents (use --agent with auto/next):
  claude  Most capable, default
  haiku   Fast, cheap, good for testing
  codex   OpenAI alternative
  dummy   No-op, for workflow testing
"""


def get_project_dir() -> Path:
    """The project is the current directory."""
    return Path.cwd()


def cmd_status(args):
    return cmd_status_module.cmd_status(args, get_project_dir())


def cmd_next(args):
    return cmd_next_module.cmd_next(args, get_project_dir())


def cmd_auto(args):
    return cmd_auto_module.cmd_auto(args)


def cmd_suggest(args):
    return cmd_suggest_module.cmd_suggest(args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='agate',
        description='Non-interactive AI orchestrator: GOAL.md in, working software out',
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'agate version {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # agate status
    p_status = subparsers.add_parser('status', help='Show project state and next action')
    p_status.set_defaults(func=cmd_status)

    # agate next
    p_next = subparsers.add_parser('next', help='Run one step of work')
    p_next.add_argument('--agent', '-a', help=AGENTS_HELP)
    p_next.add_argument('--tail', '-t', action='store_true', help='Stream agent output to the terminal')
    p_next.set_defaults(func=cmd_next)

    # agate auto
    p_auto = subparsers.add_parser('auto', help='Run next repeatedly until complete')
    p_auto.add_argument('--agent', '-a', help=AGENTS_HELP)
    p_auto.set_defaults(func=cmd_auto)

    # agate suggest
    p_suggest = subparsers.add_parser(
        'suggest', aliases=['interrupt'], help='Send a suggestion to guide the next task'
    )
    p_suggest.add_argument('text', help='Suggestion text')
    p_suggest.set_defaults(func=cmd_suggest)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except Exception as e:
        # Never exit 1 on a crash: 1 means more work
        logger.debug(f"{args.command} failed", exc_info=True)
        print_error(f"{type(e).__name__}: {e}")
        return int(ExitCode.ERROR)


if __name__ == '__main__':
    sys.exit(main())
