"""
agate auto - Run `agate next` until done or a human is needed.

Each step runs `agate next` as a separate process through an exec function,
so tests can substitute their own. Lines typed on stdin while the loop runs
are forwarded as `agate suggest` calls before the next step.
"""

import logging
import queue
import subprocess
import sys
import threading
from typing import Callable, TextIO

from rich.console import Console
from rich.markup import escape

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_ERRORS = 3

PREFIX = f"[bold cyan]{escape('[auto]')}[/bold cyan]"

ExecFunc = Callable[[list[str]], int]


def real_exec(args: list[str]) -> int:
    """Run an agate subcommand in a child process; output goes to the terminal.

    Raises:
        OSError: the child could not be started
    """
    result = subprocess.run([sys.executable, "-m", "agate.cli", *args])
    return result.returncode


class AutoRunner:
    """The auto loop, with all side effects injectable."""

    def __init__(
        self,
        exec_fn: ExecFunc = real_exec,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ):
        self.exec_fn = exec_fn
        self.stdin = stdin
        self.out = Console(file=stdout, highlight=False, soft_wrap=True)
        self.err = Console(file=stderr, stderr=stderr is None, highlight=False, soft_wrap=True)
        self.inputs: queue.Queue[str] = queue.Queue()

    def start_reader(self) -> threading.Thread:
        """Read stdin lines into the input queue in the background."""
        def read():
            for line in self.stdin:
                self.inputs.put(line)

        thread = threading.Thread(target=read, name="auto-stdin", daemon=True)
        thread.start()
        return thread

    def run(self, agent: str = "") -> int:
        """Loop until done. Returns the process exit code."""
        if self.stdin is not None:
            self.start_reader()

        step = 0
        consecutive_errors = 0
        while True:
            self.drain_suggestions()

            step += 1
            self.out.print(f"{PREFIX} Step {step}")

            args = ["next"]
            if agent:
                args += ["--agent", agent]

            try:
                code = self.exec_fn(args)
            except OSError as e:
                self.err.print(f"{PREFIX} [yellow]Failed to execute: {escape(str(e))}[/yellow]")
                return 2

            if code == 0:
                self.out.print(f"{PREFIX} [green]Done![/green]")
                return 0
            if code == 1:
                consecutive_errors = 0
                continue
            if code == 255:
                self.out.print(f"{PREFIX} [yellow]Human action required, exiting.[/yellow]")
                return 255

            consecutive_errors += 1
            if consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                self.err.print(
                    f"{PREFIX} [yellow]Stopped after {consecutive_errors} consecutive errors "
                    f"(last exit code {code})[/yellow]"
                )
                return code
            self.err.print(
                f"{PREFIX} [yellow]Error (exit code {code}), retrying "
                f"({consecutive_errors}/{MAX_CONSECUTIVE_ERRORS})...[/yellow]"
            )

    def drain_suggestions(self) -> None:
        """Send every pending input line as a suggestion, without blocking."""
        while True:
            try:
                line = self.inputs.get_nowait()
            except queue.Empty:
                return
            line = line.strip()
            if line:
                self.send_suggest(line)

    def send_suggest(self, text: str) -> None:
        self.out.print(f"{PREFIX} Sending suggestion: {escape(text)}")
        try:
            self.exec_fn(["suggest", text])
        except OSError as e:
            self.err.print(f"{PREFIX} [yellow]Warning: suggest failed: {escape(str(e))}[/yellow]")


def cmd_auto(args) -> int:
    runner = AutoRunner(real_exec, stdin=sys.stdin)
    return runner.run(args.agent or "")
