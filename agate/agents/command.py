"""
Agents backed by a CLI command.

Each agent runs a command template from the agents config (see
agate.lib.agents_config). Output is captured from stdout; a non-zero exit or
a timeout raises AgentError with stderr attached.
"""

import logging
import subprocess
import threading
from pathlib import Path
from typing import TextIO

from agate.agents.base import Agent, AgentError, SafeModeAgent, StreamingAgent
from agate.lib.agents_config import AgentTemplates, build_command, check_binary_available, get_binary

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 600


class CommandAgent(Agent, StreamingAgent):
    """Runs an agent CLI via subprocess."""

    def __init__(self, name: str, templates: AgentTemplates, timeout: int = DEFAULT_TIMEOUT):
        self.name = name
        self.templates = templates
        self.timeout = timeout

    def available(self) -> bool:
        return check_binary_available(get_binary(self.templates.execute))

    def execute(self, prompt: str, workdir: Path) -> str:
        return self._run(self.templates.execute, prompt, workdir)

    def execute_streaming(self, prompt: str, workdir: Path, stream: TextIO) -> str:
        return self._run_streaming(self.templates.execute, prompt, workdir, stream)

    def _run(self, template: str, prompt: str, workdir: Path) -> str:
        command = build_command(template, prompt, workdir)
        logger.debug(f"Running {self.name}: {command.cmd[0]} ({len(prompt)} char prompt)")

        try:
            result = subprocess.run(
                command.cmd,
                cwd=str(workdir),
                input=command.get_stdin_input(prompt),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise AgentError(self.name, f"timed out after {self.timeout}s") from None
        except FileNotFoundError:
            raise AgentError(self.name, f"command not found: {command.cmd[0]}") from None

        if result.returncode != 0:
            raise AgentError(
                self.name,
                f"exited with code {result.returncode}\nstderr: {result.stderr.strip()}",
                output=result.stdout,
            )

        return result.stdout.strip()

    def _run_streaming(self, template: str, prompt: str, workdir: Path, stream: TextIO) -> str:
        command = build_command(template, prompt, workdir)
        logger.debug(f"Streaming {self.name}: {command.cmd[0]} ({len(prompt)} char prompt)")

        try:
            process = subprocess.Popen(
                command.cmd,
                cwd=str(workdir),
                stdin=subprocess.PIPE if command.prompt_via_stdin else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            raise AgentError(self.name, f"command not found: {command.cmd[0]}") from None

        stderr_lines: list[str] = []
        drain = threading.Thread(target=lambda: stderr_lines.extend(process.stderr), daemon=True)
        drain.start()

        timed_out = threading.Event()

        def kill():
            timed_out.set()
            process.kill()

        timer = threading.Timer(self.timeout, kill)
        timer.start()

        output_lines = []
        try:
            if command.prompt_via_stdin:
                process.stdin.write(prompt)
                process.stdin.close()
            for line in process.stdout:
                output_lines.append(line)
                stream.write(line)
                stream.flush()
            process.wait()
        finally:
            timer.cancel()
            drain.join(timeout=5)

        output = "".join(output_lines)
        if timed_out.is_set():
            raise AgentError(self.name, f"timed out after {self.timeout}s", output=output)
        if process.returncode != 0:
            raise AgentError(
                self.name,
                f"exited with code {process.returncode}\nstderr: {''.join(stderr_lines).strip()}",
                output=output,
            )

        return output.strip()


class SafeCommandAgent(CommandAgent, SafeModeAgent):
    """A CommandAgent that also has a read-only command."""

    def execute_safe(self, prompt: str, workdir: Path, stream: TextIO | None = None) -> str:
        if stream is not None:
            return self._run_streaming(self.templates.execute_safe, prompt, workdir, stream)
        return self._run(self.templates.execute_safe, prompt, workdir)


def make_command_agent(name: str, templates: AgentTemplates, timeout: int = DEFAULT_TIMEOUT) -> CommandAgent:
    """Build the right CommandAgent variant for the templates."""
    if templates.execute_safe:
        return SafeCommandAgent(name, templates, timeout)
    return CommandAgent(name, templates, timeout)
