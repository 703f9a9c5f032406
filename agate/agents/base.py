"""
Agent capability interface.

Every agent can say whether it is available and execute a prompt in a working
directory. Two optional capabilities are detected with isinstance():

- StreamingAgent: echoes output to a stream while it runs
- SafeModeAgent: runs without write permissions (planning phases)
"""

from pathlib import Path
from typing import TextIO


class AgentError(Exception):
    """Agent invocation failed (missing binary, non-zero exit, timeout)."""

    def __init__(self, agent: str, message: str, output: str = ""):
        self.agent = agent
        self.output = output
        super().__init__(f"{agent}: {message}")


class NoAgentsError(AgentError):
    """No agent is available to run a prompt."""

    def __init__(self):
        super().__init__(
            "agate",
            "no AI agents available. Install the claude CLI or the codex CLI, "
            "or configure one in .ai/agents.yaml",
        )


class Agent:
    """Base class for agents."""

    name = ""

    def available(self) -> bool:
        raise NotImplementedError

    def execute(self, prompt: str, workdir: Path) -> str:
        """Run a prompt and return the agent's output.

        Raises:
            AgentError: on any failure
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class StreamingAgent:
    """Capability: stream output while executing."""

    def execute_streaming(self, prompt: str, workdir: Path, stream: TextIO) -> str:
        raise NotImplementedError


class SafeModeAgent:
    """Capability: execute without permission to modify files."""

    def execute_safe(self, prompt: str, workdir: Path, stream: TextIO | None = None) -> str:
        raise NotImplementedError
