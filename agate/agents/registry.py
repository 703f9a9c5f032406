"""
Agent lookup and logged execution.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TextIO

from agate.agents.base import Agent, AgentError, NoAgentsError, SafeModeAgent, StreamingAgent
from agate.agents.command import DEFAULT_TIMEOUT, make_command_agent
from agate.agents.dummy import DummyAgent
from agate.lib.agents_config import AgentsConfig
from agate.lib.invocation_log import InvocationLogger

logger = logging.getLogger(__name__)

DUMMY_AGENT = "dummy"

AGENT_DESCRIPTIONS = {
    "claude": "Most capable, default",
    "haiku": "Fast, cheap, good for testing",
    "codex": "OpenAI alternative",
    "dummy": "No-op, for workflow testing",
}


def get_agent_by_name(name: str, config: AgentsConfig | None = None, timeout: int = DEFAULT_TIMEOUT) -> Agent | None:
    """Agent for a name, or None if the name is unknown."""
    if name == DUMMY_AGENT:
        return DummyAgent()
    config = config or AgentsConfig()
    templates = config.agents.get(name)
    if templates is None:
        return None
    return make_command_agent(name, templates, timeout)


def get_available_agents(config: AgentsConfig | None = None, timeout: int = DEFAULT_TIMEOUT) -> list[Agent]:
    """Configured agents whose binaries are installed, in config order, then dummy."""
    config = config or AgentsConfig()
    agents = []
    for name, templates in config.agents.items():
        agent = make_command_agent(name, templates, timeout)
        if agent.available():
            agents.append(agent)
    agents.append(DummyAgent())
    return agents


def select_agent_for_skill(skill: str) -> str:
    """Preferred agent name for a skill: codex writes code, claude does the rest."""
    if "coder" in skill:
        return "codex"
    return "claude"


def resolve_agent(
    preferred: str,
    config: AgentsConfig | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Agent:
    """The preferred agent if available, else the first available one.

    Raises:
        NoAgentsError: nothing can run
    """
    if preferred:
        agent = get_agent_by_name(preferred, config, timeout)
        if agent is not None and agent.available():
            return agent
        logger.info(f"Agent '{preferred}' not available, falling back")

    agents = get_available_agents(config, timeout)
    if not agents:
        raise NoAgentsError()
    return agents[0]


@dataclass
class ExecuteOptions:
    logger: InvocationLogger | None = None
    phase: str = ""
    task: str = ""
    task_index: int = 0
    skill: str = ""
    summary: str = ""
    stream: TextIO | None = None
    safe_mode: bool = False  # Planning phases: no file writes


@dataclass
class ExecuteResult:
    agent_name: str
    output: str = ""
    error: AgentError | None = None
    log_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _invoke(agent: Agent, prompt: str, workdir: Path, opts: ExecuteOptions) -> str:
    if opts.safe_mode and isinstance(agent, SafeModeAgent):
        return agent.execute_safe(prompt, workdir, opts.stream)
    if opts.stream is not None and isinstance(agent, StreamingAgent):
        return agent.execute_streaming(prompt, workdir, opts.stream)
    return agent.execute(prompt, workdir)


def print_invocation_start(agent: str, skill: str, summary: str, log_path: Path | None) -> None:
    if len(summary) > 50:
        summary = summary[:47] + "..."
    ts = datetime.now().strftime("%H:%M")
    line = f"[{ts}] [{agent}] {skill}: {summary!r}"
    if log_path is not None:
        line += f" -> {log_path}"
    print(line)


def execute_with_logging(agent: Agent, prompt: str, workdir: Path, opts: ExecuteOptions) -> ExecuteResult:
    """Run an agent, recording the invocation in the sprint's log directory.

    Agent failures are returned in the result, not raised; a log that can't
    be written only produces a warning.
    """
    result = ExecuteResult(agent_name=agent.name)

    invocation = None
    if opts.logger is not None:
        try:
            invocation = opts.logger.start(opts.phase, opts.task, opts.task_index, agent.name, opts.skill)
            invocation.prompt = prompt
            result.log_path = invocation.path
        except OSError as e:
            logger.warning(f"Failed to start invocation log: {e}")

    print_invocation_start(agent.name, opts.skill, opts.summary or opts.task, result.log_path)

    try:
        result.output = _invoke(agent, prompt, Path(workdir), opts)
    except AgentError as e:
        result.error = e
        result.output = e.output

    if invocation is not None:
        invocation.response = result.output
        if result.error is not None:
            invocation.set_error(result.error)
        try:
            invocation.close()
        except OSError as e:
            logger.warning(f"Failed to write invocation log {invocation.path}: {e}")

    return result
