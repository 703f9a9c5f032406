"""
Agent command configuration.

Loads .ai/agents.yaml to determine which CLI command each agent runs. If no
config file exists, the built-in commands below are used.

COMMAND TEMPLATES
=================

Each agent has an `execute` template and, optionally, an `execute_safe`
template used by planning phases that must not write files.

Variable Handling:
- {prompt}: The prompt text. If present in the template it is passed as a
  CLI argument. If absent, the prompt is passed via stdin.
- {workdir}: The project directory the agent runs in.

Example .ai/agents.yaml:

    agents:
      claude:
        execute: "claude --dangerously-skip-permissions --model opus --print -p {prompt}"
      local:
        execute: "my-agent --cwd {workdir}"
"""

import logging
import re
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from agate.lib.validate import ValidationError, validate

logger = logging.getLogger(__name__)

AGENTS_FILE = Path(".ai") / "agents.yaml"

# Order matters: the first available agent is the default.
DEFAULT_AGENT_COMMANDS = {
    "claude": {
        "execute": "claude --dangerously-skip-permissions --print -p {prompt}",
        "execute_safe": "claude --print -p {prompt}",
    },
    "haiku": {
        # Same CLI, cheaper model
        "execute": "claude --dangerously-skip-permissions --model haiku --print -p {prompt}",
        "execute_safe": "claude --model haiku --print -p {prompt}",
    },
    "codex": {
        "execute": "codex --full-auto exec {prompt}",
    },
}

_PROMPT_PLACEHOLDER = "__PROMPT_PLACEHOLDER__"


@dataclass
class AgentTemplates:
    """Command templates for one agent."""
    execute: str
    execute_safe: str | None = None


def _default_agents() -> dict[str, AgentTemplates]:
    return {
        name: AgentTemplates(entry["execute"], entry.get("execute_safe"))
        for name, entry in DEFAULT_AGENT_COMMANDS.items()
    }


@dataclass
class AgentsConfig:
    """Agent configuration from agents.yaml."""
    agents: dict[str, AgentTemplates] = field(default_factory=_default_agents)


def load_agents_config(project_dir: Path | None) -> AgentsConfig:
    """Load .ai/agents.yaml and return AgentsConfig.

    Entries override the built-in agents by name; new names add agents.
    If project_dir is None, the file is missing, or it fails to parse or
    validate, returns defaults.
    """
    if project_dir is None:
        return AgentsConfig()

    config_path = Path(project_dir) / AGENTS_FILE
    if not config_path.exists():
        return AgentsConfig()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        validate(data, "agents")
    except (yaml.YAMLError, ValidationError, OSError) as e:
        logger.warning(f"Failed to load {config_path}: {e}")
        return AgentsConfig()

    agents = _default_agents()
    for name, entry in (data.get("agents") or {}).items():
        base = agents.get(name)
        execute = entry.get("execute") or (base.execute if base else None)
        if not execute:
            logger.warning(f"Agent '{name}' in {config_path} has no execute command, ignoring")
            continue
        execute_safe = entry.get("execute_safe", base.execute_safe if base else None)
        agents[name] = AgentTemplates(execute=execute, execute_safe=execute_safe)

    return AgentsConfig(agents=agents)


@dataclass
class AgentCommand:
    """Result of building an agent command."""
    cmd: list[str]  # Command ready for subprocess
    prompt_via_stdin: bool

    def get_stdin_input(self, prompt: str) -> str | None:
        """Return prompt if it should be passed via stdin, else None."""
        return prompt if self.prompt_via_stdin else None


def build_command(template: str, prompt: str, workdir: str = ".") -> AgentCommand:
    """Build a command list from a template.

    The prompt is swapped in after shell-style splitting so quotes and
    newlines in it survive untouched.

    Example:
        >>> build_command("codex --full-auto exec {prompt}", "do stuff").cmd
        ['codex', '--full-auto', 'exec', 'do stuff']
    """
    prompt_via_stdin = "{prompt}" not in template

    cmd_template = template.replace("{prompt}", _PROMPT_PLACEHOLDER)
    cmd_template = cmd_template.replace("{workdir}", shlex.quote(str(workdir)))

    remaining_vars = re.findall(r'\{(\w+)\}', cmd_template)
    if remaining_vars:
        logger.error(f"Agent command has unsubstituted variables: {remaining_vars}. Template: {template}")

    cmd = shlex.split(cmd_template)
    cmd = [prompt if arg == _PROMPT_PLACEHOLDER else arg for arg in cmd]

    return AgentCommand(cmd=cmd, prompt_via_stdin=prompt_via_stdin)


def get_binary(template: str) -> str:
    """Binary name of a template (first element of the command)."""
    parts = shlex.split(template)
    return parts[0] if parts else ""


def check_binary_available(binary: str) -> bool:
    """Check if a binary is available in PATH."""
    return bool(binary) and shutil.which(binary) is not None
