"""Agents for agate.

An agent turns a prompt into text, usually by running an AI CLI in the
project directory. Callers go through the registry:

- get_agent_by_name() / get_available_agents() / resolve_agent()
- execute_with_logging() checks for the optional capabilities and records logs
"""

from agate.agents.base import (
    Agent,
    AgentError,
    NoAgentsError,
    SafeModeAgent,
    StreamingAgent,
)
from agate.agents.command import CommandAgent, SafeCommandAgent, make_command_agent
from agate.agents.dummy import DummyAgent
from agate.agents.output import (
    DocumentError,
    is_review_approved,
    parse_file_blocks,
    validate_markdown_content,
    write_file_blocks,
)
from agate.agents.registry import (
    ExecuteOptions,
    ExecuteResult,
    execute_with_logging,
    get_agent_by_name,
    get_available_agents,
    resolve_agent,
    select_agent_for_skill,
)
