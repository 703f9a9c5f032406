"""
Project settings for agate.

Settings live in .ai/agate.env inside the project directory. Every key is
optional; a missing file means defaults throughout.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from agate.lib import envparse

logger = logging.getLogger(__name__)

SETTINGS_FILE = Path(".ai") / "agate.env"


@dataclass
class AgateConfig:
    """Settings from .ai/agate.env"""
    max_review_retries: int = 3  # Review failures before a task is replanned
    default_agent: str = ""  # Empty = pick per skill
    agent_timeout: int = 600  # Seconds, sub-task execution
    planning_timeout: int = 600  # Seconds, planning phases and replans


def _int_setting(env: dict, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {key}: {raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"{key} must be positive, got {value}, using {default}")
        return default
    return value


def load_config(project_dir: Path | None) -> AgateConfig:
    """Load .ai/agate.env and return AgateConfig.

    A missing or unreadable file gives defaults; a malformed one logs a warning.
    """
    if project_dir is None:
        return AgateConfig()

    path = Path(project_dir) / SETTINGS_FILE
    if not path.exists():
        return AgateConfig()

    try:
        env = envparse.load_env(path)
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        return AgateConfig()

    defaults = AgateConfig()
    return AgateConfig(
        max_review_retries=_int_setting(env, "MAX_REVIEW_RETRIES", defaults.max_review_retries),
        default_agent=env.get("DEFAULT_AGENT", defaults.default_agent).strip(),
        agent_timeout=_int_setting(env, "AGENT_TIMEOUT", defaults.agent_timeout),
        planning_timeout=_int_setting(env, "PLANNING_TIMEOUT", defaults.planning_timeout),
    )
