"""
Settings and logging setup for agentgraph.

Settings come from the process environment, after loading a ``.env`` file if
one is present:

- ``AGENTGRAPH_LOG_LEVEL``: level for the ``agentgraph`` logger (default INFO)
- ``AGENTGRAPH_SYSTEM_CONFIG``: path of a JSON system definition
- ``AGENTGRAPH_USE_AGENT_TOOLS``: synthesize ``useAgentTool`` for agents with
  sub-agents (default true)
"""
import logging
import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

_TRUTHY = {"1", "true", "yes", "on"}
_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CompilerSettings(BaseModel):
    """Runtime configuration for building and compiling agent systems."""
    log_level: str = Field(default="INFO", description="Level name for the agentgraph logger")
    system_config_path: Optional[Path] = Field(
        default=None,
        description="JSON system definition loaded by AgentSystemManager.from_settings"
    )
    generate_use_agent_tools: bool = True

    @field_validator("log_level")
    @classmethod
    def check_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


def load_settings(env_file: Optional[Union[str, Path]] = None) -> CompilerSettings:
    """
    Read settings from the environment.

    Args:
        env_file: Optional ``.env`` path; defaults to searching from the working directory
    """
    load_dotenv(dotenv_path=env_file)
    config_path = os.getenv("AGENTGRAPH_SYSTEM_CONFIG")
    return CompilerSettings(
        log_level=os.getenv("AGENTGRAPH_LOG_LEVEL", "INFO"),
        system_config_path=Path(config_path) if config_path else None,
        generate_use_agent_tools=os.getenv("AGENTGRAPH_USE_AGENT_TOOLS", "true").lower() in _TRUTHY,
    )


def configure_logging(level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Attach a formatted stream handler to the package logger, once, and set its level."""
    logger = logging.getLogger("agentgraph")
    if not any(getattr(h, "_agentgraph", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler._agentgraph = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.info(f"Log level set to {logging.getLevelName(logger.level)}")
    return logger
