"""
Raw definitions of the tools, agents and workflows that make up an agent system.

These models are the immutable input snapshot consumed by the dependency graph.
They describe entities and the string ids they reference; nothing here checks
that a reference resolves. That happens when the graph is linked.

The JSON wire format uses camelCase keys (``subAgents``, ``systemMessage``,
``exitBehavior``); both that and the snake_case field names are accepted.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from agentgraph.errors import ConfigError

logger = logging.getLogger("agentgraph.models")


class DefinitionModel(BaseModel):
    """Shared configuration for every definition model."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class WorkflowLimits(DefinitionModel):
    """Resource limits applied to a running workflow."""
    max_time: int = Field(default=0, ge=0, description="Maximum wall time in seconds")
    max_steps: int = Field(default=0, ge=0, description="Maximum number of steps")
    max_spend: int = Field(default=0, ge=0, description="Maximum spend in cost units")


class ToolDefinition(DefinitionModel):
    """
    An external capability an agent can call.

    Tools never take part in dependency ordering. Only their uid is used, as
    an existence-only lookup.
    """
    uid: str = Field(min_length=1)
    name: str = ""
    type: Literal["builtin", "http", "function"] = "function"
    description: str = ""
    endpoint: Optional[str] = None
    required_secrets: List[str] = Field(default_factory=list)
    input_schema: Optional[Dict[str, Any]] = None
    output_schema: Optional[Dict[str, Any]] = None

    @field_validator("required_secrets", mode="before")
    @classmethod
    def split_secrets(cls, value: Any) -> Any:
        # The wire format carries secrets as one comma-separated string
        if isinstance(value, str):
            return [secret.strip() for secret in value.split(",") if secret.strip()]
        return value


class AgentDefinition(DefinitionModel):
    """An LLM agent and the other entities it delegates to."""
    uid: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    system_message: str = ""
    model: str = ""
    parameters: str = ""
    tools: List[str] = Field(default_factory=list, description="External tool ids, not dependencies")
    preprocessors: List[str] = Field(default_factory=list)
    sub_agents: List[str] = Field(default_factory=list)
    sub_workflows: List[str] = Field(default_factory=list)


class WorkflowStep(DefinitionModel):
    """One step of a workflow, led by a single agent."""
    uid: str = ""
    description: str = ""
    agent: str = Field(description="Lead agent id; resolved when the graph is linked")
    sub_agents: List[str] = Field(default_factory=list)
    exit_behavior: str = "default"


class WorkflowDefinition(DefinitionModel):
    """An ordered sequence of agent-led steps."""
    uid: str = Field(min_length=1)
    name: str = ""
    description: str = ""
    options: WorkflowLimits = Field(default_factory=WorkflowLimits)
    steps: List[WorkflowStep] = Field(default_factory=list)


class SystemInputs(DefinitionModel):
    """The complete set of raw definitions for one agent system."""
    tools: List[ToolDefinition] = Field(default_factory=list)
    agents: List[AgentDefinition] = Field(default_factory=list)
    workflows: List[WorkflowDefinition] = Field(default_factory=list)

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "SystemInputs":
        """
        Parse a system definition from JSON text.

        Args:
            data: JSON document with ``tools``, ``agents`` and ``workflows`` keys

        Returns:
            The parsed definitions

        Raises:
            ConfigError: If the JSON is malformed, fails validation, or
                defines neither agents nor workflows
        """
        try:
            inputs = cls.model_validate_json(data)
        except ValidationError as e:
            logger.error(f"Invalid system config: {e}")
            raise ConfigError(f"failed to parse JSON config: {e}") from e

        if not inputs.agents and not inputs.workflows:
            logger.error("System config defines no agents and no workflows")
            raise ConfigError("config must contain at least one agent or workflow")

        logger.debug(
            f"Parsed system config: {len(inputs.tools)} tools, "
            f"{len(inputs.agents)} agents, {len(inputs.workflows)} workflows"
        )
        return inputs

    @classmethod
    def load(cls, path: Union[str, Path]) -> "SystemInputs":
        """Load a system definition from a JSON file."""
        path = Path(path)
        logger.debug(f"Loading system config from {path}")

        if not path.exists():
            logger.error(f"Config file does not exist: {path}")
            raise ConfigError(f"config file does not exist: {path}")
        try:
            data = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read config file {path}: {e}")
            raise ConfigError(f"failed to read config file: {e}") from e
        return cls.from_json(data)

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Serialize back to the camelCase wire format."""
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=indent)

    def save(self, path: Union[str, Path]) -> None:
        """
        Write the definitions to ``path`` as JSON.

        Raises:
            ConfigError: If the file cannot be written
        """
        try:
            Path(path).write_text(self.to_json(), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to save system config to {path}: {e}")
            raise ConfigError(f"failed to save config file: {e}") from e
        logger.debug(f"Saved system config to {path}")
