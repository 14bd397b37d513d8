"""
System manager holding a validated agent system and its compiled artifacts.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from agentgraph.compiler import CompilationOrchestrator, CompilationResult, CompileStrategy
from agentgraph.config import CompilerSettings, configure_logging, load_settings
from agentgraph.dependency.graph import DependencyGraph, NodeKind, build_dependency_graph
from agentgraph.errors import ConfigError, EntityNotFoundError
from agentgraph.models import AgentDefinition, SystemInputs, ToolDefinition, WorkflowDefinition

logger = logging.getLogger("agentgraph.manager")

USE_AGENT_TOOL = "useAgentTool"


def use_agent_tool(agent: AgentDefinition) -> Optional[ToolDefinition]:
    """
    Build the delegation tool for an agent with sub-agents.

    The input schema restricts the ``agent`` argument to the agent's own
    sub-agents. Returns None when the agent has none.
    """
    if not agent.sub_agents:
        return None
    return ToolDefinition(
        uid=USE_AGENT_TOOL,
        name=USE_AGENT_TOOL,
        type="builtin",
        description=f"Delegate a task to one of the sub-agents of '{agent.uid}'",
        input_schema={
            "type": "object",
            "properties": {
                "agent": {"type": "string", "enum": list(dict.fromkeys(agent.sub_agents))},
                "input": {"type": "string"},
            },
            "required": ["agent", "input"],
        },
    )


class AgentSystemManager:
    """
    Holds the tools, agents and workflows of one validated system.

    Construction validates the dependency graph without compiling anything.
    ``compile`` then runs the orchestrator and keeps its registries.

    Attributes:
        tools: Tool definitions, including synthesized ``useAgentTool`` entries
        agents: Agent definitions; agents with sub-agents list ``useAgentTool``
        workflows: Workflow definitions
        graph: The validated dependency graph
        result: The last successful compilation, if any
    """

    def __init__(self, tools: List[ToolDefinition], agents: List[AgentDefinition],
                 workflows: List[WorkflowDefinition], graph: DependencyGraph) -> None:
        self.tools = tools
        self.agents = agents
        self.workflows = workflows
        self.graph = graph
        self.result: Optional[CompilationResult] = None

    @classmethod
    def validate(cls, inputs: SystemInputs,
                 settings: Optional[CompilerSettings] = None) -> "AgentSystemManager":
        """
        Validate ``inputs`` and build a manager for them.

        Raises:
            UnresolvedDependencyError, CircularDependencyError: If the graph is invalid
        """
        settings = settings or CompilerSettings()
        graph = build_dependency_graph(inputs)

        tools = list(inputs.tools)
        agents: List[AgentDefinition] = []
        for agent in inputs.agents:
            tool = use_agent_tool(agent) if settings.generate_use_agent_tools else None
            if tool is None:
                agents.append(agent)
                continue
            tools.append(tool)
            agents.append(agent.model_copy(update={"tools": [*agent.tools, USE_AGENT_TOOL]}))

        logger.info(
            f"Validated system: {len(tools)} tools, {len(agents)} agents, "
            f"{len(inputs.workflows)} workflows"
        )
        return cls(tools, agents, list(inputs.workflows), graph)

    @classmethod
    def from_settings(cls, settings: Optional[CompilerSettings] = None) -> "AgentSystemManager":
        """Load and validate the system definition named by the settings, applying its log level."""
        settings = settings or load_settings()
        configure_logging(settings.log_level)
        if settings.system_config_path is None:
            raise ConfigError("AGENTGRAPH_SYSTEM_CONFIG is not set")
        return cls.validate(SystemInputs.load(settings.system_config_path), settings)

    def compile(self, strategies: Mapping[NodeKind, CompileStrategy]) -> CompilationResult:
        """Compile every agent and workflow. On failure no result is kept."""
        self.result = None
        result = CompilationOrchestrator(strategies).compile(self.graph)
        self.result = result
        return result

    def get_workflow(self, workflow_uid: str) -> WorkflowDefinition:
        for workflow in self.workflows:
            if workflow.uid == workflow_uid:
                return workflow
        raise EntityNotFoundError("workflow", workflow_uid)

    def get_agent(self, agent_uid: str) -> AgentDefinition:
        for agent in self.agents:
            if agent.uid == agent_uid:
                return agent
        raise EntityNotFoundError("agent", agent_uid)

    def get_tool(self, tool_uid: str) -> ToolDefinition:
        """Find a tool by uid, falling back to its name."""
        for tool in self.tools:
            if tool.uid == tool_uid or tool.name == tool_uid:
                return tool
        raise EntityNotFoundError("tool", tool_uid)

    def get_compiled(self, uid: str) -> Any:
        """Get the compiled artifact of an agent or workflow."""
        if self.result is None or uid not in self.result.index:
            raise EntityNotFoundError("compiled entity", uid)
        return self.result.artifact_for(uid)

    def compiled_registries(self) -> Dict[NodeKind, List[Any]]:
        if self.result is None:
            return {NodeKind.AGENT: [], NodeKind.WORKFLOW: []}
        return {NodeKind.AGENT: list(self.result.agents), NodeKind.WORKFLOW: list(self.result.workflows)}
