"""
agentgraph: dependency-ordered compilation of agent systems.

Agents, workflows and tools reference one another by string id. This package
validates those references, rejects dependency cycles, orders the entities so
that every dependency comes first, and drives a caller-supplied compile
strategy over them in that order.
"""
from agentgraph.compiler import (
    CompilationOrchestrator,
    CompilationResult,
    CompileStrategy,
    compile_system,
)
from agentgraph.config import CompilerSettings, configure_logging, load_settings
from agentgraph.dependency import (
    DependencyGraph,
    GraphNode,
    NodeKind,
    NodeState,
    build_dependency_graph,
    build_nodes,
    detect_cycles,
    link_edges,
    topological_sort,
)
from agentgraph.errors import (
    CircularDependencyError,
    CompileFailureError,
    ConfigError,
    DependencyGraphError,
    EntityNotFoundError,
    TopologicalInconsistencyError,
    UnresolvedDependencyError,
)
from agentgraph.manager import AgentSystemManager
from agentgraph.models import (
    AgentDefinition,
    SystemInputs,
    ToolDefinition,
    WorkflowDefinition,
    WorkflowLimits,
    WorkflowStep,
)

__all__ = [
    "AgentDefinition",
    "AgentSystemManager",
    "CircularDependencyError",
    "CompilationOrchestrator",
    "CompilationResult",
    "CompileFailureError",
    "CompileStrategy",
    "CompilerSettings",
    "ConfigError",
    "DependencyGraph",
    "DependencyGraphError",
    "EntityNotFoundError",
    "GraphNode",
    "NodeKind",
    "NodeState",
    "SystemInputs",
    "ToolDefinition",
    "TopologicalInconsistencyError",
    "UnresolvedDependencyError",
    "WorkflowDefinition",
    "WorkflowLimits",
    "WorkflowStep",
    "build_dependency_graph",
    "build_nodes",
    "compile_system",
    "configure_logging",
    "detect_cycles",
    "link_edges",
    "load_settings",
    "topological_sort",
]
