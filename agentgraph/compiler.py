"""
Compilation orchestrator for agent systems.

Walks a dependency graph's compilation order once, strictly sequentially, and
hands each node to the compile strategy registered for its kind. Because the
order is topological, every dependency of a node has been compiled by the time
the node itself is compiled, and its artifact is passed to the strategy.

The first failure stops the run. Nothing is compiled in parallel.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Protocol

from agentgraph.dependency.graph import (
    DependencyGraph,
    GraphNode,
    NodeKind,
    NodeState,
    build_dependency_graph,
)
from agentgraph.errors import CircularDependencyError, CompileFailureError, DependencyGraphError
from agentgraph.models import SystemInputs

logger = logging.getLogger("agentgraph.compiler")


class CompileStrategy(Protocol):
    """Turns a node id and its compiled dependencies into an artifact. Raises on failure."""
    def __call__(self, node_id: str, dependencies: Mapping[str, Any]) -> Any: ...


@dataclass
class CompilationResult:
    """
    Artifacts produced by one orchestration run, partitioned by node kind.

    ``agents`` and ``workflows`` list artifacts in compilation order. A node's
    ``artifact_index`` points into the list for its kind.
    """
    order: List[str] = field(default_factory=list)
    agents: List[Any] = field(default_factory=list)
    workflows: List[Any] = field(default_factory=list)
    index: Dict[str, int] = field(default_factory=dict)
    kinds: Dict[str, NodeKind] = field(default_factory=dict)
    complete: bool = False

    def by_kind(self, kind: NodeKind) -> List[Any]:
        if kind is NodeKind.AGENT:
            return self.agents
        return self.workflows

    def add(self, node_id: str, kind: NodeKind, artifact: Any) -> int:
        registry = self.by_kind(kind)
        registry.append(artifact)
        position = len(registry) - 1
        self.index[node_id] = position
        self.kinds[node_id] = kind
        return position

    def artifact_for(self, node_id: str) -> Any:
        """Get the compiled artifact of a node. Raises KeyError if it was not compiled."""
        return self.by_kind(self.kinds[node_id])[self.index[node_id]]

    def compiled_ids(self) -> List[str]:
        return list(self.index)

    @property
    def is_complete(self) -> bool:
        return self.complete


class CompilationOrchestrator:
    """
    Drives per-node compilation in dependency order.

    Attributes:
        strategies: Compile strategy for each node kind
    """

    def __init__(self, strategies: Mapping[NodeKind, CompileStrategy]) -> None:
        self.strategies = dict(strategies)

    def compile(self, graph: DependencyGraph) -> CompilationResult:
        """
        Compile every node of ``graph`` in its compilation order.

        Node state moves ``pending -> compiling -> compiled | failed``. A failed
        node ends the run: no later node is touched.

        Args:
            graph: A linked, acyclic graph with ``compilation_order`` set

        Returns:
            The complete result, with every node compiled

        Raises:
            CircularDependencyError: If the graph still records cycles
            DependencyGraphError: If the graph has no compilation order
            CompileFailureError: If a strategy fails or a kind has no strategy.
                The partial result is attached as ``partial_result``.
        """
        if graph.cycles:
            raise CircularDependencyError(graph.cycles)
        if len(graph.compilation_order) != len(graph.nodes):
            raise DependencyGraphError("graph has no complete compilation order; build it first")

        # Every run starts from pending; state from an earlier run is discarded
        for node in graph.nodes.values():
            node.state = NodeState.PENDING
            node.artifact_index = None

        result = CompilationResult(order=list(graph.compilation_order))
        logger.info(f"Compiling {len(result.order)} nodes")

        for node_id in result.order:
            node = graph.nodes[node_id]
            artifact = self._compile_node(graph, node, result)
            node.artifact_index = result.add(node_id, node.kind, artifact)
            node.state = NodeState.COMPILED
            logger.debug(f"Compiled {node.kind.value} '{node_id}'")

        result.complete = True
        logger.info(
            f"Compiled {len(result.agents)} agents and {len(result.workflows)} workflows"
        )
        return result

    def _compile_node(self, graph: DependencyGraph, node: GraphNode,
                      result: CompilationResult) -> Any:
        node.state = NodeState.COMPILING

        strategy = self.strategies.get(node.kind)
        if strategy is None:
            node.state = NodeState.FAILED
            cause = LookupError(f"no compile strategy registered for {node.kind.value} nodes")
            logger.error(f"Cannot compile '{node.node_id}': {cause}")
            raise CompileFailureError(node.node_id, node.kind, cause, result)

        resolved = MappingProxyType(self._resolve_dependencies(graph, node, result))
        try:
            return strategy(node.node_id, resolved)
        except Exception as e:
            node.state = NodeState.FAILED
            logger.error(f"Compilation of {node.kind.value} '{node.node_id}' failed: {e}")
            raise CompileFailureError(node.node_id, node.kind, e, result) from e

    @staticmethod
    def _resolve_dependencies(graph: DependencyGraph, node: GraphNode,
                              result: CompilationResult) -> Dict[str, Any]:
        resolved: Dict[str, Any] = {}
        for dep_id in node.dependencies:
            if dep_id in resolved:
                continue
            dep_node = graph.nodes[dep_id]
            if not dep_node.compiled:
                # Only reachable if the order is not topological
                node.state = NodeState.FAILED
                raise DependencyGraphError(
                    f"dependency '{dep_id}' of '{node.node_id}' has not been compiled"
                )
            resolved[dep_id] = result.artifact_for(dep_id)
        return resolved


def compile_system(inputs: SystemInputs,
                   strategies: Mapping[NodeKind, CompileStrategy],
                   graph: Optional[DependencyGraph] = None) -> CompilationResult:
    """
    Build the dependency graph for ``inputs`` and compile it.

    Args:
        inputs: Raw system definitions
        strategies: Compile strategy for each node kind
        graph: An already built graph for ``inputs``, to skip rebuilding

    Returns:
        The complete compilation result
    """
    if graph is None:
        graph = build_dependency_graph(inputs)
    return CompilationOrchestrator(strategies).compile(graph)
