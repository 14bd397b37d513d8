"""
Implementation of the agent system dependency graph.

This module turns raw tool, agent and workflow definitions into a validated,
dependency-ordered build plan. The pipeline is a sequence of transformations:

1. ``build_nodes``: one node per agent and workflow, with declared dependency ids
2. ``link_edges``: resolve every dependency id and fill the reverse edges
3. ``detect_cycles``: depth-first search for dependency loops
4. ``topological_sort``: Kahn's algorithm producing the compilation order

``build_dependency_graph`` runs all four. Tools are registered as an
existence-only lookup set and never become nodes.
"""
import heapq
import logging
from enum import Enum
from typing import Dict, Iterator, List, Optional, Set, Tuple

from pydantic import BaseModel, Field

from agentgraph.errors import (
    CircularDependencyError,
    DependencyGraphError,
    TopologicalInconsistencyError,
    UnresolvedDependencyError,
)
from agentgraph.models import AgentDefinition, SystemInputs, WorkflowDefinition

logger = logging.getLogger("agentgraph.dependency")


class NodeKind(str, Enum):
    """Kind of entity a graph node stands for."""
    AGENT = "agent"
    WORKFLOW = "workflow"


class NodeState(str, Enum):
    """Compilation state of a single node."""
    PENDING = "pending"
    COMPILING = "compiling"
    COMPILED = "compiled"
    FAILED = "failed"


class GraphNode(BaseModel):
    """Represents an agent or workflow in the dependency graph."""
    node_id: str
    kind: NodeKind
    dependencies: List[str] = Field(default_factory=list)  # IDs this node requires, in declared order
    dependents: List[str] = Field(default_factory=list)    # IDs that require this node, filled by link_edges
    in_degree: int = 0
    state: NodeState = NodeState.PENDING
    artifact_index: Optional[int] = None  # Position in the per-kind artifact registry once compiled

    @property
    def compiled(self) -> bool:
        return self.state is NodeState.COMPILED

    def add_dependent(self, dep_id: str) -> None:
        """Add a dependent to this node. Duplicates are kept."""
        self.dependents.append(dep_id)

    def __str__(self) -> str:
        return (f"Node({self.node_id}, {self.kind.value}, deps={len(self.dependencies)}, "
                f"dependents={len(self.dependents)}, {self.state.value})")

    def __repr__(self) -> str:
        return self.__str__()


class DependencyGraph(BaseModel):
    """
    Dependency graph of the agents and workflows in one system.

    This class holds:
    1. The nodes, keyed by id, in definition order
    2. The set of known tool ids (never nodes)
    3. The compilation order, once sorted
    4. Any cycles found by cycle detection
    """
    nodes: Dict[str, GraphNode] = Field(default_factory=dict)
    tool_ids: Set[str] = Field(default_factory=set)
    linked: bool = False
    compilation_order: List[str] = Field(default_factory=list)
    cycles: List[List[str]] = Field(default_factory=list)

    def add_node(self, node_id: str, kind: NodeKind, dependencies: List[str]) -> GraphNode:
        """Create a node with its in-degree set to its dependency count."""
        if node_id in self.nodes:
            logger.warning(f"Duplicate definition for '{node_id}', replacing the earlier {self.nodes[node_id].kind.value}")
        node = GraphNode(
            node_id=node_id,
            kind=kind,
            dependencies=list(dependencies),
            in_degree=len(dependencies),
        )
        self.nodes[node_id] = node
        return node

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        """Get a node by ID."""
        return self.nodes.get(node_id)

    def get_dependent_ids(self, node_id: str) -> List[str]:
        """
        Get IDs of nodes that depend on this node.

        Args:
            node_id: ID of the node to get dependents for

        Returns:
            List of dependent node IDs, one entry per dependency edge
        """
        node = self.get_node(node_id)
        if node:
            return list(node.dependents)
        return []

    def is_graph_root(self, node_id: str) -> bool:
        """
        Check if a node is a root of the graph.

        A root is a node that nothing else depends on.
        """
        node = self.get_node(node_id)
        if node:
            return len(node.dependents) == 0
        return True

    def has_tool(self, tool_id: str) -> bool:
        return tool_id in self.tool_ids

    def get_cycles(self) -> List[List[str]]:
        """Get all detected cycles in the graph."""
        return self.cycles

    def to_mermaid(self) -> str:
        """Render the graph as a Mermaid flowchart, edges pointing from dependency to dependent."""
        aliases = {node_id: f"n{i}" for i, node_id in enumerate(self.nodes)}
        lines = ["graph TD"]
        for node_id, node in self.nodes.items():
            lines.append(f'    {aliases[node_id]}["{node_id} ({node.kind.value})"]')
        for node_id, node in self.nodes.items():
            for dep_id in node.dependencies:
                if dep_id in aliases:
                    lines.append(f"    {aliases[dep_id]} --> {aliases[node_id]}")
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes


# DEPENDENCY EXTRACTION

def agent_dependencies(agent: AgentDefinition) -> List[str]:
    """Sub-agents followed by sub-workflows. Tools are not dependencies and duplicates are kept."""
    return list(agent.sub_agents) + list(agent.sub_workflows)


def workflow_dependencies(workflow: WorkflowDefinition) -> List[str]:
    """Lead agent and sub-agents of every step, deduplicated in first-seen order."""
    deps: List[str] = []
    seen: Set[str] = set()
    for step in workflow.steps:
        for dep_id in [step.agent, *step.sub_agents]:
            if dep_id not in seen:
                seen.add(dep_id)
                deps.append(dep_id)
    return deps


# PIPELINE STAGES

def build_nodes(inputs: SystemInputs) -> DependencyGraph:
    """
    Create one unlinked node per agent and workflow.

    Never fails: unresolved or malformed references are left for ``link_edges``.

    Args:
        inputs: Raw system definitions

    Returns:
        A graph whose nodes carry their dependency lists and in-degrees,
        with empty ``dependents``
    """
    graph = DependencyGraph(tool_ids={tool.uid for tool in inputs.tools})

    for agent in inputs.agents:
        graph.add_node(agent.uid, NodeKind.AGENT, agent_dependencies(agent))

    for workflow in inputs.workflows:
        graph.add_node(workflow.uid, NodeKind.WORKFLOW, workflow_dependencies(workflow))

    logger.debug(f"Built {len(graph.nodes)} nodes and {len(graph.tool_ids)} tool ids")
    return graph


def link_edges(graph: DependencyGraph) -> DependencyGraph:
    """
    Resolve every dependency id and build the reverse adjacency.

    Returns a new graph; the input is left untouched. ``dependents`` mirrors
    ``dependencies`` with the same multiplicity.

    Raises:
        UnresolvedDependencyError: On the first dependency id that is not a node
    """
    linked = graph.model_copy(deep=True)
    for node in linked.nodes.values():
        node.dependents = []

    for node_id, node in linked.nodes.items():
        for dep_id in node.dependencies:
            dep_node = linked.nodes.get(dep_id)
            if dep_node is None:
                logger.error(f"Unresolved dependency '{dep_id}' declared by '{node_id}'")
                raise UnresolvedDependencyError(dep_id, node_id)
            dep_node.add_dependent(node_id)

    linked.linked = True
    return linked


def _find_cycle_from(root: str, graph: DependencyGraph,
                     visited: Set[str], on_stack: Set[str]) -> List[str]:
    """Iterative DFS from ``root`` along dependency edges. Returns the first cycle found, or []."""
    def deps_of(node_id: str) -> Iterator[str]:
        node = graph.nodes.get(node_id)
        return iter(node.dependencies if node else ())

    path = [root]
    visited.add(root)
    on_stack.add(root)
    stack: List[Tuple[str, Iterator[str]]] = [(root, deps_of(root))]

    while stack:
        node_id, deps = stack[-1]
        for dep_id in deps:
            if dep_id not in visited:
                visited.add(dep_id)
                on_stack.add(dep_id)
                path.append(dep_id)
                stack.append((dep_id, deps_of(dep_id)))
                break
            if dep_id in on_stack:
                cycle = path[path.index(dep_id):] + [dep_id]
                # Abandon this root; nothing on the path stays on-stack
                on_stack.difference_update(path)
                return cycle
        else:
            stack.pop()
            path.pop()
            on_stack.discard(node_id)

    return []


def detect_cycles(graph: DependencyGraph) -> List[List[str]]:
    """
    Find dependency cycles with a depth-first search.

    Roots are taken in sorted id order. Exploration from a root stops at the
    first cycle it reaches, so the result holds at most one cycle per root.
    This detects that cycles exist; it does not enumerate every cycle.

    Returns:
        List of cycle paths. Each path repeats its first id at the end to
        close the loop; a self-dependency is ``[x, x]``.
    """
    cycles: List[List[str]] = []
    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for node_id in sorted(graph.nodes):
        if node_id in visited:
            continue
        cycle = _find_cycle_from(node_id, graph, visited, on_stack)
        if cycle:
            logger.warning(f"Detected cycle: {' -> '.join(cycle)}")
            cycles.append(cycle)

    return cycles


def topological_sort(graph: DependencyGraph) -> List[str]:
    """
    Return node ids in compilation order (dependencies first) using Kahn's algorithm.

    Works on a private copy of the in-degrees. Whenever several nodes are
    ready, the lexically smallest id goes next, so identical inputs always
    give identical orders.

    Raises:
        DependencyGraphError: If the graph has not been linked
        TopologicalInconsistencyError: If not every node could be ordered
    """
    if not graph.linked:
        raise DependencyGraphError("graph edges must be linked before sorting")

    in_degrees = {node_id: node.in_degree for node_id, node in graph.nodes.items()}
    queue = sorted(node_id for node_id, degree in in_degrees.items() if degree == 0)
    heapq.heapify(queue)

    order: List[str] = []
    while queue:
        current = heapq.heappop(queue)
        order.append(current)

        for dependent_id in sorted(graph.nodes[current].dependents):
            in_degrees[dependent_id] -= 1
            if in_degrees[dependent_id] == 0:
                heapq.heappush(queue, dependent_id)

    if len(order) != len(graph.nodes):
        logger.error(f"Topological sort ordered {len(order)} of {len(graph.nodes)} nodes")
        raise TopologicalInconsistencyError(len(graph.nodes), len(order))

    return order


def build_dependency_graph(inputs: SystemInputs) -> DependencyGraph:
    """
    Build, link, check and sort the dependency graph of a system.

    Args:
        inputs: Raw system definitions

    Returns:
        A linked, acyclic graph with ``compilation_order`` filled

    Raises:
        UnresolvedDependencyError: A dependency id does not name a node
        CircularDependencyError: At least one cycle exists
        TopologicalInconsistencyError: Internal invariant violation in the sorter
    """
    graph = link_edges(build_nodes(inputs))

    cycles = detect_cycles(graph)
    if cycles:
        graph.cycles = cycles
        logger.warning(f"Detected {len(cycles)} cycles in the graph")
        raise CircularDependencyError(cycles)

    graph.compilation_order = topological_sort(graph)
    logger.info(f"Built dependency graph with {len(graph.nodes)} nodes")
    return graph
