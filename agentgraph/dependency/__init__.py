"""
Agent system dependency graph.

This module builds the dependency graph of agents and workflows, detects
circular references and produces a compilation order.
"""
from .graph import (
    DependencyGraph,
    GraphNode,
    NodeKind,
    NodeState,
    agent_dependencies,
    build_dependency_graph,
    build_nodes,
    detect_cycles,
    link_edges,
    topological_sort,
    workflow_dependencies,
)

__all__ = [
    "DependencyGraph",
    "GraphNode",
    "NodeKind",
    "NodeState",
    "agent_dependencies",
    "build_dependency_graph",
    "build_nodes",
    "detect_cycles",
    "link_edges",
    "topological_sort",
    "workflow_dependencies",
]
