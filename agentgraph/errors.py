"""
Error types raised while building, validating and compiling an agent system.

Every stage of the pipeline fails the whole build on its first error. The
exceptions carry the structured details (offending ids, cycle paths, the
failing node) as attributes so callers can report precisely without parsing
messages.
"""
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from agentgraph.compiler import CompilationResult
    from agentgraph.dependency.graph import NodeKind


class DependencyGraphError(Exception):
    """Base class for every error raised by the build pipeline."""
    pass


class UnresolvedDependencyError(DependencyGraphError):
    """A declared dependency does not match any agent or workflow node."""

    def __init__(self, dependency_id: str, node_id: str):
        self.dependency_id = dependency_id
        self.node_id = node_id
        super().__init__(f"dependency '{dependency_id}' not found for node '{node_id}'")


class CircularDependencyError(DependencyGraphError):
    """One or more dependency cycles were found before compilation."""

    def __init__(self, cycles: List[List[str]]):
        self.cycles = [list(cycle) for cycle in cycles]
        rendered = "; ".join(" -> ".join(cycle) for cycle in self.cycles)
        super().__init__(f"circular dependencies detected: {rendered}")


class TopologicalInconsistencyError(DependencyGraphError):
    """
    The sorter emitted fewer ids than there are nodes.

    Only reachable if cycle detection let a cycle through, so this is an
    internal invariant violation rather than a user-facing cycle report.
    """

    def __init__(self, expected: int, produced: int):
        self.expected = expected
        self.produced = produced
        super().__init__(
            f"topological sort produced {produced} of {expected} nodes after a cycle-free check"
        )


class CompileFailureError(DependencyGraphError):
    """
    A compile strategy failed for one node.

    ``partial_result`` holds whatever was compiled before the failure. It is
    returned for diagnostics only and must not be used as a working system.
    """

    def __init__(self, node_id: str, kind: "NodeKind", cause: BaseException,
                 partial_result: Optional["CompilationResult"] = None):
        self.node_id = node_id
        self.kind = kind
        self.cause = cause
        self.partial_result = partial_result
        super().__init__(f"failed to compile {kind.value} '{node_id}': {cause}")


class ConfigError(DependencyGraphError):
    """A system definition could not be loaded or is structurally empty."""
    pass


class EntityNotFoundError(DependencyGraphError, LookupError):
    """Lookup of a tool, agent or workflow by uid failed."""

    def __init__(self, kind: str, uid: str):
        self.kind = kind
        self.uid = uid
        super().__init__(f"{kind} with UID '{uid}' not found")
