"""
Tests for the compilation orchestrator.
"""
from types import MappingProxyType

import pytest

from agentgraph import (
    CircularDependencyError,
    CompilationOrchestrator,
    CompileFailureError,
    DependencyGraphError,
    NodeKind,
    NodeState,
    SystemInputs,
    build_dependency_graph,
    build_nodes,
    compile_system,
    detect_cycles,
    link_edges,
)
from conftest import agent, step, workflow


class TestCompilationOrchestrator:
    """Sequential, dependency-ordered compilation."""

    @pytest.mark.integration
    def test_end_to_end_compiles_in_order(self, end_to_end_inputs, make_strategies):
        calls = []
        graph = build_dependency_graph(end_to_end_inputs)

        result = CompilationOrchestrator(make_strategies(calls)).compile(graph)

        assert calls == ["a1", "a2", "w1"]
        assert result.is_complete
        assert result.order == ["a1", "a2", "w1"]
        assert all(node.compiled for node in graph.nodes.values())
        assert result.agents == [("agent", "a1", ()), ("agent", "a2", ("a1",))]
        assert result.workflows == [("workflow", "w1", ("a2",))]

    def test_artifact_index_points_into_kind_registry(self, end_to_end_inputs, make_strategies):
        graph = build_dependency_graph(end_to_end_inputs)
        result = CompilationOrchestrator(make_strategies([])).compile(graph)

        assert graph.nodes["a1"].artifact_index == 0
        assert graph.nodes["a2"].artifact_index == 1
        assert graph.nodes["w1"].artifact_index == 0
        assert result.artifact_for("w1") == result.workflows[0]
        assert result.by_kind(NodeKind.AGENT) is result.agents

    def test_strategy_receives_dependency_artifacts(self, diamond_inputs, make_strategies):
        strategies = make_strategies([])
        compile_system(diamond_inputs, strategies)

        seen = strategies[NodeKind.AGENT].seen_dependencies
        assert seen["D"] == {}
        assert seen["B"] == {"D": ("agent", "D", ())}
        assert set(seen["A"]) == {"B", "C"}
        assert seen["A"]["B"] == ("agent", "B", ("D",))

    def test_dependency_view_is_read_only(self, end_to_end_inputs):
        received = {}

        def build(node_id, dependencies):
            received[node_id] = dependencies
            return node_id

        compile_system(end_to_end_inputs, {NodeKind.AGENT: build, NodeKind.WORKFLOW: build})

        assert isinstance(received["a2"], MappingProxyType)
        with pytest.raises(TypeError):
            received["a2"]["other"] = 1

    def test_duplicate_dependencies_resolved_once(self, make_strategies):
        inputs = SystemInputs(agents=[agent("x", sub_agents=["y", "y"]), agent("y")])
        strategies = make_strategies([])
        compile_system(inputs, strategies)
        assert list(strategies[NodeKind.AGENT].seen_dependencies["x"]) == ["y"]


class TestCompileFailure:
    """The first failing strategy stops the run."""

    def test_failure_short_circuits(self, end_to_end_inputs, make_strategies):
        calls = []
        graph = build_dependency_graph(end_to_end_inputs)
        orchestrator = CompilationOrchestrator(make_strategies(calls, fail_on=("a2",)))

        with pytest.raises(CompileFailureError) as exc_info:
            orchestrator.compile(graph)

        error = exc_info.value
        assert error.node_id == "a2"
        assert error.kind is NodeKind.AGENT
        assert isinstance(error.cause, RuntimeError)
        assert error.__cause__ is error.cause

        assert calls == ["a1", "a2"]
        assert graph.nodes["a1"].compiled
        assert not graph.nodes["a2"].compiled
        assert graph.nodes["a2"].state is NodeState.FAILED
        assert graph.nodes["w1"].state is NodeState.PENDING

        partial = error.partial_result
        assert not partial.is_complete
        assert partial.compiled_ids() == ["a1"]
        assert partial.workflows == []

    def test_missing_strategy_for_kind(self, end_to_end_inputs, make_strategies):
        strategies = make_strategies([])
        del strategies[NodeKind.WORKFLOW]

        with pytest.raises(CompileFailureError) as exc_info:
            compile_system(end_to_end_inputs, strategies)

        assert exc_info.value.node_id == "w1"
        assert exc_info.value.kind is NodeKind.WORKFLOW
        assert isinstance(exc_info.value.cause, LookupError)

    def test_cyclic_graph_is_never_compiled(self, make_strategies):
        calls = []
        inputs = SystemInputs(agents=[agent("x", sub_agents=["y"]), agent("y", sub_agents=["x"])])

        with pytest.raises(CircularDependencyError):
            compile_system(inputs, make_strategies(calls))
        assert calls == []

        graph = link_edges(build_nodes(inputs))
        graph.cycles = detect_cycles(graph)
        with pytest.raises(CircularDependencyError):
            CompilationOrchestrator(make_strategies(calls)).compile(graph)
        assert calls == []
        assert not any(node.compiled for node in graph.nodes.values())

    def test_unsorted_graph_is_rejected(self, end_to_end_inputs, make_strategies):
        graph = link_edges(build_nodes(end_to_end_inputs))
        with pytest.raises(DependencyGraphError):
            CompilationOrchestrator(make_strategies([])).compile(graph)

    def test_failure_in_workflow_keeps_agents(self, make_strategies):
        inputs = SystemInputs(
            agents=[agent("lead")],
            workflows=[workflow("flow", step("lead")), workflow("later", step("lead"))],
        )
        calls = []
        with pytest.raises(CompileFailureError) as exc_info:
            compile_system(inputs, make_strategies(calls, fail_on=("flow",)))

        assert calls == ["lead", "flow"]
        assert exc_info.value.partial_result.agents == [("agent", "lead", ())]

    def test_recompile_discards_earlier_state(self, end_to_end_inputs, make_strategies):
        graph = build_dependency_graph(end_to_end_inputs)
        CompilationOrchestrator(make_strategies([])).compile(graph)
        assert graph.nodes["w1"].compiled

        calls = []
        with pytest.raises(CompileFailureError) as exc_info:
            CompilationOrchestrator(make_strategies(calls, fail_on=("a2",))).compile(graph)

        assert calls == ["a1", "a2"]
        assert graph.nodes["a1"].compiled
        assert graph.nodes["a2"].state is NodeState.FAILED
        w1 = graph.nodes["w1"]
        assert not w1.compiled
        assert w1.state is NodeState.PENDING
        assert w1.artifact_index is None
        assert exc_info.value.partial_result.compiled_ids() == ["a1"]
