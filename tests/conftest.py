# conftest.py
import logging
from typing import Any, Callable, Dict, List, Mapping

import pytest

from agentgraph import (
    AgentDefinition,
    NodeKind,
    SystemInputs,
    ToolDefinition,
    WorkflowDefinition,
    WorkflowStep,
)


# Custom test markers
def pytest_configure(config):
    """Configure custom markers."""
    markers = [
        "slow: marks tests as slow",
        "integration: marks tests that run the whole build pipeline",
    ]
    for marker in markers:
        config.addinivalue_line("markers", marker)


def agent(uid: str, sub_agents: List[str] = (), sub_workflows: List[str] = (),
          tools: List[str] = ()) -> AgentDefinition:
    return AgentDefinition(uid=uid, sub_agents=list(sub_agents),
                           sub_workflows=list(sub_workflows), tools=list(tools))


def workflow(uid: str, *steps: WorkflowStep) -> WorkflowDefinition:
    return WorkflowDefinition(uid=uid, steps=list(steps))


def step(lead: str, sub_agents: List[str] = ()) -> WorkflowStep:
    return WorkflowStep(agent=lead, sub_agents=list(sub_agents))


class RecordingStrategy:
    """Compile strategy that records calls and returns a tagged tuple."""

    def __init__(self, kind: NodeKind, calls: List[str], fail_on: tuple = ()):
        self.kind = kind
        self.calls = calls
        self.fail_on = fail_on
        self.seen_dependencies: Dict[str, Dict[str, Any]] = {}

    def __call__(self, node_id: str, dependencies: Mapping[str, Any]) -> Any:
        self.calls.append(node_id)
        self.seen_dependencies[node_id] = dict(dependencies)
        if node_id in self.fail_on:
            raise RuntimeError(f"cannot build {node_id}")
        return (self.kind.value, node_id, tuple(sorted(dependencies)))


@pytest.fixture
def end_to_end_inputs() -> SystemInputs:
    """Tool search; a1 uses search; a2 delegates to a1; w1 is led by a2."""
    return SystemInputs(
        tools=[ToolDefinition(uid="search", name="search")],
        agents=[
            agent("a1", tools=["search"]),
            agent("a2", sub_agents=["a1"]),
        ],
        workflows=[workflow("w1", step("a2"))],
    )


@pytest.fixture
def diamond_inputs() -> SystemInputs:
    """A depends on B and C, which both depend on D."""
    return SystemInputs(agents=[
        agent("A", sub_agents=["B", "C"]),
        agent("B", sub_agents=["D"]),
        agent("C", sub_agents=["D"]),
        agent("D"),
    ])


@pytest.fixture
def make_strategies() -> Callable[..., Dict[NodeKind, RecordingStrategy]]:
    """Factory for a pair of recording strategies sharing one call log."""
    def factory(calls: List[str], fail_on: tuple = ()) -> Dict[NodeKind, RecordingStrategy]:
        return {
            NodeKind.AGENT: RecordingStrategy(NodeKind.AGENT, calls, fail_on),
            NodeKind.WORKFLOW: RecordingStrategy(NodeKind.WORKFLOW, calls, fail_on),
        }
    return factory


@pytest.fixture(autouse=True)
def agentgraph_log_level(caplog):
    caplog.set_level(logging.DEBUG, logger="agentgraph")
    yield
    # Drop handlers installed by configure_logging
    logger = logging.getLogger("agentgraph")
    for handler in [h for h in logger.handlers if getattr(h, "_agentgraph", False)]:
        logger.removeHandler(handler)
