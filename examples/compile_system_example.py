from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from agentgraph import (
    AgentDefinition,
    AgentSystemManager,
    CircularDependencyError,
    NodeKind,
    SystemInputs,
    ToolDefinition,
    WorkflowDefinition,
    WorkflowStep,
    configure_logging,
    load_settings,
)

settings = load_settings()
configure_logging(settings.log_level)


@dataclass
class CompiledAgent:
    uid: str
    delegates: Dict[str, Any]


@dataclass
class CompiledWorkflow:
    uid: str
    agents: List[str]


def compile_agent(node_id: str, dependencies: Mapping[str, Any]) -> CompiledAgent:
    return CompiledAgent(uid=node_id, delegates=dict(dependencies))


def compile_workflow(node_id: str, dependencies: Mapping[str, Any]) -> CompiledWorkflow:
    return CompiledWorkflow(uid=node_id, agents=list(dependencies))


inputs = SystemInputs(
    tools=[ToolDefinition(uid="search", name="search", type="builtin")],
    agents=[
        AgentDefinition(uid="researcher", model="anthropic/claude-3-haiku", tools=["search"]),
        AgentDefinition(uid="writer", model="anthropic/claude-3-haiku"),
        AgentDefinition(uid="editor", sub_agents=["writer", "researcher"]),
    ],
    workflows=[
        WorkflowDefinition(
            uid="article",
            steps=[
                WorkflowStep(uid="research", agent="researcher"),
                WorkflowStep(uid="draft", agent="editor", sub_agents=["writer"]),
            ],
        )
    ],
)

print("=== Scenario 1: valid system ===")
manager = AgentSystemManager.validate(inputs, settings)
print(manager.graph.to_mermaid())
print(f"Compilation order: {manager.graph.compilation_order}")

result = manager.compile({NodeKind.AGENT: compile_agent, NodeKind.WORKFLOW: compile_workflow})
for uid in result.order:
    print(f"  {uid}: {result.artifact_for(uid)}")
print(f"Tools after validation: {[tool.uid for tool in manager.tools]}")

print("\n=== Scenario 2: circular delegation ===")
looped = SystemInputs(agents=[
    AgentDefinition(uid="ping", sub_agents=["pong"]),
    AgentDefinition(uid="pong", sub_agents=["ping"]),
])
try:
    AgentSystemManager.validate(looped, settings)
except CircularDependencyError as e:
    print(f"Rejected: {e}")
    print(f"Cycles: {e.cycles}")
