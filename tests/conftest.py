"""Pytest configuration and fixtures."""

from typing import Dict, Optional

import pytest

from workflow_engine.config import EngineConfig, get_testing_config, reset_config
from workflow_engine.core import CriterionRegistry, WorkflowEngine
from workflow_engine.models import (
    ComplianceLevel,
    NodeKind,
    Priority,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int):
        self.now += millis


def make_definition(nodes, edges, compliance_level: Optional[ComplianceLevel] = ComplianceLevel.STANDARD,
                    workflow_id: str = "test-workflow") -> WorkflowDefinition:
    return WorkflowDefinition(
        id=workflow_id,
        name="Test Workflow",
        nodes=nodes,
        edges=edges,
        compliance_level=compliance_level,
    )


@pytest.fixture(autouse=True)
def clean_config():
    """Keep the global configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def linear_definition() -> WorkflowDefinition:
    """start -> a -> end, with a critical."""
    return make_definition(
        nodes=[
            WorkflowNode(id="start", kind=NodeKind.START, label="Start"),
            WorkflowNode(id="a", kind=NodeKind.PROCESS, label="Step A", priority=Priority.CRITICAL),
            WorkflowNode(id="end", kind=NodeKind.END, label="End"),
        ],
        edges=[
            WorkflowEdge(id="start-a", source="start", target="a"),
            WorkflowEdge(id="a-end", source="a", target="end"),
        ],
    )


@pytest.fixture
def gated_definition() -> WorkflowDefinition:
    """start -> a -> b -> end, where a -> b requires doctor approval."""
    return make_definition(
        nodes=[
            WorkflowNode(id="start", kind=NodeKind.START),
            WorkflowNode(id="a", kind=NodeKind.PROCESS, priority=Priority.CRITICAL),
            WorkflowNode(id="b", kind=NodeKind.PROCESS, priority=Priority.CRITICAL),
            WorkflowNode(id="end", kind=NodeKind.END),
        ],
        edges=[
            WorkflowEdge(id="start-a", source="start", target="a"),
            WorkflowEdge(
                id="a-b",
                source="a",
                target="b",
                requires_validation=True,
                validation_criteria=["doctor-approval"],
            ),
            WorkflowEdge(id="b-end", source="b", target="end"),
        ],
    )


@pytest.fixture
def branching_definition() -> WorkflowDefinition:
    """start -> review (decision) -> approve | reject -> end."""
    return make_definition(
        nodes=[
            WorkflowNode(id="start", kind=NodeKind.START),
            WorkflowNode(id="review", kind=NodeKind.DECISION),
            WorkflowNode(id="approve", kind=NodeKind.PROCESS),
            WorkflowNode(id="reject", kind=NodeKind.PROCESS),
            WorkflowNode(id="end", kind=NodeKind.END),
        ],
        edges=[
            WorkflowEdge(id="start-review", source="start", target="review"),
            WorkflowEdge(id="review-approve", source="review", target="approve"),
            WorkflowEdge(id="review-reject", source="review", target="reject"),
            WorkflowEdge(id="approve-end", source="approve", target="end"),
            WorkflowEdge(id="reject-end", source="reject", target="end"),
        ],
        compliance_level=None,
    )


@pytest.fixture
def config() -> EngineConfig:
    return get_testing_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(config, clock):
    """Factory building engines with the testing config and a fake clock.

    Engines must be created inside the running event loop of the test.
    """
    def factory(definition, criteria: Optional[Dict[str, bool]] = None, **overrides) -> WorkflowEngine:
        registry = CriterionRegistry()
        for name, outcome in (criteria or {}).items():
            registry.register(name, lambda outcome=outcome: outcome)
        engine_config = config.model_copy(update=overrides) if overrides else config
        return WorkflowEngine(definition, config=engine_config, criterion_evaluator=registry, clock=clock)
    return factory
