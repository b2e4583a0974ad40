"""Tests for the audit trail, compliance scoring and audit reports."""

import json

import pytest

from conftest import make_definition
from workflow_engine.core import COMPLIANCE_LEVELS, AuditTrail, ComplianceReporter, WorkflowGraph
from workflow_engine.models import (
    AuditReport,
    ComplianceLevel,
    NodeEnterEvent,
    NodeKind,
    Priority,
    WorkflowEdge,
    WorkflowEventKind,
    WorkflowNode,
    WorkflowStatus,
)


def critical_graph(level=ComplianceLevel.ENHANCED, critical=("a", "b")):
    nodes = [WorkflowNode(id="start", kind=NodeKind.START)]
    for node_id in ("a", "b", "c"):
        priority = Priority.CRITICAL if node_id in critical else Priority.LOW
        nodes.append(WorkflowNode(id=node_id, kind=NodeKind.PROCESS, priority=priority))
    nodes.append(WorkflowNode(id="end", kind=NodeKind.END))
    edges = [
        WorkflowEdge(id="e1", source="start", target="a"),
        WorkflowEdge(id="e2", source="a", target="b"),
        WorkflowEdge(id="e3", source="b", target="c"),
        WorkflowEdge(id="e4", source="c", target="end"),
    ]
    return WorkflowGraph(make_definition(nodes, edges, compliance_level=level))


class TestAuditTrail:
    """Test cases for AuditTrail."""

    def test_append_preserves_order(self):
        trail = AuditTrail()
        first = NodeEnterEvent(node_id="a", timestamp_millis=1)
        second = NodeEnterEvent(node_id="b", timestamp_millis=2)

        trail.append(first)
        trail.append(second)

        assert trail.events == (first, second)
        assert len(trail) == 2
        assert list(trail) == [first, second]
        assert trail.count(WorkflowEventKind.NODE_ENTER) == 2
        assert trail.of_kind("node-exit") == []

    def test_disabled_trail_records_nothing(self):
        trail = AuditTrail(enabled=False)
        trail.append(NodeEnterEvent(node_id="a", timestamp_millis=1))
        assert len(trail) == 0


class TestComplianceReporter:
    """Test cases for ComplianceReporter."""

    def test_score_bounds(self):
        assert ComplianceReporter.score(0, 0) == 100
        assert ComplianceReporter.score(0, 4) == 0
        assert ComplianceReporter.score(1, 4) == 25
        assert ComplianceReporter.score(4, 4) == 100

    def test_status_over_critical_nodes(self):
        reporter = ComplianceReporter(critical_graph())

        status = reporter.status(["start", "a", "c"], True, lambda: 42)

        assert reporter.critical_node_ids == ["a", "b"]
        assert status.level == ComplianceLevel.ENHANCED
        assert status.critical_steps_completed == 1
        assert status.total_critical_steps == 2
        assert status.compliance_score == 50
        assert status.audit_trail_enabled
        assert status.last_validated == 42
        assert status.requirements == COMPLIANCE_LEVELS[ComplianceLevel.ENHANCED]["requirements"]
        assert status.audit_frequency == "weekly"

    def test_no_critical_nodes_is_fully_compliant(self):
        reporter = ComplianceReporter(critical_graph(level=ComplianceLevel.BASIC, critical=()))

        status = reporter.status([], False, lambda: 0)
        assert status.compliance_score == 100
        assert status.total_critical_steps == 0
        assert status.audit_frequency == "quarterly"

    def test_no_compliance_level(self):
        reporter = ComplianceReporter(critical_graph(level=None))
        assert reporter.status(["a"], True, lambda: 0) is None

    def test_compliance_mode_disabled(self):
        reporter = ComplianceReporter(critical_graph(), enabled=False)
        assert reporter.status(["a"], True, lambda: 0) is None


class TestAuditReport:
    """Test cases for engine audit reports."""

    @pytest.mark.asyncio
    async def test_report_contents(self, make_engine, linear_definition, clock):
        engine = make_engine(linear_definition)
        await engine.start()
        clock.advance(250)
        await engine.navigate_to_node("a")
        await engine.complete_node("a", {"result": "ok"})

        report = engine.generate_audit_report()

        assert isinstance(report, AuditReport)
        assert report.workflow_id == "test-workflow"
        assert report.status == WorkflowStatus.RUNNING
        assert report.execution_time_millis == 250
        assert report.generated_at == clock.now
        assert report.events == list(engine.execution_history)
        assert report.state.completed_nodes == ["start", "a"]
        assert report.compliance.critical_steps_completed == 1
        assert report.compliance.compliance_score == 100

    @pytest.mark.asyncio
    async def test_report_before_start(self, make_engine, linear_definition):
        engine = make_engine(linear_definition)

        report = engine.generate_audit_report()
        assert report.execution_time_millis == 0
        assert report.events == []
        assert report.state.status == WorkflowStatus.NOT_STARTED

    @pytest.mark.asyncio
    async def test_report_serializes_to_json(self, make_engine, gated_definition):
        engine = make_engine(gated_definition, criteria={"doctor-approval": False})
        await engine.start()
        await engine.navigate_to_node("a")
        await engine.navigate_to_node("b")

        data = json.loads(engine.generate_audit_report().model_dump_json())
        assert [event["kind"] for event in data["events"]][-1] == "error"
        assert data["state"]["error_nodes"] == ["a"]

        restored = AuditReport.model_validate(data)
        assert restored.events[-1].failed_criteria == ["doctor-approval"]

    @pytest.mark.asyncio
    async def test_report_is_a_snapshot(self, make_engine, linear_definition):
        engine = make_engine(linear_definition)
        await engine.start()
        report = engine.generate_audit_report()

        await engine.navigate_to_node("a")
        assert len(report.events) == 1
        assert report.state.active_nodes == ["start"]

    @pytest.mark.asyncio
    async def test_audit_trail_disabled(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, enable_audit_trail=False)
        await engine.start()
        await engine.navigate_to_node("a")

        assert engine.execution_history == ()
        assert engine.get_compliance_status().audit_trail_enabled is False
