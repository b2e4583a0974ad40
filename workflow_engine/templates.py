"""Built-in healthcare workflow templates."""

from typing import Callable, Dict, List

from .core.exceptions import ConfigurationError
from .models import (
    ComplianceLevel,
    EdgeKind,
    NodeKind,
    Priority,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)


def create_clinical_decision_support_workflow() -> WorkflowDefinition:
    """
    Create a clinical decision support workflow.

    This workflow:
    1. Takes in a patient case
    2. Gathers the patient history
    3. Runs an AI-assisted risk assessment
    4. Branches to a specialist referral or a care plan, both clinician-reviewed
    5. Documents the decision
    """
    nodes = [
        WorkflowNode(id="intake", kind=NodeKind.START, label="Case Intake", category="clinical"),
        WorkflowNode(
            id="patient-history",
            kind=NodeKind.DATA,
            label="Patient History",
            description="Collect history, medications and recent labs",
            category="clinical",
            priority=Priority.HIGH,
            estimated_duration_seconds=300,
        ),
        WorkflowNode(
            id="risk-assessment",
            kind=NodeKind.PROCESS,
            label="Risk Assessment",
            description="Score the case with the decision support model",
            category="technical",
            priority=Priority.CRITICAL,
            estimated_duration_seconds=60,
        ),
        WorkflowNode(
            id="treatment-decision",
            kind=NodeKind.DECISION,
            label="Treatment Decision",
            category="clinical",
            priority=Priority.CRITICAL,
        ),
        WorkflowNode(
            id="specialist-referral",
            kind=NodeKind.PROCESS,
            label="Specialist Referral",
            category="communication",
            priority=Priority.HIGH,
        ),
        WorkflowNode(
            id="care-plan",
            kind=NodeKind.PROCESS,
            label="Care Plan",
            category="clinical",
            priority=Priority.CRITICAL,
        ),
        WorkflowNode(id="documentation", kind=NodeKind.END, label="Documentation", category="administrative"),
    ]

    edges = [
        WorkflowEdge(id="intake-history", source="intake", target="patient-history"),
        WorkflowEdge(
            id="history-risk",
            source="patient-history",
            target="risk-assessment",
            kind=EdgeKind.DATAFLOW,
            requires_validation=True,
            validation_criteria=["patient-consent"],
        ),
        WorkflowEdge(id="risk-decision", source="risk-assessment", target="treatment-decision"),
        WorkflowEdge(
            id="decision-referral",
            source="treatment-decision",
            target="specialist-referral",
            kind=EdgeKind.CONDITIONAL,
            label="High risk",
            condition="risk_score >= 0.7",
            requires_validation=True,
            validation_criteria=["clinician-review"],
        ),
        WorkflowEdge(
            id="decision-care-plan",
            source="treatment-decision",
            target="care-plan",
            kind=EdgeKind.CONDITIONAL,
            label="Routine",
            condition="risk_score < 0.7",
            requires_validation=True,
            validation_criteria=["clinician-review", "contraindication-check"],
        ),
        WorkflowEdge(id="referral-documentation", source="specialist-referral", target="documentation"),
        WorkflowEdge(id="care-plan-documentation", source="care-plan", target="documentation"),
    ]

    return WorkflowDefinition(
        id="clinical-decision-support",
        name="Clinical Decision Support",
        category="clinical-workflow",
        description="AI-powered clinical decision support workflow for healthcare providers",
        nodes=nodes,
        edges=edges,
        compliance_level=ComplianceLevel.ENHANCED,
        tags=["clinical", "decision-support", "ai", "healthcare"],
    )


def create_patient_data_pipeline_workflow() -> WorkflowDefinition:
    """Create a secure pipeline for processing and analyzing patient data."""
    nodes = [
        WorkflowNode(id="request", kind=NodeKind.START, label="Data Request"),
        WorkflowNode(
            id="ingest",
            kind=NodeKind.DATA,
            label="Ingest Records",
            category="technical",
            estimated_duration_seconds=120,
        ),
        WorkflowNode(
            id="de-identify",
            kind=NodeKind.PROCESS,
            label="De-identify",
            description="Strip protected health information before analysis",
            category="technical",
            priority=Priority.CRITICAL,
        ),
        WorkflowNode(id="analyze", kind=NodeKind.PROCESS, label="Analyze", category="technical"),
        WorkflowNode(id="report", kind=NodeKind.END, label="Report", category="administrative"),
    ]

    edges = [
        WorkflowEdge(id="request-ingest", source="request", target="ingest"),
        WorkflowEdge(id="ingest-de-identify", source="ingest", target="de-identify", kind=EdgeKind.DATAFLOW),
        WorkflowEdge(
            id="de-identify-analyze",
            source="de-identify",
            target="analyze",
            kind=EdgeKind.DATAFLOW,
            requires_validation=True,
            validation_criteria=["phi-removed"],
        ),
        WorkflowEdge(id="analyze-report", source="analyze", target="report"),
    ]

    return WorkflowDefinition(
        id="patient-data-pipeline",
        name="Patient Data Processing Pipeline",
        category="data-analysis",
        description="Secure workflow for processing and analyzing patient healthcare data",
        nodes=nodes,
        edges=edges,
        compliance_level=ComplianceLevel.STANDARD,
        tags=["patient-data", "hipaa", "processing", "analysis"],
    )


def create_ai_implementation_assessment_workflow() -> WorkflowDefinition:
    """
    Create an AI implementation readiness assessment.

    A failed go/no-go decision loops back to the readiness review through a
    feedback edge, so this graph contains a cycle.
    """
    nodes = [
        WorkflowNode(id="kickoff", kind=NodeKind.START, label="Kickoff"),
        WorkflowNode(
            id="readiness-review",
            kind=NodeKind.PROCESS,
            label="Readiness Review",
            category="administrative",
            priority=Priority.HIGH,
        ),
        WorkflowNode(
            id="data-governance",
            kind=NodeKind.PROCESS,
            label="Data Governance",
            category="technical",
            priority=Priority.CRITICAL,
        ),
        WorkflowNode(
            id="go-no-go",
            kind=NodeKind.DECISION,
            label="Go / No-Go",
            category="administrative",
            priority=Priority.CRITICAL,
        ),
        WorkflowNode(id="implementation-plan", kind=NodeKind.END, label="Implementation Plan"),
    ]

    edges = [
        WorkflowEdge(id="kickoff-readiness", source="kickoff", target="readiness-review"),
        WorkflowEdge(id="readiness-governance", source="readiness-review", target="data-governance"),
        WorkflowEdge(
            id="governance-decision",
            source="data-governance",
            target="go-no-go",
            requires_validation=True,
            validation_criteria=["security-review", "privacy-impact-assessment"],
        ),
        WorkflowEdge(
            id="decision-plan",
            source="go-no-go",
            target="implementation-plan",
            kind=EdgeKind.CONDITIONAL,
            label="Go",
            requires_validation=True,
            validation_criteria=["executive-sign-off"],
        ),
        WorkflowEdge(
            id="decision-remediate",
            source="go-no-go",
            target="readiness-review",
            kind=EdgeKind.FEEDBACK,
            label="Remediate",
        ),
    ]

    return WorkflowDefinition(
        id="ai-implementation-assessment",
        name="AI Implementation Assessment",
        category="ai-implementation",
        description="Comprehensive workflow for assessing AI implementation readiness in healthcare organizations",
        nodes=nodes,
        edges=edges,
        compliance_level=ComplianceLevel.ENHANCED,
        tags=["ai", "assessment", "healthcare", "implementation"],
    )


TEMPLATES: Dict[str, Callable[[], WorkflowDefinition]] = {
    "clinical-decision-support": create_clinical_decision_support_workflow,
    "patient-data-pipeline": create_patient_data_pipeline_workflow,
    "ai-implementation-assessment": create_ai_implementation_assessment_workflow,
}


def list_templates() -> List[str]:
    return sorted(TEMPLATES)


def get_template(name: str) -> WorkflowDefinition:
    """Build a fresh definition for the named template.

    Raises:
        ConfigurationError: If no template has that name
    """
    try:
        factory = TEMPLATES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown workflow template '{name}'. Available: {', '.join(list_templates())}",
            config_key="template"
        ) from None
    return factory()
