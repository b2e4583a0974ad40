"""Data models for the workflow engine."""

from .core import (
    NodeKind,
    EdgeKind,
    Priority,
    ComplianceLevel,
    WorkflowStatus,
    NodeStatus,
    WorkflowEventKind,
    ExitReason,
    ValidationResult,
    WorkflowNode,
    WorkflowEdge,
    WorkflowDefinition,
    QualityMetrics,
    WorkflowStateSnapshot,
    NodeEnterEvent,
    NodeExitEvent,
    EdgeTraverseEvent,
    ErrorEvent,
    CompletionEvent,
    WorkflowEvent,
    ComplianceStatus,
    AuditReport,
)

__all__ = [
    "NodeKind",
    "EdgeKind",
    "Priority",
    "ComplianceLevel",
    "WorkflowStatus",
    "NodeStatus",
    "WorkflowEventKind",
    "ExitReason",
    "ValidationResult",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowDefinition",
    "QualityMetrics",
    "WorkflowStateSnapshot",
    "NodeEnterEvent",
    "NodeExitEvent",
    "EdgeTraverseEvent",
    "ErrorEvent",
    "CompletionEvent",
    "WorkflowEvent",
    "ComplianceStatus",
    "AuditReport",
]
