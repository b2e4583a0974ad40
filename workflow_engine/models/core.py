"""Core Pydantic models for the workflow engine."""

import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_.:-]+$')


def _check_identifier(value: str, what: str) -> str:
    if not value or not value.strip():
        raise ValueError(f"{what} cannot be empty")
    value = value.strip()
    if not _ID_PATTERN.match(value):
        raise ValueError(
            f"{what} must contain only alphanumeric characters, underscores, hyphens, dots and colons"
        )
    return value


class NodeKind(str, Enum):
    """Kinds of workflow nodes."""
    START = "start"
    PROCESS = "process"
    DECISION = "decision"
    DATA = "data"
    END = "end"


class EdgeKind(str, Enum):
    """Kinds of workflow edges."""
    DEFAULT = "default"
    CONDITIONAL = "conditional"
    DATAFLOW = "dataflow"
    FEEDBACK = "feedback"


class Priority(str, Enum):
    """Node priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ComplianceLevel(str, Enum):
    """Compliance levels a workflow can be held to."""
    BASIC = "basic"
    STANDARD = "standard"
    ENHANCED = "enhanced"


class WorkflowStatus(str, Enum):
    """Lifecycle status of a workflow instance."""
    NOT_STARTED = "not_started"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"
    COMPLETED = "completed"


class NodeStatus(str, Enum):
    """Execution status of a single node."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    ERROR = "error"


class WorkflowEventKind(str, Enum):
    """Kinds of events recorded in the audit trail."""
    NODE_ENTER = "node-enter"
    NODE_EXIT = "node-exit"
    EDGE_TRAVERSE = "edge-traverse"
    ERROR = "error"
    COMPLETION = "completion"


class ExitReason(str, Enum):
    """Why a node was exited."""
    COMPLETED = "completed"
    TRAVERSED = "traversed"
    ABANDONED = "abandoned"
    VALIDATION_FAILED = "validation-failed"
    FAILED = "failed"


class _DefinitionModel(BaseModel):
    """Frozen model that accepts both snake_case and camelCase keys."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ValidationResult(BaseModel):
    """Result of graph validation."""
    is_valid: bool = Field(..., description="Whether the graph is valid")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of validation warnings")


class WorkflowNode(_DefinitionModel):
    """Definition of a workflow node."""
    id: str = Field(..., description="Unique identifier for the node")
    kind: NodeKind = Field(..., alias="type", description="Kind of step")
    label: str = Field(default="", description="Display label")
    description: str = Field(default="", description="Display description")
    category: Optional[str] = Field(None, description="Domain tag, e.g. 'clinical'")
    priority: Priority = Field(default=Priority.MEDIUM, description="Priority of the step")
    estimated_duration_seconds: Optional[float] = Field(
        None, description="Informational estimate of how long the step takes"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Opaque node metadata")

    @field_validator('id')
    @classmethod
    def validate_id_format(cls, id_value):
        """Ensure node ID follows valid format."""
        return _check_identifier(id_value, "Node ID")

    @field_validator('estimated_duration_seconds')
    @classmethod
    def validate_duration(cls, duration):
        """Ensure duration is not negative if specified."""
        if duration is not None and duration < 0:
            raise ValueError("Estimated duration cannot be negative")
        return duration


class WorkflowEdge(_DefinitionModel):
    """Definition of a transition between workflow nodes."""
    id: str = Field(..., description="Unique identifier for the edge")
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")
    kind: EdgeKind = Field(default=EdgeKind.DEFAULT, alias="type", description="Kind of transition")
    label: Optional[str] = Field(None, description="Display label")
    condition: Optional[str] = Field(None, description="Opaque predicate description")
    requires_validation: bool = Field(default=False, description="Whether traversal is gated")
    validation_criteria: List[str] = Field(
        default_factory=list, description="Named checks that must all pass before traversal"
    )

    @field_validator('id', 'source', 'target')
    @classmethod
    def validate_identifiers(cls, value):
        """Ensure referenced IDs are valid."""
        return _check_identifier(value, "Identifier")


class WorkflowDefinition(_DefinitionModel):
    """Complete, immutable definition of a workflow graph."""
    id: str = Field(..., description="Workflow ID")
    name: str = Field(..., description="Name of the workflow")
    category: Optional[str] = Field(None, description="Free-form classification tag")
    description: str = Field(default="", description="Description of the workflow")
    version: str = Field(default="1.0.0", description="Definition version")
    nodes: List[WorkflowNode] = Field(..., description="Ordered nodes of the graph")
    edges: List[WorkflowEdge] = Field(default_factory=list, description="Ordered edges of the graph")
    compliance_level: Optional[ComplianceLevel] = Field(
        None, description="Compliance level; None disables compliance reporting"
    )
    tags: List[str] = Field(default_factory=list, description="Free-form tags")

    @field_validator('name')
    @classmethod
    def validate_name_not_empty(cls, name):
        """Ensure workflow name is not empty."""
        if not name.strip():
            raise ValueError("Workflow name cannot be empty")
        return name.strip()

    @field_validator('id')
    @classmethod
    def validate_id_format(cls, id_value):
        """Ensure workflow ID follows valid format."""
        return _check_identifier(id_value, "Workflow ID")


class QualityMetrics(BaseModel):
    """Quality accumulator fed by completion payloads."""
    model_config = ConfigDict(frozen=True)

    accuracy: float = 0.0
    efficiency: float = 0.0
    safety: float = 0.0
    satisfaction: float = 0.0
    samples: int = 0


class WorkflowStateSnapshot(BaseModel):
    """Point-in-time, read-only copy of an engine's workflow state."""
    model_config = ConfigDict(frozen=True)

    status: WorkflowStatus = Field(..., description="Workflow lifecycle status")
    current_node_id: Optional[str] = Field(None, description="Node most recently entered")
    completed_nodes: List[str] = Field(default_factory=list, description="Completed node IDs in graph order")
    active_nodes: List[str] = Field(default_factory=list, description="Active node IDs in graph order")
    error_nodes: List[str] = Field(default_factory=list, description="Errored node IDs in graph order")
    progress: float = Field(default=0.0, ge=0.0, le=100.0, description="Percentage of nodes completed")
    node_data: Dict[str, Any] = Field(default_factory=dict, description="Completion payloads by node")
    edge_data: Dict[str, Any] = Field(default_factory=dict, description="Traversal records by edge")
    node_errors: Dict[str, str] = Field(default_factory=dict, description="Last error message by node")
    quality_metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    start_time_millis: Optional[int] = Field(None, description="When the workflow was started")
    estimated_completion_millis: Optional[int] = Field(
        None, description="Start time plus the configured maximum execution time"
    )
    generation: int = Field(default=0, description="State version stamp")


class _BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp_millis: int = Field(..., description="When the event was produced")
    data: Dict[str, Any] = Field(default_factory=dict, description="Opaque payload")


class NodeEnterEvent(_BaseEvent):
    """A node became active."""
    kind: Literal[WorkflowEventKind.NODE_ENTER] = WorkflowEventKind.NODE_ENTER
    node_id: str
    edge_id: Optional[str] = None


class NodeExitEvent(_BaseEvent):
    """An active node stopped being active."""
    kind: Literal[WorkflowEventKind.NODE_EXIT] = WorkflowEventKind.NODE_EXIT
    node_id: str
    reason: ExitReason


class EdgeTraverseEvent(_BaseEvent):
    """An edge passed validation and was followed."""
    kind: Literal[WorkflowEventKind.EDGE_TRAVERSE] = WorkflowEventKind.EDGE_TRAVERSE
    edge_id: str
    source: str
    target: str


class ErrorEvent(_BaseEvent):
    """A node entered the error status."""
    kind: Literal[WorkflowEventKind.ERROR] = WorkflowEventKind.ERROR
    node_id: str
    error: str
    edge_id: Optional[str] = None
    failed_criteria: List[str] = Field(default_factory=list)


class CompletionEvent(_BaseEvent):
    """Every end node has been completed."""
    kind: Literal[WorkflowEventKind.COMPLETION] = WorkflowEventKind.COMPLETION
    progress: float


WorkflowEvent = Annotated[
    Union[NodeEnterEvent, NodeExitEvent, EdgeTraverseEvent, ErrorEvent, CompletionEvent],
    Field(discriminator="kind"),
]


class ComplianceStatus(BaseModel):
    """Compliance summary over critical-priority nodes."""
    model_config = ConfigDict(frozen=True)

    level: ComplianceLevel
    critical_steps_completed: int = Field(..., ge=0)
    total_critical_steps: int = Field(..., ge=0)
    compliance_score: float = Field(..., ge=0.0, le=100.0)
    audit_trail_enabled: bool
    last_validated: int = Field(..., description="Milliseconds timestamp of the computation")
    requirements: List[str] = Field(default_factory=list)
    audit_frequency: Optional[str] = None


class AuditReport(BaseModel):
    """Full execution record of one workflow instance."""
    model_config = ConfigDict(frozen=True)

    workflow_id: str
    workflow_name: str
    status: WorkflowStatus
    execution_time_millis: int = Field(..., ge=0)
    events: List[WorkflowEvent] = Field(default_factory=list)
    state: WorkflowStateSnapshot
    compliance: Optional[ComplianceStatus] = None
    generated_at: int = Field(..., description="Milliseconds timestamp of report generation")
