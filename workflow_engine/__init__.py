"""Step-gated workflow execution engine with audit and compliance reporting."""

from .core import (
    WorkflowEngine,
    WorkflowGraph,
    CriterionRegistry,
    load_definition,
    validate_definition,
    WorkflowEngineError,
    InvalidGraphError,
    NoStartNodeError,
    NodeNotFoundError,
    NodeExecutionError,
    EngineStateError,
)
from .config import EngineConfig, get_config, load_config
from .models import (
    WorkflowDefinition,
    WorkflowNode,
    WorkflowEdge,
    WorkflowStatus,
    NodeStatus,
    WorkflowEventKind,
)

__version__ = "1.0.0"

__all__ = [
    "WorkflowEngine",
    "WorkflowGraph",
    "CriterionRegistry",
    "load_definition",
    "validate_definition",
    "WorkflowEngineError",
    "InvalidGraphError",
    "NoStartNodeError",
    "NodeNotFoundError",
    "NodeExecutionError",
    "EngineStateError",
    "EngineConfig",
    "get_config",
    "load_config",
    "WorkflowDefinition",
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowStatus",
    "NodeStatus",
    "WorkflowEventKind",
]
