"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    InvalidGraphError,
    NoStartNodeError,
    NodeNotFoundError,
    NodeExecutionError,
    EngineStateError,
    CriterionRegistryError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .graph_manager import WorkflowGraph, load_definition, validate_definition
from .criteria_registry import CriterionRegistry
from .validator import TransitionValidator, TransitionCheck
from .state_manager import ExecutionState, running_mean_reducer
from .events import EventDispatcher, Subscription
from .audit import AuditTrail, ComplianceReporter, COMPLIANCE_LEVELS
from .timers import AutoExecuteTimer
from .execution_engine import WorkflowEngine

__all__ = [
    "WorkflowEngineError",
    "InvalidGraphError",
    "NoStartNodeError",
    "NodeNotFoundError",
    "NodeExecutionError",
    "EngineStateError",
    "CriterionRegistryError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "WorkflowGraph",
    "load_definition",
    "validate_definition",
    "CriterionRegistry",
    "TransitionValidator",
    "TransitionCheck",
    "ExecutionState",
    "running_mean_reducer",
    "EventDispatcher",
    "Subscription",
    "AuditTrail",
    "ComplianceReporter",
    "COMPLIANCE_LEVELS",
    "AutoExecuteTimer",
    "WorkflowEngine",
]
