"""Custom exceptions for the workflow engine with detailed error information."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorSeverity(Enum):
    """Error severity levels for categorizing exceptions."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    EXECUTION = "execution"
    STATE = "state"
    CONFIGURATION = "configuration"
    LOOKUP = "lookup"


class WorkflowEngineError(Exception):
    """Base exception for all workflow engine errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.EXECUTION,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.severity = severity
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and event payloads."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs):
        """Add additional details to the exception."""
        self.details.update(kwargs)
        return self


class InvalidGraphError(WorkflowEngineError):
    """Raised when a workflow definition fails structural validation."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        workflow_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.CRITICAL,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        self.validation_errors = validation_errors or []
        if workflow_id:
            self.add_context(workflow_id=workflow_id)
        if validation_errors:
            self.add_details(validation_errors=validation_errors)


class NoStartNodeError(WorkflowEngineError):
    """Raised by start() when the workflow has no start node."""

    def __init__(self, message: str, workflow_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.VALIDATION,
            **kwargs
        )
        if workflow_id:
            self.add_context(workflow_id=workflow_id)


class NodeNotFoundError(WorkflowEngineError):
    """Raised when a node id does not exist in the workflow graph."""

    def __init__(self, message: str, node_id: Optional[str] = None, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.LOOKUP,
            recoverable=True,
            **kwargs
        )
        self.node_id = node_id
        if node_id:
            self.add_context(node_id=node_id)


class NodeExecutionError(WorkflowEngineError):
    """Records a failure reported against a node.

    The engine stores these on the errored node and publishes them through
    ``error`` events; it does not raise them.
    """

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.EXECUTION,
            recoverable=True,
            **kwargs
        )
        self.node_id = node_id
        if node_id:
            self.add_context(node_id=node_id)
        if workflow_id:
            self.add_context(workflow_id=workflow_id)


class EngineStateError(WorkflowEngineError):
    """Raised when an operation is not allowed in the current engine or node status."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.STATE,
            recoverable=True,
            **kwargs
        )
        if operation:
            self.add_context(operation=operation)
        if status:
            self.add_context(status=status)


class CriterionRegistryError(WorkflowEngineError):
    """Raised when criterion registry operations fail."""

    def __init__(
        self,
        message: str,
        criterion: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.MEDIUM,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if criterion:
            self.add_context(criterion=criterion)
        if operation:
            self.add_context(operation=operation)


class ConfigurationError(WorkflowEngineError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)
