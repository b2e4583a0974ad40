"""Append-only audit trail and compliance scoring."""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ..models.core import (
    ComplianceLevel,
    ComplianceStatus,
    Priority,
    WorkflowEvent,
    WorkflowEventKind,
)
from .graph_manager import WorkflowGraph
from .logging import get_logger

logger = get_logger(__name__)


# Requirements and audit cadence attached to each compliance level.
COMPLIANCE_LEVELS: Dict[ComplianceLevel, Dict[str, Any]] = {
    ComplianceLevel.BASIC: {
        "requirements": ["data-privacy", "accessibility"],
        "audit_frequency": "quarterly",
    },
    ComplianceLevel.STANDARD: {
        "requirements": ["hipaa", "data-privacy", "accessibility", "security"],
        "audit_frequency": "monthly",
    },
    ComplianceLevel.ENHANCED: {
        "requirements": ["hipaa", "gdpr", "data-privacy", "accessibility", "security", "audit-trail"],
        "audit_frequency": "weekly",
    },
}


class AuditTrail:
    """Ordered, append-only log of workflow events.

    ``append`` is the only way in. The log is replaced wholesale by the engine
    on ``start``/``reset``, never edited.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._events: List[WorkflowEvent] = []

    def append(self, event: WorkflowEvent) -> None:
        if not self.enabled:
            return
        self._events.append(event)
        logger.debug(f"Audit #{len(self._events)}: {event.kind.value}")

    @property
    def events(self) -> Tuple[WorkflowEvent, ...]:
        return tuple(self._events)

    def of_kind(self, kind: WorkflowEventKind) -> List[WorkflowEvent]:
        kind = WorkflowEventKind(kind)
        return [event for event in self._events if event.kind == kind]

    def count(self, kind: WorkflowEventKind) -> int:
        return len(self.of_kind(kind))

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[WorkflowEvent]:
        return iter(tuple(self._events))


class ComplianceReporter:
    """Scores how many critical-priority nodes have been completed."""

    def __init__(self, graph: WorkflowGraph, enabled: bool = True):
        self._graph = graph
        self.enabled = enabled
        self._critical = [node.id for node in graph.nodes if node.priority == Priority.CRITICAL]

    @property
    def critical_node_ids(self) -> List[str]:
        return list(self._critical)

    @staticmethod
    def score(critical_completed: int, total_critical: int) -> float:
        """Percentage of critical steps completed; 100 when there are none."""
        if total_critical <= 0:
            return 100.0
        return max(0.0, min(100.0, critical_completed / total_critical * 100))

    def status(
        self,
        completed_nodes: List[str],
        audit_trail_enabled: bool,
        now: Callable[[], int],
    ) -> Optional[ComplianceStatus]:
        """Compute the compliance status, or None when compliance is not tracked.

        Args:
            completed_nodes: IDs of the currently completed nodes
            audit_trail_enabled: Whether events are being recorded
            now: Clock returning milliseconds
        """
        level = self._graph.definition.compliance_level
        if not self.enabled or level is None:
            return None

        completed = set(completed_nodes)
        critical_completed = sum(1 for node_id in self._critical if node_id in completed)
        total = len(self._critical)
        profile = COMPLIANCE_LEVELS[level]

        return ComplianceStatus(
            level=level,
            critical_steps_completed=critical_completed,
            total_critical_steps=total,
            compliance_score=self.score(critical_completed, total),
            audit_trail_enabled=audit_trail_enabled,
            last_validated=now(),
            requirements=list(profile["requirements"]),
            audit_frequency=profile["audit_frequency"],
        )
