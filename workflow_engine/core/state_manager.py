"""Mutable execution state owned by a single engine instance."""

import copy
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..models.core import NodeStatus, QualityMetrics, WorkflowStateSnapshot, WorkflowStatus
from .graph_manager import WorkflowGraph
from .logging import get_logger

logger = get_logger(__name__)

MetricsReducer = Callable[[QualityMetrics, Mapping[str, Any]], QualityMetrics]

_METRIC_FIELDS = ("accuracy", "efficiency", "safety", "satisfaction")


def running_mean_reducer(metrics: QualityMetrics, payload: Mapping[str, Any]) -> QualityMetrics:
    """Fold ``payload["quality_metrics"]`` into a running mean per metric.

    Payloads without a ``quality_metrics`` mapping leave the metrics unchanged.
    """
    reported = payload.get("quality_metrics") if isinstance(payload, Mapping) else None
    if not isinstance(reported, Mapping):
        return metrics

    samples = metrics.samples + 1
    values = {}
    for name in _METRIC_FIELDS:
        current = getattr(metrics, name)
        sample = reported.get(name)
        if isinstance(sample, (int, float)) and not isinstance(sample, bool):
            values[name] = current + (float(sample) - current) / samples
        else:
            values[name] = current
    return QualityMetrics(samples=samples, **values)


class ExecutionState:
    """Arena of per-node statuses plus the data attached to them.

    Node statuses live in a list indexed by the node's position in the
    definition, so a node is in exactly one status at any time. Every mutation
    bumps ``generation``; timers compare against it to detect staleness.
    """

    def __init__(self, graph: WorkflowGraph, metrics_reducer: Optional[MetricsReducer] = None,
                 generation: int = 0):
        self._graph = graph
        self._metrics_reducer = metrics_reducer or running_mean_reducer
        self._status: List[NodeStatus] = [NodeStatus.PENDING] * len(graph.nodes)
        self.generation = generation
        self.current_node_id: Optional[str] = None
        self.node_data: Dict[str, Any] = {}
        self.edge_data: Dict[str, Any] = {}
        self.node_errors: Dict[str, str] = {}
        self.quality_metrics = QualityMetrics()
        self.start_time_millis: Optional[int] = None
        self.estimated_completion_millis: Optional[int] = None

    def status_of(self, node_id: str) -> NodeStatus:
        return self._status[self._graph.node_index(node_id)]

    def set_status(self, node_id: str, status: NodeStatus) -> None:
        index = self._graph.node_index(node_id)
        previous = self._status[index]
        self._status[index] = status
        if status != NodeStatus.ERROR:
            self.node_errors.pop(node_id, None)
        self.generation += 1
        logger.debug(f"Node '{node_id}' {previous.value} -> {status.value}")

    def nodes_with(self, status: NodeStatus) -> List[str]:
        """Node IDs currently in the given status, in definition order."""
        return [node_id for node_id, node_status in zip(self._graph.node_ids, self._status)
                if node_status == status]

    def count(self, status: NodeStatus) -> int:
        return sum(1 for node_status in self._status if node_status == status)

    @property
    def completed_nodes(self) -> List[str]:
        return self.nodes_with(NodeStatus.COMPLETED)

    @property
    def active_nodes(self) -> List[str]:
        return self.nodes_with(NodeStatus.ACTIVE)

    @property
    def error_nodes(self) -> List[str]:
        return self.nodes_with(NodeStatus.ERROR)

    @property
    def progress(self) -> float:
        total = len(self._status)
        if total == 0:
            return 0.0
        return self.count(NodeStatus.COMPLETED) / total * 100

    def prepare_completion(self, data: Any) -> Tuple[Any, QualityMetrics]:
        """Copy a completion payload and fold it into new metrics without touching state.

        Raises whatever the copy or the metrics reducer raises.
        """
        if data is None:
            return None, self.quality_metrics
        stored = copy.deepcopy(data)
        return stored, self._metrics_reducer(self.quality_metrics, stored)

    def apply_completion(self, node_id: str, stored: Any, metrics: QualityMetrics) -> None:
        """Mark a node completed with a payload prepared by ``prepare_completion``."""
        self.set_status(node_id, NodeStatus.COMPLETED)
        if stored is not None:
            self.node_data[node_id] = stored
        self.quality_metrics = metrics

    def record_error(self, node_id: str, message: str) -> None:
        self.node_errors[node_id] = message

    def snapshot(self, status: WorkflowStatus) -> WorkflowStateSnapshot:
        """Return an immutable copy suitable for handing to consumers."""
        return WorkflowStateSnapshot(
            status=status,
            current_node_id=self.current_node_id,
            completed_nodes=self.completed_nodes,
            active_nodes=self.active_nodes,
            error_nodes=self.error_nodes,
            progress=self.progress,
            node_data=copy.deepcopy(self.node_data),
            edge_data=copy.deepcopy(self.edge_data),
            node_errors=dict(self.node_errors),
            quality_metrics=self.quality_metrics,
            start_time_millis=self.start_time_millis,
            estimated_completion_millis=self.estimated_completion_millis,
            generation=self.generation,
        )
