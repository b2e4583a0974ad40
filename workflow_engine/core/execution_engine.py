"""Execution Engine for step-gated workflow graphs."""

import asyncio
import copy
import logging
import time
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from ..config import EngineConfig, get_config
from ..models.core import (
    AuditReport,
    CompletionEvent,
    ComplianceStatus,
    EdgeTraverseEvent,
    ErrorEvent,
    ExitReason,
    NodeEnterEvent,
    NodeExitEvent,
    NodeKind,
    NodeStatus,
    WorkflowDefinition,
    WorkflowEvent,
    WorkflowEventKind,
    WorkflowNode,
    WorkflowStateSnapshot,
    WorkflowStatus,
)
from .audit import AuditTrail, ComplianceReporter
from .criteria_registry import CriterionRegistry
from .events import EventDispatcher, EventHandler, Subscription
from .exceptions import (
    EngineStateError,
    NoStartNodeError,
    NodeExecutionError,
    WorkflowEngineError,
)
from .graph_manager import WorkflowGraph
from .logging import clear_logging_context, get_logger, log_with_context, set_logging_context
from .state_manager import ExecutionState, MetricsReducer
from .timers import AutoExecuteTimer
from .validator import CriterionEvaluator, TransitionCheck, TransitionValidator

logger = get_logger(__name__)

Clock = Callable[[], int]


def _now_millis() -> int:
    return int(time.time() * 1000)


def _payload(data: Any) -> dict:
    """Copy an opaque payload into an event data mapping."""
    if data is None:
        return {}
    if isinstance(data, Mapping):
        return copy.deepcopy(dict(data))
    return {"value": copy.deepcopy(data)}


class WorkflowEngine:
    """Interpreter for a single in-memory workflow instance.

    Every mutating operation is a coroutine serialized by one ``asyncio.Lock``.
    A transition is fully applied to the state before its events are appended
    to the audit trail and handed to subscribers, so nothing outside the engine
    can observe a half-applied transition.
    """

    def __init__(
        self,
        workflow: Union[WorkflowGraph, WorkflowDefinition],
        config: Optional[EngineConfig] = None,
        criterion_evaluator: Optional[Union[CriterionEvaluator, CriterionRegistry]] = None,
        clock: Optional[Clock] = None,
        metrics_reducer: Optional[MetricsReducer] = None,
    ):
        """Initialize the execution engine.

        Args:
            workflow: Validated graph, or a definition to validate now
            config: Engine configuration; defaults to the global configuration
            criterion_evaluator: Registry or callable deciding each validation criterion;
                defaults to an empty registry exposed as ``engine.criteria``
            clock: Callable returning the current time in milliseconds
            metrics_reducer: Folds completion payloads into the quality metrics

        Raises:
            InvalidGraphError: If a definition is given and fails validation
        """
        self.graph = workflow if isinstance(workflow, WorkflowGraph) else WorkflowGraph(workflow)
        self.config = config or get_config()
        self._clock: Clock = clock or _now_millis
        self._metrics_reducer = metrics_reducer

        if criterion_evaluator is None:
            criterion_evaluator = CriterionRegistry()
        self.criteria: Optional[CriterionRegistry] = (
            criterion_evaluator if isinstance(criterion_evaluator, CriterionRegistry) else None
        )
        evaluator = (
            criterion_evaluator.evaluate
            if isinstance(criterion_evaluator, CriterionRegistry)
            else criterion_evaluator
        )
        self._validator = TransitionValidator(evaluator, enabled=self.config.enable_validation)
        self._compliance = ComplianceReporter(self.graph, enabled=self.config.compliance_mode)
        self._dispatcher = EventDispatcher()

        self._lock = asyncio.Lock()
        self._status = WorkflowStatus.NOT_STARTED
        self._state = ExecutionState(self.graph, self._metrics_reducer)
        self._audit = AuditTrail(enabled=self.config.enable_audit_trail)
        self._timer: Optional[AutoExecuteTimer] = None
        self._finished_at: Optional[int] = None

        logger.info(f"WorkflowEngine initialized for workflow '{self.graph.id}' "
                    f"(auto_execute={self.config.auto_execute}, "
                    f"validation={self.config.enable_validation})")

    # ------------------------------------------------------------------
    # Read surface

    @property
    def status(self) -> WorkflowStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._status in (WorkflowStatus.RUNNING, WorkflowStatus.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self._status == WorkflowStatus.PAUSED

    @property
    def is_completed(self) -> bool:
        return self._status == WorkflowStatus.COMPLETED

    @property
    def has_errors(self) -> bool:
        return self._state.count(NodeStatus.ERROR) > 0

    @property
    def current_node(self) -> Optional[WorkflowNode]:
        if self._state.current_node_id is None:
            return None
        return self.graph.find_node(self._state.current_node_id)

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def execution_history(self) -> Tuple[WorkflowEvent, ...]:
        return self._audit.events

    @property
    def audit_trail(self) -> AuditTrail:
        return self._audit

    @property
    def auto_execute_pending(self) -> bool:
        return self._timer is not None and self._timer.pending

    @property
    def execution_time_millis(self) -> int:
        started = self._state.start_time_millis
        if started is None:
            return 0
        end = self._finished_at if self._finished_at is not None else self._clock()
        return max(0, end - started)

    @property
    def available_actions(self) -> List[str]:
        """Operator actions that make sense at the current node."""
        node = self.current_node
        if node is None or self._status == WorkflowStatus.NOT_STARTED:
            return ["start"]
        actions = []
        if self._state.status_of(node.id) == NodeStatus.ACTIVE:
            actions.append("complete")
        if node.kind == NodeKind.DECISION:
            actions.extend(edge.target for edge in self.graph.edges_from(node.id))
        if self._status == WorkflowStatus.PAUSED:
            actions.append("resume")
        elif self._status == WorkflowStatus.RUNNING:
            actions.append("pause")
        if self.is_running:
            actions.append("stop")
        return actions

    def node_status(self, node_id: str) -> NodeStatus:
        """Status of one node.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        return self._state.status_of(node_id)

    def snapshot(self) -> WorkflowStateSnapshot:
        """Immutable copy of the current workflow state."""
        return self._state.snapshot(self._status)

    def get_compliance_status(self) -> Optional[ComplianceStatus]:
        """Compliance over critical nodes, or None when compliance is not tracked."""
        return self._compliance.status(
            self._state.completed_nodes, self._audit.enabled, self._clock
        )

    def generate_audit_report(self) -> AuditReport:
        """Build a report from a consistent snapshot of the log and state."""
        state = self.snapshot()
        compliance = self._compliance.status(state.completed_nodes, self._audit.enabled, self._clock)
        return AuditReport(
            workflow_id=self.graph.id,
            workflow_name=self.graph.name,
            status=self._status,
            execution_time_millis=self.execution_time_millis,
            events=list(self._audit.events),
            state=state,
            compliance=compliance,
            generated_at=self._clock(),
        )

    # ------------------------------------------------------------------
    # Subscriptions

    def on(self, kind: Union[WorkflowEventKind, str], callback: EventHandler) -> Subscription:
        """Subscribe to one event kind."""
        return self._dispatcher.on(kind, callback)

    def on_any(self, callback: EventHandler) -> Subscription:
        """Subscribe to every event kind."""
        return self._dispatcher.on_any(callback)

    def off(self, subscription: Subscription) -> bool:
        return self._dispatcher.off(subscription)

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self) -> None:
        """
        Start a fresh run and enter the start node.

        Any previous state and audit log are discarded.

        Raises:
            NoStartNodeError: If the graph has no start node
        """
        async with self._lock:
            start_node = self.graph.start_node
            if start_node is None:
                raise NoStartNodeError(
                    f"No start node found in workflow '{self.graph.id}'", workflow_id=self.graph.id
                )

            if self._status != WorkflowStatus.NOT_STARTED:
                logger.info(f"Restarting workflow '{self.graph.id}' from {self._status.value}")

            self._cancel_timer()
            self._state = ExecutionState(
                self.graph, self._metrics_reducer, generation=self._state.generation + 1
            )
            self._audit = AuditTrail(enabled=self.config.enable_audit_trail)
            self._finished_at = None

            now = self._clock()
            self._state.start_time_millis = now
            self._state.estimated_completion_millis = now + int(self.config.max_execution_time_seconds * 1000)
            self._status = WorkflowStatus.RUNNING
            set_logging_context(workflow_id=self.graph.id)

            log_with_context(
                logger, logging.INFO, f"Started workflow '{self.graph.id}'",
                workflow_id=self.graph.id, start_node=start_node.id
            )
            await self._navigate(start_node.id)

    async def pause(self) -> None:
        """Suspend auto-execution. Manual operations stay available unless configured otherwise."""
        async with self._lock:
            if self._status != WorkflowStatus.RUNNING:
                logger.warning(f"Ignoring pause of workflow '{self.graph.id}' in status {self._status.value}")
                return
            self._cancel_timer()
            self._status = WorkflowStatus.PAUSED
            logger.info(f"Paused workflow '{self.graph.id}'")

    async def resume(self) -> None:
        """Return to running and re-arm auto-execution for the current node."""
        async with self._lock:
            if self._status != WorkflowStatus.PAUSED:
                logger.warning(f"Ignoring resume of workflow '{self.graph.id}' in status {self._status.value}")
                return
            self._status = WorkflowStatus.RUNNING
            logger.info(f"Resumed workflow '{self.graph.id}'")
            node = self.current_node
            if node is not None and self._state.status_of(node.id) == NodeStatus.ACTIVE:
                self._schedule_auto_execute(node)

    async def stop(self) -> None:
        """Halt automation for good; recorded state stays inspectable."""
        async with self._lock:
            self._cancel_timer()
            if self._status not in (WorkflowStatus.RUNNING, WorkflowStatus.PAUSED):
                return
            self._status = WorkflowStatus.STOPPED
            self._finished_at = self._clock()
            logger.info(f"Stopped workflow '{self.graph.id}'")

    async def reset(self) -> None:
        """Discard state and audit log and return to not-started."""
        async with self._lock:
            self._cancel_timer()
            if self._status == WorkflowStatus.NOT_STARTED:
                return
            self._state = ExecutionState(
                self.graph, self._metrics_reducer, generation=self._state.generation + 1
            )
            self._audit = AuditTrail(enabled=self.config.enable_audit_trail)
            self._status = WorkflowStatus.NOT_STARTED
            self._finished_at = None
            logger.info(f"Reset workflow '{self.graph.id}'")
            clear_logging_context()

    # ------------------------------------------------------------------
    # Node operations

    async def navigate_to_node(self, node_id: str) -> bool:
        """
        Move the workflow to a node.

        If an edge leads from the current node to the target, its validation
        criteria are evaluated first. On failure an active source node is put
        in error (a completed one keeps its completion) and the target is not entered.

        Args:
            node_id: ID of the node to enter

        Returns:
            True if the node was entered, False if transition validation failed

        Raises:
            NodeNotFoundError: If the node does not exist
            EngineStateError: If the workflow has not been started, has already
                completed, or is paused and pause is configured to block manual actions
        """
        async with self._lock:
            self._require_started("navigate_to_node")
            if self._status == WorkflowStatus.COMPLETED:
                raise EngineStateError(
                    f"Cannot navigate_to_node: workflow '{self.graph.id}' has completed",
                    operation="navigate_to_node", status=self._status.value
                )
            self._require_manual_allowed("navigate_to_node")
            return await self._navigate(node_id)

    async def complete_node(self, node_id: str, data: Any = None) -> None:
        """
        Complete the active node, attaching an optional result payload.

        Raises:
            NodeNotFoundError: If the node does not exist
            EngineStateError: If the node is not active or the workflow is not started
        """
        async with self._lock:
            self._require_started("complete_node")
            self._require_manual_allowed("complete_node")
            self._complete(node_id, data)

    async def set_node_error(self, node_id: str, error: Union[BaseException, str, None] = None) -> None:
        """
        Put the active node in error.

        The error is recorded on the node and published as an ``error`` event;
        it is not raised. The workflow status does not change.

        Raises:
            NodeNotFoundError: If the node does not exist
            EngineStateError: If the node is not active or the workflow is not started
        """
        async with self._lock:
            self._require_started("set_node_error")
            self.graph.get_node(node_id)
            self._require_active(node_id, "set_node_error")

            if isinstance(error, NodeExecutionError):
                node_error = error
            else:
                if isinstance(error, WorkflowEngineError):
                    message = error.message
                elif error is None or not str(error):
                    message = f"Node {node_id} failed"
                else:
                    message = str(error)
                node_error = NodeExecutionError(message, node_id=node_id, workflow_id=self.graph.id)
                if isinstance(error, BaseException):
                    node_error.add_details(cause=type(error).__name__)

            self._cancel_timer_for(node_id)
            now = self._clock()
            self._state.set_status(node_id, NodeStatus.ERROR)
            self._state.record_error(node_id, node_error.message)

            log_with_context(
                logger, logging.WARNING, f"Node {node_id} failed: {node_error.message}",
                workflow_id=self.graph.id, node_id=node_id
            )
            self._publish([
                NodeExitEvent(node_id=node_id, reason=ExitReason.FAILED, timestamp_millis=now),
                ErrorEvent(
                    node_id=node_id,
                    error=node_error.message,
                    timestamp_millis=now,
                    data=node_error.to_dict(),
                ),
            ])

    async def validate_current_step(self) -> bool:
        """
        Check whether the current node could advance along a gated edge.

        True when there is no current node, validation is disabled, or no
        outgoing edge of the current node is gated; otherwise True if at least
        one gated outgoing edge validates. State is not modified.
        """
        node_id = self._state.current_node_id
        if node_id is None or not self._validator.enabled:
            return True
        gated = [edge for edge in self.graph.edges_from(node_id) if edge.requires_validation]
        if not gated:
            return True
        results = await asyncio.gather(*(self._validator.validate(edge) for edge in gated))
        return any(results)

    # ------------------------------------------------------------------
    # Internals (callers hold the lock)

    async def _navigate(self, target_id: str) -> bool:
        target = self.graph.get_node(target_id)
        source_id = self._state.current_node_id
        edge = self.graph.find_edge(source_id, target_id) if source_id is not None else None

        check: Optional[TransitionCheck] = None
        if edge is not None:
            check = await self._validator.check(edge)

        self._cancel_timer()
        now = self._clock()
        events: List[WorkflowEvent] = []
        source_active = (
            source_id is not None and self._state.status_of(source_id) == NodeStatus.ACTIVE
        )

        if check is not None and not check.passed:
            message = f"Transition validation failed on edge '{edge.id}'"
            node_error = NodeExecutionError(
                message, node_id=source_id, workflow_id=self.graph.id
            ).add_details(target=target_id, **check.to_dict())

            # Only an active source moves to error. The rejection is recorded on
            # the edge and published either way.
            if source_active:
                events.append(NodeExitEvent(
                    node_id=source_id, reason=ExitReason.VALIDATION_FAILED, timestamp_millis=now
                ))
                self._state.set_status(source_id, NodeStatus.ERROR)
            if self._state.status_of(source_id) == NodeStatus.ERROR:
                self._state.record_error(source_id, message)
            self._state.edge_data[edge.id] = {"traversed": False, "timestamp_millis": now, **check.to_dict()}
            events.append(ErrorEvent(
                node_id=source_id,
                error=message,
                edge_id=edge.id,
                failed_criteria=list(check.failed_criteria),
                timestamp_millis=now,
                data=node_error.to_dict(),
            ))

            log_with_context(
                logger, logging.WARNING,
                f"Transition {source_id} -> {target_id} rejected: {', '.join(check.failed_criteria)}",
                workflow_id=self.graph.id, node_id=source_id, edge_id=edge.id
            )
            self._publish(events)
            return False

        if source_active:
            # Following an edge out of a step finishes it; jumping away abandons it.
            if edge is not None:
                self._state.set_status(source_id, NodeStatus.COMPLETED)
                events.append(NodeExitEvent(
                    node_id=source_id, reason=ExitReason.TRAVERSED, timestamp_millis=now
                ))
            else:
                self._state.set_status(source_id, NodeStatus.PENDING)
                events.append(NodeExitEvent(
                    node_id=source_id, reason=ExitReason.ABANDONED, timestamp_millis=now
                ))

        if edge is not None:
            self._state.edge_data[edge.id] = {"traversed": True, "timestamp_millis": now, **check.to_dict()}
            events.append(EdgeTraverseEvent(
                edge_id=edge.id, source=edge.source, target=edge.target, timestamp_millis=now
            ))

        self._state.set_status(target_id, NodeStatus.ACTIVE)
        self._state.current_node_id = target_id
        events.append(NodeEnterEvent(
            node_id=target_id, edge_id=edge.id if edge is not None else None, timestamp_millis=now
        ))
        self._check_completion(events, now)

        log_with_context(
            logger, logging.INFO, f"Entered node {target_id}",
            workflow_id=self.graph.id, node_id=target_id,
            edge_id=edge.id if edge is not None else None
        )
        self._publish(events)
        self._schedule_auto_execute(target)
        return True

    def _complete(self, node_id: str, data: Any = None) -> None:
        self.graph.get_node(node_id)
        self._require_active(node_id, "complete_node")

        # Anything that can raise runs before the state is touched.
        stored, metrics = self._state.prepare_completion(data)
        now = self._clock()
        events: List[WorkflowEvent] = [NodeExitEvent(
            node_id=node_id, reason=ExitReason.COMPLETED, timestamp_millis=now, data=_payload(data)
        )]

        self._cancel_timer_for(node_id)
        self._state.apply_completion(node_id, stored, metrics)
        self._check_completion(events, now)

        log_with_context(
            logger, logging.INFO, f"Completed node {node_id}",
            workflow_id=self.graph.id, node_id=node_id, progress=self._state.progress
        )
        self._publish(events)

    def _check_completion(self, events: List[WorkflowEvent], now: int) -> None:
        if self._status == WorkflowStatus.COMPLETED:
            return
        end_nodes = self.graph.end_nodes
        if not end_nodes:
            return
        if all(self._state.status_of(node.id) == NodeStatus.COMPLETED for node in end_nodes):
            self._cancel_timer()
            self._status = WorkflowStatus.COMPLETED
            self._finished_at = now
            events.append(CompletionEvent(progress=self._state.progress, timestamp_millis=now))
            log_with_context(
                logger, logging.INFO, f"Workflow '{self.graph.id}' completed",
                workflow_id=self.graph.id, progress=self._state.progress
            )

    def _publish(self, events: List[WorkflowEvent]) -> None:
        for event in events:
            self._audit.append(event)
        for event in events:
            self._dispatcher.emit(event)

    def _require_started(self, operation: str) -> None:
        if self._status == WorkflowStatus.NOT_STARTED:
            raise EngineStateError(
                f"Cannot {operation}: workflow '{self.graph.id}' has not been started",
                operation=operation, status=self._status.value
            )

    def _require_manual_allowed(self, operation: str) -> None:
        if self.config.pause_blocks_manual_actions and self._status == WorkflowStatus.PAUSED:
            raise EngineStateError(
                f"Cannot {operation}: workflow '{self.graph.id}' is paused",
                operation=operation, status=self._status.value
            )

    def _require_active(self, node_id: str, operation: str) -> None:
        node_status = self._state.status_of(node_id)
        if node_status != NodeStatus.ACTIVE:
            raise EngineStateError(
                f"Cannot {operation}: node {node_id} is {node_status.value}, not active",
                operation=operation, status=node_status.value
            )

    # ------------------------------------------------------------------
    # Auto-execute

    def _schedule_auto_execute(self, node: WorkflowNode) -> None:
        if not self.config.auto_execute or node.kind != NodeKind.PROCESS:
            return
        if self._status != WorkflowStatus.RUNNING:
            return
        self._cancel_timer()
        self._timer = AutoExecuteTimer(
            node.id, self._state.generation, self.config.auto_execute_delay_seconds, self._fire_timer
        ).schedule()
        logger.debug(f"Scheduled auto-execute of node {node.id} in "
                     f"{self.config.auto_execute_delay_seconds}s (generation {self._state.generation})")

    async def _fire_timer(self, timer: AutoExecuteTimer) -> None:
        async with self._lock:
            if self._timer is not timer:
                logger.debug(f"Dropping superseded auto-execute timer for node {timer.node_id}")
                return
            self._timer = None
            stale = (
                self._status != WorkflowStatus.RUNNING
                or self._state.generation != timer.generation
                or self._state.current_node_id != timer.node_id
                or self._state.status_of(timer.node_id) != NodeStatus.ACTIVE
            )
            if stale:
                logger.debug(f"Dropping stale auto-execute timer for node {timer.node_id}")
                return
            self._complete(timer.node_id, {"auto_executed": True})

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_timer_for(self, node_id: str) -> None:
        if self._timer is not None and self._timer.node_id == node_id:
            self._cancel_timer()
