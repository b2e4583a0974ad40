"""Workflow graph model: structural validation and read-only queries."""

from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError

from ..models.core import (
    NodeKind,
    ValidationResult,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)
from .exceptions import InvalidGraphError, NodeNotFoundError
from .logging import get_logger

logger = get_logger(__name__)


class WorkflowGraph:
    """Validated, read-only view over a workflow definition.

    The definition is checked once, at construction. A graph can be shared by
    any number of engines since nothing here is ever mutated.
    """

    def __init__(self, definition: WorkflowDefinition, validate: bool = True):
        """Wrap a definition, validating its structure.

        Args:
            definition: The workflow definition to wrap
            validate: Run the structural check (disable only to load known-bad data)

        Raises:
            InvalidGraphError: If the definition is structurally invalid
        """
        self._definition = definition
        self._nodes: Dict[str, WorkflowNode] = {}
        self._index: Dict[str, int] = {}
        for position, node in enumerate(definition.nodes):
            self._nodes.setdefault(node.id, node)
            self._index.setdefault(node.id, position)

        self._outgoing: Dict[str, List[WorkflowEdge]] = {}
        for edge in definition.edges:
            self._outgoing.setdefault(edge.source, []).append(edge)

        self.validation_result: Optional[ValidationResult] = None
        if validate:
            self.validation_result = validate_definition(definition)
            if not self.validation_result.is_valid:
                error_msg = f"Graph validation failed: {'; '.join(self.validation_result.errors)}"
                logger.error(error_msg)
                raise InvalidGraphError(
                    error_msg,
                    validation_errors=self.validation_result.errors,
                    workflow_id=definition.id
                )
            for warning in self.validation_result.warnings:
                logger.warning(f"Workflow '{definition.id}': {warning}")

    @property
    def definition(self) -> WorkflowDefinition:
        return self._definition

    @property
    def id(self) -> str:
        return self._definition.id

    @property
    def name(self) -> str:
        return self._definition.name

    @property
    def nodes(self) -> Tuple[WorkflowNode, ...]:
        return tuple(self._definition.nodes)

    @property
    def edges(self) -> Tuple[WorkflowEdge, ...]:
        return tuple(self._definition.edges)

    @property
    def node_ids(self) -> List[str]:
        """Node IDs in definition order."""
        return list(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def nodes_by_kind(self, kind: NodeKind) -> List[WorkflowNode]:
        """Return the nodes of the given kind, in definition order."""
        return [node for node in self._definition.nodes if node.kind == kind]

    @property
    def start_node(self) -> Optional[WorkflowNode]:
        starts = self.nodes_by_kind(NodeKind.START)
        return starts[0] if starts else None

    @property
    def end_nodes(self) -> List[WorkflowNode]:
        return self.nodes_by_kind(NodeKind.END)

    def find_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Return the node with the given ID, or None."""
        return self._nodes.get(node_id)

    def get_node(self, node_id: str) -> WorkflowNode:
        """Return the node with the given ID.

        Raises:
            NodeNotFoundError: If no such node exists
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(f"Node {node_id} not found", node_id=node_id)
        return node

    def node_index(self, node_id: str) -> int:
        """Return the position of a node in the definition."""
        try:
            return self._index[node_id]
        except KeyError:
            raise NodeNotFoundError(f"Node {node_id} not found", node_id=node_id) from None

    def edges_from(self, node_id: str) -> List[WorkflowEdge]:
        """Return outgoing edges of a node, in definition order."""
        return list(self._outgoing.get(node_id, []))

    def find_edge(self, source: str, target: str) -> Optional[WorkflowEdge]:
        """Return the first edge from source to target, or None."""
        for edge in self._outgoing.get(source, []):
            if edge.target == target:
                return edge
        return None

    def reachable_from(self, node_id: str) -> Set[str]:
        """Find all nodes reachable from the given node by following edges forward."""
        return _find_reachable_nodes(node_id, self._definition.edges)


def _find_reachable_nodes(entry_point: str, edges) -> Set[str]:
    """Breadth-first walk over edges starting at entry_point."""
    edge_map: Dict[str, List[str]] = {}
    for edge in edges:
        edge_map.setdefault(edge.source, []).append(edge.target)

    reachable = {entry_point}
    queue = deque([entry_point])
    while queue:
        current = queue.popleft()
        for neighbor in edge_map.get(current, []):
            if neighbor not in reachable:
                reachable.add(neighbor)
                queue.append(neighbor)
    return reachable


def _has_cycles(definition: WorkflowDefinition) -> bool:
    """Check if the graph contains cycles using iterative DFS colouring."""
    graph: Dict[str, List[str]] = {}
    for edge in definition.edges:
        graph.setdefault(edge.source, []).append(edge.target)

    white, grey, black = 0, 1, 2
    colour = {node.id: white for node in definition.nodes}

    for root in colour:
        if colour[root] != white:
            continue
        stack = [(root, iter(graph.get(root, [])))]
        colour[root] = grey
        while stack:
            node_id, children = stack[-1]
            advanced = False
            for child in children:
                state = colour.get(child, black)
                if state == grey:
                    return True
                if state == white:
                    colour[child] = grey
                    stack.append((child, iter(graph.get(child, []))))
                    advanced = True
                    break
            if not advanced:
                colour[node_id] = black
                stack.pop()
    return False


def validate_definition(definition: WorkflowDefinition) -> ValidationResult:
    """
    Validate a workflow definition for structural correctness.

    Errors make the definition unusable: a missing or duplicated start node,
    duplicate IDs, dangling edge references, or no end node reachable from the
    start. Unreachable nodes, cycles and self-loops are reported as warnings
    since feedback edges are allowed to model rework.

    Args:
        definition: The workflow definition to validate

    Returns:
        ValidationResult: Validation results with errors and warnings
    """
    logger.debug(f"Validating workflow: {definition.id}")
    errors: List[str] = []
    warnings: List[str] = []

    _validate_unique_ids(definition, errors)
    _validate_start_and_end(definition, errors)
    _validate_invalid_references(definition, errors, warnings)
    if not errors:
        _validate_reachability(definition, errors, warnings)
        if _has_cycles(definition):
            warnings.append("Graph contains cycles; feedback edges will allow nodes to be re-entered")

    result = ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
    logger.debug(f"Workflow validation completed. Valid: {result.is_valid}, "
                 f"Errors: {len(result.errors)}, Warnings: {len(result.warnings)}")
    return result


def _validate_unique_ids(definition: WorkflowDefinition, errors: List[str]):
    seen: Set[str] = set()
    for node in definition.nodes:
        if node.id in seen:
            errors.append(f"Duplicate node ID: '{node.id}'")
        seen.add(node.id)

    seen = set()
    for edge in definition.edges:
        if edge.id in seen:
            errors.append(f"Duplicate edge ID: '{edge.id}'")
        seen.add(edge.id)


def _validate_start_and_end(definition: WorkflowDefinition, errors: List[str]):
    starts = [node.id for node in definition.nodes if node.kind == NodeKind.START]
    if not starts:
        errors.append("Workflow has no start node")
    elif len(starts) > 1:
        errors.append(f"Workflow has more than one start node: {', '.join(starts)}")

    if not any(node.kind == NodeKind.END for node in definition.nodes):
        errors.append("Workflow has no end node")


def _validate_invalid_references(definition: WorkflowDefinition, errors: List[str], warnings: List[str]):
    node_ids = {node.id for node in definition.nodes}
    for edge in definition.edges:
        if edge.source not in node_ids:
            errors.append(f"Edge '{edge.id}' references non-existent source node: '{edge.source}'")
        if edge.target not in node_ids:
            errors.append(f"Edge '{edge.id}' references non-existent target node: '{edge.target}'")
        if edge.source == edge.target:
            warnings.append(f"Edge '{edge.id}' is self-referencing on node '{edge.source}'")
        if edge.requires_validation and not edge.validation_criteria:
            warnings.append(f"Edge '{edge.id}' requires validation but declares no criteria")


def _validate_reachability(definition: WorkflowDefinition, errors: List[str], warnings: List[str]):
    start = next(node for node in definition.nodes if node.kind == NodeKind.START)
    reachable = _find_reachable_nodes(start.id, definition.edges)

    end_ids = {node.id for node in definition.nodes if node.kind == NodeKind.END}
    if not end_ids & reachable:
        errors.append(f"No end node is reachable from start node '{start.id}'")

    unreachable = [node.id for node in definition.nodes if node.id not in reachable]
    if unreachable:
        warnings.append(f"Unreachable nodes detected: {', '.join(unreachable)}")


def load_definition(source: Union[WorkflowDefinition, Mapping[str, Any], str, Path],
                    validate: bool = True) -> WorkflowGraph:
    """
    Load a workflow definition and wrap it in a validated graph.

    Args:
        source: A definition model, a mapping, a JSON string, or a path to a JSON file
        validate: Run the structural check

    Returns:
        WorkflowGraph: The loaded graph

    Raises:
        InvalidGraphError: If the data cannot be parsed or fails validation
    """
    if isinstance(source, WorkflowDefinition):
        return WorkflowGraph(source, validate=validate)

    try:
        if isinstance(source, Path) or (isinstance(source, str) and not source.lstrip().startswith("{")):
            path = Path(source)
            logger.info(f"Loading workflow definition from {path}")
            definition = WorkflowDefinition.model_validate_json(path.read_text(encoding="utf-8"))
        elif isinstance(source, str):
            definition = WorkflowDefinition.model_validate_json(source)
        else:
            definition = WorkflowDefinition.model_validate(dict(source))
    except ValidationError as e:
        messages = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise InvalidGraphError(
            f"Workflow definition is malformed: {'; '.join(messages)}",
            validation_errors=messages
        ) from e
    except OSError as e:
        raise InvalidGraphError(f"Cannot read workflow definition: {e}") from e

    return WorkflowGraph(definition, validate=validate)
