"""Transition validation for gated edges."""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Union

from ..models.core import WorkflowEdge
from .logging import get_logger

logger = get_logger(__name__)

CriterionEvaluator = Callable[[str], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class TransitionCheck:
    """Outcome of validating one edge."""
    edge_id: str
    passed: bool
    failed_criteria: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "edge_id": self.edge_id,
            "passed": self.passed,
            "failed_criteria": list(self.failed_criteria),
            "errors": list(self.errors),
        }


class TransitionValidator:
    """Decides whether an edge may be traversed.

    Every criterion of a gated edge is evaluated concurrently and all of them
    must pass. An evaluator that raises counts as a failed criterion; nothing
    escapes :meth:`validate`.
    """

    def __init__(self, evaluator: CriterionEvaluator, enabled: bool = True):
        """
        Args:
            evaluator: Callable mapping a criterion ID to a bool or awaitable bool
            enabled: When False every edge validates without evaluation
        """
        self._evaluator = evaluator
        self.enabled = enabled

    async def validate(self, edge: WorkflowEdge) -> bool:
        """Return True if the edge may be traversed."""
        return (await self.check(edge)).passed

    async def check(self, edge: WorkflowEdge) -> TransitionCheck:
        """Validate an edge and report which criteria failed."""
        if not self.enabled or not edge.requires_validation:
            return TransitionCheck(edge_id=edge.id, passed=True)

        criteria = list(edge.validation_criteria)
        if not criteria:
            return TransitionCheck(edge_id=edge.id, passed=True)

        outcomes = await asyncio.gather(
            *(self._evaluate(criterion) for criterion in criteria),
            return_exceptions=True
        )

        failed: List[str] = []
        errors: List[str] = []
        for criterion, outcome in zip(criteria, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                logger.warning(
                    f"Criterion '{criterion}' on edge '{edge.id}' raised "
                    f"{type(outcome).__name__}: {outcome}"
                )
                failed.append(criterion)
                errors.append(f"{criterion}: {outcome}")
            elif not outcome:
                failed.append(criterion)

        passed = not failed
        logger.debug(f"Edge '{edge.id}' validation {'passed' if passed else 'failed'}"
                     + (f" (failed: {', '.join(failed)})" if failed else ""))
        return TransitionCheck(edge_id=edge.id, passed=passed, failed_criteria=failed, errors=errors)

    async def _evaluate(self, criterion: str) -> bool:
        result = self._evaluator(criterion)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)
