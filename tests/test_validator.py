"""Tests for transition validation."""

import asyncio

import pytest

from workflow_engine.core import TransitionValidator
from workflow_engine.models import WorkflowEdge


def gated_edge(*criteria):
    return WorkflowEdge(
        id="gate", source="a", target="b", requires_validation=True, validation_criteria=list(criteria)
    )


class TestTransitionValidator:
    """Test cases for TransitionValidator."""

    @pytest.mark.asyncio
    async def test_ungated_edge_skips_evaluation(self):
        calls = []
        validator = TransitionValidator(lambda name: calls.append(name) or False)

        edge = WorkflowEdge(id="plain", source="a", target="b", validation_criteria=["ignored"])
        assert await validator.validate(edge)
        assert calls == []

    @pytest.mark.asyncio
    async def test_gated_edge_without_criteria_passes(self):
        validator = TransitionValidator(lambda name: False)
        assert await validator.validate(gated_edge())

    @pytest.mark.asyncio
    async def test_all_criteria_must_pass(self):
        outcomes = {"consent": True, "review": False, "labs": False}
        validator = TransitionValidator(lambda name: outcomes[name])

        check = await validator.check(gated_edge("consent", "review", "labs"))
        assert not check.passed
        assert check.failed_criteria == ["review", "labs"]
        assert check.errors == []

    @pytest.mark.asyncio
    async def test_async_evaluator(self):
        async def evaluator(name):
            await asyncio.sleep(0)
            return name != "denied"

        validator = TransitionValidator(evaluator)
        assert await validator.validate(gated_edge("allowed"))
        assert not await validator.validate(gated_edge("allowed", "denied"))

    @pytest.mark.asyncio
    async def test_raising_evaluator_counts_as_failure(self):
        def evaluator(name):
            if name == "broken":
                raise RuntimeError("lookup service down")
            return True

        validator = TransitionValidator(evaluator)
        check = await validator.check(gated_edge("ok", "broken"))

        assert not check.passed
        assert check.failed_criteria == ["broken"]
        assert "lookup service down" in check.errors[0]

    @pytest.mark.asyncio
    async def test_disabled_validator_passes_everything(self):
        validator = TransitionValidator(lambda name: False, enabled=False)
        assert await validator.validate(gated_edge("anything"))

    @pytest.mark.asyncio
    async def test_check_to_dict(self):
        validator = TransitionValidator(lambda name: False)
        check = await validator.check(gated_edge("review"))

        assert check.to_dict() == {
            "edge_id": "gate",
            "passed": False,
            "failed_criteria": ["review"],
            "errors": [],
        }
