"""Tests for auto-executed process nodes and timer cancellation."""

import asyncio

import pytest

from workflow_engine.core import AutoExecuteTimer
from workflow_engine.models import ExitReason, NodeStatus, WorkflowEventKind, WorkflowStatus

SETTLE = 0.1


def exit_events(engine, node_id):
    return [
        event for event in engine.execution_history
        if event.kind == WorkflowEventKind.NODE_EXIT and event.node_id == node_id
    ]


class TestAutoExecute:
    """Test cases for engine-scheduled completions."""

    @pytest.mark.asyncio
    async def test_process_node_completes_after_delay(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        assert not engine.auto_execute_pending

        await engine.navigate_to_node("a")
        assert engine.auto_execute_pending

        await asyncio.sleep(SETTLE)
        assert engine.node_status("a") == NodeStatus.COMPLETED
        assert engine.snapshot().node_data["a"] == {"auto_executed": True}
        assert exit_events(engine, "a")[-1].reason == ExitReason.COMPLETED
        assert not engine.auto_execute_pending

    @pytest.mark.asyncio
    async def test_disabled_by_default(self, make_engine, linear_definition):
        engine = make_engine(linear_definition)
        await engine.start()
        await engine.navigate_to_node("a")

        await asyncio.sleep(SETTLE)
        assert engine.node_status("a") == NodeStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_reset_cancels_timer(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        await engine.navigate_to_node("a")

        await engine.reset()
        await asyncio.sleep(SETTLE)

        assert engine.status == WorkflowStatus.NOT_STARTED
        assert engine.execution_history == ()
        assert engine.snapshot().completed_nodes == []

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        await engine.navigate_to_node("a")

        await engine.stop()
        await asyncio.sleep(SETTLE)

        assert engine.node_status("a") == NodeStatus.ACTIVE
        assert engine.status == WorkflowStatus.STOPPED

    @pytest.mark.asyncio
    async def test_navigation_cancels_timer(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        await engine.navigate_to_node("a")

        await engine.navigate_to_node("start")
        await asyncio.sleep(SETTLE)

        assert engine.node_status("a") == NodeStatus.PENDING
        assert "a" not in engine.snapshot().node_data

    @pytest.mark.asyncio
    async def test_pause_suspends_and_resume_rearms(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        await engine.navigate_to_node("a")

        await engine.pause()
        await asyncio.sleep(SETTLE)
        assert engine.node_status("a") == NodeStatus.ACTIVE

        await engine.resume()
        assert engine.auto_execute_pending
        await asyncio.sleep(SETTLE)
        assert engine.node_status("a") == NodeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_manual_completion_wins(self, make_engine, linear_definition):
        engine = make_engine(linear_definition, auto_execute=True)
        await engine.start()
        await engine.navigate_to_node("a")

        await engine.complete_node("a", {"by": "operator"})
        await asyncio.sleep(SETTLE)

        assert len(exit_events(engine, "a")) == 1
        assert engine.snapshot().node_data["a"] == {"by": "operator"}


class TestAutoExecuteTimer:
    """Test cases for the timer primitive."""

    @pytest.mark.asyncio
    async def test_fires_once(self):
        fired = []

        async def callback(timer):
            fired.append((timer.node_id, timer.generation))

        timer = AutoExecuteTimer("a", 7, 0.01, callback).schedule()
        assert timer.pending

        await asyncio.sleep(SETTLE)
        assert fired == [("a", 7)]
        assert timer.fired
        assert not timer.cancel()

    @pytest.mark.asyncio
    async def test_cancel_before_firing(self):
        fired = []

        async def callback(timer):
            fired.append(timer.node_id)

        timer = AutoExecuteTimer("a", 1, 0.05, callback).schedule()
        assert timer.cancel()

        await asyncio.sleep(SETTLE)
        assert fired == []
        assert not timer.fired

    @pytest.mark.asyncio
    async def test_failing_callback_is_contained(self):
        async def callback(timer):
            raise RuntimeError("boom")

        timer = AutoExecuteTimer("a", 1, 0.0, callback).schedule()
        await asyncio.sleep(SETTLE)
        assert timer.fired
        assert not timer.pending

    @pytest.mark.asyncio
    async def test_schedule_twice_fails(self):
        async def callback(timer):
            pass

        timer = AutoExecuteTimer("a", 1, 0.05, callback).schedule()
        with pytest.raises(RuntimeError):
            timer.schedule()
        timer.cancel()
