"""Tests for the event dispatcher."""

import pytest

from workflow_engine.core import EventDispatcher
from workflow_engine.models import CompletionEvent, NodeEnterEvent, NodeExitEvent, ExitReason, WorkflowEventKind


@pytest.fixture
def dispatcher():
    return EventDispatcher()


def enter(node_id="a"):
    return NodeEnterEvent(node_id=node_id, timestamp_millis=1)


class TestEventDispatcher:
    """Test cases for EventDispatcher."""

    def test_handlers_receive_matching_kind(self, dispatcher):
        entered, exited = [], []
        dispatcher.on(WorkflowEventKind.NODE_ENTER, entered.append)
        dispatcher.on("node-exit", exited.append)

        event = enter()
        dispatcher.emit(event)

        assert entered == [event]
        assert exited == []

    def test_registration_order_is_delivery_order(self, dispatcher):
        calls = []
        dispatcher.on("node-enter", lambda event: calls.append("first"))
        dispatcher.on_any(lambda event: calls.append("any"))
        dispatcher.on("node-enter", lambda event: calls.append("second"))

        dispatcher.emit(enter())
        assert calls == ["first", "any", "second"]

    def test_raising_handler_does_not_stop_delivery(self, dispatcher):
        calls = []

        def broken(event):
            raise RuntimeError("consumer failure")

        dispatcher.on("node-enter", broken)
        dispatcher.on("node-enter", calls.append)

        dispatcher.emit(enter())
        assert len(calls) == 1

    def test_unsubscribe(self, dispatcher):
        calls = []
        subscription = dispatcher.on("completion", calls.append)

        assert subscription.active
        assert subscription.unsubscribe()
        assert not subscription.unsubscribe()
        assert not subscription.active

        dispatcher.emit(CompletionEvent(progress=100, timestamp_millis=1))
        assert calls == []

    def test_off_and_counts(self, dispatcher):
        subscription = dispatcher.on("node-enter", lambda event: None)
        dispatcher.on_any(lambda event: None)

        assert dispatcher.handler_count() == 2
        assert dispatcher.handler_count(WorkflowEventKind.NODE_ENTER) == 1
        assert dispatcher.off(subscription)
        assert not dispatcher.off(subscription)
        assert dispatcher.handler_count() == 1

    def test_subscription_context_manager(self, dispatcher):
        calls = []
        with dispatcher.on("node-exit", calls.append):
            dispatcher.emit(NodeExitEvent(node_id="a", reason=ExitReason.COMPLETED, timestamp_millis=1))
        dispatcher.emit(NodeExitEvent(node_id="a", reason=ExitReason.COMPLETED, timestamp_millis=2))

        assert len(calls) == 1

    def test_clear(self, dispatcher):
        subscription = dispatcher.on("node-enter", lambda event: None)
        dispatcher.clear()

        assert dispatcher.handler_count() == 0
        assert not subscription.active

    def test_unknown_kind_rejected(self, dispatcher):
        with pytest.raises(ValueError):
            dispatcher.on("warning", lambda event: None)

    def test_non_callable_rejected(self, dispatcher):
        with pytest.raises(TypeError):
            dispatcher.on("node-enter", "not callable")
