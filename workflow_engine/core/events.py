"""Observer registry that delivers workflow events to external consumers."""

import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Union

from ..models.core import WorkflowEvent, WorkflowEventKind
from .logging import get_logger

logger = get_logger(__name__)

EventHandler = Callable[[WorkflowEvent], None]


@dataclass
class Subscription:
    """Handle returned by :meth:`EventDispatcher.on`."""
    id: int
    kind: Optional[WorkflowEventKind]
    handler: EventHandler
    _dispatcher: Optional["EventDispatcher"] = field(default=None, repr=False, compare=False)

    @property
    def active(self) -> bool:
        return self._dispatcher is not None

    def unsubscribe(self) -> bool:
        """Stop receiving events; returns False if already unsubscribed."""
        if self._dispatcher is None:
            return False
        removed = self._dispatcher.off(self)
        self._dispatcher = None
        return removed

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class EventDispatcher:
    """Synchronous publish/subscribe for workflow events.

    Handlers run on the emitting turn, in the order they were registered. A
    handler that raises is logged and skipped; delivery to the remaining
    handlers continues.
    """

    def __init__(self):
        self._handlers: Dict[Optional[WorkflowEventKind], List[Subscription]] = {}
        self._ids = itertools.count(1)

    def on(self, kind: Union[WorkflowEventKind, str], handler: EventHandler) -> Subscription:
        """Register a handler for one event kind.

        Args:
            kind: The event kind, as an enum member or its string value ("node-enter", ...)
            handler: Callable receiving the event

        Returns:
            Subscription that can be used to unsubscribe
        """
        return self._add(WorkflowEventKind(kind), handler)

    def on_any(self, handler: EventHandler) -> Subscription:
        """Register a handler for every event kind."""
        return self._add(None, handler)

    def _add(self, kind: Optional[WorkflowEventKind], handler: EventHandler) -> Subscription:
        if not callable(handler):
            raise TypeError("Event handler must be callable")
        subscription = Subscription(id=next(self._ids), kind=kind, handler=handler, _dispatcher=self)
        self._handlers.setdefault(kind, []).append(subscription)
        return subscription

    def off(self, subscription: Subscription) -> bool:
        """Remove a subscription; returns False if it was not registered."""
        handlers = self._handlers.get(subscription.kind, [])
        for position, registered in enumerate(handlers):
            if registered.id == subscription.id:
                del handlers[position]
                return True
        return False

    def handler_count(self, kind: Optional[WorkflowEventKind] = None) -> int:
        if kind is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(WorkflowEventKind(kind), []))

    def clear(self) -> None:
        for handlers in self._handlers.values():
            for subscription in handlers:
                subscription._dispatcher = None
        self._handlers.clear()

    def emit(self, event: WorkflowEvent) -> None:
        """Deliver an event to every matching handler in registration order."""
        targets = list(self._handlers.get(event.kind, [])) + list(self._handlers.get(None, []))
        for subscription in sorted(targets, key=lambda s: s.id):
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    f"Event handler {subscription.id} failed on '{event.kind.value}' event"
                )
