"""Cancellable timer used for auto-executing process nodes."""

import asyncio
from typing import Awaitable, Callable, Optional

from .logging import get_logger

logger = get_logger(__name__)

TimerCallback = Callable[["AutoExecuteTimer"], Awaitable[None]]


class AutoExecuteTimer:
    """A scheduled completion for one node, stamped with the state generation.

    The callback receives the timer itself so it can compare ``generation``
    and ``node_id`` against the live state and drop the completion if the
    engine has moved on.
    """

    def __init__(self, node_id: str, generation: int, delay: float, callback: TimerCallback):
        self.node_id = node_id
        self.generation = generation
        self.delay = delay
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._fired = False

    def schedule(self) -> "AutoExecuteTimer":
        """Start the countdown on the running event loop."""
        if self._task is not None:
            raise RuntimeError("Timer already scheduled")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"auto-execute:{self.node_id}"
        )
        return self

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._fired = True
        try:
            await self._callback(self)
        except Exception:
            logger.exception(f"Auto-execute of node '{self.node_id}' failed")

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done() and not self._fired

    def cancel(self) -> bool:
        """Cancel the countdown; returns False if it already fired or finished."""
        if self._task is None or self._task.done() or self._fired:
            return False
        self._task.cancel()
        logger.debug(f"Cancelled auto-execute timer for node '{self.node_id}'")
        return True
