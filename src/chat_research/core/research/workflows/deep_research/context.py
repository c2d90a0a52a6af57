"""Per-run context shared by every deep research stage.

``AbortSignal`` is the single cancellation token of a run. Stages call
:meth:`AbortSignal.raise_if_aborted` before starting new work (an
iteration, a unit, a retry) and wrap every external call in
:meth:`AbortSignal.run`, which cancels the in-flight call as soon as the
signal fires.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Optional, TypeVar

from chat_research.core.errors.research import ResearchCancelledError

if TYPE_CHECKING:
    from chat_research.config.research import RuntimeConfig
    from chat_research.core.credits.cost_accumulator import CostAccumulator
    from chat_research.core.research.workflows.deep_research.stream import ResearchUpdateStream

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortSignal:
    """Cooperative cancellation signal for one research run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def abort(self, reason: Optional[str] = None) -> None:
        """Fire the signal. Only the first reason is kept."""
        if self._event.is_set():
            return
        self._reason = reason or "Cancellation requested"
        logger.info("Abort signal fired: %s", self._reason)
        self._event.set()

    def raise_if_aborted(self) -> None:
        """Raise ``ResearchCancelledError`` if the signal has fired."""
        if self._event.is_set():
            raise ResearchCancelledError(self._reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, cancelling it if the signal fires first.

        Raises:
            ResearchCancelledError: If the signal fired before or during the call
        """
        if self._event.is_set() and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.raise_if_aborted()
        task: asyncio.Future[Any] = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task.done():
            waiter.cancel()
            return task.result()

        task.cancel()
        # Let the cancelled call unwind before reporting cancellation
        await asyncio.gather(task, return_exceptions=True)
        raise ResearchCancelledError(self._reason)


@dataclass(frozen=True)
class AgentOptions:
    """Run-scoped context passed by reference through every stage.

    Attributes:
        request_id: Correlation id of the originating chat request
        message_id: Chat message the run belongs to
        tool_call_id: Tool call that started the run; tags every update
        abort_signal: Cancellation signal for the run
        stream: Progress update stream for the run
        cost_accumulator: Cost ledger for the run
        config: Resolved runtime configuration
    """

    request_id: str
    message_id: str
    tool_call_id: str
    abort_signal: AbortSignal
    stream: "ResearchUpdateStream"
    cost_accumulator: "CostAccumulator"
    config: "RuntimeConfig"


def check_cancellation(options: AgentOptions) -> None:
    """Raise ``ResearchCancelledError`` if the run has been aborted."""
    options.abort_signal.raise_if_aborted()
