"""Progress update stream for one deep research run.

``ResearchUpdateStream`` is the single append-only channel every stage
writes to. Events are kept in emission order, forwarded synchronously to
registered sinks and made available to ``async for`` consumers. The
stream enforces its framing: the first event is ``started``, there is
exactly one ``started``, and the first terminal event (``completed`` or
``problem``) closes the stream. Writes after closing are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Iterable, List, Optional

from chat_research.core.research.models.updates import ResearchUpdate, is_terminal

logger = logging.getLogger(__name__)

UpdateSink = Callable[[ResearchUpdate], None]


class ResearchUpdateStream:
    """Append-only, ordered stream of ``ResearchUpdate`` events.

    Example:
        stream = ResearchUpdateStream(sinks=[print])
        stream.write(StartedUpdate(tool_call_id="call-1", title="Starting research"))
    """

    def __init__(self, sinks: Optional[Iterable[UpdateSink]] = None):
        self._events: List[ResearchUpdate] = []
        self._sinks: List[UpdateSink] = list(sinks or [])
        self._closed = False
        self._changed = asyncio.Event()

    def add_sink(self, sink: UpdateSink) -> None:
        self._sinks.append(sink)

    @property
    def events(self) -> List[ResearchUpdate]:
        """Snapshot of every event written so far."""
        return list(self._events)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def started(self) -> bool:
        return bool(self._events)

    @property
    def terminal_event(self) -> Optional[ResearchUpdate]:
        if self._closed and self._events and is_terminal(self._events[-1]):
            return self._events[-1]
        return None

    def write(self, update: ResearchUpdate) -> bool:
        """Append an update and forward it to the sinks.

        Returns:
            False if the stream is already closed and the update was dropped

        Raises:
            ValueError: If the update would break the stream framing
                (anything before ``started``, or a second ``started``)
        """
        if self._closed:
            logger.debug("Dropping %s update after stream closed: %s", update.type, update.title)
            return False
        if not self._events and update.type != "started":
            raise ValueError(f"First update must be 'started', got '{update.type}'")
        if self._events and update.type == "started":
            raise ValueError("Stream already has a 'started' update")

        self._events.append(update)
        for sink in self._sinks:
            try:
                sink(update)
            except Exception:
                logger.exception("Update sink %r failed", sink)

        if is_terminal(update):
            self._closed = True
        self._notify()
        return True

    def close(self) -> None:
        """Close the stream without a terminal event (consumer shutdown)."""
        if not self._closed:
            self._closed = True
            self._notify()

    def _notify(self) -> None:
        self._changed.set()
        self._changed = asyncio.Event()

    async def __aiter__(self) -> AsyncIterator[ResearchUpdate]:
        """Yield every update, replaying earlier ones, until the stream closes."""
        index = 0
        while True:
            while index < len(self._events):
                yield self._events[index]
                index += 1
            if self._closed:
                return
            await self._changed.wait()
