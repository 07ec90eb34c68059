"""Progress events and subscriber streams for pipeline runs.

A run publishes ProgressEvents; each subscriber reads them from its own
ProgressStream, an async iterator that ends after the terminal event
(done, failed or cancelled). A stream can also cancel the run it observes.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot of a run at one transition or progress tick."""

    state: str
    step: int
    label: str
    message: str
    percent: float
    terminal: bool = False
    error: Optional[str] = None
    output_path: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


class ProgressStream:
    """Async iterator over the progress events of one run.

    Example usage:
        stream = run.subscribe()
        async for event in stream:
            print(f"{event.percent:.0f}% {event.message}")
    """

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._on_cancel = on_cancel

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ProgressEvent) -> None:
        """Queue an event; a terminal event also closes the stream."""
        if self._closed:
            return
        self._queue.put_nowait(event)
        if event.terminal:
            self.close()

    def close(self) -> None:
        """End iteration once queued events are drained."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def cancel(self) -> None:
        """Ask the observed run to cancel."""
        if self._on_cancel is not None:
            self._on_cancel()

    def __aiter__(self) -> "ProgressStream":
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later reader
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item
