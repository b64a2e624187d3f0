"""Timing, background task tracking, and local diagnostics."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Diagnostic:
    source: str
    message: str
    timestamp_utc: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class DiagnosticSink:
    """Bounded in-memory record of failures that were deliberately not raised."""

    def __init__(self, maxlen: int = 500) -> None:
        self._items: deque[Diagnostic] = deque(maxlen=maxlen)

    def record(self, source: str, message: str) -> None:
        logger.warning("%s: %s", source, message)
        self._items.append(Diagnostic(source=source, message=message))

    def recent(self, limit: int = 20) -> list[Diagnostic]:
        return list(self._items)[-limit:]

    def __len__(self) -> int:
        return len(self._items)


class BackgroundTasks:
    """Holds strong references to fire-and-forget tasks until they finish.

    Exceptions escaping a task are captured into the diagnostic sink; the
    spawning caller never awaits the task.
    """

    def __init__(self, sink: DiagnosticSink) -> None:
        self._sink = sink
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._sink.record(task.get_name(), repr(exc))

    async def drain(self) -> None:
        """Wait for every outstanding task. Used at shutdown and in tests."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)


class Timer:
    """Simple context timer used around agent runs and tool calls."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
