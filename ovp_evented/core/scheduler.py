from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import contextmanager
from typing import Any, Callable, Deque, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """Cooperative scheduler: run `fn` on a later tick, never synchronously."""

    def call_soon(self, fn: Callable[[], Any]) -> None:
        ...


class TickScheduler:
    """Manual scheduler drained by `tick()`.

    Callbacks scheduled while a tick runs wait for the following tick.
    """

    def __init__(self) -> None:
        self._pending: Deque[Callable[[], Any]] = deque()

    def call_soon(self, fn: Callable[[], Any]) -> None:
        self._pending.append(fn)

    @property
    def pending(self) -> int:
        return len(self._pending)

    def tick(self) -> int:
        """Run what was scheduled before this call; return how many ran."""
        batch = list(self._pending)
        self._pending.clear()
        for fn in batch:
            try:
                fn()
            except Exception:  # noqa: BLE001
                logger.exception("scheduled callback %r failed", fn)
        return len(batch)


class AsyncioScheduler:
    """Schedules on an asyncio loop (the running one unless given)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_soon(self, fn: Callable[[], Any]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon(fn)


class DispatchScheduler(TickScheduler):
    """TickScheduler that ticks itself when the outermost dispatch returns.

    Node triggers run inside `dispatching()`; callbacks scheduled during a
    dispatch (nested ones included) run once the top-level trigger is done.
    """

    def __init__(self) -> None:
        super().__init__()
        self._depth = 0

    @contextmanager
    def dispatching(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0 and self.pending:
                self.tick()


default_tick_scheduler = TickScheduler()
dispatch_scheduler = DispatchScheduler()


def running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def resolve_scheduler(mode: str = "auto") -> Scheduler:
    """Pick the scheduler for a grant.

    - "asyncio": the loop running in this thread (must exist)
    - "tick": the process-wide TickScheduler
    - "auto": asyncio when a loop is running, else the DispatchScheduler
    """
    if mode == "tick":
        return default_tick_scheduler
    loop = running_loop()
    if mode == "asyncio":
        if loop is None:
            raise RuntimeError("scheduler mode 'asyncio' needs a running event loop")
        return AsyncioScheduler(loop)
    if loop is not None:
        return AsyncioScheduler(loop)
    return dispatch_scheduler
