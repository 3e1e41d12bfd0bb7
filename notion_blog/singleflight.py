from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from .errors import LockError
from .run_log import RunLogger

T = TypeVar("T")


@dataclass
class _Guard:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    waiting: int = 0


class SingleFlightGroup:
    """
    Per-key mutual exclusion for cache population.

    ``run(key, fn)`` lets one caller at a time execute under ``key``; the rest
    queue behind it and, once they get the guard, normally find the cache
    already filled. An acquisition fails with LockError when more than
    ``max_pending`` callers are already queued, when waiting takes longer than
    ``acquire_timeout`` seconds, or when the holder runs longer than
    ``max_occupation`` seconds.

    On an overrun the holder's work is shielded and keeps running in the
    background; the caller gets LockError and the guard is released. The next
    queued caller can then start a second run of the same key while the first
    is still in flight, and whichever finishes last writes the cache. A
    failure of the abandoned run is logged as ``single_flight_orphan_failed``.
    """

    def __init__(
        self,
        *,
        max_pending: int = 100,
        acquire_timeout: float = 60.0,
        max_occupation: float = 60.0,
        logger: RunLogger | None = None,
    ) -> None:
        if max_pending < 1:
            raise ValueError("max_pending must be >= 1")
        if acquire_timeout <= 0 or max_occupation <= 0:
            raise ValueError("timeouts must be positive")

        self._max_pending = int(max_pending)
        self._acquire_timeout = float(acquire_timeout)
        self._max_occupation = float(max_occupation)
        self._logger = logger
        self._guards: dict[str, _Guard] = {}

    def waiting(self, key: str) -> int:
        guard = self._guards.get(key)
        return guard.waiting if guard is not None else 0

    def _orphan_done(self, key: str) -> Callable[["asyncio.Future[Any]"], None]:
        def _done(task: "asyncio.Future[Any]") -> None:
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None and self._logger is not None:
                self._logger.exception("single_flight_orphan_failed", exc=exc, key=key)

        return _done

    async def run(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        guard = self._guards.setdefault(key, _Guard())

        if guard.lock.locked() and guard.waiting >= self._max_pending:
            raise LockError(f"Too many pending acquisitions for {key!r} (max_pending={self._max_pending})")

        guard.waiting += 1
        try:
            await asyncio.wait_for(guard.lock.acquire(), timeout=self._acquire_timeout)
        except asyncio.TimeoutError as e:
            raise LockError(
                f"Timed out after {self._acquire_timeout}s waiting for {key!r}"
            ) from e
        finally:
            guard.waiting -= 1

        try:
            task = asyncio.ensure_future(fn())
            try:
                return await asyncio.wait_for(asyncio.shield(task), timeout=self._max_occupation)
            except asyncio.TimeoutError as e:
                # Nobody awaits the task any more; retrieve its outcome here.
                task.add_done_callback(self._orphan_done(key))
                raise LockError(
                    f"Holder of {key!r} exceeded max occupation time of {self._max_occupation}s"
                ) from e
        finally:
            guard.lock.release()
