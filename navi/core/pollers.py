"""Background fetch scheduling.

Poller kinds:
- PeriodicPoller: fixed interval, optionally only while a condition holds
  (stops itself once the condition turns false).
- Debouncer: coalesces bursts of requests; only the last one in the window
  runs. In-flight fetches are never cancelled.
- run_once: one-shot fetch for a user action; errors are delivered to the UI.

Every poller hands its result to an `emit` callback (the engine's queue) and
never touches dashboard state. Periodic fetch errors are logged and dropped;
the previous value stays in place until the next tick.

HostGate serializes work per remote host while distinct hosts run in
parallel. fan_out runs one fetch per distinct key concurrently and joins them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Hashable, Iterable, Optional, TypeVar

from navi.core.messages import ResultMessage

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
T = TypeVar("T")

Emit = Callable[[ResultMessage], None]
Fetch = Callable[[], Awaitable[Optional[ResultMessage]]]


class PeriodicPoller:
    """Runs `fetch` every `interval` seconds and emits its result.

    With a `condition`, the poller checks it before every tick and stops
    itself when it is false; call `start()` again once it holds.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        fetch: Fetch,
        emit: Emit,
        condition: Callable[[], bool] | None = None,
        immediate: bool = True,
    ) -> None:
        self.name = name
        self.interval = interval
        self._fetch = fetch
        self._emit = emit
        self._condition = condition
        self._immediate = immediate
        self._task: asyncio.Task[None] | None = None
        self._oneshots: set[asyncio.Task[None]] = set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop. Returns False if already running or condition fails."""
        if self.running:
            return False
        if self._condition is not None and not self._condition():
            return False
        self._task = asyncio.create_task(self._run(), name=f"poller:{self.name}")
        return True

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
        for task in list(self._oneshots):
            task.cancel()
        self._oneshots.clear()

    def trigger(self) -> None:
        """Fetch once now, outside the schedule (e.g. cold start, manual refresh)."""
        task = asyncio.create_task(self._tick(), name=f"poller:{self.name}:now")
        self._oneshots.add(task)
        task.add_done_callback(self._oneshots.discard)

    async def _tick(self) -> None:
        try:
            message = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Background poll %s failed: %s", self.name, e)
            return
        if message is not None:
            self._emit(message)

    async def _run(self) -> None:
        if not self._immediate:
            await asyncio.sleep(self.interval)
        while True:
            if self._condition is not None and not self._condition():
                logger.debug("Poller %s stopped: condition no longer holds", self.name)
                return
            await self._tick()
            await asyncio.sleep(self.interval)


class Debouncer(Generic[K]):
    """Coalesces rapid requests; only the last one within `delay` fetches.

    A fetch that already started is left to finish. Its result is a snapshot
    keyed by target, so a newer result simply overwrites it.
    """

    def __init__(
        self,
        name: str,
        delay: float,
        fetch: Callable[[K], Awaitable[Optional[ResultMessage]]],
        emit: Emit,
    ) -> None:
        self.name = name
        self.delay = delay
        self._fetch = fetch
        self._emit = emit
        self._generation = 0
        self._pending: asyncio.Task[None] | None = None
        self._inflight: set[asyncio.Task[None]] = set()

    def request(self, key: K) -> None:
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._wait(self._generation, key), name=f"debounce:{self.name}")

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()

    async def _wait(self, generation: int, key: K) -> None:
        await asyncio.sleep(self.delay)
        if generation != self._generation:
            return
        task = asyncio.create_task(self._run(key), name=f"debounce:{self.name}:fetch")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self, key: K) -> None:
        try:
            message = await self._fetch(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.debug("Debounced fetch %s for %s failed: %s", self.name, key, e)
            return
        if message is not None:
            self._emit(message)


def run_once(
    name: str,
    fetch: Callable[[], Awaitable[T]],
    emit: Emit,
    to_message: Callable[[T | None, Exception | None], ResultMessage],
) -> asyncio.Task[None]:
    """Run a user-requested fetch once and emit its result or error."""

    async def _run() -> None:
        try:
            value = await fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.info("One-shot fetch %s failed: %s", name, e)
            emit(to_message(None, e))
            return
        emit(to_message(value, None))

    return asyncio.create_task(_run(), name=f"once:{name}")


def run_background(name: str, fetch: Fetch, emit: Emit) -> asyncio.Task[None]:
    """Run a background fetch once; failures are logged, never surfaced."""

    async def _run() -> None:
        try:
            message = await fetch()
        except asyncio.CancelledError:
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Background fetch %s failed: %s", name, e)
            return
        if message is not None:
            emit(message)

    return asyncio.create_task(_run(), name=f"background:{name}")


class HostGate:
    """One lock per remote host: operations on a host run one at a time."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock(self, host: str) -> asyncio.Lock:
        lock = self._locks.get(host)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[host] = lock
        return lock

    def busy(self, host: str) -> bool:
        lock = self._locks.get(host)
        return lock is not None and lock.locked()

    async def run(self, host: str, fetch: Callable[[], Awaitable[T]]) -> T:
        async with self.lock(host):
            return await fetch()


async def fan_out(
    keys: Iterable[K], fetch: Callable[[K], Awaitable[V]]
) -> tuple[dict[K, V], dict[K, Exception]]:
    """Fetch every distinct key concurrently; return (results, errors).

    Total latency is that of the slowest single fetch. Failures are recorded
    per key and do not affect the others.
    """
    unique = list(dict.fromkeys(keys))
    outcomes = await asyncio.gather(*(fetch(key) for key in unique), return_exceptions=True)
    results: dict[K, V] = {}
    errors: dict[K, Exception] = {}
    for key, outcome in zip(unique, outcomes):
        if isinstance(outcome, Exception):
            errors[key] = outcome
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            results[key] = outcome
    return results, errors
