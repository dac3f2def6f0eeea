"""Single-flight coordination for catalog refreshes.

Concurrent refresh requests collapse into one fetch. The first caller starts
the fetch (the flight) and every caller that arrives while it runs waits for
the same :class:`FetchOutcome`. Waiting is cancellable per caller; the flight
itself keeps running unless every waiter has left and the coordinator was
told the fetch can be abandoned.

Flights run on an event loop owned by the coordinator, in a daemon thread.
No caller's loop hosts the fetch, so a caller whose loop shuts down (for
example ``asyncio.run`` in a worker thread) only stops waiting. The shared
result is a :class:`concurrent.futures.Future`, which callers on any thread
or event loop can await.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from modelatlas.catalog.types import FetchOutcome
from modelatlas.exceptions import FetchError, NetworkError

logger = logging.getLogger(__name__)

FetchFn = Callable[[], Awaitable[FetchOutcome]]


@dataclass
class _Flight:
    result: "concurrent.futures.Future[FetchOutcome]" = field(
        default_factory=concurrent.futures.Future
    )
    waiters: int = 0
    handle: Optional["concurrent.futures.Future[None]"] = None


class RefreshCoordinator:
    """Ensure at most one catalog fetch is in flight at a time.

    Args:
        cancel_abandoned: Cancel the running fetch when every caller waiting
            on it has been cancelled. Only enable this when the fetch can be
            interrupted safely; otherwise the fetch runs to completion and its
            result is still delivered to ``fetch_fn``'s side effects.
    """

    def __init__(self, *, cancel_abandoned: bool = False) -> None:
        self._lock = threading.Lock()
        self._flight: Optional[_Flight] = None
        self._cancel_abandoned = cancel_abandoned
        self._flights_started = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def in_flight(self) -> bool:
        return self._flight is not None

    @property
    def flights_started(self) -> int:
        return self._flights_started

    async def refresh_or_join(self, fetch_fn: FetchFn) -> FetchOutcome:
        """Run ``fetch_fn`` or join the fetch already in progress.

        Args:
            fetch_fn: Coroutine function producing the outcome of one fetch.
                It is called at most once per flight, on the coordinator's
                own event loop.

        Returns:
            FetchOutcome: The outcome shared by every caller of this flight.
        """
        with self._lock:
            flight = self._flight
            if flight is None:
                flight = _Flight()
                self._flight = flight
                self._flights_started += 1
                flight.handle = asyncio.run_coroutine_threadsafe(
                    self._run(flight, fetch_fn), self._ensure_loop()
                )
                logger.debug("Started catalog refresh flight #%d", self._flights_started)
            else:
                logger.debug("Joining catalog refresh already in flight")
            flight.waiters += 1

        try:
            return await asyncio.shield(asyncio.wrap_future(flight.result))
        except asyncio.CancelledError:
            self._leave(flight)
            raise

    def close(self) -> None:
        """Cancel any running flight and stop the refresh loop.

        A later :meth:`refresh_or_join` starts a new loop.
        """
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = self._thread = None
        if loop is None or thread is None:
            return
        asyncio.run_coroutine_threadsafe(_cancel_pending_tasks(), loop).result()
        loop.call_soon_threadsafe(loop.stop)
        thread.join()
        loop.close()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        # Called with self._lock held.
        if self._loop is None:
            loop = asyncio.new_event_loop()

            def _run_loop() -> None:
                asyncio.set_event_loop(loop)
                loop.run_forever()

            thread = threading.Thread(target=_run_loop, name="modelatlas-refresh", daemon=True)
            thread.start()
            self._loop, self._thread = loop, thread
        return self._loop

    def _leave(self, flight: _Flight) -> None:
        with self._lock:
            flight.waiters -= 1
            abandoned = flight.waiters == 0 and not flight.result.done()
            if not (abandoned and self._cancel_abandoned):
                return
            if self._flight is flight:
                self._flight = None
        if flight.handle is not None and not flight.handle.done():
            logger.debug("Cancelling abandoned catalog refresh")
            flight.handle.cancel()

    async def _run(self, flight: _Flight, fetch_fn: FetchFn) -> None:
        try:
            outcome = await fetch_fn()
        except asyncio.CancelledError:
            self._finish(
                flight,
                outcome=FetchOutcome.failure(NetworkError("Catalog refresh was cancelled")),
            )
            raise
        except FetchError as exc:
            self._finish(flight, outcome=FetchOutcome.failure(exc))
        except Exception as exc:
            logger.exception("Catalog refresh failed unexpectedly")
            self._finish(flight, error=exc)
        else:
            self._finish(flight, outcome=outcome)

    def _finish(
        self,
        flight: _Flight,
        *,
        outcome: Optional[FetchOutcome] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        # Free the slot before releasing waiters so a woken caller can start a new flight.
        with self._lock:
            if self._flight is flight:
                self._flight = None
        if flight.result.done():
            return
        if error is not None:
            flight.result.set_exception(error)
        else:
            flight.result.set_result(outcome)


async def _cancel_pending_tasks() -> None:
    current = asyncio.current_task()
    tasks = [task for task in asyncio.all_tasks() if task is not current]
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["RefreshCoordinator", "FetchFn"]
