"""Timeout guard — races one fetch against its per-item deadline.

``TimeoutGuard.run_with_deadline`` starts the fetch as its own task and waits
for it with a timeout.  Whichever settles first decides the outcome:

    fetch returns a value   →  Success(value)
    fetch raises            →  Failure(error)
    deadline fires first    →  TimedOut

Architecture:
    ::

        run_with_deadline(fetch, key, index, timeout, on_abandon=None)
          │
          ├── task = fetch(key, token)          coroutine → event loop
          │                                     plain callable → worker thread
          ├── asyncio.wait({task}, timeout)
          │
          ├── settled    → Success / Failure
          └── deadline   → token.cancel() + task.cancel()
                           wait ≤ cancel_grace for the fetch to stop
                           still running → on_abandon(worker)
                           → TimedOut   (late result is never reported)

Guardrails:
    - Cancellation is cooperative.  A fetch that ignores both the token and
      ``CancelledError`` keeps running in the background; its result is
      logged at debug level and dropped, never reported.
    - Threads cannot be interrupted.  Sync fetches should poll
      ``token.raise_if_cancelled()``.  A worker thread still running after
      the grace period is handed to ``on_abandon`` so the caller can keep
      its concurrency slot occupied until the thread returns.
    - If the guard itself is cancelled (the batch was aborted) it signals the
      fetch and re-raises immediately, without waiting.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextvars
import functools
import inspect
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from fanout.core.errors import ConfigurationError, FetchCancelled
from fanout.core.logging import get_logger
from fanout.execution.cancellation import CancellationToken
from fanout.execution.outcomes import Failure, FetchOutcome, Success, TimedOut

logger = get_logger(__name__)

FetchFn = Callable[[Any, CancellationToken], Any]
AbandonFn = Callable[["asyncio.Future[Any]"], None]

# Strong references to fetches that outlived their deadline
_abandoned: set[asyncio.Future[Any]] = set()


def is_async_fetch(fetch: Any) -> bool:
    """True if ``fetch`` is a coroutine function (or an object with one as ``__call__``)."""
    if inspect.iscoroutinefunction(fetch):
        return True
    return inspect.iscoroutinefunction(getattr(fetch, "__call__", None))


def _discard_late_result(fut: asyncio.Future[Any]) -> None:
    _abandoned.discard(fut)
    if fut.cancelled():
        return
    exc = fut.exception()
    logger.debug(
        "fanout.item.late_result_discarded",
        outcome="error" if exc is not None else "value",
    )


class TimeoutGuard:
    """Runs fetches under a deadline and maps them to :data:`FetchOutcome`.

    Parameters
    ----------
    cancel_grace : float
        Seconds to wait, after the deadline, for a cancelled fetch to stop.
    max_workers : int
        Size of the worker pool used for sync fetches. The pool is created on
        first use and released by :meth:`close`.
    """

    def __init__(self, cancel_grace: float = 0.05, max_workers: int = 8) -> None:
        self._cancel_grace = cancel_grace
        self._max_workers = max(1, max_workers)
        self._executor: ThreadPoolExecutor | None = None

    async def run_with_deadline(
        self,
        fetch: FetchFn,
        key: Any,
        index: int,
        timeout: float,
        *,
        on_abandon: AbandonFn | None = None,
    ) -> FetchOutcome:
        """Run ``fetch(key, token)`` and race it against ``timeout`` seconds.

        ``on_abandon`` is called with the worker future of a sync fetch that is
        still running when the guard gives up on it (deadline plus grace, or
        the guard being cancelled).  The future settles when the thread
        returns.
        """
        if timeout <= 0:
            raise ConfigurationError("timeout", timeout, f"Timeout must be positive, got {timeout}")

        token = CancellationToken()
        start = time.monotonic()
        thread: concurrent.futures.Future[Any] | None = None
        worker: asyncio.Future[Any] | None = None
        if not is_async_fetch(fetch):
            thread = self._submit(fetch, key, token)
            worker = asyncio.wrap_future(thread)
        task = asyncio.ensure_future(self._settle(fetch, key, token, worker))

        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
            elapsed = time.monotonic() - start

            if not done:
                self._stop(token, "deadline exceeded", task, thread)
                if self._cancel_grace > 0:
                    await asyncio.wait({worker or task}, timeout=self._cancel_grace)
                self._abandon(task, thread, worker, on_abandon)
                return TimedOut(key=key, index=index, timeout=timeout, elapsed=elapsed)
        except asyncio.CancelledError:
            self._stop(token, "batch cancelled", task, thread)
            self._abandon(task, thread, worker, on_abandon)
            raise

        if task.cancelled():
            return Failure(key=key, index=index, error=FetchCancelled("fetch task was cancelled"))

        exc = task.exception()
        if exc is None:
            return Success(key=key, index=index, value=task.result())
        if isinstance(exc, Exception):
            return Failure(key=key, index=index, error=exc)
        raise exc

    async def _settle(
        self,
        fetch: FetchFn,
        key: Any,
        token: CancellationToken,
        worker: asyncio.Future[Any] | None,
    ) -> Any:
        if worker is None:
            return await fetch(key, token)

        # Shielded so cancelling this task leaves the thread's future alone
        result = await asyncio.shield(worker)
        if inspect.isawaitable(result):
            return await result
        return result

    def _submit(self, fetch: FetchFn, key: Any, token: CancellationToken) -> concurrent.futures.Future[Any]:
        ctx = contextvars.copy_context()
        return self._get_executor().submit(functools.partial(ctx.run, fetch, key, token))

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="fanout-fetch",
            )
        return self._executor

    @staticmethod
    def _stop(
        token: CancellationToken,
        reason: str,
        task: asyncio.Future[Any],
        thread: concurrent.futures.Future[Any] | None,
    ) -> None:
        token.cancel(reason)
        task.cancel()
        if thread is not None:
            # Only succeeds if no worker has picked it up yet
            thread.cancel()

    @staticmethod
    def _abandon(
        task: asyncio.Future[Any],
        thread: concurrent.futures.Future[Any] | None,
        worker: asyncio.Future[Any] | None,
        on_abandon: AbandonFn | None,
    ) -> None:
        if thread is None or worker is None:
            fut = task
        elif thread.done():
            return
        else:
            fut = worker
            if on_abandon is not None:
                on_abandon(fut)

        if fut.done():
            _discard_late_result(fut)
            return
        _abandoned.add(fut)
        fut.add_done_callback(_discard_late_result)

    def close(self) -> None:
        """Release the worker pool without waiting for abandoned sync fetches."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None


__all__ = ["TimeoutGuard", "FetchFn", "AbandonFn", "is_async_fetch"]
