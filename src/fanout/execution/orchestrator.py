"""Fan-out fetch orchestrator — bounded, deadline-guarded batch retrieval.

WHY
───
A handler that needs N records by key should not open N simultaneous
requests against its data source, should not hang on one slow key, and
should say clearly whether it got everything.  ``fetch_all`` does the
bounded fan-out, the per-item deadline, and the aggregation in one place.

ARCHITECTURE
────────────
::

    fetch_all(keys, fetch, policy)
      │
      ▼
    FetchBatch                       one per call, discarded on return
      ├── ConcurrencyLimiter         permit per in-flight fetch
      ├── TimeoutGuard               per-item deadline + cancellation token
      ├── ResultAggregator           fail-fast / best-effort
      └── BatchItem × len(keys)      Pending → Dispatched → outcome → PermitReleased

    Batch: Idle → Dispatching → Aggregating → Aborted | Completed

One asyncio task per key.  Each task holds a permit while its fetch is
running, so the number of running fetches never exceeds
``policy.max_concurrency``.  A sync fetch whose worker thread is still busy
after its deadline is reported ``TimedOut`` at once, but its permit is only
released when the thread returns.  Outcomes are fed to the aggregator in
completion order; outcomes settling in the same scheduler step are fed in
input order.

On a fail-fast abort (or if the caller cancels ``fetch_all``) every
unfinished item task is cancelled and awaited before returning.  Nothing is
dispatched after that point.

Example::

    async def get_user(user_id, token):
        return await repo.get(user_id)

    policy = Policy(max_concurrency=10, per_item_timeout=2.0, fail_fast=True)
    match await fetch_all([1, 2, 3], get_user, policy):
        case Completed(values=users):
            ...
        case Aborted() as aborted:
            raise aborted.error
"""

from __future__ import annotations

import asyncio
import functools
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from fanout.core.errors import ConfigurationError
from fanout.core.logging import LogContext, get_logger
from fanout.execution.aggregator import ResultAggregator
from fanout.execution.limiter import ConcurrencyLimiter, Permit
from fanout.execution.outcomes import (
    Aborted,
    AggregateOutcome,
    BatchState,
    Failure,
    FetchOutcome,
    ItemState,
    Success,
    TimedOut,
)
from fanout.execution.policy import Policy
from fanout.execution.timeout import FetchFn, TimeoutGuard, is_async_fetch

if TYPE_CHECKING:
    from fanout.sources.base import RecordSource

logger = get_logger(__name__)


@dataclass
class BatchItem:
    """Progress of a single key within a batch."""

    key: Any
    index: int
    state: ItemState = ItemState.PENDING
    outcome: FetchOutcome | None = None
    dispatched_at: datetime | None = None
    settled_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Time spent holding a permit, if the item was dispatched and settled."""
        if self.dispatched_at and self.settled_at:
            return (self.settled_at - self.dispatched_at).total_seconds()
        return None


@dataclass
class BatchReport:
    """Snapshot of a batch for logging / API responses."""

    batch_id: str
    policy: Policy
    state: BatchState
    items: list[BatchItem]
    started_at: datetime | None = None
    completed_at: datetime | None = None
    peak_concurrency: int = 0

    def _count(self, kind: type) -> int:
        return sum(1 for i in self.items if isinstance(i.outcome, kind))

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def succeeded(self) -> int:
        return self._count(Success)

    @property
    def failed(self) -> int:
        return self._count(Failure)

    @property
    def timed_out(self) -> int:
        return self._count(TimedOut)

    @property
    def cancelled(self) -> int:
        return sum(1 for i in self.items if i.state is ItemState.CANCELLED)

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "state": self.state.value,
            "policy": self.policy.to_dict(),
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "peak_concurrency": self.peak_concurrency,
            "duration_seconds": self.duration_seconds,
            "items": [
                {
                    "key": repr(i.key),
                    "index": i.index,
                    "state": i.state.value,
                    "outcome": i.outcome.state.value if i.outcome is not None else None,
                    "duration_seconds": i.duration_seconds,
                }
                for i in self.items
            ],
        }


class FetchBatch:
    """A single fan-out fetch. Runs once; inspect it afterwards via :meth:`report`."""

    def __init__(self, keys: Iterable[Any], fetch: FetchFn, policy: Policy) -> None:
        if not isinstance(policy, Policy):
            raise ConfigurationError("policy", policy, f"policy must be a Policy, got {type(policy).__name__}")
        if not callable(fetch):
            raise ConfigurationError("fetch", fetch, "fetch must be callable as fetch(key, token)")

        self._batch_id = str(uuid.uuid4())
        self._fetch = fetch
        self._policy = policy
        self._items = [BatchItem(key=key, index=i) for i, key in enumerate(keys)]
        self._state = BatchState.IDLE
        self._limiter: ConcurrencyLimiter | None = None
        self._started_at: datetime | None = None
        self._completed_at: datetime | None = None

    # ── Execution ────────────────────────────────────────────────────

    async def run(self) -> AggregateOutcome:
        """Fetch every key and return the aggregate outcome."""
        if self._state is not BatchState.IDLE:
            raise RuntimeError(f"Batch {self._batch_id} already ran (state={self._state.value})")

        self._started_at = datetime.now(UTC)
        aggregator = ResultAggregator(len(self._items), fail_fast=self._policy.fail_fast)

        with LogContext(batch_id=self._batch_id):
            logger.info(
                "fanout.batch.start",
                items=len(self._items),
                **self._policy.to_dict(),
            )

            if not self._items:
                return self._finish(aggregator.finish())

            self._state = BatchState.DISPATCHING
            self._limiter = ConcurrencyLimiter(self._policy.max_concurrency)
            guard = TimeoutGuard(
                cancel_grace=self._policy.cancel_grace,
                max_workers=self._policy.max_concurrency,
            )
            tasks = {
                asyncio.create_task(self._run_item(item, self._limiter, guard)): item
                for item in self._items
            }

            self._state = BatchState.AGGREGATING
            pending = set(tasks)
            verdict: AggregateOutcome | None = None
            try:
                while pending and verdict is None:
                    done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                    for task in sorted(done, key=lambda t: tasks[t].index):
                        verdict = aggregator.feed(task.result())
                        if verdict is not None:
                            break
            finally:
                for task in pending:
                    task.cancel()
                if pending:
                    await asyncio.gather(*pending, return_exceptions=True)
                guard.close()

            return self._finish(verdict if verdict is not None else aggregator.finish())

    async def _run_item(
        self,
        item: BatchItem,
        limiter: ConcurrencyLimiter,
        guard: TimeoutGuard,
    ) -> FetchOutcome:
        lingering: list[asyncio.Future[Any]] = []
        try:
            permit = await limiter.acquire()
            try:
                item.state = ItemState.DISPATCHED
                item.dispatched_at = datetime.now(UTC)
                outcome = await guard.run_with_deadline(
                    self._fetch,
                    item.key,
                    item.index,
                    self._policy.per_item_timeout,
                    on_abandon=lingering.append,
                )
                item.outcome = outcome
                item.state = outcome.state
                item.settled_at = datetime.now(UTC)
            finally:
                if lingering:
                    # A worker thread that ignored cancellation still counts
                    # against the bound until it returns.
                    release = functools.partial(self._release_late, item, limiter, permit)
                    lingering[0].add_done_callback(release)
                else:
                    limiter.release(permit)
        except asyncio.CancelledError:
            item.state = ItemState.CANCELLED
            raise

        match outcome:
            case Failure(error=error):
                logger.warning(
                    "fanout.item.failed",
                    key=repr(item.key),
                    index=item.index,
                    error=str(error),
                    error_type=type(error).__name__,
                )
            case TimedOut(timeout=timeout, elapsed=elapsed):
                logger.warning(
                    "fanout.item.timed_out",
                    key=repr(item.key),
                    index=item.index,
                    timeout=timeout,
                    elapsed=elapsed,
                )

        if not lingering:
            item.state = ItemState.PERMIT_RELEASED
        return outcome

    @staticmethod
    def _release_late(item: BatchItem, limiter: ConcurrencyLimiter, permit: Permit, _: Any) -> None:
        limiter.release(permit)
        if item.state is not ItemState.CANCELLED:
            item.state = ItemState.PERMIT_RELEASED
        logger.debug("fanout.item.permit_released_late", key=repr(item.key), index=item.index)

    def _finish(self, verdict: AggregateOutcome) -> AggregateOutcome:
        self._completed_at = datetime.now(UTC)
        self._state = BatchState.ABORTED if isinstance(verdict, Aborted) else BatchState.COMPLETED
        report = self.report()

        if isinstance(verdict, Aborted):
            logger.warning(
                "fanout.batch.aborted",
                key=repr(verdict.key),
                reason=verdict.first_failure.state.value,
                error=str(verdict.error),
                duration_seconds=report.duration_seconds,
            )
        else:
            logger.info(
                "fanout.batch.complete",
                values=len(verdict.values),
                dropped=verdict.dropped_count,
                peak_concurrency=report.peak_concurrency,
                duration_seconds=report.duration_seconds,
            )
        return verdict

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def batch_id(self) -> str:
        return self._batch_id

    @property
    def state(self) -> BatchState:
        return self._state

    @property
    def items(self) -> list[BatchItem]:
        return list(self._items)

    @property
    def policy(self) -> Policy:
        return self._policy

    def report(self) -> BatchReport:
        return BatchReport(
            batch_id=self._batch_id,
            policy=self._policy,
            state=self._state,
            items=list(self._items),
            started_at=self._started_at,
            completed_at=self._completed_at,
            peak_concurrency=self._limiter.peak if self._limiter else 0,
        )


# ── Entry points ─────────────────────────────────────────────────────────


async def fetch_all(keys: Iterable[Any], fetch: FetchFn, policy: Policy) -> AggregateOutcome:
    """Fetch one record per key under ``policy``.

    Args:
        keys: Keys to fetch. Duplicates are fetched independently.
        fetch: ``fetch(key, token)``, either a coroutine function or a plain
            callable (run in a worker thread). Raising is a failure.
        policy: Concurrency bound, per-item deadline and aggregation mode.

    Returns:
        ``Completed`` with successes in input order, or ``Aborted`` with the
        first failure under fail-fast.

    Raises:
        ConfigurationError: If ``policy`` or ``fetch`` is invalid. Nothing
            is fetched in that case.
    """
    return await FetchBatch(keys, fetch, policy).run()


def fetch_all_sync(keys: Iterable[Any], fetch: FetchFn, policy: Policy) -> AggregateOutcome:
    """Blocking wrapper around :func:`fetch_all` for code without an event loop."""
    batch = FetchBatch(keys, fetch, policy)
    return asyncio.run(batch.run())


async def load_all(source: RecordSource, policy: Policy) -> AggregateOutcome:
    """Fetch every record a source lists: ``list_keys()`` then :func:`fetch_all`."""
    if is_async_fetch(source.list_keys):
        keys = await source.list_keys()
    else:
        keys = await asyncio.to_thread(source.list_keys)
    return await fetch_all(keys, source.fetch, policy)


@dataclass
class Orchestrator:
    """A fetch capability paired with a default policy, reusable across calls.

    No state is carried between calls; every :meth:`fetch_all` builds a
    fresh :class:`FetchBatch`.
    """

    fetch: FetchFn
    policy: Policy

    def batch(self, keys: Iterable[Any], policy: Policy | None = None) -> FetchBatch:
        return FetchBatch(keys, self.fetch, policy or self.policy)

    async def fetch_all(self, keys: Iterable[Any], policy: Policy | None = None) -> AggregateOutcome:
        return await self.batch(keys, policy).run()

    def fetch_all_sync(self, keys: Iterable[Any], policy: Policy | None = None) -> AggregateOutcome:
        return asyncio.run(self.batch(keys, policy).run())


__all__ = [
    "BatchItem",
    "BatchReport",
    "FetchBatch",
    "Orchestrator",
    "fetch_all",
    "fetch_all_sync",
    "load_all",
]
