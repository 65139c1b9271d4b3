"""Fanout Execution — bounded concurrent fan-out fetch.

MODULE MAP (recommended reading order)
──────────────────────────────────────
  1. policy.py         ─ Policy (max_concurrency, per_item_timeout, fail_fast)
  2. outcomes.py       ─ Success / Failure / TimedOut, Completed / Aborted
  3. limiter.py        ─ ConcurrencyLimiter (permit pool)
  4. cancellation.py   ─ CancellationToken handed to every fetch
  5. timeout.py        ─ TimeoutGuard (per-item deadline)
  6. aggregator.py     ─ ResultAggregator (fail-fast / best-effort)
  7. orchestrator.py   ─ fetch_all / fetch_all_sync / load_all / FetchBatch
"""

from fanout.execution.aggregator import ResultAggregator
from fanout.execution.cancellation import CancellationToken
from fanout.execution.limiter import ConcurrencyLimiter, Permit
from fanout.execution.orchestrator import (
    BatchItem,
    BatchReport,
    FetchBatch,
    Orchestrator,
    fetch_all,
    fetch_all_sync,
    load_all,
)
from fanout.execution.outcomes import (
    Aborted,
    AggregateOutcome,
    BatchState,
    Completed,
    Failure,
    FetchOutcome,
    ItemState,
    Success,
    TimedOut,
)
from fanout.execution.policy import Policy
from fanout.execution.timeout import FetchFn, TimeoutGuard

__all__ = [
    "Aborted",
    "AggregateOutcome",
    "BatchItem",
    "BatchReport",
    "BatchState",
    "CancellationToken",
    "Completed",
    "ConcurrencyLimiter",
    "Failure",
    "FetchBatch",
    "FetchFn",
    "FetchOutcome",
    "ItemState",
    "Orchestrator",
    "Permit",
    "Policy",
    "ResultAggregator",
    "Success",
    "TimedOut",
    "TimeoutGuard",
    "fetch_all",
    "fetch_all_sync",
    "load_all",
]
