"""Per-item and per-batch outcomes of a fan-out fetch.

Per item, exactly one of::

    Success(key, index, value)       the fetch returned a value
    Failure(key, index, error)       the fetch raised
    TimedOut(key, index, timeout)    the deadline fired first

Per batch, exactly one of::

    Completed(values, dropped)       every success, in input order
    Aborted(first_failure)           fail-fast stopped on a failure/timeout

All outcome types are frozen dataclasses, so callers can ``match`` on them::

    match await fetch_all(keys, fetch, policy):
        case Completed(values=values):
            return values
        case Aborted(first_failure=TimedOut(key=key)):
            log.warning("slow key", key=key)

``index`` is the key's position in the input sequence; it is what restores
input order and what distinguishes duplicate keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fanout.core.errors import FanoutError, FetchFailure, TimeoutExceeded


class ItemState(str, Enum):
    """Lifecycle of a single key within a batch.

    ``CANCELLED`` marks items a fail-fast abort stopped waiting for.
    """

    PENDING = "pending"
    DISPATCHED = "dispatched"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    PERMIT_RELEASED = "permit_released"
    CANCELLED = "cancelled"


class BatchState(str, Enum):
    """Lifecycle of a whole batch. ``ABORTED`` and ``COMPLETED`` are terminal."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    AGGREGATING = "aggregating"
    ABORTED = "aborted"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.ABORTED, BatchState.COMPLETED)


# ── Per-item outcomes ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Success:
    key: Any
    index: int
    value: Any

    @property
    def ok(self) -> bool:
        return True

    @property
    def state(self) -> ItemState:
        return ItemState.SUCCEEDED


@dataclass(frozen=True, slots=True)
class Failure:
    key: Any
    index: int
    error: BaseException

    @property
    def ok(self) -> bool:
        return False

    @property
    def state(self) -> ItemState:
        return ItemState.FAILED

    def as_error(self) -> FanoutError:
        """The failure as a ``FetchFailure`` chaining the original exception."""
        return FetchFailure(self.key, self.error, index=self.index)


@dataclass(frozen=True, slots=True)
class TimedOut:
    key: Any
    index: int
    timeout: float
    elapsed: float | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def state(self) -> ItemState:
        return ItemState.TIMED_OUT

    def as_error(self) -> FanoutError:
        return TimeoutExceeded(self.key, self.timeout, self.elapsed, index=self.index)


FetchOutcome = Success | Failure | TimedOut


# ── Per-batch outcomes ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Completed:
    """Terminal success of a batch.

    Attributes:
        values: One entry per successful fetch, ordered by input position.
        dropped: Failures and timeouts discarded under best-effort, in
            input order. Always empty under fail-fast.
    """

    values: list[Any] = field(default_factory=list)
    dropped: list[Failure | TimedOut] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return True

    @property
    def dropped_count(self) -> int:
        return len(self.dropped)

    def unwrap(self) -> list[Any]:
        return self.values

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": BatchState.COMPLETED.value,
            "count": len(self.values),
            "dropped": self.dropped_count,
        }


@dataclass(frozen=True, slots=True)
class Aborted:
    """Terminal failure of a fail-fast batch, carrying the first failing outcome."""

    first_failure: Failure | TimedOut

    @property
    def ok(self) -> bool:
        return False

    @property
    def key(self) -> Any:
        return self.first_failure.key

    @property
    def error(self) -> FanoutError:
        return self.first_failure.as_error()

    def unwrap(self) -> list[Any]:
        """Raise the failure (``FetchFailure`` or ``TimeoutExceeded``)."""
        raise self.error

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": BatchState.ABORTED.value,
            "key": self.key,
            "error": self.error.to_dict(),
        }


AggregateOutcome = Completed | Aborted


__all__ = [
    "ItemState",
    "BatchState",
    "Success",
    "Failure",
    "TimedOut",
    "FetchOutcome",
    "Completed",
    "Aborted",
    "AggregateOutcome",
]
