"""Result aggregator — folds per-item outcomes into a batch outcome.

One class, two policies, chosen once per batch by ``Policy.fail_fast``:

    fail-fast     first Failure/TimedOut fed  →  Aborted(that outcome)
                  every item succeeded        →  Completed(values in input order)

    best-effort   Failure/TimedOut            →  collected in ``dropped``
                  all items fed               →  Completed(successes in input order,
                                                           dropped in input order)

Outcomes may be fed in any completion order; each carries its input index,
which is what puts ``values`` back into input order.  Once a terminal outcome
has been returned, further outcomes are ignored.
"""

from __future__ import annotations

from typing import Any

from fanout.execution.outcomes import (
    Aborted,
    AggregateOutcome,
    Completed,
    Failure,
    FetchOutcome,
    Success,
    TimedOut,
)


class ResultAggregator:
    """Accumulates outcomes for a batch of ``total`` items."""

    def __init__(self, total: int, *, fail_fast: bool) -> None:
        if total < 0:
            raise ValueError(f"total must be non-negative, got {total}")
        self._total = total
        self._fail_fast = fail_fast
        self._successes: dict[int, Any] = {}
        self._dropped: dict[int, Failure | TimedOut] = {}
        self._seen: set[int] = set()
        self._verdict: AggregateOutcome | None = None
        if total == 0:
            self._verdict = Completed(values=[], dropped=[])

    # ── Feeding ──────────────────────────────────────────────────────

    def feed(self, outcome: FetchOutcome) -> AggregateOutcome | None:
        """Record ``outcome``.

        Returns:
            The terminal batch outcome once one is reached, else None.

        Raises:
            ValueError: If the outcome's index is out of range or was
                already fed.
        """
        if self._verdict is not None:
            return self._verdict

        index = outcome.index
        if not 0 <= index < self._total:
            raise ValueError(f"Outcome index {index} out of range for batch of {self._total}")
        if index in self._seen:
            raise ValueError(f"Outcome for index {index} fed twice")
        self._seen.add(index)

        match outcome:
            case Success(value=value):
                self._successes[index] = value
            case Failure() | TimedOut():
                if self._fail_fast:
                    self._verdict = Aborted(first_failure=outcome)
                    return self._verdict
                self._dropped[index] = outcome

        if len(self._seen) == self._total:
            self._verdict = self._completed()
        return self._verdict

    def finish(self) -> AggregateOutcome:
        """The terminal outcome. Only valid once every item has been fed."""
        if self._verdict is None:
            raise RuntimeError(
                f"Aggregator finished early: {len(self._seen)} of {self._total} outcomes fed"
            )
        return self._verdict

    def _completed(self) -> Completed:
        return Completed(
            values=[self._successes[i] for i in sorted(self._successes)],
            dropped=[self._dropped[i] for i in sorted(self._dropped)],
        )

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def fail_fast(self) -> bool:
        return self._fail_fast

    @property
    def done(self) -> bool:
        return self._verdict is not None

    @property
    def received(self) -> int:
        return len(self._seen)

    @property
    def total(self) -> int:
        return self._total
