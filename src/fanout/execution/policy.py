"""Batch policy — the single configuration surface of a fan-out fetch.

A :class:`Policy` is built once per :func:`~fanout.execution.orchestrator.fetch_all`
call and never changes while the batch runs.  Invalid values are rejected at
construction with :class:`~fanout.core.errors.ConfigurationError`, so a bad
policy can never dispatch a fetch.

Example::

    policy = Policy(max_concurrency=8, per_item_timeout=2.5, fail_fast=True)
    policy = Policy.best_effort(max_concurrency=8, per_item_timeout=timedelta(seconds=2))
    policy = Policy.from_settings(get_settings())
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from fanout.core.errors import ConfigurationError

if TYPE_CHECKING:
    from fanout.core.settings import FanoutSettings


def _seconds(field: str, value: Any) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ConfigurationError(field, value, f"{field} must be a number of seconds or a timedelta, got {value!r}")
    return float(value)


@dataclass(frozen=True, slots=True)
class Policy:
    """Concurrency bound, per-item deadline and aggregation mode of a batch.

    Attributes:
        max_concurrency: Maximum simultaneously in-flight fetches (>= 1).
        per_item_timeout: Deadline for each individual fetch, in seconds.
            A ``timedelta`` is accepted and normalised to seconds.
        fail_fast: ``True`` aborts on the first failure or timeout;
            ``False`` drops failures and keeps every success.
        cancel_grace: Seconds a timed-out fetch is given to honour
            cancellation before its permit is released regardless.
    """

    max_concurrency: int
    per_item_timeout: float
    fail_fast: bool = False
    cancel_grace: float = 0.05

    def __post_init__(self) -> None:
        if isinstance(self.max_concurrency, bool) or not isinstance(self.max_concurrency, int):
            raise ConfigurationError(
                "max_concurrency",
                self.max_concurrency,
                f"max_concurrency must be an integer, got {self.max_concurrency!r}",
            )
        if self.max_concurrency < 1:
            raise ConfigurationError(
                "max_concurrency",
                self.max_concurrency,
                f"max_concurrency must be >= 1, got {self.max_concurrency}",
            )

        timeout = _seconds("per_item_timeout", self.per_item_timeout)
        if not math.isfinite(timeout) or timeout <= 0:
            raise ConfigurationError(
                "per_item_timeout",
                self.per_item_timeout,
                f"per_item_timeout must be a finite duration > 0, got {self.per_item_timeout!r}",
            )
        object.__setattr__(self, "per_item_timeout", timeout)

        grace = _seconds("cancel_grace", self.cancel_grace)
        if not math.isfinite(grace) or grace < 0:
            raise ConfigurationError(
                "cancel_grace",
                self.cancel_grace,
                f"cancel_grace must be a finite duration >= 0, got {self.cancel_grace!r}",
            )
        object.__setattr__(self, "cancel_grace", grace)

        object.__setattr__(self, "fail_fast", bool(self.fail_fast))

    # ── Constructors ─────────────────────────────────────────────────

    @classmethod
    def fail_fast_policy(
        cls, max_concurrency: int, per_item_timeout: float | timedelta, **kwargs: Any
    ) -> Policy:
        """All-or-nothing: abort on the first failure or timeout."""
        return cls(max_concurrency, per_item_timeout, fail_fast=True, **kwargs)

    @classmethod
    def best_effort(
        cls, max_concurrency: int, per_item_timeout: float | timedelta, **kwargs: Any
    ) -> Policy:
        """Filtered: drop failures and timeouts, keep every success."""
        return cls(max_concurrency, per_item_timeout, fail_fast=False, **kwargs)

    @classmethod
    def from_settings(cls, settings: FanoutSettings) -> Policy:
        """Build a policy from process settings."""
        return cls(
            max_concurrency=settings.max_concurrency,
            per_item_timeout=settings.per_item_timeout_seconds,
            fail_fast=settings.fail_fast,
            cancel_grace=settings.cancel_grace_seconds,
        )

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def mode(self) -> str:
        return "fail_fast" if self.fail_fast else "best_effort"

    def to_dict(self) -> dict[str, Any]:
        return {
            "max_concurrency": self.max_concurrency,
            "per_item_timeout": self.per_item_timeout,
            "mode": self.mode,
            "cancel_grace": self.cancel_grace,
        }
