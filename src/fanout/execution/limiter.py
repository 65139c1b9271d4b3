"""Concurrency limiter — a bounded permit pool for in-flight fetches.

``ConcurrencyLimiter`` wraps an ``asyncio.Semaphore`` and hands out explicit
:class:`Permit` objects so that misuse (releasing twice, releasing another
limiter's permit) is caught as a :class:`~fanout.core.errors.PermitError`
instead of silently inflating the pool.

The only guarantee is the upper bound: at most ``max_concurrency`` permits
are outstanding at once.  Grant order is whatever the semaphore does; no
fairness is promised.

Example::

    limiter = ConcurrencyLimiter(4)
    async with limiter.permit():
        await fetch(key)

    permit = await limiter.acquire()
    try:
        ...
    finally:
        limiter.release(permit)
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from fanout.core.errors import ConfigurationError, PermitError


@dataclass(frozen=True, slots=True)
class Permit:
    """A single slot in a limiter's pool. Opaque to callers."""

    serial: int
    owner: ConcurrencyLimiter = field(repr=False, compare=False)


class ConcurrencyLimiter:
    """Bounds the number of simultaneously held permits.

    Parameters
    ----------
    max_concurrency : int
        Size of the permit pool (>= 1).
    """

    def __init__(self, max_concurrency: int) -> None:
        if isinstance(max_concurrency, bool) or not isinstance(max_concurrency, int) or max_concurrency < 1:
            raise ConfigurationError(
                "max_concurrency",
                max_concurrency,
                f"max_concurrency must be an integer >= 1, got {max_concurrency!r}",
            )
        self._max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._serials = itertools.count(1)
        self._outstanding: set[int] = set()
        self._peak = 0

    # ── Acquire / release ────────────────────────────────────────────

    async def acquire(self) -> Permit:
        """Suspend until a permit is free, then take it."""
        await self._semaphore.acquire()
        permit = Permit(serial=next(self._serials), owner=self)
        self._outstanding.add(permit.serial)
        self._peak = max(self._peak, len(self._outstanding))
        return permit

    def release(self, permit: Permit) -> None:
        """Return ``permit`` to the pool.

        Raises:
            PermitError: If the permit belongs to another limiter or was
                already released.
        """
        if permit.owner is not self:
            raise PermitError(f"Permit #{permit.serial} was not issued by this limiter")
        if permit.serial not in self._outstanding:
            raise PermitError(f"Permit #{permit.serial} released twice")
        self._outstanding.discard(permit.serial)
        self._semaphore.release()

    @asynccontextmanager
    async def permit(self) -> AsyncIterator[Permit]:
        """Hold a permit for the duration of the block, on every exit path."""
        permit = await self.acquire()
        try:
            yield permit
        finally:
            self.release(permit)

    # ── Inspection ───────────────────────────────────────────────────

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def in_flight(self) -> int:
        """Permits currently held."""
        return len(self._outstanding)

    @property
    def available(self) -> int:
        return self._max_concurrency - len(self._outstanding)

    @property
    def peak(self) -> int:
        """Highest number of permits ever held at once."""
        return self._peak

    def __repr__(self) -> str:
        return f"ConcurrencyLimiter(max_concurrency={self._max_concurrency}, in_flight={self.in_flight})"
