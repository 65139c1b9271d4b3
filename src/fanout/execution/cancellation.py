"""Cooperative cancellation signal handed to every fetch.

The timeout guard cannot forcibly stop a fetch: a coroutine may swallow
``CancelledError`` and a plain function running in a worker thread cannot be
interrupted at all.  Instead each fetch receives a :class:`CancellationToken`
and is expected to check it at convenient points::

    def fetch_row(key, token):
        token.raise_if_cancelled()
        row = conn.execute(query, key).one()
        token.raise_if_cancelled()
        return row

The token is thread-safe, so sync fetches running on the timeout guard's
``ThreadPoolExecutor`` observe a cancellation issued from the event loop.
"""

from __future__ import annotations

import threading

from fanout.core.errors import FetchCancelled


class CancellationToken:
    """One-shot, thread-safe cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation. Only the first reason is kept."""
        with self._lock:
            if not self._event.is_set():
                self._reason = reason
                self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise :class:`FetchCancelled` if cancellation was signalled."""
        if self._event.is_set():
            raise FetchCancelled(self._reason or "cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        """Block the calling thread until cancelled or ``timeout`` elapses.

        Returns True if the token was cancelled. Never call this on the
        event loop thread.
        """
        return self._event.wait(timeout)

    def __repr__(self) -> str:
        state = f"cancelled: {self._reason}" if self.cancelled else "active"
        return f"<CancellationToken {state}>"
