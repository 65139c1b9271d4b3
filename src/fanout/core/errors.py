"""
Structured error types for fanout.

Every error raised by the orchestrator, its components, or the bundled record
sources derives from :class:`FanoutError`, which carries a category, a retry
hint, free-form context, and the chained cause.

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        FanoutError                            │
        │            (category, retryable, context, cause)              │
        ├──────────────────────────────────────────────────────────────┤
        │                                                               │
        │  ConfigurationError   FetchFailure        TimeoutExceeded     │
        │  (CONFIG)             (SOURCE, key)       (TIMEOUT, key)      │
        │                                                               │
        │  SourceError          FetchCancelled      PermitError         │
        │  (SOURCE)             (CANCELLED)         (INTERNAL)          │
        │       │                                                       │
        │  RecordNotFound                                               │
        └──────────────────────────────────────────────────────────────┘

Propagation:
    - ``ConfigurationError`` is raised synchronously before any fetch is
      dispatched.
    - ``FetchFailure`` / ``TimeoutExceeded`` are never raised by
      :func:`~fanout.execution.orchestrator.fetch_all` itself; they are carried
      by an ``Aborted`` outcome and raised from ``Aborted.unwrap()``.
    - ``PermitError`` signals a programming error (double release, foreign
      permit) and is not meant to be recovered from.

Examples:
    >>> err = FetchFailure(key=7, cause=ValueError("boom"))
    >>> err.key
    7
    >>> err.to_dict()["category"]
    'SOURCE'
"""

from __future__ import annotations

import builtins
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used for routing, metrics and CLI messages."""

    CONFIG = "CONFIG"
    SOURCE = "SOURCE"
    TIMEOUT = "TIMEOUT"
    CANCELLED = "CANCELLED"
    INTERNAL = "INTERNAL"


class FanoutError(Exception):
    """Root of the fanout error hierarchy.

    Attributes:
        message: Human-readable description (also ``str(err)``).
        category: :class:`ErrorCategory`; subclasses fix a default.
        retryable: Whether repeating the same fetch may succeed.
        context: Structured fields for logs (key, index, field, ...).
        cause: The underlying exception, also set as ``__cause__``.
    """

    default_category = ErrorCategory.INTERNAL
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context: dict[str, Any] = {} if context is None else dict(context)
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **fields: Any) -> FanoutError:
        """Merge ``fields`` into :attr:`context` and return ``self``."""
        self.context.update(fields)
        return self

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly form, as embedded in ``Aborted.to_dict()``."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.context:
            data["context"] = {k: v for k, v in self.context.items() if v is not None}
        if self.cause is not None:
            data["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return data

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.category.value}: {self.message!r}>"


# ── Configuration ────────────────────────────────────────────────────────


class ConfigurationError(FanoutError):
    """Invalid batch policy or settings. Raised before anything is fetched."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, field: str, value: Any, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(
            message or f"Invalid configuration for {field}: {value!r}",
            context={"field": field},
        )


# ── Per-item failures ────────────────────────────────────────────────────


class FetchFailure(FanoutError):
    """The fetch capability reported an error for ``key``."""

    default_category = ErrorCategory.SOURCE

    def __init__(self, key: Any, cause: BaseException, *, index: int | None = None):
        self.key = key
        self.index = index
        retryable = cause.retryable if isinstance(cause, FanoutError) else None
        super().__init__(
            f"Fetch failed for key {key!r}: {cause}",
            retryable=retryable,
            context={"key": key, "index": index},
            cause=cause,
        )


class TimeoutExceeded(FanoutError, builtins.TimeoutError):
    """The per-item deadline elapsed before the fetch settled.

    Also a builtin ``TimeoutError`` so broad ``except TimeoutError`` handlers
    keep working.
    """

    default_category = ErrorCategory.TIMEOUT
    default_retryable = True

    def __init__(
        self,
        key: Any,
        timeout: float,
        elapsed: float | None = None,
        *,
        index: int | None = None,
    ):
        self.key = key
        self.index = index
        self.timeout = timeout
        self.elapsed = elapsed

        ran = "" if elapsed is None else f" (ran for {elapsed:.2f}s)"
        super().__init__(
            f"Fetch for key {key!r} timed out after {timeout}s{ran}",
            context={"key": key, "index": index, "timeout": timeout},
        )


class FetchCancelled(FanoutError):
    """Raised inside a fetch that observed its cancellation token."""

    default_category = ErrorCategory.CANCELLED

    def __init__(self, reason: str = "cancelled"):
        self.reason = reason
        super().__init__(f"Fetch cancelled: {reason}", context={"reason": reason})


# ── Record sources ───────────────────────────────────────────────────────


class SourceError(FanoutError):
    """A record source could not produce a record (bad file, driver error).

    Not retryable unless the source says otherwise, e.g. for a dropped
    connection.
    """

    default_category = ErrorCategory.SOURCE


class RecordNotFound(SourceError):
    """No record exists for the requested key."""

    def __init__(self, key: Any, source: str | None = None):
        self.key = key
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"No record for key {key!r}{where}", context={"key": key, "source": source})


# ── Internal ─────────────────────────────────────────────────────────────


class PermitError(FanoutError):
    """A concurrency permit was released by someone who did not hold it."""

    default_category = ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "FanoutError",
    "ConfigurationError",
    "FetchFailure",
    "TimeoutExceeded",
    "FetchCancelled",
    "SourceError",
    "RecordNotFound",
    "PermitError",
]
