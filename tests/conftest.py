"""
Shared pytest fixtures for fanout tests.

This module provides:
- Settings cache isolation (no FANOUT_* leakage between tests)
- Quiet, uncached structlog configuration
- Instrumented fetch helpers for concurrency assertions
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import Any

import pytest
import structlog

from fanout.core.settings import reset_settings
from fanout.execution.cancellation import CancellationToken

_ENV_VARS = (
    "FANOUT_MAX_CONCURRENCY",
    "FANOUT_PER_ITEM_TIMEOUT_SECONDS",
    "FANOUT_FAIL_FAST",
    "FANOUT_CANCEL_GRACE_SECONDS",
    "FANOUT_LOG_LEVEL",
    "FANOUT_LOG_FORMAT",
    "FANOUT_DATABASE_URL",
    "CONCURRENCY_LIMIT",
    "DB_QUERY_TIMEOUT_SECS",
    "FAIL_FAST",
    "DATABASE_URL",
)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path) -> Iterator[None]:
    """Run every test without ambient FANOUT_* variables or a stray ``.env``."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def _quiet_logging() -> Iterator[None]:
    """Drop log events below CRITICAL and never cache bound loggers."""
    structlog.configure(
        processors=[structlog.processors.KeyValueRenderer()],
        wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


# ── Fetch helpers ────────────────────────────────────────────────────────


class Recorder:
    """Async fetch that tracks how many calls are running at once."""

    def __init__(self, delays: dict[Any, float] | None = None, fail: set[Any] | None = None):
        self.delays = delays or {}
        self.fail = fail or set()
        self.calls: list[Any] = []
        self.running = 0
        self.peak = 0
        self.cancelled: list[Any] = []

    async def __call__(self, key: Any, token: CancellationToken) -> Any:
        self.calls.append(key)
        self.running += 1
        self.peak = max(self.peak, self.running)
        try:
            await asyncio.sleep(self.delays.get(key, 0.01))
            if key in self.fail:
                raise ValueError(f"boom: {key}")
            return f"v{key}"
        except asyncio.CancelledError:
            self.cancelled.append(key)
            raise
        finally:
            self.running -= 1


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def make_recorder() -> type[Recorder]:
    """The Recorder class, for tests that need custom delays or failures."""
    return Recorder
