"""
Fanout - bounded concurrent fan-out fetch.

Fetch one record per key from a downstream source with a concurrency bound,
a per-item deadline, and either all-or-nothing or best-effort aggregation::

    from fanout import Policy, fetch_all

    outcome = await fetch_all(keys, fetch, Policy(max_concurrency=8, per_item_timeout=2.0))
"""

__version__ = "0.1.0"

from fanout.core.errors import (
    ConfigurationError,
    FanoutError,
    FetchFailure,
    TimeoutExceeded,
)
from fanout.execution import (
    Aborted,
    CancellationToken,
    Completed,
    Failure,
    Orchestrator,
    Policy,
    Success,
    TimedOut,
    fetch_all,
    fetch_all_sync,
    load_all,
)

__all__ = [
    "__version__",
    "Aborted",
    "CancellationToken",
    "Completed",
    "ConfigurationError",
    "Failure",
    "FanoutError",
    "FetchFailure",
    "Orchestrator",
    "Policy",
    "Success",
    "TimedOut",
    "TimeoutExceeded",
    "fetch_all",
    "fetch_all_sync",
    "load_all",
]
