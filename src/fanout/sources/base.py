"""Record source protocol.

A record source is the fetch capability plus a way to enumerate its keys.
Anything with this shape can be handed to
:func:`~fanout.execution.orchestrator.load_all`; ``source.fetch`` alone can be
handed to :func:`~fanout.execution.orchestrator.fetch_all`.

Both methods may be sync or async.  Sync ``fetch`` implementations run in a
worker thread and should poll ``token.raise_if_cancelled()``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from fanout.execution.cancellation import CancellationToken


@runtime_checkable
class RecordSource(Protocol):
    """Keyed record store the orchestrator can fan out over."""

    name: str

    def list_keys(self) -> Any:
        """Every key the source holds, in a stable order."""
        ...

    def fetch(self, key: Any, token: CancellationToken) -> Any:
        """The record for ``key``; raises ``RecordNotFound`` if absent."""
        ...
