"""In-memory record source, optionally loaded from a JSON file.

Useful for tests, demos, and the ``fanout fetch --source`` CLI path.  Per-key
delays let callers simulate a slow downstream::

    source = InMemorySource({"1": "v1", "2": "v2"}, delays={"2": 0.5})
    outcome = await fetch_all(["1", "2"], source.fetch, policy)
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fanout.core.errors import RecordNotFound, SourceError
from fanout.execution.cancellation import CancellationToken


class InMemorySource:
    """Dict-backed :class:`~fanout.sources.base.RecordSource`."""

    def __init__(
        self,
        records: Mapping[Any, Any],
        *,
        delays: Mapping[Any, float] | None = None,
        name: str = "memory",
    ) -> None:
        self._records = dict(records)
        self._delays = dict(delays or {})
        self.name = name
        self.calls = 0

    @classmethod
    def from_json_file(cls, path: str | Path, *, key_field: str = "id") -> InMemorySource:
        """Load records from a JSON file.

        The file holds either an object mapping key → record, or a list of
        objects each carrying ``key_field``. Keys are kept as strings.

        Raises:
            SourceError: If the file is missing, not JSON, or malformed.
        """
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise SourceError(f"Record file not found: {path}", cause=exc) from exc
        except json.JSONDecodeError as exc:
            raise SourceError(f"Record file is not valid JSON: {path}", cause=exc) from exc

        if isinstance(data, dict):
            records = {str(k): v for k, v in data.items()}
        elif isinstance(data, list):
            records = {}
            for position, row in enumerate(data):
                if not isinstance(row, dict) or key_field not in row:
                    raise SourceError(
                        f"Record #{position} in {path} has no {key_field!r} field",
                        context={"path": str(path), "position": position},
                    )
                records[str(row[key_field])] = row
        else:
            raise SourceError(f"Record file must hold an object or a list: {path}")

        return cls(records, name=path.name)

    def list_keys(self) -> list[Any]:
        return list(self._records)

    async def fetch(self, key: Any, token: CancellationToken) -> Any:
        self.calls += 1
        delay = self._delays.get(key)
        if delay:
            await asyncio.sleep(delay)
        token.raise_if_cancelled()
        try:
            return self._records[key]
        except KeyError:
            raise RecordNotFound(key, source=self.name) from None

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"InMemorySource(name={self.name!r}, records={len(self._records)})"
