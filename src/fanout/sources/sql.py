"""SQLAlchemy-backed record source: one row per key from a single table.

The table is reflected once at construction; ``fetch`` issues
``SELECT * FROM <table> WHERE <key_column> = :key`` on a pooled connection
and returns the row as a plain dict.  ``fetch`` is synchronous, so the
orchestrator runs it in a worker thread; size the pool to at least
``policy.max_concurrency`` connections.

Example::

    engine = create_source_engine("sqlite:///users.db")
    users = SqlTableSource(engine, "users", key_column="user_id")
    outcome = await fetch_all([1, 2, 3], users.fetch, policy)
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import MetaData, Table, create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, OperationalError, SQLAlchemyError

from fanout.core.errors import ConfigurationError, RecordNotFound, SourceError
from fanout.execution.cancellation import CancellationToken


def create_source_engine(
    url: str,
    *,
    echo: bool = False,
    pool_size: int | None = None,
    max_overflow: int | None = None,
    pool_timeout: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine suitable for concurrent fetches.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, ``mssql+pyodbc://…``).
    pool_size, max_overflow, pool_timeout:
        Connection pool parameters (ignored for SQLite).
    """
    if url.startswith("sqlite"):
        # fetches run on worker threads
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        return create_engine(url, echo=echo, **kwargs)

    pool_kwargs: dict[str, Any] = {}
    if pool_size is not None:
        pool_kwargs["pool_size"] = pool_size
    if max_overflow is not None:
        pool_kwargs["max_overflow"] = max_overflow
    if pool_timeout is not None:
        pool_kwargs["pool_timeout"] = pool_timeout

    return create_engine(url, echo=echo, **pool_kwargs, **kwargs)


class SqlTableSource:
    """:class:`~fanout.sources.base.RecordSource` over one database table."""

    def __init__(self, engine: Engine | str, table: str, *, key_column: str) -> None:
        self._engine = create_source_engine(engine) if isinstance(engine, str) else engine
        self.name = table

        try:
            self._table = Table(table, MetaData(), autoload_with=self._engine)
        except NoSuchTableError as exc:
            raise ConfigurationError("table", table, f"Table {table!r} does not exist") from exc
        except SQLAlchemyError as exc:
            raise SourceError(f"Could not reflect table {table!r}", cause=exc) from exc

        if key_column not in self._table.c:
            raise ConfigurationError(
                "key_column",
                key_column,
                f"Table {table!r} has no column {key_column!r}",
            )
        self._key = self._table.c[key_column]

        try:
            self._key_type: type | None = self._key.type.python_type
        except NotImplementedError:
            self._key_type = None

    @property
    def engine(self) -> Engine:
        return self._engine

    def _coerce(self, key: Any) -> Any:
        """Convert string keys (CLI, URLs) to the key column's Python type."""
        if isinstance(key, str) and self._key_type is int:
            try:
                return int(key)
            except ValueError:
                raise RecordNotFound(key, source=self.name) from None
        return key

    def list_keys(self) -> list[Any]:
        query = select(self._key).order_by(self._key)
        try:
            with self._engine.connect() as conn:
                return list(conn.execute(query).scalars())
        except SQLAlchemyError as exc:
            raise SourceError(
                f"Could not list keys of {self.name!r}",
                retryable=isinstance(exc, OperationalError),
                cause=exc,
            ) from exc

    def fetch(self, key: Any, token: CancellationToken) -> dict[str, Any]:
        token.raise_if_cancelled()
        query = select(self._table).where(self._key == self._coerce(key))
        try:
            with self._engine.connect() as conn:
                row = conn.execute(query).mappings().first()
        except SQLAlchemyError as exc:
            raise SourceError(
                f"Query on {self.name!r} failed for key {key!r}",
                retryable=isinstance(exc, OperationalError),
                cause=exc,
            ) from exc
        token.raise_if_cancelled()

        if row is None:
            raise RecordNotFound(key, source=self.name)
        return dict(row)

    def __repr__(self) -> str:
        return f"SqlTableSource(table={self.name!r}, key_column={self._key.name!r})"
