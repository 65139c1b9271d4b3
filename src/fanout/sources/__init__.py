"""Record sources — ready-made fetch capabilities.

    base.py      RecordSource protocol (list_keys + fetch)
    memory.py    InMemorySource (dict / JSON file, optional delays)
    sql.py       SqlTableSource (SQLAlchemy, one row per key)
"""

from fanout.sources.base import RecordSource
from fanout.sources.memory import InMemorySource
from fanout.sources.sql import SqlTableSource, create_source_engine

__all__ = [
    "RecordSource",
    "InMemorySource",
    "SqlTableSource",
    "create_source_engine",
]
