"""Tests for SqlTableSource against a file-backed SQLite database."""

from __future__ import annotations

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, insert

from fanout.core.errors import ConfigurationError, FetchCancelled, RecordNotFound
from fanout.execution.cancellation import CancellationToken
from fanout.execution.orchestrator import fetch_all, load_all
from fanout.execution.outcomes import Completed
from fanout.execution.policy import Policy
from fanout.sources.base import RecordSource
from fanout.sources.sql import SqlTableSource, create_source_engine


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'users.db'}"
    engine = create_source_engine(url)
    metadata = MetaData()
    users = Table(
        "users",
        metadata,
        Column("user_id", Integer, primary_key=True),
        Column("name", String(50)),
    )
    metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(
            insert(users),
            [
                {"user_id": 1, "name": "Ada"},
                {"user_id": 2, "name": "Bob"},
                {"user_id": 3, "name": "Cy"},
            ],
        )
    engine.dispose()
    return url


@pytest.fixture
def users(db_url):
    source = SqlTableSource(db_url, "users", key_column="user_id")
    yield source
    source.engine.dispose()


class TestSqlTableSource:
    def test_is_record_source(self, users):
        assert isinstance(users, RecordSource)
        assert repr(users) == "SqlTableSource(table='users', key_column='user_id')"

    def test_list_keys(self, users):
        assert users.list_keys() == [1, 2, 3]

    def test_fetch_row(self, users):
        assert users.fetch(2, CancellationToken()) == {"user_id": 2, "name": "Bob"}

    def test_string_key_coerced(self, users):
        assert users.fetch("3", CancellationToken())["name"] == "Cy"

    def test_uncoercible_key(self, users):
        with pytest.raises(RecordNotFound):
            users.fetch("abc", CancellationToken())

    def test_missing_row(self, users):
        with pytest.raises(RecordNotFound, match="in users"):
            users.fetch(99, CancellationToken())

    def test_cancelled_before_query(self, users):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(FetchCancelled):
            users.fetch(1, token)

    def test_missing_table(self, db_url):
        with pytest.raises(ConfigurationError) as exc_info:
            SqlTableSource(db_url, "nope", key_column="id")
        assert exc_info.value.field == "table"

    def test_missing_key_column(self, db_url):
        with pytest.raises(ConfigurationError) as exc_info:
            SqlTableSource(db_url, "users", key_column="id")
        assert exc_info.value.field == "key_column"


class TestWithOrchestrator:
    @pytest.mark.asyncio
    async def test_fetch_all_runs_sync_fetch_in_threads(self, users):
        outcome = await fetch_all(["1", "99", "3"], users.fetch, Policy(2, 2.0))
        assert isinstance(outcome, Completed)
        assert [row["name"] for row in outcome.values] == ["Ada", "Cy"]
        assert [d.key for d in outcome.dropped] == ["99"]

    @pytest.mark.asyncio
    async def test_load_all(self, users):
        outcome = await load_all(users, Policy(3, 2.0, fail_fast=True))
        assert [row["user_id"] for row in outcome.values] == [1, 2, 3]
