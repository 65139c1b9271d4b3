"""Tests for fanout.core.settings — env loading, legacy aliases and caching."""

from __future__ import annotations

import pytest

from fanout.core.errors import ConfigurationError
from fanout.core.settings import FanoutSettings, get_settings, reset_settings
from fanout.execution.policy import Policy


class TestFanoutSettings:
    def test_defaults(self):
        s = FanoutSettings(_env_file=None)
        assert s.max_concurrency == 20
        assert s.per_item_timeout_seconds == 5.0
        assert s.fail_fast is False
        assert s.cancel_grace_seconds == 0.05
        assert s.log_level == "INFO"
        assert s.log_format == "auto"
        assert s.database_url is None

    def test_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("FANOUT_MAX_CONCURRENCY", "4")
        monkeypatch.setenv("FANOUT_PER_ITEM_TIMEOUT_SECONDS", "0.25")
        monkeypatch.setenv("FANOUT_FAIL_FAST", "true")
        monkeypatch.setenv("FANOUT_CANCEL_GRACE_SECONDS", "0")
        s = FanoutSettings(_env_file=None)
        assert s.max_concurrency == 4
        assert s.per_item_timeout_seconds == 0.25
        assert s.fail_fast is True
        assert s.cancel_grace_seconds == 0.0

    def test_legacy_aliases(self, monkeypatch):
        monkeypatch.setenv("CONCURRENCY_LIMIT", "7")
        monkeypatch.setenv("DB_QUERY_TIMEOUT_SECS", "3")
        monkeypatch.setenv("FAIL_FAST", "1")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///legacy.db")
        s = FanoutSettings(_env_file=None)
        assert s.max_concurrency == 7
        assert s.per_item_timeout_seconds == 3.0
        assert s.fail_fast is True
        assert s.database_url == "sqlite:///legacy.db"

    def test_prefixed_wins_over_legacy(self, monkeypatch):
        monkeypatch.setenv("FANOUT_MAX_CONCURRENCY", "2")
        monkeypatch.setenv("CONCURRENCY_LIMIT", "9")
        assert FanoutSettings(_env_file=None).max_concurrency == 2

    def test_dotenv_file(self, tmp_path):
        env = tmp_path / "custom.env"
        env.write_text("FANOUT_MAX_CONCURRENCY=3\nFANOUT_LOG_FORMAT=json\n")
        s = FanoutSettings(_env_file=str(env))
        assert s.max_concurrency == 3
        assert s.json_logs is True

    @pytest.mark.parametrize(
        ("log_format", "expected"),
        [("auto", None), ("json", True), ("console", False)],
    )
    def test_json_logs(self, log_format, expected):
        assert FanoutSettings(_env_file=None, log_format=log_format).json_logs is expected

    def test_range_is_not_checked_here(self, monkeypatch):
        monkeypatch.setenv("FANOUT_MAX_CONCURRENCY", "0")
        s = FanoutSettings(_env_file=None)
        assert s.max_concurrency == 0
        with pytest.raises(ConfigurationError):
            Policy.from_settings(s)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_reset(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("FANOUT_MAX_CONCURRENCY", "5")
        assert get_settings().max_concurrency == first.max_concurrency
        reset_settings()
        assert get_settings().max_concurrency == 5

    def test_force_reload(self, monkeypatch):
        get_settings()
        monkeypatch.setenv("FANOUT_FAIL_FAST", "true")
        assert get_settings(_force_reload=True).fail_fast is True

    def test_unparseable_value_is_configuration_error(self, monkeypatch):
        monkeypatch.setenv("FANOUT_MAX_CONCURRENCY", "lots")
        with pytest.raises(ConfigurationError) as exc_info:
            get_settings()
        assert "max_concurrency" in exc_info.value.field.lower()
        assert exc_info.value.value == "lots"
