"""Process-level configuration for fanout.

``FanoutSettings`` is the configuration surface a batch policy is usually
sourced from.  Values come from ``FANOUT_*`` environment variables or a
``.env`` file; the legacy unprefixed names
(``CONCURRENCY_LIMIT``, ``DB_QUERY_TIMEOUT_SECS``, ``FAIL_FAST``,
``DATABASE_URL``) are accepted as aliases.

Range checks (``max_concurrency >= 1``, ``per_item_timeout > 0``) are not
done here; they belong to :class:`~fanout.execution.policy.Policy`, which
raises :class:`~fanout.core.errors.ConfigurationError` before any work is
dispatched.

Examples:
    >>> from fanout.core.settings import get_settings
    >>> settings = get_settings()
    >>> settings.max_concurrency
    20
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from fanout.core.errors import ConfigurationError


class FanoutSettings(BaseSettings):
    """Fanout configuration, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="FANOUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Batch policy ─────────────────────────────────────────────
    max_concurrency: int = Field(
        default=20,
        validation_alias=AliasChoices("FANOUT_MAX_CONCURRENCY", "CONCURRENCY_LIMIT"),
        description="Maximum simultaneously in-flight fetches per batch",
    )
    per_item_timeout_seconds: float = Field(
        default=5.0,
        validation_alias=AliasChoices("FANOUT_PER_ITEM_TIMEOUT_SECONDS", "DB_QUERY_TIMEOUT_SECS"),
        description="Deadline applied to each individual fetch",
    )
    fail_fast: bool = Field(
        default=False,
        validation_alias=AliasChoices("FANOUT_FAIL_FAST", "FAIL_FAST"),
        description="Abort the batch on the first failure instead of dropping failures",
    )
    cancel_grace_seconds: float = Field(
        default=0.05,
        description="How long a timed-out fetch may take to honour cancellation",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["auto", "json", "console"] = "auto"

    # ── Record source ────────────────────────────────────────────
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("FANOUT_DATABASE_URL", "DATABASE_URL"),
    )

    @property
    def json_logs(self) -> bool | None:
        """``configure_logging`` argument derived from ``log_format``."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


_settings: FanoutSettings | None = None


def get_settings(*, _force_reload: bool = False) -> FanoutSettings:
    """Load, validate, and cache the process settings.

    Raises:
        ConfigurationError: If an environment value cannot be parsed.
    """
    global _settings
    if _settings is None or _force_reload:
        try:
            _settings = FanoutSettings()
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or "settings"
            raise ConfigurationError(field, first.get("input"), first.get("msg")) from exc
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (tests, config reload)."""
    global _settings
    _settings = None


__all__ = ["FanoutSettings", "get_settings", "reset_settings"]
