"""Tests for Policy — validation happens at construction, before any dispatch."""

from __future__ import annotations

import math
from datetime import timedelta

import pytest

from fanout.core.errors import ConfigurationError
from fanout.core.settings import FanoutSettings
from fanout.execution.policy import Policy


class TestPolicyValidation:
    def test_valid(self):
        p = Policy(max_concurrency=2, per_item_timeout=0.1, fail_fast=True)
        assert p.max_concurrency == 2
        assert p.per_item_timeout == 0.1
        assert p.fail_fast is True
        assert p.cancel_grace == 0.05

    @pytest.mark.parametrize("bad", [0, -1])
    def test_max_concurrency_below_one(self, bad):
        with pytest.raises(ConfigurationError) as exc_info:
            Policy(max_concurrency=bad, per_item_timeout=1.0)
        assert exc_info.value.field == "max_concurrency"

    @pytest.mark.parametrize("bad", [1.5, "4", True, None])
    def test_max_concurrency_not_int(self, bad):
        with pytest.raises(ConfigurationError):
            Policy(max_concurrency=bad, per_item_timeout=1.0)

    @pytest.mark.parametrize("bad", [0, -0.5, math.inf, math.nan, timedelta(0)])
    def test_timeout_not_positive_finite(self, bad):
        with pytest.raises(ConfigurationError) as exc_info:
            Policy(max_concurrency=1, per_item_timeout=bad)
        assert exc_info.value.field == "per_item_timeout"

    @pytest.mark.parametrize("bad", ["1s", None, False])
    def test_timeout_wrong_type(self, bad):
        with pytest.raises(ConfigurationError):
            Policy(max_concurrency=1, per_item_timeout=bad)

    def test_timedelta_normalised_to_seconds(self):
        p = Policy(max_concurrency=1, per_item_timeout=timedelta(milliseconds=250))
        assert p.per_item_timeout == 0.25

    def test_int_timeout_normalised_to_float(self):
        assert isinstance(Policy(1, 3).per_item_timeout, float)

    def test_zero_grace_allowed(self):
        assert Policy(1, 1.0, cancel_grace=0).cancel_grace == 0.0

    def test_negative_grace_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Policy(1, 1.0, cancel_grace=-0.1)
        assert exc_info.value.field == "cancel_grace"

    def test_frozen(self):
        p = Policy(1, 1.0)
        with pytest.raises(AttributeError):
            p.max_concurrency = 5


class TestPolicyConstructors:
    def test_fail_fast_policy(self):
        p = Policy.fail_fast_policy(3, 0.5)
        assert p.fail_fast is True
        assert p.mode == "fail_fast"

    def test_best_effort(self):
        p = Policy.best_effort(3, 0.5, cancel_grace=0.0)
        assert p.fail_fast is False
        assert p.mode == "best_effort"
        assert p.cancel_grace == 0.0

    def test_from_settings(self):
        settings = FanoutSettings(
            _env_file=None,
            max_concurrency=4,
            per_item_timeout_seconds=0.2,
            fail_fast=True,
            cancel_grace_seconds=0.01,
        )
        p = Policy.from_settings(settings)
        assert p == Policy(4, 0.2, fail_fast=True, cancel_grace=0.01)

    def test_to_dict(self):
        assert Policy(2, 0.1, fail_fast=True).to_dict() == {
            "max_concurrency": 2,
            "per_item_timeout": 0.1,
            "mode": "fail_fast",
            "cancel_grace": 0.05,
        }
