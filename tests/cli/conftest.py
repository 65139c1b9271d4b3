"""CLI test fixtures: record files and a no-op logging setup."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def _no_logging_setup():
    """Keep the root callback from rebinding structlog to the runner's streams."""
    with patch("fanout.cli.app.configure_logging") as configure:
        yield configure


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "users.json"
    path.write_text(
        json.dumps(
            [
                {"id": 1, "name": "Ada"},
                {"id": 2, "name": "Bob"},
                {"id": 3, "name": "Cy"},
            ]
        )
    )
    return path
