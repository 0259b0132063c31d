"""
Shared pytest fixtures.
"""

from __future__ import annotations

import pytest

from app.config import ExternalHTTPSettings


@pytest.fixture()
def http_settings() -> ExternalHTTPSettings:
    return ExternalHTTPSettings(
        timeout_seconds=1.0,
        max_retries=0,
        backoff_initial_seconds=0.1,
        backoff_multiplier=2.0,
    )
