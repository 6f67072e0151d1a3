from __future__ import annotations

import pytest

from souq_data.config import Settings
from souq_data.sources.fixtures import FixtureProvider


@pytest.fixture
def settings() -> Settings:
    return Settings(use_mock_data=True, mock_latency_ms=0, request_timeout=2.0, page_size=20)


@pytest.fixture
def provider() -> FixtureProvider:
    """Fixture provider over the default sample data, without simulated latency."""
    return FixtureProvider(latency_ms=0)
