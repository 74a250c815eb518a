"""Pytest fixtures for crew-council tests."""
from __future__ import annotations

from typing import List

import pytest

from crew_council.domain import Agent
from helpers import make_agents


@pytest.fixture(autouse=True)
def _reset_config_cache():
    """Clear the load_config cache, the env snapshot and telemetry state around every test."""
    from crew_council.config import loader as config_loader
    from crew_council.infrastructure import telemetry

    config_loader.load_config.cache_clear()
    config_loader._env = None
    telemetry.reset_for_testing()
    yield
    config_loader.load_config.cache_clear()
    config_loader._env = None
    telemetry.reset_for_testing()


@pytest.fixture
def agents() -> List[Agent]:
    return make_agents()
