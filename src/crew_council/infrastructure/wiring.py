"""Build a ``CrewEngine`` from config with the concrete adapters."""

from __future__ import annotations

from typing import Optional

from crew_council.application.engine import CrewEngine
from crew_council.config import CrewConfig, load_config
from crew_council.infrastructure.completion import build_gateway
from crew_council.infrastructure.registry_store import JsonRegistryStore


def build_engine(config: Optional[CrewConfig] = None) -> CrewEngine:
    config = config or load_config()
    return CrewEngine(
        config,
        store=JsonRegistryStore(config.registry_path),
        gateway=build_gateway(config),
    )
