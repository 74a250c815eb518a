"""Load config from CREW_CONFIG_PATH or return default.

``load_config()`` is memoised with ``functools.lru_cache`` so the file is read
and parsed at most once per process.  Call ``load_config.cache_clear()`` to
force a re-read (useful in tests and when ``CREW_CONFIG_PATH`` changes).
"""

from __future__ import annotations

import functools
import json
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .schema import CrewConfig, DEFAULT_CONFIG


class _Env(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CREW_", extra="ignore")
    config_path: Optional[str] = None
    registry_path: Optional[str] = None


_env: Optional[_Env] = None


def _get_env() -> _Env:
    global _env
    if _env is None:
        _env = _Env()
    return _env


def _load_file_config() -> CrewConfig:
    path = _get_env().config_path
    if not path or not path.strip():
        return DEFAULT_CONFIG
    p = Path(path).expanduser().resolve()
    if not p.is_file():
        return DEFAULT_CONFIG
    data = json.loads(p.read_text(encoding="utf-8"))
    # Older configs named the engine table "models".
    if "models" in data and "engines" not in data:
        data["engines"] = data.pop("models")
    return CrewConfig.model_validate(data)


@functools.lru_cache(maxsize=1)
def load_config() -> CrewConfig:
    """Load config from CREW_CONFIG_PATH if set and valid; else return DEFAULT_CONFIG.

    ``CREW_REGISTRY_PATH`` overrides ``registry_path`` from either source.
    """
    config = _load_file_config()
    registry_path = _get_env().registry_path
    if registry_path and registry_path.strip():
        config = config.model_copy(update={"registry_path": registry_path.strip()})
    return config
