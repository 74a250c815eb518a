"""JSON file store for the agent roster.  Implements the RegistryStore port.

The file holds ``{"agents": [...]}`` and is fully rewritten on every save,
written to ``<path>.tmp`` first and renamed over the original so a crash
mid-write never leaves a truncated registry behind.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List

from crew_council.domain import Agent, PersistenceFailure

logger = logging.getLogger(__name__)


class JsonRegistryStore:

    def __init__(self, path: str | os.PathLike[str]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[Agent]:
        """Read the roster.  A missing or unreadable file yields an empty roster."""
        if not self._path.is_file():
            logger.warning("Agent registry %s not found; starting with no agents", self._path)
            return []
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return [Agent.from_dict(item) for item in data.get("agents") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Could not load agent registry %s: %s", self._path, exc)
            return []

    def save(self, agents: List[Agent]) -> None:
        payload = {"agents": [a.to_dict() for a in agents]}
        tmp = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp, self._path)
        except OSError as exc:
            raise PersistenceFailure(f"Could not write agent registry {self._path}: {exc}") from exc
