"""Ports (abstract interfaces) used by the application layer.

Each port is a ``Protocol`` so the application depends only on the *shape* of
the collaborator.  Infrastructure adapters satisfy these shapes; the
application never imports from infrastructure.
"""

from __future__ import annotations

from typing import List, Protocol

from crew_council.domain import Agent


class CompletionBackend(Protocol):
    """One text-generation engine.

    Implementations raise on failure; the gateway turns any failure into
    ``CompletionUnavailable``.
    """

    async def complete(self, prompt: str) -> str: ...


class CompletionGateway(Protocol):
    """Engine-addressed completion: ``complete(engine_id, prompt) -> text``.

    Raises ``CompletionUnavailable`` for an unknown engine or a failed call.
    """

    async def complete(self, engine_id: str, prompt: str) -> str: ...


class RegistryStore(Protocol):
    """Load and save the full agent roster."""

    def load(self) -> List[Agent]: ...

    def save(self, agents: List[Agent]) -> None:
        """Overwrite the stored roster.  Raises ``PersistenceFailure`` on write errors."""
        ...
