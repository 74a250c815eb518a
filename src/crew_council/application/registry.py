"""Agent registry: the roster of specialist agents and its mutations.

Mutations for one agent name are linearised through a per-name
``asyncio.Lock``; different agents mutate independently.  Every successful
mutation persists the full roster and emits ``agent-updated`` plus a ``log``
event.  A failed save is logged and swallowed: the in-memory roster stays
authoritative for the running process.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from crew_council.application.broadcaster import AGENT_UPDATED, EventBroadcaster
from crew_council.application.knowledge import KnowledgeCache
from crew_council.application.ports import RegistryStore
from crew_council.domain import (
    Agent,
    AgentNotFound,
    InvalidEngine,
    KnowledgeBundle,
    PersistenceFailure,
)

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Owns the in-memory roster.  Callers only ever receive snapshots."""

    def __init__(
        self,
        agents: List[Agent],
        *,
        store: RegistryStore,
        broadcaster: EventBroadcaster,
        cache: KnowledgeCache,
    ):
        self._agents: Dict[str, Agent] = {}
        for agent in agents:
            if agent.name in self._agents:
                logger.warning("Duplicate agent %r in registry; keeping the first entry", agent.name)
                continue
            if agent.current_engine and not agent.allows_engine(agent.current_engine):
                logger.warning(
                    "Agent %r uses engine %r outside its options %s",
                    agent.name, agent.current_engine, agent.engine_options,
                )
            self._agents[agent.name] = agent
        self._store = store
        self._broadcaster = broadcaster
        self._cache = cache
        # Fixed roster: exactly one lock per agent name.
        self._locks: Dict[str, asyncio.Lock] = {n: asyncio.Lock() for n in self._agents}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_agents(self) -> List[Agent]:
        return [a.snapshot() for a in self._agents.values()]

    def get_agent(self, name: str) -> Agent:
        agent = self._agents.get(name)
        if agent is None:
            raise AgentNotFound(name)
        return agent.snapshot()

    def names(self) -> List[str]:
        return list(self._agents)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [a.to_dict() for a in self._agents.values()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def update_engine(self, name: str, engine: str) -> Agent:
        def _apply(agent: Agent) -> None:
            if not agent.allows_engine(engine):
                raise InvalidEngine(
                    f"Engine {engine!r} is not allowed for agent {name!r}; "
                    f"options: {agent.engine_options}"
                )
            agent.current_engine = engine

        return await self._mutate(name, _apply, f"Agent {name} engine updated to {engine}")

    async def update_specialties(
        self,
        name: str,
        primary: str,
        secondaries: Optional[List[str]] = None,
    ) -> Agent:
        def _apply(agent: Agent) -> None:
            agent.primary_specialty = primary
            agent.secondary_specialties = list(secondaries or [])

        return await self._mutate(name, _apply, f"Agent {name} specialties updated.")

    async def attach_knowledge(
        self,
        name: str,
        display_name: str,
        source_path: str,
        content: str,
    ) -> Agent:
        def _apply(agent: Agent) -> None:
            self._cache.put(source_path, content)
            bundle = KnowledgeBundle(display_name=display_name, source_path=source_path)
            # Re-attaching the same source replaces its entry so the update is idempotent.
            for i, existing in enumerate(agent.knowledge_bundles):
                if existing.source_path == source_path:
                    agent.knowledge_bundles[i] = bundle
                    break
            else:
                agent.knowledge_bundles.append(bundle)

        return await self._mutate(
            name, _apply, f"Knowledge bundle '{display_name}' added to {name}."
        )

    async def _mutate(self, name: str, apply: Callable[[Agent], None], message: str) -> Agent:
        lock = self._locks.get(name)
        if lock is None:
            raise AgentNotFound(name)
        async with lock:
            agent = self._agents[name]
            apply(agent)
            self._persist()
            snapshot = agent.snapshot()
        self._broadcaster.publish(AGENT_UPDATED, snapshot.to_dict())
        self._broadcaster.log(message)
        return snapshot

    def _persist(self) -> None:
        try:
            self._store.save(list(self._agents.values()))
        except PersistenceFailure as exc:
            logger.error("Agent registry save failed; in-memory state kept: %s", exc)
