"""CrewEngine: the single owner of every orchestration component.

There is no module-level state: one engine instance holds its registry,
knowledge cache, router, task manager, council synthesizer and broadcaster,
and hands each component its collaborators through the constructor.  The
interfaces (HTTP API, CLI) talk only to this facade.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from crew_council.application.broadcaster import EventBroadcaster, Subscription
from crew_council.application.council import CouncilSynthesizer
from crew_council.application.knowledge import KnowledgeCache
from crew_council.application.ports import CompletionGateway, RegistryStore
from crew_council.application.registry import AgentRegistry
from crew_council.application.router import Router
from crew_council.application.tasks import TaskManager
from crew_council.config import CrewConfig
from crew_council.domain import Agent, Task

logger = logging.getLogger(__name__)


class CrewEngine:
    """Facade over one registry, task manager, council and broadcaster."""

    def __init__(
        self,
        config: CrewConfig,
        *,
        store: RegistryStore,
        gateway: CompletionGateway,
        agents: Optional[List[Agent]] = None,
    ):
        self.config = config
        self.broadcaster = EventBroadcaster(queue_size=config.subscriber_queue_size)
        self.cache = KnowledgeCache(max_chars=config.knowledge_max_chars)
        self.gateway = gateway
        self.registry = AgentRegistry(
            store.load() if agents is None else agents,
            store=store,
            broadcaster=self.broadcaster,
            cache=self.cache,
        )
        self.router = Router(
            gateway,
            engine=config.router_engine,
            orchestrator_name=config.orchestrator_name,
            council_max_size=config.council_max_size,
        )
        self.council = CouncilSynthesizer(
            gateway,
            cache=self.cache,
            broadcaster=self.broadcaster,
            synthesis_engine=config.synthesis_engine,
            orchestrator_name=config.orchestrator_name,
            engine_for=self._engine_for,
        )
        self.tasks = TaskManager(
            registry=self.registry,
            router=self.router,
            council=self.council,
            gateway=gateway,
            cache=self.cache,
            broadcaster=self.broadcaster,
            engine_for=self._engine_for,
            image_specialties=config.image_specialties,
        )
        self.broadcaster.bind_snapshots(self.registry.to_dicts, self.tasks.to_dicts)
        logger.info(
            "Engine ready: %d agents, engines=%s",
            len(self.registry.names()), sorted(config.engines),
        )

    def _engine_for(self, agent: Agent) -> str:
        """Engine an agent runs on; an empty currentEngine falls back to the default."""
        return agent.current_engine or self.config.default_engine

    # --- tasks ------------------------------------------------------------

    def create_task(self, prompt: str, mode: Optional[str] = None) -> Task:
        return self.tasks.create_task(prompt, mode)

    def list_tasks(self) -> List[Task]:
        return self.tasks.list_tasks()

    def get_task(self, task_id: str) -> Task:
        return self.tasks.get_task(task_id)

    # --- agents -----------------------------------------------------------

    def list_agents(self) -> List[Agent]:
        return self.registry.list_agents()

    async def update_engine(self, name: str, engine: str) -> Agent:
        return await self.registry.update_engine(name, engine)

    async def update_specialties(
        self, name: str, primary: str, secondaries: Optional[List[str]] = None
    ) -> Agent:
        return await self.registry.update_specialties(name, primary, secondaries)

    async def attach_knowledge(
        self, name: str, display_name: str, source_path: str, content: str
    ) -> Agent:
        return await self.registry.attach_knowledge(name, display_name, source_path, content)

    # --- observers --------------------------------------------------------

    def subscribe(self) -> Subscription:
        return self.broadcaster.subscribe()

    def unsubscribe(self, sub: Subscription) -> None:
        self.broadcaster.unsubscribe(sub)

    async def aclose(self) -> None:
        """Let every in-flight task reach a terminal state."""
        if self.tasks.pending:
            logger.info("Waiting for %d in-flight task(s)", self.tasks.pending)
        await self.tasks.drain()
