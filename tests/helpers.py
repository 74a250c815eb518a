"""Shared fakes and builders for crew-council tests."""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from crew_council.application.engine import CrewEngine
from crew_council.config import CrewConfig, EngineConfig
from crew_council.domain import Agent, CompletionUnavailable, PersistenceFailure

Reply = Union[str, BaseException, Callable[[str, str], Awaitable[str]]]


class ScriptedGateway:
    """Fake CompletionGateway.

    ``handler(engine_id, prompt)`` decides each reply.  Every call is recorded
    as ``(engine_id, prompt)`` in ``calls``; ``log`` records ``start:``/``end:``
    markers so tests can check ordering.
    """

    def __init__(self, handler: Callable[[str, str], Reply]):
        self._handler = handler
        self.calls: List[Tuple[str, str]] = []
        self.log: List[str] = []

    async def complete(self, engine_id: str, prompt: str) -> str:
        self.calls.append((engine_id, prompt))
        self.log.append(f"start:{engine_id}")
        try:
            reply = self._handler(engine_id, prompt)
            if callable(reply):
                reply = await reply(engine_id, prompt)
            if isinstance(reply, BaseException):
                raise reply
            return reply
        finally:
            self.log.append(f"end:{engine_id}")


class MemoryStore:
    """In-memory RegistryStore; ``fail=True`` makes every save raise."""

    def __init__(self, agents: Optional[List[Agent]] = None, fail: bool = False):
        self.saved: List[List[dict]] = []
        self._agents = agents or []
        self.fail = fail

    def load(self) -> List[Agent]:
        return [a.snapshot() for a in self._agents]

    def save(self, agents: List[Agent]) -> None:
        if self.fail:
            raise PersistenceFailure("disk full")
        self.saved.append([a.to_dict() for a in agents])


def make_config(**overrides) -> CrewConfig:
    data = dict(
        engines={
            "router": EngineConfig(backend="echo"),
            "synth": EngineConfig(backend="echo"),
            "fast": EngineConfig(backend="echo"),
            "deep": EngineConfig(backend="echo"),
        },
        default_engine="fast",
        router_engine="router",
        synthesis_engine="synth",
        orchestrator_name="Renee",
    )
    data.update(overrides)
    return CrewConfig(**data)


def make_agents() -> List[Agent]:
    return [
        Agent(name="Renee", primary_specialty="orchestration", description="Lead orchestrator"),
        Agent(
            name="Nova",
            primary_specialty="writing",
            secondary_specialties=["marketing"],
            description="Writes copy and documentation",
            current_engine="fast",
            engine_options=["fast", "deep"],
        ),
        Agent(
            name="Cypher",
            primary_specialty="security",
            description="Threat modelling and audits",
            current_engine="deep",
            engine_options=["fast", "deep"],
        ),
        Agent(name="Pixel", primary_specialty="art", description="Visual concepts"),
    ]


def make_engine(
    handler: Callable[[str, str], Reply],
    *,
    agents: Optional[List[Agent]] = None,
    store: Optional[MemoryStore] = None,
    **config_overrides,
) -> Tuple[CrewEngine, ScriptedGateway, MemoryStore]:
    gateway = ScriptedGateway(handler)
    store = store or MemoryStore(agents if agents is not None else make_agents())
    engine = CrewEngine(make_config(**config_overrides), store=store, gateway=gateway)
    return engine, gateway, store


def drain_events(sub) -> List:
    events = []
    while not sub.queue.empty():
        events.append(sub.get_nowait())
    return events


def unavailable(msg: str = "backend down") -> CompletionUnavailable:
    return CompletionUnavailable(msg)


def router_reply(name: str) -> Callable[[str, str], Reply]:
    """Handler: the router engine answers ``name``; any other engine returns ``"<engine> answer"``."""
    def _handler(engine_id: str, prompt: str) -> Reply:
        if engine_id == "router":
            return name
        return f"{engine_id} answer"
    return _handler


async def settle(engine: CrewEngine) -> None:
    """Wait for every background task of ``engine`` to finish."""
    await engine.tasks.drain()
    await asyncio.sleep(0)
