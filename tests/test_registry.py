"""Tests for the agent registry: reads, mutations, persistence and per-agent serialisation."""
from __future__ import annotations

import asyncio
import json

import pytest

from crew_council.application.broadcaster import AGENT_UPDATED, LOG, EventBroadcaster
from crew_council.application.knowledge import KnowledgeCache
from crew_council.application.registry import AgentRegistry
from crew_council.domain import Agent, AgentNotFound, InvalidEngine, NotFound
from crew_council.infrastructure.registry_store import JsonRegistryStore
from helpers import MemoryStore, drain_events, make_agents


def _registry(store=None, agents=None):
    broadcaster = EventBroadcaster()
    cache = KnowledgeCache()
    agents = agents if agents is not None else make_agents()
    store = store or MemoryStore(agents)
    registry = AgentRegistry(store.load(), store=store, broadcaster=broadcaster, cache=cache)
    broadcaster.bind_snapshots(registry.to_dicts, lambda: [])
    return registry, broadcaster, cache, store


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def test_list_agents_returns_snapshots():
    registry, *_ = _registry()
    listed = registry.list_agents()
    listed[0].primary_specialty = "tampered"
    assert registry.get_agent("Renee").primary_specialty == "orchestration"


def test_get_unknown_agent_raises_not_found():
    registry, *_ = _registry()
    with pytest.raises(AgentNotFound) as excinfo:
        registry.get_agent("Ghost")
    assert isinstance(excinfo.value, NotFound)
    assert "Ghost" in str(excinfo.value)


def test_duplicate_names_keep_first():
    agents = [Agent(name="Nova", description="first"), Agent(name="Nova", description="second")]
    registry, *_ = _registry(agents=agents)
    assert registry.names() == ["Nova"]
    assert registry.get_agent("Nova").description == "first"


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_engine_persists_and_broadcasts():
    registry, broadcaster, _, store = _registry()
    sub = broadcaster.subscribe()
    drain_events(sub)

    agent = await registry.update_engine("Nova", "deep")

    assert agent.current_engine == "deep"
    assert store.saved[-1][1]["currentEngine"] == "deep"
    events = drain_events(sub)
    assert [e.kind for e in events] == [AGENT_UPDATED, LOG]
    assert events[0].data["name"] == "Nova"
    assert events[0].data["currentEngine"] == "deep"
    assert events[1].data["message"] == "Agent Nova engine updated to deep"


@pytest.mark.asyncio
async def test_update_engine_outside_options_rejected():
    registry, broadcaster, _, store = _registry()
    sub = broadcaster.subscribe()
    drain_events(sub)

    with pytest.raises(InvalidEngine):
        await registry.update_engine("Nova", "gpt-x")

    assert registry.get_agent("Nova").current_engine == "fast"
    assert store.saved == []
    assert drain_events(sub) == []


@pytest.mark.asyncio
async def test_update_engine_unknown_agent():
    registry, _, _, store = _registry()
    with pytest.raises(AgentNotFound):
        await registry.update_engine("Ghost", "fast")
    assert store.saved == []


@pytest.mark.asyncio
async def test_update_specialties_replaces_both():
    registry, *_ = _registry()
    agent = await registry.update_specialties("Nova", "editing", ["proofreading", "seo"])
    assert agent.primary_specialty == "editing"
    assert agent.secondary_specialties == ["proofreading", "seo"]


@pytest.mark.asyncio
async def test_attach_knowledge_caches_and_records_bundle():
    registry, broadcaster, cache, _ = _registry()
    sub = broadcaster.subscribe()
    drain_events(sub)

    agent = await registry.attach_knowledge("Cypher", "OWASP notes", "/kb/owasp.md", "A01 broken access")

    assert [kb.source_path for kb in agent.knowledge_bundles] == ["/kb/owasp.md"]
    assert cache.get("/kb/owasp.md") == "A01 broken access"
    log_event = drain_events(sub)[-1]
    assert log_event.data["message"] == "Knowledge bundle 'OWASP notes' added to Cypher."


@pytest.mark.asyncio
async def test_reattaching_same_source_replaces_bundle():
    registry, _, cache, _ = _registry()
    await registry.attach_knowledge("Cypher", "v1", "/kb/owasp.md", "old")
    agent = await registry.attach_knowledge("Cypher", "v2", "/kb/owasp.md", "new")
    assert [kb.display_name for kb in agent.knowledge_bundles] == ["v2"]
    assert cache.get("/kb/owasp.md") == "new"


@pytest.mark.asyncio
async def test_save_failure_keeps_in_memory_state():
    store = MemoryStore(make_agents(), fail=True)
    registry, broadcaster, _, _ = _registry(store=store)
    sub = broadcaster.subscribe()
    drain_events(sub)

    agent = await registry.update_engine("Nova", "deep")

    assert agent.current_engine == "deep"
    assert registry.get_agent("Nova").current_engine == "deep"
    assert AGENT_UPDATED in [e.kind for e in drain_events(sub)]


@pytest.mark.asyncio
async def test_concurrent_mutations_on_one_agent_all_apply():
    registry, *_ = _registry()
    await asyncio.gather(*[
        registry.attach_knowledge("Nova", f"doc {i}", f"/kb/{i}", f"text {i}") for i in range(10)
    ])
    bundles = registry.get_agent("Nova").knowledge_bundles
    assert sorted(kb.source_path for kb in bundles) == sorted(f"/kb/{i}" for i in range(10))


@pytest.mark.asyncio
async def test_mutations_on_different_agents_are_independent():
    registry, *_ = _registry()
    await asyncio.gather(
        registry.update_engine("Nova", "deep"),
        registry.update_engine("Cypher", "fast"),
    )
    assert registry.get_agent("Nova").current_engine == "deep"
    assert registry.get_agent("Cypher").current_engine == "fast"


# ---------------------------------------------------------------------------
# Persistence round-trip through the JSON store
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_mutation_survives_reload(tmp_path):
    path = tmp_path / "agentsRegistry.json"
    JsonRegistryStore(path).save(make_agents())

    registry, *_ = _registry(store=JsonRegistryStore(path))
    await registry.update_engine("Nova", "deep")
    await registry.attach_knowledge("Nova", "Style", "/kb/style.md", "be brief")

    reloaded = {a.name: a for a in JsonRegistryStore(path).load()}
    assert reloaded["Nova"].current_engine == "deep"
    assert reloaded["Nova"].knowledge_bundles[0].source_path == "/kb/style.md"
    on_disk = json.loads(path.read_text())
    assert on_disk["agents"][1]["knowledgeBundles"] == [
        {"displayName": "Style", "sourcePath": "/kb/style.md"}
    ]


@pytest.mark.asyncio
async def test_rejected_mutation_for_unknown_name_leaves_no_lock():
    registry, *_ = _registry()
    before = len(registry._locks)
    for i in range(50):
        with pytest.raises(AgentNotFound):
            await registry.update_engine(f"ghost-{i}", "fast")
    assert len(registry._locks) == before == 4


def test_loaded_engine_outside_options_is_logged(caplog):
    agents = [Agent(name="Drift", current_engine="gpt-x", engine_options=["fast", "deep"])]
    with caplog.at_level("WARNING", logger="crew_council.application.registry"):
        registry, *_ = _registry(agents=agents)
    assert registry.get_agent("Drift").current_engine == "gpt-x"
    assert "outside its options" in caplog.text
