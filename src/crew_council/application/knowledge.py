"""Knowledge content cache and per-agent context assembly."""

from __future__ import annotations

from typing import Dict, Optional

from crew_council.config.constants import KNOWLEDGE_MAX_CHARS
from crew_council.domain import Agent

KNOWLEDGE_PREAMBLE = "Use the following information from your knowledge base to inform your answer:"


class KnowledgeCache:
    """Process-wide ``source_path -> text`` map.  Last write wins."""

    def __init__(self, max_chars: int = KNOWLEDGE_MAX_CHARS):
        self._max_chars = max_chars
        self._content: Dict[str, str] = {}

    def put(self, source_path: str, content: str) -> str:
        """Store ``content`` truncated to the cache limit; return what was stored."""
        stored = content[: self._max_chars]
        self._content[source_path] = stored
        return stored

    def get(self, source_path: str) -> Optional[str]:
        return self._content.get(source_path)

    def __contains__(self, source_path: object) -> bool:
        return source_path in self._content

    def __len__(self) -> int:
        return len(self._content)


def build_context(agent: Agent, cache: KnowledgeCache) -> str:
    """Concatenate the cached text of the agent's knowledge bundles.

    Bundles without cached content are skipped.  Returns ``""`` when nothing
    resolves.
    """
    blocks = []
    for bundle in agent.knowledge_bundles:
        content = cache.get(bundle.source_path)
        if content is None:
            continue
        blocks.append(
            f"--- Knowledge from {bundle.display_name} ---\n{content}\n--- End ---"
        )
    return "\n\n".join(blocks)


def knowledge_preamble(agent: Agent, cache: KnowledgeCache) -> str:
    """Prompt prefix carrying the agent's knowledge, or ``""`` when it has none."""
    context = build_context(agent, cache)
    if not context:
        return ""
    return f"{KNOWLEDGE_PREAMBLE}\n{context}\n\n"
