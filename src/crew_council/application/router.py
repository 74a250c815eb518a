"""Route a request to one agent (single mode) or a council of agents.

Each routing decision is one meta-completion on the router engine: the prompt
lists every candidate's name, primary specialty and description and asks for
exactly a name (single) or a comma-separated name list (council).

The orchestrator identity is never a candidate.  A reply that names it, or
that names nobody in the candidate list, is an ``InvalidSelection``.  Neither
that nor a ``CompletionUnavailable`` from the backend is retried.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Sequence

from crew_council.application.ports import CompletionGateway
from crew_council.domain import Agent, InvalidSelection
from crew_council.infrastructure.telemetry import get_tracer

logger = logging.getLogger(__name__)

# Characters stripped from each name in a router reply.
_NAME_STRIP = " \t\r\n\"'`*.:;!-"


def _candidate_lines(candidates: Sequence[Agent]) -> str:
    return "\n".join(
        f"- {a.name}: Primary specialty: {a.primary_specialty}. Description: {a.description}"
        for a in candidates
    )


def build_single_selection_prompt(prompt: str, candidates: Sequence[Agent]) -> str:
    return (
        f'User prompt: "{prompt}"\n\n'
        "Based on the prompt, which agent is best suited?\n\n"
        f"{_candidate_lines(candidates)}\n\n"
        "Respond with only the agent's name."
    )


def build_council_selection_prompt(
    prompt: str, candidates: Sequence[Agent], max_size: int
) -> str:
    low = min(2, max_size)
    size = f"{low}-{max_size}" if low < max_size else str(max_size)
    return (
        f'User prompt: "{prompt}"\n\n'
        f"Based on the prompt, select the top {size} most relevant agents from the list "
        "below to form a council.\n\n"
        f"Available agents:\n{_candidate_lines(candidates)}\n\n"
        "Respond with a comma-separated list of agent names (e.g., Alpha,Beta,Gamma)."
    )


def _clean_name(raw: str) -> str:
    return raw.strip(_NAME_STRIP)


class Router:
    """Chooses worker agents through the router engine."""

    def __init__(
        self,
        gateway: CompletionGateway,
        *,
        engine: str,
        orchestrator_name: str,
        council_max_size: int = 3,
    ):
        self._gateway = gateway
        self._engine = engine
        self._orchestrator_name = orchestrator_name
        self._council_max_size = council_max_size

    @property
    def orchestrator_name(self) -> str:
        return self._orchestrator_name

    def candidates(self, agents: Sequence[Agent]) -> List[Agent]:
        """Every agent except the orchestrator identity."""
        return [a for a in agents if not self._is_orchestrator(a.name)]

    def _is_orchestrator(self, name: str) -> bool:
        return name.casefold() == self._orchestrator_name.casefold()

    def _index(self, candidates: Sequence[Agent]) -> Dict[str, str]:
        return {a.name.casefold(): a.name for a in candidates if not self._is_orchestrator(a.name)}

    async def select_agent(self, prompt: str, candidates: Sequence[Agent]) -> str:
        """Return the canonical name of the single agent the router picks."""
        index = self._index(candidates)
        if not index:
            raise InvalidSelection("No candidate agents are available for routing.")

        with get_tracer().start_as_current_span("crew.route_single") as span:
            span.set_attribute("candidates", len(index))
            reply = await self._gateway.complete(
                self._engine, build_single_selection_prompt(prompt, candidates)
            )

        # Models sometimes answer on several lines; the first non-empty one is the name.
        first_line = next((ln for ln in reply.splitlines() if ln.strip()), "")
        name = _clean_name(first_line)
        if self._is_orchestrator(name):
            raise InvalidSelection(
                f"{self._orchestrator_name} cannot assign a task to itself."
            )
        chosen = index.get(name.casefold())
        if chosen is None:
            raise InvalidSelection(
                f"{self._orchestrator_name} selected an invalid agent: {name!r}."
            )
        logger.info("Router selected agent %s", chosen)
        return chosen

    async def select_council(self, prompt: str, candidates: Sequence[Agent]) -> List[str]:
        """Return council member names in the order the router listed them."""
        index = self._index(candidates)
        if not index:
            raise InvalidSelection("No candidate agents are available for a council.")

        with get_tracer().start_as_current_span("crew.route_council") as span:
            span.set_attribute("candidates", len(index))
            reply = await self._gateway.complete(
                self._engine,
                build_council_selection_prompt(prompt, candidates, self._council_max_size),
            )

        members: List[str] = []
        for raw in reply.replace("\n", ",").split(","):
            name = _clean_name(raw)
            if not name:
                continue
            if self._is_orchestrator(name):
                raise InvalidSelection(
                    f"{self._orchestrator_name} cannot sit on its own council."
                )
            chosen = index.get(name.casefold())
            if chosen is None:
                logger.warning("Router named unknown council member %r; skipping", name)
                continue
            if chosen not in members:
                members.append(chosen)

        if not members:
            raise InvalidSelection(
                f"{self._orchestrator_name} failed to select any agents for the council."
            )
        if len(members) > self._council_max_size:
            logger.info(
                "Router picked %d council members; keeping the first %d",
                len(members), self._council_max_size,
            )
            members = members[: self._council_max_size]
        logger.info("Router selected council %s", members)
        return members
