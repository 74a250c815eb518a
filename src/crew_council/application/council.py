"""Council synthesizer: fan out to council members, then merge their answers.

Member calls run concurrently.  Each contribution is broadcast the moment it
arrives.  A member whose completion fails contributes a degraded error string
instead of aborting the council.  The synthesis call is a strict join point:
it starts only after every member branch has finished, and a synthesis
failure fails the task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Sequence

from crew_council.application.broadcaster import COUNCIL_CONTRIBUTION, EventBroadcaster
from crew_council.application.knowledge import KnowledgeCache, knowledge_preamble
from crew_council.application.ports import CompletionGateway
from crew_council.domain import (
    Agent,
    CouncilContribution,
    OutputKind,
    Task,
    TaskOutput,
)
from crew_council.infrastructure.telemetry import get_tracer

logger = logging.getLogger(__name__)


def build_member_prompt(agent: Agent, prompt: str, knowledge: str = "") -> str:
    return (
        f"{knowledge}As the {agent.name} agent, with a specialty in "
        f'"{agent.primary_specialty}", provide your expert opinion on this topic: "{prompt}"'
    )


def degraded_response(agent_name: str, error: BaseException) -> str:
    return f"[{agent_name} could not respond: {error}]"


def build_synthesis_prompt(
    orchestrator_name: str,
    prompt: str,
    contributions: Sequence[CouncilContribution],
) -> str:
    inputs = "\n\n".join(
        f"Input from {c.agent_name}:\n{c.response}" for c in contributions
    )
    failed = [c.agent_name for c in contributions if not c.ok]
    note = ""
    if failed:
        note = (
            f"\n\nNote: {', '.join(failed)} could not respond; "
            "base your answer on the remaining inputs."
        )
    return (
        f"You are {orchestrator_name}, the lead orchestrator. You have received the following "
        f'inputs from your specialist agents on the topic: "{prompt}"\n\n'
        f"{inputs}{note}\n\n"
        "Synthesize these inputs into a single, comprehensive, and definitive response "
        "for the user. Address the user directly."
    )


class CouncilSynthesizer:
    """Runs one council: concurrent member calls, then one synthesis call."""

    def __init__(
        self,
        gateway: CompletionGateway,
        *,
        cache: KnowledgeCache,
        broadcaster: EventBroadcaster,
        synthesis_engine: str,
        orchestrator_name: str,
        engine_for: Callable[[Agent], str],
    ):
        self._gateway = gateway
        self._cache = cache
        self._broadcaster = broadcaster
        self._synthesis_engine = synthesis_engine
        self._orchestrator_name = orchestrator_name
        self._engine_for = engine_for

    async def _consult(self, task: Task, agent: Agent) -> CouncilContribution:
        prompt = build_member_prompt(agent, task.prompt, knowledge_preamble(agent, self._cache))
        try:
            with get_tracer().start_as_current_span("crew.council_member") as span:
                span.set_attribute("agent", agent.name)
                response = await self._gateway.complete(self._engine_for(agent), prompt)
            contribution = CouncilContribution(agent_name=agent.name, response=response)
            self._broadcaster.log(f"{agent.name} has provided its input.")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Council member %s failed: %s", agent.name, exc)
            contribution = CouncilContribution(
                agent_name=agent.name,
                response=degraded_response(agent.name, exc),
                ok=False,
            )
            self._broadcaster.log(f"{agent.name} could not provide input: {exc}")
        self._broadcaster.publish(
            COUNCIL_CONTRIBUTION, {"taskId": task.id, **contribution.to_dict()}
        )
        return contribution

    async def run_council(self, task: Task, members: Sequence[Agent]) -> TaskOutput:
        """Consult every member, then synthesise.  Raises if synthesis fails."""
        results = await asyncio.gather(
            *[self._consult(task, agent) for agent in members],
            return_exceptions=True,
        )
        transcript = _collect_transcript(list(results), members)

        self._broadcaster.log(f"{self._orchestrator_name} is synthesizing the council's input...")
        with get_tracer().start_as_current_span("crew.council_synthesis") as span:
            span.set_attribute("members", len(transcript))
            span.set_attribute("degraded", sum(1 for c in transcript if not c.ok))
            content = await self._gateway.complete(
                self._synthesis_engine,
                build_synthesis_prompt(self._orchestrator_name, task.prompt, transcript),
            )
        return TaskOutput(kind=OutputKind.COUNCIL, content=content, council_transcript=transcript)


def _collect_transcript(
    results: List[object],
    members: Sequence[Agent],
) -> List[CouncilContribution]:
    """One entry per member in call order; unexpected branch errors become degraded entries."""
    transcript: List[CouncilContribution] = []
    for agent, result in zip(members, results):
        if isinstance(result, BaseException):
            transcript.append(CouncilContribution(
                agent_name=agent.name,
                response=degraded_response(agent.name, result),
                ok=False,
            ))
        else:
            transcript.append(result)  # type: ignore[arg-type]
    return transcript
