"""Task lifecycle manager: intake, background execution and the status machine.

Flow: intake → ``queued`` (broadcast before returning) → routing →
``running`` → execution → ``done`` / ``failed``.  A routing failure moves a
task straight from ``queued`` to ``failed``.

This module is the only writer of Task state.  Every background unit is held
in ``self._running`` until it finishes, and the driver coroutine converts any
exception into a ``failed`` task, so each task reaches exactly one terminal
state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from crew_council.application.broadcaster import TASK_UPDATED, EventBroadcaster
from crew_council.application.council import CouncilSynthesizer
from crew_council.application.knowledge import KnowledgeCache, knowledge_preamble
from crew_council.application.ports import CompletionGateway
from crew_council.application.registry import AgentRegistry
from crew_council.application.router import Router
from crew_council.domain import (
    Agent,
    InvalidTransition,
    OutputKind,
    Task,
    TaskKind,
    TaskNotFound,
    TaskOutput,
    TaskStatus,
    build_task,
)
from crew_council.domain.models import utc_now_iso
from crew_council.infrastructure.telemetry import get_tracer

logger = logging.getLogger(__name__)

_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.QUEUED: frozenset({TaskStatus.RUNNING, TaskStatus.FAILED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.DONE, TaskStatus.FAILED}),
    TaskStatus.DONE: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def build_execution_prompt(agent: Agent, prompt: str, knowledge: str = "") -> str:
    return (
        f'{knowledge}As an AI agent with primary specialty "{agent.primary_specialty}", '
        f'fulfill this request: "{prompt}"'
    )


class TaskManager:
    """Creates tasks and drives each one to a terminal state in the background."""

    def __init__(
        self,
        *,
        registry: AgentRegistry,
        router: Router,
        council: CouncilSynthesizer,
        gateway: CompletionGateway,
        cache: KnowledgeCache,
        broadcaster: EventBroadcaster,
        engine_for: Callable[[Agent], str],
        image_specialties: Optional[List[str]] = None,
    ):
        self._registry = registry
        self._router = router
        self._council = council
        self._gateway = gateway
        self._cache = cache
        self._broadcaster = broadcaster
        self._engine_for = engine_for
        self._image_specialties = {s.casefold() for s in (image_specialties or [])}
        self._tasks: Dict[str, Task] = {}
        self._running: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Intake and reads
    # ------------------------------------------------------------------

    def create_task(self, prompt: str, mode: Optional[str] = None) -> Task:
        """Record a new task, broadcast it as ``queued`` and start it in the background.

        Must be called from inside a running event loop.  Returns a snapshot.
        """
        task = build_task(prompt, mode)
        self._tasks[task.id] = task
        self._publish(task)
        self._broadcaster.log(f'Task "{task.title}" received.')

        bg = asyncio.create_task(self._drive(task), name=f"crew-{task.id}")
        self._running.add(bg)
        bg.add_done_callback(self._running.discard)
        return task.snapshot()

    def list_tasks(self) -> List[Task]:
        return [t.snapshot() for t in self._tasks.values()]

    def get_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(task_id)
        return task.snapshot()

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self._tasks.values()]

    @property
    def pending(self) -> int:
        return len(self._running)

    async def drain(self) -> None:
        """Wait until every background unit has driven its task to a terminal state."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _drive(self, task: Task) -> None:
        with get_tracer().start_as_current_span("crew.task") as span:
            span.set_attribute("task_id", task.id)
            span.set_attribute("kind", task.kind.value)
            try:
                if task.kind is TaskKind.COUNCIL:
                    output = await self._run_council(task)
                else:
                    output = await self._run_single(task)
            except Exception as exc:  # noqa: BLE001
                span.record_exception(exc)
                self._fail(task, exc)
                return
            self._complete(task, output)

    async def _run_single(self, task: Task) -> TaskOutput:
        self._broadcaster.log(f"{self._router.orchestrator_name} is analyzing \"{task.title}\"...")
        candidates = self._router.candidates(self._registry.list_agents())
        name = await self._router.select_agent(task.prompt, candidates)
        agent = self._registry.get_agent(name)

        self._transition(task, TaskStatus.RUNNING)
        task.assigned_agent = agent.name
        self._publish(task)
        self._broadcaster.log(f"{self._router.orchestrator_name} assigned task to {agent.name}.")
        self._broadcaster.log(f"{agent.name} is executing...")

        prompt = build_execution_prompt(agent, task.prompt, knowledge_preamble(agent, self._cache))
        content = await self._gateway.complete(self._engine_for(agent), prompt)
        kind = OutputKind.TEXT
        if agent.primary_specialty.casefold() in self._image_specialties:
            kind = OutputKind.IMAGE
        return TaskOutput(kind=kind, content=content)

    async def _run_council(self, task: Task) -> TaskOutput:
        self._broadcaster.log(
            f"Council task received. {self._router.orchestrator_name} is selecting agents..."
        )
        candidates = self._router.candidates(self._registry.list_agents())
        names = await self._router.select_council(task.prompt, candidates)
        members = [self._registry.get_agent(n) for n in names]

        self._transition(task, TaskStatus.RUNNING)
        task.council_members = list(names)
        self._publish(task)
        self._broadcaster.log(
            f"{self._router.orchestrator_name} selected council: {', '.join(names)}."
        )
        return await self._council.run_council(task, members)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, task: Task, new_status: TaskStatus) -> None:
        if new_status not in _TRANSITIONS[task.status]:
            raise InvalidTransition(
                f"Task {task.id}: cannot move from {task.status.value} to {new_status.value}"
            )
        task.status = new_status

    def _complete(self, task: Task, output: TaskOutput) -> None:
        self._transition(task, TaskStatus.DONE)
        task.completed_at = utc_now_iso()
        task.output = output
        self._publish(task)
        who = task.assigned_agent or "the council"
        self._broadcaster.log(f"Task completed by {who}.")

    def _fail(self, task: Task, exc: BaseException) -> None:
        if task.status.is_terminal:
            # Already finished; an error after that point must not rewrite the output.
            logger.error("Task %s raised after reaching %s: %s", task.id, task.status.value, exc)
            return
        message = str(exc) or type(exc).__name__
        logger.warning("Task %s failed: %s", task.id, message)
        self._transition(task, TaskStatus.FAILED)
        task.completed_at = utc_now_iso()
        task.output = TaskOutput(kind=OutputKind.TEXT, content=message)
        self._publish(task)
        self._broadcaster.log(f"Task failed. Error: {message}")

    def _publish(self, task: Task) -> None:
        self._broadcaster.publish(TASK_UPDATED, task.to_dict())
