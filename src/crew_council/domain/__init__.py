"""Domain layer: entities and value objects. No I/O."""

from .models import (
    Agent,
    CouncilContribution,
    Event,
    KnowledgeBundle,
    OutputKind,
    Task,
    TaskKind,
    TaskOutput,
    TaskStatus,
    build_task,
    classify_prompt,
)
from .errors import (
    AgentNotFound,
    CompletionUnavailable,
    CrewError,
    InvalidEngine,
    InvalidSelection,
    InvalidTransition,
    NotFound,
    PersistenceFailure,
    TaskNotFound,
)

__all__ = [
    "Agent",
    "CouncilContribution",
    "Event",
    "KnowledgeBundle",
    "OutputKind",
    "Task",
    "TaskKind",
    "TaskOutput",
    "TaskStatus",
    "build_task",
    "classify_prompt",
    "AgentNotFound",
    "CompletionUnavailable",
    "CrewError",
    "InvalidEngine",
    "InvalidSelection",
    "InvalidTransition",
    "NotFound",
    "PersistenceFailure",
    "TaskNotFound",
]
