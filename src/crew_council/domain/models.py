"""Domain models: Agent, KnowledgeBundle, Task, TaskOutput, CouncilContribution, Event.

Pure data, no I/O. Serialisation helpers emit the camelCase JSON shape that the
registry file and the observer stream share.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

# Prompt prefix that requests council mode when no explicit mode is given.
COUNCIL_PREFIX = "/council "

TITLE_MAX_CHARS = 50


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.FAILED)


class TaskKind(str, Enum):
    SINGLE = "single"
    COUNCIL = "council"


class OutputKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    COUNCIL = "council"


@dataclass
class KnowledgeBundle:
    """Reference to cached knowledge text; the cache owns the content."""
    display_name: str
    source_path: str

    def to_dict(self) -> Dict[str, Any]:
        return {"displayName": self.display_name, "sourcePath": self.source_path}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeBundle":
        # Legacy registries stored bundles as {"name", "type", "path"}.
        return cls(
            display_name=data.get("displayName") or data.get("name") or "",
            source_path=data.get("sourcePath") or data.get("path") or "",
        )


@dataclass
class Agent:
    """A named specialist worker and its mutable configuration."""
    name: str
    primary_specialty: str = ""
    secondary_specialties: List[str] = field(default_factory=list)
    description: str = ""
    current_engine: str = ""
    engine_options: List[str] = field(default_factory=list)
    knowledge_bundles: List[KnowledgeBundle] = field(default_factory=list)

    def allows_engine(self, engine: str) -> bool:
        """True when ``engine`` may be assigned (any engine if no options are declared)."""
        return not self.engine_options or engine in self.engine_options

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "primarySpecialty": self.primary_specialty,
            "secondarySpecialties": list(self.secondary_specialties),
            "description": self.description,
            "currentEngine": self.current_engine,
            "engineOptions": list(self.engine_options),
            "knowledgeBundles": [kb.to_dict() for kb in self.knowledge_bundles],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Agent":
        return cls(
            name=data["name"],
            primary_specialty=data.get("primarySpecialty", ""),
            secondary_specialties=list(data.get("secondarySpecialties") or []),
            description=data.get("description", ""),
            current_engine=data.get("currentEngine", ""),
            engine_options=list(data.get("engineOptions") or []),
            knowledge_bundles=[
                KnowledgeBundle.from_dict(kb) for kb in data.get("knowledgeBundles") or []
            ],
        )

    def snapshot(self) -> "Agent":
        return copy.deepcopy(self)


@dataclass
class CouncilContribution:
    """One council member's answer. ``ok`` is False for a degraded (failed) member."""
    agent_name: str
    response: str
    ok: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"agentName": self.agent_name, "response": self.response, "ok": self.ok}


@dataclass
class TaskOutput:
    kind: OutputKind
    content: str
    council_transcript: Optional[List[CouncilContribution]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "content": self.content}
        if self.council_transcript is not None:
            out["councilTranscript"] = [c.to_dict() for c in self.council_transcript]
        return out


@dataclass
class Task:
    """One unit of requested work and its lifecycle record.

    Only ``TaskManager`` mutates a Task; everyone else sees snapshots.
    """
    id: str
    prompt: str
    kind: TaskKind
    title: str
    status: TaskStatus = TaskStatus.QUEUED
    assigned_agent: Optional[str] = None
    council_members: Optional[List[str]] = None
    output: Optional[TaskOutput] = None
    created_at: str = field(default_factory=utc_now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "kind": self.kind.value,
            "title": self.title,
            "status": self.status.value,
            "assignedAgent": self.assigned_agent,
            "councilMembers": list(self.council_members) if self.council_members is not None else None,
            "output": self.output.to_dict() if self.output is not None else None,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
        }

    def snapshot(self) -> "Task":
        return copy.deepcopy(self)


def new_task_id() -> str:
    return f"task_{uuid.uuid4().hex}"


def make_title(prompt: str) -> str:
    """Display title: the prompt cut to ``TITLE_MAX_CHARS`` with ``...`` when truncated."""
    text = prompt.strip()
    if len(text) <= TITLE_MAX_CHARS:
        return text
    return f"{text[:TITLE_MAX_CHARS]}..."


def classify_prompt(prompt: str, mode: Optional[str] = None) -> tuple[TaskKind, str]:
    """Return ``(kind, prompt)`` for an intake request.

    An explicit ``mode`` ("single" / "council") wins.  Without one, a prompt
    starting with ``/council `` (any case) is a council request.  The prefix is
    stripped from the returned prompt in either case.
    """
    text = prompt.strip()
    has_prefix = text.lower().startswith(COUNCIL_PREFIX)
    if has_prefix:
        text = text[len(COUNCIL_PREFIX):].strip()
    if mode:
        return TaskKind(mode), text
    return (TaskKind.COUNCIL if has_prefix else TaskKind.SINGLE), text


def build_task(prompt: str, mode: Optional[str] = None) -> Task:
    """Construct a queued Task from external input."""
    kind, text = classify_prompt(prompt, mode)
    return Task(id=new_task_id(), prompt=text, kind=kind, title=make_title(text))


@dataclass
class Event:
    """One observer-stream event."""
    kind: str
    data: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "data": self.data}
