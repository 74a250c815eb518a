"""Configuration schema. Engines point at OpenAI-compatible endpoints (Ollama by default)."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .constants import (
    COMPLETION_HTTP_TIMEOUT_S,
    COMPLETION_WAIT_TIMEOUT_S,
    KNOWLEDGE_MAX_CHARS,
    SUBSCRIBER_QUEUE_SIZE,
)


class EngineConfig(BaseModel):
    """One completion engine: the backend implementation and its endpoint."""
    backend: str = Field(
        "ollama",
        description=(
            "Completion backend implementation. "
            "'ollama' (default): OpenAI-compatible client with the Ollama 400-retry. "
            "'openai': bare OpenAI-compatible client for hosted providers. "
            "'echo': offline backend that answers locally (development and demos)."
        ),
    )
    base_url: str = Field("http://localhost:11434/v1", description="e.g. http://localhost:11434/v1")
    model: str = Field("qwen2.5:7b", description="Model name sent with each request.")
    api_key: str = Field("", description="Bearer token; empty for local backends (no header sent).")
    system_prompt: str = ""
    temperature: float = 0.7
    max_tokens: int = 2048
    timeout_s: float = Field(
        default=COMPLETION_HTTP_TIMEOUT_S,
        description="HTTP timeout for one completion request.",
    )
    reply: Optional[str] = Field(
        None,
        description="Fixed reply for the 'echo' backend; when unset it echoes the prompt.",
    )


class TelemetryConfig(BaseModel):
    """Optional OpenTelemetry tracing configuration."""
    enabled: bool = False
    service_name: str = "crew-council"
    exporter: str = Field(
        "none",
        description="Span exporter: 'none' (default), 'console' (stdout), or 'otlp' (gRPC endpoint).",
    )
    otlp_endpoint: str = ""


class CrewConfig(BaseModel):
    """Root config: engines, routing roles, registry location and limits."""
    engines: Dict[str, EngineConfig]
    default_engine: str = Field(
        ...,
        description="Engine used by agents whose currentEngine is empty.",
    )
    router_engine: str = Field(..., description="Engine used for agent selection calls.")
    synthesis_engine: str = Field(..., description="Engine used for the council synthesis call.")
    orchestrator_name: str = Field(
        "Renee",
        description="Reserved orchestrator identity; never selectable as a worker.",
    )
    registry_path: str = Field("agentsRegistry.json", description="Agent registry JSON file.")
    council_max_size: int = Field(3, ge=1)
    image_specialties: List[str] = Field(
        default_factory=lambda: ["art"],
        description="Primary specialties whose output is an image brief (output kind 'image').",
    )
    knowledge_max_chars: int = Field(KNOWLEDGE_MAX_CHARS, ge=1)
    completion_timeout_s: float = Field(COMPLETION_WAIT_TIMEOUT_S, gt=0)
    subscriber_queue_size: int = Field(SUBSCRIBER_QUEUE_SIZE, ge=1)
    telemetry: Optional[TelemetryConfig] = None

    @model_validator(mode="after")
    def _engine_roles_exist(self) -> "CrewConfig":
        """Every engine role must name a configured engine.

        A dangling name would only show up as CompletionUnavailable on the
        first task; failing at load time gives a clear message instead.
        """
        if not self.engines:
            raise ValueError("engines must not be empty: define at least one completion engine.")
        for role in ("default_engine", "router_engine", "synthesis_engine"):
            name = getattr(self, role)
            if name not in self.engines:
                raise ValueError(
                    f"{role}={name!r} is not a configured engine. "
                    f"Known engines: {sorted(self.engines)}"
                )
        return self


# Default: one local Ollama model for every role.
DEFAULT_CONFIG = CrewConfig(
    engines={
        "Ollama": EngineConfig(
            backend="ollama",
            base_url="http://localhost:11434/v1",
            model="qwen2.5:7b",
        ),
    },
    default_engine="Ollama",
    router_engine="Ollama",
    synthesis_engine="Ollama",
)
