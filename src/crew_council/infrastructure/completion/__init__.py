"""Completion backends and the engine-addressed gateway.

Backends are selected by ``EngineConfig.backend`` through ``_BUILDERS``.  To add
a backend, register its factory there.
"""

from __future__ import annotations

from typing import Callable, Dict

from crew_council.application.ports import CompletionBackend
from crew_council.config.schema import CrewConfig, EngineConfig

from .echo import EchoBackend
from .gateway import BackendGateway
from .openai_compat import OllamaBackend, OpenAICompatibleBackend, parse_completion_text


def _http_kwargs(cfg: EngineConfig) -> dict:
    return dict(
        api_key=cfg.api_key,
        system_prompt=cfg.system_prompt,
        temperature=cfg.temperature,
        max_tokens=cfg.max_tokens,
        timeout_s=cfg.timeout_s,
    )


_BUILDERS: Dict[str, Callable[[EngineConfig], CompletionBackend]] = {
    "ollama": lambda cfg: OllamaBackend(cfg.base_url, cfg.model, **_http_kwargs(cfg)),
    "openai": lambda cfg: OpenAICompatibleBackend(cfg.base_url, cfg.model, **_http_kwargs(cfg)),
    "echo": lambda cfg: EchoBackend(reply=cfg.reply),
}


def build_backend(engine_config: EngineConfig) -> CompletionBackend:
    """Return the ``CompletionBackend`` for *engine_config*.

    Raises:
        ValueError: For unknown backend values.
    """
    builder = _BUILDERS.get(engine_config.backend)
    if builder is None:
        raise ValueError(
            f"Unknown completion backend {engine_config.backend!r}. "
            f"Supported backends: {', '.join(sorted(_BUILDERS))}."
        )
    return builder(engine_config)


def build_gateway(config: CrewConfig) -> BackendGateway:
    """One backend per configured engine, behind a single gateway."""
    backends = {name: build_backend(cfg) for name, cfg in config.engines.items()}
    return BackendGateway(backends, timeout_s=config.completion_timeout_s)


__all__ = [
    "BackendGateway",
    "EchoBackend",
    "OllamaBackend",
    "OpenAICompatibleBackend",
    "build_backend",
    "build_gateway",
    "parse_completion_text",
]
