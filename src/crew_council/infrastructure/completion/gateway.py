"""Engine-addressed completion gateway.

``complete(engine_id, prompt)`` looks the engine up in a fixed table and calls
its backend under a wall-clock bound.  Every failure mode (unknown engine,
transport or HTTP error, malformed body, timeout) surfaces as
``CompletionUnavailable`` so callers handle exactly one error type.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping

import httpx

from crew_council.application.ports import CompletionBackend
from crew_council.config.constants import COMPLETION_WAIT_TIMEOUT_S
from crew_council.domain import CompletionUnavailable
from crew_council.infrastructure.telemetry import get_tracer

logger = logging.getLogger(__name__)


class BackendGateway:
    """Satisfies the ``CompletionGateway`` port."""

    def __init__(
        self,
        backends: Mapping[str, CompletionBackend],
        *,
        timeout_s: float = COMPLETION_WAIT_TIMEOUT_S,
    ) -> None:
        self._backends: Dict[str, CompletionBackend] = dict(backends)
        self._timeout_s = timeout_s

    @property
    def engines(self) -> List[str]:
        return list(self._backends)

    async def complete(self, engine_id: str, prompt: str) -> str:
        backend = self._backends.get(engine_id)
        if backend is None:
            raise CompletionUnavailable(
                f"Unknown engine {engine_id!r}. Configured engines: {sorted(self._backends)}"
            )

        with get_tracer().start_as_current_span("crew.completion") as span:
            span.set_attribute("engine", engine_id)
            span.set_attribute("prompt_chars", len(prompt))
            try:
                text = await asyncio.wait_for(backend.complete(prompt), timeout=self._timeout_s)
            except asyncio.TimeoutError as exc:
                raise CompletionUnavailable(
                    f"Engine {engine_id!r} did not respond within {self._timeout_s:g}s"
                ) from exc
            except httpx.HTTPStatusError as exc:
                raise CompletionUnavailable(
                    f"Engine {engine_id!r} returned HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise CompletionUnavailable(
                    f"Engine {engine_id!r} unreachable: {exc}"
                ) from exc
            except CompletionUnavailable:
                raise
            except Exception as exc:  # noqa: BLE001
                raise CompletionUnavailable(f"Engine {engine_id!r} failed: {exc}") from exc
            span.set_attribute("response_chars", len(text))

        logger.debug("engine=%s completed (%d chars)", engine_id, len(text))
        return text
