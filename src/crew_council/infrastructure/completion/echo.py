"""Offline completion backend for local development and demos."""

from __future__ import annotations

from typing import Optional


class EchoBackend:
    """Answers without a model: a fixed ``reply`` when set, else the prompt itself."""

    def __init__(self, reply: Optional[str] = None) -> None:
        self._reply = reply

    async def complete(self, prompt: str) -> str:
        if self._reply is not None:
            return self._reply
        return prompt.strip() or "(empty prompt)"
