"""OpenAI-compatible completion backends.

Both backends send one user message (plus an optional system message) to
``POST {base_url}/chat/completions`` and return the assistant text.

- ``OpenAICompatibleBackend``: bare client for hosted providers; any non-2xx
  raises ``httpx.HTTPStatusError`` without retrying.
- ``OllamaBackend``: same wire format, but retries once with a minimal payload
  when the server answers 400, which older Ollama versions do for unknown
  top-level sampling parameters.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx

from crew_council.config.constants import COMPLETION_HTTP_TIMEOUT_S

logger = logging.getLogger(__name__)


def parse_completion_text(data: Dict[str, Any]) -> str:
    """Extract the assistant text from a chat-completions response body.

    Raises ``ValueError`` when the body has no usable text.
    """
    try:
        message = data["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError(f"Malformed completion response: {exc!r}") from exc
    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValueError("Completion response contained no text")
    return content.strip()


class OpenAICompatibleBackend:
    """Completion backend for any server implementing ``/chat/completions``."""

    def __init__(
        self,
        base_url: str,
        model: str,
        *,
        api_key: str = "",
        system_prompt: str = "",
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout_s: float = COMPLETION_HTTP_TIMEOUT_S,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout_s

    @property
    def model(self) -> str:
        return self._model

    def _headers(self) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _messages(self, prompt: str) -> List[Dict[str, str]]:
        messages = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self._model,
            "messages": self._messages(prompt),
            "stream": False,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }

    async def complete(self, prompt: str) -> str:
        url = f"{self._base_url}/chat/completions"
        logger.debug("POST %s model=%s prompt_chars=%d", url, self._model, len(prompt))
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
            r = await client.post(url, headers=self._headers(), json=self._payload(prompt))
            r.raise_for_status()
            return parse_completion_text(r.json())


class OllamaBackend(OpenAICompatibleBackend):
    """OpenAI-compatible backend with the Ollama minimal-payload retry on HTTP 400."""

    async def complete(self, prompt: str) -> str:
        url = f"{self._base_url}/chat/completions"
        headers = self._headers()
        logger.debug("POST %s model=%s prompt_chars=%d", url, self._model, len(prompt))
        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout)) as client:
            r = await client.post(url, headers=headers, json=self._payload(prompt))
            if r.status_code == 400:
                logger.debug("Ollama returned 400; retrying with minimal payload")
                minimal = {"model": self._model, "messages": self._messages(prompt), "stream": False}
                r = await client.post(url, headers=headers, json=minimal)
            r.raise_for_status()
            return parse_completion_text(r.json())
