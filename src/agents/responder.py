"""Reply logic sitting between transcription and synthesis."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List

import httpx

from agents.errors import ReplyFailedError
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


class BaseResponder(ABC):
    """Turns a caller transcript into the text spoken back, or None for silence."""

    @abstractmethod
    async def reply(self, transcript: str) -> str | None:
        """Return the reply text for a transcript."""


class EchoResponder(BaseResponder):
    async def reply(self, transcript: str) -> str | None:
        transcript = transcript.strip()
        return transcript or None


class ChatResponder(BaseResponder):
    """Chat-completions client for OpenAI-compatible servers.

    Keeps the conversation history of one call, so build one per session.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        if not settings.llm_endpoint:
            raise ValueError("LLM endpoint must be configured for reply_mode=llm.")

        self._endpoint = settings.llm_endpoint
        self._model = settings.llm_model
        self._api_key = settings.llm_api_key
        self._timeout = httpx.Timeout(settings.backend_timeout_seconds)
        self._transport = transport
        self._history: list[dict[str, str]] = [
            {"role": "system", "content": settings.llm_system_prompt}
        ]

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def reply(self, transcript: str) -> str | None:
        transcript = transcript.strip()
        if not transcript:
            return None

        messages = [*self._history, {"role": "user", "content": transcript}]
        payload = {
            "model": self._model,
            "messages": messages,
            "temperature": 0.3,
            "max_tokens": 200,
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._endpoint}/v1/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ReplyFailedError(f"Chat completion failed: {exc}") from exc

        choices: List[dict] = response.json().get("choices", [])
        if not choices:
            raise ReplyFailedError("LLM response contains no choices.")
        content = (choices[0].get("message") or {}).get("content") or ""

        # History only grows once the turn has an answer.
        self._history = [*messages, {"role": "assistant", "content": content}]
        return content.strip() or None


def build_responder(settings: Settings | None = None) -> BaseResponder:
    """Factory returning a fresh responder for one call."""

    settings = settings or get_settings()
    if settings.reply_mode == "echo":
        return EchoResponder()
    if settings.reply_mode == "llm":
        return ChatResponder(settings)
    raise ValueError(f"Unsupported reply_mode: {settings.reply_mode}")
