"""Speech backend clients: transcription (audio -> text) and synthesis (text -> audio)."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from agents.errors import RelayError, SynthesisFailedError, TranscriptionFailedError
from config.settings import Settings, get_settings
from telephony.transcode import synthesized_to_ulaw

LOGGER = logging.getLogger(__name__)


class SpeechBackend(ABC):
    """Interface the call session uses for speech recognition and synthesis."""

    @abstractmethod
    async def transcribe(self, wav_bytes: bytes) -> str:
        """Return the transcript of a WAV-wrapped utterance."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """Return speech for ``text`` as raw mu-law @ 8kHz."""


class HttpSpeechBackend(SpeechBackend):
    """Client for OpenAI-compatible ``/v1/audio`` endpoints.

    Every request carries an explicit timeout. Transport errors and 5xx
    responses are retried up to ``max_retries`` times with exponential
    backoff; any other failure is raised immediately.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._base_url = settings.speech_backend_url
        self._api_key = settings.speech_api_key
        self._stt_model = settings.stt_model
        self._tts_model = settings.tts_model
        self._tts_voice = settings.tts_voice
        self._tts_format = settings.tts_response_format
        self._timeout = httpx.Timeout(settings.backend_timeout_seconds)
        self._max_retries = settings.backend_max_retries
        self._backoff = settings.backend_retry_backoff_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _post(self, path: str, error: type[RelayError], **kwargs) -> httpx.Response:
        url = f"{self._base_url}{path}"
        attempt = 0
        while True:
            try:
                async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                    response = await client.post(url, headers=self._headers(), **kwargs)
                if response.status_code < 500 or attempt >= self._max_retries:
                    response.raise_for_status()
                    return response
                LOGGER.warning("%s returned %s, retrying", path, response.status_code)
            except httpx.HTTPStatusError as exc:
                raise error(f"{path} returned {exc.response.status_code}") from exc
            except httpx.TransportError as exc:
                if attempt >= self._max_retries:
                    raise error(f"{path} unreachable: {exc}") from exc
                LOGGER.warning("%s transport error (%s), retrying", path, exc)

            await asyncio.sleep(self._backoff * (2**attempt))
            attempt += 1

    async def transcribe(self, wav_bytes: bytes) -> str:
        response = await self._post(
            "/v1/audio/transcriptions",
            TranscriptionFailedError,
            files={"file": ("utterance.wav", wav_bytes, "audio/wav")},
            data={"model": self._stt_model},
        )
        try:
            return str(response.json()["text"]).strip()
        except (ValueError, KeyError, TypeError) as exc:
            raise TranscriptionFailedError("Transcription response has no text") from exc

    async def synthesize(self, text: str) -> bytes:
        response = await self._post(
            "/v1/audio/speech",
            SynthesisFailedError,
            json={
                "model": self._tts_model,
                "input": text,
                "voice": self._tts_voice,
                "response_format": self._tts_format,
            },
        )
        try:
            return synthesized_to_ulaw(response.content)
        except (RuntimeError, ValueError) as exc:
            # soundfile raises RuntimeError subclasses for undecodable audio.
            raise SynthesisFailedError(f"Unusable synthesis audio: {exc}") from exc


def build_speech_backend(settings: Settings | None = None) -> SpeechBackend:
    """Factory returning the configured speech backend."""

    return HttpSpeechBackend(settings or get_settings())
