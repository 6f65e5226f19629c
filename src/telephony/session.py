from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Literal

import numpy as np

from agents.errors import RelayError
from agents.responder import BaseResponder, EchoResponder
from integrations.twilio_streaming import (
    MarkEvent,
    MediaEvent,
    StartEvent,
    StopEvent,
    mark_message,
    parse_twilio_ws_message,
)
from telephony.g711 import SAMPLE_RATE, ulaw_decode, ulaw_silence, ulaw_tone
from telephony.inbound import InboundConfig, InboundPipeline
from telephony.outbound import FRAME_BYTES, FRAME_MS, MediaTransport, send_ulaw_frames
from telephony.vad import DEFAULT_MIN_RMS, EnergyGate, GateConfig
from telephony.wav import wrap_wav

if TYPE_CHECKING:  # pragma: no cover
    from config.settings import Settings
    from speech.backend import SpeechBackend

LOGGER = logging.getLogger(__name__)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass(slots=True)
class SessionConfig:
    frame_bytes: int = FRAME_BYTES
    frame_ms: int = FRAME_MS
    sample_rate: int = SAMPLE_RATE
    vad_min_rms: float = DEFAULT_MIN_RMS
    chunk_frames: int = 75
    min_voiced_frames: int = 4
    max_utterance_frames: int = 750
    keepalive_seconds: float = 15.0
    greeting_mode: Literal["speech", "tone", "none"] = "speech"
    greeting_text: str = "Hello, how can I help you?"
    greeting_delay_ms: int = 250
    ack_media: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionConfig:
        max_frames = int(settings.max_utterance_seconds * 1000 / settings.frame_ms)
        return cls(
            frame_bytes=settings.frame_bytes,
            frame_ms=settings.frame_ms,
            vad_min_rms=settings.vad_min_rms,
            chunk_frames=settings.chunk_frames,
            min_voiced_frames=settings.min_voiced_frames,
            max_utterance_frames=max(max_frames, settings.min_voiced_frames),
            keepalive_seconds=settings.keepalive_seconds,
            greeting_mode=settings.greeting_mode,
            greeting_text=settings.greeting_text,
            greeting_delay_ms=settings.greeting_delay_ms,
            ack_media=settings.ack_media,
        )


@dataclass(frozen=True, slots=True)
class TranscriptionDone:
    text: str | None


@dataclass(frozen=True, slots=True)
class SynthesisDone:
    label: str


_STOP = object()


class CallSession:
    """Per-call relay between a media stream and the speech backend.

    Inbound messages and backend completions go through one queue with a
    single consumer task, which is the only place session state changes.
    Transcription and reply playback run as separate tasks so frames keep
    flowing; each reports back by posting a completion event. At most one
    transcription and one synthesis are in flight at any time.
    """

    def __init__(
        self,
        transport: MediaTransport,
        backend: SpeechBackend,
        responder: BaseResponder | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self.config = config or SessionConfig()
        self._transport = transport
        self._backend = backend
        self._responder = responder or EchoResponder()

        self.state = SessionState.CONNECTING
        self.stream_sid: str | None = None
        self.call_sid: str | None = None
        self.transcribing = False
        self.synthesizing = False

        self._gate = EnergyGate(GateConfig(min_rms=self.config.vad_min_rms))
        self.inbound = InboundPipeline(
            InboundConfig(
                chunk_frames=self.config.chunk_frames,
                min_voiced_frames=self.config.min_voiced_frames,
                max_utterance_frames=self.config.max_utterance_frames,
            )
        )

        self._events: asyncio.Queue[object] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._keepalive: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    async def __aenter__(self) -> CallSession:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self._consume(), name="call-session")

    def feed(self, text: str) -> None:
        """Queue one raw inbound message for in-order processing."""

        if self.state is not SessionState.CLOSED:
            self._events.put_nowait(text)

    async def close(self) -> None:
        """Close the session; pending backend calls finish but are ignored."""

        self._shutdown()
        consumer = self._consumer
        if consumer is not None and consumer is not asyncio.current_task():
            await consumer
        keepalive = self._keepalive
        if keepalive is not None and keepalive is not asyncio.current_task():
            await asyncio.gather(keepalive, return_exceptions=True)

    def _shutdown(self) -> None:
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.CLOSED
        if self._keepalive is not None:
            self._keepalive.cancel()
        self._events.put_nowait(_STOP)
        LOGGER.info("Session closed stream=%s call=%s", self.stream_sid, self.call_sid)

    def _is_live(self) -> bool:
        return self.state is SessionState.STREAMING and self._transport.is_open

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> None:
        task = asyncio.create_task(coro, name=f"{name}:{self.stream_sid}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _consume(self) -> None:
        while True:
            item = await self._events.get()
            if item is _STOP:
                return
            try:
                await self._handle(item)
            except Exception:
                LOGGER.exception("Session stream=%s failed to handle event", self.stream_sid)

    async def _handle(self, item: object) -> None:
        if isinstance(item, TranscriptionDone):
            self._on_transcription_done(item)
            return
        if isinstance(item, SynthesisDone):
            self.synthesizing = False
            return

        event = parse_twilio_ws_message(item)  # type: ignore[arg-type]
        if event is None:
            LOGGER.debug("Dropping malformed media-stream message")
            return

        if isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, MediaEvent):
            await self._on_media(event)
        elif isinstance(event, StopEvent):
            LOGGER.info("Stop received stream=%s", self.stream_sid)
            self._shutdown()
        elif isinstance(event, MarkEvent):
            LOGGER.debug("Mark acknowledged stream=%s mark=%s", self.stream_sid, event.mark.get("name"))
        else:
            LOGGER.info("Ignoring %s event stream=%s", event.event, self.stream_sid)

    def _on_start(self, event: StartEvent) -> None:
        if self.state is not SessionState.CONNECTING:
            LOGGER.debug("Ignoring start in state %s", self.state.value)
            return
        stream_sid = event.resolved_stream_sid
        if not stream_sid:
            LOGGER.warning("Start event without streamSid; ignoring")
            return

        self.stream_sid = stream_sid
        self.call_sid = event.start.call_sid or None
        self.state = SessionState.STREAMING
        LOGGER.info("Stream started stream=%s call=%s", self.stream_sid, self.call_sid)

        self._keepalive = asyncio.create_task(self._keepalive_loop(), name=f"keepalive:{stream_sid}")
        if self.config.greeting_mode != "none":
            self._start_speaking(self._greeting, "greeting")

    async def _on_media(self, event: MediaEvent) -> None:
        if self.state is not SessionState.STREAMING:
            return
        if event.media.track != "inbound":
            return

        pcm = ulaw_decode(event.media.payload)
        for i in range(0, pcm.size, self.config.frame_bytes):
            frame = pcm[i : i + self.config.frame_bytes]
            voiced = self._gate.is_voiced(frame)
            utterance = self.inbound.push(frame, voiced, transcribing=self.transcribing)
            if utterance is not None:
                self._start_transcription(utterance)

        if self.config.ack_media and event.sequence_number is not None:
            await self._send(mark_message(self.stream_sid, f"ack_{event.sequence_number}"))

    def _start_transcription(self, utterance: np.ndarray) -> None:
        self.transcribing = True
        wav = wrap_wav(utterance, self.config.sample_rate)
        LOGGER.info(
            "Flushing utterance stream=%s samples=%s (~%sms)",
            self.stream_sid,
            utterance.size,
            utterance.size * 1000 // self.config.sample_rate,
        )
        self._spawn(self._transcribe(wav), "transcribe")

    async def _transcribe(self, wav: bytes) -> None:
        text: str | None = None
        try:
            text = await self._backend.transcribe(wav)
        except RelayError as exc:
            LOGGER.warning("Transcription failed stream=%s: %s", self.stream_sid, exc.detail)
        except Exception:
            LOGGER.exception("Transcription failed stream=%s", self.stream_sid)
        finally:
            self._events.put_nowait(TranscriptionDone(text))

    def _on_transcription_done(self, done: TranscriptionDone) -> None:
        self.transcribing = False
        if self.state is not SessionState.STREAMING:
            return
        if not done.text:
            return

        LOGGER.info("Transcript stream=%s: %s", self.stream_sid, done.text)
        text = done.text
        self._start_speaking(lambda: self._reply(text), "reply")

    def _start_speaking(self, produce: Callable[[], Awaitable[bytes | None]], label: str) -> None:
        if self.synthesizing:
            LOGGER.info("Synthesis in flight stream=%s; dropping %s", self.stream_sid, label)
            return
        self.synthesizing = True
        self._spawn(self._speak(produce, label), label)

    async def _speak(self, produce: Callable[[], Awaitable[bytes | None]], label: str) -> None:
        try:
            audio = await produce()
            if audio and self._is_live():
                await send_ulaw_frames(
                    self._transport,
                    self.stream_sid,
                    audio,
                    frame_bytes=self.config.frame_bytes,
                    frame_ms=self.config.frame_ms,
                    is_live=self._is_live,
                )
        except RelayError as exc:
            LOGGER.warning("%s failed stream=%s: %s", label.capitalize(), self.stream_sid, exc.detail)
        except Exception:
            LOGGER.exception("%s failed stream=%s", label.capitalize(), self.stream_sid)
        finally:
            self._events.put_nowait(SynthesisDone(label))

    async def _reply(self, transcript: str) -> bytes | None:
        text = await self._responder.reply(transcript)
        if not text or not self._is_live():
            return None
        return await self._backend.synthesize(text)

    async def _greeting(self) -> bytes | None:
        await asyncio.sleep(self.config.greeting_delay_ms / 1000)
        if not self._is_live():
            return None
        if self.config.greeting_mode == "tone":
            # Diagnostic: known-good silence then a 440Hz tone, no backend needed.
            return ulaw_silence(2000) + ulaw_tone(1000, 440)
        return await self._backend.synthesize(self.config.greeting_text)

    async def _keepalive_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.config.keepalive_seconds)
                if not self._is_live():
                    return
                await self._send(mark_message(self.stream_sid, "keepalive"))
        except Exception:
            LOGGER.exception("Keepalive failed stream=%s", self.stream_sid)

    async def _send(self, text: str) -> None:
        if self._transport.is_open:
            await self._transport.send_text(text)
