from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from typing import Final, Protocol

from integrations.twilio_streaming import media_message
from telephony.g711 import ULAW_SILENCE

LOGGER = logging.getLogger(__name__)

FRAME_MS: Final[int] = 20
FRAME_BYTES: Final[int] = 160


class MediaTransport(Protocol):
    """The outbound half of a media-stream connection."""

    @property
    def is_open(self) -> bool:  # pragma: no cover - protocol stub
        ...

    async def send_text(self, text: str) -> None:  # pragma: no cover - protocol stub
        ...


def iter_frames(audio: bytes, frame_bytes: int = FRAME_BYTES) -> Iterator[bytes]:
    """Slice mu-law audio into fixed frames, padding the tail with mu-law silence."""

    for offset in range(0, len(audio), frame_bytes):
        frame = audio[offset : offset + frame_bytes]
        if len(frame) < frame_bytes:
            frame = frame + bytes([ULAW_SILENCE]) * (frame_bytes - len(frame))
        yield frame


async def send_ulaw_frames(
    transport: MediaTransport,
    stream_sid: str,
    audio: bytes,
    *,
    frame_bytes: int = FRAME_BYTES,
    frame_ms: int = FRAME_MS,
    is_live: Callable[[], bool] | None = None,
) -> int:
    """Send mu-law audio as paced ``media`` frames.

    Each frame is followed by one frame duration of sleep so playback runs at
    wall-clock rate. Stops before the next frame once the transport closes or
    ``is_live`` turns false.

    Returns:
        Number of frames sent.
    """

    frames_sent = 0
    for frame in iter_frames(audio, frame_bytes):
        if not transport.is_open or (is_live is not None and not is_live()):
            break
        await transport.send_text(media_message(stream_sid, frame))
        frames_sent += 1
        await asyncio.sleep(frame_ms / 1000)

    LOGGER.info(
        "Outbound stream=%s framesSent=%s (~%sms)", stream_sid, frames_sent, frames_sent * frame_ms
    )
    return frames_sent
