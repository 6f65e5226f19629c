"""Minimal RIFF/WAVE container helpers for backend uploads and replies."""

from __future__ import annotations

import struct
import wave
from collections.abc import Iterator
from dataclasses import dataclass
from io import BytesIO

import numpy as np

WAVE_FORMAT_PCM = 1
WAVE_FORMAT_MULAW = 7

_CHUNK_HEADER = struct.Struct("<4sI")


@dataclass(frozen=True, slots=True)
class WavFormat:
    format_tag: int
    channels: int
    sample_rate: int
    bits_per_sample: int


def wrap_wav(
    samples: np.ndarray,
    sample_rate: int,
    channels: int = 1,
    bits_per_sample: int = 16,
) -> bytes:
    """Package 16-bit PCM samples as a canonical WAV file (44-byte header + data).

    Samples are rescaled to ``bits_per_sample``: 8-bit is unsigned with a 128
    offset, 24 and 32-bit are signed little-endian.

    Raises:
        ValueError: for bit depths other than 8, 16, 24 or 32.
    """

    if bits_per_sample not in (8, 16, 24, 32):
        raise ValueError(f"Unsupported bit depth: {bits_per_sample}")
    pcm = np.clip(np.asarray(samples, dtype=np.int32), -32768, 32767)

    buffer = BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(bits_per_sample // 8)
        wf.setframerate(sample_rate)
        wf.writeframes(_pcm16_to_width(pcm, bits_per_sample))
    return buffer.getvalue()


def _pcm16_to_width(pcm: np.ndarray, bits_per_sample: int) -> bytes:
    if bits_per_sample == 8:
        return ((pcm >> 8) + 128).astype(np.uint8).tobytes()
    if bits_per_sample == 16:
        return pcm.astype("<i2").tobytes()
    if bits_per_sample == 24:
        # Low three bytes of each little-endian int32.
        wide = (pcm << 8).astype("<i4").view(np.uint8).reshape(-1, 4)
        return wide[:, :3].tobytes()
    return (pcm << 16).astype("<i4").tobytes()


def is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[0:4] == b"RIFF" and data[8:12] == b"WAVE"


def _iter_chunks(data: bytes) -> Iterator[tuple[bytes, bytes]]:
    offset = 12
    while offset + _CHUNK_HEADER.size <= len(data):
        chunk_id, size = _CHUNK_HEADER.unpack_from(data, offset)
        start = offset + _CHUNK_HEADER.size
        # Streaming encoders may leave a placeholder size; clamp to what we have.
        end = min(start + size, len(data))
        yield chunk_id, data[start:end]
        offset = start + size + (size & 1)


def unwrap_wav_if_present(data: bytes) -> bytes:
    """Return the ``data`` chunk payload of a WAV container, or ``data`` unchanged.

    Raises:
        ValueError: if the input is a WAV container without a data chunk.
    """

    if not is_wav(data):
        return data

    for chunk_id, payload in _iter_chunks(data):
        if chunk_id == b"data":
            return payload

    raise ValueError("WAV container has no data chunk")


def read_wav_format(data: bytes) -> WavFormat | None:
    if not is_wav(data):
        return None

    for chunk_id, payload in _iter_chunks(data):
        if chunk_id == b"fmt " and len(payload) >= 16:
            format_tag, channels, sample_rate, _byte_rate, _align, bits = struct.unpack_from(
                "<HHIIHH", payload
            )
            return WavFormat(
                format_tag=format_tag,
                channels=channels,
                sample_rate=sample_rate,
                bits_per_sample=bits,
            )
    return None
