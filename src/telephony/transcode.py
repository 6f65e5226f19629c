"""Normalize synthesized speech to the 8kHz mu-law the media stream carries."""

from __future__ import annotations

import io
import logging

import numpy as np
import soundfile as sf

from telephony.g711 import SAMPLE_RATE, ulaw_encode
from telephony.wav import WAVE_FORMAT_MULAW, is_wav, read_wav_format, unwrap_wav_if_present

LOGGER = logging.getLogger(__name__)


def pcm16_resample(pcm: np.ndarray, src_rate: int, dst_rate: int) -> np.ndarray:
    if src_rate == dst_rate:
        return pcm
    if pcm.size == 0:
        return pcm.astype(np.int16)

    x_old = np.arange(pcm.size, dtype=np.float32)
    x_new = np.linspace(0, pcm.size - 1, int(pcm.size * dst_rate / src_rate), dtype=np.float32)

    y_old = pcm.astype(np.float32)
    y_new = np.interp(x_new, x_old, y_old)

    return np.clip(y_new, -32768, 32767).astype(np.int16)


def synthesized_to_ulaw(audio: bytes) -> bytes:
    """Convert a synthesis reply to raw mu-law @ 8kHz.

    Raw bytes are taken to be mu-law already. WAV containers that hold 8kHz
    mono mu-law are unwrapped; any other WAV is decoded and re-encoded.
    """

    if not is_wav(audio):
        return audio

    fmt = read_wav_format(audio)
    if (
        fmt is not None
        and fmt.format_tag == WAVE_FORMAT_MULAW
        and fmt.sample_rate == SAMPLE_RATE
        and fmt.channels == 1
    ):
        return unwrap_wav_if_present(audio)

    with sf.SoundFile(io.BytesIO(audio), mode="r") as f:
        samples = f.read(dtype="float32")
        src_rate = int(f.samplerate)

    if isinstance(samples, np.ndarray) and samples.ndim > 1:
        samples = np.mean(samples, axis=1)

    pcm = np.clip(samples * 32767.0, -32768, 32767).astype(np.int16)
    pcm = pcm16_resample(pcm, src_rate, SAMPLE_RATE)
    LOGGER.debug("Transcoded %s samples @ %sHz to mu-law", pcm.size, src_rate)
    return ulaw_encode(pcm)
