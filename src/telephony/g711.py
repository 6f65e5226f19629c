from __future__ import annotations

import math

import numpy as np

ULAW_BIAS = 0x84  # 132
ULAW_CLIP = 0x7FFF
ULAW_SILENCE = 0xFF
SAMPLE_RATE = 8000


def ulaw_decode(ulaw_bytes: bytes) -> np.ndarray:
    """Decode G.711 mu-law bytes to PCM16 int16 array (one sample per byte)."""

    data = np.frombuffer(ulaw_bytes, dtype=np.uint8)

    mu = np.bitwise_not(data).astype(np.int32)
    sign = np.bitwise_and(mu, 0x80)
    exponent = np.right_shift(np.bitwise_and(mu, 0x70), 4)
    mantissa = np.bitwise_and(mu, 0x0F)

    magnitude = ((mantissa << 3) + ULAW_BIAS) << exponent
    pcm = magnitude - ULAW_BIAS
    pcm = np.where(sign != 0, -pcm, pcm)

    return np.clip(pcm, -32768, 32767).astype(np.int16)


def linear_to_ulaw(sample: int) -> int:
    """Encode a single PCM16 sample to a mu-law byte value."""

    sample = max(-32768, min(32767, int(sample)))

    sign = (sample >> 8) & 0x80
    if sign:
        sample = -sample
    sample = min(sample + ULAW_BIAS, ULAW_CLIP)

    exponent = 7
    exp_mask = 0x4000
    while (sample & exp_mask) == 0 and exponent > 0:
        exponent -= 1
        exp_mask >>= 1

    mantissa = (sample >> (exponent + 3)) & 0x0F
    return ~(sign | (exponent << 4) | mantissa) & 0xFF


def float_to_ulaw(sample: float) -> int:
    """Encode a float sample in [-1, 1] to a mu-law byte value."""

    return linear_to_ulaw(round(max(-1.0, min(1.0, sample)) * 32767))


def ulaw_encode(pcm16: np.ndarray) -> bytes:
    """Encode PCM16 int16 array to G.711 mu-law bytes.

    Vectorized form of :func:`linear_to_ulaw`; both produce identical bytes.
    """

    if pcm16.size == 0:
        return b""

    x = np.clip(pcm16.astype(np.int32), -32768, 32767)
    sign = np.where(x < 0, 0x80, 0).astype(np.int32)
    x = np.minimum(np.abs(x) + ULAW_BIAS, ULAW_CLIP)

    # Highest set bit among 7..14 selects the segment; anything below is segment 0.
    exponent = np.zeros_like(x)
    for exp in range(1, 8):
        exponent = np.where(x >= (1 << (exp + 7)), exp, exponent)

    mantissa = (x >> (exponent + 3)) & 0x0F

    ulaw = np.bitwise_and(np.bitwise_not(sign | (exponent << 4) | mantissa), 0xFF).astype(np.uint8)
    return ulaw.tobytes()


def ulaw_silence(duration_ms: int, sample_rate: int = SAMPLE_RATE) -> bytes:
    samples = round(sample_rate * (duration_ms / 1000))
    return bytes([ULAW_SILENCE]) * samples


def ulaw_tone(duration_ms: int, freq_hz: float, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Generate a sine tone at roughly -6 dBFS as mu-law bytes."""

    samples = round(sample_rate * (duration_ms / 1000))
    return bytes(
        linear_to_ulaw(round(math.sin(2 * math.pi * freq_hz * i / sample_rate) * 0.5 * 32767))
        for i in range(samples)
    )
