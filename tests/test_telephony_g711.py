from __future__ import annotations

import numpy as np

from telephony.g711 import (
    float_to_ulaw,
    linear_to_ulaw,
    ulaw_decode,
    ulaw_encode,
    ulaw_silence,
    ulaw_tone,
)


def _reference_ulaw2linear(byte: int) -> int:
    # ITU-T G.711 reference expansion.
    u = ~byte & 0xFF
    t = ((u & 0x0F) << 3) + 0x84
    t <<= (u & 0x70) >> 4
    return (0x84 - t) if (u & 0x80) else (t - 0x84)


def test_ulaw_decode_matches_reference_table() -> None:
    decoded = ulaw_decode(bytes(range(256)))
    assert decoded.dtype == np.int16
    assert decoded.shape == (256,)
    assert decoded.tolist() == [_reference_ulaw2linear(b) for b in range(256)]


def test_ulaw_decode_known_values() -> None:
    decoded = ulaw_decode(bytes([0x00, 0x0F, 0x7F, 0x80, 0xFE, 0xFF]))
    assert decoded.tolist() == [-32124, -16764, 0, 32124, 8, 0]


def test_encode_of_decoded_byte_is_identity() -> None:
    decoded = ulaw_decode(bytes(range(256)))
    for byte, sample in enumerate(decoded.tolist()):
        expected = 0xFF if byte == 0x7F else byte  # negative zero folds to positive zero
        assert linear_to_ulaw(sample) == expected


def test_vectorized_encode_matches_scalar_for_all_samples() -> None:
    pcm = np.arange(-32768, 32768, dtype=np.int32).astype(np.int16)
    vectorized = ulaw_encode(pcm)
    assert len(vectorized) == pcm.size
    assert vectorized == bytes(linear_to_ulaw(int(s)) for s in pcm)


def test_round_trip_error_within_one_quantization_step() -> None:
    rng = np.random.default_rng(7)
    pcm = rng.integers(-32768, 32767, size=4000, dtype=np.int16)
    restored = ulaw_decode(ulaw_encode(pcm)).astype(np.int32)
    error = np.abs(restored - pcm.astype(np.int32))
    step = (np.abs(pcm.astype(np.int32)) + 132) / 16
    assert np.all(error <= step + 1)


def test_round_trip_is_stable_after_first_pass() -> None:
    pcm = (np.sin(np.linspace(0, 2 * np.pi, 160, endpoint=False)) * 12000).astype(np.int16)
    once = ulaw_encode(pcm)
    twice = ulaw_encode(ulaw_decode(once))
    assert once == twice


def test_float_to_ulaw_extremes() -> None:
    assert float_to_ulaw(0.0) == 0xFF
    assert float_to_ulaw(1.0) == 0x80
    assert float_to_ulaw(-1.0) == 0x00
    assert float_to_ulaw(2.5) == float_to_ulaw(1.0)


def test_silence_and_tone_lengths() -> None:
    assert ulaw_silence(2000) == b"\xff" * 16000
    tone = ulaw_tone(1000, 440)
    assert len(tone) == 8000
    decoded = ulaw_decode(tone)
    # -6 dBFS peak
    assert 15000 < int(np.max(np.abs(decoded))) < 17000


def test_encode_empty() -> None:
    assert ulaw_encode(np.array([], dtype=np.int16)) == b""
