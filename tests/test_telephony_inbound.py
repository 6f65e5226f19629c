from __future__ import annotations

import numpy as np

from telephony.inbound import InboundConfig, InboundPipeline

SILENT = np.zeros(160, dtype=np.int16)


def _voice(value: int) -> np.ndarray:
    return np.full(160, value, dtype=np.int16)


def test_all_silent_window_is_discarded() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=75, min_voiced_frames=4))

    results = [pipeline.push(SILENT, False, transcribing=False) for _ in range(75)]

    assert all(result is None for result in results)
    assert pipeline.frames_seen == 0
    assert pipeline.buffered_frames == 0


def test_window_with_enough_voice_flushes_only_voiced_samples() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=75, min_voiced_frames=4))

    flushed = []
    for i in range(75):
        voiced = i in {3, 10, 20, 30, 40}
        frame = _voice(1000 + i) if voiced else SILENT
        result = pipeline.push(frame, voiced, transcribing=False)
        if result is not None:
            flushed.append(result)

    assert len(flushed) == 1
    utterance = flushed[0]
    assert utterance.size == 5 * 160
    assert utterance[::160].tolist() == [1003, 1010, 1020, 1030, 1040]
    assert pipeline.frames_seen == 0
    assert pipeline.voiced_frames == 0


def test_below_minimum_voice_is_discarded() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=10, min_voiced_frames=4))
    for i in range(10):
        voiced = i < 3
        assert pipeline.push(_voice(2000) if voiced else SILENT, voiced, transcribing=False) is None
    assert pipeline.buffered_frames == 0


def test_flush_deferred_while_transcribing_keeps_accumulating() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=10, min_voiced_frames=2))

    for _ in range(15):
        assert pipeline.push(_voice(3000), True, transcribing=True) is None

    assert pipeline.frames_seen == 15
    assert pipeline.voiced_frames == 15

    utterance = pipeline.push(_voice(3000), True, transcribing=False)
    assert utterance is not None
    assert utterance.size == 16 * 160
    assert pipeline.frames_seen == 0


def test_utterance_copy_is_independent_of_buffer() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=2, min_voiced_frames=1))
    frame = _voice(500)
    pipeline.push(frame, True, transcribing=False)
    utterance = pipeline.push(frame, True, transcribing=False)
    assert utterance is not None
    frame[:] = 0
    assert int(utterance[0]) == 500


def test_buffer_cap_drops_oldest_while_transcribing() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=5, min_voiced_frames=1, max_utterance_frames=4))

    for i in range(10):
        pipeline.push(_voice(i), True, transcribing=True)

    assert pipeline.buffered_frames == 4
    assert pipeline.dropped_frames == 6

    utterance = pipeline.push(_voice(10), True, transcribing=False)
    assert utterance is not None
    assert utterance[::160].tolist() == [7, 8, 9, 10]


def test_buffer_cap_forces_early_flush() -> None:
    pipeline = InboundPipeline(InboundConfig(chunk_frames=75, min_voiced_frames=2, max_utterance_frames=5))

    results = [pipeline.push(_voice(900), True, transcribing=False) for _ in range(5)]

    assert results[:4] == [None] * 4
    assert results[4] is not None
    assert results[4].size == 5 * 160
