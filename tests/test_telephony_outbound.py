from __future__ import annotations

import asyncio

from telephony.outbound import iter_frames, send_ulaw_frames


def test_iter_frames_pads_tail_with_ulaw_silence() -> None:
    frames = list(iter_frames(b"\x10" * 330))
    assert [len(f) for f in frames] == [160, 160, 160]
    assert frames[2] == b"\x10" * 10 + b"\xff" * 150


def test_iter_frames_exact_multiple_has_no_padding() -> None:
    frames = list(iter_frames(b"\x22" * 320))
    assert frames == [b"\x22" * 160, b"\x22" * 160]
    assert list(iter_frames(b"")) == []


def test_frames_are_paced_at_real_time(transport) -> None:
    audio = bytes(range(160)) * 20  # 3200 bytes, 20 frames

    sent = asyncio.run(send_ulaw_frames(transport, "MZ1", audio))

    assert sent == 20
    assert transport.media_frames() == list(iter_frames(audio))
    assert transport.sent_at[-1] - transport.sent_at[0] >= 19 * 0.020
    first = transport.sent[0]
    assert first["event"] == "media"
    assert first["streamSid"] == "MZ1"
    assert first["track"] == "outbound"


def test_sending_stops_when_connection_closes(transport) -> None:
    transport.close_after = 5

    sent = asyncio.run(send_ulaw_frames(transport, "MZ1", b"\x00" * 3200, frame_ms=1))

    assert sent == 5
    assert len(transport.media_frames()) == 5


def test_sending_stops_when_session_not_live(transport) -> None:
    calls = {"n": 0}

    def is_live() -> bool:
        calls["n"] += 1
        return calls["n"] <= 3

    sent = asyncio.run(send_ulaw_frames(transport, "MZ1", b"\x00" * 3200, frame_ms=1, is_live=is_live))
    assert sent == 3
