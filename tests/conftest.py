from __future__ import annotations

import asyncio
import base64
import json
import os
import sys
import time
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from agents.errors import SynthesisFailedError, TranscriptionFailedError  # noqa: E402
from speech.backend import SpeechBackend  # noqa: E402


class FakeBackend(SpeechBackend):
    """Records calls and tracks how many are in flight at once."""

    def __init__(self) -> None:
        self.transcript = "hello there"
        self.audio = b"\x00" * 320
        self.delay = 0.0
        self.fail_transcribe = False
        self.fail_synthesize = False
        self.transcribe_calls: list[bytes] = []
        self.synthesize_calls: list[str] = []
        self.active_transcriptions = 0
        self.max_active_transcriptions = 0
        self.completed_transcriptions = 0

    async def transcribe(self, wav_bytes: bytes) -> str:
        self.transcribe_calls.append(wav_bytes)
        self.active_transcriptions += 1
        self.max_active_transcriptions = max(self.max_active_transcriptions, self.active_transcriptions)
        try:
            await asyncio.sleep(self.delay)
            if self.fail_transcribe:
                raise TranscriptionFailedError("backend returned 500")
            return self.transcript
        finally:
            self.active_transcriptions -= 1
            self.completed_transcriptions += 1

    async def synthesize(self, text: str) -> bytes:
        self.synthesize_calls.append(text)
        if self.fail_synthesize:
            raise SynthesisFailedError("backend returned 500")
        return self.audio


class FakeTransport:
    def __init__(self, close_after: int | None = None) -> None:
        self.open = True
        self.close_after = close_after
        self.sent: list[dict] = []
        self.sent_at: list[float] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))
        self.sent_at.append(time.monotonic())
        if self.close_after is not None and len(self.sent) >= self.close_after:
            self.open = False

    def media_frames(self) -> list[bytes]:
        return [
            base64.b64decode(message["media"]["payload"])
            for message in self.sent
            if message["event"] == "media"
        ]

    def marks(self) -> list[str]:
        return [message["mark"]["name"] for message in self.sent if message["event"] == "mark"]


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(scope="session")
def app():
    os.environ["GREETING_MODE"] = "none"
    os.environ["ACK_MEDIA"] = "true"
    os.environ["ENVIRONMENT"] = "local"

    import importlib

    for module_name in [
        "config.settings",
        "api.dependencies",
        "api.routes",
        "api.twilio_routes",
        "main",
    ]:
        sys.modules.pop(module_name, None)

    main = importlib.import_module("main")
    return main.app
