"""Domain-specific exceptions for relay backend operations.

These exceptions are safe to import from API layers without touching network clients.
"""

from __future__ import annotations


class RelayError(Exception):
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class TranscriptionFailedError(RelayError):
    default_detail = "Transcription failed."


class SynthesisFailedError(RelayError):
    default_detail = "Speech synthesis failed."


class ReplyFailedError(RelayError):
    default_detail = "Reply generation failed."
