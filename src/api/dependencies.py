"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache, partial

from agents.responder import BaseResponder, build_responder
from config.settings import get_settings
from speech.backend import SpeechBackend, build_speech_backend
from telephony.session import SessionConfig


@lru_cache(maxsize=1)
def _backend_factory() -> SpeechBackend:
    return build_speech_backend()


def get_speech_backend() -> SpeechBackend:
    return _backend_factory()


def get_responder_factory() -> Callable[[], BaseResponder]:
    # Responders may hold per-call history, so each connection builds its own.
    return partial(build_responder, get_settings())


def get_session_config() -> SessionConfig:
    return SessionConfig.from_settings(get_settings())
