"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # HTTP listener
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10000)

    # Speech backend (OpenAI-compatible audio endpoints)
    speech_backend_url: str = Field(
        default="https://api.openai.com",
        description="Base URL serving /v1/audio/transcriptions and /v1/audio/speech.",
    )
    speech_api_key: str | None = Field(default=None)
    stt_model: str = Field(default="whisper-1")
    tts_model: str = Field(default="tts-1")
    tts_voice: str = Field(default="alloy")
    tts_response_format: str = Field(
        default="wav",
        description="Requested synthesis format. Use a mu-law 8kHz format where the backend offers one.",
    )
    backend_timeout_seconds: float = Field(default=15.0, gt=0.0)
    backend_max_retries: int = Field(default=1, ge=0, le=5)
    backend_retry_backoff_seconds: float = Field(default=0.25, ge=0.0)

    # Reply logic
    reply_mode: Literal["echo", "llm"] = Field(default="echo")
    llm_endpoint: str | None = Field(
        default=None, description="OpenAI-compatible base URL for chat completions."
    )
    llm_api_key: str | None = Field(default=None)
    llm_model: str = Field(default="gpt-4o-mini")
    llm_system_prompt: str = Field(
        default="You are a friendly phone assistant. Answer in one or two short sentences."
    )

    # Media pipeline
    frame_bytes: int = Field(default=160, description="Bytes per 20ms mu-law frame at 8kHz.")
    frame_ms: int = Field(default=20)
    vad_min_rms: float = Field(default=250.0, ge=0.0)
    chunk_frames: int = Field(default=75, ge=1, description="Flush attempt window (75 frames = 1.5s).")
    min_voiced_frames: int = Field(default=4, ge=1)
    max_utterance_seconds: float = Field(
        default=15.0,
        gt=0.0,
        description="Upper bound on buffered speech while a transcription is in flight.",
    )
    keepalive_seconds: float = Field(default=15.0, gt=0.0)
    ack_media: bool = Field(
        default=False,
        description="If true, answers each inbound media event with an ack_<seq> mark.",
    )

    # Greeting
    greeting_mode: Literal["speech", "tone", "none"] = Field(default="speech")
    greeting_text: str = Field(default="Hello, how can I help you?")
    greeting_delay_ms: int = Field(default=250, ge=0)

    @field_validator("speech_backend_url", "llm_endpoint")
    @classmethod
    def strip_trailing_slash(cls, value: str | None) -> str | None:
        if value is None:
            return value
        return value.rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
