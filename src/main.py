"""Entry point for the media-stream speech relay service."""

from __future__ import annotations

import argparse
import logging

import uvicorn
from fastapi import FastAPI

from api.routes import router as health_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Media Stream Speech Relay",
    description="Relays Twilio Media Streams audio to speech backends and paces replies back.",
)
app.include_router(health_router)
app.include_router(twilio_router)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Media-stream speech relay")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    uvicorn.run(app, host=args.host, port=args.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
