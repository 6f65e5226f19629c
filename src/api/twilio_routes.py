"""Twilio Media Streams WebSocket endpoint.

One connection carries one call. Each connection gets its own
:class:`~telephony.session.CallSession`; this module only moves text frames
between the socket and the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from agents.responder import BaseResponder
from api.dependencies import get_responder_factory, get_session_config, get_speech_backend
from speech.backend import SpeechBackend
from telephony.session import CallSession, SessionConfig

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["twilio"])


class WebSocketTransport:
    """Outbound side of a media-stream socket with serialized sends."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._websocket.client_state is WebSocketState.CONNECTED
            and self._websocket.application_state is WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self._closed = True

    async def send_text(self, text: str) -> None:
        async with self._lock:
            if not self.is_open:
                return
            try:
                await self._websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError) as exc:
                LOGGER.info("Media stream send failed, closing transport: %s", exc)
                self._closed = True


@router.websocket("/stream")
async def twilio_media_stream(
    websocket: WebSocket,
    backend: SpeechBackend = Depends(get_speech_backend),
    responder_factory: Callable[[], BaseResponder] = Depends(get_responder_factory),
    session_config: SessionConfig = Depends(get_session_config),
) -> None:
    await websocket.accept()
    LOGGER.info("Media stream connected from %s", websocket.client)

    transport = WebSocketTransport(websocket)
    session = CallSession(transport, backend, responder_factory(), session_config)
    async with session:
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    LOGGER.debug("Dropping binary frame on media stream")
                    continue
                session.feed(text)
        finally:
            transport.mark_closed()

    LOGGER.info("Media stream disconnected stream=%s", session.stream_sid)
