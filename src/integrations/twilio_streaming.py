"""Twilio Media Streams adapter over a FastAPI websocket."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from agents.errors import EventError
from telephony.events import TelephonyEvent, parse_telephony_event
from telephony.transports import MediaChannel

LOGGER = logging.getLogger(__name__)


class TwilioMediaChannel(MediaChannel):
    """Translate Twilio's JSON frames to telephony events and back."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._closed = False

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._ws.client_state == WebSocketState.CONNECTED
            and self._ws.application_state == WebSocketState.CONNECTED
        )

    async def events(self) -> AsyncIterator[TelephonyEvent]:
        try:
            while True:
                message = await self._ws.receive_text()
                try:
                    yield parse_telephony_event(message)
                except EventError as exc:
                    LOGGER.warning("Dropping Twilio frame: %s", exc.detail)
        except WebSocketDisconnect:
            LOGGER.info("Twilio websocket disconnected")
        finally:
            self._closed = True

    async def _send(self, frame: dict[str, Any]) -> None:
        if not self.is_open:
            LOGGER.debug("Twilio websocket closed; dropping %s frame", frame.get("event"))
            return
        await self._ws.send_json(frame)

    async def send_media(self, stream_id: str, payload: str) -> None:
        await self._send({"event": "media", "streamSid": stream_id, "media": {"payload": payload}})

    async def send_mark(self, stream_id: str, name: str) -> None:
        await self._send({"event": "mark", "streamSid": stream_id, "mark": {"name": name}})

    async def send_clear(self, stream_id: str) -> None:
        await self._send({"event": "clear", "streamSid": stream_id})

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if (
            self._ws.application_state == WebSocketState.CONNECTED
            and self._ws.client_state == WebSocketState.CONNECTED
        ):
            await self._ws.close()
