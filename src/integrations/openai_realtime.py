"""OpenAI Realtime API session over a websocket."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from websockets.protocol import State

from agents.errors import EventError, RealtimeSessionError
from config.settings import get_settings
from telephony.events import RealtimeEvent, parse_realtime_event
from telephony.transports import RealtimeChannel

LOGGER = logging.getLogger(__name__)

AUDIO_FORMAT = "g711_ulaw"


def build_session_config(
    instructions: str,
    *,
    voice: str = "shimmer",
    temperature: float = 0.8,
    transcription_model: str = "whisper-1",
) -> dict[str, Any]:
    """Session settings for a telephone leg: mu-law both ways, server-side VAD."""

    return {
        "turn_detection": {"type": "server_vad"},
        "input_audio_format": AUDIO_FORMAT,
        "output_audio_format": AUDIO_FORMAT,
        "voice": voice,
        "instructions": instructions,
        "modalities": ["text", "audio"],
        "temperature": temperature,
        "input_audio_transcription": {"model": transcription_model},
    }


class OpenAIRealtimeSession(RealtimeChannel):
    """Thin JSON codec around a connected realtime websocket."""

    def __init__(self, ws) -> None:
        self._ws = ws

    @classmethod
    async def connect(cls, url: str, api_key: str) -> OpenAIRealtimeSession:
        try:
            ws = await websockets.connect(
                url,
                additional_headers={
                    "Authorization": f"Bearer {api_key}",
                    "OpenAI-Beta": "realtime=v1",
                },
                ping_interval=20,
                ping_timeout=20,
            )
        except (OSError, websockets.InvalidHandshake) as exc:
            raise RealtimeSessionError(f"Could not connect to realtime API: {exc}") from exc
        return cls(ws)

    @property
    def is_open(self) -> bool:
        return self._ws.state is State.OPEN

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        try:
            async for message in self._ws:
                try:
                    yield parse_realtime_event(message)
                except EventError as exc:
                    LOGGER.debug("Skipping realtime message: %s", exc.detail)
        except websockets.ConnectionClosed as exc:
            LOGGER.warning("Realtime websocket closed: %s", exc)

    async def send(self, event: dict[str, Any]) -> None:
        try:
            await self._ws.send(json.dumps(event))
        except websockets.ConnectionClosed as exc:
            raise RealtimeSessionError(f"Realtime websocket closed while sending {event.get('type')}") from exc

    async def send_session_update(self, session: dict) -> None:
        await self.send({"type": "session.update", "session": session})

    async def append_audio(self, payload: str) -> None:
        await self.send({"type": "input_audio_buffer.append", "audio": payload})

    async def truncate(self, item_id: str, content_index: int, audio_end_ms: int) -> None:
        await self.send(
            {
                "type": "conversation.item.truncate",
                "item_id": item_id,
                "content_index": content_index,
                "audio_end_ms": audio_end_ms,
            }
        )

    async def close(self) -> None:
        if self._ws.state in (State.CLOSING, State.CLOSED):
            return
        await self._ws.close()


async def connect_realtime_session() -> OpenAIRealtimeSession:
    settings = get_settings()
    if not settings.openai_api_key:
        raise ValueError("OPENAI_API_KEY is not configured")
    return await OpenAIRealtimeSession.connect(settings.realtime_ws_url, settings.openai_api_key)
