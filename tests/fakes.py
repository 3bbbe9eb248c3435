"""Hand-written stand-ins for the transports and Twilio call control."""

from __future__ import annotations

import asyncio

from agents.errors import CallControlError
from telephony.events import AudioDelta
from telephony.transports import MediaChannel, RealtimeChannel

_END = object()


class FakeMediaChannel(MediaChannel):
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.closed = False
        self.close_calls = 0
        self._queue: asyncio.Queue = asyncio.Queue()

    def feed(self, *events) -> None:
        for event in events:
            self._queue.put_nowait(event)

    def hang_up(self) -> None:
        self._queue.put_nowait(_END)

    @property
    def is_open(self) -> bool:
        return not self.closed

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is _END:
                return
            yield event

    async def send_media(self, stream_id: str, payload: str) -> None:
        self.sent.append({"event": "media", "streamSid": stream_id, "media": {"payload": payload}})

    async def send_mark(self, stream_id: str, name: str) -> None:
        self.sent.append({"event": "mark", "streamSid": stream_id, "mark": {"name": name}})

    async def send_clear(self, stream_id: str) -> None:
        self.sent.append({"event": "clear", "streamSid": stream_id})

    async def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_END)

    def frames(self, event: str) -> list[dict]:
        return [frame for frame in self.sent if frame["event"] == event]


class FakeRealtime(RealtimeChannel):
    def __init__(self, *, open_: bool = True, reply_audio: list[AudioDelta] | None = None) -> None:
        self.sent: list[dict] = []
        self.open = open_
        self.close_calls = 0
        self._reply_audio = list(reply_audio or [])
        self._queue: asyncio.Queue = asyncio.Queue()

    def feed(self, *events) -> None:
        for event in events:
            self._queue.put_nowait(event)

    def disconnect(self) -> None:
        self.open = False
        self._queue.put_nowait(_END)

    @property
    def is_open(self) -> bool:
        return self.open

    async def events(self):
        while True:
            event = await self._queue.get()
            if event is _END:
                return
            yield event

    async def send_session_update(self, session: dict) -> None:
        self.sent.append({"type": "session.update", "session": session})
        # Answer the configuration with scripted agent audio.
        self.feed(*self._reply_audio)

    async def append_audio(self, payload: str) -> None:
        self.sent.append({"type": "input_audio_buffer.append", "audio": payload})

    async def truncate(self, item_id: str, content_index: int, audio_end_ms: int) -> None:
        self.sent.append(
            {
                "type": "conversation.item.truncate",
                "item_id": item_id,
                "content_index": content_index,
                "audio_end_ms": audio_end_ms,
            }
        )

    async def close(self) -> None:
        self.close_calls += 1
        self.disconnect()

    def messages(self, type_: str) -> list[dict]:
        return [message for message in self.sent if message["type"] == type_]


class FakeCallControl:
    def __init__(self, *, call_sid: str = "CA123", fail_create: bool = False, fail_update: bool = False) -> None:
        self.call_sid = call_sid
        self.fail_create = fail_create
        self.fail_update = fail_update
        self.created: list[tuple[str, str]] = []
        self.updates: list[tuple[str, str]] = []

    async def create_call(self, to: str, callback_url: str, *, from_: str | None = None) -> str:
        if self.fail_create:
            raise CallControlError("Twilio said no")
        self.created.append((to, callback_url))
        return self.call_sid

    async def update_call_status(self, call_id: str, status: str = "completed") -> None:
        self.updates.append((call_id, status))
        if self.fail_update:
            raise CallControlError(f"Call {call_id} is not in-progress")


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)
