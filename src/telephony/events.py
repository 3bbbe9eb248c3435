"""Tagged event variants for both transports, and their parsers.

Each transport's message set is closed: known tags parse into a dataclass,
tags outside the set raise ``UnknownEventError`` and payloads missing
required fields raise ``MalformedEventError``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from agents.errors import MalformedEventError, UnknownEventError

# -- Telephony (Twilio Media Streams) ------------------------------------------


@dataclass(frozen=True, slots=True)
class ConnectedEvent:
    protocol: str | None = None


@dataclass(frozen=True, slots=True)
class StartEvent:
    stream_id: str
    call_id: str | None
    custom_parameters: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class MediaEvent:
    timestamp_ms: int
    payload: str
    track: str = "inbound"


@dataclass(frozen=True, slots=True)
class MarkEvent:
    name: str


@dataclass(frozen=True, slots=True)
class StopEvent:
    call_id: str | None = None


TelephonyEvent = Union[ConnectedEvent, StartEvent, MediaEvent, MarkEvent, StopEvent]


def _decode(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        message = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedEventError(f"Invalid JSON frame: {exc}") from exc
    if not isinstance(message, dict):
        raise MalformedEventError("Frame is not a JSON object")
    return message


def _section(message: dict[str, Any], name: str) -> dict[str, Any]:
    section = message.get(name)
    if not isinstance(section, dict):
        raise MalformedEventError(f"{name!r} event without {name!r} body")
    return section


def parse_telephony_event(raw: str | bytes | dict[str, Any]) -> TelephonyEvent:
    message = _decode(raw)
    tag = str(message.get("event") or "")

    if tag == "connected":
        return ConnectedEvent(protocol=message.get("protocol"))

    if tag == "start":
        start = _section(message, "start")
        stream_id = start.get("streamSid") or message.get("streamSid")
        if not stream_id:
            raise MalformedEventError("'start' event without streamSid")
        params = start.get("customParameters") or {}
        if not isinstance(params, dict):
            raise MalformedEventError("'customParameters' is not an object")
        return StartEvent(
            stream_id=str(stream_id),
            call_id=start.get("callSid") or None,
            custom_parameters={str(k): str(v) for k, v in params.items()},
        )

    if tag == "media":
        media = _section(message, "media")
        payload = media.get("payload")
        if not isinstance(payload, str):
            raise MalformedEventError("'media' event without payload")
        try:
            timestamp = int(media.get("timestamp") or 0)
        except (TypeError, ValueError) as exc:
            raise MalformedEventError(f"Invalid media timestamp: {media.get('timestamp')!r}") from exc
        return MediaEvent(timestamp_ms=timestamp, payload=payload, track=str(media.get("track") or "inbound"))

    if tag == "mark":
        mark = _section(message, "mark")
        return MarkEvent(name=str(mark.get("name") or ""))

    if tag == "stop":
        stop = message.get("stop") or {}
        return StopEvent(call_id=stop.get("callSid") if isinstance(stop, dict) else None)

    raise UnknownEventError(tag)


# -- Realtime AI session -------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AudioDelta:
    delta: str
    item_id: str | None


@dataclass(frozen=True, slots=True)
class AgentTranscriptDone:
    transcript: str
    item_id: str | None = None


@dataclass(frozen=True, slots=True)
class CallerTranscriptCompleted:
    transcript: str
    item_id: str | None = None


@dataclass(frozen=True, slots=True)
class SpeechStarted:
    audio_start_ms: int | None = None


@dataclass(frozen=True, slots=True)
class RealtimeErrorEvent:
    message: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """A documented realtime event the relay does not act upon."""

    type: str


RealtimeEvent = Union[
    AudioDelta,
    AgentTranscriptDone,
    CallerTranscriptCompleted,
    SpeechStarted,
    RealtimeErrorEvent,
    LifecycleEvent,
]

LIFECYCLE_EVENT_TYPES = frozenset(
    {
        "session.created",
        "session.updated",
        "conversation.created",
        "conversation.item.created",
        "conversation.item.truncated",
        "conversation.item.input_audio_transcription.failed",
        "input_audio_buffer.committed",
        "input_audio_buffer.cleared",
        "input_audio_buffer.speech_stopped",
        "response.created",
        "response.done",
        "response.output_item.added",
        "response.output_item.done",
        "response.content_part.added",
        "response.content_part.done",
        "response.audio.done",
        "response.audio_transcript.delta",
        "response.text.delta",
        "response.text.done",
        "rate_limits.updated",
    }
)


def parse_realtime_event(raw: str | bytes | dict[str, Any]) -> RealtimeEvent:
    message = _decode(raw)
    tag = str(message.get("type") or "")

    if tag == "response.audio.delta":
        delta = message.get("delta")
        if not isinstance(delta, str):
            raise MalformedEventError("'response.audio.delta' without delta")
        return AudioDelta(delta=delta, item_id=message.get("item_id"))

    if tag == "response.audio_transcript.done":
        return AgentTranscriptDone(
            transcript=str(message.get("transcript") or ""),
            item_id=message.get("item_id"),
        )

    if tag == "conversation.item.input_audio_transcription.completed":
        return CallerTranscriptCompleted(
            transcript=str(message.get("transcript") or ""),
            item_id=message.get("item_id"),
        )

    if tag == "input_audio_buffer.speech_started":
        return SpeechStarted(audio_start_ms=message.get("audio_start_ms"))

    if tag == "error":
        error = message.get("error") or {}
        if not isinstance(error, dict):
            error = {"message": str(error)}
        return RealtimeErrorEvent(message=str(error.get("message") or "unknown error"), code=error.get("code"))

    if tag in LIFECYCLE_EVENT_TYPES:
        return LifecycleEvent(type=tag)

    raise UnknownEventError(tag)
