"""Per-call session controller relaying audio between Twilio and the realtime AI.

One controller owns one call. It reads two event sources (the telephony media
channel and the realtime session) in two pump tasks and mutates its
``CallSession`` only from those tasks, so no locking is needed.

Lifecycle::

    AWAITING_CONTEXT -> ACTIVE <-> INTERRUPTED -> TERMINATING -> CLOSED

Cleanup runs exactly once, whichever side goes away first.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Protocol

from agents.errors import UnknownEventError
from agents.instructions import build_instructions
from agents.schemas import CallContext, Role
from agents.termination import CLOSING_PHRASES, find_closing_phrase
from config.settings import Settings, get_settings
from integrations.openai_realtime import build_session_config
from stores.base import ContextStore, TranscriptSink
from telephony.events import (
    AgentTranscriptDone,
    AudioDelta,
    CallerTranscriptCompleted,
    ConnectedEvent,
    LifecycleEvent,
    MarkEvent,
    MediaEvent,
    RealtimeErrorEvent,
    RealtimeEvent,
    SpeechStarted,
    StartEvent,
    StopEvent,
    TelephonyEvent,
)
from telephony.retry import RetryPolicy
from telephony.state import CallSession, SessionState
from telephony.transports import MediaChannel, RealtimeChannel

LOGGER = logging.getLogger(__name__)

CONTEXT_PARAMETER = "contextId"


class CallControl(Protocol):
    async def update_call_status(self, call_id: str, status: str = "completed") -> None: ...


RealtimeConnector = Callable[[], Awaitable[RealtimeChannel]]


def _unique(*keys: str | None) -> list[str]:
    seen: list[str] = []
    for key in keys:
        if key and key not in seen:
            seen.append(key)
    return seen


class SessionController:
    """Owns one call's state machine and mediates both transports."""

    def __init__(
        self,
        media: MediaChannel,
        *,
        realtime_connector: RealtimeConnector,
        context_store: ContextStore,
        transcript_sink: TranscriptSink,
        call_control: CallControl,
        session_config: Callable[[str], dict] = build_session_config,
        retry_policy: RetryPolicy | None = None,
        termination_delay_seconds: float = 6.0,
        closing_phrases: Iterable[str] = CLOSING_PHRASES,
        context_key: str | None = None,
    ) -> None:
        self.session = CallSession(context_key=context_key)
        self._media = media
        self._connector = realtime_connector
        self._contexts = context_store
        self._transcripts = transcript_sink
        self._call_control = call_control
        self._session_config = session_config
        self._retry = retry_policy or RetryPolicy()
        self._termination_delay = termination_delay_seconds
        self._closing_phrases = tuple(closing_phrases)

        self._realtime: RealtimeChannel | None = None
        self._connect_task: asyncio.Task | None = None
        self._bootstrap_task: asyncio.Task | None = None
        self._termination_task: asyncio.Task | None = None
        self._termination_fired = False
        self._pumps: tuple[asyncio.Task, ...] = ()
        self._close_task: asyncio.Task | None = None

    @classmethod
    def from_settings(
        cls,
        media: MediaChannel,
        *,
        realtime_connector: RealtimeConnector,
        context_store: ContextStore,
        transcript_sink: TranscriptSink,
        call_control: CallControl,
        context_key: str | None = None,
        settings: Settings | None = None,
    ) -> SessionController:
        settings = settings or get_settings()
        return cls(
            media,
            realtime_connector=realtime_connector,
            context_store=context_store,
            transcript_sink=transcript_sink,
            call_control=call_control,
            session_config=functools.partial(
                build_session_config,
                voice=settings.realtime_voice,
                temperature=settings.realtime_temperature,
                transcription_model=settings.realtime_transcription_model,
            ),
            retry_policy=RetryPolicy(
                max_attempts=settings.context_retry_attempts,
                interval_seconds=settings.context_retry_interval_seconds,
            ),
            termination_delay_seconds=settings.termination_delay_seconds,
            context_key=context_key,
        )

    # -- lifecycle ------------------------------------------------------------

    async def run(self) -> None:
        """Relay the call until either transport ends, then clean up."""

        self._ensure_connect_task()
        telephony = asyncio.create_task(self._pump_telephony(), name="telephony-pump")
        realtime = asyncio.create_task(self._pump_realtime(), name="realtime-pump")
        self._pumps = (telephony, realtime)

        reason = "session ended"
        try:
            done, _ = await asyncio.wait(self._pumps, return_when=asyncio.FIRST_COMPLETED)
            reason = "telephony channel closed" if telephony in done else "realtime session closed"
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    LOGGER.error("%s failed", task.get_name(), exc_info=task.exception())
        finally:
            await self.close(reason)

    async def connect_realtime(self) -> RealtimeChannel:
        return await self._ensure_connect_task()

    async def close(self, reason: str = "closed") -> None:
        """Tear the call down. Safe to call from any close path, any number of times."""

        if self._close_task is None:
            self._close_task = asyncio.create_task(self._cleanup(reason), name="session-cleanup")
        await asyncio.shield(self._close_task)

    @property
    def closing(self) -> bool:
        return self._close_task is not None or self.session.is_closed

    def _ensure_connect_task(self) -> asyncio.Task:
        if self._connect_task is None:
            self._connect_task = asyncio.create_task(self._open_realtime(), name="realtime-connect")
        return self._connect_task

    async def _open_realtime(self) -> RealtimeChannel:
        self._realtime = await self._connector()
        LOGGER.info("Realtime session connected")
        return self._realtime

    async def _pump_telephony(self) -> None:
        async for event in self._media.events():
            try:
                await self.handle_telephony_event(event)
            except Exception:
                LOGGER.exception("Failed to handle telephony event %s", type(event).__name__)
            if isinstance(event, StopEvent) or self.closing:
                return

    async def _pump_realtime(self) -> None:
        try:
            realtime = await self.connect_realtime()
        except Exception:
            LOGGER.exception("Could not open realtime session for call %s", self.session.call_id)
            return

        async for event in realtime.events():
            try:
                await self.handle_realtime_event(event)
            except Exception:
                LOGGER.exception("Failed to handle realtime event %s", type(event).__name__)
            if self.closing:
                return

    # -- telephony events -----------------------------------------------------

    async def handle_telephony_event(self, event: TelephonyEvent) -> None:
        if self.closing:
            return

        if isinstance(event, MediaEvent):
            await self._on_media(event)
        elif isinstance(event, MarkEvent):
            self._on_mark(event)
        elif isinstance(event, StartEvent):
            self._on_start(event)
        elif isinstance(event, StopEvent):
            LOGGER.info("Media stream stopped for call %s", self.session.call_id)
        elif isinstance(event, ConnectedEvent):
            LOGGER.debug("Media stream connected (protocol=%s)", event.protocol)
        else:
            raise UnknownEventError(type(event).__name__)

    def _on_start(self, event: StartEvent) -> None:
        session = self.session
        if session.stream_id is not None:
            LOGGER.warning("Ignoring repeated start for stream %s", event.stream_id)
            return

        session.stream_id = event.stream_id
        session.call_id = event.call_id
        session.context_key = event.custom_parameters.get(CONTEXT_PARAMETER) or session.context_key
        session.state = SessionState.AWAITING_CONTEXT
        LOGGER.info(
            "Media stream %s started for call %s (context key %s)",
            session.stream_id,
            session.call_id,
            session.context_key,
        )
        # Context retries must not hold up the audio relay.
        self._bootstrap_task = asyncio.create_task(self._bootstrap(), name="session-bootstrap")

    async def _on_media(self, event: MediaEvent) -> None:
        if event.track != "inbound":
            return
        self.session.advance_clock(event.timestamp_ms)

        realtime = self._realtime
        if realtime is None or not realtime.is_open:
            # Frames before the realtime session is open are dropped, not buffered.
            return
        await realtime.append_audio(event.payload)

    def _on_mark(self, event: MarkEvent) -> None:
        token = self.session.ack_mark()
        if token is None:
            LOGGER.debug("Mark %s acknowledged with no audio in flight", event.name)
        elif token != event.name:
            LOGGER.debug("Mark %s acknowledged while %s was first in queue", event.name, token)

    # -- context + session configuration -------------------------------------

    async def resolve_context(self) -> CallContext | None:
        """Look the call's context up by call id, then by correlation token.

        Misses and store failures are retried under the retry policy; giving
        up returns ``None`` and the call continues in degraded mode.
        """

        session = self.session
        keys = _unique(session.call_id, session.context_key)
        if not keys:
            LOGGER.warning("Stream %s has no call id or context key; using fallback", session.stream_id)
            return None

        async def attempt(number: int) -> CallContext | None:
            for key in keys:
                try:
                    context = await self._contexts.get(key)
                except Exception as exc:
                    LOGGER.warning("Context lookup for %s failed on attempt %s: %s", key, number, exc)
                    continue
                if context is not None:
                    LOGGER.info("Loaded context for call %s via %s (attempt %s)", session.call_id, key, number)
                    return context
            return None

        context = await self._retry.run(attempt)
        if context is None:
            LOGGER.warning(
                "No context for call %s after %s attempts; using fallback instructions",
                session.call_id,
                self._retry.max_attempts,
            )
        return context

    async def _bootstrap(self) -> None:
        context = await self.resolve_context()
        self.session.load_context(context)
        instructions = build_instructions(context)

        try:
            realtime = await self.connect_realtime()
        except Exception as exc:
            LOGGER.warning("Realtime session unavailable; cannot configure call %s: %s", self.session.call_id, exc)
            return

        await realtime.send_session_update(self._session_config(instructions))
        if self.session.state is SessionState.AWAITING_CONTEXT:
            self.session.state = SessionState.ACTIVE
        LOGGER.info(
            "Realtime session configured for call %s (%s)",
            self.session.call_id,
            "with context" if context else "degraded",
        )

    # -- realtime events ------------------------------------------------------

    async def handle_realtime_event(self, event: RealtimeEvent) -> None:
        if self.closing:
            return

        if isinstance(event, AudioDelta):
            await self._forward_delta(event)
        elif isinstance(event, SpeechStarted):
            await self._on_speech_started()
        elif isinstance(event, AgentTranscriptDone):
            await self._on_agent_transcript(event)
        elif isinstance(event, CallerTranscriptCompleted):
            text = event.transcript.strip()
            if text:
                LOGGER.info("Caller: %s", text)
                await self._record("caller", text)
        elif isinstance(event, RealtimeErrorEvent):
            LOGGER.error("Realtime error for call %s (%s): %s", self.session.call_id, event.code, event.message)
        elif isinstance(event, LifecycleEvent):
            LOGGER.debug("Realtime event %s", event.type)
        else:
            raise UnknownEventError(type(event).__name__)

    async def _forward_delta(self, event: AudioDelta) -> None:
        session = self.session
        stream_id = session.stream_id
        if stream_id is None or not self._media.is_open:
            LOGGER.debug("Dropping agent audio; media stream not available")
            return

        if session.begin_utterance_if_new(event.item_id):
            LOGGER.debug("Agent utterance %s started at %sms", event.item_id, session.response_start)
        if session.state is SessionState.INTERRUPTED:
            session.state = SessionState.ACTIVE

        await self._media.send_media(stream_id, event.delta)
        token = session.next_mark_token()
        session.push_mark(token)
        await self._media.send_mark(stream_id, token)

    async def _on_speech_started(self) -> None:
        session = self.session
        if not session.has_playback_in_flight:
            return

        elapsed = session.elapsed_playback_ms()
        item_id = session.active_utterance_id
        stream_id = session.stream_id
        session.reset_playback()
        if session.state is SessionState.ACTIVE:
            session.state = SessionState.INTERRUPTED
        LOGGER.info("Caller barged in %sms into utterance %s", elapsed, item_id)

        realtime = self._realtime
        if item_id and realtime is not None and realtime.is_open:
            await realtime.truncate(item_id, 0, elapsed)
        if stream_id and self._media.is_open:
            await self._media.send_clear(stream_id)

    async def _on_agent_transcript(self, event: AgentTranscriptDone) -> None:
        text = event.transcript.strip()
        if not text:
            return
        LOGGER.info("Agent: %s", text)
        await self._record("agent", text)

        phrase = find_closing_phrase(text, self._closing_phrases)
        if phrase is None or self._termination_task is not None:
            return
        LOGGER.info("Closing phrase %r detected; ending call in %.1fs", phrase, self._termination_delay)
        self.session.state = SessionState.TERMINATING
        self._termination_task = asyncio.create_task(self._terminate_after_delay(), name="session-termination")

    async def _terminate_after_delay(self) -> None:
        await asyncio.sleep(self._termination_delay)
        self._termination_fired = True
        await self.close("conversation ended")

    async def _record(self, role: Role, text: str) -> None:
        entry = self.session.record(role, text)
        call_id = self.session.call_id
        if not call_id:
            return
        try:
            await self._transcripts.append(call_id, entry)
        except Exception:
            LOGGER.exception("Failed to store transcript entry for call %s", call_id)

    # -- cleanup --------------------------------------------------------------

    async def _cleanup(self, reason: str) -> None:
        session = self.session
        call_id = session.call_id
        LOGGER.info("Closing call %s: %s", call_id, reason)
        session.state = SessionState.TERMINATING

        current = asyncio.current_task()
        pending = [
            task
            for task in (self._bootstrap_task, self._connect_task, *self._pumps)
            if task is not None and task is not current and not task.done()
        ]
        if self._termination_task is not None and not self._termination_fired:
            pending.append(self._termination_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        if self._realtime is not None:
            try:
                await self._realtime.close()
            except Exception:
                LOGGER.exception("Failed to close realtime session for call %s", call_id)
        try:
            await self._media.close()
        except Exception:
            LOGGER.exception("Failed to close media stream for call %s", call_id)

        if call_id:
            try:
                await self._call_control.update_call_status(call_id, "completed")
                LOGGER.info("Call %s marked as completed", call_id)
            except Exception as exc:
                # The call has usually ended already when the caller hangs up.
                LOGGER.warning("Could not mark call %s as completed: %s", call_id, exc)

        for key in _unique(call_id, session.context_key):
            try:
                await self._contexts.delete(key)
            except Exception:
                LOGGER.exception("Failed to delete context %s", key)

        if call_id:
            await self._finalize_transcript(call_id)

        session.state = SessionState.CLOSED
        LOGGER.info("Call %s closed", call_id)

    async def _finalize_transcript(self, call_id: str) -> None:
        try:
            entries = await self._transcripts.get(call_id)
        except Exception:
            LOGGER.exception("Failed to load transcript for call %s", call_id)
            entries = list(self.session.transcript)

        if entries:
            LOGGER.info(
                "Transcript for call %s (%d entries):\n%s",
                call_id,
                len(entries),
                "\n".join(f"{entry.role}: {entry.text}" for entry in entries),
            )
        try:
            await self._transcripts.delete(call_id)
        except Exception:
            LOGGER.exception("Failed to delete transcript for call %s", call_id)
