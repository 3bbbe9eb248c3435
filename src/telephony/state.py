"""Per-call session state and the bookkeeping invariants around it."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from agents.schemas import CallContext, Role, TranscriptEntry


class SessionState(str, Enum):
    AWAITING_CONTEXT = "awaiting_context"
    ACTIVE = "active"
    INTERRUPTED = "interrupted"
    TERMINATING = "terminating"
    CLOSED = "closed"


@dataclass
class CallSession:
    """State of one call, owned exclusively by its session controller."""

    call_id: str | None = None
    stream_id: str | None = None
    context_key: str | None = None
    state: SessionState = SessionState.AWAITING_CONTEXT
    media_clock: int = 0
    response_start: int | None = None
    active_utterance_id: str | None = None
    mark_queue: deque[str] = field(default_factory=deque)
    context: CallContext | None = None
    context_loaded: bool = False
    transcript: list[TranscriptEntry] = field(default_factory=list)
    marks_sent: int = 0

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def advance_clock(self, timestamp_ms: int) -> int:
        # Out-of-order or reset timestamps never move the clock backwards.
        if timestamp_ms > self.media_clock:
            self.media_clock = timestamp_ms
        return self.media_clock

    def load_context(self, context: CallContext | None) -> None:
        if self.context_loaded:
            raise RuntimeError("Context is already loaded for this session")
        self.context = context
        self.context_loaded = True

    def begin_utterance_if_new(self, item_id: str | None) -> bool:
        """Anchor playback timing on the first delta of a new utterance."""

        if self.response_start is not None and item_id == self.active_utterance_id:
            return False
        self.response_start = self.media_clock
        self.active_utterance_id = item_id
        return True

    def next_mark_token(self) -> str:
        self.marks_sent += 1
        return f"{self.active_utterance_id or 'response'}:{self.marks_sent}"

    def push_mark(self, token: str) -> None:
        self.mark_queue.append(token)

    def ack_mark(self) -> str | None:
        if not self.mark_queue:
            return None
        return self.mark_queue.popleft()

    @property
    def has_playback_in_flight(self) -> bool:
        return bool(self.mark_queue) and self.response_start is not None

    def elapsed_playback_ms(self) -> int:
        if self.response_start is None:
            return 0
        return max(0, self.media_clock - self.response_start)

    def reset_playback(self) -> None:
        self.mark_queue = deque()
        self.active_utterance_id = None
        self.response_start = None

    def record(self, role: Role, text: str) -> TranscriptEntry:
        entry = TranscriptEntry(role=role, text=text)
        self.transcript.append(entry)
        return entry
