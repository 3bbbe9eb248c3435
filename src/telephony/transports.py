"""Contracts the session controller expects from its two transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from telephony.events import RealtimeEvent, TelephonyEvent


class MediaChannel(ABC):
    """Duplex telephony media transport for one call."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether frames can still be sent."""

    @abstractmethod
    def events(self) -> AsyncIterator[TelephonyEvent]:
        """Yield parsed inbound events until the channel closes."""

    @abstractmethod
    async def send_media(self, stream_id: str, payload: str) -> None:
        """Queue a base64 audio chunk for playback."""

    @abstractmethod
    async def send_mark(self, stream_id: str, name: str) -> None:
        """Request a playback acknowledgment named ``name``."""

    @abstractmethod
    async def send_clear(self, stream_id: str) -> None:
        """Drop any audio buffered for playback."""

    @abstractmethod
    async def close(self) -> None:
        """Close the channel; closing twice is a no-op."""


class RealtimeChannel(ABC):
    """Duplex transport to the conversational AI service."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether the session accepts outbound events."""

    @abstractmethod
    def events(self) -> AsyncIterator[RealtimeEvent]:
        """Yield parsed inbound events until the session closes."""

    @abstractmethod
    async def send_session_update(self, session: dict) -> None:
        """Send the session configuration."""

    @abstractmethod
    async def append_audio(self, payload: str) -> None:
        """Append a base64 audio chunk to the input buffer."""

    @abstractmethod
    async def truncate(self, item_id: str, content_index: int, audio_end_ms: int) -> None:
        """Truncate an assistant item to what the caller actually heard."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session; closing twice is a no-op."""
