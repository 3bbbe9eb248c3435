"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from stores.base import ContextStore, TranscriptSink
from stores.factory import build_context_store, build_transcript_sink

if TYPE_CHECKING:  # pragma: no cover
    from integrations.twilio_client import TwilioCallControl
    from telephony.session import RealtimeConnector


@lru_cache(maxsize=1)
def get_context_store() -> ContextStore:
    # One instance per process so /start-call and /media-stream share entries.
    return build_context_store()


@lru_cache(maxsize=1)
def get_transcript_sink() -> TranscriptSink:
    return build_transcript_sink()


@lru_cache(maxsize=1)
def _call_control_factory() -> TwilioCallControl:
    # Lazy import so the app starts (and tests run) without Twilio credentials.
    from integrations.twilio_client import build_call_control

    return build_call_control()


def get_call_control() -> TwilioCallControl:
    return _call_control_factory()


def get_realtime_connector() -> RealtimeConnector:
    from integrations.openai_realtime import connect_realtime_session

    return connect_realtime_session
