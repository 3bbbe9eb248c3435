from __future__ import annotations

import pytest

from telephony.state import CallSession, SessionState


def test_new_session_waits_for_context():
    session = CallSession()

    assert session.state is SessionState.AWAITING_CONTEXT
    assert session.media_clock == 0
    assert not session.has_playback_in_flight


def test_elapsed_playback_is_clamped_at_zero():
    session = CallSession(media_clock=200, response_start=500)

    assert session.elapsed_playback_ms() == 0


def test_reset_playback_clears_all_three_fields():
    session = CallSession(media_clock=900)
    session.begin_utterance_if_new("item_1")
    session.push_mark(session.next_mark_token())
    session.push_mark(session.next_mark_token())

    session.reset_playback()

    assert list(session.mark_queue) == []
    assert session.response_start is None
    assert session.active_utterance_id is None


def test_mark_tokens_stay_unique_across_utterances():
    session = CallSession()
    session.begin_utterance_if_new("item_1")
    first = session.next_mark_token()
    session.reset_playback()
    session.begin_utterance_if_new("item_1")
    second = session.next_mark_token()

    assert first != second


def test_context_loads_once():
    session = CallSession()
    session.load_context(None)

    assert session.context_loaded
    with pytest.raises(RuntimeError):
        session.load_context(None)


def test_record_appends_role_tagged_entries():
    session = CallSession()
    session.record("caller", "Hello")
    session.record("agent", "Hi there")

    assert [(entry.role, entry.text) for entry in session.transcript] == [("caller", "Hello"), ("agent", "Hi there")]
