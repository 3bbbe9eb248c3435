from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from agents.schemas import CallContext
from fakes import FakeCallControl, FakeRealtime
from stores.memory import InMemoryContextStore, InMemoryTranscriptSink
from telephony.events import AudioDelta

FORM = {
    "to": "+15005550006",
    "customerName": "Alice Smith",
    "vehicleName": "Sedan",
    "rentalStartDate": "2024-05-01",
    "rentalDays": 3,
    "state": "CA",
}


class RecordingStore(InMemoryContextStore):
    def __init__(self) -> None:
        super().__init__()
        self.keys: list[str] = []

    async def set(self, key, context, ttl_seconds=3600) -> None:
        self.keys.append(key)
        await super().set(key, context, ttl_seconds)


@pytest.fixture()
def overrides(app):
    import api.dependencies as deps

    store = RecordingStore()
    call_control = FakeCallControl(call_sid="CA123")
    app.dependency_overrides[deps.get_context_store] = lambda: store
    app.dependency_overrides[deps.get_transcript_sink] = lambda: InMemoryTranscriptSink()
    app.dependency_overrides[deps.get_call_control] = lambda: call_control
    yield store, call_control
    app.dependency_overrides.clear()


def test_health(app):
    with TestClient(app) as client:
        resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json() == {"status": "Twilio Voice AI server running"}


def test_start_call_stores_context_under_token_and_call_sid(app, overrides):
    store, call_control = overrides

    with TestClient(app) as client:
        resp = client.post("/start-call", json=FORM)

    assert resp.status_code == 200
    assert resp.json() == {"message": "Form validated, call will be initiated shortly", "callSid": "CA123"}

    to, callback_url = call_control.created[0]
    assert to == "+15005550006"
    parts = urlsplit(callback_url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://relay.example.com/outgoing-call"
    token = parse_qs(parts.query)["contextId"][0]
    assert store.keys == [token, "CA123"]

    by_token = asyncio.run(store.get(token))
    by_sid = asyncio.run(store.get("CA123"))
    assert by_token == by_sid
    assert by_sid.customer_name == "Alice Smith"
    assert by_sid.rental_days == "3"


def test_start_call_requires_destination(app, overrides):
    store, call_control = overrides
    form = {key: value for key, value in FORM.items() if key != "to"}

    with TestClient(app) as client:
        resp = client.post("/start-call", json=form)

    assert resp.status_code == 400
    assert resp.json() == {"detail": 'Missing "to" phone number'}
    assert store.keys == []
    assert call_control.created == []


def test_start_call_failure_maps_to_500_and_drops_context(app, overrides):
    store, call_control = overrides
    call_control.fail_create = True

    with TestClient(app) as client:
        resp = client.post("/start-call", json=FORM)

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Failed to initiate call"}
    assert len(store.keys) == 1
    assert asyncio.run(store.get(store.keys[0])) is None


@pytest.mark.parametrize("method", ["get", "post"])
def test_outgoing_call_connects_media_stream(app, method):
    with TestClient(app) as client:
        resp = getattr(client, method)("/outgoing-call", params={"contextId": "tok-1"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    body = resp.text
    assert body.count("<Say voice=\"Polly.Joanna\">") == 2
    assert "<Pause length=\"1\" />" in body
    assert "<Stream url=\"wss://relay.example.com/media-stream\">" in body
    assert "<Parameter name=\"contextId\" value=\"tok-1\" />" in body
    assert body.index("<Say") < body.index("<Connect>")


def test_outgoing_call_without_token_omits_parameter(app):
    with TestClient(app) as client:
        resp = client.post("/outgoing-call")

    assert resp.status_code == 200
    assert "<Parameter" not in resp.text


def test_media_stream_relays_a_call_end_to_end(app, overrides):
    import api.dependencies as deps

    store, call_control = overrides
    asyncio.run(store.set("tok-1", CallContext(customer_name="Alice Smith", vehicle_name="Sedan")))
    sessions: list[FakeRealtime] = []

    async def connect():
        realtime = FakeRealtime(reply_audio=[AudioDelta(delta="AAAA", item_id="item_1")])
        sessions.append(realtime)
        return realtime

    app.dependency_overrides[deps.get_realtime_connector] = lambda: connect

    with TestClient(app) as client:
        with client.websocket_connect("/media-stream") as ws:
            ws.send_json({"event": "connected", "protocol": "Call", "version": "1.0.0"})
            ws.send_json(
                {
                    "event": "start",
                    "start": {
                        "streamSid": "MZ1",
                        "callSid": "CA-E2E",
                        "customParameters": {"contextId": "tok-1"},
                    },
                    "streamSid": "MZ1",
                }
            )

            media = ws.receive_json()
            mark = ws.receive_json()
            assert media == {"event": "media", "streamSid": "MZ1", "media": {"payload": "AAAA"}}
            assert mark["event"] == "mark"
            assert mark["streamSid"] == "MZ1"

            ws.send_json({"event": "media", "media": {"track": "inbound", "timestamp": "20", "payload": "QUJD"}})
            ws.send_json({"event": "mark", "streamSid": "MZ1", "mark": {"name": mark["mark"]["name"]}})
            ws.send_json({"event": "stop", "stop": {"callSid": "CA-E2E"}})

            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

    realtime = sessions[0]
    assert "Alice Smith" in realtime.messages("session.update")[0]["session"]["instructions"]
    assert realtime.messages("input_audio_buffer.append") == [{"type": "input_audio_buffer.append", "audio": "QUJD"}]
    assert call_control.updates == [("CA-E2E", "completed")]
    assert asyncio.run(store.get("tok-1")) is None
