"""Twilio Voice integration.

This module provides:
- Start-call endpoint that stores the call context and dials out.
- Voice webhook (TwiML) that connects the answered call to the media stream.
- Media stream websocket that relays audio to the realtime AI session.
"""

from __future__ import annotations

import logging
import secrets
from urllib.parse import urlencode
from xml.sax.saxutils import escape, quoteattr

from fastapi import APIRouter, Depends, HTTPException, Request, Response, WebSocket

from agents.errors import CallControlError
from api.dependencies import get_call_control, get_context_store, get_realtime_connector, get_transcript_sink
from api.schemas import StartCallRequest, StartCallResponse
from config.settings import get_settings
from integrations.twilio_streaming import TwilioMediaChannel
from stores.base import ContextStore, TranscriptSink
from telephony.session import CONTEXT_PARAMETER, SessionController

LOGGER = logging.getLogger(__name__)

router = APIRouter(tags=["twilio"])

GREETING = "You are now connected with FAST TRACK AI assistant."
HANDOFF = "Transferring your call to Fast Track Agent, speak when you are ready."


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _base_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return settings.public_base_url.rstrip("/")
    # Fallback to request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
    return str(request.base_url).rstrip("/")


def _twiml_connect_stream(*, stream_url: str, context_id: str | None, voice: str) -> str:
    say_voice = quoteattr(voice)
    parameter = ""
    if context_id:
        parameter = f"<Parameter name=\"{CONTEXT_PARAMETER}\" value={quoteattr(context_id)} />"
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say voice={say_voice}>{escape(GREETING)}</Say>"
        "<Pause length=\"1\" />"
        f"<Say voice={say_voice}>{escape(HANDOFF)}</Say>"
        "<Connect>"
        f"<Stream url={quoteattr(stream_url)}>{parameter}</Stream>"
        "</Connect>"
        "</Response>"
    )


@router.post("/start-call", response_model=StartCallResponse)
async def start_call(
    payload: StartCallRequest,
    request: Request,
    contexts: ContextStore = Depends(get_context_store),
    call_control=Depends(get_call_control),
) -> StartCallResponse:
    if not payload.to:
        raise HTTPException(status_code=400, detail='Missing "to" phone number')

    settings = get_settings()
    context = payload.to_context()
    ttl = settings.context_ttl_seconds

    # The token travels through the TwiML to the media stream, so the stream
    # finds its context even before the call SID is stored below.
    context_id = secrets.token_urlsafe(16)
    await contexts.set(context_id, context, ttl)

    callback_url = f"{_base_url(request)}/outgoing-call?" + urlencode({CONTEXT_PARAMETER: context_id})
    try:
        call_sid = await call_control.create_call(payload.to, callback_url)
    except CallControlError as exc:
        LOGGER.exception("Failed to start call to %s", payload.to)
        await contexts.delete(context_id)
        raise CallControlError() from exc

    await contexts.set(call_sid, context, ttl)
    LOGGER.info("Stored context for call %s (context id %s)", call_sid, context_id)
    return StartCallResponse(message="Form validated, call will be initiated shortly", call_sid=call_sid)


@router.api_route("/outgoing-call", methods=["GET", "POST"])
async def outgoing_call(request: Request) -> Response:
    settings = get_settings()
    context_id = request.query_params.get(CONTEXT_PARAMETER)
    stream_url = _to_ws_url(f"{_base_url(request)}/media-stream")
    return _twiml_response(
        _twiml_connect_stream(stream_url=stream_url, context_id=context_id, voice=settings.twilio_say_voice)
    )


@router.websocket("/media-stream")
async def media_stream(
    websocket: WebSocket,
    contexts: ContextStore = Depends(get_context_store),
    transcripts: TranscriptSink = Depends(get_transcript_sink),
    call_control=Depends(get_call_control),
    realtime_connector=Depends(get_realtime_connector),
) -> None:
    await websocket.accept()
    controller = SessionController.from_settings(
        TwilioMediaChannel(websocket),
        realtime_connector=realtime_connector,
        context_store=contexts,
        transcript_sink=transcripts,
        call_control=call_control,
        context_key=websocket.query_params.get(CONTEXT_PARAMETER),
    )
    await controller.run()
