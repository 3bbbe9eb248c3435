from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from twilio.base.exceptions import TwilioException

from agents.errors import CallControlError
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str
    public_base_url: str


def get_twilio_config() -> TwilioConfig:
    settings = get_settings()
    if not settings.twilio_account_sid or not settings.twilio_auth_token:
        raise ValueError("Twilio credentials are not configured")
    if not settings.twilio_from_number:
        raise ValueError("Twilio from-number is not configured")
    if not settings.public_base_url:
        raise ValueError("PUBLIC_BASE_URL is required for Twilio callbacks")

    return TwilioConfig(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        from_number=settings.twilio_from_number,
        public_base_url=settings.public_base_url.rstrip("/"),
    )


def build_twilio_client():
    from twilio.rest import Client

    cfg = get_twilio_config()
    return Client(cfg.account_sid, cfg.auth_token)


class TwilioCallControl:
    """Create and end calls through the Twilio REST API.

    The SDK is synchronous, so each request runs in a worker thread.
    """

    def __init__(self, client, cfg: TwilioConfig) -> None:
        self._client = client
        self._cfg = cfg

    @property
    def public_base_url(self) -> str:
        return self._cfg.public_base_url

    async def create_call(self, to: str, callback_url: str, *, from_: str | None = None) -> str:
        def _create():
            return self._client.calls.create(
                to=to,
                from_=from_ or self._cfg.from_number,
                url=callback_url,
                method="POST",
            )

        try:
            call = await asyncio.to_thread(_create)
        except TwilioException as exc:
            raise CallControlError(f"Twilio rejected call to {to}: {exc}") from exc
        LOGGER.info("Created call %s to %s", call.sid, to)
        return str(call.sid)

    async def update_call_status(self, call_id: str, status: str = "completed") -> None:
        def _update():
            return self._client.calls(call_id).update(status=status)

        try:
            await asyncio.to_thread(_update)
        except TwilioException as exc:
            raise CallControlError(f"Could not set call {call_id} to {status}: {exc}") from exc


def build_call_control() -> TwilioCallControl:
    return TwilioCallControl(build_twilio_client(), get_twilio_config())
