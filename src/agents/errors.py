"""Domain-specific exceptions for the call relay.

These exceptions are safe to import from API layers without pulling in transport clients.
"""

from __future__ import annotations


class RelayError(Exception):
    status_code: int = 500
    default_detail: str = "Relay error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class ContextStoreError(RelayError):
    status_code = 503
    default_detail = "Context store operation failed."


class CallControlError(RelayError):
    status_code = 500
    default_detail = "Failed to initiate call"


class RealtimeSessionError(RelayError):
    status_code = 503
    default_detail = "Realtime session failed."


class EventError(RelayError):
    status_code = 400
    default_detail = "Invalid transport event."


class MalformedEventError(EventError):
    default_detail = "Malformed transport event."


class UnknownEventError(EventError):
    default_detail = "Unknown transport event."

    def __init__(self, tag: str, detail: str | None = None) -> None:
        super().__init__(detail or f"Unknown event tag: {tag!r}")
        self.tag = tag
