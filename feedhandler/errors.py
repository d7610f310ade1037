"""
Custom exceptions for the feed handler.

Exception hierarchy:
- FeedError (base)
  - ConnectionError: WebSocket handshake failed
  - SendError: Subscription or keepalive reply could not be sent
  - ReceiveError: Transport failed or was lost while awaiting the next frame
  - MessageParseError: Text frame does not decode to a record (non-fatal)
  - ConfigurationError: Invalid configuration
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

# Longest raw payload excerpt carried into log output
RAW_PREVIEW_CHARS = 120


class FeedError(Exception):
    """
    Base exception for all feed handler errors.

    Rendered as ``"<component>: <message> (key=value, ...)"`` so a single log
    line carries the context fields.
    """

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        text = super().__str__()
        if self.component:
            text = f"{self.component}: {text}"
        if self.details:
            context = ", ".join(f"{key}={value}" for key, value in self.details.items())
            text = f"{text} ({context})"
        return text


class ConnectionError(FeedError):
    """Raised when the WebSocket handshake cannot be completed."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self.url = url
        super().__init__(message, component=component, details={"url": url} if url else None)


class SendError(FeedError):
    """Raised when an outbound frame (subscription or pong) cannot be sent."""

    def __init__(
        self,
        message: str,
        *,
        frame: Optional[str] = None,
        component: Optional[str] = None,
    ) -> None:
        self.frame = frame
        super().__init__(message, component=component, details={"frame": frame} if frame else None)


class ReceiveError(FeedError):
    """
    Raised when the stream cannot deliver the next frame.

    Covers receive timeouts, ERROR frames and a transport that ended without
    a close handshake. `close_code` is the WebSocket close code aiohttp
    recorded for a lost connection (1006 for an abnormal closure).
    """

    def __init__(
        self,
        message: str,
        *,
        messages_received: int = 0,
        close_code: Optional[int] = None,
        component: Optional[str] = None,
    ) -> None:
        self.messages_received = messages_received
        self.close_code = close_code
        details: dict[str, Any] = {"messages_received": messages_received}
        if close_code is not None:
            details["close_code"] = close_code
        super().__init__(message, component=component, details=details)


class MessageParseError(FeedError):
    """Raised when a text frame cannot be decoded into a MarketData record."""

    def __init__(
        self,
        message: str,
        *,
        raw_data: Optional[str] = None,
        fields: Sequence[str] = (),
        component: Optional[str] = None,
    ) -> None:
        self.raw_data = raw_data
        self.fields = tuple(fields)
        details: dict[str, Any] = {}
        if self.fields:
            details["fields"] = ",".join(self.fields)
        if raw_data is not None:
            details["raw"] = raw_preview(raw_data)
        super().__init__(message, component=component, details=details)


class ConfigurationError(FeedError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
    ) -> None:
        self.field = field
        self.value = value
        details: dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = value
        super().__init__(message, component=component, details=details)


def raw_preview(raw: str, limit: int = RAW_PREVIEW_CHARS) -> str:
    """Quote `raw`, cut to `limit` characters."""
    if len(raw) <= limit:
        return repr(raw)
    return repr(raw[:limit]) + f"...(+{len(raw) - limit} chars)"
