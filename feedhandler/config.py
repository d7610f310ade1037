"""
Configuration for the feed handler.

Provides an immutable, validated configuration dataclass plus loading from
environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from feedhandler.errors import ConfigurationError

_LOGGER = logging.getLogger(__name__)

DEFAULT_URL = "wss://stream.example.com/ws"
DEFAULT_CHANNELS: tuple[str, ...] = ("ticker", "trades")
DEFAULT_HISTORY_CAPACITY = 1000
ENV_PREFIX = "FEED_"

_URL_SCHEMES = ("ws://", "wss://", "http://", "https://")


@dataclass(frozen=True)
class FeedConfig:
    """
    Immutable configuration for a single feed connection.

    Example:
        config = FeedConfig(
            url="wss://stream.example.com/ws",
            channels=("ticker", "trades"),
        )
    """

    # Endpoint
    url: str = DEFAULT_URL
    channels: tuple[str, ...] = DEFAULT_CHANNELS

    # History
    history_capacity: int = DEFAULT_HISTORY_CAPACITY

    # Connection behavior
    connect_timeout_s: float = 30.0
    receive_timeout_s: Optional[float] = None  # None waits forever for the next frame

    # Polling collaborator
    poll_interval_s: float = 5.0

    def __post_init__(self) -> None:
        if not self.url.startswith(_URL_SCHEMES):
            raise ConfigurationError(
                "url must be a ws://, wss://, http:// or https:// address",
                field="url",
                value=self.url,
            )
        if not self.channels:
            raise ConfigurationError(
                "At least one channel must be configured",
                field="channels",
            )
        if any(not isinstance(c, str) or not c for c in self.channels):
            raise ConfigurationError(
                "channels must be non-empty strings",
                field="channels",
                value=self.channels,
            )
        if self.history_capacity <= 0:
            raise ConfigurationError(
                "history_capacity must be positive",
                field="history_capacity",
                value=self.history_capacity,
            )
        if self.connect_timeout_s <= 0:
            raise ConfigurationError(
                "connect_timeout_s must be positive",
                field="connect_timeout_s",
                value=self.connect_timeout_s,
            )
        if self.receive_timeout_s is not None and self.receive_timeout_s <= 0:
            raise ConfigurationError(
                "receive_timeout_s must be positive",
                field="receive_timeout_s",
                value=self.receive_timeout_s,
            )
        if self.poll_interval_s <= 0:
            raise ConfigurationError(
                "poll_interval_s must be positive",
                field="poll_interval_s",
                value=self.poll_interval_s,
            )

    def subscription_message(self) -> dict[str, Any]:
        """Build the payload sent once right after the handshake."""
        return {"type": "subscribe", "channels": list(self.channels)}

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
    ) -> FeedConfig:
        """
        Build a config from `<prefix>*` environment variables.

        Unset variables fall back to the defaults. Recognised suffixes:
        URL, CHANNELS (comma separated), HISTORY_CAPACITY, CONNECT_TIMEOUT_S,
        RECEIVE_TIMEOUT_S, POLL_INTERVAL_S.
        """
        if not prefix:
            raise ValueError("Environment prefix must be a non-empty string")
        env = os.environ if environ is None else environ

        kwargs: dict[str, Any] = {}
        if f"{prefix}URL" in env:
            kwargs["url"] = env[f"{prefix}URL"]
        if f"{prefix}CHANNELS" in env:
            kwargs["channels"] = tuple(
                part.strip() for part in env[f"{prefix}CHANNELS"].split(",") if part.strip()
            )
        if f"{prefix}HISTORY_CAPACITY" in env:
            kwargs["history_capacity"] = _parse_env(env, prefix, "HISTORY_CAPACITY", int)
        if f"{prefix}CONNECT_TIMEOUT_S" in env:
            kwargs["connect_timeout_s"] = _parse_env(env, prefix, "CONNECT_TIMEOUT_S", float)
        if f"{prefix}RECEIVE_TIMEOUT_S" in env:
            kwargs["receive_timeout_s"] = _parse_env(env, prefix, "RECEIVE_TIMEOUT_S", float)
        if f"{prefix}POLL_INTERVAL_S" in env:
            kwargs["poll_interval_s"] = _parse_env(env, prefix, "POLL_INTERVAL_S", float)

        _LOGGER.debug(
            "feed_config_from_env",
            extra={"event": "feed_config_from_env", "keys": sorted(kwargs)},
        )
        return cls(**kwargs)


def _parse_env(env: Mapping[str, str], prefix: str, suffix: str, cast: type) -> Any:
    raw = env[f"{prefix}{suffix}"]
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid value for {prefix}{suffix}",
            field=suffix.lower(),
            value=raw,
        ) from e
