"""
Message handler for market data text frames.

Decodes the JSON payload of a text frame into a MarketData record and hands
accepted records to a callback. Frames that do not match the expected shape
are counted and dropped; they never interrupt the stream.

Expected payload:
{
    "symbol": "BTCUSD",
    "price": 50000.0,
    "volume": 1.5,
    "timestamp": 1234567890
}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

import orjson
from pydantic import ValidationError

from feedhandler.errors import MessageParseError
from feedhandler.types import MarketData

logger = logging.getLogger(__name__)


@dataclass
class HandlerStats:
    """Statistics for the market data handler."""

    messages_received: int = 0
    records_decoded: int = 0
    parse_errors: int = 0
    by_symbol: dict[str, int] = field(default_factory=dict)


def decode_market_data(raw: Union[str, bytes]) -> MarketData:
    """
    Decode a text payload into a MarketData record.

    Raises:
        MessageParseError: If the payload is not JSON, not an object, or does
            not match the record schema.
    """
    text = raw if isinstance(raw, str) else raw.decode("utf-8", "replace")

    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        raise MessageParseError(f"Invalid JSON payload: {e}", raw_data=text) from e

    if not isinstance(data, dict):
        raise MessageParseError(
            f"Expected a JSON object, got {type(data).__name__}",
            raw_data=text,
        )

    try:
        return MarketData.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        raise MessageParseError(
            f"Payload does not match market data schema: {', '.join(fields)}",
            raw_data=text,
            fields=fields,
        ) from e


class MarketDataHandler:
    """
    Parses text frames and forwards decoded records to `on_record`.

    Decode failures are a filtering event, not an error: they are logged at
    debug level, counted, and the frame is discarded.
    """

    def __init__(
        self,
        on_record: Callable[[MarketData], None],
        name: str = "MarketDataHandler",
    ) -> None:
        """
        Initialize the handler.

        Args:
            on_record: Callback receiving every successfully decoded record
            name: Handler name for logging
        """
        self._on_record = on_record
        self._name = name
        self._stats = HandlerStats()

    @property
    def stats(self) -> HandlerStats:
        """Get handler statistics."""
        return self._stats

    def handle(self, raw: Union[str, bytes]) -> Optional[MarketData]:
        """
        Handle one text frame.

        Returns the decoded record, or None if the frame was dropped.
        """
        self._stats.messages_received += 1

        try:
            record = decode_market_data(raw)
        except MessageParseError as e:
            self._stats.parse_errors += 1
            logger.debug(f"[{self._name}] Dropped message: {e}")
            return None

        self._stats.records_decoded += 1
        self._stats.by_symbol[record.symbol] = self._stats.by_symbol.get(record.symbol, 0) + 1

        logger.info(
            f"[{self._name}] Received: {record.symbol} @ ${record.price:.2f} "
            f"(vol: {record.volume:.2f})"
        )
        self._on_record(record)
        return record

    def reset_stats(self) -> None:
        """Reset handler statistics."""
        self._stats = HandlerStats()
