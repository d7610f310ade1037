"""
Periodic history reporter.

Reads snapshots from a feed on a fixed interval and logs a short summary.
Runs as its own task; it only ever talks to the feed through `snapshot()`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from feedhandler.types import MarketData

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    def snapshot(self) -> list[MarketData]: ...


@dataclass(frozen=True)
class HistorySummary:
    count: int
    latest: Optional[MarketData] = None


def summarize(records: Sequence[MarketData]) -> HistorySummary:
    return HistorySummary(count=len(records), latest=records[-1] if records else None)


async def poll_history(
    source: SnapshotSource,
    interval_s: float,
    *,
    iterations: Optional[int] = None,
) -> Optional[HistorySummary]:
    """
    Log the size and latest record of `source` every `interval_s` seconds.

    The first report is immediate. Runs until cancelled, or for `iterations`
    reports when given. Returns the last summary produced.
    """
    if interval_s <= 0:
        raise ValueError("interval_s must be positive")

    summary: Optional[HistorySummary] = None
    done = 0
    while iterations is None or done < iterations:
        if done:
            await asyncio.sleep(interval_s)

        summary = summarize(source.snapshot())
        logger.info(f"Total records in memory: {summary.count}")
        if summary.latest is not None:
            logger.info(f"Latest: {summary.latest.symbol} @ ${summary.latest.price:.2f}")
        done += 1

    return summary
