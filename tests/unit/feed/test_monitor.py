"""
Unit tests for the periodic history reporter.
"""

import asyncio
import logging

import pytest

from fakes import make_record
from feedhandler.monitor import HistorySummary, poll_history, summarize
from feedhandler.store import HistoryStore
from feedhandler.types import MarketData


class CountingSource:
    """Snapshot source that records how often it was read."""

    def __init__(self, store: HistoryStore) -> None:
        self.store = store
        self.reads = 0

    def snapshot(self) -> list[MarketData]:
        self.reads += 1
        return self.store.snapshot()


class TestSummarize:
    def test_empty(self) -> None:
        assert summarize([]) == HistorySummary(count=0, latest=None)

    def test_latest_is_last_arrival(self) -> None:
        records = [make_record(1), make_record(2)]
        assert summarize(records) == HistorySummary(count=2, latest=records[-1])


class TestPollHistory:
    @pytest.mark.asyncio
    async def test_bounded_iterations(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="feedhandler.monitor")
        store = HistoryStore()
        store.append(make_record(1, symbol="BTCUSD"))
        source = CountingSource(store)

        summary = await poll_history(source, 0.01, iterations=3)

        assert source.reads == 3
        assert summary == HistorySummary(count=1, latest=make_record(1, symbol="BTCUSD"))
        assert "Total records in memory: 1" in caplog.text
        assert "Latest: BTCUSD @ $101.00" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_history_has_no_latest_line(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="feedhandler.monitor")

        summary = await poll_history(CountingSource(HistoryStore()), 0.01, iterations=1)

        assert summary == HistorySummary(count=0)
        assert "Total records in memory: 0" in caplog.text
        assert "Latest:" not in caplog.text

    @pytest.mark.asyncio
    async def test_sees_concurrent_appends(self) -> None:
        store = HistoryStore()
        source = CountingSource(store)

        async def writer() -> None:
            for i in range(5):
                store.append(make_record(i))
                await asyncio.sleep(0)

        await writer()
        summary = await poll_history(source, 0.01, iterations=1)
        assert summary is not None
        assert summary.count == 5

    @pytest.mark.asyncio
    async def test_runs_until_cancelled(self) -> None:
        source = CountingSource(HistoryStore())
        task = asyncio.create_task(poll_history(source, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert source.reads >= 2

    @pytest.mark.asyncio
    async def test_invalid_interval(self) -> None:
        with pytest.raises(ValueError):
            await poll_history(CountingSource(HistoryStore()), 0, iterations=1)
