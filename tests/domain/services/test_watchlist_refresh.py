"""
Tests for watchlist refresh orchestration

✅ Real tickers merge fresh history and keep their cost basis
✅ Synthetic tickers are never fetched
✅ Provider failures leave the ticker unchanged
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from navtracker.domain.models import TickerType
from navtracker.services.watchlist_refresh import (
    WatchlistRefreshService,
    create_ticker,
    refresh_watchlist_items,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeProvider:
    """In-memory QuoteHistoryProvider"""

    def __init__(self, histories=None, quotes=None, failing=()):
        self.histories = histories or {}
        self.quotes = quotes or {}
        self.failing = set(failing)
        self.calls = []

    async def fetch_history(self, symbol):
        self.calls.append(("history", symbol))
        if symbol in self.failing:
            raise ConnectionError(f"provider down for {symbol}")
        return self.histories.get(symbol, [])

    async def fetch_quote(self, symbol):
        self.calls.append(("quote", symbol))
        return self.quotes.get(symbol)


@pytest.mark.asyncio
async def test_refresh_merges_and_filters(ticker_factory):
    item = ticker_factory("AAA", ["100", "101", "102"])
    provider = FakeProvider(
        histories={
            "AAA": [
                {"timestamp": "2023-12-30T16:00:00Z", "price": 90},
                {"timestamp": "2024-01-04T20:00:00Z", "price": 105},
                {"timestamp": "2024-01-05T16:00:00Z", "price": 106},
            ]
        },
        quotes={"AAA": {"symbol": "AAA", "currentPrice": 107}},
    )

    [refreshed] = await refresh_watchlist_items([item], provider)

    assert [p.price for p in refreshed.historical_data] == [
        Decimal("100"),
        Decimal("101"),
        Decimal("105"),
        Decimal("106"),
    ]
    assert refreshed.buy_price == item.buy_price
    assert refreshed.buy_date == item.buy_date
    assert refreshed.added_at == item.added_at
    assert refreshed.current_price == Decimal("107")


@pytest.mark.asyncio
async def test_synthetic_tickers_are_skipped(ticker_factory):
    synthetic = ticker_factory("SYN", ["10", "11"], type="synthetic")
    provider = FakeProvider()

    [result] = await refresh_watchlist_items([synthetic], provider)

    assert result is synthetic
    assert result.type == TickerType.SYNTHETIC
    assert provider.calls == []


@pytest.mark.asyncio
async def test_failures_and_empty_fetches_leave_tickers_unchanged(ticker_factory):
    bad = ticker_factory("BAD", ["10", "11"])
    empty = ticker_factory("NIL", ["20", "21"])
    good = ticker_factory("AAA", ["100", "101"])
    provider = FakeProvider(
        histories={"AAA": [{"timestamp": "2024-01-04T16:00:00Z", "price": 103}]},
        failing={"BAD"},
    )

    results = await WatchlistRefreshService(provider, concurrency=1).refresh_items([bad, empty, good])

    assert results[0] is bad
    assert results[1] is empty
    assert len(results[2].historical_data) == 3
    assert [r.symbol for r in results] == ["BAD", "NIL", "AAA"]


@pytest.mark.asyncio
async def test_refresh_keeps_incomplete_flag(ticker_factory):
    flagged = ticker_factory("AAA", ["100", "101"], buy_price="abc")
    assert flagged.incomplete is True
    provider = FakeProvider(histories={"AAA": [{"timestamp": "2024-01-04T16:00:00Z", "price": 103}]})

    [refreshed] = await refresh_watchlist_items([flagged], provider)

    assert len(refreshed.historical_data) == 3
    assert refreshed.buy_price == Decimal("0")
    assert refreshed.incomplete is True
    assert any(w.field == "buy_price" for w in refreshed.warnings)


@pytest.mark.asyncio
async def test_create_ticker_at_latest_price():
    provider = FakeProvider(
        histories={
            "VTI": [
                {"timestamp": "2024-01-02T16:00:00Z", "price": 200},
                {"timestamp": "2024-01-03T16:00:00Z", "price": 210},
            ]
        }
    )

    ticker = await create_ticker(" vti ", provider, now=utc(2024, 1, 4))

    assert ticker.symbol == "VTI"
    assert ticker.buy_price == Decimal("210")
    assert ticker.buy_date == utc(2024, 1, 3, 16)
    assert ticker.current_price == Decimal("210")
    assert ticker.added_at == utc(2024, 1, 4)
    assert len(ticker.historical_data) == 2
    assert ticker.incomplete is False


@pytest.mark.asyncio
async def test_create_ticker_with_custom_buy_point():
    provider = FakeProvider(
        histories={"VTI": [{"timestamp": "2024-01-03T16:00:00Z", "price": 210}]},
        quotes={"VTI": {"symbol": "VTI", "currentPrice": "215.5"}},
    )

    ticker = await create_ticker(
        "VTI",
        provider,
        custom_buy_price="190",
        custom_buy_date="2023-12-15T16:00:00Z",
        now=utc(2024, 1, 4),
    )

    assert ticker.buy_price == Decimal("190")
    assert ticker.buy_date == utc(2023, 12, 15, 16)
    assert ticker.historical_data[0].price == Decimal("190")
    assert ticker.current_price == Decimal("215.5")


@pytest.mark.asyncio
async def test_create_ticker_without_data():
    assert await create_ticker("NONE", FakeProvider()) is None
    assert await create_ticker("BAD", FakeProvider(failing={"BAD"})) is None
    assert await create_ticker("   ", FakeProvider()) is None
