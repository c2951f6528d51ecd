from datetime import datetime, timezone
from decimal import Decimal

import pytest

from navtracker.domain.services.nav_sampler import (
    compute_nav_series,
    iter_nav_series,
    sampling_interval,
)
from navtracker.domain.services.ticker_normalizer import normalize_ticker

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "max_points, expected",
    [(150, 20), (101, 20), (100, 5), (50, 5), (21, 5), (20, 1), (10, 1), (0, 1)],
)
def test_sampling_interval(max_points, expected):
    assert sampling_interval(max_points) == expected


def test_empty_input():
    assert compute_nav_series([]) == []


def test_single_ticker_is_rebased_to_zero(ticker_factory):
    ticker = ticker_factory("AAA", ["100", "150", "200"])
    series = compute_nav_series([ticker], now=NOW)

    assert len(series) == 1
    assert series[0].return_percent == Decimal("0")
    assert series[0].etf_price == Decimal("200")
    assert series[0].timestamp == NOW
    assert series[0].valid_tickers == 1


def test_single_ticker_without_history():
    ticker = normalize_ticker({"symbol": "AAA", "buyPrice": 10, "buyDate": "2024-01-01"})
    assert compute_nav_series([ticker], now=NOW) == []


def test_two_tickers_average_and_rebase(ticker_factory):
    a = ticker_factory("AAA", ["100", "110", "120"])
    b = ticker_factory("BBB", ["200", "200", "240"])
    series = compute_nav_series([a, b], now=NOW)

    assert [p.return_percent for p in series] == [Decimal("0"), Decimal("5"), Decimal("20")]
    assert series[0].return_percent == 0
    assert series[1].etf_price == Decimal("155")
    assert all(p.valid_tickers == 2 and p.total_tickers == 2 for p in series)


def test_staggered_histories(ticker_factory):
    a = ticker_factory("AAA", ["100", "110", "120"])
    b = ticker_factory(
        "BBB",
        ["50", "60"],
        start=datetime(2024, 1, 3, 16, 0, tzinfo=timezone.utc),
    )
    series = compute_nav_series([a, b], now=NOW)

    assert series[0].valid_tickers == 1
    assert [p.return_percent for p in series] == [Decimal("0"), Decimal("5"), Decimal("20")]


def test_long_history_is_downsampled_with_both_ends(ticker_factory):
    prices = [str(100 + i) for i in range(150)]
    a = ticker_factory("AAA", prices)
    b = ticker_factory("BBB", prices)
    series = compute_nav_series([a, b], now=NOW)

    # Every 20th point (0..140) plus the latest
    assert len(series) == 9
    assert series[-1].timestamp == a.historical_data[-1].timestamp
    assert series[0].timestamp == a.historical_data[0].timestamp


def test_medium_history_every_fifth_point(ticker_factory):
    prices = [str(100 + i) for i in range(50)]
    series = compute_nav_series([ticker_factory("AAA", prices), ticker_factory("BBB", prices)], now=NOW)
    assert len(series) == 11


def test_tickers_without_usable_reference_are_skipped(ticker_factory):
    a = ticker_factory("AAA", ["100", "110"])
    zero = ticker_factory("ZZZ", ["0", "10"], buy_price="5")
    series = compute_nav_series([a, zero], now=NOW)

    assert all(p.total_tickers == 1 for p in series)
    assert series[-1].return_percent == Decimal("10")


def test_series_is_pure(ticker_factory):
    tickers = [ticker_factory("AAA", ["100", "110", "120"]), ticker_factory("BBB", ["10", "9", "12"])]
    assert compute_nav_series(tickers, now=NOW) == compute_nav_series(tickers, now=NOW)
    assert list(iter_nav_series(tickers, now=NOW)) == compute_nav_series(tickers, now=NOW)


def test_reference_is_oldest_price_not_stored_buy_price(ticker_factory):
    a = ticker_factory("AAA", ["100", "110"], buy_price="50")
    b = ticker_factory("BBB", ["200", "220"], buy_price="400")
    series = compute_nav_series([a, b], now=NOW)

    assert [p.return_percent for p in series] == [Decimal("0"), Decimal("10")]
