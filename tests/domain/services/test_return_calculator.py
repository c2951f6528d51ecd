"""
Unit Tests for the return calculator

✅ Per-ticker returns per timeframe
✅ Portfolio average excludes invalid tickers
✅ "No data" is None, never 0%
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from navtracker.domain.models import ReturnSlice, PricePoint, Timeframe
from navtracker.domain.services.return_calculator import (
    calculate_ticker_return,
    get_return_stats,
    percent_change,
    portfolio_return,
    ticker_return,
)
from navtracker.domain.services.ticker_normalizer import normalize_ticker

NOW = datetime(2024, 1, 10, 18, 0, tzinfo=timezone.utc)


class TestPercentChange:
    def test_basic(self):
        assert percent_change(Decimal("100"), Decimal("110")) == Decimal("10")
        assert percent_change(Decimal("200"), Decimal("150")) == Decimal("-25")

    def test_non_positive_reference(self):
        assert percent_change(Decimal("0"), Decimal("10")) is None
        assert percent_change(Decimal("-1"), Decimal("10")) is None


def test_unusable_slice_has_no_return():
    empty = ReturnSlice(start_point=None, end_point=None)
    zero_start = ReturnSlice(
        start_point=PricePoint(NOW, Decimal("0")),
        end_point=PricePoint(NOW, Decimal("10")),
    )
    assert ticker_return(empty, Timeframe.MAX) is None
    assert ticker_return(zero_start, Timeframe.WEEK) is None


class TestCalculateTickerReturn:
    def test_max_uses_buy_price(self, ticker_factory, zone):
        ticker = ticker_factory("AAA", ["100", "105", "110"])
        result = calculate_ticker_return(ticker, Timeframe.MAX, now=NOW, zone=zone)

        assert result.symbol == "AAA"
        assert result.reference_price == Decimal("100")
        assert result.current_price == Decimal("110")
        assert result.return_percent == Decimal("10")

    def test_current_price_overrides_last_point(self, ticker_factory, zone):
        ticker = ticker_factory("AAA", ["100", "110"], current_price="120")
        result = calculate_ticker_return(ticker, Timeframe.MAX, now=NOW, zone=zone)
        assert result.return_percent == Decimal("20")

    def test_window_uses_start_price_not_buy_price(self, ticker_factory, zone):
        # Daily points Jan 2..Jan 10 at 16:00 UTC; week window starts Jan 3 18:00
        ticker = ticker_factory("AAA", ["100", "100", "120", "120", "120", "120", "120", "120", "132"])
        result = calculate_ticker_return(ticker, Timeframe.WEEK, now=NOW, zone=zone)

        assert result.reference_price == Decimal("100")
        assert result.return_percent == Decimal("32")

    def test_day_return(self, ticker_factory, zone):
        # Previous New York midnight is Jan 9 05:00 UTC; closest point is Jan 9 16:00
        ticker = ticker_factory("AAA", ["100", "100", "100", "100", "100", "100", "100", "150", "165"])
        result = calculate_ticker_return(ticker, Timeframe.DAY, now=NOW, zone=zone)
        assert result.return_percent == Decimal("10")


class TestPortfolioReturn:
    def test_empty_list_is_none(self):
        assert portfolio_return([]) is None

    def test_average_of_valid_tickers(self, ticker_factory, zone):
        items = [
            ticker_factory("AAA", ["100", "110"]),
            ticker_factory("BBB", ["50", "45"]),
        ]
        assert portfolio_return(items, Timeframe.MAX, now=NOW, zone=zone) == Decimal("0")

    def test_malformed_ticker_is_excluded_not_zero(self, ticker_factory, zone):
        items = [
            ticker_factory("AAA", ["100", "110"]),
            normalize_ticker({"symbol": "BAD", "buyPrice": "oops", "historicalData": []}),
            normalize_ticker(None),
        ]
        assert portfolio_return(items, Timeframe.MAX, now=NOW, zone=zone) == Decimal("10")

    def test_no_valid_tickers_is_none(self, zone):
        items = [normalize_ticker({"symbol": "X", "buyPrice": 10, "buyDate": "2024-01-01"})]
        assert portfolio_return(items, Timeframe.MAX, now=NOW, zone=zone) is None

    def test_timeframe_accepts_tag(self, ticker_factory, zone):
        items = [ticker_factory("AAA", ["100", "110"])]
        assert portfolio_return(items, "MAX", now=NOW, zone=zone) == Decimal("10")


class TestReturnStats:
    def test_best_and_worst(self, ticker_factory, zone):
        items = [
            ticker_factory("AAA", ["100", "110"]),
            ticker_factory("BBB", ["100", "90"]),
            ticker_factory("CCC", ["100", "130"]),
            normalize_ticker(None),
        ]
        stats = get_return_stats(items, Timeframe.MAX, now=NOW, zone=zone)

        assert stats.total_tickers == 4
        assert stats.tickers_with_returns == 3
        assert stats.best_performer.symbol == "CCC"
        assert stats.worst_performer.symbol == "BBB"
        assert stats.positive_returns == 2
        assert stats.negative_returns == 1
        assert stats.average_return == Decimal("10")

    def test_empty(self):
        stats = get_return_stats([])
        assert stats.average_return is None
        assert stats.best_performer is None


@pytest.mark.parametrize("timeframe", list(Timeframe))
def test_every_timeframe_produces_a_number(ticker_factory, zone, timeframe):
    ticker = ticker_factory("AAA", ["100", "101", "102", "103", "104", "105", "106", "107", "108"])
    result = calculate_ticker_return(ticker, timeframe, now=NOW, zone=zone)
    assert result is not None
    assert result.return_percent >= 0
