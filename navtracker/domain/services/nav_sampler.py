"""
NAV SAMPLER / AGGREGATOR
Build a portfolio return series (NAV) across many tickers.

RESPONSIBILITIES:
- Index each ticker's history by timestamp; its reference ("buy") price is
  the oldest price in that history, not the stored buy_price, and tickers
  whose reference price is <= 0 are dropped
- Downsample long histories (every 20th / 5th / all points)
- Average per-ticker returns at every sampled timestamp
- Rebase the series so its first point is 0%

The series is a pure function of its inputs: iterating twice over the
same tickers yields identical points.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Set

from navtracker.domain.models import NavPoint, TickerPosition
from navtracker.domain.services.return_calculator import percent_change
from navtracker.utils.time import now_utc

logger = logging.getLogger(__name__)

LARGE_SERIES_THRESHOLD = 100
MEDIUM_SERIES_THRESHOLD = 20
LARGE_SERIES_INTERVAL = 20
MEDIUM_SERIES_INTERVAL = 5


@dataclass(frozen=True)
class _IndexedTicker:
    symbol: str
    reference_price: Decimal
    prices: Dict[datetime, Decimal]


def sampling_interval(max_points: int) -> int:
    """Every 20th point above 100, every 5th above 20, otherwise every point."""
    if max_points > LARGE_SERIES_THRESHOLD:
        return LARGE_SERIES_INTERVAL
    if max_points > MEDIUM_SERIES_THRESHOLD:
        return MEDIUM_SERIES_INTERVAL
    return 1


def _single_ticker_point(ticker: TickerPosition, now: datetime) -> List[NavPoint]:
    history = sorted(ticker.historical_data, key=lambda p: p.timestamp)
    if not history:
        logger.warning("[SIMPLE NAV] Single ticker has no historical data")
        return []

    oldest_price = history[0].price
    newest_price = history[-1].price
    change = percent_change(oldest_price, newest_price)
    if change is None or newest_price <= 0:
        logger.warning("[SIMPLE NAV] Invalid prices for single ticker")
        return []

    logger.debug(
        f"[SIMPLE NAV] Single ticker {ticker.symbol}: {newest_price} vs {oldest_price} "
        f"= {change:.2f}%, rebased to 0%"
    )
    return [
        NavPoint(
            timestamp=now,
            return_percent=Decimal("0"),
            etf_price=newest_price,
            valid_tickers=1,
            total_tickers=1,
        )
    ]


def _index_tickers(tickers: Sequence[TickerPosition]) -> tuple:
    indexed: List[_IndexedTicker] = []
    max_points = 0

    for ticker in tickers:
        try:
            if not ticker.historical_data:
                continue
            max_points = max(max_points, len(ticker.historical_data))

            history = sorted(ticker.historical_data, key=lambda p: p.timestamp)
            reference_price = history[0].price
            if reference_price is None or reference_price <= 0:
                continue

            prices = {p.timestamp: p.price for p in history if p.price > 0}
            indexed.append(_IndexedTicker(ticker.symbol, reference_price, prices))
        except Exception:
            logger.exception(f"[SIMPLE NAV] Skipping {getattr(ticker, 'symbol', '?')}: unreadable history")

    return indexed, max_points


def _sampled_timestamps(indexed: Sequence[_IndexedTicker], interval: int) -> List[datetime]:
    selected: Set[datetime] = set()
    for ticker in indexed:
        timestamps = sorted(ticker.prices)
        if not timestamps:
            continue
        selected.update(timestamps[::interval])
        # Keep both ends so the series starts at acquisition and ends at the latest quote
        selected.add(timestamps[0])
        selected.add(timestamps[-1])
    return sorted(selected)


def iter_nav_series(
    tickers: Iterable[TickerPosition],
    now: Optional[datetime] = None,
) -> Iterator[NavPoint]:
    """
    Lazily yield NAV points for a set of tickers.

    Args:
        tickers: Normalized positions
        now: Timestamp for the single-ticker point (injectable for tests)

    Yields:
        NavPoint values, ascending by timestamp, first point at 0%
    """
    tickers = list(tickers or [])
    if not tickers:
        logger.debug("[SIMPLE NAV] No portfolio data, returning empty series")
        return

    if len(tickers) == 1:
        yield from _single_ticker_point(tickers[0], now or now_utc())
        return

    indexed, max_points = _index_tickers(tickers)
    if not indexed:
        logger.warning("[SIMPLE NAV] No valid tickers found")
        return

    interval = sampling_interval(max_points)
    timestamps = _sampled_timestamps(indexed, interval)
    logger.debug(
        f"[SIMPLE NAV] {len(timestamps)} sampled timestamps for {len(indexed)} tickers "
        f"(interval {interval}, max {max_points} points per ticker)"
    )

    baseline: Optional[Decimal] = None
    for timestamp in timestamps:
        total_return = Decimal("0")
        total_price = Decimal("0")
        valid = 0

        for ticker in indexed:
            price = ticker.prices.get(timestamp)
            if price is None:
                continue
            change = percent_change(ticker.reference_price, price)
            if change is None:
                continue
            total_return += change
            total_price += price
            valid += 1

        average_return = total_return / valid if valid else Decimal("0")
        etf_price = total_price / valid if valid else Decimal("0")

        if baseline is None:
            baseline = average_return

        yield NavPoint(
            timestamp=timestamp,
            return_percent=average_return - baseline,
            etf_price=etf_price,
            valid_tickers=valid,
            total_tickers=len(indexed),
        )


def compute_nav_series(
    tickers: Iterable[TickerPosition],
    now: Optional[datetime] = None,
) -> List[NavPoint]:
    """Materialized NAV series; see iter_nav_series."""
    return list(iter_nav_series(tickers, now=now))
