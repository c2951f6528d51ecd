"""
RETURN CALCULATOR
Per-ticker percentage returns and their portfolio average

RULES (LOCKED):
✅ MAX measures against the stored buy price (cost basis)
✅ Other timeframes measure against the window's start price
✅ current_price, when reported, overrides the latest history price
❌ Never use buy_price as a stand-in current price
❌ Never average an excluded ticker in as 0%
"""

import logging
from datetime import datetime, tzinfo
from decimal import Decimal
from typing import Iterable, List, Optional

from navtracker.domain.models import (
    ReturnSlice,
    ReturnStats,
    TickerPosition,
    TickerReturn,
    Timeframe,
)
from navtracker.domain.services.timeframe_resolver import resolve_slice

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def percent_change(reference: Decimal, current: Decimal) -> Optional[Decimal]:
    """(current - reference) / reference * 100, or None for a non-positive reference."""
    if reference is None or current is None or reference <= 0:
        return None
    return (current - reference) / reference * HUNDRED


def ticker_return(
    return_slice: ReturnSlice,
    timeframe: Timeframe,
    buy_price: Optional[Decimal] = None,
    current_price: Optional[Decimal] = None,
) -> Optional[Decimal]:
    """
    Percentage return for a resolved slice.

    Args:
        return_slice: Start/end points from the timeframe resolver
        timeframe: MAX uses buy_price as reference, others the slice start
        buy_price: Position cost basis
        current_price: Latest reported quote; overrides the slice end price

    Returns:
        Return percent, or None when the slice is unusable
    """
    if not return_slice.is_usable:
        return None

    if Timeframe.parse(timeframe) == Timeframe.MAX and buy_price is not None and buy_price > 0:
        reference = buy_price
    else:
        reference = return_slice.start_point.price

    current = current_price if current_price is not None else return_slice.end_point.price
    return percent_change(reference, current)


def is_valid_for_return(ticker: TickerPosition) -> bool:
    """History present, positive buy price, and a usable buy date."""
    if not ticker.has_history:
        logger.warning(f"⚠️ Skipping {ticker.symbol}: no historical data")
        return False
    if ticker.buy_price is None or ticker.buy_price <= 0:
        logger.warning(f"⚠️ Skipping {ticker.symbol}: invalid buy price")
        return False
    if not isinstance(ticker.buy_date, datetime):
        logger.warning(f"⚠️ Skipping {ticker.symbol}: invalid buy date")
        return False
    return True


def calculate_ticker_return(
    ticker: TickerPosition,
    timeframe: Timeframe = Timeframe.MAX,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> Optional[TickerReturn]:
    """Resolve the timeframe for one position and compute its return."""
    timeframe = Timeframe.parse(timeframe)
    return_slice = resolve_slice(
        ticker.historical_data,
        timeframe,
        buy_date=ticker.buy_date,
        buy_price=ticker.buy_price,
        now=now,
        zone=zone,
        symbol=ticker.symbol,
    )
    result = ticker_return(
        return_slice,
        timeframe,
        buy_price=ticker.buy_price,
        current_price=ticker.current_price,
    )
    if result is None:
        logger.warning(f"⚠️ Skipping {ticker.symbol}: invalid price points")
        return None

    if timeframe == Timeframe.MAX and ticker.buy_price > 0:
        reference = ticker.buy_price
    else:
        reference = return_slice.start_point.price
    current = ticker.current_price if ticker.current_price is not None else return_slice.end_point.price

    logger.debug(
        f"[Watchlist Calc] {ticker.symbol}: reference={reference}, current={current}, "
        f"return={result:.2f}% (timeframe: {timeframe.value})"
    )
    return TickerReturn(
        symbol=ticker.symbol,
        reference_price=reference,
        current_price=current,
        return_percent=result,
    )


def collect_ticker_returns(
    items: Iterable[TickerPosition],
    timeframe: Timeframe = Timeframe.MAX,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> List[TickerReturn]:
    """Returns for every valid ticker; invalid or failing tickers are skipped."""
    results: List[TickerReturn] = []
    for ticker in items:
        try:
            if not is_valid_for_return(ticker):
                continue
            result = calculate_ticker_return(ticker, timeframe, now=now, zone=zone)
        except Exception:
            logger.exception(f"❌ Return calculation failed for {getattr(ticker, 'symbol', '?')}")
            continue
        if result is not None:
            results.append(result)
    return results


def portfolio_return(
    items: Iterable[TickerPosition],
    timeframe: Timeframe = Timeframe.MAX,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> Optional[Decimal]:
    """
    Arithmetic mean of the valid tickers' returns.

    Returns None when no ticker is valid, so "no data" is never shown as 0%.
    """
    items = list(items or [])
    if not items:
        return None

    returns = collect_ticker_returns(items, timeframe, now=now, zone=zone)
    if not returns:
        logger.warning("⚠️ No valid items for watchlist return calculation")
        return None

    average = sum((r.return_percent for r in returns), Decimal("0")) / len(returns)
    logger.debug(
        f"Watchlist average return ({Timeframe.parse(timeframe).value}): "
        f"{average:.2f}% ({len(returns)}/{len(items)} valid tickers)"
    )
    return average


def get_return_stats(
    items: Iterable[TickerPosition],
    timeframe: Timeframe = Timeframe.MAX,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> ReturnStats:
    """Best / worst performer and sign counts across a watchlist."""
    items = list(items or [])
    returns = collect_ticker_returns(items, timeframe, now=now, zone=zone)

    if not returns:
        return ReturnStats(
            total_tickers=len(items),
            tickers_with_returns=0,
            average_return=None,
            best_performer=None,
            worst_performer=None,
            positive_returns=0,
            negative_returns=0,
        )

    ranked = sorted(returns, key=lambda r: r.return_percent, reverse=True)
    return ReturnStats(
        total_tickers=len(items),
        tickers_with_returns=len(returns),
        average_return=sum((r.return_percent for r in returns), Decimal("0")) / len(returns),
        best_performer=ranked[0],
        worst_performer=ranked[-1],
        positive_returns=sum(1 for r in returns if r.return_percent > 0),
        negative_returns=sum(1 for r in returns if r.return_percent < 0),
    )
