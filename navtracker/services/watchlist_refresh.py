"""
Watchlist refresh orchestration.

Pulls fresh price history from a QuoteHistoryProvider, merges it into each
position and applies the buy-date filter once per refresh. Persistence is
left to the caller: this module only transforms in-memory positions.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from navtracker.config import settings
from navtracker.domain.models import PricePoint, TickerPosition, TickerType
from navtracker.domain.services.history_merger import filter_since_buy_date, merge_historical_data
from navtracker.domain.services.ticker_normalizer import (
    normalize_symbol,
    normalize_ticker,
    to_decimal,
)
from navtracker.infrastructure.market_data.types import QuoteHistoryProvider
from navtracker.utils.time import now_utc, parse_instant

logger = logging.getLogger(__name__)


def _coerce_points(symbol: str, raw_points: Optional[Iterable[Any]]) -> List[PricePoint]:
    if not raw_points:
        return []
    ticker = normalize_ticker({"symbol": symbol, "historical_data": list(raw_points)})
    return list(ticker.historical_data)


def _quote_price(quote: Any) -> Optional[Decimal]:
    """Latest price reported by a quote, if any."""
    if quote is None:
        return None
    ticker = quote if isinstance(quote, TickerPosition) else normalize_ticker(quote)
    if ticker.current_price is not None:
        return ticker.current_price
    if ticker.historical_data:
        return ticker.historical_data[-1].price
    return None


class WatchlistRefreshService:
    """Refreshes positions against a quote/history provider."""

    def __init__(self, provider: QuoteHistoryProvider, concurrency: Optional[int] = None):
        self.provider = provider
        self._semaphore = asyncio.Semaphore(concurrency or settings.REFRESH_CONCURRENCY)

    async def refresh_items(self, items: Iterable[TickerPosition]) -> List[TickerPosition]:
        """
        Refresh every real ticker in a watchlist.

        Args:
            items: Current positions

        Returns:
            Positions in the same order; tickers whose refresh failed or
            returned nothing are passed through unchanged
        """
        items = list(items)
        logger.info(f"🔄 Refreshing {len(items)} tickers")
        return list(await asyncio.gather(*(self._refresh_guarded(item) for item in items)))

    async def _refresh_guarded(self, item: TickerPosition) -> TickerPosition:
        async with self._semaphore:
            try:
                return await self.refresh_ticker(item)
            except Exception as e:
                logger.error(f"❌ Error refreshing {item.symbol}: {e}")
                return item

    async def refresh_ticker(self, item: TickerPosition) -> TickerPosition:
        if item.type != TickerType.REAL:
            return item

        incoming = _coerce_points(item.symbol, await self.provider.fetch_history(item.symbol))
        if not incoming:
            logger.warning(f"⚠️ Skipping {item.symbol} due to no historical data")
            return item

        merged = merge_historical_data(item.historical_data, incoming)
        kept = filter_since_buy_date(merged, item.buy_date)
        logger.info(
            f"📊 {item.symbol}: merged {len(item.historical_data)} existing + {len(incoming)} new "
            f"= {len(merged)} points, {len(kept)} since buy date"
        )

        quote_price = _quote_price(await self.provider.fetch_quote(item.symbol))
        updated = replace(
            item,
            historical_data=tuple(kept),
            current_price=quote_price if quote_price is not None else item.current_price,
        )
        return normalize_ticker(updated)

    async def create_ticker(
        self,
        symbol: str,
        custom_buy_price: Any = None,
        custom_buy_date: Any = None,
        now: Optional[datetime] = None,
    ) -> Optional[TickerPosition]:
        """
        Build a new position from provider data.

        Without custom values the position is bought at the latest price.
        A custom buy price/date is also inserted into the history when no
        point exists at that instant.
        """
        symbol = normalize_symbol(symbol)
        if not symbol:
            logger.error(f"❌ create_ticker: invalid symbol {symbol!r}")
            return None

        added_at = now or now_utc()
        try:
            history = _coerce_points(symbol, await self.provider.fetch_history(symbol))
            if not history:
                logger.warning(f"⚠️ No historical data received for {symbol}")
                return None

            current_price = history[-1].price
            current_timestamp = history[-1].timestamp
            quote_price = _quote_price(await self.provider.fetch_quote(symbol))
            if quote_price is not None:
                current_price = quote_price
        except Exception as e:
            logger.error(f"❌ create_ticker failed for {symbol}: {e}")
            return None

        buy_price = to_decimal(custom_buy_price)
        buy_date = parse_instant(custom_buy_date)
        has_custom = (buy_price is not None and buy_price > 0) or buy_date is not None
        buy_price = buy_price if buy_price is not None and buy_price > 0 else current_price
        buy_date = buy_date or current_timestamp

        if has_custom and all(p.timestamp != buy_date for p in history):
            history.append(PricePoint(timestamp=buy_date, price=buy_price))
            logger.info(f"📊 Added custom buy point to historical data for {symbol}")

        return normalize_ticker(
            {
                "symbol": symbol,
                "buy_price": buy_price,
                "buy_date": buy_date,
                "historical_data": history,
                "current_price": current_price,
                "added_at": added_at,
                "type": TickerType.REAL.value,
            }
        )


async def refresh_watchlist_items(
    items: Iterable[TickerPosition],
    provider: QuoteHistoryProvider,
    concurrency: Optional[int] = None,
) -> List[TickerPosition]:
    return await WatchlistRefreshService(provider, concurrency).refresh_items(items)


async def create_ticker(
    symbol: str,
    provider: QuoteHistoryProvider,
    custom_buy_price: Any = None,
    custom_buy_date: Any = None,
    now: Optional[datetime] = None,
) -> Optional[TickerPosition]:
    return await WatchlistRefreshService(provider).create_ticker(
        symbol, custom_buy_price=custom_buy_price, custom_buy_date=custom_buy_date, now=now
    )
