"""
TICKER NORMALIZER
Repair raw ticker records into canonical TickerPosition values

RULES:
- Never raises: malformed input becomes a flagged placeholder
- Every defaulted field is recorded as a NormalizationWarning
- buy_price / buy_date / history problems set incomplete=True
- Re-normalizing a position keeps its earlier warnings and incomplete flag
- current_price is kept only when present and numeric (None != 0)
"""

import logging
from dataclasses import fields, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

from navtracker.domain.models import (
    NormalizationResult,
    NormalizationWarning,
    PricePoint,
    TickerPosition,
    TickerType,
)
from navtracker.utils.time import now_utc, parse_instant

logger = logging.getLogger(__name__)

UNKNOWN_SYMBOL = "UNKNOWN"

# Repairs to these fields do not make a record incomplete
_NON_BLOCKING_FIELDS = {"current_price", "type"}


def to_decimal(value: Any) -> Optional[Decimal]:
    """Coerce a raw number or numeric string to a finite Decimal, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            number = value
        elif isinstance(value, float):
            number = Decimal(str(value))
        elif isinstance(value, (int, str)):
            number = Decimal(str(value).strip())
        else:
            return None
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    return number


def normalize_symbol(symbol: Any) -> str:
    """Trim and upper-case a symbol; empty input yields an empty string."""
    if symbol is None:
        return ""
    return str(symbol).strip().upper()


def _field(raw: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in raw:
            return raw[name]
    return None


def _has_field(raw: Mapping[str, Any], *names: str) -> bool:
    return any(name in raw for name in names)


def _position_as_mapping(ticker: TickerPosition) -> dict:
    data = {f.name: getattr(ticker, f.name) for f in fields(ticker)}
    data["historical_data"] = [
        {"timestamp": p.timestamp, "price": p.price} for p in ticker.historical_data
    ]
    if ticker.current_price is None:
        data.pop("current_price")
    return data


def _placeholder(now: datetime, warning: NormalizationWarning) -> NormalizationResult:
    ticker = TickerPosition(
        symbol=UNKNOWN_SYMBOL,
        buy_price=Decimal("0"),
        buy_date=now,
        historical_data=(),
        added_at=now,
        type=TickerType.REAL,
        incomplete=True,
        warnings=(warning,),
    )
    return NormalizationResult(ticker=ticker, warnings=(warning,))


def _normalize_history(raw_history: Any, warnings: List[NormalizationWarning]) -> List[PricePoint]:
    if raw_history is None:
        return []
    if not isinstance(raw_history, (list, tuple)):
        warnings.append(NormalizationWarning("historical_data", "not a sequence", raw_history))
        return []

    points: List[PricePoint] = []
    for entry in raw_history:
        if isinstance(entry, PricePoint):
            entry = {"timestamp": entry.timestamp, "price": entry.price}
        if not isinstance(entry, Mapping):
            logger.warning("⚠️ Malformed historical entry: %r", entry)
            warnings.append(NormalizationWarning("historical_data", "entry is not a record", entry))
            continue

        timestamp = parse_instant(entry.get("timestamp"))
        if timestamp is None:
            logger.warning("⚠️ Historical entry without a valid timestamp: %r", entry)
            warnings.append(NormalizationWarning("historical_data", "invalid timestamp", entry))
            continue

        price = to_decimal(entry.get("price"))
        if price is None or price < 0:
            logger.warning("⚠️ Malformed historical price, defaulting to 0: %r", entry)
            warnings.append(NormalizationWarning("historical_data", "invalid price", entry))
            price = Decimal("0")
        elif price == 0:
            logger.warning("⚠️ Historical entry has price = 0: %r", entry)
            warnings.append(NormalizationWarning("historical_data", "zero price", entry))

        points.append(PricePoint(timestamp=timestamp, price=price))

    points.sort(key=lambda p: p.timestamp)
    return points


def _build(raw: Mapping[str, Any], now: datetime) -> NormalizationResult:
    warnings: List[NormalizationWarning] = []

    symbol = normalize_symbol(_field(raw, "symbol"))
    if not symbol:
        warnings.append(NormalizationWarning("symbol", "missing symbol", _field(raw, "symbol")))
        symbol = UNKNOWN_SYMBOL

    history = _normalize_history(_field(raw, "historical_data", "historicalData"), warnings)

    raw_buy_price = _field(raw, "buy_price", "buyPrice")
    buy_price = to_decimal(raw_buy_price)
    if buy_price is None or buy_price <= 0:
        logger.warning("⚠️ Invalid or missing buy price for %s, defaulting to 0: %r", symbol, raw_buy_price)
        warnings.append(NormalizationWarning("buy_price", "invalid or missing", raw_buy_price))
        buy_price = Decimal("0")

    added_at = parse_instant(_field(raw, "added_at", "addedAt"))
    if added_at is None:
        added_at = now

    raw_buy_date = _field(raw, "buy_date", "buyDate")
    buy_date = parse_instant(raw_buy_date)
    if buy_date is None:
        logger.warning("⚠️ Invalid or missing buy date for %s, falling back to added_at: %r", symbol, raw_buy_date)
        warnings.append(NormalizationWarning("buy_date", "invalid or missing, used added_at", raw_buy_date))
        buy_date = added_at

    raw_type = _field(raw, "type")
    try:
        ticker_type = TickerType(raw_type) if raw_type else TickerType.REAL
    except ValueError:
        warnings.append(NormalizationWarning("type", "unknown ticker type", raw_type))
        ticker_type = TickerType.REAL

    current_price = None
    if _has_field(raw, "current_price", "currentPrice"):
        raw_current = _field(raw, "current_price", "currentPrice")
        current_price = to_decimal(raw_current)
        if current_price is None and raw_current is not None:
            warnings.append(NormalizationWarning("current_price", "not numeric, omitted", raw_current))

    ticker = TickerPosition(
        symbol=symbol,
        buy_price=buy_price,
        buy_date=buy_date,
        historical_data=tuple(history),
        added_at=added_at,
        type=ticker_type,
        incomplete=any(w.field not in _NON_BLOCKING_FIELDS for w in warnings),
        current_price=current_price,
        warnings=tuple(warnings),
    )
    return NormalizationResult(ticker=ticker, warnings=tuple(warnings))


def _renormalize(position: TickerPosition, now: datetime) -> NormalizationResult:
    """Rebuild a position; repairs recorded on earlier passes are not forgotten."""
    result = normalize_ticker_result(_position_as_mapping(position), now=now)

    warnings = list(position.warnings)
    for warning in result.warnings:
        if warning not in warnings:
            warnings.append(warning)

    ticker = replace(
        result.ticker,
        incomplete=result.ticker.incomplete or position.incomplete,
        warnings=tuple(warnings),
    )
    return NormalizationResult(ticker=ticker, warnings=tuple(warnings))


def normalize_ticker_result(raw: Any, now: Optional[datetime] = None) -> NormalizationResult:
    """
    Normalize a raw ticker record and report every repaired field.

    Args:
        raw: Mapping with camelCase or snake_case keys, or a TickerPosition
        now: Reference instant for defaults (injectable for tests)

    Returns:
        NormalizationResult with the best-effort ticker and its warnings
    """
    now = now or now_utc()

    if isinstance(raw, TickerPosition):
        return _renormalize(raw, now)

    if not isinstance(raw, Mapping):
        logger.warning("⚠️ normalize_ticker received invalid input: %r", raw)
        return _placeholder(now, NormalizationWarning("record", "not a record", raw))

    try:
        result = _build(raw, now)
    except Exception as e:
        logger.error(f"❌ Failed to normalize ticker record: {e}")
        return _placeholder(now, NormalizationWarning("record", f"unreadable record: {e}", None))

    logger.debug(
        "🧼 normalize_ticker → %s (%d points, %d warnings)",
        result.ticker.symbol,
        len(result.ticker.historical_data),
        len(result.warnings),
    )
    return result


def normalize_ticker(raw: Any, now: Optional[datetime] = None) -> TickerPosition:
    """Smart constructor for TickerPosition. Never raises."""
    return normalize_ticker_result(raw, now=now).ticker
