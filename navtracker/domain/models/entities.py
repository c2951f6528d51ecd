"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Tuple
from uuid import uuid4


class TickerType(str, Enum):
    """Origin of a tracked ticker"""
    REAL = "real"
    SYNTHETIC = "synthetic"


class Timeframe(str, Enum):
    """Window a return is measured over"""
    DAY = "D"
    WEEK = "W"
    MONTH = "M"
    YEAR = "Y"
    YEAR_TO_DATE = "YTD"
    MAX = "MAX"
    CUSTOM = "CUSTOM"

    @classmethod
    def parse(cls, tag: Any) -> "Timeframe":
        """Accept a Timeframe, its value ("YTD") or its name ("year_to_date")."""
        if isinstance(tag, cls):
            return tag
        text = str(tag).strip().upper()
        for member in cls:
            if text in (member.value, member.name):
                return member
        raise ValueError(f"Unknown timeframe: {tag!r}")


class NavSource(str, Enum):
    """Which path produced a NAV emission"""
    ALIGNED = "aligned"
    REALTIME = "realtime"
    MANUAL = "manual"


@dataclass(frozen=True)
class PricePoint:
    """Single observed price"""
    timestamp: datetime
    price: Decimal


@dataclass(frozen=True)
class NormalizationWarning:
    """A field the normalizer had to default or repair"""
    field: str
    reason: str
    raw_value: Any = None


@dataclass(frozen=True)
class TickerPosition:
    """
    Tracked instrument with a cost basis and a price history.

    Built by the ticker normalizer; refreshes derive new instances with
    dataclasses.replace rather than mutating.
    """
    symbol: str
    buy_price: Decimal
    buy_date: datetime
    historical_data: Tuple[PricePoint, ...]
    added_at: datetime
    type: TickerType = TickerType.REAL
    incomplete: bool = False
    current_price: Optional[Decimal] = None
    warnings: Tuple[NormalizationWarning, ...] = ()

    @property
    def has_history(self) -> bool:
        return len(self.historical_data) > 0


@dataclass(frozen=True)
class NormalizationResult:
    """Best-effort ticker plus what had to be defaulted to build it"""
    ticker: TickerPosition
    warnings: Tuple[NormalizationWarning, ...] = ()

    @property
    def is_clean(self) -> bool:
        return not self.warnings


@dataclass(frozen=True)
class ReturnSlice:
    """Start/end price pair for one ticker and timeframe"""
    start_point: Optional[PricePoint]
    end_point: Optional[PricePoint]

    @property
    def is_usable(self) -> bool:
        if self.start_point is None or self.end_point is None:
            return False
        return self.start_point.price > 0 and self.end_point.price is not None


@dataclass(frozen=True)
class TickerReturn:
    """Return of one position over a timeframe"""
    symbol: str
    reference_price: Decimal
    current_price: Decimal
    return_percent: Decimal


@dataclass(frozen=True)
class ReturnStats:
    """Summary of per-ticker returns across a watchlist"""
    total_tickers: int
    tickers_with_returns: int
    average_return: Optional[Decimal]
    best_performer: Optional[TickerReturn]
    worst_performer: Optional[TickerReturn]
    positive_returns: int
    negative_returns: int


@dataclass(frozen=True)
class NavPoint:
    """One point of a computed NAV series"""
    timestamp: datetime
    return_percent: Decimal
    etf_price: Decimal
    valid_tickers: int
    total_tickers: int


@dataclass(frozen=True)
class NAVSnapshot:
    """Portfolio return published to subscribers"""
    timestamp: datetime
    return_percent: Optional[Decimal]
    valid_tickers: int
    total_tickers: int
    source: NavSource


_SLUG_INVALID = re.compile(r"[^a-z0-9]")


def slugify_name(name: str) -> str:
    """Lower-case the name and replace every non [a-z0-9] character with '-'."""
    return _SLUG_INVALID.sub("-", name.lower())


def unique_slug(name: str, existing: Iterable[str] = ()) -> str:
    base = slugify_name(name)
    taken = set(existing)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


@dataclass
class Watchlist:
    """User-curated list of positions, owned by the persistence store"""
    id: str
    name: str
    slug: str
    items: list = field(default_factory=list)
    created_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        name: str,
        items: Optional[list] = None,
        existing_slugs: Iterable[str] = (),
        created_at: Optional[datetime] = None,
    ) -> "Watchlist":
        if not name or not name.strip():
            raise ValueError("Watchlist name cannot be empty")
        return cls(
            id=uuid4().hex,
            name=name,
            slug=unique_slug(name, existing_slugs),
            items=list(items or []),
            created_at=created_at,
        )

    def remove_symbol(self, symbol: str) -> bool:
        """Drop a symbol from the list. Returns True if anything was removed."""
        target = symbol.strip().upper()
        before = len(self.items)
        self.items = [item for item in self.items if item.symbol != target]
        return len(self.items) != before
