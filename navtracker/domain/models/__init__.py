"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    NavSource,
    TickerType,
    Timeframe,

    # Entities
    NAVSnapshot,
    NavPoint,
    NormalizationResult,
    NormalizationWarning,
    PricePoint,
    ReturnSlice,
    ReturnStats,
    TickerPosition,
    TickerReturn,
    Watchlist,

    # Helpers
    slugify_name,
    unique_slug,
)

__all__ = [
    # Enums
    "NavSource",
    "TickerType",
    "Timeframe",

    # Entities
    "NAVSnapshot",
    "NavPoint",
    "NormalizationResult",
    "NormalizationWarning",
    "PricePoint",
    "ReturnSlice",
    "ReturnStats",
    "TickerPosition",
    "TickerReturn",
    "Watchlist",

    # Helpers
    "slugify_name",
    "unique_slug",
]
