"""
Collaborator protocols for type hints.

The engine never performs network or storage I/O itself; the surrounding
application supplies objects satisfying these protocols.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Union

from navtracker.domain.models import PricePoint, TickerPosition, Watchlist


class QuoteHistoryProvider(Protocol):
    async def fetch_quote(self, symbol: str) -> Optional[Union[TickerPosition, Mapping[str, Any]]]:
        ...

    async def fetch_history(self, symbol: str) -> Sequence[Union[PricePoint, Mapping[str, Any]]]:
        ...


class WatchlistStore(Protocol):
    def load(self, collection_key: str) -> Dict[str, Watchlist]:
        ...

    def save(self, collection_key: str, watchlists: Dict[str, Watchlist]) -> None:
        ...
