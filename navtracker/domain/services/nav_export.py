"""
NAV export helpers.
Converts engine values into pydantic documents for display or download.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from navtracker.config import settings
from navtracker.domain.models import NAVSnapshot, NavPoint, Timeframe
from navtracker.domain.schemas.nav import (
    NavSeriesExport,
    NavSeriesMetadata,
    NavSeriesPoint,
    NavSnapshotSchema,
)
from navtracker.utils.time import now_utc


def _round(value: Optional[Decimal], precision: int) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), precision)


def export_nav_series(
    points: Iterable[NavPoint],
    watchlist_slug: str,
    timeframe: Timeframe = Timeframe.MAX,
    exported_at: Optional[datetime] = None,
    precision: Optional[int] = None,
) -> NavSeriesExport:
    precision = settings.NAV_EXPORT_PRECISION if precision is None else precision
    series = [
        NavSeriesPoint(
            timestamp=point.timestamp,
            nav_value=_round(point.return_percent, precision),
            etf_price=_round(point.etf_price, precision),
            valid_tickers=point.valid_tickers,
            total_cohort=point.total_tickers,
        )
        for point in points
    ]
    return NavSeriesExport(
        metadata=NavSeriesMetadata(
            watchlist_slug=watchlist_slug,
            timeframe=Timeframe.parse(timeframe).value,
            exported_at=exported_at or now_utc(),
            total_points=len(series),
        ),
        nav_series=series,
    )


def snapshot_to_schema(snapshot: NAVSnapshot) -> NavSnapshotSchema:
    return NavSnapshotSchema(
        timestamp=snapshot.timestamp,
        return_percent=_round(snapshot.return_percent, settings.NAV_EXPORT_PRECISION),
        valid_tickers=snapshot.valid_tickers,
        total_tickers=snapshot.total_tickers,
        source=snapshot.source.value,
    )
