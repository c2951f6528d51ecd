from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class NavSeriesMetadata(BaseModel):
    watchlist_slug: str
    timeframe: str
    exported_at: datetime
    total_points: int


class NavSeriesPoint(BaseModel):
    timestamp: datetime
    nav_value: float
    etf_price: float
    valid_tickers: int
    total_cohort: int


class NavSeriesExport(BaseModel):
    metadata: NavSeriesMetadata
    nav_series: List[NavSeriesPoint]


class NavSnapshotSchema(BaseModel):
    timestamp: datetime
    return_percent: Optional[float]
    valid_tickers: int
    total_tickers: int
    source: str


class NavUpdateEvent(BaseModel):
    watchlist_slug: str
    source: str
    timestamp: datetime
    is_real_time: bool
    nav_data: List[NavSnapshotSchema]
