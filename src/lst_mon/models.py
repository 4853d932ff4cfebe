"""
Data structures shared by the LST pipeline stages.

All records are immutable named tuples; stages return new values
(``_replace``) instead of modifying their inputs.
"""

import numpy as np
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union


class SceneResult(NamedTuple):
    """A catalogue hit: acquisition time, source collection and STAC item."""
    date: datetime
    collection: str
    item: dict

    @property
    def scene_id(self) -> str:
        return self.item.get('id', 'unknown')

    @property
    def cloud_cover(self) -> Optional[float]:
        return self.item.get('properties', {}).get('eo:cloud_cover')


class RasterImage(NamedTuple):
    """
    One satellite observation read over the area of interest.

    ``valid`` is the pixel validity shared by every band. ``transform`` and
    ``epsg`` describe the pixel grid in the asset's native CRS.
    """
    scene_id: str
    collection: str
    timestamp: datetime
    bands: Dict[str, np.ndarray]
    valid: np.ndarray
    transform: Any
    epsg: Optional[int]
    metadata: Dict[str, Any]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.valid.shape

    @property
    def valid_fraction(self) -> float:
        if self.valid.size == 0:
            return 0.0
        return float(np.mean(self.valid))


class ObservationRecord(NamedTuple):
    """One row of the LST time series."""
    date: str
    lst_mean: Optional[float]
    lst_std: Optional[float]
    lst_count: int
    year: int
    month: int
    day: int
    day_of_year: int
    scene_id: str = ""

    @property
    def is_valid(self) -> bool:
        return self.lst_mean is not None and not np.isnan(self.lst_mean)


class SummaryStatistics(NamedTuple):
    count: int
    mean: Optional[float]
    min: Optional[float]
    max: Optional[float]
    std: Optional[float] = None
    median: Optional[float] = None


class GroupStatistics(NamedTuple):
    """Statistics for one month, year or season bucket."""
    key: Union[int, str]
    label: str
    count: int
    mean: Optional[float]
    min: Optional[float]
    max: Optional[float]


class TimeSeriesSummary(NamedTuple):
    overall: SummaryStatistics
    monthly: List[GroupStatistics]
    yearly: List[GroupStatistics]
    seasonal: List[GroupStatistics]
    valid_count: int


class LSTAnalysis(NamedTuple):
    """Everything a caller needs to render one area's LST analysis."""
    boundary: dict
    start_date: str
    end_date: str
    cloud_cover: float
    records: List[ObservationRecord]
    summary: TimeSeriesSummary
    latest: Optional[RasterImage]
    scene_count: int
    failed_scenes: List[str]
