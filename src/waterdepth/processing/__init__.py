"""
Spatial-temporal join and depth derivation.

This module provides:
1. Per-station aggregation of raw readings into daily and monthly products
2. Nearest-station assignment for observations
3. Inner joins of observations onto readings by (station, date) and
   (station, month, year)
4. Depth computation with sentinel handling, elevation fallback and clamping
"""

from .aggregator import TemporalAggregator, AggregatedReadings
from .spatial_ops import NearestStationFinder, MatchResult, LonLat, CoordinateColumns
from .join import ReadingJoiner, JoinResult
from .depth import DepthCalculator, ElevationSource, attach_dem
from .validation import compare_with_observed

__all__ = [
    "TemporalAggregator",
    "AggregatedReadings",
    "NearestStationFinder",
    "MatchResult",
    "LonLat",
    "CoordinateColumns",
    "ReadingJoiner",
    "JoinResult",
    "DepthCalculator",
    "ElevationSource",
    "attach_dem",
    "compare_with_observed",
]
