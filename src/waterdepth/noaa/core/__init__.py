"""
NOAA Core Functionality.

This module provides the CO-OPS API client, request rate limiting, raw payload
caching and the reference station catalog.
"""

from .noaa_client import NOAAClient, DAILY_MEAN, MONTHLY_MEAN
from .cache_manager import WaterLevelCache
from .rate_limiter import RateLimiter
from .station_catalog import Station, StationCatalog

__all__ = [
    'NOAAClient',
    'DAILY_MEAN',
    'MONTHLY_MEAN',
    'WaterLevelCache',
    'RateLimiter',
    'Station',
    'StationCatalog'
]
