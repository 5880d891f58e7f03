"""
NOAA water level data package.

Tools for retrieving daily and monthly water levels for the reference gauge
stations and normalizing them into uniform reading rows.
"""

from . import core

from .core import NOAAClient, WaterLevelCache, Station, StationCatalog
from .water_level_fetcher import WaterLevelFetcher, FetchFailure, FetchResult, FetchUnit

__all__ = [
    'core',
    'NOAAClient',
    'WaterLevelCache',
    'Station',
    'StationCatalog',
    'WaterLevelFetcher',
    'FetchFailure',
    'FetchResult',
    'FetchUnit'
]
