"""
Water level reading retrieval.

Readings are requested one unit at a time, where a unit is a
(station, year, product) combination. Units are independent, so they are
issued on a bounded thread pool; a failed unit is recorded in the failure
manifest and the rest carry on. Results are merged in unit-key order so the
output does not depend on completion order.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple, Union
import logging

import numpy as np
import pandas as pd
from tqdm.auto import tqdm

from .core.cache_manager import WaterLevelCache
from .core.noaa_client import NOAAClient, DAILY_MEAN, MONTHLY_MEAN, PRODUCTS
from .core.station_catalog import Station, StationCatalog
from ..config import SENTINEL
from ..exceptions import NOAAApiError

logger = logging.getLogger(__name__)

RAW_COLUMNS = [
    'noaa_id', 'station_name', 'latitude', 'longitude', 'granularity',
    'date', 'year', 'month', 'water_level', 'high', 'mean', 'low',
]

# monthly_mean payload field -> reading column
MONTHLY_FIELDS = {'highest': 'high', 'MSL': 'mean', 'lowest': 'low'}


@dataclass(frozen=True)
class FetchUnit:
    """One independent request: a station, a calendar year and a product."""
    noaa_id: str
    year: int
    granularity: str
    begin: date
    end: date

    @property
    def key(self) -> Tuple[str, int, str]:
        return (self.noaa_id, self.year, self.granularity)


@dataclass(frozen=True)
class FetchFailure:
    """A unit that could not be retrieved."""
    noaa_id: str
    year: int
    granularity: str
    reason: str


@dataclass
class FetchResult:
    """Raw readings plus the manifest of failed units."""
    readings: pd.DataFrame
    failures: List[FetchFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)


def _to_measurement(values: pd.Series, sentinel: float) -> pd.Series:
    """Coerce payload strings to floats; blanks and the sentinel become NaN."""
    numeric = pd.to_numeric(values, errors='coerce').astype(float)
    return numeric.mask(numeric == sentinel)


def _station_metadata(payload: Dict) -> Dict:
    metadata = payload['metadata']
    return {
        'station_name': metadata['name'],
        'latitude': float(metadata['lat']),
        'longitude': float(metadata['lon']),
    }


def normalize_daily_payload(payload: Dict, noaa_id: str, sentinel: float = SENTINEL) -> pd.DataFrame:
    """Turn a daily_mean payload into raw reading rows."""
    records = pd.DataFrame(payload['data'])
    if records.empty:
        return pd.DataFrame(columns=RAW_COLUMNS)

    readings = pd.DataFrame({
        'date': pd.to_datetime(records['t']).dt.normalize(),
        'water_level': _to_measurement(records['v'], sentinel),
    })
    for column, value in _station_metadata(payload).items():
        readings[column] = value
    readings['noaa_id'] = noaa_id
    readings['granularity'] = DAILY_MEAN
    return readings.reindex(columns=RAW_COLUMNS)


def normalize_monthly_payload(payload: Dict, noaa_id: str, sentinel: float = SENTINEL) -> pd.DataFrame:
    """Turn a monthly_mean payload into raw reading rows (high/mean/low)."""
    records = pd.DataFrame(payload['data'])
    if records.empty:
        return pd.DataFrame(columns=RAW_COLUMNS)

    readings = pd.DataFrame({
        'year': pd.to_numeric(records['year']).astype(int),
        'month': pd.to_numeric(records['month']).astype(int),
    })
    for source, column in MONTHLY_FIELDS.items():
        readings[column] = _to_measurement(records[source], sentinel)
    for column, value in _station_metadata(payload).items():
        readings[column] = value
    readings['noaa_id'] = noaa_id
    readings['granularity'] = MONTHLY_MEAN
    return readings.reindex(columns=RAW_COLUMNS)


class WaterLevelFetcher:
    """Retrieves daily and monthly water level readings for catalog stations."""

    def __init__(
        self,
        client: NOAAClient,
        catalog: StationCatalog,
        cache: Optional[WaterLevelCache] = None,
        max_workers: int = 4,
        sentinel: float = SENTINEL,
        show_progress: bool = True
    ):
        """Initialize the fetcher.

        Args:
            client: NOAA API client
            catalog: Stations to fetch
            cache: Optional raw payload cache
            max_workers: Upper bound on concurrent requests
            sentinel: "No data" flag to strip from payload values
            show_progress: Show a tqdm progress bar
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.client = client
        self.catalog = catalog
        self.cache = cache
        self.max_workers = max_workers
        self.sentinel = sentinel
        self.show_progress = show_progress

    @staticmethod
    def plan_units(
        stations: Iterable[Station],
        start: Union[str, date],
        end: Union[str, date],
        granularities: Iterable[str] = PRODUCTS
    ) -> List[FetchUnit]:
        """Split a date range into per-station, per-year, per-product units."""
        start = pd.Timestamp(start).date()
        end = pd.Timestamp(end).date()
        if end < start:
            raise ValueError(f"End date {end} is before start date {start}")

        granularities = list(granularities)
        unknown = [g for g in granularities if g not in PRODUCTS]
        if unknown:
            raise ValueError(f"Unknown granularities: {unknown}")

        units = []
        for station in stations:
            for year in range(start.year, end.year + 1):
                begin = max(start, date(year, 1, 1))
                finish = min(end, date(year, 12, 31))
                for granularity in granularities:
                    units.append(FetchUnit(station.noaa_id, year, granularity, begin, finish))
        return sorted(units, key=lambda u: u.key)

    def _load_payload(self, unit: FetchUnit) -> Dict:
        if self.cache is not None:
            cached = self.cache.get(unit.noaa_id, unit.granularity, unit.year)
            if cached is not None:
                logger.debug(f"Cache hit for {unit.key}")
                return cached

        payload = self.client.fetch_product(unit.noaa_id, unit.begin, unit.end, unit.granularity)

        if self.cache is not None:
            self.cache.put(unit.noaa_id, unit.granularity, unit.year, payload)
        return payload

    def fetch_unit(self, unit: FetchUnit) -> pd.DataFrame:
        """Fetch and normalize a single unit.

        Raises:
            NOAAApiError: If the request fails
            KeyError, ValueError, TypeError: If the payload is malformed
        """
        payload = self._load_payload(unit)
        if unit.granularity == DAILY_MEAN:
            return normalize_daily_payload(payload, unit.noaa_id, self.sentinel)
        return normalize_monthly_payload(payload, unit.noaa_id, self.sentinel)

    def fetch(
        self,
        start: Union[str, date],
        end: Union[str, date],
        granularities: Iterable[str] = PRODUCTS,
        stations: Optional[List[Station]] = None
    ) -> FetchResult:
        """Fetch readings for every station, year and granularity in range.

        Args:
            start: First day of the study period
            end: Last day of the study period
            granularities: Products to request
            stations: Subset of catalog stations. Defaults to the whole catalog.

        Returns:
            FetchResult with the merged raw readings and the failure manifest
        """
        stations = stations if stations is not None else self.catalog.stations()
        units = self.plan_units(stations, start, end, granularities)
        logger.info(f"Fetching {len(units)} units for {len(stations)} stations "
                    f"with {self.max_workers} workers")

        frames: Dict[Tuple[str, int, str], pd.DataFrame] = {}
        failures: List[FetchFailure] = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_unit = {executor.submit(self.fetch_unit, unit): unit for unit in units}
            for future in tqdm(
                as_completed(future_to_unit),
                total=len(future_to_unit),
                desc="Fetching water levels",
                disable=not self.show_progress
            ):
                unit = future_to_unit[future]
                try:
                    frames[unit.key] = future.result()
                except (NOAAApiError, KeyError, ValueError, TypeError) as e:
                    logger.warning(f"Fetch failed for station {unit.noaa_id}, "
                                   f"{unit.year}, {unit.granularity}: {e}")
                    failures.append(FetchFailure(unit.noaa_id, unit.year, unit.granularity, str(e)))

        failures.sort(key=lambda f: (f.noaa_id, f.year, f.granularity))
        ordered = [frames[key] for key in sorted(frames) if not frames[key].empty]
        if ordered:
            readings = pd.concat(ordered, ignore_index=True)
        else:
            readings = pd.DataFrame(columns=RAW_COLUMNS)

        for column in ('latitude', 'longitude', 'water_level', 'high', 'mean', 'low'):
            readings[column] = readings[column].astype(np.float64)

        logger.info(f"Fetched {len(readings)} readings; {len(failures)} of {len(units)} units failed")
        return FetchResult(readings=readings, failures=failures)
