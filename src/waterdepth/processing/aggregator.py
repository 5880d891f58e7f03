"""
Per-station aggregation of raw water level readings.

Raw rows come from the fetcher with the station name and coordinates echoed by
the service on every call. This module:

1. Maps station names to the catalog's integer station ids. The mapping is
   supplied once and validated up front; rows whose name is not mapped are
   excluded and counted rather than given a null id.
2. Reduces the jittering per-call coordinates to one mean coordinate per station.
3. Produces one daily row per station/day and one monthly row per
   station/month/year with the high (max), mean (mean) and low (min) levels.

Running the daily or monthly reduction on its own output returns it unchanged.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Tuple
import logging

import numpy as np
import pandas as pd

from ..config import SENTINEL
from ..noaa.core.noaa_client import DAILY_MEAN, MONTHLY_MEAN

logger = logging.getLogger(__name__)

DAILY_COLUMNS = ['station_id', 'station_name', 'date', 'water_level']
MONTHLY_COLUMNS = ['station_id', 'station_name', 'year', 'month', 'high', 'mean', 'low']
STATION_COLUMNS = ['station_id', 'station_name', 'latitude', 'longitude']

COLUMN_DTYPES = {
    'station_id': 'int64',
    'station_name': 'object',
    'date': 'datetime64[ns]',
    'year': 'int64',
    'month': 'int64',
    'water_level': 'float64',
    'high': 'float64',
    'mean': 'float64',
    'low': 'float64',
    'latitude': 'float64',
    'longitude': 'float64',
}


def empty_table(columns: List[str]) -> pd.DataFrame:
    """Zero-row table with the dtypes the joins expect."""
    return pd.DataFrame({c: pd.Series(dtype=COLUMN_DTYPES[c]) for c in columns})


@dataclass
class AggregatedReadings:
    """Output of TemporalAggregator.aggregate()."""
    stations: pd.DataFrame
    daily: pd.DataFrame
    monthly: pd.DataFrame
    unmapped_rows: int = 0
    unmapped_names: List[str] = field(default_factory=list)


class TemporalAggregator:
    """Collapses raw readings into per-station daily and monthly products."""

    def __init__(self, name_to_id: Mapping[str, int], sentinel: float = SENTINEL):
        """Initialize the aggregator.

        Args:
            name_to_id: Station display name -> station id
            sentinel: "No data" flag to treat as missing

        Raises:
            ValueError: If the mapping is empty, has non-integer ids, or maps
                two names to the same id
        """
        if not name_to_id:
            raise ValueError("Station name -> id mapping is empty")

        mapping: Dict[str, int] = {}
        for name, station_id in name_to_id.items():
            if isinstance(station_id, bool) or not isinstance(station_id, (int, np.integer)):
                raise ValueError(f"Station id for {name!r} must be an integer, got {station_id!r}")
            mapping[name] = int(station_id)

        if len(set(mapping.values())) != len(mapping):
            raise ValueError("Station name -> id mapping assigns the same id to several names")

        self.name_to_id = mapping
        self.sentinel = sentinel

    def station_id_for(self, name: str) -> int:
        """Station id for a mapped name. Raises KeyError for unmapped names."""
        return self.name_to_id[name]

    def _clean(self, values: pd.Series) -> pd.Series:
        values = pd.to_numeric(values, errors='coerce').astype(float)
        return values.mask(values == self.sentinel)

    def _assign_ids(self, readings: pd.DataFrame) -> Tuple[pd.DataFrame, int, List[str]]:
        if 'station_name' not in readings.columns:
            raise ValueError("Readings are missing required column 'station_name'")

        ids = readings['station_name'].map(self.name_to_id)
        unmapped = ids.isna()
        unmapped_rows = int(unmapped.sum())
        unmapped_names = sorted(readings.loc[unmapped, 'station_name'].astype(str).unique())

        if unmapped_rows:
            logger.warning(f"Excluded {unmapped_rows} readings from {len(unmapped_names)} "
                           f"unmapped stations: {unmapped_names}")

        mapped = readings.loc[~unmapped].assign(station_id=ids[~unmapped].astype(int))
        return mapped, unmapped_rows, unmapped_names

    def _daily(self, mapped: pd.DataFrame) -> pd.DataFrame:
        if mapped.empty:
            return empty_table(DAILY_COLUMNS)

        prepared = mapped.assign(
            date=pd.to_datetime(mapped['date']).dt.normalize(),
            water_level=self._clean(mapped['water_level'])
        )
        daily = (
            prepared.groupby(['station_id', 'station_name', 'date'], as_index=False)['water_level']
            .mean()
            .sort_values(['station_id', 'date'])
            .reset_index(drop=True)
        )
        return daily[DAILY_COLUMNS]

    def _monthly(self, mapped: pd.DataFrame) -> pd.DataFrame:
        if mapped.empty:
            return empty_table(MONTHLY_COLUMNS)

        prepared = mapped.assign(
            year=mapped['year'].astype(int),
            month=mapped['month'].astype(int),
            high=self._clean(mapped['high']),
            mean=self._clean(mapped['mean']),
            low=self._clean(mapped['low'])
        )
        monthly = (
            prepared.groupby(['station_id', 'station_name', 'year', 'month'], as_index=False)
            .agg(high=('high', 'max'), mean=('mean', 'mean'), low=('low', 'min'))
            .sort_values(['station_id', 'year', 'month'])
            .reset_index(drop=True)
        )
        return monthly[MONTHLY_COLUMNS]

    def aggregate_daily(self, readings: pd.DataFrame) -> pd.DataFrame:
        """One row per station/day with the mean daily water level."""
        mapped, _, _ = self._assign_ids(readings)
        return self._daily(mapped)

    def aggregate_monthly(self, readings: pd.DataFrame) -> pd.DataFrame:
        """One row per station/month/year with high, mean and low levels."""
        mapped, _, _ = self._assign_ids(readings)
        return self._monthly(mapped)

    def station_coordinates(self, readings: pd.DataFrame) -> pd.DataFrame:
        """Mean reported coordinate per station."""
        mapped, _, _ = self._assign_ids(readings)
        return self._stations(mapped)

    def _stations(self, mapped: pd.DataFrame) -> pd.DataFrame:
        if mapped.empty:
            return empty_table(STATION_COLUMNS)
        stations = (
            mapped.groupby('station_id', as_index=False)
            .agg(
                station_name=('station_name', 'first'),
                latitude=('latitude', 'mean'),
                longitude=('longitude', 'mean')
            )
            .sort_values('station_id')
            .reset_index(drop=True)
        )
        return stations[STATION_COLUMNS]

    def aggregate(self, raw_readings: pd.DataFrame) -> AggregatedReadings:
        """Aggregate raw fetcher output into station, daily and monthly tables.

        Args:
            raw_readings: Rows with station_name, latitude, longitude,
                granularity and the per-granularity value columns

        Returns:
            AggregatedReadings, including the count of excluded unmapped rows
        """
        if 'granularity' not in raw_readings.columns:
            raise ValueError("Raw readings are missing required column 'granularity'")

        mapped, unmapped_rows, unmapped_names = self._assign_ids(raw_readings)
        granularity = mapped['granularity']

        result = AggregatedReadings(
            stations=self.station_coordinates(mapped),
            daily=self.aggregate_daily(mapped[granularity == DAILY_MEAN]),
            monthly=self.aggregate_monthly(mapped[granularity == MONTHLY_MEAN]),
            unmapped_rows=unmapped_rows,
            unmapped_names=unmapped_names
        )

        logger.info(f"Aggregated readings for {len(result.stations)} stations: "
                    f"{len(result.daily)} daily rows, {len(result.monthly)} monthly rows")
        return result
