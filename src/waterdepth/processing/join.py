"""
Joins of observations onto station readings.

All joins are inner joins: an observation without a counterpart for its key is
dropped, and the number dropped is returned with the joined table.

Column collisions are settled by one rule rather than by suffixing. Station
metadata and water level columns are owned by the reading side, so when an
observation table carries a column of the same name it is dropped before the
merge. Any other shared column is an error.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
import logging

import pandas as pd

from .spatial_ops import MatchResult

logger = logging.getLogger(__name__)

DAILY_KEY = ('station_id', 'date')
MONTHLY_KEY = ('station_id', 'month', 'year')

MONTHLY_VALUE_COLUMNS = {
    'high': 'water_level_monthly_high',
    'mean': 'water_level_monthly_mean',
    'low': 'water_level_monthly_low',
}
DAILY_VALUE_COLUMNS = {'water_level': 'water_level_daily'}

AUTHORITATIVE_READING_COLUMNS = frozenset({
    'station_name',
    'station_latitude',
    'station_longitude',
    'distance',
    'water_level_daily',
    *MONTHLY_VALUE_COLUMNS.values(),
})


@dataclass
class JoinResult:
    """A joined table and how many input rows found no counterpart."""
    table: pd.DataFrame
    key: Tuple[str, ...]
    input_rows: int
    dropped: int

    @property
    def matched(self) -> int:
        return len(self.table)


def resolve_collisions(
    observations: pd.DataFrame,
    readings: pd.DataFrame,
    key: Sequence[str]
) -> pd.DataFrame:
    """Drop observation columns that the reading side owns.

    Returns:
        The observation table without the redundant columns

    Raises:
        ValueError: If a shared column is not one the reading side owns
    """
    shared = (set(observations.columns) & set(readings.columns)) - set(key)
    unowned = sorted(shared - AUTHORITATIVE_READING_COLUMNS)
    if unowned:
        raise ValueError(f"Columns present on both sides of the join: {unowned}")

    redundant = sorted(shared)
    if redundant:
        logger.debug(f"Dropping observation columns superseded by readings: {redundant}")
        return observations.drop(columns=redundant)
    return observations


class ReadingJoiner:
    """Joins observations to stations and to daily/monthly readings."""

    def __init__(self, id_column: str = 'id', date_column: str = 'date'):
        self.id_column = id_column
        self.date_column = date_column

    def _normalized_dates(self, observations: pd.DataFrame) -> pd.Series:
        if self.date_column not in observations.columns:
            raise ValueError(f"Observations are missing date column {self.date_column!r}")
        return pd.to_datetime(observations[self.date_column]).dt.normalize()

    def _inner_join(
        self,
        observations: pd.DataFrame,
        readings: pd.DataFrame,
        key: Tuple[str, ...],
        label: str
    ) -> JoinResult:
        missing = [c for c in key if c not in readings.columns]
        if missing:
            raise ValueError(f"{label} readings are missing key columns: {missing}")
        if readings.duplicated(list(key)).any():
            raise ValueError(f"{label} readings have duplicate {key} keys")

        left = resolve_collisions(observations, readings, key)
        joined = left.merge(readings, on=list(key), how='inner', validate='many_to_one')
        dropped = len(observations) - len(joined)

        if dropped:
            logger.warning(f"{label} join dropped {dropped} of {len(observations)} observations "
                           f"with no reading for key {key}")
        logger.info(f"{label} join matched {len(joined)} observations")
        return JoinResult(joined.reset_index(drop=True), key, len(observations), dropped)

    def assign_stations(
        self,
        observations: pd.DataFrame,
        matches: MatchResult,
        stations: pd.DataFrame
    ) -> JoinResult:
        """Attach the rank-0 station and its metadata to each observation.

        Args:
            observations: Observation table keyed by the id column
            matches: Output of NearestStationFinder.find_nearest()
            stations: Station table with station_id, station_name, latitude, longitude
        """
        station_info = stations[['station_id', 'station_name', 'latitude', 'longitude']].rename(
            columns={'latitude': 'station_latitude', 'longitude': 'station_longitude'}
        )
        nearest = (
            matches.nearest()
            .rename(columns={'observation_id': self.id_column})
            .merge(station_info, on='station_id', how='inner', validate='many_to_one')
        )
        if 'station_id' in observations.columns:
            raise ValueError("Observations already carry a station_id column")
        return self._inner_join(observations, nearest, (self.id_column,), 'Station')

    def join_daily(self, observations: pd.DataFrame, daily: pd.DataFrame) -> JoinResult:
        """Inner join on (station_id, date), dates compared as calendar days."""
        left = observations.assign(**{self.date_column: self._normalized_dates(observations)})
        readings = daily.rename(columns={'date': self.date_column, **DAILY_VALUE_COLUMNS})
        readings = readings.assign(**{self.date_column: pd.to_datetime(readings[self.date_column]).dt.normalize()})
        key = ('station_id', self.date_column)
        return self._inner_join(left, readings, key, 'Daily')

    def join_monthly(self, observations: pd.DataFrame, monthly: pd.DataFrame) -> JoinResult:
        """Inner join on (station_id, month, year) of the observation date."""
        dates = self._normalized_dates(observations)
        derived = {}
        if 'month' not in observations.columns:
            derived['month'] = dates.dt.month
        if 'year' not in observations.columns:
            derived['year'] = dates.dt.year
        left = observations.assign(**derived)

        undated = left[['month', 'year']].isna().any(axis=1)
        if undated.any():
            logger.warning(f"Monthly join dropped {int(undated.sum())} observations without a month/year")
            left = left[~undated]
        left = left.assign(month=left['month'].astype(int), year=left['year'].astype(int))

        readings = monthly.rename(columns=MONTHLY_VALUE_COLUMNS)
        readings = readings.assign(month=readings['month'].astype(int), year=readings['year'].astype(int))
        result = self._inner_join(left, readings, MONTHLY_KEY, 'Monthly')
        return JoinResult(result.table, result.key, len(observations), len(observations) - result.matched)

    def join(
        self,
        observations: pd.DataFrame,
        daily: Optional[pd.DataFrame] = None,
        monthly: Optional[pd.DataFrame] = None
    ) -> Tuple[pd.DataFrame, dict]:
        """Apply the daily and/or monthly joins in sequence.

        Returns:
            Joined table and a dict of rows dropped per join
        """
        table = observations
        dropped = {}
        if daily is not None:
            result = self.join_daily(table, daily)
            table, dropped['daily'] = result.table, result.dropped
        if monthly is not None:
            result = self.join_monthly(table, monthly)
            table, dropped['monthly'] = result.table, result.dropped
        return table, dropped
