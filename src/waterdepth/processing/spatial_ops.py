"""
Nearest reference station search for field observations.

Distances are planar Euclidean distances over (longitude, latitude) in
degrees. That is adequate for a study area a few tens of kilometres across
and is not a substitute for geodesic distance over larger extents.

Coordinates are always read by column name through CoordinateColumns, never
by position. Both sides are range-checked, and observations are checked
against the station extent: a point that only lands near the stations once
its axes are swapped fails loudly instead of producing a plausible-looking
wrong match. Near the Great Lakes swapped pairs (lon 42, lat -83) are still
in range, so the extent check is the one that catches them.
"""

from dataclasses import dataclass
from typing import NamedTuple, Optional
import logging

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from ..exceptions import CoordinateOrderError

logger = logging.getLogger(__name__)

MATCH_COLUMNS = ['observation_id', 'rank', 'station_id', 'distance']


class LonLat(NamedTuple):
    """A coordinate pair with the axis order spelled out."""
    lon: float
    lat: float


class CoordinateColumns(NamedTuple):
    """Names of the longitude and latitude columns in a table."""
    lon: str = 'longitude'
    lat: str = 'latitude'


@dataclass
class MatchResult:
    """Ranked nearest stations for each observation.

    ``matches`` has exactly k rows per observation, rank 0 being the nearest.
    """
    matches: pd.DataFrame
    k: int

    def nearest(self) -> pd.DataFrame:
        """Rank-0 station per observation."""
        nearest = self.matches[self.matches['rank'] == 0]
        return nearest.drop(columns='rank').reset_index(drop=True)

    def ranked(self, observation_id) -> pd.DataFrame:
        """Full ranked station list for one observation."""
        rows = self.matches[self.matches['observation_id'] == observation_id]
        return rows.sort_values('rank').reset_index(drop=True)


def extract_lonlat(table: pd.DataFrame, columns: CoordinateColumns, label: str) -> np.ndarray:
    """Extract an (n, 2) [lon, lat] array from named columns, checking ranges.

    Raises:
        ValueError: If a column is missing or holds missing values
        CoordinateOrderError: If values fall outside their axis range
    """
    missing = [c for c in (columns.lon, columns.lat) if c not in table.columns]
    if missing:
        raise ValueError(f"{label} table is missing coordinate columns: {missing}")

    lon = pd.to_numeric(table[columns.lon], errors='coerce').to_numpy(dtype=float)
    lat = pd.to_numeric(table[columns.lat], errors='coerce').to_numpy(dtype=float)

    if np.isnan(lon).any() or np.isnan(lat).any():
        raise ValueError(f"{label} table has missing or non-numeric coordinates")

    if (np.abs(lat) > 90).any():
        raise CoordinateOrderError(
            f"{label} column {columns.lat!r} has values outside [-90, 90]; "
            f"are longitude and latitude swapped?"
        )
    if (np.abs(lon) > 180).any():
        raise CoordinateOrderError(f"{label} column {columns.lon!r} has values outside [-180, 180]")

    return np.column_stack([lon, lat])


def planar_distance(a: LonLat, b: LonLat) -> float:
    """Euclidean distance between two coordinate pairs in degrees."""
    return float(np.hypot(a.lon - b.lon, a.lat - b.lat))


def check_axis_order(coords: np.ndarray, reference: np.ndarray, label: str, margin: float = 1.0) -> None:
    """Fail if points only fall within the reference extent with lon/lat swapped.

    Args:
        coords: (n, 2) [lon, lat] array to check
        reference: (m, 2) [lon, lat] array whose bounding box, widened by
            margin degrees, is the expected area
        label: Table name for messages
        margin: Padding of the reference bounding box in degrees

    Raises:
        CoordinateOrderError: If any point lies outside the extent as given
            but inside it once its axes are swapped
    """
    if len(coords) == 0 or len(reference) == 0:
        return

    low = LonLat(*(reference.min(axis=0) - margin))
    high = LonLat(*(reference.max(axis=0) + margin))

    def within(points: np.ndarray) -> np.ndarray:
        return (
            (points[:, 0] >= low.lon) & (points[:, 0] <= high.lon)
            & (points[:, 1] >= low.lat) & (points[:, 1] <= high.lat)
        )

    as_given = within(coords)
    swapped = within(coords[:, ::-1])
    flipped = int((swapped & ~as_given).sum())
    if flipped:
        raise CoordinateOrderError(
            f"{flipped} {label.lower()} points only fall within the station extent "
            f"lon [{low.lon:.3f}, {high.lon:.3f}], lat [{low.lat:.3f}, {high.lat:.3f}] "
            f"with longitude and latitude swapped"
        )

    outside = int((~as_given).sum())
    if outside:
        logger.warning(f"{outside} {label.lower()} points lie more than {margin} degrees "
                       f"outside the station extent")


class NearestStationFinder:
    """Finds the k nearest stations for each observation."""

    def __init__(
        self,
        k: int = 4,
        observation_columns: CoordinateColumns = CoordinateColumns(),
        station_columns: CoordinateColumns = CoordinateColumns(),
        observation_id_column: str = 'id',
        station_id_column: str = 'station_id',
        extent_margin: float = 1.0
    ):
        if k < 1:
            raise ValueError(f"k must be at least 1, got {k}")
        if extent_margin < 0:
            raise ValueError(f"extent_margin must be non-negative, got {extent_margin}")
        self.k = k
        self.extent_margin = extent_margin
        self.observation_columns = observation_columns
        self.station_columns = station_columns
        self.observation_id_column = observation_id_column
        self.station_id_column = station_id_column

    def _rank_candidates(
        self,
        tree: cKDTree,
        station_coords: np.ndarray,
        point: np.ndarray,
        k: int
    ) -> np.ndarray:
        """Indices of the k nearest stations, ties going to the lower index.

        The KD-tree gives the k-th distance; every station within that radius
        is then collected so a tie straddling the k boundary is not decided by
        the tree's internal order.
        """
        distances, _ = tree.query(point, k=k)
        radius = float(np.max(distances))
        candidates = np.asarray(tree.query_ball_point(point, r=radius * (1 + 1e-9) + 1e-12), dtype=int)

        candidate_dist = np.sqrt(((station_coords[candidates] - point) ** 2).sum(axis=1))
        order = np.lexsort((candidates, candidate_dist))
        return candidates[order][:k]

    def find_nearest(
        self,
        observations: pd.DataFrame,
        stations: pd.DataFrame,
        k: Optional[int] = None
    ) -> MatchResult:
        """
        Rank stations by planar distance for every observation.

        Args:
            observations: Table with an id column and coordinate columns
            stations: Table with a station id column and coordinate columns,
                in catalog order (row position breaks distance ties)
            k: Number of stations to rank. Defaults to the finder's k, and is
                capped at the number of stations.

        Returns:
            MatchResult with k rows per observation
        """
        if stations.empty:
            raise ValueError("Cannot match observations against an empty station table")
        for table, column, label in (
            (observations, self.observation_id_column, 'Observation'),
            (stations, self.station_id_column, 'Station')
        ):
            if column not in table.columns:
                raise ValueError(f"{label} table is missing id column {column!r}")
            if table[column].duplicated().any():
                raise ValueError(f"{label} ids in column {column!r} are not unique")

        k = min(k or self.k, len(stations))
        obs_coords = extract_lonlat(observations, self.observation_columns, 'Observation')
        station_coords = extract_lonlat(stations, self.station_columns, 'Station')
        check_axis_order(obs_coords, station_coords, 'Observation', margin=self.extent_margin)

        if observations.empty:
            return MatchResult(pd.DataFrame(columns=MATCH_COLUMNS), k)

        tree = cKDTree(station_coords)
        station_ids = stations[self.station_id_column].to_numpy()
        observation_ids = observations[self.observation_id_column].to_numpy()

        records = []
        for obs_id, point in zip(observation_ids, obs_coords):
            origin = LonLat(*point)
            for rank, idx in enumerate(self._rank_candidates(tree, station_coords, point, k)):
                records.append({
                    'observation_id': obs_id,
                    'rank': rank,
                    'station_id': station_ids[idx],
                    'distance': planar_distance(origin, LonLat(*station_coords[idx]))
                })

        matches = pd.DataFrame.from_records(records, columns=MATCH_COLUMNS)
        logger.info(f"Matched {len(observations)} observations to {k} nearest of "
                    f"{len(stations)} stations")
        return MatchResult(matches, k)
