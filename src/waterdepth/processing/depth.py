"""
Water depth at observations: water level minus elevation.

The sentinel (-9999) is a "no data" flag, not a measurement. Every operand is
passed through to_missing() before arithmetic, so a flagged elevation or water
level yields a missing depth rather than something like -10175.2.

Elevation can come from several sources (the observation's own DEM sample,
then survey DEM columns). They are tried in a fixed priority order and the
first non-missing value wins. Sources that report depth below datum
(positive downward) are negated so every elevation is positive-up.

Each depth is written twice: the raw signed value and a copy clamped at zero
for comparisons against field-measured depth, which cannot be negative.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from ..config import SENTINEL
from ..exceptions import UnitMismatchError

logger = logging.getLogger(__name__)

STAT_COLUMNS = {
    'daily': 'water_level_daily',
    'monthly_high': 'water_level_monthly_high',
    'monthly_mean': 'water_level_monthly_mean',
    'monthly_low': 'water_level_monthly_low',
}

UNIT_ALIASES = {
    'm': 'm', 'meter': 'm', 'meters': 'm', 'metre': 'm', 'metres': 'm', 'metric': 'm',
    'ft': 'ft', 'foot': 'ft', 'feet': 'ft', 'english': 'ft',
}

SIGN_UP = 'up'
SIGN_DOWN = 'down'


def canonical_unit(unit: str) -> str:
    """Canonical spelling of a linear unit. Raises UnitMismatchError if unknown."""
    try:
        return UNIT_ALIASES[str(unit).strip().lower()]
    except KeyError:
        raise UnitMismatchError(f"Unknown linear unit: {unit!r}") from None


def check_units(water_level_unit: str, elevation_unit: str) -> None:
    """Fail unless water levels and elevations are both declared in meters."""
    water = canonical_unit(water_level_unit)
    ground = canonical_unit(elevation_unit)
    if water != ground:
        raise UnitMismatchError(
            f"Water level unit {water_level_unit!r} does not match elevation unit {elevation_unit!r}"
        )
    if water != 'm':
        raise UnitMismatchError(f"Depths are computed in meters; inputs are declared in {water_level_unit!r}")


def depth_column(stat: str, clamped: bool = False) -> str:
    return f"depth_{stat}_clamped" if clamped else f"depth_{stat}"


@dataclass(frozen=True)
class ElevationSource:
    """An elevation column and its sign convention."""
    column: str
    sign: str = SIGN_UP

    def __post_init__(self):
        if self.sign not in (SIGN_UP, SIGN_DOWN):
            raise ValueError(f"Elevation sign must be '{SIGN_UP}' or '{SIGN_DOWN}', got {self.sign!r}")


class DepthCalculator:
    """Computes raw and clamped depths for every requested statistic."""

    def __init__(
        self,
        elevation_sources: Optional[Sequence[ElevationSource]] = None,
        water_level_unit: str = 'm',
        elevation_unit: str = 'm',
        sentinel: float = SENTINEL
    ):
        """Initialize the calculator.

        Args:
            elevation_sources: Elevation columns in priority order
            water_level_unit: Declared unit of the water level columns
            elevation_unit: Declared unit of the elevation columns
            sentinel: "No data" flag

        Raises:
            UnitMismatchError: If the declared units are incompatible
        """
        check_units(water_level_unit, elevation_unit)
        self.elevation_sources: List[ElevationSource] = list(elevation_sources or [ElevationSource('elevation')])
        if not self.elevation_sources:
            raise ValueError("At least one elevation source is required")
        self.sentinel = sentinel

    @classmethod
    def from_settings(cls, depth_settings: Dict) -> "DepthCalculator":
        """Build a calculator from the 'depth' section of the pipeline settings."""
        units = depth_settings.get('units', {})
        sources = [
            ElevationSource(column=s['column'], sign=s.get('sign', SIGN_UP))
            for s in depth_settings.get('elevation_sources', [{'column': 'elevation'}])
        ]
        return cls(
            elevation_sources=sources,
            water_level_unit=units.get('water_level', 'm'),
            elevation_unit=units.get('elevation', 'm'),
            sentinel=depth_settings.get('sentinel', SENTINEL)
        )

    def to_missing(self, values: pd.Series) -> pd.Series:
        """Float copy of values with the sentinel replaced by NaN (exact match)."""
        numeric = pd.to_numeric(values, errors='coerce').astype(float)
        return numeric.mask(numeric == self.sentinel)

    def resolve_elevation(self, table: pd.DataFrame) -> pd.DataFrame:
        """Add elevation_m and elevation_source, taking sources in priority order.

        Returns:
            New table; elevation_m is NaN where every source is missing
        """
        available = [s for s in self.elevation_sources if s.column in table.columns]
        if not available:
            raise ValueError(
                f"None of the elevation columns {[s.column for s in self.elevation_sources]} are present"
            )
        for source in self.elevation_sources:
            if source not in available:
                logger.debug(f"Elevation source {source.column!r} not present, skipping")

        elevation = pd.Series(np.nan, index=table.index, dtype=float)
        chosen = pd.Series(None, index=table.index, dtype=object)

        for source in available:
            values = self.to_missing(table[source.column])
            if source.sign == SIGN_DOWN:
                values = -values
            fill = elevation.isna() & values.notna()
            elevation = elevation.mask(fill, values)
            chosen = chosen.mask(fill, source.column)

        fallback = int((chosen.notna() & (chosen != available[0].column)).sum())
        if fallback:
            logger.info(f"Used a fallback elevation source for {fallback} rows")
        if elevation.isna().any():
            logger.warning(f"{int(elevation.isna().sum())} rows have no elevation in any source")

        return table.assign(elevation_m=elevation, elevation_source=chosen)

    def compute(self, table: pd.DataFrame, stats: Iterable[str] = tuple(STAT_COLUMNS)) -> pd.DataFrame:
        """
        Compute depth = water level - elevation for each requested statistic.

        Args:
            table: Joined table carrying the water level columns and elevation sources
            stats: Any of 'daily', 'monthly_high', 'monthly_mean', 'monthly_low'

        Returns:
            New table with depth_<stat> and depth_<stat>_clamped for every stat
        """
        stats = list(stats)
        unknown = [s for s in stats if s not in STAT_COLUMNS]
        if unknown:
            raise ValueError(f"Unknown depth statistics: {unknown}")
        missing_columns = [STAT_COLUMNS[s] for s in stats if STAT_COLUMNS[s] not in table.columns]
        if missing_columns:
            raise ValueError(f"Table is missing water level columns: {missing_columns}")

        result = self.resolve_elevation(table)
        depths = {}
        for stat in stats:
            water_level = self.to_missing(result[STAT_COLUMNS[stat]])
            raw = water_level - result['elevation_m']
            depths[depth_column(stat)] = raw
            depths[depth_column(stat, clamped=True)] = raw.clip(lower=0.0)

        logger.info(f"Computed depths for {len(result)} rows: {stats}")
        return result.assign(**depths)

    @staticmethod
    def missing_depth_counts(table: pd.DataFrame, stats: Iterable[str]) -> Dict[str, int]:
        """Number of rows whose raw depth is missing, per statistic."""
        return {stat: int(table[depth_column(stat)].isna().sum()) for stat in stats}


def attach_dem(observations: pd.DataFrame, dem: pd.DataFrame, id_column: str = 'id') -> pd.DataFrame:
    """Left-join secondary DEM elevation columns onto observations by id.

    Raises:
        ValueError: If ids are missing or duplicated, or DEM columns collide
            with observation columns
    """
    if id_column not in dem.columns:
        raise ValueError(f"DEM table is missing id column {id_column!r}")
    collisions = sorted((set(dem.columns) & set(observations.columns)) - {id_column})
    if collisions:
        raise ValueError(f"DEM columns collide with observation columns: {collisions}")

    merged = observations.merge(dem, on=id_column, how='left', validate='one_to_one')
    logger.info(f"Attached {len(dem.columns) - 1} DEM columns to {len(observations)} observations")
    return merged
