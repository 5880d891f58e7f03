"""
End-to-end depth pipeline.

Stages run in sequence, each returning a new table:

    fetch -> aggregate -> match -> join (daily, monthly) -> depth

Non-fatal problems (unmapped station names, failed fetch units, unjoinable
observations, missing depths) are counted in a PipelineSummary returned with
the output table. Unit mismatches are fatal and raised before anything runs.
"""

from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import logging

import pandas as pd

from .config import CONFIG_DIR, PROJECT_ROOT, load_settings
from .noaa.core.cache_manager import WaterLevelCache
from .noaa.core.noaa_client import NOAAClient, DAILY_MEAN, MONTHLY_MEAN
from .noaa.core.station_catalog import StationCatalog
from .noaa.water_level_fetcher import FetchFailure, WaterLevelFetcher
from .processing.aggregator import AggregatedReadings, TemporalAggregator
from .processing.depth import DepthCalculator, attach_dem, check_units
from .processing.join import ReadingJoiner
from .processing.spatial_ops import CoordinateColumns, NearestStationFinder

logger = logging.getLogger(__name__)

MONTHLY_STATS = ('monthly_high', 'monthly_mean', 'monthly_low')


@dataclass
class PipelineSummary:
    """Counts of non-fatal data problems, by kind."""
    observations_in: int = 0
    rows_out: int = 0
    missing_station_mapping: int = 0
    unmapped_station_names: List[str] = field(default_factory=list)
    fetch_failure: int = 0
    failures: List[FetchFailure] = field(default_factory=list)
    unjoinable_station: int = 0
    unjoinable_daily: int = 0
    unjoinable_monthly: int = 0
    sentinel_propagation: Dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> Dict:
        return asdict(self)


@dataclass
class PipelineResult:
    table: pd.DataFrame
    summary: PipelineSummary


class DepthPipeline:
    """Fuses observations, gauge readings and elevations into depths."""

    def __init__(
        self,
        settings: Dict,
        catalog: StationCatalog,
        fetcher: Optional[WaterLevelFetcher] = None
    ):
        """Initialize the pipeline.

        Args:
            settings: Output of config.load_settings()
            catalog: Reference stations
            fetcher: Reading fetcher; only needed by run()

        Raises:
            UnitMismatchError: If the depth units in settings are incompatible,
                or the fetcher's client returns water levels in another unit
        """
        self.settings = settings
        self.catalog = catalog
        self.fetcher = fetcher

        obs_settings = settings['observations']
        self.id_column = obs_settings['id_column']
        self.date_column = obs_settings['date_column']
        self.coordinate_columns = CoordinateColumns(
            lon=obs_settings['longitude_column'],
            lat=obs_settings['latitude_column']
        )

        depth_settings = settings['depth']
        self.stats: List[str] = list(depth_settings['stats'])
        self.sentinel = depth_settings['sentinel']

        self.depth_calculator = DepthCalculator.from_settings(depth_settings)
        if fetcher is not None:
            # Fetched levels are subtracted as-is, so the service unit must match.
            check_units(fetcher.client.length_unit, depth_settings['units']['water_level'])

        self.aggregator = TemporalAggregator(catalog.name_to_id(), sentinel=self.sentinel)
        self.finder = NearestStationFinder(
            k=settings['matching']['k'],
            observation_columns=self.coordinate_columns,
            observation_id_column=self.id_column,
            extent_margin=settings['matching'].get('extent_margin', 1.0)
        )
        self.joiner = ReadingJoiner(id_column=self.id_column, date_column=self.date_column)

    @classmethod
    def from_config(cls, config_dir: Optional[Path] = None, show_progress: bool = True) -> "DepthPipeline":
        """Build a pipeline, client, cache and fetcher from a config directory."""
        config_dir = Path(config_dir) if config_dir else CONFIG_DIR
        settings = load_settings(config_dir / "pipeline_settings.yaml")
        catalog = StationCatalog.from_yaml(config_dir / "stations.yaml")

        cache = None
        if settings['cache'].get('enabled'):
            cache_dir = Path(settings['cache']['directory'])
            if not cache_dir.is_absolute():
                cache_dir = PROJECT_ROOT / cache_dir
            cache = WaterLevelCache(cache_dir)

        api = settings['api']
        fetcher = WaterLevelFetcher(
            client=NOAAClient.from_settings(api),
            catalog=catalog,
            cache=cache,
            max_workers=api.get('max_workers', 4),
            sentinel=settings['depth']['sentinel'],
            show_progress=show_progress
        )
        return cls(settings, catalog, fetcher)

    @property
    def granularities(self) -> List[str]:
        """Products needed for the configured depth statistics."""
        products = []
        if 'daily' in self.stats:
            products.append(DAILY_MEAN)
        if any(stat in MONTHLY_STATS for stat in self.stats):
            products.append(MONTHLY_MEAN)
        return products

    def _validate_observations(self, observations: pd.DataFrame) -> None:
        required = [self.id_column, self.date_column, self.coordinate_columns.lon, self.coordinate_columns.lat]
        missing = [c for c in required if c not in observations.columns]
        if missing:
            raise ValueError(f"Observations are missing required columns: {missing}")
        if observations[self.id_column].duplicated().any():
            raise ValueError(f"Observation ids in {self.id_column!r} are not unique")

    def _catalog_ordered(self, stations: pd.DataFrame) -> pd.DataFrame:
        """Station table in catalog order, which decides distance ties."""
        present = set(stations['station_id'])
        order = [s.station_id for s in self.catalog if s.station_id in present]
        return stations.set_index('station_id').loc[order].reset_index()

    def study_period(self, observations: pd.DataFrame):
        """First and last observation day."""
        dates = pd.to_datetime(observations[self.date_column]).dropna()
        if dates.empty:
            raise ValueError(f"No observation has a date in {self.date_column!r}")
        return dates.min().date(), dates.max().date()

    def run(
        self,
        observations: pd.DataFrame,
        start: Optional[Union[str, date]] = None,
        end: Optional[Union[str, date]] = None,
        dem: Optional[pd.DataFrame] = None
    ) -> PipelineResult:
        """Fetch readings for the study period and compute depths.

        Args:
            observations: Observation table
            start: First day to fetch; defaults to the earliest observation
            end: Last day to fetch; defaults to the latest observation
            dem: Optional secondary elevation table keyed by observation id
        """
        if self.fetcher is None:
            raise ValueError("DepthPipeline.run() needs a fetcher; use process() with prepared readings")
        self._validate_observations(observations)

        first, last = self.study_period(observations)
        fetched = self.fetcher.fetch(start or first, end or last, granularities=self.granularities)
        return self.process(observations, fetched.readings, dem=dem, failures=fetched.failures)

    def process(
        self,
        observations: pd.DataFrame,
        raw_readings: pd.DataFrame,
        dem: Optional[pd.DataFrame] = None,
        failures: Sequence[FetchFailure] = ()
    ) -> PipelineResult:
        """Run every stage after fetching on already retrieved raw readings."""
        self._validate_observations(observations)
        summary = PipelineSummary(
            observations_in=len(observations),
            fetch_failure=len(failures),
            failures=list(failures)
        )

        if dem is not None:
            observations = attach_dem(observations, dem, id_column=self.id_column)

        aggregated: AggregatedReadings = self.aggregator.aggregate(raw_readings)
        summary.missing_station_mapping = aggregated.unmapped_rows
        summary.unmapped_station_names = aggregated.unmapped_names

        if aggregated.stations.empty:
            logger.error(f"No station readings to match against; "
                         f"{summary.fetch_failure} fetch units failed")
            summary.unjoinable_station = len(observations)
            return PipelineResult(table=observations.iloc[0:0].copy(), summary=summary)

        stations = self._catalog_ordered(aggregated.stations)
        matches = self.finder.find_nearest(observations, stations)

        assigned = self.joiner.assign_stations(observations, matches, stations)
        summary.unjoinable_station = assigned.dropped

        table, dropped = self.joiner.join(
            assigned.table,
            daily=aggregated.daily if 'daily' in self.stats else None,
            monthly=aggregated.monthly if any(stat in MONTHLY_STATS for stat in self.stats) else None
        )
        summary.unjoinable_daily = dropped.get('daily', 0)
        summary.unjoinable_monthly = dropped.get('monthly', 0)

        table = self.depth_calculator.compute(table, self.stats)
        summary.sentinel_propagation = self.depth_calculator.missing_depth_counts(table, self.stats)
        summary.rows_out = len(table)

        logger.info(f"Pipeline produced {summary.rows_out} rows from {summary.observations_in} observations")
        logger.info(f"Summary: unmapped={summary.missing_station_mapping}, "
                    f"fetch failures={summary.fetch_failure}, "
                    f"unjoinable daily={summary.unjoinable_daily}, "
                    f"unjoinable monthly={summary.unjoinable_monthly}, "
                    f"missing depths={summary.sentinel_propagation}")
        return PipelineResult(table=table, summary=summary)
