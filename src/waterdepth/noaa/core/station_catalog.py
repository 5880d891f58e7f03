"""
Canonical list of reference gauge stations.

Station ids are small integers assigned in the catalog file. The NOAA service
echoes a station *name* with every payload, and the same gauge is not
guaranteed to come back with the same service id across products, so readings
are keyed back to the catalog by name through name_to_id().
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
import logging

import pandas as pd
import yaml

from ...config import STATIONS_FILE
from ...exceptions import MissingStationMappingError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Station:
    """A reference gauge station."""
    station_id: int
    noaa_id: str
    name: str
    latitude: float
    longitude: float


class StationCatalog:
    """Loads and validates the station catalog."""

    def __init__(self, stations: List[Station]):
        self._stations = list(stations)
        self._validate()
        self._by_noaa_id = {s.noaa_id: s for s in self._stations}
        self._name_to_id = {s.name: s.station_id for s in self._stations}

    @classmethod
    def from_yaml(cls, stations_file: Optional[Path] = None) -> "StationCatalog":
        """Load the catalog from a YAML file.

        Expected layout::

            stations:
              '9034052':
                name: St. Clair Shores
                station_id: 2
                location: {lat: 42.4733, lon: -82.88}
        """
        stations_file = Path(stations_file) if stations_file else STATIONS_FILE
        with open(stations_file) as f:
            config = yaml.safe_load(f) or {}

        entries = config.get('stations') or {}
        if not entries:
            raise ValueError(f"No stations defined in {stations_file}")

        stations = []
        for noaa_id, info in entries.items():
            try:
                stations.append(Station(
                    station_id=int(info['station_id']),
                    noaa_id=str(noaa_id),
                    name=str(info['name']),
                    latitude=float(info['location']['lat']),
                    longitude=float(info['location']['lon'])
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid catalog entry for station {noaa_id}: {e}")

        metadata = config.get('metadata', {})
        logger.info(f"Loaded {len(stations)} stations from {stations_file}")
        logger.info(f"Source: {metadata.get('source', 'Unknown')}")
        return cls(stations)

    def _validate(self) -> None:
        if not self._stations:
            raise ValueError("Station catalog is empty")

        seen_ids: Dict[int, str] = {}
        seen_names: Dict[str, int] = {}
        seen_noaa_ids = set()
        for station in self._stations:
            if station.station_id in seen_ids:
                raise ValueError(
                    f"Duplicate station_id {station.station_id} for "
                    f"{seen_ids[station.station_id]!r} and {station.name!r}"
                )
            if station.name in seen_names:
                raise ValueError(f"Duplicate station name {station.name!r}")
            if station.noaa_id in seen_noaa_ids:
                raise ValueError(f"Duplicate NOAA station id {station.noaa_id}")
            seen_ids[station.station_id] = station.name
            seen_names[station.name] = station.station_id
            seen_noaa_ids.add(station.noaa_id)

    def __len__(self) -> int:
        return len(self._stations)

    def __iter__(self):
        return iter(self._stations)

    def stations(self) -> List[Station]:
        """Stations in catalog order."""
        return list(self._stations)

    def get(self, noaa_id: str) -> Station:
        """Look up a station by its NOAA identifier."""
        return self._by_noaa_id[str(noaa_id)]

    def name_to_id(self) -> Dict[str, int]:
        """Copy of the station name -> station id mapping."""
        return dict(self._name_to_id)

    def require_id(self, name: str) -> int:
        """Map a single station name to its id.

        Raises:
            MissingStationMappingError: If the name is not in the catalog
        """
        try:
            return self._name_to_id[name]
        except KeyError:
            raise MissingStationMappingError(name) from None

    def to_frame(self) -> pd.DataFrame:
        """Catalog as a DataFrame in catalog order."""
        return pd.DataFrame([
            {
                'station_id': s.station_id,
                'noaa_id': s.noaa_id,
                'station_name': s.name,
                'latitude': s.latitude,
                'longitude': s.longitude,
            }
            for s in self._stations
        ])
