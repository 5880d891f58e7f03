"""Tests for the station catalog."""

import pytest
import yaml

from waterdepth.exceptions import MissingStationMappingError
from waterdepth.noaa.core.station_catalog import Station, StationCatalog

SAMPLE_STATIONS = {
    '9034052': {
        'name': 'St. Clair Shores',
        'station_id': 2,
        'location': {'lat': 42.4733, 'lon': -82.8800}
    },
    '9014098': {
        'name': 'Fort Gratiot',
        'station_id': 1,
        'location': {'lat': 43.0069, 'lon': -82.4225}
    }
}

@pytest.fixture
def stations_file(tmp_path):
    """Write a temporary stations YAML file."""
    path = tmp_path / "stations.yaml"
    with open(path, 'w') as f:
        yaml.dump({'metadata': {'source': 'test'}, 'stations': SAMPLE_STATIONS}, f, sort_keys=False)
    return path

class TestStationCatalog:
    """Test suite for StationCatalog."""

    def test_from_yaml(self, stations_file):
        """Test loading the catalog from YAML."""
        catalog = StationCatalog.from_yaml(stations_file)

        assert len(catalog) == 2
        station = catalog.get('9034052')
        assert station == Station(2, '9034052', 'St. Clair Shores', 42.4733, -82.88)

    def test_catalog_order_preserved(self, stations_file):
        """Test that stations keep file order."""
        catalog = StationCatalog.from_yaml(stations_file)
        assert [s.noaa_id for s in catalog] == ['9034052', '9014098']

    def test_name_to_id(self, stations_file):
        """Test the name -> id mapping."""
        catalog = StationCatalog.from_yaml(stations_file)
        assert catalog.name_to_id() == {'St. Clair Shores': 2, 'Fort Gratiot': 1}

    def test_name_round_trips_to_same_id(self, stations_file):
        """Test that repeated lookups return the same id."""
        catalog = StationCatalog.from_yaml(stations_file)
        ids = {catalog.require_id('Fort Gratiot') for _ in range(5)}
        assert ids == {1}

    def test_require_id_unmapped(self, stations_file):
        """Test that unmapped names raise."""
        catalog = StationCatalog.from_yaml(stations_file)
        with pytest.raises(MissingStationMappingError):
            catalog.require_id('Toledo, OH')

    def test_duplicate_ids_rejected(self):
        """Test validation of duplicate station ids."""
        with pytest.raises(ValueError, match="Duplicate station_id"):
            StationCatalog([
                Station(1, '9034052', 'St. Clair Shores', 42.47, -82.88),
                Station(1, '9014098', 'Fort Gratiot', 43.01, -82.42),
            ])

    def test_duplicate_names_rejected(self):
        """Test validation of duplicate station names."""
        with pytest.raises(ValueError, match="Duplicate station name"):
            StationCatalog([
                Station(1, '9034052', 'St. Clair Shores', 42.47, -82.88),
                Station(2, '9014098', 'St. Clair Shores', 43.01, -82.42),
            ])

    def test_invalid_entry(self, tmp_path):
        """Test that incomplete entries are rejected."""
        path = tmp_path / "stations.yaml"
        with open(path, 'w') as f:
            yaml.dump({'stations': {'9034052': {'name': 'St. Clair Shores'}}}, f)

        with pytest.raises(ValueError, match="Invalid catalog entry"):
            StationCatalog.from_yaml(path)

    def test_empty_file(self, tmp_path):
        """Test that an empty catalog is rejected."""
        path = tmp_path / "stations.yaml"
        path.write_text("stations: {}\n")

        with pytest.raises(ValueError, match="No stations"):
            StationCatalog.from_yaml(path)

    def test_to_frame(self, stations_file):
        """Test the DataFrame view."""
        frame = StationCatalog.from_yaml(stations_file).to_frame()
        assert list(frame.columns) == ['station_id', 'noaa_id', 'station_name', 'latitude', 'longitude']
        assert frame['station_id'].tolist() == [2, 1]
