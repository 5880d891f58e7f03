"""Tests for nearest station assignment."""

import numpy as np
import pandas as pd
import pytest

from waterdepth.exceptions import CoordinateOrderError
from waterdepth.processing.spatial_ops import (
    CoordinateColumns,
    LonLat,
    NearestStationFinder,
    check_axis_order,
    planar_distance,
)

@pytest.fixture
def stations():
    """Stations in catalog order."""
    return pd.DataFrame({
        'station_id': [1, 2, 3, 4],
        'station_name': ['Fort Gratiot', 'St. Clair Shores', 'Windmill Point', 'Fort Wayne'],
        'longitude': [-82.4225, -82.8800, -82.9299, -83.0933],
        'latitude': [43.0069, 42.4733, 42.3578, 42.2983],
    })

@pytest.fixture
def observations():
    return pd.DataFrame({
        'id': ['obs-1', 'obs-2', 'obs-3'],
        'longitude': [-82.87, -83.08, -82.45],
        'latitude': [42.47, 42.30, 42.95],
    })

def brute_force_nearest(obs_coords, station_coords):
    """Index of the nearest station, lowest index on ties."""
    nearest = []
    for point in obs_coords:
        distances = np.sqrt(((station_coords - point) ** 2).sum(axis=1))
        nearest.append(int(np.argmin(distances)))
    return nearest

class TestNearestStationFinder:
    """Test suite for NearestStationFinder."""

    def test_nearest_station(self, observations, stations):
        """Test rank-0 assignment on a realistic layout."""
        result = NearestStationFinder(k=4).find_nearest(observations, stations)
        nearest = result.nearest()

        assert nearest['observation_id'].tolist() == ['obs-1', 'obs-2', 'obs-3']
        assert nearest['station_id'].tolist() == [2, 4, 1]

    def test_k_rows_per_observation(self, observations, stations):
        """Test that every observation gets exactly k ranked stations."""
        result = NearestStationFinder(k=3).find_nearest(observations, stations)

        assert result.k == 3
        assert result.matches.groupby('observation_id').size().tolist() == [3, 3, 3]
        ranked = result.ranked('obs-1')
        assert ranked['rank'].tolist() == [0, 1, 2]
        assert ranked['distance'].is_monotonic_increasing

    def test_k_capped_at_station_count(self, observations, stations):
        """Test that k never exceeds the number of stations."""
        result = NearestStationFinder(k=10).find_nearest(observations, stations)
        assert result.k == 4

    def test_matches_brute_force_with_ties(self):
        """Test rank-0 against exhaustive search, with frequent exact ties."""
        rng = np.random.default_rng(42)
        grid = np.array([(-83 + 0.25 * i, 42 + 0.25 * j) for i in range(4) for j in range(4)])
        station_coords = grid[rng.permutation(len(grid))[:8]]
        obs_coords = np.array([(-83 + 0.125 * i, 42 + 0.125 * j) for i in range(8) for j in range(8)])

        stations = pd.DataFrame({
            'station_id': np.arange(100, 108),
            'longitude': station_coords[:, 0],
            'latitude': station_coords[:, 1],
        })
        observations = pd.DataFrame({
            'id': np.arange(len(obs_coords)),
            'longitude': obs_coords[:, 0],
            'latitude': obs_coords[:, 1],
        })

        nearest = NearestStationFinder(k=4).find_nearest(observations, stations).nearest()
        expected = [100 + i for i in brute_force_nearest(obs_coords, station_coords)]
        assert nearest['station_id'].tolist() == expected

    def test_tie_goes_to_lower_catalog_index(self):
        """Test that equidistant stations resolve to the earlier one."""
        stations = pd.DataFrame({
            'station_id': [7, 3],
            'longitude': [-83.0, -82.0],
            'latitude': [42.5, 42.5],
        })
        observations = pd.DataFrame({'id': [1], 'longitude': [-82.5], 'latitude': [42.5]})

        ranked = NearestStationFinder(k=2).find_nearest(observations, stations).ranked(1)
        assert ranked['station_id'].tolist() == [7, 3]
        assert ranked['distance'].tolist() == [0.5, 0.5]

    def test_tie_at_k_boundary(self):
        """Test a tie straddling the k cut-off still favors the lower index."""
        stations = pd.DataFrame({
            'station_id': [1, 2, 3],
            'longitude': [-82.0, -83.0, -82.5],
            'latitude': [42.5, 42.5, 43.0],
        })
        observations = pd.DataFrame({'id': [1], 'longitude': [-82.5], 'latitude': [42.5]})

        nearest = NearestStationFinder(k=1).find_nearest(observations, stations).nearest()
        assert nearest['station_id'].tolist() == [1]

    def test_named_coordinate_columns(self, stations):
        """Test that coordinates are read by name regardless of column order."""
        observations = pd.DataFrame({
            'obs_lat': [42.47],
            'id': ['obs-1'],
            'obs_lon': [-82.87],
        })
        finder = NearestStationFinder(observation_columns=CoordinateColumns(lon='obs_lon', lat='obs_lat'))
        assert finder.find_nearest(observations, stations).nearest()['station_id'].tolist() == [2]

    def test_swapped_axes_are_rejected(self, stations):
        """Test that longitude values in a latitude column fail loudly."""
        swapped = pd.DataFrame({'id': ['obs-1'], 'longitude': [42.47], 'latitude': [-82.87]})

        with pytest.raises(CoordinateOrderError, match="swapped"):
            NearestStationFinder().find_nearest(swapped, stations)

    def test_swapped_table_is_rejected(self, observations, stations):
        """Test that a whole observation table with swapped columns fails."""
        swapped = observations.rename(columns={'longitude': 'latitude', 'latitude': 'longitude'})

        with pytest.raises(CoordinateOrderError, match="3 observation points"):
            NearestStationFinder().find_nearest(swapped, stations)

    def test_distant_points_only_warn(self, stations, caplog):
        """Test that points far from the stations either way are matched with a warning."""
        distant = pd.DataFrame({'id': ['obs-1'], 'longitude': [-70.0], 'latitude': [35.0]})

        result = NearestStationFinder().find_nearest(distant, stations)
        assert len(result.nearest()) == 1
        assert "outside the station extent" in caplog.text

    def test_extent_margin(self, stations):
        """Test that the margin widens the accepted extent."""
        coords = np.array([[42.47, -84.5]])
        reference = stations[['longitude', 'latitude']].to_numpy()

        check_axis_order(coords, reference, 'Observation', margin=0.0)
        with pytest.raises(CoordinateOrderError):
            check_axis_order(coords, reference, 'Observation', margin=2.0)

    def test_negative_margin(self):
        """Test validation of the extent margin."""
        with pytest.raises(ValueError, match="extent_margin"):
            NearestStationFinder(extent_margin=-1.0)

    def test_missing_coordinates(self, stations):
        """Test that missing coordinates are rejected."""
        observations = pd.DataFrame({'id': ['obs-1'], 'longitude': [np.nan], 'latitude': [42.47]})
        with pytest.raises(ValueError, match="missing"):
            NearestStationFinder().find_nearest(observations, stations)

    def test_duplicate_observation_ids(self, stations):
        """Test that observation ids must be unique."""
        observations = pd.DataFrame({'id': [1, 1], 'longitude': [-82.9, -82.8], 'latitude': [42.4, 42.4]})
        with pytest.raises(ValueError, match="not unique"):
            NearestStationFinder().find_nearest(observations, stations)

    def test_inputs_not_modified(self, observations, stations):
        """Test that the search has no side effects on its inputs."""
        obs_before, stations_before = observations.copy(), stations.copy()
        NearestStationFinder().find_nearest(observations, stations)

        pd.testing.assert_frame_equal(observations, obs_before)
        pd.testing.assert_frame_equal(stations, stations_before)

    def test_empty_station_table(self, observations, stations):
        """Test that matching needs at least one station."""
        with pytest.raises(ValueError, match="empty"):
            NearestStationFinder().find_nearest(observations, stations.iloc[0:0])

    def test_planar_distance(self):
        """Test the coordinate pair helper."""
        assert planar_distance(LonLat(lon=-83.0, lat=42.0), LonLat(lon=-82.7, lat=42.4)) == pytest.approx(0.5)
