"""Tests for the temporal aggregator."""

import numpy as np
import pandas as pd
import pytest

from waterdepth.processing.aggregator import TemporalAggregator

NAME_TO_ID = {'Fort Gratiot': 1, 'St. Clair Shores': 2}

def raw_row(name, lat, lon, granularity, **values):
    row = {
        'noaa_id': '9034052', 'station_name': name, 'latitude': lat, 'longitude': lon,
        'granularity': granularity, 'date': pd.NaT, 'year': np.nan, 'month': np.nan,
        'water_level': np.nan, 'high': np.nan, 'mean': np.nan, 'low': np.nan,
    }
    row.update(values)
    return row

@pytest.fixture
def raw_readings():
    """Raw readings with duplicates, coordinate jitter and an unmapped station."""
    return pd.DataFrame([
        raw_row('St. Clair Shores', 42.4733, -82.8800, 'daily_mean',
                date=pd.Timestamp('2020-07-01'), water_level=175.9),
        raw_row('St. Clair Shores', 42.4735, -82.8802, 'daily_mean',
                date=pd.Timestamp('2020-07-01 00:00'), water_level=176.1),
        raw_row('St. Clair Shores', 42.4733, -82.8800, 'daily_mean',
                date=pd.Timestamp('2020-07-02'), water_level=176.0),
        raw_row('St. Clair Shores', 42.4731, -82.8798, 'monthly_mean',
                year=2020, month=7, high=176.1, mean=175.9, low=175.7),
        raw_row('St. Clair Shores', 42.4733, -82.8800, 'monthly_mean',
                year=2020, month=7, high=176.3, mean=175.7, low=175.6),
        raw_row('Fort Gratiot', 43.0069, -82.4225, 'monthly_mean',
                year=2020, month=7, high=-9999, mean=176.2, low=175.9),
        raw_row('Toledo, OH', 41.6933, -83.4717, 'daily_mean',
                date=pd.Timestamp('2020-07-01'), water_level=174.5),
    ])

@pytest.fixture
def aggregator():
    return TemporalAggregator(NAME_TO_ID)

class TestTemporalAggregator:
    """Test suite for TemporalAggregator."""

    def test_rejects_empty_mapping(self):
        """Test validation of an empty mapping."""
        with pytest.raises(ValueError, match="empty"):
            TemporalAggregator({})

    def test_rejects_non_integer_ids(self):
        """Test validation of id types."""
        with pytest.raises(ValueError, match="integer"):
            TemporalAggregator({'Fort Gratiot': '1'})

    def test_rejects_shared_ids(self):
        """Test validation of ids used twice."""
        with pytest.raises(ValueError, match="same id"):
            TemporalAggregator({'Fort Gratiot': 1, 'St. Clair Shores': 1})

    def test_unmapped_rows_are_counted(self, aggregator, raw_readings):
        """Test that unmapped station names are excluded and reported."""
        result = aggregator.aggregate(raw_readings)

        assert result.unmapped_rows == 1
        assert result.unmapped_names == ['Toledo, OH']
        assert 'Toledo, OH' not in set(result.daily['station_name'])
        assert set(result.stations['station_id']) == {1, 2}

    def test_daily_one_row_per_station_day(self, aggregator, raw_readings):
        """Test duplicate daily readings collapse to their mean."""
        daily = aggregator.aggregate(raw_readings).daily

        assert list(daily.columns) == ['station_id', 'station_name', 'date', 'water_level']
        assert len(daily) == 2
        assert daily['water_level'].tolist() == pytest.approx([176.0, 176.0])
        assert daily['station_id'].tolist() == [2, 2]

    def test_monthly_high_mean_low(self, aggregator, raw_readings):
        """Test the monthly reduction to high, mean and low."""
        monthly = aggregator.aggregate(raw_readings).monthly
        shores = monthly[monthly['station_id'] == 2].iloc[0]

        assert shores['high'] == pytest.approx(176.3)
        assert shores['mean'] == pytest.approx(175.8)
        assert shores['low'] == pytest.approx(175.6)

    def test_monthly_sentinel_is_missing(self, aggregator, raw_readings):
        """Test that a sentinel monthly value is missing, not -9999."""
        monthly = aggregator.aggregate(raw_readings).monthly
        gratiot = monthly[monthly['station_id'] == 1].iloc[0]

        assert np.isnan(gratiot['high'])
        assert gratiot['mean'] == pytest.approx(176.2)

    def test_station_coordinates_are_means(self, aggregator, raw_readings):
        """Test the representative station coordinate."""
        stations = aggregator.aggregate(raw_readings).stations
        shores = stations[stations['station_id'] == 2].iloc[0]

        assert shores['latitude'] == pytest.approx(np.mean([42.4733, 42.4735, 42.4733, 42.4731, 42.4733]))
        assert shores['longitude'] == pytest.approx(np.mean([-82.88, -82.8802, -82.88, -82.8798, -82.88]))

    def test_daily_is_idempotent(self, aggregator, raw_readings):
        """Test that re-aggregating daily output returns it unchanged."""
        daily = aggregator.aggregate(raw_readings).daily
        pd.testing.assert_frame_equal(aggregator.aggregate_daily(daily), daily)

    def test_monthly_is_idempotent(self, aggregator, raw_readings):
        """Test that re-aggregating monthly output returns it unchanged."""
        monthly = aggregator.aggregate(raw_readings).monthly
        pd.testing.assert_frame_equal(aggregator.aggregate_monthly(monthly), monthly)

    def test_ids_stable_across_products(self, aggregator, raw_readings):
        """Test that daily and monthly products share station ids."""
        result = aggregator.aggregate(raw_readings)
        daily_ids = dict(zip(result.daily['station_name'], result.daily['station_id']))
        monthly_ids = dict(zip(result.monthly['station_name'], result.monthly['station_id']))

        assert daily_ids['St. Clair Shores'] == monthly_ids['St. Clair Shores'] == 2
        assert {aggregator.station_id_for('St. Clair Shores') for _ in range(3)} == {2}

    def test_missing_granularity_column(self, aggregator, raw_readings):
        """Test that raw readings must carry a granularity tag."""
        with pytest.raises(ValueError, match="granularity"):
            aggregator.aggregate(raw_readings.drop(columns='granularity'))

    def test_empty_input(self, aggregator, raw_readings):
        """Test that empty input yields empty typed tables."""
        result = aggregator.aggregate(raw_readings.iloc[0:0])

        assert result.daily.empty and result.monthly.empty and result.stations.empty
        assert result.daily['station_id'].dtype == 'int64'
