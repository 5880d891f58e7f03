"""
Exceptions raised by the water depth pipeline.
"""

from typing import Optional

import requests


class NOAAApiError(Exception):
    """Exception raised when a NOAA CO-OPS request fails."""
    def __init__(self, message: str, response: Optional[requests.Response] = None):
        """Initialize the error.

        Args:
            message: Error message
            response: Optional response object that caused the error
        """
        self.message = message
        self.response = response
        super().__init__(self.message)


class MissingStationMappingError(KeyError):
    """A station name has no entry in the canonical name -> id mapping."""
    def __init__(self, station_name: str):
        self.station_name = station_name
        super().__init__(f"No station id mapped for station name: {station_name!r}")


class UnitMismatchError(ValueError):
    """Water level and elevation units are declared incompatible."""


class CoordinateOrderError(ValueError):
    """Coordinate values are out of range for their declared axis."""
