"""
NOAA CO-OPS API client for water level products.
"""

from typing import Dict, Optional, Union
from datetime import date, datetime
import logging

import requests

from .rate_limiter import RateLimiter
from ...exceptions import NOAAApiError

logger = logging.getLogger(__name__)

DAILY_MEAN = "daily_mean"
MONTHLY_MEAN = "monthly_mean"
PRODUCTS = (DAILY_MEAN, MONTHLY_MEAN)

DateLike = Union[str, date, datetime]


def format_api_date(value: DateLike) -> str:
    """Format a date as the YYYYMMDD string the datagetter expects."""
    if isinstance(value, (date, datetime)):
        return value.strftime("%Y%m%d")
    return str(value).replace('-', '')


class NOAAClient:
    """Client for the NOAA Tides & Currents datagetter endpoint."""

    def __init__(
        self,
        api_base_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter",
        requests_per_second: float = 4.0,
        timeout: float = 30,
        datum: str = "IGLD",
        time_zone: str = "lst",
        units: str = "metric",
        rate_limiter: Optional[RateLimiter] = None
    ):
        """Initialize the NOAA API client.

        Args:
            api_base_url: Datagetter URL
            requests_per_second: Maximum number of requests per second. Ignored
                when rate_limiter is given.
            timeout: Per-request timeout in seconds
            datum: Vertical datum; Great Lakes stations report daily means on IGLD
            time_zone: Time zone for daily aggregation
            units: 'metric' (meters) or 'english' (feet)
            rate_limiter: Optional limiter shared with other clients
        """
        self.api_base_url = api_base_url.rstrip('/')
        self.rate_limiter = rate_limiter or RateLimiter(requests_per_second)
        self.timeout = timeout
        self.datum = datum
        self.time_zone = time_zone
        self.units = units
        self._session = requests.Session()

    @classmethod
    def from_settings(cls, api_settings: Dict, rate_limiter: Optional[RateLimiter] = None) -> "NOAAClient":
        """Build a client from the 'api' section of the pipeline settings."""
        return cls(
            api_base_url=api_settings['base_url'],
            requests_per_second=api_settings.get('requests_per_second', 4.0),
            timeout=api_settings.get('timeout', 30),
            datum=api_settings.get('datum', 'IGLD'),
            time_zone=api_settings.get('time_zone', 'lst'),
            units=api_settings.get('units', 'metric'),
            rate_limiter=rate_limiter
        )

    @property
    def length_unit(self) -> str:
        """Linear unit of returned water levels."""
        return 'm' if self.units == 'metric' else 'ft'

    def fetch_product(
        self,
        station: str,
        begin_date: DateLike,
        end_date: DateLike,
        product: str
    ) -> Dict:
        """
        Fetch a water level product for a station and date range.

        Args:
            station: 7-digit NOAA station identifier
            begin_date: First day of the range
            end_date: Last day of the range
            product: 'daily_mean' or 'monthly_mean'

        Returns:
            Payload with 'metadata' (id, name, lat, lon) and 'data' records

        Raises:
            NOAAApiError: If the request fails or the payload is malformed
        """
        if not station:
            raise NOAAApiError("Station ID is required")
        if product not in PRODUCTS:
            raise NOAAApiError(f"Unsupported product: {product}")

        params = {
            'station': station,
            'product': product,
            'begin_date': format_api_date(begin_date),
            'end_date': format_api_date(end_date),
            'datum': self.datum,
            'units': self.units,
            'time_zone': self.time_zone,
            'format': 'json',
            'application': 'observation_water_depth',
        }

        logger.debug(f"Making API request to URL: {self.api_base_url}")
        logger.debug(f"Request parameters: {params}")

        try:
            self.rate_limiter.wait()
            response = self._session.get(self.api_base_url, params=params, timeout=self.timeout)
            logger.debug(f"API response status code: {response.status_code}")

            response.raise_for_status()
            data = response.json()

        except requests.exceptions.RequestException as e:
            logger.error(f"NOAA API request failed for station {station}: {str(e)}")
            raise NOAAApiError(
                f"Failed to fetch {product} data: {str(e)}",
                response=getattr(e, 'response', None)
            )
        except ValueError as e:
            logger.error(f"Failed to parse NOAA API response for station {station}: {str(e)}")
            raise NOAAApiError(f"Invalid response format: {str(e)}", response=response)

        if not isinstance(data, dict):
            raise NOAAApiError("Unexpected response payload", response=response)

        if 'error' in data:
            message = data['error'].get('message', 'unknown error') if isinstance(data['error'], dict) else data['error']
            logger.warning(f"NOAA API returned an error for station {station} ({product}): {message}")
            raise NOAAApiError(f"NOAA API error: {message}", response=response)

        if 'data' not in data or 'metadata' not in data:
            logger.error(f"Missing data or metadata in response. Response keys: {list(data.keys())}")
            raise NOAAApiError(f"No {product} data in response", response=response)

        logger.debug(f"Parsed {len(data['data'])} {product} records for station {station}")
        return data
