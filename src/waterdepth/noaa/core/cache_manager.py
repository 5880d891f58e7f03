"""
On-disk cache for raw NOAA water level payloads.
"""

from typing import Dict, Optional
from pathlib import Path
import logging
import json

from .noaa_client import PRODUCTS

logger = logging.getLogger(__name__)

class WaterLevelCache:
    """Caches one raw payload per station, product and year as JSON."""

    def __init__(self, cache_dir: Path):
        """Initialize the cache manager.

        Args:
            cache_dir: Directory holding one subdirectory per product
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_cache_path(self, station_id: str, product: str, year: int) -> Path:
        """Get the cache file path for a station/product/year unit.

        Args:
            station_id: NOAA station identifier
            product: 'daily_mean' or 'monthly_mean'
            year: Calendar year covered by the payload

        Returns:
            Path to the cache file
        """
        return self.cache_dir / product / f"{station_id}_{year}.json"

    def get(self, station_id: str, product: str, year: int) -> Optional[Dict]:
        """Get a cached payload.

        Returns:
            Cached payload if available and readable, None otherwise
        """
        cache_path = self._get_cache_path(station_id, product, year)

        if not cache_path.exists():
            return None

        try:
            with open(cache_path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error reading cache for station {station_id} ({product}, {year}): {e}")
            return None

    def put(self, station_id: str, product: str, year: int, payload: Dict) -> None:
        """Cache a payload, replacing any existing entry for the same unit.

        Raises:
            ValueError: If product is not a known water level product
        """
        if product not in PRODUCTS:
            raise ValueError(f"Invalid product: {product}")

        cache_path = self._get_cache_path(station_id, product, year)
        cache_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(cache_path, 'w') as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error(f"Error caching data for station {station_id} ({product}, {year}): {e}")

    def clear(self, product: Optional[str] = None) -> int:
        """Delete cached payloads, optionally for a single product.

        Returns:
            Number of files removed
        """
        pattern = f"{product}/*.json" if product else "*/*.json"
        removed = 0
        for path in self.cache_dir.glob(pattern):
            path.unlink()
            removed += 1
        logger.info(f"Removed {removed} cached payloads from {self.cache_dir}")
        return removed
