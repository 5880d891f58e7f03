from pathlib import Path
from typing import Any, Dict, Optional
import copy
import logging

import yaml

logger = logging.getLogger(__name__)

# Project structure configuration
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Main directories
DATA_DIR = PROJECT_ROOT / "data"
OUTPUT_DIR = PROJECT_ROOT / "output"

# Data subdirectories
CACHE_DIR = DATA_DIR / "cache"

# Output subdirectories
LOG_DIR = OUTPUT_DIR / "logs"
DEPTH_DIR = OUTPUT_DIR / "depth"

# Configuration files
SETTINGS_FILE = CONFIG_DIR / "pipeline_settings.yaml"
STATIONS_FILE = CONFIG_DIR / "stations.yaml"

# Reserved "no data" flag used by the DEM products and some gauge payloads
SENTINEL = -9999

DEFAULT_SETTINGS: Dict[str, Any] = {
    'api': {
        'base_url': "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter",
        'requests_per_second': 4.0,
        'timeout': 30,
        'max_workers': 4,
        'datum': 'IGLD',
        'time_zone': 'lst',
        'units': 'metric',
    },
    'cache': {
        'enabled': False,
        'directory': str(CACHE_DIR),
    },
    'matching': {
        'k': 4,
        'extent_margin': 1.0,
    },
    'depth': {
        'sentinel': SENTINEL,
        'units': {'water_level': 'm', 'elevation': 'm'},
        'elevation_sources': [{'column': 'elevation', 'sign': 'up'}],
        'stats': ['daily', 'monthly_high', 'monthly_mean', 'monthly_low'],
    },
    'observations': {
        'id_column': 'id',
        'date_column': 'date',
        'longitude_column': 'longitude',
        'latitude_column': 'latitude',
    },
}

REQUIRED_SECTIONS = ('api', 'matching', 'depth', 'observations')


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_settings(settings_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load pipeline settings from YAML, layered over the defaults.

    Args:
        settings_file: Path to a settings YAML file. Defaults to SETTINGS_FILE.

    Returns:
        Settings dictionary

    Raises:
        FileNotFoundError: If an explicit settings file does not exist
        ValueError: If the file is not a mapping or a required section is malformed
    """
    path = Path(settings_file) if settings_file is not None else SETTINGS_FILE

    if not path.exists():
        if settings_file is not None:
            raise FileNotFoundError(f"Settings file not found: {path}")
        logger.warning(f"No settings file at {path}, using defaults")
        return copy.deepcopy(DEFAULT_SETTINGS)

    with open(path) as f:
        loaded = yaml.safe_load(f) or {}

    if not isinstance(loaded, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")

    settings = _deep_merge(DEFAULT_SETTINGS, loaded)
    for section in REQUIRED_SECTIONS:
        if not isinstance(settings.get(section), dict):
            raise ValueError(f"Settings section '{section}' must be a mapping")

    logger.info(f"Loaded settings from {path}")
    return settings


def ensure_directories() -> None:
    """Create the data and output directories if they don't exist."""
    directories = [
        DATA_DIR,
        CACHE_DIR,
        OUTPUT_DIR,
        LOG_DIR,
        DEPTH_DIR,
    ]
    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)
