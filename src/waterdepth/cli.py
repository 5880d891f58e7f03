"""
Command line interface for the observation water depth pipeline.

Reads an observation CSV (and optionally a DEM CSV keyed by observation id),
fetches gauge readings for the study period, and writes the depth table plus
a JSON summary of data completeness next to it.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

from .config import CONFIG_DIR, LOG_DIR, ensure_directories
from .exceptions import UnitMismatchError
from .logging_utils import setup_logging
from .pipeline import DepthPipeline

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Compute water depth at field observations from NOAA gauge readings'
    )

    parser.add_argument(
        '--observations',
        type=Path,
        required=True,
        help='Observation CSV with id, longitude, latitude, date and elevation columns'
    )

    parser.add_argument(
        '--dem',
        type=Path,
        help='Optional CSV of secondary elevation columns keyed by observation id'
    )

    parser.add_argument(
        '--start',
        help='First day to fetch (YYYY-MM-DD); defaults to the earliest observation'
    )

    parser.add_argument(
        '--end',
        help='Last day to fetch (YYYY-MM-DD); defaults to the latest observation'
    )

    parser.add_argument(
        '--output',
        type=Path,
        default=Path('output/depth/observation_depths.parquet'),
        help='Output file; .csv writes CSV, anything else parquet'
    )

    parser.add_argument(
        '--config-dir',
        type=Path,
        default=CONFIG_DIR,
        help='Directory holding pipeline_settings.yaml and stations.yaml'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable the fetch progress bar'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args(argv)


def write_table(table: pd.DataFrame, output: Path) -> Path:
    """Write the output table as CSV or parquet depending on the suffix."""
    output.parent.mkdir(parents=True, exist_ok=True)
    if output.suffix.lower() == '.csv':
        table.to_csv(output, index=False)
    else:
        table.to_parquet(output, index=False)
    return output


def main(argv=None) -> int:
    """Entry point for waterdepth-run."""
    args = parse_args(argv)
    ensure_directories()
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_file=LOG_DIR / "waterdepth.log"
    )

    try:
        pipeline = DepthPipeline.from_config(args.config_dir, show_progress=not args.no_progress)
    except UnitMismatchError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    observations = pd.read_csv(args.observations)
    dem = pd.read_csv(args.dem) if args.dem else None
    logger.info(f"Loaded {len(observations)} observations from {args.observations}")

    try:
        result = pipeline.run(observations, start=args.start, end=args.end, dem=dem)
    except ValueError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    output = write_table(result.table, args.output)
    summary_file = output.with_name(f"{output.stem}_summary.json")
    with open(summary_file, 'w') as f:
        json.dump(result.summary.as_dict(), f, indent=2, default=str)

    logger.info("Saved results to:")
    logger.info(f"  - Table: {output}")
    logger.info(f"  - Summary: {summary_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
