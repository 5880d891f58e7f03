"""
Agreement between computed depths and field-measured water depth.
"""

from typing import Dict
import logging

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from .depth import STAT_COLUMNS, depth_column

logger = logging.getLogger(__name__)


def compare_with_observed(
    table: pd.DataFrame,
    observed_column: str,
    stat: str = 'daily',
    clamp: bool = True
) -> Dict[str, float]:
    """
    Compare computed depth with a field-measured depth column (both in meters).

    Field depth cannot be negative, so the clamped depth is used by default.
    Rows where either value is missing are left out.

    Returns:
        Dict with n, mean_error (computed - observed), rmse and pearson_r
    """
    if stat not in STAT_COLUMNS:
        raise ValueError(f"Unknown depth statistic: {stat}")
    computed_column = depth_column(stat, clamped=clamp)
    for column in (computed_column, observed_column):
        if column not in table.columns:
            raise ValueError(f"Table is missing column {column!r}")

    pairs = table[[computed_column, observed_column]].apply(pd.to_numeric, errors='coerce').dropna()
    n = len(pairs)
    if n == 0:
        logger.warning(f"No rows with both {computed_column} and {observed_column}")
        return {'n': 0, 'mean_error': np.nan, 'rmse': np.nan, 'pearson_r': np.nan}

    error = pairs[computed_column] - pairs[observed_column]
    pearson_r = np.nan
    if n > 1 and pairs[computed_column].nunique() > 1 and pairs[observed_column].nunique() > 1:
        pearson_r = float(scipy_stats.pearsonr(pairs[computed_column], pairs[observed_column])[0])

    summary = {
        'n': n,
        'mean_error': float(error.mean()),
        'rmse': float(np.sqrt((error ** 2).mean())),
        'pearson_r': pearson_r,
    }
    logger.info(f"Depth validation ({computed_column} vs {observed_column}): {summary}")
    return summary
