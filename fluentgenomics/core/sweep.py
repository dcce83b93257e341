"""
Threshold sweeps and enrichment ratios.

Counts how many overlap rows exceed a fold-change magnitude at each
threshold of a grid, summarises those counts per population, and compares
a target population with its background by ratio.
"""

import logging
from numbers import Real
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .aggregation import abs_greater_than, count_where, group_reduce
from .exceptions import InvalidParameterError, UndefinedRatioError, validate_dataframe
from .ranges import IntervalStore
from .resampling import RESAMPLE_COL

logger = logging.getLogger(__name__)

THRESHOLD_COL = "threshold"


def _validate_thresholds(thresholds: Iterable[float]) -> list:
    values = list(thresholds)
    if not values:
        raise InvalidParameterError("thresholds", values, "a non-empty sequence")
    for t in values:
        if isinstance(t, bool) or not isinstance(t, Real) or not np.isfinite(t):
            raise InvalidParameterError("thresholds", t, "finite numbers")
    return [float(t) for t in values]


def default_thresholds(values: Union[pd.Series, np.ndarray], n: int = 25) -> np.ndarray:
    """``n`` evenly spaced thresholds from 0 to the largest ``|value|``."""
    if n < 1:
        raise InvalidParameterError("n", n, ">= 1")
    magnitudes = np.abs(pd.to_numeric(pd.Series(values)).dropna().to_numpy(dtype=float))
    upper = float(magnitudes.max()) if magnitudes.size else 0.0
    return np.linspace(0.0, upper, n)


def sweep_thresholds(
    data: Union[IntervalStore, pd.DataFrame],
    value_col: str,
    thresholds: Sequence[float],
    group_keys: Sequence[str] = (),
    normalize_by: Optional[str] = None,
    count_col: str = "count",
) -> pd.DataFrame:
    """Count rows with ``|value_col| > t`` for every threshold ``t``.

    Parameters
    ----------
    data : IntervalStore or pd.DataFrame
        Rows to count, typically an overlap table.
    value_col : str
        Column whose magnitude is compared with each threshold.
    thresholds : sequence of float
        Threshold grid; output follows this order.
    group_keys : sequence of str
        Count separately per group. With no keys the whole table is one group.
    normalize_by : str, optional
        Resample tag column; counts become per-replicate averages.
    count_col : str
        Name of the count column in the output.

    Returns
    -------
    pd.DataFrame
        Long table: group keys, ``threshold``, ``count_col``.
    """
    grid = _validate_thresholds(thresholds)
    df = data.to_frame() if isinstance(data, IntervalStore) else data.reset_index(drop=True)
    validate_dataframe(df, "sweep table", required_columns=[value_col] + list(group_keys))

    keys = list(group_keys)
    if not keys:
        df = df.assign(__all__=0)
        keys = ["__all__"]

    frames = []
    for t in grid:
        counts = group_reduce(
            df, keys,
            {count_col: count_where(value_col, abs_greater_than(t))},
            normalize_by=normalize_by,
        )
        counts.insert(len(keys), THRESHOLD_COL, t)
        frames.append(counts)

    result = pd.concat(frames, ignore_index=True)
    if "__all__" in result.columns:
        result = result.drop(columns="__all__")
    return result


def peak_threshold_summary(
    overlaps: Union[IntervalStore, pd.DataFrame],
    thresholds: Sequence[float],
    lfc_col: str = "da_log2FC",
    gene_col: str = "gene_id",
    origin_col: str = "origin",
    resample_col: str = RESAMPLE_COL,
) -> pd.DataFrame:
    """Per-population gene and peak counts across a fold-change grid.

    For each origin and threshold ``t``:

    - ``peak_count``: overlapping peaks with ``|lfc| > t``
    - ``gene_count``: genes with at least one such peak

    both divided by the number of distinct resample tags of the origin.

    Returns
    -------
    pd.DataFrame
        Columns [origin, threshold, gene_count, peak_count].
    """
    grid = _validate_thresholds(thresholds)
    df = overlaps.to_frame() if isinstance(overlaps, IntervalStore) else overlaps.reset_index(drop=True)
    validate_dataframe(
        df, "overlap table",
        required_columns=[lfc_col, gene_col, origin_col, resample_col],
    )

    per_gene = sweep_thresholds(
        df, lfc_col, grid,
        group_keys=[origin_col, resample_col, gene_col],
        count_col="peak_count",
    )
    per_gene["gene_count"] = (per_gene["peak_count"] > 0).astype(np.int64)

    totals = (
        per_gene.groupby([origin_col, THRESHOLD_COL], sort=False)[["gene_count", "peak_count"]]
        .sum()
        .reset_index()
    )
    n_resamples = df.groupby(origin_col)[resample_col].nunique()
    divisor = totals[origin_col].map(n_resamples).to_numpy(dtype=float)
    totals["gene_count"] = totals["gene_count"] / divisor
    totals["peak_count"] = totals["peak_count"] / divisor

    totals = totals.rename(columns={origin_col: "origin"})
    logger.info(
        f"Threshold sweep over {len(grid)} thresholds "
        f"for origins {sorted(n_resamples.index.astype(str))}"
    )
    return totals[["origin", THRESHOLD_COL, "gene_count", "peak_count"]]


# ============================================================================
# Enrichment ratios
# ============================================================================


def enrichment_ratio(numerator: float, denominator: float, strict: bool = False) -> float:
    """Ratio of a target statistic to its background.

    A zero denominator gives ``inf`` (non-zero numerator) or ``nan``
    (zero numerator). With ``strict=True`` it raises UndefinedRatioError.
    """
    if denominator == 0:
        if strict:
            raise UndefinedRatioError(numerator, denominator)
        return float("inf") if numerator != 0 else float("nan")
    return numerator / denominator


def enrichment_table(
    summary: pd.DataFrame,
    target: str = "de",
    background: str = "not_de",
    value_cols: Sequence[str] = ("gene_count", "peak_count"),
    origin_col: str = "origin",
) -> pd.DataFrame:
    """Compare two populations of a threshold summary at each threshold.

    Returns one row per threshold with ``{target}_{col}``,
    ``{background}_{col}``, ``{col}_enrichment`` and ``{col}_defined``
    for every value column. Undefined ratios stay in the table as
    ``inf``/``nan`` with ``{col}_defined`` False.
    """
    validate_dataframe(
        summary, "threshold summary",
        required_columns=[origin_col, THRESHOLD_COL] + list(value_cols),
    )
    present = set(summary[origin_col].astype(str))
    for name in (target, background):
        if name not in present:
            raise InvalidParameterError(origin_col, name, f"one of {sorted(present)}")

    target_df = summary[summary[origin_col] == target].set_index(THRESHOLD_COL)
    background_df = summary[summary[origin_col] == background].set_index(THRESHOLD_COL)

    table = pd.DataFrame(index=target_df.index.union(background_df.index))
    table.index.name = THRESHOLD_COL
    for col in value_cols:
        num = target_df[col].reindex(table.index).fillna(0.0)
        den = background_df[col].reindex(table.index).fillna(0.0)
        table[f"{target}_{col}"] = num
        table[f"{background}_{col}"] = den
        table[f"{col}_enrichment"] = [enrichment_ratio(n, d) for n, d in zip(num, den)]
        table[f"{col}_defined"] = den.to_numpy() != 0

    return table.reset_index()
