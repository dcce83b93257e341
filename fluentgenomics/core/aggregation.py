"""
Grouped aggregation of overlap tables.

Rows are partitioned by a group key (missing values compare equal) and
each group is reduced with a fixed set of reducers. Count reducers can be
averaged over the number of distinct bootstrap replicates in the group so
that bootstrap and non-bootstrap populations are comparable.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError, SchemaError, validate_dataframe
from .ranges import COORD_COLS, IntervalStore
from .resampling import RESAMPLE_COL

logger = logging.getLogger(__name__)


class ReducerKind(str, Enum):
    COUNT_NON_MISSING = "count_non_missing"
    COUNT_DISTINCT = "count_distinct"
    MAX_ABS = "max_abs"
    COUNT_WHERE = "count_where"


@dataclass(frozen=True)
class Reducer:
    """A named reduction over one input column."""

    kind: ReducerKind
    column: str
    predicate: Optional[Callable[[pd.Series], pd.Series]] = None

    @property
    def is_count(self) -> bool:
        return self.kind is not ReducerKind.MAX_ABS


def count_non_missing(column: str) -> Reducer:
    return Reducer(ReducerKind.COUNT_NON_MISSING, column)


def count_distinct(column: str) -> Reducer:
    return Reducer(ReducerKind.COUNT_DISTINCT, column)


def max_abs(column: str) -> Reducer:
    return Reducer(ReducerKind.MAX_ABS, column)


def count_where(column: str, predicate: Callable[[pd.Series], pd.Series]) -> Reducer:
    """Count non-missing values for which ``predicate`` is True."""
    if not callable(predicate):
        raise InvalidParameterError("predicate", predicate, "a callable taking a Series")
    return Reducer(ReducerKind.COUNT_WHERE, column, predicate)


def abs_greater_than(threshold: float) -> Callable[[pd.Series], pd.Series]:
    """Predicate ``|value| > threshold`` (strict)."""
    def predicate(values: pd.Series) -> pd.Series:
        return pd.to_numeric(values).abs() > threshold
    return predicate


def _prepare(values: pd.Series, reducer: Reducer):
    """Turn one input column into an aggregatable column and its pandas function."""
    if reducer.kind is ReducerKind.COUNT_NON_MISSING:
        return values.notna().astype(np.int64), "sum"
    if reducer.kind is ReducerKind.COUNT_DISTINCT:
        return values, "nunique"
    if reducer.kind is ReducerKind.MAX_ABS:
        return pd.to_numeric(values).astype(float).abs(), "max"
    if reducer.kind is ReducerKind.COUNT_WHERE:
        mask = values.notna() & reducer.predicate(values).fillna(False).astype(bool)
        return mask.astype(np.int64), "sum"
    raise InvalidParameterError("reducer", reducer.kind, f"one of {[k.value for k in ReducerKind]}")


def group_reduce(
    data: Union[IntervalStore, pd.DataFrame],
    group_keys: Sequence[str],
    reducers: Dict[str, Reducer],
    normalize_by: Optional[str] = None,
    as_ranges: bool = False,
) -> Union[IntervalStore, pd.DataFrame]:
    """Reduce each group of rows to one row of summary statistics.

    Parameters
    ----------
    data : IntervalStore or pd.DataFrame
        Rows to aggregate.
    group_keys : sequence of str
        Columns forming the group key. Missing values form their own group.
    reducers : dict
        Output column name -> Reducer.
    normalize_by : str, optional
        Column of resample tags. Count reducers are divided by the number of
        distinct tags in each group; ``max_abs`` is left as is.
    as_ranges : bool
        Return an IntervalStore whose coordinates are each group's
        coordinates. All rows of a group must share them.

    Returns
    -------
    pd.DataFrame or IntervalStore
        One row per group, sorted by the group key.

    Raises
    ------
    MissingColumnError
        If a key, reducer input or normalisation column is absent.
    SchemaError
        If ``as_ranges`` is requested on a DataFrame, or a group spans
        several coordinates.
    """
    keys = list(group_keys)
    if not keys:
        raise InvalidParameterError("group_keys", keys, "at least one column")
    if not reducers:
        raise InvalidParameterError("reducers", reducers, "at least one reducer")
    clash = sorted(set(reducers) & set(keys))
    if clash:
        raise InvalidParameterError("reducers", clash, "output names distinct from group keys")

    is_store = isinstance(data, IntervalStore)
    if as_ranges and not is_store:
        raise SchemaError("Reducing to ranges requires an IntervalStore input")
    df = data.to_frame() if is_store else data.reset_index(drop=True)

    required = keys + [r.column for r in reducers.values()]
    if normalize_by:
        required.append(normalize_by)
    validate_dataframe(df, "grouped table", required_columns=list(dict.fromkeys(required)))
    if normalize_by and df[normalize_by].isna().any():
        raise SchemaError(f"Resample tag column '{normalize_by}' has missing values")

    prepared = df[keys].copy()
    named_aggs = {}
    for i, (out_col, reducer) in enumerate(reducers.items()):
        tmp = f"__r{i}__"
        prepared[tmp], func = _prepare(df[reducer.column], reducer)
        named_aggs[out_col] = (tmp, func)

    if normalize_by:
        prepared["__tags__"] = df[normalize_by]
        named_aggs["__n_tags__"] = ("__tags__", "nunique")

    free_coords = [c for c in COORD_COLS if c not in keys] if as_ranges else []
    for c in free_coords:
        prepared[f"__{c}__"] = df[c]
        named_aggs[f"__n_{c}__"] = (f"__{c}__", "nunique")
        named_aggs[f"__first_{c}__"] = (f"__{c}__", "first")

    out = (
        prepared.groupby(keys, dropna=False, sort=True)
        .agg(**named_aggs)
        .reset_index()
    )

    for out_col, reducer in reducers.items():
        if not reducer.is_count:
            continue
        if normalize_by:
            out[out_col] = out[out_col] / out["__n_tags__"]
        else:
            out[out_col] = out[out_col].astype(np.int64)
    if normalize_by:
        out = out.drop(columns="__n_tags__")

    if not as_ranges:
        return out

    for c in free_coords:
        if (out[f"__n_{c}__"] > 1).any():
            n_bad = int((out[f"__n_{c}__"] > 1).sum())
            raise SchemaError(
                f"{n_bad} groups span more than one '{c}' value; include the "
                f"coordinates in the group key to reduce to ranges"
            )
        out[c] = out[f"__first_{c}__"]
        out = out.drop(columns=[f"__n_{c}__", f"__first_{c}__"])

    return IntervalStore(out, data.genome, data.seqlevels_style)


def gene_peak_summary(
    overlaps: Union[IntervalStore, pd.DataFrame],
    gene_col: str = "gene_id",
    origin_col: str = "origin",
    padj_col: str = "da_padj",
    lfc_col: str = "da_log2FC",
    resample_col: str = RESAMPLE_COL,
) -> pd.DataFrame:
    """Per-gene peak count and maximum absolute DA fold change.

    Peak counts are averaged over the bootstrap replicates each gene was
    drawn in.
    """
    summary = group_reduce(
        overlaps,
        [gene_col, origin_col],
        {
            "peak_count": count_non_missing(padj_col),
            "lfc_max": max_abs(lfc_col),
        },
        normalize_by=resample_col,
    )
    logger.info(f"Summarised peaks for {len(summary)} gene/origin groups")
    return summary
