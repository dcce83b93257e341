"""
Core analysis modules for fluentgenomics.

Includes:
- Interval stores and anchored resizing
- Interval-tree overlap joins (NCLS)
- Bootstrap resampling of background genes
- Grouped aggregation and threshold sweeps
- DE/DA integration
- Dataset cache
"""

# Interval stores
from .ranges import Anchor, IntervalStore, anchor_resize, bind_stores, tss_windows

# Overlaps
from .genomic_utils import (
    count_overlaps,
    find_overlaps,
    left_join_overlap,
    sort_chromosomes,
    sort_intervals,
    subset_by_overlaps,
)

# Resampling
from .resampling import bootstrap_resample

# Aggregation
from .aggregation import (
    Reducer,
    ReducerKind,
    abs_greater_than,
    count_distinct,
    count_non_missing,
    count_where,
    gene_peak_summary,
    group_reduce,
    max_abs,
)

# Threshold sweep and enrichment
from .sweep import (
    default_thresholds,
    enrichment_ratio,
    enrichment_table,
    peak_threshold_summary,
    sweep_thresholds,
)

# Integration
from .loaders import load_da_results, load_de_results, split_de_genes
from .integration import DEDAIntegration, IntegrationConfig, IntegrationResults

# Dataset cache
from .cache import AtacDataset, fetch_or_build_dataset, load_dataset

__all__ = [
    # Interval stores
    "Anchor",
    "IntervalStore",
    "anchor_resize",
    "bind_stores",
    "tss_windows",

    # Overlaps
    "count_overlaps",
    "find_overlaps",
    "left_join_overlap",
    "sort_chromosomes",
    "sort_intervals",
    "subset_by_overlaps",

    # Resampling
    "bootstrap_resample",

    # Aggregation
    "Reducer",
    "ReducerKind",
    "abs_greater_than",
    "count_distinct",
    "count_non_missing",
    "count_where",
    "gene_peak_summary",
    "group_reduce",
    "max_abs",

    # Sweep
    "default_thresholds",
    "enrichment_ratio",
    "enrichment_table",
    "peak_threshold_summary",
    "sweep_thresholds",

    # Integration
    "load_da_results",
    "load_de_results",
    "split_de_genes",
    "DEDAIntegration",
    "IntegrationConfig",
    "IntegrationResults",

    # Cache
    "AtacDataset",
    "fetch_or_build_dataset",
    "load_dataset",
]
