"""
Shared genomic utilities for fluentgenomics.

Provides interval overlap detection between IntervalStores using NCLS
(Nested Containment List) indexes built per chromosome, and the
left overlap join used to attach DA peaks to gene windows.

Also contains natural chromosome ordering and shared helpers for column
name detection.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd
from ncls import NCLS

from .exceptions import SchemaError
from .ranges import COORD_COLS, IntervalStore, check_compatible

logger = logging.getLogger(__name__)


# ============================================================================
# Core overlap functions
# ============================================================================


def _build_ncls_index(
    starts: np.ndarray, ends: np.ndarray
) -> "NCLS":
    """Build an NCLS index from start/end arrays (half-open)."""
    ids = np.arange(len(starts), dtype=np.int64)
    return NCLS(
        np.ascontiguousarray(starts, dtype=np.int64),
        np.ascontiguousarray(ends, dtype=np.int64),
        ids,
    )


def _empty_hits() -> pd.DataFrame:
    return pd.DataFrame({
        "query_idx": np.array([], dtype=np.int64),
        "subject_idx": np.array([], dtype=np.int64),
    })


def find_overlaps(
    query: IntervalStore,
    subject: IntervalStore,
    strand_aware: bool = False,
) -> pd.DataFrame:
    """Find all overlapping interval pairs between two stores.

    Intervals are closed: ``q.start <= s.end and s.start <= q.end``, so
    single-base intervals overlap anything covering that base. NCLS works
    on half-open intervals, so both sides are indexed as ``[start, end + 1)``.

    Parameters
    ----------
    query : IntervalStore
        Query intervals (the "left" set).
    subject : IntervalStore
        Subject intervals (the "right" set to search against).
    strand_aware : bool
        If False every strand matches. If True, ``+`` and ``-`` only match
        the same strand, and ``*`` matches anything.

    Returns
    -------
    pd.DataFrame
        Columns [query_idx, subject_idx] holding row positions, sorted by
        query position then subject position.
    """
    check_compatible(query, subject)

    q = query.to_frame()
    s = subject.to_frame()
    if q.empty or s.empty:
        return _empty_hits()

    q_starts = q["start"].to_numpy(dtype=np.int64)
    q_ends = q["end"].to_numpy(dtype=np.int64) + 1
    s_starts = s["start"].to_numpy(dtype=np.int64)
    s_ends = s["end"].to_numpy(dtype=np.int64) + 1

    subject_groups = s.groupby("chr").indices
    q_hits: List[np.ndarray] = []
    s_hits: List[np.ndarray] = []

    for chrom, q_idx in q.groupby("chr").indices.items():
        s_idx = subject_groups.get(chrom)
        if s_idx is None:
            continue

        # NCLS needs non-negative coordinates; windows near a chromosome
        # start can begin at or below 0
        offset = min(int(q_starts[q_idx].min()), int(s_starts[s_idx].min()), 0)
        index = _build_ncls_index(s_starts[s_idx] - offset, s_ends[s_idx] - offset)
        q_local, s_local = index.all_overlaps_both(
            np.ascontiguousarray(q_starts[q_idx] - offset),
            np.ascontiguousarray(q_ends[q_idx] - offset),
            np.arange(len(q_idx), dtype=np.int64),
        )
        q_hits.append(q_idx[np.asarray(q_local, dtype=np.int64)])
        s_hits.append(s_idx[np.asarray(s_local, dtype=np.int64)])

    if not q_hits:
        return _empty_hits()

    q_all = np.concatenate(q_hits).astype(np.int64)
    s_all = np.concatenate(s_hits).astype(np.int64)

    if strand_aware:
        q_strand = q["strand"].to_numpy()[q_all]
        s_strand = s["strand"].to_numpy()[s_all]
        keep = (q_strand == s_strand) | (q_strand == "*") | (s_strand == "*")
        q_all = q_all[keep]
        s_all = s_all[keep]

    order = np.lexsort((s_all, q_all))
    return pd.DataFrame({"query_idx": q_all[order], "subject_idx": s_all[order]})


def left_join_overlap(
    left: IntervalStore,
    right: IntervalStore,
    strand_aware: bool = False,
    right_prefix: str = "right_",
) -> IntervalStore:
    """Left outer join of two stores on interval overlap.

    Every left row appears once per overlapping right row, or exactly once
    with all right columns missing when nothing overlaps it. The result
    keeps the left coordinates; the right coordinates are carried as
    ``{right_prefix}chr`` etc., and right metadata columns whose names
    collide with left columns get the same prefix.

    Raises
    ------
    GenomeMismatchError
        If the stores differ in genome or seqlevels style.
    """
    hits = find_overlaps(left, right, strand_aware=strand_aware)

    l_df = left.to_frame()
    r_df = right.to_frame()

    rename = {c: f"{right_prefix}{c}" for c in COORD_COLS}
    for col in right.metadata_columns:
        if col in l_df.columns:
            rename[col] = f"{right_prefix}{col}"
    r_df = r_df.rename(columns=rename)

    clash = sorted(set(r_df.columns) & set(l_df.columns))
    if clash:
        raise SchemaError(f"Prefix '{right_prefix}' still leaves clashing columns {clash}")

    q_pos = hits["query_idx"].to_numpy()
    s_pos = hits["subject_idx"].to_numpy()
    unmatched = np.setdiff1d(np.arange(len(l_df), dtype=np.int64), q_pos)

    q_pos = np.concatenate([q_pos, unmatched])
    s_pos = np.concatenate([s_pos, np.full(len(unmatched), -1, dtype=np.int64)])
    order = np.lexsort((s_pos, q_pos))
    q_pos = q_pos[order]
    s_pos = s_pos[order]

    left_part = l_df.iloc[q_pos].reset_index(drop=True)
    # label -1 is absent from the RangeIndex, so reindex yields missing rows
    right_part = r_df.reindex(s_pos).reset_index(drop=True)
    for col in ("start", "end"):
        right_part[f"{right_prefix}{col}"] = right_part[f"{right_prefix}{col}"].astype("Int64")

    joined = pd.concat([left_part, right_part], axis=1)
    logger.info(
        f"Overlap join: {len(l_df)} left rows, {len(r_df)} right rows -> "
        f"{len(joined)} rows ({len(unmatched)} left rows without overlap)"
    )
    return IntervalStore(joined, left.genome, left.seqlevels_style)


# ============================================================================
# Convenience wrappers
# ============================================================================


def count_overlaps(
    query: IntervalStore,
    subject: IntervalStore,
    strand_aware: bool = False,
) -> np.ndarray:
    """Count overlaps per query interval.

    Returns
    -------
    np.ndarray
        Array of length len(query) with overlap counts.
    """
    hits = find_overlaps(query, subject, strand_aware=strand_aware)
    return np.bincount(hits["query_idx"].to_numpy(), minlength=len(query))


def subset_by_overlaps(
    query: IntervalStore,
    subject: IntervalStore,
    invert: bool = False,
    strand_aware: bool = False,
) -> IntervalStore:
    """Keep query intervals overlapping any subject interval (or none, if ``invert``)."""
    has_hit = count_overlaps(query, subject, strand_aware=strand_aware) > 0
    return query.filter(~has_hit if invert else has_hit)


# ============================================================================
# Chromosome ordering
# ============================================================================

# Rank of the named (non-numeric) chromosomes after the autosomes
_NAMED_CHROM_RANK = {"X": 1001, "Y": 1002, "M": 1003, "MT": 1003}


def _chrom_key(chrom: str) -> Tuple[int, str]:
    bare = chrom[3:] if chrom.startswith("chr") else chrom
    if bare.isdigit():
        return (int(bare), chrom)
    return (_NAMED_CHROM_RANK.get(bare, 2000), chrom)


def sort_chromosomes(chroms: Iterable[str]) -> List[str]:
    """Distinct chromosome names in natural order (1..22, X, Y, M, then the rest).

    Works for both UCSC (``chr1``) and NCBI (``1``) names.
    """
    return sorted(set(chroms), key=_chrom_key)


def sort_intervals(store: IntervalStore) -> IntervalStore:
    """Order a store by natural chromosome order, then start, then end."""
    df = store.to_frame()
    rank = {c: i for i, c in enumerate(sort_chromosomes(df["chr"]))}
    order = np.lexsort((
        df["end"].to_numpy(),
        df["start"].to_numpy(),
        df["chr"].map(rank).to_numpy(),
    ))
    return IntervalStore(df.iloc[order], store.genome, store.seqlevels_style)


# ============================================================================
# Column name utilities
# ============================================================================

# Standard column name variants emitted by common DE/DA tools
CHROM_COLS = ["chr", "chrom", "chromosome", "seqnames", "#chr"]
START_COLS = ["start", "chromStart", "peak_start"]
END_COLS = ["end", "chromEnd", "peak_end"]
STRAND_COLS = ["strand"]
FC_COLS = ["log2FC", "log2FoldChange", "log2fc", "logFC", "Fold"]
FDR_COLS = ["FDR", "padj", "p.adj", "adj.P.Val", "q_value", "qvalue"]
GENE_ID_COLS = ["gene_id", "geneId", "ENSEMBL", "ensembl_gene_id", "ensembl_id", "gene"]
PEAK_ID_COLS = ["peak_id", "peak", "name", "gene_id"]


def detect_column(df: pd.DataFrame, candidates: List[str], required: bool = False) -> Optional[str]:
    """Find the first matching column name from a list of candidates.

    Parameters
    ----------
    df : pd.DataFrame
    candidates : list of str
        Column names to search for (case-insensitive).
    required : bool
        If True, raise SchemaError when not found.

    Returns
    -------
    str or None
    """
    cols_lower = {c.lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    if required:
        raise SchemaError(
            f"Could not find any of {candidates} in columns: {list(df.columns)}"
        )
    return None
