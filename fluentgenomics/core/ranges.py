"""
Genomic interval stores.

An IntervalStore is an immutable table of closed, 1-based genomic
intervals (chr, start, end, strand) with arbitrary metadata columns. The
reference genome and the chromosome naming style are explicit fields of
every store and are checked whenever two stores are combined.

Also provides the anchored resize transform used to build TSS windows.
"""

import logging
from enum import Enum
from typing import Dict, List, Sequence, Union

import numpy as np
import pandas as pd

from .exceptions import (
    EmptyDataError,
    GenomeMismatchError,
    InvalidParameterError,
    InvalidWidthError,
    SchemaError,
    validate_dataframe,
)

logger = logging.getLogger(__name__)

COORD_COLS = ["chr", "start", "end", "strand"]
STRANDS = ("+", "-", "*")
SEQLEVELS_STYLES = ("UCSC", "NCBI")


class Anchor(str, Enum):
    """Point held fixed by :func:`anchor_resize`."""

    FIVE_PRIME = "five_prime"
    THREE_PRIME = "three_prime"
    CENTER = "center"


class IntervalStore:
    """Immutable collection of genomic intervals sharing a metadata schema.

    Parameters
    ----------
    data : pd.DataFrame
        Must contain ``chr``, ``start`` and ``end``. ``strand`` is optional
        (missing values become ``"*"``). All other columns are metadata.
    genome : str
        Reference genome identifier, e.g. ``"GRCh38"``.
    seqlevels_style : str
        ``"UCSC"`` (``chr1``) or ``"NCBI"`` (``1``). Chromosome names are
        validated against it.
    """

    def __init__(self, data: pd.DataFrame, genome: str, seqlevels_style: str = "UCSC"):
        if not isinstance(genome, str) or not genome:
            raise SchemaError(f"Interval store requires a genome identifier, got {genome!r}")
        if seqlevels_style not in SEQLEVELS_STYLES:
            raise InvalidParameterError("seqlevels_style", seqlevels_style, f"one of {SEQLEVELS_STYLES}")

        self._df = _normalize_frame(data)
        _check_style(self._df["chr"], seqlevels_style)
        self._genome = genome
        self._style = seqlevels_style

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def genome(self) -> str:
        return self._genome

    @property
    def seqlevels_style(self) -> str:
        return self._style

    @property
    def columns(self) -> List[str]:
        return list(self._df.columns)

    @property
    def metadata_columns(self) -> List[str]:
        return [c for c in self._df.columns if c not in COORD_COLS]

    @property
    def schema(self) -> Dict[str, str]:
        """Ordered mapping of column name to dtype name."""
        return {col: str(dtype) for col, dtype in self._df.dtypes.items()}

    @property
    def width(self) -> np.ndarray:
        return (self._df["end"] - self._df["start"] + 1).to_numpy()

    def column(self, name: str) -> pd.Series:
        """Return a copy of one column."""
        if name not in self._df.columns:
            raise SchemaError(f"Column '{name}' not in interval store: {self.columns}")
        return self._df[name].copy()

    def to_frame(self) -> pd.DataFrame:
        """Return a copy of the underlying table."""
        return self._df.copy()

    def __len__(self) -> int:
        return len(self._df)

    def __eq__(self, other) -> bool:
        if not isinstance(other, IntervalStore):
            return NotImplemented
        return (
            self._genome == other._genome
            and self._style == other._style
            and self._df.equals(other._df)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"IntervalStore(genome={self._genome!r}, style={self._style!r}, "
            f"rows={len(self._df)}, columns={self.metadata_columns})"
        )

    # ------------------------------------------------------------------
    # Transforms (all return new stores)
    # ------------------------------------------------------------------

    def _derive(self, df: pd.DataFrame) -> "IntervalStore":
        return IntervalStore(df, self._genome, self._style)

    def filter(self, mask) -> "IntervalStore":
        """Keep rows where ``mask`` is True (positional)."""
        mask = np.asarray(mask, dtype=bool)
        if len(mask) != len(self._df):
            raise SchemaError(f"Filter mask has {len(mask)} values for {len(self._df)} rows")
        return self._derive(self._df[mask])

    def select(self, columns: Sequence[str]) -> "IntervalStore":
        """Keep the coordinates plus the named metadata columns."""
        missing = [c for c in columns if c not in self._df.columns]
        if missing:
            raise SchemaError(f"Cannot select missing columns {missing}")
        keep = COORD_COLS + [c for c in columns if c not in COORD_COLS]
        return self._derive(self._df[keep])

    def assign(self, **columns) -> "IntervalStore":
        """Add or replace metadata columns."""
        return self._derive(self._df.assign(**columns))

    def with_seqlevels_style(self, style: str) -> "IntervalStore":
        """Rename chromosomes to another naming style (``chr1`` <-> ``1``)."""
        if style not in SEQLEVELS_STYLES:
            raise InvalidParameterError("seqlevels_style", style, f"one of {SEQLEVELS_STYLES}")
        if style == self._style:
            return self

        df = self._df.copy()
        if style == "NCBI":
            df["chr"] = df["chr"].map(_ucsc_to_ncbi)
        else:
            df["chr"] = df["chr"].map(_ncbi_to_ucsc)
        return IntervalStore(df, self._genome, style)


# ============================================================================
# Validation helpers
# ============================================================================


def _normalize_frame(data: pd.DataFrame) -> pd.DataFrame:
    validate_dataframe(data, "interval store", required_columns=["chr", "start", "end"])

    df = data.copy()
    if "strand" not in df.columns:
        df["strand"] = "*"
    df["strand"] = df["strand"].fillna("*").astype(str)
    bad_strands = sorted(set(df["strand"].unique()) - set(STRANDS))
    if bad_strands:
        raise SchemaError(f"Invalid strand values {bad_strands}; expected one of {STRANDS}")

    if df["chr"].isna().any():
        raise SchemaError("Interval store has missing chromosome names")
    df["chr"] = df["chr"].astype(str)

    for col in ("start", "end"):
        if df[col].isna().any():
            raise SchemaError(f"Interval store has missing '{col}' coordinates")
        try:
            values = pd.to_numeric(df[col])
        except (TypeError, ValueError) as e:
            raise SchemaError(f"Non-numeric '{col}' coordinates: {e}") from e
        if not np.all(np.mod(values.to_numpy(dtype=float), 1) == 0):
            raise SchemaError(f"Non-integer '{col}' coordinates")
        df[col] = values.astype(np.int64)

    if (df["start"] > df["end"]).any():
        n_bad = int((df["start"] > df["end"]).sum())
        raise SchemaError(f"{n_bad} intervals have start > end")

    order = COORD_COLS + [c for c in df.columns if c not in COORD_COLS]
    return df[order].reset_index(drop=True)


def _check_style(chroms: pd.Series, style: str) -> None:
    if chroms.empty:
        return
    prefixed = chroms.str.startswith("chr")
    if style == "UCSC" and not prefixed.all():
        bad = chroms[~prefixed].unique()[:5].tolist()
        raise SchemaError(f"UCSC-style store has chromosome names without 'chr': {bad}")
    if style == "NCBI" and prefixed.any():
        bad = chroms[prefixed].unique()[:5].tolist()
        raise SchemaError(f"NCBI-style store has 'chr'-prefixed chromosome names: {bad}")


def _ucsc_to_ncbi(chrom: str) -> str:
    if chrom == "chrM":
        return "MT"
    return chrom[3:]


def _ncbi_to_ucsc(chrom: str) -> str:
    if chrom == "MT":
        return "chrM"
    return f"chr{chrom}"


def check_compatible(left: IntervalStore, right: IntervalStore) -> None:
    """Raise GenomeMismatchError unless both stores share genome and style."""
    if left.genome != right.genome:
        raise GenomeMismatchError(left.genome, right.genome)
    if left.seqlevels_style != right.seqlevels_style:
        raise GenomeMismatchError(left.seqlevels_style, right.seqlevels_style, what="seqlevels style")


# ============================================================================
# Anchored resize
# ============================================================================


def anchor_resize(
    store: IntervalStore,
    anchor: Union[Anchor, str],
    new_width: int,
) -> IntervalStore:
    """Resize every interval to ``new_width`` around a fixed anchor.

    - five_prime: ``+`` strand keeps ``start``; ``-`` strand keeps ``end``.
    - three_prime: the opposite end is kept.
    - center: strand-independent; ``start + floor((width - new_width) / 2)``
      becomes the new start, so an odd width difference puts the extra
      base on the high side. Repeating the same resize is a no-op.

    Unstranded (``*``) intervals are resized as plus-strand intervals.
    """
    try:
        anchor = Anchor(anchor)
    except ValueError:
        raise InvalidParameterError("anchor", anchor, f"one of {[a.value for a in Anchor]}")
    if isinstance(new_width, bool) or not isinstance(new_width, (int, np.integer)) or new_width <= 0:
        raise InvalidWidthError(new_width)

    df = store.to_frame()
    start = df["start"].to_numpy(dtype=np.int64)
    end = df["end"].to_numpy(dtype=np.int64)
    minus = df["strand"].to_numpy() == "-"
    w = int(new_width)

    if anchor is Anchor.FIVE_PRIME:
        new_start = np.where(minus, end - w + 1, start)
    elif anchor is Anchor.THREE_PRIME:
        new_start = np.where(minus, start, end - w + 1)
    else:
        new_start = start + (end - start + 1 - w) // 2

    df["start"] = new_start
    df["end"] = new_start + w - 1
    return IntervalStore(df, store.genome, store.seqlevels_style)


def tss_windows(store: IntervalStore, window_size: int) -> IntervalStore:
    """Windows of ``2 * window_size`` bases centred on each interval's TSS."""
    if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)) or window_size <= 0:
        raise InvalidWidthError(window_size)
    tss = anchor_resize(store, Anchor.FIVE_PRIME, 1)
    return anchor_resize(tss, Anchor.CENTER, 2 * int(window_size))


# ============================================================================
# Combining stores
# ============================================================================


def bind_stores(
    named_stores: Dict[str, IntervalStore],
    id_col: str = "origin",
) -> IntervalStore:
    """Stack several stores, labelling each row with its store's name.

    Columns absent from a store are filled with missing values.
    """
    if not named_stores:
        raise EmptyDataError("store mapping")

    stores = list(named_stores.values())
    first = stores[0]
    for other in stores[1:]:
        check_compatible(first, other)

    frames = []
    for name, store in named_stores.items():
        df = store.to_frame()
        df[id_col] = name
        frames.append(df)

    combined = pd.concat(frames, ignore_index=True, sort=False)
    logger.info(f"Bound {len(stores)} interval stores into {len(combined)} rows")
    return IntervalStore(combined, first.genome, first.seqlevels_style)

