"""
Loaders for upstream model results.

Differential expression (DESeq2/limma style) and differential
accessibility tables are produced outside this package. These helpers
read them, standardise column names and wrap them as IntervalStores.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError, validate_dataframe
from .genomic_utils import (
    CHROM_COLS,
    END_COLS,
    FC_COLS,
    FDR_COLS,
    GENE_ID_COLS,
    PEAK_ID_COLS,
    START_COLS,
    STRAND_COLS,
    detect_column,
)
from .ranges import IntervalStore

logger = logging.getLogger(__name__)

TableSource = Union[str, Path, pd.DataFrame]


def read_table(source: TableSource) -> pd.DataFrame:
    """Read a CSV/TSV (optionally gzipped) file, or copy a DataFrame."""
    if isinstance(source, pd.DataFrame):
        return source.copy()

    path = Path(source)
    suffixes = [s.lower() for s in path.suffixes if s.lower() != ".gz"]
    sep = "," if suffixes and suffixes[-1] == ".csv" else "\t"
    return pd.read_csv(path, sep=sep)


def _standardize(df: pd.DataFrame, id_candidates, id_col: str, prefix: str) -> pd.DataFrame:
    mapping = {}
    for std_name, candidates in [
        ("chr", CHROM_COLS),
        ("start", START_COLS),
        ("end", END_COLS),
        ("strand", STRAND_COLS),
        (id_col, id_candidates),
        (f"{prefix}_log2FC", [f"{prefix}_log2FC"] + FC_COLS),
        (f"{prefix}_padj", [f"{prefix}_padj"] + FDR_COLS),
    ]:
        col = detect_column(df, candidates, required=std_name != "strand")
        if col and col != std_name:
            mapping[col] = std_name
    df = df.rename(columns=mapping)

    keep = ["chr", "start", "end"] + (["strand"] if "strand" in df.columns else [])
    keep += [id_col, f"{prefix}_log2FC", f"{prefix}_padj"]
    df = df[keep].copy()
    df[id_col] = df[id_col].astype(str)
    for col in (f"{prefix}_log2FC", f"{prefix}_padj"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def load_de_results(
    source: TableSource,
    genome: str,
    seqlevels_style: str = "UCSC",
) -> IntervalStore:
    """Load differential expression results as a gene store.

    Output columns: coordinates, ``gene_id``, ``de_log2FC``, ``de_padj``.
    """
    df = read_table(source)
    validate_dataframe(df, "DE results", min_rows=1)
    df = _standardize(df, GENE_ID_COLS, "gene_id", "de")
    logger.info(f"Loaded {len(df)} genes from DE results")
    return IntervalStore(df, genome, seqlevels_style)


def load_da_results(
    source: TableSource,
    genome: str,
    seqlevels_style: str = "UCSC",
) -> IntervalStore:
    """Load differential accessibility results as a peak store.

    Output columns: coordinates, ``peak_id``, ``da_log2FC``, ``da_padj``.
    """
    df = read_table(source)
    validate_dataframe(df, "DA results", min_rows=1)
    df = _standardize(df, PEAK_ID_COLS, "peak_id", "da")
    logger.info(f"Loaded {len(df)} peaks from DA results")
    return IntervalStore(df, genome, seqlevels_style)


def split_de_genes(
    genes: IntervalStore,
    fdr: float = 0.01,
    lfc: float = 1.0,
) -> Tuple[IntervalStore, IntervalStore]:
    """Split genes into (DE, background).

    A gene is DE when ``de_padj < fdr`` and ``|de_log2FC| > lfc``. Every
    other gene, including those with missing statistics, is background.
    """
    if not 0 < fdr <= 1:
        raise InvalidParameterError("fdr", fdr, "0 < fdr <= 1")
    if lfc < 0:
        raise InvalidParameterError("lfc", lfc, ">= 0")

    padj = genes.column("de_padj").to_numpy(dtype=float)
    log2fc = genes.column("de_log2FC").to_numpy(dtype=float)
    with np.errstate(invalid="ignore"):
        is_de = (padj < fdr) & (np.abs(log2fc) > lfc)

    de, background = genes.filter(is_de), genes.filter(~is_de)
    logger.info(f"{len(de)} DE genes, {len(background)} background genes (FDR < {fdr}, |LFC| > {lfc})")
    return de, background
