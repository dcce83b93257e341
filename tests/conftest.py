"""
Shared test fixtures for the fluentgenomics test suite.
"""

import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from fluentgenomics.core.ranges import IntervalStore

GENOME = "GRCh38"


# ============================================================================
# Interval stores
# ============================================================================


@pytest.fixture
def de_genes():
    """Two DE genes: G1 on the plus strand, G2 on the minus strand."""
    return IntervalStore(
        pd.DataFrame({
            "chr": ["chr1", "chr1"],
            "start": [1000, 50000],
            "end": [2000, 52000],
            "strand": ["+", "-"],
            "gene_id": ["G1", "G2"],
            "de_log2FC": [2.0, -3.0],
            "de_padj": [0.001, 0.0001],
        }),
        GENOME,
    )


@pytest.fixture
def da_peaks():
    """One DA peak overlapping G1 only."""
    return IntervalStore(
        pd.DataFrame({
            "chr": ["chr1"],
            "start": [1500],
            "end": [1700],
            "peak_id": ["P1"],
            "da_log2FC": [1.5],
            "da_padj": [0.001],
        }),
        GENOME,
    )


def make_random_store(seed: int, n: int, genome: str = GENOME, chroms=("chr1", "chr2")) -> IntervalStore:
    """Random intervals (including single-base ones) with a score column."""
    rng = np.random.default_rng(seed)
    starts = rng.integers(1, 5000, n)
    widths = rng.integers(0, 400, n)
    return IntervalStore(
        pd.DataFrame({
            "chr": rng.choice(list(chroms), n),
            "start": starts,
            "end": starts + widths,
            "strand": rng.choice(["+", "-", "*"], n),
            "name": [f"iv_{seed}_{i}" for i in range(n)],
            "score": rng.normal(0, 2, n),
        }),
        genome,
    )


@pytest.fixture
def random_store():
    """Factory fixture for seeded random interval stores."""
    return make_random_store


# ============================================================================
# Temporary files
# ============================================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that gets cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
