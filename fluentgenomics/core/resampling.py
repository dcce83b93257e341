"""
Bootstrap resampling of background interval sets.

Builds a null population by repeatedly drawing distinct rows from a
background store (e.g. non-DE genes) and tagging each draw with its
replicate number.
"""

import logging

import numpy as np
import pandas as pd

from .exceptions import InvalidParameterError, SampleSizeError
from .ranges import IntervalStore

logger = logging.getLogger(__name__)

RESAMPLE_COL = "resample"


def bootstrap_resample(
    background: IntervalStore,
    sample_size: int,
    replicates: int,
    rng_seed: int,
    tag_col: str = RESAMPLE_COL,
) -> IntervalStore:
    """Draw ``replicates`` samples of ``sample_size`` rows from ``background``.

    Each replicate samples without replacement; replicates are independent
    of each other and tagged 1..replicates in ``tag_col``. The same seed,
    sizes and background give the same output.

    Raises
    ------
    SampleSizeError
        If ``sample_size`` is negative or exceeds the background size.
    InvalidParameterError
        If ``replicates`` is less than 1.
    """
    if isinstance(sample_size, bool) or not isinstance(sample_size, (int, np.integer)):
        raise SampleSizeError(sample_size, len(background))
    if sample_size < 0 or sample_size > len(background):
        raise SampleSizeError(sample_size, len(background))
    if isinstance(replicates, bool) or not isinstance(replicates, (int, np.integer)) or replicates < 1:
        raise InvalidParameterError("replicates", replicates, ">= 1")
    if tag_col in background.columns:
        raise InvalidParameterError("tag_col", tag_col, "a column not already in the background store")

    rng = np.random.default_rng(rng_seed)
    df = background.to_frame()

    draws = []
    for replicate in range(1, replicates + 1):
        rows = rng.choice(len(df), size=sample_size, replace=False)
        draw = df.iloc[rows].copy()
        draw[tag_col] = replicate
        draws.append(draw)

    sampled = pd.concat(draws, ignore_index=True)
    sampled[tag_col] = sampled[tag_col].astype(np.int64)

    logger.info(
        f"Drew {replicates} bootstrap replicates of {sample_size} from "
        f"{len(df)} background intervals (seed={rng_seed})"
    )
    return IntervalStore(sampled, background.genome, background.seqlevels_style)
