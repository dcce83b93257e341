"""
Download-once cache for the macrophage ATAC-seq dataset.

On first use the sample metadata, peak metadata and CQN-normalised
accessibility matrix are downloaded from Zenodo, combined into one
dataset and written as parquet files under the cache directory. Later
calls return the cached path without touching the network.

The cache does not lock against concurrent processes. A manifest is
written after all data files, so an interrupted build is redone on the
next call instead of being read.
"""

import json
import logging
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
import requests

from ..config import settings
from .exceptions import CacheError, InvalidParameterError, validate_dataframe
from .genomic_utils import sort_intervals
from .ranges import IntervalStore

logger = logging.getLogger(__name__)

ATAC_RESOURCE = "macrophage_atac_se"
ATAC_GENOME = "GRCh38"
MANIFEST = "manifest.json"

SAMPLE_METADATA_FILE = "ATAC_sample_metadata.txt.gz"
PEAK_METADATA_FILE = "ATAC_peak_metadata.txt.gz"
CQN_MATRIX_FILE = "ATAC_cqn_matrix.txt.gz"


@dataclass
class AtacDataset:
    """Accessibility matrix with its peak ranges and sample metadata."""

    cqndata: pd.DataFrame
    peaks: IntervalStore
    coldata: pd.DataFrame


def retrieve_cache(cache_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return (and create) the cache root directory."""
    cache = Path(cache_dir) if cache_dir else settings.cache_dir
    cache.mkdir(parents=True, exist_ok=True)
    return cache


def fetch_or_build_dataset(
    resource_name: str = ATAC_RESOURCE,
    verbose: bool = False,
    cache_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """Download, build and cache a dataset; return its local path.

    Parameters
    ----------
    resource_name : str
        Name of the cached resource. Only ``"macrophage_atac_se"`` is known.
    verbose : bool
        Log download progress at INFO instead of DEBUG.
    cache_dir : path, optional
        Cache root; defaults to ``settings.cache_dir``.

    Returns
    -------
    Path
        Directory holding the parquet files and manifest.
    """
    if resource_name != ATAC_RESOURCE:
        raise InvalidParameterError("resource_name", resource_name, f"'{ATAC_RESOURCE}'")

    target = retrieve_cache(cache_dir) / resource_name
    if (target / MANIFEST).exists():
        logger.debug(f"Using cached {resource_name} at {target}")
        return target

    log = logger.info if verbose else logger.debug
    log("Preparing summarised experiment, now downloading files")

    dir_url = settings.atac_base_url
    coldata = prep_coldata(dir_url, verbose)
    peaks = prep_peaks(dir_url, verbose)
    cqndata = prep_mat(dir_url, verbose, coldata["sample_id"].tolist())

    save_dataset(AtacDataset(cqndata=cqndata, peaks=peaks, coldata=coldata), target, resource_name)
    logger.info(f"Cached {resource_name} ({len(peaks)} peaks, {len(coldata)} samples) at {target}")
    return target


# ============================================================================
# Downloads
# ============================================================================


def _download(url: str, dest: Path, verbose: bool) -> Path:
    """Stream ``url`` to ``dest``. HTTP errors propagate."""
    log = logger.info if verbose else logger.debug
    log(f"Downloading {url}")
    with requests.get(url, stream=True, timeout=settings.download_timeout) as response:
        response.raise_for_status()
        with open(dest, "wb") as fh:
            for chunk in response.iter_content(chunk_size=1 << 20):
                fh.write(chunk)
    return dest


def _fetch_table(dir_url: str, filename: str, verbose: bool, **read_kwargs) -> pd.DataFrame:
    url = f"{dir_url}{filename}?download=1"
    with tempfile.TemporaryDirectory() as tmpdir:
        local = _download(url, Path(tmpdir) / filename, verbose)
        return pd.read_csv(local, sep="\t", compression="gzip", **read_kwargs)


def prep_coldata(dir_url: str, verbose: bool) -> pd.DataFrame:
    """Sample metadata with ``condition`` as a factor whose first level is naive."""
    coldata = _fetch_table(dir_url, SAMPLE_METADATA_FILE, verbose)
    validate_dataframe(
        coldata, SAMPLE_METADATA_FILE,
        required_columns=["sample_id", "donor", "condition_name"],
    )
    coldata = coldata[["sample_id", "donor", "condition_name"]].rename(
        columns={"condition_name": "condition"}
    )
    coldata["sample_id"] = coldata["sample_id"].astype(str)
    levels = sorted(set(coldata["condition"].astype(str)))
    if "naive" in levels:
        levels = ["naive"] + [lvl for lvl in levels if lvl != "naive"]
    coldata["condition"] = pd.Categorical(coldata["condition"].astype(str), categories=levels)
    return coldata.reset_index(drop=True)


def prep_peaks(dir_url: str, verbose: bool) -> IntervalStore:
    """Peak ranges on GRCh38, identified by ``peak_id``, in natural chromosome order."""
    peaks_df = _fetch_table(
        dir_url, PEAK_METADATA_FILE, verbose,
        dtype={"chr": str, "gene_id": str},
    )
    validate_dataframe(
        peaks_df, PEAK_METADATA_FILE,
        required_columns=["chr", "start", "end", "gene_id"],
    )
    coords = ["chr", "start", "end"] + (["strand"] if "strand" in peaks_df.columns else [])
    peaks_df = peaks_df[coords + ["gene_id"]].rename(columns={"gene_id": "peak_id"})

    style = "UCSC" if peaks_df["chr"].str.startswith("chr").all() else "NCBI"
    return sort_intervals(IntervalStore(peaks_df, ATAC_GENOME, style))


def prep_mat(dir_url: str, verbose: bool, sample_id: List[str]) -> pd.DataFrame:
    """CQN matrix indexed by peak, one column per sample."""
    mat = _fetch_table(
        dir_url, CQN_MATRIX_FILE, verbose,
        skiprows=1, header=None, names=["rownames"] + list(sample_id),
    )
    mat["rownames"] = mat["rownames"].astype(str)
    return mat.set_index("rownames")


# ============================================================================
# Serialisation
# ============================================================================


def save_dataset(dataset: AtacDataset, target: Path, resource_name: str = ATAC_RESOURCE) -> Path:
    """Write a dataset as parquet files plus a manifest (written last)."""
    target.mkdir(parents=True, exist_ok=True)
    stale = target / MANIFEST
    if stale.exists():
        stale.unlink()

    dataset.cqndata.to_parquet(target / "cqndata.parquet", index=True)
    dataset.peaks.to_frame().to_parquet(target / "peaks.parquet", index=False)
    dataset.coldata.to_parquet(target / "coldata.parquet", index=False)

    manifest = {
        "resource": resource_name,
        "genome": dataset.peaks.genome,
        "seqlevels_style": dataset.peaks.seqlevels_style,
        "n_peaks": len(dataset.peaks),
        "n_samples": int(dataset.coldata.shape[0]),
        "created": datetime.now().isoformat(),
    }
    (target / MANIFEST).write_text(json.dumps(manifest, indent=2))
    return target


def load_dataset(path: Union[str, Path]) -> AtacDataset:
    """Read a dataset written by :func:`fetch_or_build_dataset`."""
    path = Path(path)
    manifest_file = path / MANIFEST
    if not manifest_file.exists():
        raise CacheError(f"No dataset manifest at {manifest_file}")
    try:
        manifest = json.loads(manifest_file.read_text())
        genome = manifest["genome"]
        style = manifest["seqlevels_style"]
    except (json.JSONDecodeError, KeyError) as e:
        raise CacheError(f"Corrupt dataset manifest at {manifest_file}: {e}") from e

    return AtacDataset(
        cqndata=pd.read_parquet(path / "cqndata.parquet"),
        peaks=IntervalStore(pd.read_parquet(path / "peaks.parquet"), genome, style),
        coldata=pd.read_parquet(path / "coldata.parquet"),
    )
