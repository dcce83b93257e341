"""
DE/DA Integration Module

Integrates differential expression results (genes) with differential
accessibility results (ATAC-seq peaks) to measure whether DA peaks are
enriched around the TSS of DE genes:

- Split genes into DE and background
- Bootstrap the background to the size of the DE set
- Expand every gene to a window around its TSS
- Left-join gene windows against DA peaks
- Summarise per gene and across a fold-change threshold grid
- Compare DE against background by ratio
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config import settings
from .aggregation import gene_peak_summary
from .exceptions import EmptyDataError, validate_numeric_param
from .genomic_utils import left_join_overlap
from .ranges import IntervalStore, bind_stores, tss_windows
from .resampling import RESAMPLE_COL, bootstrap_resample
from .sweep import default_thresholds, enrichment_table, peak_threshold_summary
from .loaders import split_de_genes

logger = logging.getLogger(__name__)

DE_ORIGIN = "de"
BACKGROUND_ORIGIN = "not_de"


@dataclass
class IntegrationConfig:
    """Configuration for DE/DA integration."""

    # Gene classification
    de_fdr: float = field(default_factory=lambda: settings.de_fdr_threshold)
    de_lfc: float = field(default_factory=lambda: settings.de_lfc_threshold)

    # TSS windows
    window_size: int = field(default_factory=lambda: settings.tss_window_size)

    # Bootstrap
    n_resamples: int = field(default_factory=lambda: settings.n_resamples)
    rng_seed: int = field(default_factory=lambda: settings.rng_seed)

    # Threshold grid (computed from the peaks when not given)
    thresholds: Optional[List[float]] = None
    n_thresholds: int = field(default_factory=lambda: settings.n_thresholds)

    # Overlap
    strand_aware: bool = False

    # Output
    output_dir: Optional[str] = None


@dataclass
class IntegrationResults:
    """Results from DE/DA integration."""

    n_de_genes: int
    n_background_genes: int
    n_overlaps: int

    gene_summary: pd.DataFrame
    threshold_summary: pd.DataFrame
    enrichment: pd.DataFrame

    # Output files
    output_files: Dict[str, str] = field(default_factory=dict)

    # Summary
    summary: Dict[str, Any] = field(default_factory=dict)


class DEDAIntegration:
    """Differential expression / differential accessibility integration."""

    def build_gene_populations(self, genes: IntervalStore, config: IntegrationConfig) -> IntervalStore:
        """DE genes (resample 0) stacked with bootstrap samples of background genes.

        Each bootstrap replicate has as many genes as the DE set.
        """
        de, background = split_de_genes(genes, fdr=config.de_fdr, lfc=config.de_lfc)
        if len(de) == 0:
            raise EmptyDataError("DE gene set")

        boot = bootstrap_resample(
            background,
            sample_size=len(de),
            replicates=config.n_resamples,
            rng_seed=config.rng_seed,
        )
        de = de.assign(**{RESAMPLE_COL: 0})
        return bind_stores({DE_ORIGIN: de, BACKGROUND_ORIGIN: boot}, id_col="origin")

    def run(
        self,
        genes: IntervalStore,
        peaks: IntervalStore,
        config: Optional[IntegrationConfig] = None,
    ) -> IntegrationResults:
        """
        Run the integration.

        Args:
            genes: DE results with gene_id, de_log2FC, de_padj
            peaks: DA results with peak_id, da_log2FC, da_padj
            config: Integration configuration

        Returns:
            IntegrationResults object
        """
        config = config or IntegrationConfig()
        validate_numeric_param(config.window_size, "window_size", min_val=1)
        validate_numeric_param(config.n_resamples, "n_resamples", min_val=1)

        all_genes = self.build_gene_populations(genes, config)
        windows = tss_windows(all_genes, config.window_size)
        overlaps = left_join_overlap(windows, peaks, strand_aware=config.strand_aware, right_prefix="peak_")

        thresholds = config.thresholds
        if thresholds is None:
            thresholds = default_thresholds(peaks.column("da_log2FC"), config.n_thresholds).tolist()

        gene_summary = gene_peak_summary(overlaps)
        threshold_summary = peak_threshold_summary(overlaps, thresholds)
        enrichment = enrichment_table(threshold_summary, target=DE_ORIGIN, background=BACKGROUND_ORIGIN)

        n_de = int((all_genes.column("origin") == DE_ORIGIN).sum())
        results = IntegrationResults(
            n_de_genes=n_de,
            n_background_genes=len(all_genes) - n_de,
            n_overlaps=int(overlaps.column("peak_id").notna().sum()),
            gene_summary=gene_summary,
            threshold_summary=threshold_summary,
            enrichment=enrichment,
        )
        results.summary = self._generate_summary(results)

        if config.output_dir:
            results.output_files = self._save(results, Path(config.output_dir))

        logger.info(
            f"Integrated {n_de} DE genes against {len(peaks)} peaks: "
            f"{results.n_overlaps} gene-peak overlaps"
        )
        return results

    def _generate_summary(self, results: IntegrationResults) -> Dict[str, Any]:
        """Generate summary statistics for the integration."""
        at_zero = results.enrichment.iloc[0] if len(results.enrichment) else None
        return {
            "de_genes": results.n_de_genes,
            "background_genes": results.n_background_genes,
            "overlaps": results.n_overlaps,
            "peak_enrichment_at_min_threshold": float(at_zero["peak_count_enrichment"]) if at_zero is not None else None,
            "gene_enrichment_at_min_threshold": float(at_zero["gene_count_enrichment"]) if at_zero is not None else None,
        }

    def _save(self, results: IntegrationResults, output_dir: Path) -> Dict[str, str]:
        output_dir.mkdir(parents=True, exist_ok=True)
        files = {
            "gene_summary": output_dir / "gene_peak_summary.csv",
            "threshold_summary": output_dir / "threshold_summary.csv",
            "enrichment": output_dir / "enrichment.csv",
        }
        results.gene_summary.to_csv(files["gene_summary"], index=False)
        results.threshold_summary.to_csv(files["threshold_summary"], index=False)
        results.enrichment.to_csv(files["enrichment"], index=False)
        return {name: str(path) for name, path in files.items()}
