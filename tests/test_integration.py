"""
Unit tests for the DE/DA integration module.

Tests for IntegrationConfig, IntegrationResults and DEDAIntegration.
Covers population building, TSS-window overlaps, threshold summaries,
enrichment and output files.
"""

import math

import numpy as np
import pandas as pd
import pytest

from fluentgenomics.config import settings
from fluentgenomics.core.exceptions import (
    EmptyDataError,
    GenomeMismatchError,
    InvalidParameterError,
)
from fluentgenomics.core.integration import (
    BACKGROUND_ORIGIN,
    DE_ORIGIN,
    DEDAIntegration,
    IntegrationConfig,
    IntegrationResults,
)
from fluentgenomics.core.ranges import IntervalStore

GENOME = "hg38"
N_DE = 4
N_BACKGROUND = 40


@pytest.fixture
def genes():
    """4 DE genes on chr1 and 40 background genes on chr2, 20 kb apart."""
    de_starts = [10000 + 20000 * i for i in range(N_DE)]
    bg_starts = [10000 + 20000 * i for i in range(N_BACKGROUND)]
    return IntervalStore(
        pd.DataFrame({
            "chr": ["chr1"] * N_DE + ["chr2"] * N_BACKGROUND,
            "start": de_starts + bg_starts,
            "end": [s + 2000 for s in de_starts + bg_starts],
            "strand": ["+"] * (N_DE + N_BACKGROUND),
            "gene_id": [f"DE{i}" for i in range(N_DE)] + [f"BG{i}" for i in range(N_BACKGROUND)],
            "de_log2FC": [3.0] * N_DE + [0.1] * N_BACKGROUND,
            "de_padj": [1e-5] * N_DE + [0.5] * N_BACKGROUND,
        }),
        GENOME,
    )


@pytest.fixture
def peaks():
    """One strong DA peak just downstream of every DE gene TSS, one weak peak at BG0."""
    de_tss = [10000 + 20000 * i for i in range(N_DE)]
    return IntervalStore(
        pd.DataFrame({
            "chr": ["chr1"] * N_DE + ["chr2"],
            "start": [t + 100 for t in de_tss] + [10100],
            "end": [t + 300 for t in de_tss] + [10300],
            "peak_id": [f"P{i}" for i in range(N_DE + 1)],
            "da_log2FC": [2.0] * N_DE + [0.5],
            "da_padj": [0.001] * N_DE + [0.2],
        }),
        GENOME,
    )


@pytest.fixture
def config():
    return IntegrationConfig(
        window_size=1000,
        n_resamples=5,
        rng_seed=7,
        thresholds=[0.0, 1.0],
    )


@pytest.fixture
def integration():
    return DEDAIntegration()


class TestIntegrationConfig:
    """Tests for IntegrationConfig dataclass."""

    def test_config_defaults(self):
        """Defaults come from the application settings."""
        config = IntegrationConfig()

        assert config.de_fdr == settings.de_fdr_threshold
        assert config.de_lfc == settings.de_lfc_threshold
        assert config.window_size == settings.tss_window_size
        assert config.n_resamples == settings.n_resamples
        assert config.rng_seed == settings.rng_seed
        assert config.thresholds is None
        assert config.strand_aware is False
        assert config.output_dir is None

    def test_config_custom_values(self):
        config = IntegrationConfig(de_fdr=0.05, de_lfc=0.5, window_size=500, output_dir="/tmp/output")

        assert config.de_fdr == 0.05
        assert config.de_lfc == 0.5
        assert config.window_size == 500
        assert config.output_dir == "/tmp/output"


class TestIntegrationResults:
    """Tests for IntegrationResults dataclass."""

    def test_results_basic_creation(self):
        results = IntegrationResults(
            n_de_genes=2,
            n_background_genes=20,
            n_overlaps=3,
            gene_summary=pd.DataFrame(),
            threshold_summary=pd.DataFrame(),
            enrichment=pd.DataFrame(),
        )

        assert results.n_de_genes == 2
        assert results.output_files == {}
        assert results.summary == {}


class TestBuildGenePopulations:

    def test_origins_and_tags(self, integration, genes, config):
        pops = integration.build_gene_populations(genes, config).to_frame()

        de = pops[pops["origin"] == DE_ORIGIN]
        bg = pops[pops["origin"] == BACKGROUND_ORIGIN]
        assert sorted(de["gene_id"]) == [f"DE{i}" for i in range(N_DE)]
        assert (de["resample"] == 0).all()
        assert sorted(bg["resample"].unique()) == [1, 2, 3, 4, 5]
        assert (bg.groupby("resample").size() == N_DE).all()
        assert bg["gene_id"].str.startswith("BG").all()

    def test_no_de_genes(self, integration, genes, config):
        config.de_lfc = 10.0
        with pytest.raises(EmptyDataError):
            integration.build_gene_populations(genes, config)


class TestDEDAIntegration:
    """End-to-end runs on synthetic genes and peaks."""

    def test_counts(self, integration, genes, peaks, config):
        results = integration.run(genes, peaks, config)

        assert results.n_de_genes == N_DE
        assert results.n_background_genes == N_DE * config.n_resamples
        assert results.n_overlaps >= N_DE

    def test_gene_summary(self, integration, genes, peaks, config):
        results = integration.run(genes, peaks, config)
        summary = results.gene_summary

        de = summary[summary["origin"] == DE_ORIGIN].set_index("gene_id")
        assert (de["peak_count"] == 1.0).all()
        assert (de["lfc_max"] == 2.0).all()
        assert list(summary.columns) == ["gene_id", "origin", "peak_count", "lfc_max"]

        bg = summary[summary["origin"] == BACKGROUND_ORIGIN].set_index("gene_id")
        assert (bg.drop(index="BG0", errors="ignore")["peak_count"] == 0).all()

    def test_threshold_summary(self, integration, genes, peaks, config):
        results = integration.run(genes, peaks, config)
        d = results.threshold_summary.set_index(["origin", "threshold"])

        assert d.loc[(DE_ORIGIN, 0.0), "gene_count"] == pytest.approx(N_DE)
        assert d.loc[(DE_ORIGIN, 1.0), "peak_count"] == pytest.approx(N_DE)
        assert d.loc[(BACKGROUND_ORIGIN, 1.0), "peak_count"] == 0
        assert d.loc[(BACKGROUND_ORIGIN, 0.0), "peak_count"] <= 1.0

    def test_enrichment(self, integration, genes, peaks, config):
        results = integration.run(genes, peaks, config)
        table = results.enrichment.set_index("threshold")

        assert table.loc[1.0, "gene_count_enrichment"] == math.inf
        assert not bool(table.loc[1.0, "gene_count_defined"])
        ratio = table.loc[0.0, "peak_count_enrichment"]
        assert ratio >= N_DE or math.isinf(ratio)

    def test_summary(self, integration, genes, peaks, config):
        results = integration.run(genes, peaks, config)

        assert results.summary["de_genes"] == N_DE
        assert results.summary["overlaps"] == results.n_overlaps
        assert "peak_enrichment_at_min_threshold" in results.summary

    def test_deterministic(self, integration, genes, peaks, config):
        a = integration.run(genes, peaks, config)
        b = integration.run(genes, peaks, config)
        pd.testing.assert_frame_equal(a.gene_summary, b.gene_summary)
        pd.testing.assert_frame_equal(a.enrichment, b.enrichment)

    def test_default_thresholds(self, integration, genes, peaks, config):
        config.thresholds = None
        config.n_thresholds = 5
        results = integration.run(genes, peaks, config)

        grid = sorted(results.threshold_summary["threshold"].unique())
        assert grid == pytest.approx([0.0, 0.5, 1.0, 1.5, 2.0])
        assert len(results.threshold_summary) == 10

    def test_window_too_small_to_reach_peaks(self, integration, genes, peaks, config):
        config.window_size = 50
        results = integration.run(genes, peaks, config)
        assert results.n_overlaps == 0

    def test_output_files(self, integration, genes, peaks, config, temp_dir):
        config.output_dir = str(temp_dir / "out")
        results = integration.run(genes, peaks, config)

        assert set(results.output_files) == {"gene_summary", "threshold_summary", "enrichment"}
        enrichment = pd.read_csv(results.output_files["enrichment"])
        assert "peak_count_enrichment" in enrichment.columns
        assert len(pd.read_csv(results.output_files["gene_summary"])) == len(results.gene_summary)

    def test_no_output_dir(self, integration, genes, peaks, config):
        assert integration.run(genes, peaks, config).output_files == {}

    def test_genome_mismatch(self, integration, genes, peaks, config):
        other = IntervalStore(peaks.to_frame(), "hg19")
        with pytest.raises(GenomeMismatchError):
            integration.run(genes, other, config)

    def test_invalid_window(self, integration, genes, peaks, config):
        config.window_size = 0
        with pytest.raises(InvalidParameterError):
            integration.run(genes, peaks, config)

    def test_background_too_small(self, integration, genes, peaks, config):
        de_only = genes.filter(np.asarray(genes.column("gene_id").str.startswith("DE")))
        with pytest.raises(InvalidParameterError):
            integration.run(de_only, peaks, config)
