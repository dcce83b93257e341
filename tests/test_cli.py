"""
Tests for the command line entry point.
"""

import pandas as pd
import pytest

from fluentgenomics import __version__, cli
from fluentgenomics.cli import main
from fluentgenomics.config import settings
from fluentgenomics.core import cache


@pytest.fixture
def input_tables(temp_dir):
    """Two DE genes with nearby peaks and ten background genes, written as CSV/TSV."""
    starts = [10000, 30000] + [10000 + 20000 * i for i in range(10)]
    genes = pd.DataFrame({
        "chr": ["chr1", "chr1"] + ["chr2"] * 10,
        "start": starts,
        "end": [s + 1500 for s in starts],
        "strand": ["+"] * 12,
        "gene_id": [f"G{i}" for i in range(12)],
        "log2FoldChange": [4.0, -4.0] + [0.0] * 10,
        "padj": [1e-6, 1e-6] + [0.9] * 10,
    })
    peaks = pd.DataFrame({
        "chr": ["chr1", "chr1"],
        "start": [10200, 30100],
        "end": [10400, 30300],
        "peak_id": ["P1", "P2"],
        "log2FC": [1.2, -2.4],
        "padj": [0.01, 0.001],
    })
    genes_path = temp_dir / "genes.csv"
    peaks_path = temp_dir / "peaks.tsv"
    genes.to_csv(genes_path, index=False)
    peaks.to_csv(peaks_path, sep="\t", index=False)
    return genes_path, peaks_path


class TestMain:

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "integrate" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            main(["--version"])
        assert __version__ in capsys.readouterr().out

    def test_integrate(self, input_tables, temp_dir, capsys):
        genes_path, peaks_path = input_tables
        out_dir = temp_dir / "results"
        rc = main([
            "integrate",
            "--genes", str(genes_path),
            "--peaks", str(peaks_path),
            "--genome", "hg38",
            "--output_dir", str(out_dir),
            "--window_size", "1000",
            "--n_resamples", "3",
            "--seed", "11",
        ])
        assert rc == 0

        printed = dict(line.split("\t") for line in capsys.readouterr().out.strip().splitlines())
        assert set(printed) == {"gene_summary", "threshold_summary", "enrichment"}

        summary = pd.read_csv(out_dir / "gene_peak_summary.csv")
        de = summary[summary["origin"] == "de"].set_index("gene_id")
        assert de.loc["G0", "peak_count"] == 1.0
        assert de.loc["G1", "lfc_max"] == pytest.approx(2.4)

    def test_integrate_requires_inputs(self):
        with pytest.raises(SystemExit):
            main(["integrate", "--genes", "x.csv"])

    def test_fetch(self, monkeypatch, temp_dir, capsys):
        seen = {}

        def fake_fetch(verbose=False, cache_dir=None):
            seen["verbose"] = verbose
            seen["cache_dir"] = cache_dir
            return temp_dir / "macrophage_atac_se"

        monkeypatch.setattr(cache, "fetch_or_build_dataset", fake_fetch)
        assert main(["fetch", "--cache_dir", str(temp_dir), "--verbose"]) == 0
        assert seen == {"verbose": True, "cache_dir": str(temp_dir)}
        assert "macrophage_atac_se" in capsys.readouterr().out


class TestIntegrateGenome:
    """Genome build and chromosome naming style on the command line."""

    def _args(self, input_tables, temp_dir, *extra):
        genes_path, peaks_path = input_tables
        return [
            "integrate",
            "--genes", str(genes_path),
            "--peaks", str(peaks_path),
            "--output_dir", str(temp_dir / "results"),
            "--window_size", "1000",
            "--n_resamples", "2",
            *extra,
        ]

    def test_style_overrides_genome(self, input_tables, temp_dir):
        """GRCh38 tables with chr-prefixed names load once the style is given."""
        args = self._args(input_tables, temp_dir, "--genome", "GRCh38", "--seqlevels_style", "UCSC")
        assert main(args) == 0
        assert (temp_dir / "results" / "gene_peak_summary.csv").exists()

    def test_default_genome_expects_ncbi_names(self, input_tables, temp_dir, capsys):
        with pytest.raises(SystemExit) as exc:
            main(self._args(input_tables, temp_dir))
        assert exc.value.code == 2
        err = capsys.readouterr().err
        assert "NCBI-style" in err
        assert "Traceback" not in err

    def test_unsupported_genome(self, input_tables, temp_dir, capsys):
        with pytest.raises(SystemExit) as exc:
            main(self._args(input_tables, temp_dir, "--genome", "dm6"))
        assert exc.value.code == 2
        assert "--genome" in capsys.readouterr().err

    def test_unsupported_default_genome(self, input_tables, temp_dir, monkeypatch, capsys):
        monkeypatch.setattr(settings, "default_genome", "dm6")
        with pytest.raises(SystemExit) as exc:
            main(self._args(input_tables, temp_dir))
        assert exc.value.code == 2
        assert "Unsupported genome: dm6" in capsys.readouterr().err

    def test_unknown_style(self, input_tables, temp_dir):
        with pytest.raises(SystemExit):
            main(self._args(input_tables, temp_dir, "--seqlevels_style", "Ensembl"))


class TestLogging:

    @pytest.fixture
    def levels(self, monkeypatch):
        seen = []
        monkeypatch.setattr(cli, "setup_logging", lambda debug=False: seen.append(debug))
        monkeypatch.setattr(cache, "fetch_or_build_dataset", lambda verbose=False, cache_dir=None: "x")
        return seen

    def test_debug_flag(self, levels):
        main(["--debug", "fetch"])
        assert levels == [True]

    def test_debug_from_settings(self, levels, monkeypatch):
        monkeypatch.setattr(settings, "debug", True)
        main(["fetch"])
        assert levels == [True]

    def test_info_by_default(self, levels, monkeypatch):
        monkeypatch.setattr(settings, "debug", False)
        main(["fetch"])
        assert levels == [False]
