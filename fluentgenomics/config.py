"""
Configuration settings for fluentgenomics.

Supports multiple reference genomes, a configurable dataset cache and
the default parameters of the DE/DA integration.
"""

from pathlib import Path
from typing import Dict
from pydantic_settings import BaseSettings
from pydantic import Field


class GenomeConfig:
    """Reference genome configuration."""

    SUPPORTED_GENOMES = {
        "GRCh38": {
            "name": "Human (GRCh38/hg38)",
            "species": "Homo sapiens",
            "seqlevels_style": "NCBI",
        },
        "hg38": {
            "name": "Human (hg38/GRCh38)",
            "species": "Homo sapiens",
            "seqlevels_style": "UCSC",
        },
        "GRCh37": {
            "name": "Human (GRCh37/hg19)",
            "species": "Homo sapiens",
            "seqlevels_style": "NCBI",
        },
        "hg19": {
            "name": "Human (hg19/GRCh37)",
            "species": "Homo sapiens",
            "seqlevels_style": "UCSC",
        },
        "GRCm38": {
            "name": "Mouse (GRCm38/mm10)",
            "species": "Mus musculus",
            "seqlevels_style": "NCBI",
        },
        "mm10": {
            "name": "Mouse (mm10/GRCm38)",
            "species": "Mus musculus",
            "seqlevels_style": "UCSC",
        },
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "fluentgenomics"
    debug: bool = False

    # Paths
    cache_dir: Path = Field(default_factory=lambda: Path.home() / ".fluentgenomics" / "cache")
    results_dir: Path = Field(default_factory=lambda: Path.cwd() / "results")

    # Remote data
    atac_base_url: str = "https://zenodo.org/record/1188300/files/"
    download_timeout: int = 300

    # Default analysis parameters
    default_genome: str = "GRCh38"
    de_fdr_threshold: float = 0.01
    de_lfc_threshold: float = 1.0
    tss_window_size: int = 10000
    n_resamples: int = 10
    rng_seed: int = 2019
    n_thresholds: int = 25

    class Config:
        env_prefix = "FLUENTGENOMICS_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    def ensure_directories(self):
        """Create necessary directories if they don't exist."""
        for dir_path in [self.cache_dir, self.results_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)

    def get_genome_config(self, genome: str) -> Dict:
        """Get configuration for a specific genome."""
        if genome not in GenomeConfig.SUPPORTED_GENOMES:
            raise ValueError(f"Unsupported genome: {genome}. Supported: {list(GenomeConfig.SUPPORTED_GENOMES.keys())}")
        return GenomeConfig.SUPPORTED_GENOMES[genome]

    def get_seqlevels_style(self, genome: str) -> str:
        """Chromosome naming style used by a genome build."""
        return self.get_genome_config(genome)["seqlevels_style"]


# Global settings instance
settings = Settings()
