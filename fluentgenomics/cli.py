"""
Command line entry point.

fluentgenomics fetch       download and cache the macrophage ATAC-seq dataset
fluentgenomics integrate   integrate DE genes with DA peaks
"""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .config import GenomeConfig, settings

logger = logging.getLogger(__name__)

DESCRIPTION = """
Integrate differential expression and differential accessibility results
by genomic overlap.
"""


def setup_logging(debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def fetch_register_subparser(subparser):
    parser = subparser.add_parser('fetch',
                                  formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                  help="Download and cache the macrophage ATAC-seq dataset")
    parser.add_argument(
        "--cache_dir",
        type=str,
        default=None,
        help="Cache root, defaults to FLUENTGENOMICS_CACHE_DIR or ~/.fluentgenomics/cache"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Report download progress"
    )


def integrate_register_subparser(subparser):
    parser = subparser.add_parser('integrate',
                                  formatter_class=argparse.ArgumentDefaultsHelpFormatter,
                                  help="Integrate DE genes with DA peaks")
    parser_req = parser.add_argument_group("Required inputs")
    parser_req.add_argument(
        "--genes",
        type=str,
        required=True,
        help="DE results table (CSV/TSV) with coordinates, gene id, log2FC and padj"
    )
    parser_req.add_argument(
        "--peaks",
        type=str,
        required=True,
        help="DA results table (CSV/TSV) with coordinates, peak id, log2FC and padj"
    )
    parser.add_argument(
        "--genome",
        type=str,
        default=settings.default_genome,
        choices=sorted(GenomeConfig.SUPPORTED_GENOMES),
        help="Genome build shared by both tables. GRCh38, GRCh37 and GRCm38 name "
             "chromosomes NCBI-style (1, X); hg38, hg19 and mm10 use UCSC names (chr1, chrX)"
    )
    parser.add_argument(
        "--seqlevels_style",
        type=str,
        default=None,
        choices=["UCSC", "NCBI"],
        help="Chromosome naming style of both tables, defaults to the style of --genome"
    )
    parser.add_argument(
        "--output_dir",
        type=str,
        default=str(settings.results_dir),
    )
    parser.add_argument(
        "--window_size",
        type=int,
        default=settings.tss_window_size,
        help="Bases on each side of the TSS"
    )
    parser.add_argument(
        "--n_resamples",
        type=int,
        default=settings.n_resamples,
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.rng_seed,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=DESCRIPTION,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--debug", action="store_true", default=settings.debug,
                        help="Log at DEBUG level, defaults to FLUENTGENOMICS_DEBUG")
    subparsers = parser.add_subparsers(
        title="functions",
        dest="command",
        metavar=""
    )
    fetch_register_subparser(subparsers)
    integrate_register_subparser(subparsers)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(debug=args.debug)

    if args.command == 'fetch':
        from .core.cache import fetch_or_build_dataset
        path = fetch_or_build_dataset(verbose=args.verbose, cache_dir=args.cache_dir)
        print(path)
    elif args.command == 'integrate':
        from .core.integration import DEDAIntegration, IntegrationConfig
        from .core.exceptions import ValidationError
        from .core.loaders import load_da_results, load_de_results

        style = args.seqlevels_style
        if style is None:
            try:
                style = settings.get_seqlevels_style(args.genome)
            except ValueError as e:
                parser.error(str(e))
        try:
            genes = load_de_results(args.genes, args.genome, style)
            peaks = load_da_results(args.peaks, args.genome, style)
        except ValidationError as e:
            parser.error(str(e))
        config = IntegrationConfig(
            window_size=args.window_size,
            n_resamples=args.n_resamples,
            rng_seed=args.seed,
            output_dir=args.output_dir,
        )
        results = DEDAIntegration().run(genes, peaks, config)
        for name, path in results.output_files.items():
            print(f"{name}\t{path}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
