#!/usr/bin/env python3

"""
Command-line interface for the annotation collection loader.

Loads every collection file in a directory (README first) and writes the
resulting entities as JSON Lines.
"""

import argparse
import sys
import os
import logging
from pathlib import Path

from annotation_loader.core.config import load_config
from annotation_loader.core.exceptions import LoaderError


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Load a datastore annotation collection into a feature graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load a collection directory
  annotation-loader --collection-dir G19833.gnm2.ann1.PB8d --output-dir results

  # Load selected files in the given order
  annotation-loader --files README.G19833.gnm2.ann1.PB8d.yml phavu.G19833.gnm2.ann1.PB8d.gene_models_main.gff3.gz ... --output-dir results
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        '--collection-dir',
        help='Collection directory containing README, GFF3, FASTA and TSV files'
    )
    source.add_argument(
        '--files',
        nargs='+',
        help='Collection files, processed in the order given (README first)'
    )
    parser.add_argument(
        '--output-dir',
        required=True,
        help='Output directory for entities.jsonl and the load log'
    )

    parser.add_argument(
        '--config',
        help='Configuration file (JSON or YAML)'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--memory-limit',
        type=int,
        help='Memory limit in MB (default: 4096)'
    )
    parser.add_argument(
        '--no-gene-families',
        action='store_true',
        help='Do not require a gene family assignment file'
    )

    return parser


def validate_inputs(args) -> None:
    """Validate that the input directory or files exist."""
    if args.collection_dir and not os.path.isdir(args.collection_dir):
        raise FileNotFoundError(f"Collection directory not found: {args.collection_dir}")
    for file_path in args.files or []:
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Collection file not found: {file_path}")


def main():
    """Main CLI entry point."""
    parser = create_argument_parser()
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        validate_inputs(args)

        config = load_config(config_path=args.config, use_env=True)
        if args.memory_limit is not None:
            config.memory_limit_mb = args.memory_limit
        if args.no_gene_families:
            config.require_gene_families = False
        config.validate()

        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        from annotation_loader import AnnotationCollectionLoader, JsonLinesSink

        sink = None
        if config.output_format == 'jsonl':
            sink = JsonLinesSink(output_dir / 'entities.jsonl')

        loader = AnnotationCollectionLoader(config, sink=sink, output_dir=str(output_dir))
        if args.collection_dir:
            logger.info(f"Loading collection directory {args.collection_dir}")
            batch = loader.load_directory(args.collection_dir)
        else:
            for file_path in args.files:
                loader.process(file_path)
            batch = loader.close()

        logger.info(f"Loaded {len(batch):,} entities")
        return 0

    except FileNotFoundError as e:
        logger.error(f"File error: {e}")
        return 1
    except LoaderError as e:
        logger.error(f"Loader error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
