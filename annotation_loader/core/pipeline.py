#!/usr/bin/env python3

"""
Collection loader: drives one annotation collection from README to sink.

Files are handed to `process` one at a time, README first; `close` checks
that the required files were seen, finalizes the feature graph and hands
the batch to the persistence sink.
"""

import os
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional

from .config import LoaderConfig
from .context import CollectionContext
from .exceptions import IncompleteCollectionError, LoaderError
from .linker import CrossFileLinker
from .parsers import GFF3Parser
from .processors import GFF3StreamProcessor
from .readme import load_readme
from .registry import FeatureRegistry
from .sinks import EntityBatch, PersistenceSink
from ..utils.performance_monitor import PerformanceMonitor

# (file type, name suffixes after any .gz is stripped); first match wins
FILE_TYPES = [
    ('iprscan', ('.iprscan.gff3',)),
    ('gene_models', ('.gene_models_main.gff3',)),
    ('protein', ('.protein.faa', '.protein_primary.faa')),
    ('cds', ('.cds.fna', '.cds_primary.fna')),
    ('mrna', ('.mrna.fna', '.mrna_primary.fna')),
    ('gfa', ('.gfa.tsv',)),
    ('pathway', ('.pathway.tsv',)),
    ('info_annot', ('.info_annot.txt', '.info_annot.tsv')),
]

# README, then GFF3, then FASTA, then TSV
LOAD_ORDER = ['readme', 'gene_models', 'protein', 'cds', 'mrna',
              'gfa', 'pathway', 'info_annot', 'iprscan']


def classify_file(file_path: str) -> Optional[str]:
    """Return the collection file type for a path, or None if it is not loaded."""
    name = os.path.basename(str(file_path))
    if name.startswith('README') and name.endswith(('.yml', '.yaml')):
        return 'readme'
    if name.endswith('.gz'):
        name = name[:-3]
    for file_type, suffixes in FILE_TYPES:
        if name.endswith(suffixes):
            return file_type
    return None


class AnnotationCollectionLoader:
    """Loads the files of one annotation collection into a feature graph."""

    def __init__(self, config: Optional[LoaderConfig] = None,
                 sink: Optional[PersistenceSink] = None,
                 output_dir: Optional[str] = None):
        self.config = config or LoaderConfig()
        self.sink = sink
        self.monitor = PerformanceMonitor(
            memory_limit_mb=self.config.memory_limit_mb,
            enabled=self.config.enable_memory_monitoring,
        )
        self.registry = FeatureRegistry()
        self.context: Optional[CollectionContext] = None
        self.processor: Optional[GFF3StreamProcessor] = None
        self.linker: Optional[CrossFileLinker] = None
        self.processed: Dict[str, List[str]] = defaultdict(list)
        self.skipped: List[str] = []
        self.closed = False
        self._log_handler: Optional[logging.Handler] = None
        self._previous_log_level: Optional[int] = None

        if output_dir and self.config.write_log_file:
            self._setup_loader_logging(output_dir)

    def _setup_loader_logging(self, output_dir: str) -> None:
        """Add a file handler for this load to the root logger."""
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        log_file = Path(output_dir) / 'annotation_loader.log'

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        if self.config.debug_mode:
            self._previous_log_level = root_logger.level
            root_logger.setLevel(logging.DEBUG)
        self._log_handler = file_handler

    def process(self, file_path: str) -> Optional[str]:
        """
        Process one collection file.

        Args:
            file_path: path to a README, GFF3, FASTA or TSV file (optionally gzipped)

        Returns:
            The file type processed, or None if the file was skipped

        Raises:
            IncompleteCollectionError: a data file arrives before the README
            LoaderError: any parse or collection error; the load must be abandoned
        """
        if self.closed:
            raise LoaderError("Collection already closed")

        file_type = classify_file(file_path)
        name = os.path.basename(str(file_path))
        if file_type is None:
            logging.info(f"Skipping {name}")
            self.skipped.append(str(file_path))
            return None

        if file_type != 'readme' and self.context is None:
            raise IncompleteCollectionError(f"README not read before {name}", missing=['README'])

        logging.info(f"Processing {name}")
        with self.monitor.phase(f"{file_type}:{name}") as metrics:
            metrics.records = self._dispatch(file_type, str(file_path), name)

        self.processed[file_type].append(str(file_path))
        return file_type

    def _dispatch(self, file_type: str, file_path: str, name: str) -> int:
        if file_type == 'readme':
            self._read_readme(file_path)
            return 1
        if file_type == 'gene_models':
            return self.processor.process(GFF3Parser(file_path).records(), filename=name)
        if file_type in ('protein', 'cds', 'mrna'):
            return self.linker.load_fasta(file_path, file_type)
        if file_type == 'gfa':
            return self.linker.load_gene_families(file_path)
        if file_type == 'pathway':
            return self.linker.load_pathways(file_path)
        if file_type == 'info_annot':
            return self.linker.load_info_annot(file_path)
        if file_type == 'iprscan':
            return self.linker.load_protein_matches(file_path)
        raise LoaderError(f"No handler for file type {file_type}")

    def _read_readme(self, file_path: str) -> None:
        if self.context is not None:
            raise LoaderError(f"A README was already read for collection {self.context.collection_identifier}")
        self.context = load_readme(
            file_path,
            chromosome_prefixes=self.config.chromosome_prefixes,
            supercontig_prefixes=self.config.supercontig_prefixes,
        )
        self.processor = GFF3StreamProcessor(
            self.registry, self.context,
            protein_domain_tag=self.config.protein_domain_tag,
            go_prefix=self.config.go_prefix,
        )
        self.linker = CrossFileLinker(self.registry, self.context, go_prefix=self.config.go_prefix)

    def missing_files(self) -> List[str]:
        """Required file types not processed so far."""
        missing = []
        if not self.processed['readme']:
            missing.append('README')
        if self.config.require_gene_models and not self.processed['gene_models']:
            missing.append('gene models GFF3')
        if self.config.require_protein_fasta and not self.processed['protein']:
            missing.append('protein FASTA')
        if (self.config.require_transcript_fasta
                and not self.processed['cds'] and not self.processed['mrna']):
            missing.append('CDS or mRNA FASTA')
        if self.config.require_gene_families and not self.processed['gfa']:
            missing.append('gene family assignment TSV')
        return missing

    def close(self) -> EntityBatch:
        """
        Finalize the collection and hand it to the sink.

        Returns:
            The stored EntityBatch

        Raises:
            IncompleteCollectionError: README or a required file was not processed
        """
        if self.closed:
            raise LoaderError("Collection already closed")

        try:
            missing = self.missing_files()
            if missing:
                for item in missing:
                    logging.error(f"Required file missing: {item}")
                raise IncompleteCollectionError("Missing required annotation file(s)", missing=missing)

            with self.monitor.phase("close") as metrics:
                stats = self.linker.finalize(self.context.publication)
                batch = EntityBatch.from_registry(self.registry)
                metrics.records = len(batch)
                if self.sink is not None:
                    self.sink.store(batch)

            self.closed = True
            logging.info(f"Finalized collection {self.context.collection_identifier}: {stats}")
            for kind, count in batch.counts().items():
                if count:
                    logging.info(f"  {kind}: {count:,}")
            self.monitor.log_report()
            return batch
        finally:
            self._remove_log_handler()

    def _remove_log_handler(self) -> None:
        root_logger = logging.getLogger()
        if self._log_handler is not None:
            root_logger.removeHandler(self._log_handler)
            self._log_handler.close()
            self._log_handler = None
        if self._previous_log_level is not None:
            root_logger.setLevel(self._previous_log_level)
            self._previous_log_level = None

    def load_directory(self, directory: str) -> EntityBatch:
        """Process every collection file in a directory in load order, then close."""
        paths = sorted(Path(directory).iterdir())
        ordered = sorted(
            (p for p in paths if p.is_file()),
            key=lambda p: self._load_rank(classify_file(p)),
        )
        for path in ordered:
            self.process(str(path))
        return self.close()

    @staticmethod
    def _load_rank(file_type: Optional[str]) -> int:
        if file_type is None:
            return len(LOAD_ORDER)
        return LOAD_ORDER.index(file_type)
