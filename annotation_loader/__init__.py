#!/usr/bin/env python3

"""
Annotation Collection Loader

Loads one annotation collection of a genomic datastore (README metadata,
gene models GFF3, protein/CDS/mRNA FASTA, gene family, pathway and
functional annotation TSV files) into a cross-referenced graph of genes,
transcripts, coding regions, proteins and their annotations.

Modules:
- core: identifiers, registry, GFF3 processing, cross-file linking, sinks
- utils: performance monitoring
- tests: unit test suite
"""

__version__ = "1.0.0"

from .core.data_structures import (
    CodingRegion, Feature, FeatureKind, Gene, Location, Protein,
    SequenceRegion, Transcript
)
from .core.exceptions import (
    LoaderError, ParseError, CollectionError, MalformedIdentifier,
    MissingIdentifier, UnknownFeatureType, UnresolvedParent,
    UnrecognizedSequenceRegion, ConflictingLocation,
    IncompleteCollectionError, ConfigurationError, ResourceLimitError
)
from .core.config import LoaderConfig, load_config
from .core.context import CollectionContext, SequenceRegionClassifier
from .core.registry import FeatureRegistry, RegistryKind
from .core.processors import GFF3StreamProcessor, CoordinateAggregator
from .core.linker import CrossFileLinker
from .core.sinks import EntityBatch, PersistenceSink, MemorySink, JsonLinesSink
from .core.pipeline import AnnotationCollectionLoader

__all__ = [
    # Loader
    'AnnotationCollectionLoader',
    # Core components
    'FeatureRegistry', 'RegistryKind', 'GFF3StreamProcessor', 'CoordinateAggregator',
    'CrossFileLinker', 'CollectionContext', 'SequenceRegionClassifier',
    # Data structures
    'Feature', 'FeatureKind', 'Gene', 'Transcript', 'CodingRegion', 'Protein',
    'Location', 'SequenceRegion',
    # Sinks
    'EntityBatch', 'PersistenceSink', 'MemorySink', 'JsonLinesSink',
    # Exceptions
    'LoaderError', 'ParseError', 'CollectionError', 'MalformedIdentifier',
    'MissingIdentifier', 'UnknownFeatureType', 'UnresolvedParent',
    'UnrecognizedSequenceRegion', 'ConflictingLocation',
    'IncompleteCollectionError', 'ConfigurationError', 'ResourceLimitError',
    # Configuration
    'LoaderConfig', 'load_config'
]
