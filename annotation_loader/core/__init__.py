#!/usr/bin/env python3

"""
Core module for the annotation collection loader.

Contains the entity model, identifier codec, feature registry, GFF3 stream
processing, cross-file linking, persistence sinks and configuration.
"""

from .data_structures import Feature, FeatureKind, Gene, Transcript, CodingRegion, Protein
from .exceptions import (
    LoaderError, ParseError, CollectionError, MalformedIdentifier,
    MissingIdentifier, UnknownFeatureType, UnresolvedParent,
    UnrecognizedSequenceRegion, ConflictingLocation,
    IncompleteCollectionError, ConfigurationError, ResourceLimitError
)
from .config import LoaderConfig, load_config

__all__ = [
    'Feature', 'FeatureKind', 'Gene', 'Transcript', 'CodingRegion', 'Protein',
    'LoaderError', 'ParseError', 'CollectionError', 'MalformedIdentifier',
    'MissingIdentifier', 'UnknownFeatureType', 'UnresolvedParent',
    'UnrecognizedSequenceRegion', 'ConflictingLocation',
    'IncompleteCollectionError', 'ConfigurationError', 'ResourceLimitError',
    'LoaderConfig', 'load_config'
]
