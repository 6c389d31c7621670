#!/usr/bin/env python3

"""
Per-collection metadata context and sequence region classification.

Both are resolved from the collection README before any GFF3 or FASTA file
is processed.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .data_structures import Publication
from .identifiers import matches_collection


@dataclass
class CollectionContext:
    """Organism, strain and version context of the collection being loaded."""
    gensp: str
    strain: str
    assembly_version: str
    annotation_version: Optional[str] = None
    taxon_id: Optional[str] = None
    collection_identifier: Optional[str] = None
    scientific_name: Optional[str] = None
    publication: Optional[Publication] = None
    chromosome_prefixes: List[str] = field(default_factory=list)
    supercontig_prefixes: List[str] = field(default_factory=list)

    @property
    def assembly_prefix(self) -> str:
        return f"{self.gensp}.{self.strain}.{self.assembly_version}"

    @property
    def prefix(self) -> str:
        """Prefix shared by every annotation feature identifier in the collection."""
        if self.annotation_version:
            return f"{self.assembly_prefix}.{self.annotation_version}"
        return self.assembly_prefix

    def matches_collection(self, identifier: str) -> bool:
        return matches_collection(identifier, self.prefix)

    def classifier(self) -> 'SequenceRegionClassifier':
        return SequenceRegionClassifier(
            self.chromosome_prefixes,
            self.supercontig_prefixes,
            assembly_prefix=self.assembly_prefix,
        )


class SequenceRegionClassifier:
    """
    Decide whether a seqid names a chromosome or a supercontig.

    A seqid such as phavu.G19833.gnm2.Chr01 is matched on its local name
    (Chr01) when it carries the assembly prefix; bare names are matched as is.
    Supercontig prefixes take precedence, so Chr0 can mark unplaced scaffolds
    while Chr marks chromosomes.
    """

    def __init__(self, chromosome_prefixes: List[str], supercontig_prefixes: List[str],
                 assembly_prefix: Optional[str] = None):
        self.chromosome_prefixes = [p for p in chromosome_prefixes if p]
        self.supercontig_prefixes = [p for p in supercontig_prefixes if p]
        self.assembly_prefix = assembly_prefix

    def _local_name(self, name: str) -> str:
        if self.assembly_prefix and name.startswith(self.assembly_prefix + "."):
            return name[len(self.assembly_prefix) + 1:]
        return name

    def is_supercontig(self, name: str) -> bool:
        local = self._local_name(name)
        return any(local.startswith(prefix) for prefix in self.supercontig_prefixes)

    def is_chromosome(self, name: str) -> bool:
        if self.is_supercontig(name):
            return False
        local = self._local_name(name)
        return any(local.startswith(prefix) for prefix in self.chromosome_prefixes)
