#!/usr/bin/env python3

"""
GFF3 stream processing and coding region coordinate aggregation.

The processor turns a sorted GFF3 stream into registry entities. Parents must
appear before their children; any structural problem aborts the load.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .context import CollectionContext, SequenceRegionClassifier
from .data_structures import (
    CodingRegion, Feature, FeatureKind, Gene, Location, ProteinDomain,
    SequenceRegion, Transcript
)
from .exceptions import (
    CollectionError, ConflictingLocation, LoaderError, MalformedIdentifier,
    MissingIdentifier, UnknownFeatureType, UnresolvedParent,
    UnrecognizedSequenceRegion
)
from .identifiers import secondary_identifier
from .parsers import GFF3Record
from .registry import FeatureRegistry, RegistryKind


# GFF3 type -> (kind, downstream class name). Types not listed here are rejected.
FEATURE_TYPES: Dict[str, Tuple[FeatureKind, str]] = {
    'gene': (FeatureKind.GENE, 'Gene'),
    'transposable_element_gene': (FeatureKind.GENE, 'Gene'),
    'mRNA': (FeatureKind.TRANSCRIPT, 'MRNA'),
    'CDS': (FeatureKind.CODING_REGION, 'CDS'),
    'exon': (FeatureKind.EXON, 'Exon'),
    'five_prime_UTR': (FeatureKind.UTR, 'FivePrimeUTR'),
    'three_prime_UTR': (FeatureKind.UTR, 'ThreePrimeUTR'),
    'intron': (FeatureKind.GENERIC, 'Intron'),
    'lnc_RNA': (FeatureKind.GENERIC, 'LncRNA'),
    'transcript': (FeatureKind.GENERIC, 'Transcript'),
    'primary_transcript': (FeatureKind.GENERIC, 'Transcript'),
    'pseudogene': (FeatureKind.GENERIC, 'Pseudogene'),
    'miRNA': (FeatureKind.GENERIC, 'MiRNA'),
    'miRNA_primary_transcript': (FeatureKind.GENERIC, 'MiRNA'),
    'pre_miRNA': (FeatureKind.GENERIC, 'PreMiRNA'),
    'ncRNA': (FeatureKind.GENERIC, 'NcRNA'),
    'tRNA': (FeatureKind.GENERIC, 'TRNA'),
    'tRNA_primary_transcript': (FeatureKind.GENERIC, 'TRNA'),
    'pseudogenic_tRNA': (FeatureKind.GENERIC, 'TRNA'),
    'snoRNA': (FeatureKind.GENERIC, 'SnoRNA'),
    'snRNA': (FeatureKind.GENERIC, 'SnRNA'),
    'rRNA': (FeatureKind.GENERIC, 'RRNA'),
    'rRNA_primary_transcript': (FeatureKind.GENERIC, 'RRNA'),
    'inverted_repeat': (FeatureKind.GENERIC, 'InvertedRepeat'),
    'region': (FeatureKind.GENERIC, 'Region'),
    'repeat_region': (FeatureKind.GENERIC, 'RepeatRegion'),
}


class CoordinateAggregator:
    """Merge coding region fragments into one envelope location."""

    def __init__(self, registry: FeatureRegistry):
        self.registry = registry

    def extend(self, entity_key: str, segment: Tuple[int, int],
               region: SequenceRegion, strand: int) -> CodingRegion:
        """
        Add one fragment to a registered coding region.

        The first fragment fixes region and strand; later fragments only
        widen the envelope. Every fragment is kept in `segments` as read.
        """
        coding_region = self.registry.get(RegistryKind.CODING_REGION, entity_key)
        if coding_region is None:
            raise LoaderError(f"Coding region {entity_key} is not registered")

        start, end = segment
        fragment = Location(start, end, strand, region)
        coding_region.segments.append(fragment)

        envelope = coding_region.location
        if envelope is None:
            coding_region.location = Location(fragment.start, fragment.end, strand, region)
        else:
            if fragment.start < envelope.start:
                envelope.start = fragment.start
            if fragment.end > envelope.end:
                envelope.end = fragment.end
        return coding_region


class GFF3StreamProcessor:
    """Classify GFF3 records into genes, transcripts, coding regions and other features."""

    def __init__(self, registry: FeatureRegistry, context: CollectionContext,
                 classifier: Optional[SequenceRegionClassifier] = None,
                 protein_domain_tag: str = "InterPro", go_prefix: str = "GO:",
                 feature_types: Optional[Dict[str, Tuple[FeatureKind, str]]] = None):
        self.registry = registry
        self.context = context
        self.classifier = classifier or context.classifier()
        self.protein_domain_tag = protein_domain_tag
        self.go_prefix = go_prefix
        self.feature_types = dict(FEATURE_TYPES)
        if feature_types:
            self.feature_types.update(feature_types)
        self.aggregator = CoordinateAggregator(registry)
        self.records_processed = 0

    def process(self, records: Iterable[GFF3Record], filename: str = "") -> int:
        """
        Process records in stream order.

        Returns:
            Number of records processed

        Raises:
            CollectionError: annotated with filename and line number
        """
        count = 0
        for record in records:
            try:
                self.process_record(record)
            except CollectionError as e:
                raise e.locate(filename, record.line_number)
            count += 1
        self.records_processed += count
        logging.info(f"Processed {count} GFF3 records from {filename or 'stream'}")
        return count

    def process_record(self, record: GFF3Record) -> List[Feature]:
        """Process one record; returns the entities it created or updated."""
        feature_id = record.get_attribute('ID')
        if feature_id is None:
            raise MissingIdentifier(
                f"GFF3 {record.type} record on {record.seqid} has no ID attribute"
            )

        if record.type not in self.feature_types:
            raise UnknownFeatureType(record.type)
        kind, class_name = self.feature_types[record.type]
        parent_ids = [p.strip() for p in record.get_values('Parent') if p.strip()]

        if kind is FeatureKind.CODING_REGION:
            features = self._process_coding_region(record, feature_id, parent_ids)
        elif kind is FeatureKind.TRANSCRIPT:
            features = [self._process_transcript(record, feature_id, parent_ids, class_name)]
        elif kind is FeatureKind.GENE:
            features = [self._process_gene(record, feature_id, parent_ids, class_name)]
        else:
            features = [self._process_feature(record, feature_id, parent_ids, kind, class_name)]

        for feature in features:
            self._apply_attributes(feature, record)
        return features

    def _process_gene(self, record: GFF3Record, feature_id: str,
                      parent_ids: List[str], class_name: str) -> Gene:
        self._check_collection(feature_id)
        parents = self._resolve_parents(parent_ids, feature_id)
        gene = self.registry.get_or_create(
            RegistryKind.GENE, feature_id, self._builder(Gene, class_name)
        )
        self._place(gene, record)
        gene.length = gene.location.length
        for parent in parents:
            parent.add_child(gene)
        return gene

    def _process_transcript(self, record: GFF3Record, feature_id: str,
                            parent_ids: List[str], class_name: str) -> Transcript:
        self._check_collection(feature_id)
        if not parent_ids:
            raise UnresolvedParent(None, feature_id)
        genes = []
        for parent_id in parent_ids:
            gene = self.registry.get(RegistryKind.GENE, parent_id)
            if gene is None:
                raise UnresolvedParent(parent_id, feature_id)
            genes.append(gene)

        transcript = self.registry.get_or_create(
            RegistryKind.TRANSCRIPT, feature_id, self._builder(Transcript, class_name)
        )
        self._place(transcript, record)
        for gene in genes:
            transcript.set_gene(gene)
        return transcript

    def _process_coding_region(self, record: GFF3Record, feature_id: str,
                               parent_ids: List[str]) -> List[CodingRegion]:
        # the fragment's own ID is never stored; each parent transcript keys one coding region
        if not parent_ids:
            raise UnresolvedParent(None, feature_id)
        transcripts = []
        for parent_id in parent_ids:
            transcript = self.registry.get(RegistryKind.TRANSCRIPT, parent_id)
            if transcript is None:
                raise UnresolvedParent(parent_id, feature_id)
            transcripts.append(transcript)

        region = self._region_for(record)
        coding_regions = []
        for transcript in transcripts:
            key = transcript.primary_identifier
            self._check_collection(key)
            self.registry.get_or_create(
                RegistryKind.CODING_REGION, key, self._builder(CodingRegion, 'CDS')
            )
            coding_region = self.aggregator.extend(
                key, (record.start, record.end), region, record.strand_sign
            )
            coding_region.set_transcript(transcript)
            coding_regions.append(coding_region)
        return coding_regions

    def _process_feature(self, record: GFF3Record, feature_id: str, parent_ids: List[str],
                         kind: FeatureKind, class_name: str) -> Feature:
        self._check_collection(feature_id)
        parents = self._resolve_parents(parent_ids, feature_id)
        feature = self.registry.get_or_create(
            RegistryKind.FEATURE, feature_id,
            lambda i: Feature(kind=kind, **self._common_fields(i, class_name))
        )
        self._place(feature, record)
        feature.length = feature.location.length

        for parent in parents:
            parent.add_child(feature)
            if isinstance(parent, Transcript):
                if kind is FeatureKind.EXON and feature not in parent.exons:
                    parent.exons.append(feature)
                elif kind is FeatureKind.UTR and feature not in parent.utrs:
                    parent.utrs.append(feature)
                if kind in (FeatureKind.EXON, FeatureKind.UTR) and parent not in feature.transcripts:
                    feature.transcripts.append(parent)

        if record.type == 'region':
            circular = record.get_attribute('Is_circular')
            if circular is not None:
                feature.is_circular = circular.lower() == 'true'
        return feature

    def _resolve_parents(self, parent_ids: List[str], child_id: str) -> List[Feature]:
        """Look each parent up among features, genes and transcripts."""
        parents = []
        for parent_id in parent_ids:
            parent = (self.registry.get(RegistryKind.FEATURE, parent_id)
                      or self.registry.get(RegistryKind.GENE, parent_id)
                      or self.registry.get(RegistryKind.TRANSCRIPT, parent_id))
            if parent is None:
                raise UnresolvedParent(parent_id, child_id)
            parents.append(parent)
        return parents

    def _check_collection(self, identifier: str) -> None:
        if not self.context.matches_collection(identifier):
            raise MalformedIdentifier(
                f"Identifier {identifier} does not start with collection prefix {self.context.prefix}",
                identifier=identifier
            )

    def _common_fields(self, identifier: str, class_name: str) -> dict:
        return dict(
            primary_identifier=identifier,
            secondary_identifier=secondary_identifier(
                identifier, has_annotation_version=bool(self.context.annotation_version)
            ),
            class_name=class_name,
            assembly_version=self.context.assembly_version,
            annotation_version=self.context.annotation_version,
        )

    def _builder(self, cls, class_name: str) -> Callable[[str], Feature]:
        return lambda identifier: cls(**self._common_fields(identifier, class_name))

    def _region_for(self, record: GFF3Record) -> SequenceRegion:
        seqid = record.seqid
        if self.classifier.is_chromosome(seqid):
            region_type = 'Chromosome'
        elif self.classifier.is_supercontig(seqid):
            region_type = 'Supercontig'
        else:
            raise UnrecognizedSequenceRegion(seqid)
        return self.registry.get_or_create(
            RegistryKind.SEQUENCE_REGION, seqid,
            lambda i: SequenceRegion(i, region_type, assembly_version=self.context.assembly_version)
        )

    def _place(self, feature: Feature, record: GFF3Record) -> None:
        """Locate a feature on its sequence region; the first placement wins."""
        region = self._region_for(record)
        if feature.location is not None:
            if feature.location.located_on is not region:
                raise ConflictingLocation(feature.primary_identifier,
                                          feature.location.region_id, region.primary_identifier)
            return
        feature.location = Location(record.start, record.end, record.strand_sign, region)

    def _apply_attributes(self, feature: Feature, record: GFF3Record) -> None:
        name = record.get_attribute('Name')
        if name and feature.kind is not FeatureKind.CODING_REGION:
            feature.name = name
        elif feature.name is None:
            feature.name = feature.secondary_identifier

        note = record.get_joined('Note')
        if note:
            feature.description = note

        symbol = record.get_attribute('symbol')
        if symbol:
            feature.symbol = symbol

        for dbxref in record.get_values('Dbxref'):
            dbxref = dbxref.strip()
            if dbxref.startswith(self.protein_domain_tag + ':'):
                # protein domains hang off genes only
                if isinstance(feature, Gene):
                    domain = self.registry.get_or_create(
                        RegistryKind.PROTEIN_DOMAIN, dbxref.split(':', 1)[1], ProteinDomain
                    )
                    feature.add_protein_domain(domain)
            elif ':' in dbxref:
                self.registry.annotate(feature, dbxref, self.go_prefix)
            elif dbxref:
                logging.debug(f"Ignoring Dbxref {dbxref} on {feature.primary_identifier}")

        for term in record.get_values('Ontology_term'):
            term = term.strip()
            if term:
                self.registry.annotate(feature, term, self.go_prefix)
