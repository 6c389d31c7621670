#!/usr/bin/env python3

"""
Core data structures for the annotation collection loader.

Defines the entity classes of the feature graph: sequence regions, locations,
genes, transcripts, coding regions and other features, proteins and the
functional annotations that hang off them. Entities compare by identity so
that the graph may contain back references.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class FeatureKind(Enum):
    """Closed set of feature kinds the GFF3 processor dispatches on."""
    GENE = "gene"
    TRANSCRIPT = "transcript"
    CODING_REGION = "coding_region"
    EXON = "exon"
    UTR = "utr"
    GENERIC = "generic"


@dataclass(eq=False)
class Publication:
    """A publication referenced from the collection README."""
    doi: str
    title: Optional[str] = None


@dataclass(eq=False)
class OntologyTerm:
    """An ontology term, shared by every annotation that references it."""
    identifier: str
    class_name: str = "OntologyTerm"
    ontology: Optional[str] = None

    @property
    def is_go_term(self) -> bool:
        return self.class_name == "GOTerm"


@dataclass(eq=False)
class OntologyAnnotation:
    """Pairs an annotated subject with an ontology term."""
    subject: Any = field(repr=False)
    term: OntologyTerm


@dataclass
class Annotatable:
    """Publications and ontology annotations carried by an entity."""
    publications: List[Publication] = field(default_factory=list)
    ontology_annotations: List[OntologyAnnotation] = field(default_factory=list)

    def add_publication(self, publication: Publication) -> None:
        if publication not in self.publications:
            self.publications.append(publication)


@dataclass(eq=False)
class Sequence:
    """Residues read from a FASTA file."""
    residues: str
    length: int = 0
    md5checksum: str = ""

    def __post_init__(self):
        self.length = len(self.residues)
        self.md5checksum = hashlib.md5(self.residues.encode()).hexdigest()


@dataclass(eq=False)
class SequenceRegion:
    """A chromosome or supercontig that features are located on."""
    primary_identifier: str
    region_type: str
    assembly_version: Optional[str] = None
    annotatable: Annotatable = field(default_factory=Annotatable, repr=False)

    def __post_init__(self):
        if self.region_type not in ('Chromosome', 'Supercontig'):
            raise ValueError(f"Invalid sequence region type: {self.region_type}")

    @property
    def class_name(self) -> str:
        return self.region_type


@dataclass(eq=False)
class Location:
    """An interval on a sequence region, stored with start <= end."""
    start: int
    end: int
    strand: int
    located_on: Any = field(default=None, repr=False)

    def __post_init__(self):
        """Normalize coordinates and validate strand."""
        if self.start > self.end:
            self.start, self.end = self.end, self.start
        if self.strand not in (1, -1):
            raise ValueError(f"Invalid strand: {self.strand}")

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def region_id(self) -> Optional[str]:
        if self.located_on is None:
            return None
        return self.located_on.primary_identifier


@dataclass(eq=False)
class ProteinDomain:
    """A protein domain, e.g. an InterPro entry."""
    primary_identifier: str
    annotatable: Annotatable = field(default_factory=Annotatable, repr=False)


@dataclass(eq=False)
class Pathway:
    """A pathway that genes participate in."""
    primary_identifier: str
    name: Optional[str] = None
    genes: List[Any] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class GeneFamily:
    """A gene family with its member genes and proteins."""
    primary_identifier: str
    genes: List[Any] = field(default_factory=list, repr=False)
    proteins: List[Any] = field(default_factory=list, repr=False)


@dataclass(eq=False)
class GeneFamilyAssignment:
    """Assignment of a gene (and its protein) to a gene family, with scores."""
    gene_family: GeneFamily
    evalue: Optional[float] = None
    score: Optional[float] = None
    best_domain_score: Optional[float] = None


@dataclass(eq=False)
class Feature:
    """Any annotated interval on a sequence region."""
    primary_identifier: str
    secondary_identifier: Optional[str] = None
    class_name: str = "SequenceFeature"
    kind: FeatureKind = FeatureKind.GENERIC
    assembly_version: Optional[str] = None
    annotation_version: Optional[str] = None
    length: Optional[int] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    description: Optional[str] = None
    is_circular: Optional[bool] = None
    location: Optional[Location] = field(default=None, repr=False)
    parents: List['Feature'] = field(default_factory=list, repr=False)
    children: List['Feature'] = field(default_factory=list, repr=False)
    transcripts: List[Any] = field(default_factory=list, repr=False)
    annotatable: Annotatable = field(default_factory=Annotatable, repr=False)

    @property
    def region(self) -> Optional[SequenceRegion]:
        """Sequence region this feature is located on."""
        if self.location is None:
            return None
        return self.location.located_on

    def add_child(self, child: 'Feature') -> None:
        """Add a child feature, keeping the inverse parent list in step."""
        if child not in self.children:
            self.children.append(child)
        if self not in child.parents:
            child.parents.append(self)


@dataclass(eq=False)
class Gene(Feature):
    """Represents a gene with its transcripts."""
    class_name: str = "Gene"
    kind: FeatureKind = FeatureKind.GENE
    protein_domains: List[ProteinDomain] = field(default_factory=list, repr=False)
    gene_family_assignments: List[GeneFamilyAssignment] = field(default_factory=list, repr=False)
    pathways: List[Pathway] = field(default_factory=list, repr=False)

    def add_protein_domain(self, protein_domain: ProteinDomain) -> None:
        if protein_domain not in self.protein_domains:
            self.protein_domains.append(protein_domain)

    def add_pathway(self, pathway: Pathway) -> None:
        if pathway not in self.pathways:
            self.pathways.append(pathway)


@dataclass(eq=False)
class Transcript(Feature):
    """Represents an mRNA with its exons, UTRs and coding regions."""
    class_name: str = "MRNA"
    kind: FeatureKind = FeatureKind.TRANSCRIPT
    gene: Optional[Gene] = field(default=None, repr=False)
    exons: List[Feature] = field(default_factory=list, repr=False)
    utrs: List[Feature] = field(default_factory=list, repr=False)
    coding_regions: List['CodingRegion'] = field(default_factory=list, repr=False)
    protein: Optional['Protein'] = field(default=None, repr=False)
    sequence: Optional[Sequence] = field(default=None, repr=False)
    is_primary: bool = False

    def set_gene(self, gene: Gene) -> None:
        """Set the gene reference (first gene wins) and the gene's inverse collections."""
        if self.gene is None:
            self.gene = gene
        if self not in gene.transcripts:
            gene.transcripts.append(self)
        gene.add_child(self)

    def add_coding_region(self, coding_region: 'CodingRegion') -> None:
        if coding_region not in self.coding_regions:
            self.coding_regions.append(coding_region)


@dataclass(eq=False)
class CodingRegion(Feature):
    """
    A CDS assembled from fragments, keyed by its parent transcript.

    `segments` holds every fragment location as read; `location` is the
    envelope covering all of them. Length comes from FASTA only.
    """
    class_name: str = "CDS"
    kind: FeatureKind = FeatureKind.CODING_REGION
    transcript: Optional[Transcript] = field(default=None, repr=False)
    gene: Optional[Gene] = field(default=None, repr=False)
    protein: Optional['Protein'] = field(default=None, repr=False)
    segments: List[Location] = field(default_factory=list, repr=False)
    sequence: Optional[Sequence] = field(default=None, repr=False)
    is_primary: bool = False

    @property
    def segment_count(self) -> int:
        return len(self.segments)

    def set_transcript(self, transcript: Transcript) -> None:
        """Link to the transcript once; later calls are no-ops."""
        if self.transcript is not None:
            return
        self.transcript = transcript
        transcript.add_coding_region(self)
        if transcript.gene is not None and self.gene is None:
            self.gene = transcript.gene


@dataclass(eq=False)
class Protein:
    """A protein, sourced from FASTA and gene family files."""
    primary_identifier: str
    secondary_identifier: Optional[str] = None
    assembly_version: Optional[str] = None
    annotation_version: Optional[str] = None
    length: Optional[int] = None
    md5checksum: Optional[str] = None
    symbol: Optional[str] = None
    is_primary: bool = False
    sequence: Optional[Sequence] = field(default=None, repr=False)
    transcript: Optional[Transcript] = field(default=None, repr=False)
    coding_region: Optional[CodingRegion] = field(default=None, repr=False)
    genes: List[Gene] = field(default_factory=list, repr=False)
    gene_family_assignments: List[GeneFamilyAssignment] = field(default_factory=list, repr=False)
    protein_matches: List['ProteinMatch'] = field(default_factory=list, repr=False)
    annotatable: Annotatable = field(default_factory=Annotatable, repr=False)

    @property
    def class_name(self) -> str:
        return "Protein"

    def add_gene(self, gene: Gene) -> None:
        if gene not in self.genes:
            self.genes.append(gene)


@dataclass(eq=False)
class ProteinMatch:
    """An InterProScan match located on a protein."""
    primary_identifier: str
    class_name: str = "ProteinMatch"
    name: Optional[str] = None
    accession: Optional[str] = None
    status: Optional[str] = None
    date: Optional[str] = None
    target: Optional[str] = None
    signature_desc: Optional[str] = None
    protein: Optional[Protein] = field(default=None, repr=False)
    location: Optional[Location] = field(default=None, repr=False)
