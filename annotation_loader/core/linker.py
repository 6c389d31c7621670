#!/usr/bin/env python3

"""
Cross-file linking of FASTA, TSV and InterProScan data onto the feature graph.

Every loader here joins by identifier: an entity already created by the GFF3
pass is updated in place, otherwise a stub is registered so that later files
converge on the same object. `finalize` does the last reference wiring.
"""

import logging
import os
from typing import Dict, Iterable, List, Optional

from .context import CollectionContext
from .data_structures import (
    CodingRegion, Gene, GeneFamily, GeneFamilyAssignment, Location, Pathway,
    Protein, ProteinMatch, Publication, Sequence, Transcript
)
from .exceptions import CollectionError, MissingIdentifier, ParseError, UnknownFeatureType
from .identifiers import secondary_identifier
from .parsers import FastaParser, FastaRecord, GFF3Parser, GFF3Record, TabularParser
from .registry import FeatureRegistry, RegistryKind


# mRNA FASTA files may carry non-coding RNAs; these are skipped by identifier
NON_MRNA_MARKERS = ('rRNA', 'tRNA', 'snRNA', 'snoRNA')

PROTEIN_MATCH_TYPES = {
    'protein_match': 'ProteinMatch',
    'protein_hmm_match': 'ProteinHmmMatch',
}

# info_annot columns after pacId, locus, transcript and peptide: (name, subject, ontology)
INFO_ANNOT_COLUMNS = [
    ('Pfam', 'protein', 'Pfam'),
    ('Panther', 'protein', 'PANTHER'),
    ('KOG', 'protein', 'KOG'),
    ('ec', 'protein', 'ENZYME'),
    ('KO', 'gene', 'KEGG Orthology'),
    ('GO', 'gene', 'GO'),
]


class CrossFileLinker:
    """Join sequence and functional annotation files onto registry entities."""

    def __init__(self, registry: FeatureRegistry, context: CollectionContext,
                 go_prefix: str = "GO:"):
        self.registry = registry
        self.context = context
        self.go_prefix = go_prefix
        self.finalized = False

    # FASTA

    def load_fasta(self, file_path: str, sequence_type: str) -> int:
        """
        Attach FASTA sequences to proteins, coding regions or transcripts.

        Args:
            file_path: FASTA file, possibly gzipped; `_primary` in the name marks primary isoforms
            sequence_type: 'protein', 'cds' or 'mrna'

        Returns:
            Number of sequences attached
        """
        loaders = {
            'protein': self._attach_protein,
            'cds': self._attach_coding_region,
            'mrna': self._attach_transcript,
        }
        if sequence_type not in loaders:
            raise ValueError(f"Unknown FASTA sequence type: {sequence_type}")
        attach = loaders[sequence_type]
        is_primary = '_primary' in os.path.basename(str(file_path))

        count = 0
        for record in FastaParser(file_path).records():
            if attach(record, is_primary):
                count += 1
        logging.info(f"Attached {count} {sequence_type} sequences from {os.path.basename(str(file_path))}")
        return count

    def _attach_protein(self, record: FastaRecord, is_primary: bool) -> bool:
        protein = self.protein(record.identifier)
        sequence = Sequence(record.residues)
        protein.sequence = sequence
        protein.length = sequence.length
        protein.md5checksum = sequence.md5checksum
        if record.symbol:
            protein.symbol = record.symbol
        if is_primary:
            protein.is_primary = True
        return True

    def _attach_coding_region(self, record: FastaRecord, is_primary: bool) -> bool:
        coding_region = self.registry.get_or_create(
            RegistryKind.CODING_REGION, record.identifier,
            lambda i: CodingRegion(**self._stub_fields(i))
        )
        coding_region.sequence = Sequence(record.residues)
        coding_region.length = coding_region.sequence.length
        if record.symbol:
            coding_region.symbol = record.symbol
        if is_primary:
            coding_region.is_primary = True
        return True

    def _attach_transcript(self, record: FastaRecord, is_primary: bool) -> bool:
        if any(marker in record.identifier for marker in NON_MRNA_MARKERS):
            logging.debug(f"Skipping non-mRNA sequence {record.identifier}")
            return False
        transcript = self.transcript(record.identifier)
        transcript.sequence = Sequence(record.residues)
        transcript.length = transcript.sequence.length
        if record.symbol:
            transcript.symbol = record.symbol
        if is_primary:
            transcript.is_primary = True
        return True

    # TSV

    def load_gene_families(self, file_path: str) -> int:
        """
        Load a gfa.tsv file: gene, family, protein[, e-value, score, best-domain score].

        Two-column lines are secondary headers and are skipped.
        """
        count = 0
        for line_num, fields in TabularParser(file_path).rows():
            if len(fields) == 2:
                continue
            if len(fields) < 3:
                raise ParseError(f"Expected at least 3 columns, found {len(fields)}",
                                 str(file_path), line_num)
            gene_id, family_id, protein_id = (f.strip() for f in fields[:3])
            scores = [self._score(fields, i, file_path, line_num) for i in (3, 4, 5)]

            family = self.registry.get_or_create(RegistryKind.GENE_FAMILY, family_id, GeneFamily)
            assignment = GeneFamilyAssignment(family, *scores)
            self.registry.gene_family_assignments.append(assignment)

            gene = self.gene(gene_id)
            gene.gene_family_assignments.append(assignment)
            protein = self.protein(protein_id)
            protein.gene_family_assignments.append(assignment)
            protein.add_gene(gene)

            if gene not in family.genes:
                family.genes.append(gene)
            if protein not in family.proteins:
                family.proteins.append(protein)
            count += 1

        logging.info(f"Loaded {count} gene family assignments")
        return count

    def _score(self, fields: List[str], index: int, file_path: str,
               line_num: int) -> Optional[float]:
        if len(fields) <= index or not fields[index].strip():
            return None
        try:
            value = float(fields[index])
        except ValueError:
            raise ParseError(f"Invalid score {fields[index]}", str(file_path), line_num)
        # zero scores mean "not given"
        return value if value > 0.0 else None

    def load_pathways(self, file_path: str) -> int:
        """Load a pathway.tsv file: pathway id, pathway name, gene."""
        count = 0
        for line_num, fields in TabularParser(file_path).rows():
            if len(fields) != 3:
                raise ParseError(f"Pathway line does not have three fields: {fields}",
                                 str(file_path), line_num)
            pathway_id, pathway_name, gene_id = (f.strip() for f in fields)
            pathway = self.registry.get_or_create(RegistryKind.PATHWAY, pathway_id, Pathway)
            pathway.name = pathway_name
            gene = self.gene(gene_id)
            gene.add_pathway(pathway)
            if gene not in pathway.genes:
                pathway.genes.append(gene)
            count += 1

        logging.info(f"Loaded {count} pathway associations")
        return count

    def load_info_annot(self, file_path: str) -> int:
        """
        Load an info_annot file of functional annotations.

        Columns: pacId, locus, transcript, peptide, Pfam, Panther, KOG, ec, KO,
        GO, ... Names are local names; the collection prefix is prepended. GO
        and KO terms annotate the gene, the rest annotate the protein.
        """
        count = 0
        for line_num, fields in TabularParser(file_path).rows():
            if len(fields) < 4:
                raise ParseError(f"Expected at least 4 columns, found {len(fields)}",
                                 str(file_path), line_num)
            locus, transcript_name, peptide = (f.strip() for f in fields[1:4])
            if peptide.endswith('.p'):
                peptide = peptide[:-2]

            gene = self.gene(self._full_identifier(locus))
            protein = self.protein(self._full_identifier(peptide))
            protein.add_gene(gene)
            transcript = self.transcript(self._full_identifier(transcript_name))
            transcript.set_gene(gene)
            transcript.protein = protein
            protein.transcript = transcript

            subjects = {'gene': gene, 'protein': protein}
            for offset, (_, subject, ontology) in enumerate(INFO_ANNOT_COLUMNS, 4):
                if len(fields) <= offset:
                    break
                for term in fields[offset].split(','):
                    term = term.strip()
                    if term:
                        self.registry.annotate(subjects[subject], term, self.go_prefix, ontology)
            count += 1

        logging.info(f"Loaded {count} functional annotation rows")
        return count

    # InterProScan GFF3

    def load_protein_matches(self, file_path: str) -> int:
        """Load protein_match / protein_hmm_match records located on proteins."""
        return self.add_protein_matches(GFF3Parser(file_path).records(),
                                        filename=os.path.basename(str(file_path)))

    def add_protein_matches(self, records: Iterable[GFF3Record], filename: str = "") -> int:
        """
        Add InterProScan matches; any other record type, or a match without ID, is fatal.

        Raises:
            CollectionError: annotated with filename and line number
        """
        count = 0
        for record in records:
            try:
                self._add_protein_match(record)
            except CollectionError as e:
                raise e.locate(filename, record.line_number)
            count += 1

        logging.info(f"Loaded {count} protein matches")
        return count

    def _add_protein_match(self, record: GFF3Record) -> ProteinMatch:
        class_name = PROTEIN_MATCH_TYPES.get(record.type)
        if class_name is None:
            raise UnknownFeatureType(record.type)
        match_id = record.get_attribute('ID')
        if match_id is None:
            raise MissingIdentifier(
                f"InterProScan {record.type} record on {record.seqid} has no ID attribute"
            )

        protein = self.protein(record.seqid)
        # match IDs are not unique across collections
        primary_identifier = f"{self.context.prefix}.{match_id}"
        match = self.registry.get_or_create(
            RegistryKind.PROTEIN_MATCH, primary_identifier,
            lambda i: ProteinMatch(primary_identifier=i, class_name=class_name, name=match_id)
        )
        match.accession = record.get_attribute('Name')
        match.status = record.get_attribute('status')
        match.date = record.get_attribute('date')
        match.target = record.get_joined('Target')
        match.signature_desc = record.get_joined('signature_desc')
        match.protein = protein
        match.location = Location(record.start, record.end, record.strand_sign, protein)
        if match not in protein.protein_matches:
            protein.protein_matches.append(match)
        return match

    # stubs

    def gene(self, identifier: str) -> Gene:
        return self.registry.get_or_create(
            RegistryKind.GENE, identifier, lambda i: Gene(**self._stub_fields(i))
        )

    def transcript(self, identifier: str) -> Transcript:
        return self.registry.get_or_create(
            RegistryKind.TRANSCRIPT, identifier, lambda i: Transcript(**self._stub_fields(i))
        )

    def protein(self, identifier: str) -> Protein:
        return self.registry.get_or_create(
            RegistryKind.PROTEIN, identifier, lambda i: Protein(**self._stub_fields(i))
        )

    def _stub_fields(self, identifier: str) -> Dict[str, Optional[str]]:
        secondary = None
        if self.context.matches_collection(identifier):
            secondary = secondary_identifier(
                identifier, has_annotation_version=bool(self.context.annotation_version)
            )
        return dict(
            primary_identifier=identifier,
            secondary_identifier=secondary,
            assembly_version=self.context.assembly_version,
            annotation_version=self.context.annotation_version,
        )

    def _full_identifier(self, local_name: str) -> str:
        if self.context.matches_collection(local_name):
            return local_name
        return f"{self.context.prefix}.{local_name}"

    # finalize

    def finalize(self, publication: Optional[Publication] = None) -> Dict[str, int]:
        """
        Wire up references between entities that share an identifier.

        Coding regions are keyed by their transcript's identifier, so a coding
        region that never got a transcript from the GFF3 pass (a CDS FASTA
        stub, say) is matched to the transcript of the same identifier here.
        Proteins reach their genes through their transcript. Finally the
        publication, if any, is added to every top-level entity.

        Returns:
            Counts of links made and coding regions left without a transcript
        """
        if self.finalized:
            raise RuntimeError("Collection already finalized")

        stats = {'coding_regions_linked': 0, 'proteins_linked': 0, 'unlinked_coding_regions': 0}
        get = self.registry.get

        for key, coding_region in self.registry.items(RegistryKind.CODING_REGION):
            transcript = get(RegistryKind.TRANSCRIPT, key)
            if coding_region.transcript is None and transcript is not None:
                coding_region.set_transcript(transcript)
                stats['coding_regions_linked'] += 1
            if coding_region.transcript is None:
                stats['unlinked_coding_regions'] += 1
            elif coding_region.gene is None:
                coding_region.gene = coding_region.transcript.gene
            protein = get(RegistryKind.PROTEIN, key)
            if protein is not None and coding_region.protein is None:
                coding_region.protein = protein

        for key, transcript in self.registry.items(RegistryKind.TRANSCRIPT):
            protein = get(RegistryKind.PROTEIN, key)
            if protein is not None and transcript.protein is None:
                transcript.protein = protein

        for key, protein in self.registry.items(RegistryKind.PROTEIN):
            coding_region = get(RegistryKind.CODING_REGION, key)
            if coding_region is not None and protein.coding_region is None:
                protein.coding_region = coding_region
            transcript = get(RegistryKind.TRANSCRIPT, key)
            if transcript is not None and protein.transcript is None:
                protein.transcript = transcript
            if protein.transcript is not None and protein.transcript.gene is not None:
                protein.add_gene(protein.transcript.gene)
                stats['proteins_linked'] += 1

        if stats['unlinked_coding_regions']:
            logging.warning(f"{stats['unlinked_coding_regions']} coding regions have no transcript")

        if publication is not None:
            self._propagate_publication(publication)

        self.finalized = True
        return stats

    def _propagate_publication(self, publication: Publication) -> None:
        kinds = [
            RegistryKind.SEQUENCE_REGION, RegistryKind.FEATURE, RegistryKind.CODING_REGION,
            RegistryKind.GENE, RegistryKind.TRANSCRIPT, RegistryKind.PROTEIN,
            RegistryKind.PROTEIN_DOMAIN,
        ]
        for kind in kinds:
            for entity in self.registry.values(kind):
                entity.annotatable.add_publication(publication)
