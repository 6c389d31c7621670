#!/usr/bin/env python3

"""
Unit tests for cross-file linking: FASTA and TSV joins, InterProScan
matches and finalize wiring.
"""

import os
import shutil
import sys
import tempfile
import unittest

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from annotation_loader.core.context import CollectionContext
from annotation_loader.core.data_structures import Publication
from annotation_loader.core.exceptions import MissingIdentifier, ParseError, UnknownFeatureType
from annotation_loader.core.linker import CrossFileLinker
from annotation_loader.core.parsers import GFF3Parser
from annotation_loader.core.processors import GFF3StreamProcessor
from annotation_loader.core.registry import FeatureRegistry, RegistryKind

PREFIX = "sp.strA.gnm1.ann1"
GENE_ID = f"{PREFIX}.G1"
MRNA_ID = f"{PREFIX}.G1.1"

GFF3_LINES = [
    f"chr1\tsrc\tgene\t1\t1000\t.\t+\t.\tID={GENE_ID};Name=G1\n",
    f"chr1\tsrc\tmRNA\t1\t1000\t.\t+\t.\tID={MRNA_ID};Parent={GENE_ID}\n",
    f"chr1\tsrc\tCDS\t1\t400\t.\t+\t.\tID=anything;Parent={MRNA_ID}\n",
    f"chr1\tsrc\tCDS\t700\t1000\t.\t+\t.\tID=anything2;Parent={MRNA_ID}\n",
]


class LinkerTestCase(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.context = CollectionContext(
            gensp="sp", strain="strA", assembly_version="gnm1", annotation_version="ann1",
            chromosome_prefixes=["chr"],
        )
        self.registry = FeatureRegistry()
        self.linker = CrossFileLinker(self.registry, self.context)

    def tearDown(self):
        shutil.rmtree(self.tmpdir)

    def write(self, name, text):
        path = os.path.join(self.tmpdir, name)
        with open(path, 'w') as f:
            f.write(text)
        return path

    def load_gene_models(self):
        processor = GFF3StreamProcessor(self.registry, self.context)
        processor.process(GFF3Parser("models.gff3").parse_lines(GFF3_LINES), filename="models.gff3")


class TestFastaJoins(LinkerTestCase):

    def test_protein_fasta_creates_stub(self):
        path = self.write("sp.protein.faa", f">{MRNA_ID} PK1\nMKVLLA\n")
        self.assertEqual(self.linker.load_fasta(path, 'protein'), 1)

        protein = self.registry.get(RegistryKind.PROTEIN, MRNA_ID)
        self.assertEqual(protein.length, 6)
        self.assertEqual(protein.sequence.residues, "MKVLLA")
        self.assertEqual(protein.md5checksum, protein.sequence.md5checksum)
        self.assertEqual(protein.symbol, "PK1")
        self.assertEqual(protein.secondary_identifier, "G1.1")
        self.assertFalse(protein.is_primary)

    def test_cds_fasta_joins_gff3_coding_region(self):
        self.load_gene_models()
        coding_region = self.registry.get(RegistryKind.CODING_REGION, MRNA_ID)
        path = self.write("sp.cds_primary.fna", f">{MRNA_ID}\n{'A' * 700}\n")
        self.linker.load_fasta(path, 'cds')

        self.assertIs(self.registry.get(RegistryKind.CODING_REGION, MRNA_ID), coding_region)
        self.assertEqual(coding_region.length, 700)
        self.assertTrue(coding_region.is_primary)
        # envelope untouched by the FASTA length
        self.assertEqual((coding_region.location.start, coding_region.location.end), (1, 1000))

    def test_fasta_before_gff3_converges(self):
        path = self.write("sp.mrna.fna", f">{MRNA_ID}\nACGTACGT\n")
        self.linker.load_fasta(path, 'mrna')
        stub = self.registry.get(RegistryKind.TRANSCRIPT, MRNA_ID)

        self.load_gene_models()
        transcript = self.registry.get(RegistryKind.TRANSCRIPT, MRNA_ID)
        self.assertIs(transcript, stub)
        self.assertEqual(transcript.length, 8)
        self.assertIsNotNone(transcript.gene)
        self.assertIsNotNone(transcript.location)

    def test_mrna_fasta_skips_noncoding(self):
        path = self.write("sp.mrna.fna", f">{PREFIX}.tRNA-Gly.1\nACGT\n>{MRNA_ID}\nACGT\n")
        self.assertEqual(self.linker.load_fasta(path, 'mrna'), 1)
        self.assertIsNone(self.registry.get(RegistryKind.TRANSCRIPT, f"{PREFIX}.tRNA-Gly.1"))

    def test_unknown_sequence_type(self):
        path = self.write("x.fna", ">x\nA\n")
        with self.assertRaises(ValueError):
            self.linker.load_fasta(path, 'genome')


class TestTabularJoins(LinkerTestCase):

    def test_gene_family_assignments(self):
        self.load_gene_models()
        path = self.write("sp.gfa.tsv", (
            "#gene\tfamily\tprotein\te-value\tscore\tbest-domain-score\n"
            "ScoreMeaning\tHMMscore\n"
            f"{GENE_ID}\tlegfed_v1_0.L_JSS52Z\t{MRNA_ID}\t5.3e-199\t660.9\t660.8\n"
            f"{PREFIX}.G7\tlegfed_v1_0.L_JSS52Z\t{PREFIX}.G7.1\n"
        ))
        self.assertEqual(self.linker.load_gene_families(path), 2)

        family = self.registry.get(RegistryKind.GENE_FAMILY, "legfed_v1_0.L_JSS52Z")
        gene = self.registry.get(RegistryKind.GENE, GENE_ID)
        protein = self.registry.get(RegistryKind.PROTEIN, MRNA_ID)
        assignment = gene.gene_family_assignments[0]

        self.assertIs(assignment.gene_family, family)
        self.assertAlmostEqual(assignment.score, 660.9)
        self.assertAlmostEqual(assignment.best_domain_score, 660.8)
        self.assertIs(protein.gene_family_assignments[0], assignment)
        self.assertIn(gene, protein.genes)
        self.assertEqual(len(family.genes), 2)

        stub_gene = self.registry.get(RegistryKind.GENE, f"{PREFIX}.G7")
        self.assertIsNone(stub_gene.location)
        self.assertIsNone(stub_gene.gene_family_assignments[0].evalue)
        self.assertEqual(len(self.registry.gene_family_assignments), 2)

    def test_gene_family_bad_score(self):
        path = self.write("sp.gfa.tsv", f"{GENE_ID}\tfam\t{MRNA_ID}\tnot-a-number\n")
        with self.assertRaises(ParseError) as ctx:
            self.linker.load_gene_families(path)
        self.assertEqual(ctx.exception.line_number, 1)

    def test_pathways(self):
        path = self.write("sp.pathway.tsv", (
            f"R-1119260.1\tCardiolipin biosynthesis\t{GENE_ID}\n"
            f"R-1119260.1\tCardiolipin biosynthesis\t{PREFIX}.G2\n"
        ))
        self.assertEqual(self.linker.load_pathways(path), 2)
        pathway = self.registry.get(RegistryKind.PATHWAY, "R-1119260.1")
        self.assertEqual(pathway.name, "Cardiolipin biosynthesis")
        self.assertEqual(len(pathway.genes), 2)
        self.assertEqual(self.registry.get(RegistryKind.GENE, GENE_ID).pathways, [pathway])

    def test_pathway_needs_three_fields(self):
        path = self.write("sp.pathway.tsv", f"R-1\t{GENE_ID}\n")
        with self.assertRaises(ParseError):
            self.linker.load_pathways(path)

    def test_info_annot(self):
        path = self.write("sp.strA.gnm1.ann1.KEY1.info_annot.txt", (
            "#pacId\tlocusName\ttranscriptName\tpeptideName\tPfam\tPanther\tKOG\tec\tKO\tGO\n"
            "37170591\tG1\tG1.1\tG1.1.p\tPF00504\tPTHR21649,PTHR21649:SF24\t\t1.10.3.9\tK14172\tGO:0016020,GO:0009765\n"
        ))
        self.assertEqual(self.linker.load_info_annot(path), 1)

        gene = self.registry.get(RegistryKind.GENE, GENE_ID)
        protein = self.registry.get(RegistryKind.PROTEIN, MRNA_ID)
        transcript = self.registry.get(RegistryKind.TRANSCRIPT, MRNA_ID)

        self.assertIs(transcript.gene, gene)
        self.assertIs(transcript.protein, protein)
        self.assertIn(gene, protein.genes)
        gene_terms = [a.term.identifier for a in gene.annotatable.ontology_annotations]
        protein_terms = [a.term.identifier for a in protein.annotatable.ontology_annotations]
        self.assertEqual(gene_terms, ["K14172", "GO:0016020", "GO:0009765"])
        self.assertEqual(protein_terms, ["PF00504", "PTHR21649", "PTHR21649:SF24", "1.10.3.9"])
        pfam = self.registry.get(RegistryKind.ONTOLOGY_TERM, "PF00504")
        self.assertEqual(pfam.ontology, "Pfam")
        self.assertEqual(self.registry.get(RegistryKind.ONTOLOGY_TERM, "GO:0016020").class_name, "GOTerm")


class TestProteinMatches(LinkerTestCase):

    def test_iprscan_records(self):
        lines = [
            f"{MRNA_ID}\tPfam\tprotein_hmm_match\t3\t88\t4.8E-11\t+\t.\t"
            "Name=PF03732;status=T;ID=match$1047423_3_88;date=04-02-2021;"
            "signature_desc=Retrotransposon gag protein;Target=PF03732 6 96\n",
            f"{MRNA_ID}\tPANTHER\tprotein_match\t1\t463\t.\t+\t.\tName=PTHR10178:SF14;ID=match$1047424_1_463\n",
        ]
        count = self.linker.add_protein_matches(GFF3Parser("ipr.gff3").parse_lines(lines))
        self.assertEqual(count, 2)

        protein = self.registry.get(RegistryKind.PROTEIN, MRNA_ID)
        hmm = self.registry.get(RegistryKind.PROTEIN_MATCH, f"{PREFIX}.match$1047423_3_88")
        self.assertEqual(hmm.class_name, "ProteinHmmMatch")
        self.assertEqual(hmm.name, "match$1047423_3_88")
        self.assertEqual(hmm.accession, "PF03732")
        self.assertEqual(hmm.signature_desc, "Retrotransposon gag protein")
        self.assertEqual(hmm.target, "PF03732 6 96")
        self.assertIs(hmm.location.located_on, protein)
        self.assertEqual((hmm.location.start, hmm.location.end), (3, 88))
        self.assertEqual(len(protein.protein_matches), 2)

    def test_unsupported_iprscan_type_is_fatal(self):
        lines = [
            f"{MRNA_ID}\tPANTHER\tprotein_match\t1\t463\t.\t+\t.\tName=PTHR10178:SF14;ID=match$1\n",
            f"{MRNA_ID}\t.\tpolypeptide\t1\t463\t.\t+\t.\tID={MRNA_ID}\n",
        ]
        with self.assertRaises(UnknownFeatureType) as ctx:
            self.linker.add_protein_matches(GFF3Parser("ipr.gff3").parse_lines(lines),
                                            filename="ipr.gff3")
        self.assertEqual(ctx.exception.feature_type, "polypeptide")
        self.assertEqual(ctx.exception.filename, "ipr.gff3")
        self.assertEqual(ctx.exception.line_number, 2)

    def test_match_without_id_is_fatal(self):
        lines = [f"{MRNA_ID}\tPfam\tprotein_hmm_match\t3\t88\t4.8E-11\t+\t.\tName=PF03732\n"]
        with self.assertRaises(MissingIdentifier) as ctx:
            self.linker.add_protein_matches(GFF3Parser("ipr.gff3").parse_lines(lines),
                                            filename="ipr.gff3")
        self.assertEqual(ctx.exception.line_number, 1)
        self.assertIsNone(self.registry.get(RegistryKind.PROTEIN, MRNA_ID))


class TestFinalize(LinkerTestCase):

    def test_links_by_shared_identifier(self):
        self.load_gene_models()
        self.linker.load_fasta(self.write("sp.protein.faa", f">{MRNA_ID}\nMKV\n"), 'protein')

        stats = self.linker.finalize()

        transcript = self.registry.get(RegistryKind.TRANSCRIPT, MRNA_ID)
        coding_region = self.registry.get(RegistryKind.CODING_REGION, MRNA_ID)
        protein = self.registry.get(RegistryKind.PROTEIN, MRNA_ID)
        gene = self.registry.get(RegistryKind.GENE, GENE_ID)

        self.assertIs(transcript.protein, protein)
        self.assertIs(coding_region.protein, protein)
        self.assertIs(protein.transcript, transcript)
        self.assertIs(protein.coding_region, coding_region)
        self.assertEqual(protein.genes, [gene])
        self.assertEqual(stats['unlinked_coding_regions'], 0)

    def test_fallback_links_fasta_coding_region_to_transcript(self):
        # gene models without CDS lines, CDS known only from FASTA
        processor = GFF3StreamProcessor(self.registry, self.context)
        processor.process(GFF3Parser("models.gff3").parse_lines(GFF3_LINES[:2]))
        self.linker.load_fasta(self.write("sp.cds.fna", f">{MRNA_ID}\nATGAAA\n>{PREFIX}.G9.1\nATG\n"), 'cds')

        coding_region = self.registry.get(RegistryKind.CODING_REGION, MRNA_ID)
        self.assertIsNone(coding_region.transcript)

        stats = self.linker.finalize()
        transcript = self.registry.get(RegistryKind.TRANSCRIPT, MRNA_ID)
        self.assertIs(coding_region.transcript, transcript)
        self.assertIs(coding_region.gene, transcript.gene)
        self.assertEqual(transcript.coding_regions, [coding_region])
        self.assertEqual(stats['coding_regions_linked'], 1)
        self.assertEqual(stats['unlinked_coding_regions'], 1)

    def test_publication_propagated(self):
        self.load_gene_models()
        publication = Publication(doi="10.1038/ng.3008")
        self.linker.finalize(publication)

        for kind in (RegistryKind.GENE, RegistryKind.TRANSCRIPT, RegistryKind.CODING_REGION,
                     RegistryKind.SEQUENCE_REGION):
            for entity in self.registry.values(kind):
                self.assertEqual(entity.annotatable.publications, [publication])

    def test_finalize_only_once(self):
        self.linker.finalize()
        with self.assertRaises(RuntimeError):
            self.linker.finalize()


if __name__ == '__main__':
    unittest.main()
