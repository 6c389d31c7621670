#!/usr/bin/env python3

"""
Unit tests for the feature registry.
"""

import unittest
import sys
import os

# Add the parent directory to the path to import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../..')))

from annotation_loader.core.data_structures import CodingRegion, Gene, Transcript
from annotation_loader.core.registry import FeatureRegistry, RegistryKind


class TestGetOrCreate(unittest.TestCase):

    def setUp(self):
        self.registry = FeatureRegistry()
        self.calls = []

    def _make_gene(self, identifier):
        self.calls.append(identifier)
        return Gene(primary_identifier=identifier)

    def test_initializer_runs_once(self):
        first = self.registry.get_or_create(RegistryKind.GENE, "sp.strA.gnm1.ann1.G1", self._make_gene)
        second = self.registry.get_or_create(RegistryKind.GENE, "sp.strA.gnm1.ann1.G1", self._make_gene)
        self.assertIs(first, second)
        self.assertEqual(self.calls, ["sp.strA.gnm1.ann1.G1"])

    def test_get_never_creates(self):
        self.assertIsNone(self.registry.get(RegistryKind.GENE, "missing"))
        self.assertFalse(self.registry.contains(RegistryKind.GENE, "missing"))
        self.assertEqual(len(self.registry), 0)

    def test_kinds_are_segregated(self):
        key = "sp.strA.gnm1.ann1.G1.1"
        transcript = self.registry.get_or_create(RegistryKind.TRANSCRIPT, key,
                                                 lambda i: Transcript(primary_identifier=i))
        coding_region = self.registry.get_or_create(RegistryKind.CODING_REGION, key,
                                                    lambda i: CodingRegion(primary_identifier=i))
        self.assertIsNot(transcript, coding_region)
        self.assertIs(self.registry.get(RegistryKind.TRANSCRIPT, key), transcript)
        self.assertIs(self.registry.get(RegistryKind.CODING_REGION, key), coding_region)
        self.assertIsNone(self.registry.get(RegistryKind.GENE, key))

    def test_values_and_counts(self):
        for name in ("G1", "G2"):
            self.registry.get_or_create(RegistryKind.GENE, name, self._make_gene)
        self.assertEqual([g.primary_identifier for g in self.registry.values(RegistryKind.GENE)],
                         ["G1", "G2"])
        counts = self.registry.counts()
        self.assertEqual(counts["genes"], 2)
        self.assertEqual(counts["transcripts"], 0)
        self.assertEqual(len(self.registry), 2)


class TestAnnotate(unittest.TestCase):

    def setUp(self):
        self.registry = FeatureRegistry()
        self.gene1 = Gene(primary_identifier="G1")
        self.gene2 = Gene(primary_identifier="G2")

    def test_term_shared_between_subjects(self):
        first = self.registry.annotate(self.gene1, "GO:0016020")
        second = self.registry.annotate(self.gene2, "GO:0016020")

        self.assertIsNot(first, second)
        self.assertIs(first.term, second.term)
        self.assertEqual(len(self.registry.values(RegistryKind.ONTOLOGY_TERM)), 1)
        self.assertEqual(len(self.registry.ontology_annotations), 2)
        self.assertIs(first.subject, self.gene1)
        self.assertIs(second.subject, self.gene2)

    def test_subject_annotated_once_per_term(self):
        first = self.registry.annotate(self.gene1, "GO:0016020")
        again = self.registry.annotate(self.gene1, "GO:0016020")
        self.assertIs(first, again)
        self.assertEqual(len(self.gene1.annotatable.ontology_annotations), 1)

    def test_term_kind(self):
        go = self.registry.annotate(self.gene1, "GO:0009765").term
        pfam = self.registry.annotate(self.gene1, "PF00504", ontology="Pfam").term
        so = self.registry.annotate(self.gene1, "SO:0000704").term

        self.assertEqual(go.class_name, "GOTerm")
        self.assertEqual(go.ontology, "GO")
        self.assertEqual(pfam.class_name, "OntologyTerm")
        self.assertEqual(pfam.ontology, "Pfam")
        self.assertEqual(so.class_name, "OntologyTerm")
        self.assertEqual(so.ontology, "SO")


if __name__ == '__main__':
    unittest.main()
