#!/usr/bin/env python3

"""
Feature registry: identifier-keyed store of in-progress entities.

Entities are segregated by kind because the same identifier may legitimately
name different entities of different kinds (a transcript and the coding
region keyed by it, for example).
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from .data_structures import OntologyAnnotation, OntologyTerm


class RegistryKind(Enum):
    """Sub-registries of the feature registry."""
    GENE = "genes"
    TRANSCRIPT = "transcripts"
    FEATURE = "features"
    CODING_REGION = "coding_regions"
    SEQUENCE_REGION = "sequence_regions"
    PROTEIN = "proteins"
    ONTOLOGY_TERM = "ontology_terms"
    PROTEIN_DOMAIN = "protein_domains"
    GENE_FAMILY = "gene_families"
    PATHWAY = "pathways"
    PROTEIN_MATCH = "protein_matches"


class FeatureRegistry:
    """Get-or-create store of entities, one plain dict per kind."""

    def __init__(self):
        self._entities: Dict[RegistryKind, Dict[str, Any]] = {kind: {} for kind in RegistryKind}
        # unkeyed entities
        self.ontology_annotations: List[OntologyAnnotation] = []
        self.gene_family_assignments: List[Any] = []

    def get_or_create(self, kind: RegistryKind, identifier: str,
                      init_fn: Callable[[str], Any]) -> Any:
        """
        Return the registered entity, building it with init_fn on first use.

        Args:
            kind: sub-registry to look in
            identifier: primary identifier of the entity
            init_fn: called with the identifier, exactly once per (kind, identifier)

        Returns:
            The stored entity
        """
        entities = self._entities[kind]
        entity = entities.get(identifier)
        if entity is None:
            entity = init_fn(identifier)
            entities[identifier] = entity
            logging.debug(f"Registered {kind.name.lower()} {identifier}")
        return entity

    def get(self, kind: RegistryKind, identifier: str) -> Optional[Any]:
        """Look up an entity without creating it; None if not registered."""
        return self._entities[kind].get(identifier)

    def contains(self, kind: RegistryKind, identifier: str) -> bool:
        return identifier in self._entities[kind]

    def values(self, kind: RegistryKind) -> List[Any]:
        return list(self._entities[kind].values())

    def items(self, kind: RegistryKind) -> Iterator:
        return iter(self._entities[kind].items())

    def counts(self) -> Dict[str, int]:
        """Number of entities per sub-registry."""
        return {kind.value: len(entities) for kind, entities in self._entities.items()}

    def __len__(self):
        return sum(len(entities) for entities in self._entities.values())

    def annotate(self, subject: Any, term_identifier: str,
                 go_prefix: str = "GO:", ontology: Optional[str] = None) -> OntologyAnnotation:
        """
        Attach an ontology term to a subject.

        Terms are shared across subjects; a subject is annotated with a given
        term at most once.
        """
        term = self.get_or_create(RegistryKind.ONTOLOGY_TERM, term_identifier,
                                  lambda i: _new_term(i, go_prefix, ontology))
        for annotation in subject.annotatable.ontology_annotations:
            if annotation.term is term:
                return annotation
        annotation = OntologyAnnotation(subject=subject, term=term)
        subject.annotatable.ontology_annotations.append(annotation)
        self.ontology_annotations.append(annotation)
        return annotation


def _new_term(identifier: str, go_prefix: str, ontology: Optional[str]) -> OntologyTerm:
    class_name = "GOTerm" if identifier.startswith(go_prefix) else "OntologyTerm"
    if ontology is None and ":" in identifier:
        ontology = identifier.split(":", 1)[0]
    return OntologyTerm(identifier=identifier, class_name=class_name, ontology=ontology)
