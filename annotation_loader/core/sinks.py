#!/usr/bin/env python3

"""
Persistence sinks that receive the finished entity batch at close.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

from .data_structures import (
    Annotatable, GeneFamilyAssignment, Location, OntologyAnnotation,
    OntologyTerm, Sequence
)
from .registry import FeatureRegistry, RegistryKind


@dataclass
class EntityBatch:
    """All entities of one collection, grouped by kind."""
    entities: Dict[str, List[Any]] = field(default_factory=dict)

    @classmethod
    def from_registry(cls, registry: FeatureRegistry) -> 'EntityBatch':
        batch = cls()
        for kind in RegistryKind:
            batch.entities[kind.value] = registry.values(kind)
        batch.entities['ontology_annotations'] = list(registry.ontology_annotations)
        batch.entities['gene_family_assignments'] = list(registry.gene_family_assignments)
        return batch

    def counts(self) -> Dict[str, int]:
        return {kind: len(entities) for kind, entities in self.entities.items()}

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        for kind, entities in self.entities.items():
            for entity in entities:
                yield kind, entity

    def __len__(self):
        return sum(len(entities) for entities in self.entities.values())


class PersistenceSink(ABC):
    """Receives one finished batch per collection."""

    @abstractmethod
    def store(self, batch: EntityBatch) -> None:
        pass


class MemorySink(PersistenceSink):
    """Keeps stored batches in memory."""

    def __init__(self):
        self.batches: List[EntityBatch] = []

    def store(self, batch: EntityBatch) -> None:
        self.batches.append(batch)

    @property
    def last(self) -> EntityBatch:
        return self.batches[-1]


class JsonLinesSink(PersistenceSink):
    """Write one JSON object per entity; references become primary identifiers."""

    def __init__(self, output_path: str):
        self.output_path = str(output_path)

    def store(self, batch: EntityBatch) -> None:
        written = 0
        with open(self.output_path, 'w') as f:
            for kind, entity in batch:
                record = entity_to_record(entity)
                record['kind'] = kind
                f.write(json.dumps(record) + '\n')
                written += 1
        logging.info(f"Wrote {written} entities to {self.output_path}")


def entity_to_record(entity: Any) -> Dict[str, Any]:
    """Flatten an entity into a JSON-ready dict."""
    record = {'class': getattr(entity, 'class_name', type(entity).__name__)}
    for f in fields(entity):
        if f.name == 'class_name':
            continue
        # 'kind' is reserved for the batch kind
        key = 'feature_kind' if f.name == 'kind' else f.name
        record[key] = _to_json(getattr(entity, f.name))
    return record


def _to_json(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, Location):
        return {'start': value.start, 'end': value.end, 'strand': value.strand,
                'located_on': value.region_id}
    if isinstance(value, Sequence):
        return {'residues': value.residues, 'length': value.length,
                'md5checksum': value.md5checksum}
    if isinstance(value, Annotatable):
        return {'publications': [p.doi for p in value.publications],
                'ontology_terms': [a.term.identifier for a in value.ontology_annotations]}
    if isinstance(value, OntologyTerm):
        return value.identifier
    if isinstance(value, OntologyAnnotation):
        return {'subject': _to_json(value.subject), 'term': value.term.identifier}
    if isinstance(value, GeneFamilyAssignment):
        return {'gene_family': value.gene_family.primary_identifier, 'evalue': value.evalue,
                'score': value.score, 'best_domain_score': value.best_domain_score}
    if hasattr(value, 'primary_identifier'):
        return value.primary_identifier
    if is_dataclass(value):
        return entity_to_record(value)
    return str(value)
