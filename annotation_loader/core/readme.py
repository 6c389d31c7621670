#!/usr/bin/env python3

"""
Collection README reader.

A collection directory carries a README.<collection>.yml, e.g.

    identifier: G19833.gnm2.ann1.PB8d
    scientific_name: Phaseolus vulgaris
    scientific_name_abbrev: phavu
    taxid: 3885
    publication_doi: 10.1038/ng.3008
    chromosome_prefix: Chr
    supercontig_prefix: scaffold

which is turned into the CollectionContext every other file is checked against.
"""

import logging
from typing import Any, Dict, List, Optional

import yaml

from .context import CollectionContext
from .data_structures import Publication
from .exceptions import MalformedIdentifier, ParseError
from .identifiers import parse_collection_identifier
from .parsers import open_text

REQUIRED_FIELDS = ('identifier', 'scientific_name_abbrev')


def read_readme(file_path: str) -> Dict[str, Any]:
    """Load README YAML into a dict."""
    try:
        with open_text(file_path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ParseError(f"README file not found: {file_path}")
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid README YAML: {e}", str(file_path))

    if not isinstance(data, dict):
        raise ParseError("README does not contain a YAML mapping", str(file_path))
    return data


def _prefix_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(',') if p.strip()]
    return [str(p).strip() for p in value if str(p).strip()]


def context_from_readme(data: Dict[str, Any], file_path: str = "",
                        chromosome_prefixes: Optional[List[str]] = None,
                        supercontig_prefixes: Optional[List[str]] = None) -> CollectionContext:
    """
    Build a CollectionContext from README fields.

    Region prefixes in the README win over the supplied defaults.
    """
    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        raise ParseError(f"README is missing required fields: {', '.join(missing)}", str(file_path))

    identifier = str(data['identifier'])
    try:
        collection = parse_collection_identifier(identifier)
    except MalformedIdentifier as e:
        raise ParseError(str(e), str(file_path))

    publication = None
    if data.get('publication_doi'):
        publication = Publication(doi=str(data['publication_doi']),
                                  title=data.get('publication_title'))

    chromosomes = _prefix_list(data.get('chromosome_prefix'))
    supercontigs = _prefix_list(data.get('supercontig_prefix'))

    context = CollectionContext(
        gensp=str(data['scientific_name_abbrev']),
        strain=collection.strain,
        assembly_version=collection.assembly_version,
        annotation_version=collection.annotation_version,
        taxon_id=str(data['taxid']) if data.get('taxid') is not None else None,
        collection_identifier=identifier,
        scientific_name=data.get('scientific_name'),
        publication=publication,
        chromosome_prefixes=chromosomes or list(chromosome_prefixes or []),
        supercontig_prefixes=supercontigs or list(supercontig_prefixes or []),
    )
    logging.info(f"Collection {identifier}: features must start with {context.prefix}")
    return context


def load_readme(file_path: str, chromosome_prefixes: Optional[List[str]] = None,
                supercontig_prefixes: Optional[List[str]] = None) -> CollectionContext:
    return context_from_readme(read_readme(file_path), str(file_path),
                               chromosome_prefixes, supercontig_prefixes)
