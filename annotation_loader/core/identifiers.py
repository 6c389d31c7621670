#!/usr/bin/env python3

"""
Hierarchical identifier codec.

Datastore identifiers are dot-separated:

    gensp.strain.assembly.localname               (assembly features)
    gensp.strain.assembly.annotation.localname    (annotation features)

e.g. phavu.G19833.gnm2.ann1.Phvul.001G000100.1, where the local name
(Phvul.001G000100.1) may itself contain dots.
"""

import re
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .exceptions import MalformedIdentifier

if TYPE_CHECKING:
    from .context import CollectionContext

ASSEMBLY_PARTS = 4
ANNOTATION_PARTS = 5
ANNOTATION_VERSION = re.compile(r"^ann\d+$")


@dataclass(frozen=True)
class FeatureIdentifier:
    """Components of a hierarchical identifier."""
    species: str
    strain: str
    assembly_version: str
    annotation_version: Optional[str]
    local_name: str

    @property
    def prefix(self) -> str:
        """Everything before the local name."""
        parts = [self.species, self.strain, self.assembly_version]
        if self.annotation_version is not None:
            parts.append(self.annotation_version)
        return ".".join(parts)

    def compose(self) -> str:
        return f"{self.prefix}.{self.local_name}"

    def __str__(self):
        return self.compose()


def compose(species: str, strain: str, assembly_version: str,
            annotation_version: Optional[str], local_name: str) -> str:
    """Build an identifier from its components."""
    return FeatureIdentifier(species, strain, assembly_version,
                             annotation_version, local_name).compose()


def decompose(identifier: str, context: Optional['CollectionContext'] = None,
              has_annotation_version: bool = True) -> FeatureIdentifier:
    """
    Split an identifier into its components.

    Args:
        identifier: the full identifier
        context: if given, the leading components must match it
        has_annotation_version: True for annotation features (five or more parts)

    Returns:
        FeatureIdentifier

    Raises:
        MalformedIdentifier: too few parts, or leading parts do not match context
    """
    fields = identifier.split(".")
    required = ANNOTATION_PARTS if has_annotation_version else ASSEMBLY_PARTS
    if len(fields) < required or any(not f for f in fields[:required]):
        raise MalformedIdentifier(
            f"Identifier {identifier} does not have at least {required} dot-separated parts",
            identifier=identifier
        )

    annotation_version = fields[3] if has_annotation_version else None
    local_name = ".".join(fields[required - 1:])
    parsed = FeatureIdentifier(
        species=fields[0],
        strain=fields[1],
        assembly_version=fields[2],
        annotation_version=annotation_version,
        local_name=local_name,
    )

    if context is not None:
        expected = (context.gensp, context.strain, context.assembly_version)
        actual = (parsed.species, parsed.strain, parsed.assembly_version)
        if has_annotation_version and context.annotation_version:
            expected += (context.annotation_version,)
            actual += (parsed.annotation_version,)
        if actual != expected:
            raise MalformedIdentifier(
                f"Identifier {identifier} does not match collection {context.prefix}",
                identifier=identifier
            )

    return parsed


def secondary_identifier(identifier: str, has_annotation_version: bool = True) -> str:
    """Return the local-name suffix of an identifier."""
    return decompose(identifier, has_annotation_version=has_annotation_version).local_name


def matches_collection(identifier: str, expected_prefix: str) -> bool:
    """True if the identifier sits under the given collection prefix."""
    if not identifier or not expected_prefix:
        return False
    return identifier.startswith(expected_prefix + ".") and len(identifier) > len(expected_prefix) + 1


@dataclass(frozen=True)
class CollectionIdentifier:
    """A collection identifier like G19833.gnm2.ann1.PB8d."""
    strain: str
    assembly_version: str
    annotation_version: Optional[str]
    key: Optional[str]


def parse_collection_identifier(identifier: str) -> CollectionIdentifier:
    """
    Parse strain.assembly[.annotation].KEY4.

    The trailing four-character key is optional; annotation collections have
    an annotation version in third position.
    """
    fields = identifier.split(".")
    if len(fields) < 2:
        raise MalformedIdentifier(
            f"Collection identifier {identifier} needs at least strain and assembly",
            identifier=identifier
        )
    last = fields[-1]
    key = last if len(fields) > 2 and len(last) == 4 and not ANNOTATION_VERSION.match(last) else None
    core = fields[:-1] if key else fields
    annotation_version = core[2] if len(core) > 2 else None
    return CollectionIdentifier(
        strain=core[0],
        assembly_version=core[1],
        annotation_version=annotation_version,
        key=key,
    )
