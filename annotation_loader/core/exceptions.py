#!/usr/bin/env python3

"""
Custom exceptions for the annotation collection loader.

Every structural problem in a collection is fatal: the loader raises one of
these and the whole collection load is aborted.
"""

from typing import Optional


class LoaderError(Exception):
    """Base exception for all loader-related errors."""
    pass


class ParseError(LoaderError):
    """Error occurred during file parsing."""

    def __init__(self, message: str, filename: str = "", line_number: int = 0):
        super().__init__(message)
        self.filename = filename
        self.line_number = line_number

    def __str__(self):
        if self.filename and self.line_number:
            return f"Parse error in {self.filename} at line {self.line_number}: {super().__str__()}"
        elif self.filename:
            return f"Parse error in {self.filename}: {super().__str__()}"
        return super().__str__()


class CollectionError(LoaderError):
    """A record that would leave the feature graph inconsistent."""

    def __init__(self, message: str, filename: str = "", line_number: int = 0):
        super().__init__(message)
        self.filename = filename
        self.line_number = line_number

    def locate(self, filename: str, line_number: int) -> 'CollectionError':
        """Attach the offending file and line if not already known."""
        if not self.filename:
            self.filename = filename
        if not self.line_number:
            self.line_number = line_number
        return self

    def __str__(self):
        if self.filename and self.line_number:
            return f"{self.filename} line {self.line_number}: {super().__str__()}"
        elif self.filename:
            return f"{self.filename}: {super().__str__()}"
        return super().__str__()


class MalformedIdentifier(CollectionError):
    """Identifier does not decompose or does not belong to the active collection."""

    def __init__(self, message: str, identifier: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.identifier = identifier


class MissingIdentifier(CollectionError):
    """GFF3 record lacks an ID attribute."""
    pass


class UnknownFeatureType(CollectionError):
    """GFF3 type has no entry in the type table."""

    def __init__(self, feature_type: str, **kwargs):
        super().__init__(
            f"GFF3 type {feature_type} is not associated with a feature kind", **kwargs
        )
        self.feature_type = feature_type


class UnresolvedParent(CollectionError):
    """Parent named by a record has not been loaded yet."""

    def __init__(self, parent_id: Optional[str], child_id: str, **kwargs):
        if parent_id:
            message = f"Parent {parent_id} not loaded before child {child_id}. Is the GFF sorted?"
        else:
            message = f"Feature {child_id} requires a Parent attribute"
        super().__init__(message, **kwargs)
        self.parent_id = parent_id
        self.child_id = child_id


class UnrecognizedSequenceRegion(CollectionError):
    """Seqid is neither a chromosome nor a supercontig."""

    def __init__(self, seqid: str, **kwargs):
        super().__init__(
            f"Sequence {seqid} is not recognized as a Chromosome or Supercontig", **kwargs
        )
        self.seqid = seqid


class ConflictingLocation(CollectionError):
    """Feature seen again on a different sequence region."""

    def __init__(self, feature_id: str, existing_region: str, new_region: str, **kwargs):
        super().__init__(
            f"Feature {feature_id} is located on {existing_region}, cannot also place it on {new_region}",
            **kwargs
        )
        self.feature_id = feature_id
        self.existing_region = existing_region
        self.new_region = new_region


class IncompleteCollectionError(LoaderError):
    """README or a required data file was not processed."""

    def __init__(self, message: str, missing: Optional[list] = None):
        super().__init__(message)
        self.missing = missing or []

    def __str__(self):
        if self.missing:
            return f"{super().__str__()} (missing: {', '.join(self.missing)})"
        return super().__str__()


class ConfigurationError(LoaderError):
    """Error in loader configuration."""
    pass


class ResourceLimitError(LoaderError):
    """Memory usage exceeded limits."""

    def __init__(self, message: str, current_usage: float, limit: float):
        super().__init__(message)
        self.current_usage = current_usage
        self.limit = limit

    def __str__(self):
        return f"Memory error: {super().__str__()} (current: {self.current_usage:.1f}MB, limit: {self.limit:.1f}MB)"
