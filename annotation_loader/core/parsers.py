#!/usr/bin/env python3

"""
File parsers for collection data files.

Handles GFF3 records, FASTA sequences and tab-separated rows. Every reader
accepts plain or gzip-compressed files.
"""

import gzip
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
from urllib.parse import unquote

from .exceptions import ParseError


def open_text(file_path: str):
    """Open a possibly gzipped file for text reading."""
    if str(file_path).endswith('.gz'):
        return gzip.open(file_path, 'rt')
    return open(file_path, 'r')


def unescape(value: str) -> str:
    """Decode GFF3 percent-encoded punctuation (%3B, %2C, %3D, ...)."""
    return unquote(value)


@dataclass
class GFF3Record:
    """One GFF3 feature line."""
    seqid: str
    source: str
    type: str
    start: int
    end: int
    score: Optional[float]
    strand: str
    phase: Optional[int]
    attributes: Dict[str, List[str]] = field(default_factory=dict)
    line_number: int = 0

    def get_values(self, name: str) -> List[str]:
        """All values of an attribute, matching its name case-insensitively."""
        if name in self.attributes:
            return self.attributes[name]
        lowered = name.lower()
        for key, values in self.attributes.items():
            if key.lower() == lowered:
                return values
        return []

    def get_attribute(self, name: str) -> Optional[str]:
        """First value of an attribute; None if absent or empty."""
        values = self.get_values(name)
        if not values or not values[0].strip():
            return None
        return values[0]

    def get_joined(self, name: str) -> Optional[str]:
        """Multi-valued attribute rejoined with commas (for free text like Note)."""
        values = self.get_values(name)
        joined = ",".join(values)
        return joined if joined.strip() else None

    @property
    def strand_sign(self) -> int:
        return -1 if self.strand == '-' else 1


class GFF3Parser:
    """Stream GFF3 records from a file in file order."""

    def __init__(self, file_path: str):
        self.file_path = str(file_path)

    def records(self) -> Iterator[GFF3Record]:
        """Yield records; malformed lines raise ParseError."""
        logging.info(f"Parsing GFF3 file: {self.file_path}")
        try:
            with open_text(self.file_path) as f:
                yield from self.parse_lines(f)
        except FileNotFoundError:
            raise ParseError(f"GFF3 file not found: {self.file_path}")

    def parse_lines(self, lines) -> Iterator[GFF3Record]:
        for line_num, line in enumerate(lines, 1):
            line = line.rstrip('\n\r')
            if line.startswith('##FASTA'):
                break
            if not line.strip() or line.startswith('#'):
                continue
            yield self.parse_line(line, line_num)

    def parse_line(self, line: str, line_num: int = 0) -> GFF3Record:
        parts = line.split('\t')
        if len(parts) != 9:
            raise ParseError(f"Expected 9 tab-separated columns, found {len(parts)}",
                             self.file_path, line_num)

        seqid, source, feature_type, start, end, score, strand, phase, attributes = parts
        try:
            start, end = int(start), int(end)
        except ValueError:
            raise ParseError(f"Invalid coordinates {start}-{end}", self.file_path, line_num)

        return GFF3Record(
            seqid=unescape(seqid),
            source=source,
            type=feature_type,
            start=start,
            end=end,
            score=None if score == '.' else self._to_float(score, line_num),
            strand=strand,
            phase=int(phase) if phase.isdigit() else None,
            attributes=self._parse_gff3_attributes(attributes),
            line_number=line_num,
        )

    def _to_float(self, value: str, line_num: int) -> float:
        try:
            return float(value)
        except ValueError:
            raise ParseError(f"Invalid score {value}", self.file_path, line_num)

    def _parse_gff3_attributes(self, attr_string: str) -> Dict[str, List[str]]:
        """Parse key=v1,v2;key2=v3 into decoded value lists."""
        attributes: Dict[str, List[str]] = {}
        if attr_string.strip() in ('', '.'):
            return attributes
        for attr in attr_string.split(';'):
            attr = attr.strip()
            if '=' not in attr:
                continue
            key, value = attr.split('=', 1)
            attributes[unescape(key.strip())] = [unescape(v) for v in value.split(',')]
        return attributes


@dataclass
class FastaRecord:
    """A FASTA entry with its header split into identifier and the rest."""
    identifier: str
    residues: str
    symbol: Optional[str] = None
    header: str = ""


class FastaParser:
    """Parse FASTA files into FastaRecord objects."""

    def __init__(self, file_path: str):
        self.file_path = str(file_path)

    def records(self) -> Iterator[FastaRecord]:
        logging.info(f"Parsing FASTA file: {self.file_path}")
        current_header = None
        current_seq: List[str] = []
        line_num = 0

        try:
            with open_text(self.file_path) as f:
                for line_num, line in enumerate(f, 1):
                    line = line.strip()

                    if line.startswith('>'):
                        if current_header is not None:
                            yield self._make_record(current_header, current_seq, line_num)
                        current_header = line[1:]
                        current_seq = []

                    elif line and current_header is not None:
                        current_seq.append(line)

                    elif line and not line.startswith(';'):
                        raise ParseError("Sequence data before first header", self.file_path, line_num)

                if current_header is not None:
                    yield self._make_record(current_header, current_seq, line_num)

        except FileNotFoundError:
            raise ParseError(f"Sequence file not found: {self.file_path}")

    def _make_record(self, header: str, seq_lines: List[str], line_num: int) -> FastaRecord:
        identifier, symbol = self.parse_header(header)
        if not identifier:
            raise ParseError("FASTA header has no identifier", self.file_path, line_num)
        return FastaRecord(
            identifier=identifier,
            residues=''.join(seq_lines),
            symbol=symbol,
            header=header,
        )

    @staticmethod
    def parse_header(header: str):
        """
        Split a header into (identifier, symbol).

        The identifier is the first token, or its second |-field for
        db|accession|name style headers; a second token is the symbol.
        """
        tokens = header.split()
        if not tokens:
            return "", None
        first = tokens[0]
        identifier = first.split('|')[1] if '|' in first else first
        symbol = tokens[1] if len(tokens) > 1 else None
        return identifier, symbol


class TabularParser:
    """Read tab-separated rows, skipping comments and blank lines."""

    def __init__(self, file_path: str, comment: str = '#'):
        self.file_path = str(file_path)
        self.comment = comment

    def rows(self) -> Iterator[tuple]:
        """Yield (line_number, fields) tuples."""
        logging.info(f"Parsing TSV file: {self.file_path}")
        try:
            with open_text(self.file_path) as f:
                for line_num, line in enumerate(f, 1):
                    line = line.rstrip('\n\r')
                    if not line.strip() or line.startswith(self.comment):
                        continue
                    yield line_num, line.split('\t')
        except FileNotFoundError:
            raise ParseError(f"TSV file not found: {self.file_path}")
