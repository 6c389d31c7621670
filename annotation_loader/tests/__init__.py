#!/usr/bin/env python3

"""
Test suite for the annotation collection loader.

Unit tests covering:
- Identifier codec and collection context
- Feature registry and ontology annotation
- GFF3 stream processing and coordinate aggregation
- FASTA/TSV/InterProScan linking and finalize
- README metadata, configuration and whole-collection loads
"""
