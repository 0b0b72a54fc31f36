"""Tabular fixture input."""

from .row_reader import FixtureRowReader, parse_field_path, suffix_identifiers, timestamp_suffix

__all__ = ['FixtureRowReader', 'parse_field_path', 'suffix_identifiers', 'timestamp_suffix']
