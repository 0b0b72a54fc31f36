"""
Custom exceptions for the Pipeline Reconciliation system.

This module defines specific exception types for the different error conditions
that can occur while building records, transcoding field names, talking to the
target store and validating retrieved documents.
"""

from typing import Any, Dict, List, Optional


class ReconError(Exception):
    """Base exception for all reconciliation related errors."""

    def __init__(self, message: str, source_record_id: str = None):
        """
        Initialize reconciliation error.

        Args:
            message: Error description
            source_record_id: Optional identifier of the record that caused the error
        """
        super().__init__(message)
        self.source_record_id = source_record_id


class ConfigurationError(ReconError):
    """Exception raised when configuration is invalid or missing."""
    pass


class SchemaLoadError(ReconError):
    """Exception raised when a schema resource cannot be resolved or parsed."""

    def __init__(self, message: str, identifier: str = None):
        super().__init__(message)
        self.identifier = identifier


class SchemaMismatch(ReconError):
    """Exception raised when a flat row and its schema disagree on shape."""

    def __init__(self, message: str, field_path: str = None, schema_name: str = None,
                 source_record_id: str = None):
        """
        Initialize schema mismatch error.

        Args:
            message: Error description
            field_path: Dotted path of the field that could not be built
            schema_name: Name of the (sub-)schema being applied
            source_record_id: Optional identifier of the row being built
        """
        super().__init__(message, source_record_id)
        self.field_path = field_path
        self.schema_name = schema_name


class MappingConfigError(ReconError):
    """Exception raised when a field-mapping table is malformed or cannot be applied."""

    def __init__(self, message: str, scope: str = None, field_name: str = None,
                 line_number: int = None):
        """
        Initialize mapping configuration error.

        Args:
            message: Error description
            scope: Name of the mapping scope involved
            field_name: Field or container key involved
            line_number: Line of the mapping resource (load-time errors only)
        """
        super().__init__(message)
        self.scope = scope
        self.field_name = field_name
        self.line_number = line_number


class TranscodingError(ReconError):
    """Exception raised when a document cannot be re-keyed under a naming rule."""

    def __init__(self, message: str, key_path: str = None, value_type: str = None):
        super().__init__(message)
        self.key_path = key_path
        self.value_type = value_type


class FixtureError(ReconError):
    """Exception raised when a tabular fixture cannot be read or converted to flat rows."""

    def __init__(self, message: str, path: str = None, row_number: int = None, column: str = None):
        """
        Initialize fixture error.

        Args:
            message: Error description
            path: Fixture file, when reading from disk
            row_number: 1-based data row the problem was found in
            column: Column header (field path) involved
        """
        super().__init__(message)
        self.path = path
        self.row_number = row_number
        self.column = column


class StoreError(ReconError):
    """Exception raised when the external store rejects an insert or a query."""

    def __init__(self, message: str, target: str = None,
                 row_errors: Optional[Dict[int, List[str]]] = None):
        """
        Initialize store error.

        Args:
            message: Error description
            target: Store target (table) the operation addressed
            row_errors: Per-row error messages keyed by row index, when known
        """
        super().__init__(message)
        self.target = target
        self.row_errors = row_errors or {}


class ValidationMismatch(ReconError):
    """
    A single field that failed comparison.

    Collected into a ValidationReport rather than raised; every mismatch of a
    record stays independently discoverable.
    """

    def __init__(self, field_path: str, expected: Any, actual: Any, scope: str = "root",
                 source_key: str = None, target_key: str = None, reason: str = None,
                 source_record_id: str = None):
        self.field_path = field_path
        self.expected = expected
        self.actual = actual
        self.scope = scope
        self.source_key = source_key
        self.target_key = target_key
        self.reason = reason

        arrow = ""
        if target_key and source_key and target_key != source_key:
            arrow = f" -> {target_key}"
        detail = f" ({reason})" if reason else ""
        message = f"{field_path}{arrow} mismatched{detail}: expected {expected!r}, actual {actual!r}"
        super().__init__(message, source_record_id)


class ValidationFailedError(ReconError):
    """Exception raised when a caller asks a failing ValidationReport to assert success."""

    def __init__(self, message: str, mismatches: List[ValidationMismatch] = None,
                 source_record_id: str = None):
        super().__init__(message, source_record_id)
        self.mismatches = list(mismatches or [])
