"""
Pipeline Reconciliation System

Builds schema-shaped records from flat test input, renames their fields into a
target store's naming convention, and verifies that documents read back from the
store are structurally equivalent to what was sent, driven by a declarative
field-mapping table.
"""

__version__ = "1.0.0"

# Import core models and interfaces for easy access
from .models import (
    FieldKind,
    SchemaField,
    RecordSchema,
    Record,
    ScopeKind,
    FieldRename,
    MappingScope,
    FieldMappingTable,
    InsertReport,
    QueryPredicate
)

from .interfaces import (
    SchemaSourceInterface,
    DocumentStoreInterface,
    RecordValidatorInterface
)

from .exceptions import (
    ReconError,
    ConfigurationError,
    SchemaLoadError,
    SchemaMismatch,
    MappingConfigError,
    TranscodingError,
    FixtureError,
    StoreError,
    ValidationMismatch,
    ValidationFailedError
)

__all__ = [
    # Core models
    "FieldKind",
    "SchemaField",
    "RecordSchema",
    "Record",
    "ScopeKind",
    "FieldRename",
    "MappingScope",
    "FieldMappingTable",
    "InsertReport",
    "QueryPredicate",

    # Interfaces
    "SchemaSourceInterface",
    "DocumentStoreInterface",
    "RecordValidatorInterface",

    # Exceptions
    "ReconError",
    "ConfigurationError",
    "SchemaLoadError",
    "SchemaMismatch",
    "MappingConfigError",
    "TranscodingError",
    "FixtureError",
    "StoreError",
    "ValidationMismatch",
    "ValidationFailedError"
]
