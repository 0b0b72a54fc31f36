"""
Reconciliation of stored documents against the records that were sent.

DEPLOYED MODULES:
- ValueComparator: semantic equality of two values (numeric tolerance, null symmetry)
- MappingValidator: mapping-driven walk of a source/target document pair
- MappingTableValidator: pre-flight checks of a field-mapping table
"""

from .validation_models import (
    ValidationSeverity, AssertionKind, FieldAssertion, ValidationReport,
    MappingTableIssue, MappingTableValidationResult
)
from .value_comparator import ValueComparator, compare_values
from .mapping_validator import MappingValidator, validate_documents
from .mapping_table_validator import MappingTableValidator

__all__ = [
    # Models
    'ValidationSeverity',
    'AssertionKind',
    'FieldAssertion',
    'ValidationReport',
    'MappingTableIssue',
    'MappingTableValidationResult',

    # Validators
    'ValueComparator',
    'compare_values',
    'MappingValidator',
    'validate_documents',
    'MappingTableValidator',
]
