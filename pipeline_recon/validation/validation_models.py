"""
Validation Data Models and Structures

This module defines the data structures the validation layer uses to report
its findings: per-field assertions, the per-record ValidationReport that
aggregates them, and the result of pre-flight checks on a field-mapping table.

Key Data Structures:
- FieldAssertion: One comparison the validator made (passing or failing) with full context
- ValidationReport: Every assertion for one source/target document pair plus the verdict
- MappingTableIssue: A structural problem found in a field-mapping table before validation
- MappingTableValidationResult: Aggregated pre-flight outcome with errors and warnings

The models are designed to support:
- Independent discovery of every failure (no short-circuit on first mismatch)
- Rich context (path, scope, both keys, both values) for diagnostics
- A single assertion point for test runners via ValidationReport.raise_if_failed()
"""

from dataclasses import dataclass, field
from typing import List, Any, Optional
from datetime import datetime
from enum import Enum

from ..exceptions import ValidationMismatch, ValidationFailedError


class ValidationSeverity(Enum):
    """Severity levels for pre-flight issues."""
    ERROR = "error"
    WARNING = "warning"


class AssertionKind(Enum):
    """Kinds of assertions the mapping validator records."""
    FIELD = "field"
    PRESENCE = "presence"
    ARRAY_LENGTH = "array_length"
    SHAPE = "shape"


@dataclass
class FieldAssertion:
    """
    A single named assertion made while walking two documents.

    Location Context:
    - field_path: Path in source naming, e.g. 'customer.name' or 'items[0].quantity'
    - scope: Mapping scope the assertion belongs to ('root', 'customer', 'items', ...)
    - source_key / target_key: The correspondence that was applied

    Value Context:
    - expected: Value read from the source document
    - actual: Value read from the target document
    """
    field_path: str
    scope: str
    source_key: str
    target_key: str
    expected: Any
    actual: Any
    passed: bool
    kind: AssertionKind = AssertionKind.FIELD
    message: Optional[str] = None

    def to_mismatch(self, source_record_id: Optional[str] = None) -> ValidationMismatch:
        """Return the ValidationMismatch describing this (failed) assertion."""
        return ValidationMismatch(
            field_path=self.field_path,
            expected=self.expected,
            actual=self.actual,
            scope=self.scope,
            source_key=self.source_key,
            target_key=self.target_key,
            reason=self.message,
            source_record_id=source_record_id
        )

    def __str__(self) -> str:
        arrow = "" if self.source_key == self.target_key else f" -> {self.target_key}"
        status = "PASS" if self.passed else "FAIL"
        return f"{self.field_path}{arrow}: {status} | Expected: {self.expected!r} | Actual: {self.actual!r}"


@dataclass
class ValidationReport:
    """
    Complete validation results for one source/target document pair.

    Attributes:
        validation_id: Unique identifier for this validation run
        timestamp: When the validation was performed
        source_record_id: Identifier of the record being validated
        mapping_origin: Where the field-mapping table was loaded from
        assertions: Every assertion made, in evaluation order
        execution_time_ms: Validation execution time
        summary: Summary text (filled by generate_summary)
    """
    validation_id: str
    timestamp: datetime
    source_record_id: Optional[str] = None
    mapping_origin: Optional[str] = None
    assertions: List[FieldAssertion] = field(default_factory=list)
    execution_time_ms: float = 0.0
    summary: str = ""

    def add_assertion(self, assertion: FieldAssertion) -> None:
        self.assertions.append(assertion)

    @property
    def passed(self) -> bool:
        """Logical AND of every assertion."""
        return all(assertion.passed for assertion in self.assertions)

    @property
    def failed_assertions(self) -> List[FieldAssertion]:
        return [assertion for assertion in self.assertions if not assertion.passed]

    @property
    def mismatches(self) -> List[ValidationMismatch]:
        return [assertion.to_mismatch(self.source_record_id) for assertion in self.failed_assertions]

    @property
    def total_assertions(self) -> int:
        return len(self.assertions)

    @property
    def total_failures(self) -> int:
        return len(self.failed_assertions)

    def get_assertion(self, field_path: str) -> Optional[FieldAssertion]:
        """Return the first assertion recorded for `field_path`."""
        for assertion in self.assertions:
            if assertion.field_path == field_path:
                return assertion
        return None

    def get_assertions_by_scope(self, scope: str) -> List[FieldAssertion]:
        return [assertion for assertion in self.assertions if assertion.scope == scope]

    def raise_if_failed(self) -> None:
        """
        Raise ValidationFailedError listing every mismatch when the report failed.

        Raises:
            ValidationFailedError: If any assertion failed
        """
        if self.passed:
            return
        mismatches = self.mismatches
        details = "; ".join(str(mismatch) for mismatch in mismatches)
        raise ValidationFailedError(
            f"{len(mismatches)} field(s) mismatched for record {self.source_record_id}: {details}",
            mismatches=mismatches,
            source_record_id=self.source_record_id
        )

    def generate_summary(self) -> str:
        """Generate a summary of validation results."""
        summary_lines = [
            f"Validation Summary (ID: {self.validation_id})",
            f"Timestamp: {self.timestamp}",
            f"Record: {self.source_record_id}",
            f"Assertions: {self.total_assertions}",
            f"Failures: {self.total_failures}",
            f"Validation Passed: {'Yes' if self.passed else 'No'}",
            f"Execution Time: {self.execution_time_ms:.2f}ms",
            ""
        ]

        failed = self.failed_assertions
        if failed:
            summary_lines.append(f"Mismatches ({len(failed)}):")
            for assertion in failed:
                summary_lines.append(f"  - {assertion}")

        self.summary = "\n".join(summary_lines)
        return self.summary


@dataclass
class MappingTableIssue:
    """
    A structural problem in a field-mapping table.

    Attributes:
        category: Check that found the issue (structure, schema, coverage)
        severity: ERROR blocks validation runs, WARNING is informational
        message: What is wrong
        location: Scope path the issue was found in
        fix_guidance: How to correct the table
    """
    category: str
    severity: ValidationSeverity
    message: str
    location: str = "root"
    fix_guidance: Optional[str] = None

    def __str__(self) -> str:
        return f"[{self.severity.value.upper()}] {self.category} at {self.location}: {self.message}"


@dataclass
class MappingTableValidationResult:
    """Aggregated outcome of pre-flight field-mapping table validation."""
    is_valid: bool
    errors: List[MappingTableIssue] = field(default_factory=list)
    warnings: List[MappingTableIssue] = field(default_factory=list)

    def format_summary(self) -> str:
        lines = [f"Field mapping table: {'VALID' if self.is_valid else 'INVALID'} "
                 f"({len(self.errors)} errors, {len(self.warnings)} warnings)"]
        for issue in self.errors + self.warnings:
            lines.append(f"  - {issue}")
            if issue.fix_guidance:
                lines.append(f"    fix: {issue.fix_guidance}")
        return "\n".join(lines)
