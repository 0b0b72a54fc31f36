"""
Mapping Table Validator - pre-flight validation for field-mapping tables.

Checks a FieldMappingTable BEFORE any document is validated, so a table that
can never resolve is reported at startup instead of as a cascade of
mismatches on the first record.

Scope:
    - VALIDATES: Scope structure, duplicate targets, agreement with the record schema
    - DOES NOT VALIDATE: Document values or store contents
    - An uncovered schema field is a warning: not every field must be reconciled
"""

from collections import Counter
from typing import List, Optional

from ..models import FieldKind, FieldMappingTable, MappingScope, RecordSchema, ScopeKind
from .validation_models import MappingTableIssue, MappingTableValidationResult, ValidationSeverity


_SCHEMA_KIND_FOR_SCOPE = {
    ScopeKind.OBJECT: FieldKind.RECORD,
    ScopeKind.ARRAY: FieldKind.ARRAY,
}


class MappingTableValidator:
    """
    Validates field-mapping table structure and, optionally, its agreement with a schema.

    Validation Categories:
        1. Structure: empty scopes, duplicate target keys within a scope
        2. Schema: source keys the schema does not declare, scope kind vs field kind
        3. Coverage: schema fields no scope maps

    Usage:
        validator = MappingTableValidator(table, schema)
        result = validator.validate_table()
        if not result.is_valid:
            print(result.format_summary())
            return 1
    """

    def __init__(self, table: FieldMappingTable, schema: Optional[RecordSchema] = None):
        """
        Initialize validator with a mapping table.

        Args:
            table: Field-mapping table to check
            schema: Record schema of the source documents; schema checks are skipped when None
        """
        self.table = table
        self.schema = schema
        self.errors: List[MappingTableIssue] = []
        self.warnings: List[MappingTableIssue] = []

    def validate_table(self) -> MappingTableValidationResult:
        """
        Perform full table validation.

        Validation continues after errors so every issue is reported at once.

        Returns:
            MappingTableValidationResult with all errors and warnings
        """
        self.errors.clear()
        self.warnings.clear()

        self._validate_structure(self.table.root, "root")
        if self.schema is not None:
            self._validate_against_schema(self.table.root, self.schema, "root")

        return MappingTableValidationResult(
            is_valid=len(self.errors) == 0,
            errors=self.errors.copy(),
            warnings=self.warnings.copy()
        )

    def _validate_structure(self, scope: MappingScope, location: str) -> None:
        if scope.is_empty:
            self.errors.append(MappingTableIssue(
                category="structure",
                severity=ValidationSeverity.ERROR,
                message=f"Scope '{location}' declares no fields",
                location=location,
                fix_guidance="List at least one sourceKey=targetKey pair inside the brackets, or remove the scope"
            ))

        targets = [rename.target_key for rename in scope.fields] + [child.target_key for child in scope.scopes]
        for target_key, count in Counter(targets).items():
            if count > 1:
                self.warnings.append(MappingTableIssue(
                    category="structure",
                    severity=ValidationSeverity.WARNING,
                    message=f"Target key '{target_key}' is mapped {count} times in scope '{location}'",
                    location=location,
                    fix_guidance="Check for a copy/paste error; each target field usually has one source"
                ))

        for child in scope.scopes:
            self._validate_structure(child, _child_location(location, child))

    def _validate_against_schema(self, scope: MappingScope, schema: RecordSchema, location: str) -> None:
        for rename in scope.fields:
            if schema.get_field(rename.source_key) is None:
                self.errors.append(self._unknown_field_issue(rename.source_key, schema, location))

        for child in scope.scopes:
            child_location = _child_location(location, child)
            schema_field = schema.get_field(child.source_key)
            if schema_field is None:
                self.errors.append(self._unknown_field_issue(child.source_key, schema, location))
                continue

            expected_kind = _SCHEMA_KIND_FOR_SCOPE[child.kind]
            if schema_field.kind != expected_kind:
                self.errors.append(MappingTableIssue(
                    category="schema",
                    severity=ValidationSeverity.ERROR,
                    message=(f"Scope '{child_location}' is declared as {child.kind.value} but schema field "
                             f"'{schema_field.name}' is {schema_field.kind.value}"),
                    location=child_location,
                    fix_guidance="Use '{...}' for nested records and '[...]' for arrays of records"
                ))
                continue

            if schema_field.schema is not None:
                self._validate_against_schema(child, schema_field.schema, child_location)

        covered = {rename.source_key for rename in scope.fields} | {child.source_key for child in scope.scopes}
        for name in schema.field_names:
            if name not in covered:
                self.warnings.append(MappingTableIssue(
                    category="coverage",
                    severity=ValidationSeverity.WARNING,
                    message=f"Schema field '{name}' of {schema.full_name} is not mapped in scope '{location}'",
                    location=location,
                    fix_guidance=f"Add '{name}=<target>' if the field should be reconciled"
                ))

    def _unknown_field_issue(self, source_key: str, schema: RecordSchema, location: str) -> MappingTableIssue:
        return MappingTableIssue(
            category="schema",
            severity=ValidationSeverity.ERROR,
            message=f"Source key '{source_key}' in scope '{location}' is not declared by schema {schema.full_name}",
            location=location,
            fix_guidance=f"Use one of: {', '.join(schema.field_names)}"
        )


def _child_location(location: str, child: MappingScope) -> str:
    return child.name if location == "root" else f"{location}.{child.name}"
