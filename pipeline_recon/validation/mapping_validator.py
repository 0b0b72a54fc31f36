"""
Mapping-Driven Validator - structural comparison of two differently shaped documents.

Walks a source document (the record that was sent to the store) and a target
document (what the store returned) together, guided by a FieldMappingTable
that says which field of the source corresponds to which field of the target
at every nesting level. The ValueComparator decides equality at each declared
correspondence; the validator records one named assertion per check.

Validation Flow:
1. Root scope: every (source_key -> target_key) rename is compared
2. Nested scopes, in declaration order:
   - Locate the container in both documents via the scope's own key pair
   - Assert presence agreement (both null or both non-null)
   - Object scope: recurse with the scope's member renames and child scopes
   - Array scope: assert equal length (stop on mismatch), then apply the
     scope's renames to each positional element pair

Every assertion is evaluated; the verdict is the AND of all of them and each
failure is individually addressable in the report. Only an unresolvable
mapping table (a field or container key present in neither document, or a
source value contradicting the declared scope kind) aborts validation, with
MappingConfigError.
"""

import logging
import time
import uuid

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from ..interfaces import RecordValidatorInterface
from ..models import FieldMappingTable, MappingScope, ScopeKind
from ..exceptions import MappingConfigError
from .value_comparator import ValueComparator
from .validation_models import AssertionKind, FieldAssertion, ValidationReport


def _join(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class MappingValidator(RecordValidatorInterface):
    """
    Validates retrieved documents against the documents that were stored.

    Usage:
        validator = MappingValidator(ValueComparator(tolerance=0.001))
        report = validator.validate(record.to_dict(), retrieved, mapping_table)
        report.raise_if_failed()
    """

    def __init__(self, comparator: Optional[ValueComparator] = None):
        """
        Initialize the validator.

        Args:
            comparator: ValueComparator used at every correspondence. Defaults to
                the standard tolerance with nested object failures propagating.
        """
        self.logger = logging.getLogger(__name__)
        self.comparator = comparator or ValueComparator()

    def validate(self, source_doc: Mapping, target_doc: Mapping, mapping: FieldMappingTable,
                 source_record_id: Optional[str] = None) -> ValidationReport:
        """
        Validate one source/target document pair.

        Args:
            source_doc: Document in source naming (e.g. Record or Record.to_dict())
            target_doc: Document retrieved from the store, in target naming
            mapping: Field-mapping table correlating the two
            source_record_id: Optional identifier used in the report and mismatches

        Returns:
            ValidationReport with every assertion made

        Raises:
            MappingConfigError: If the mapping table cannot be resolved against the documents
        """
        start_time = time.time()
        report = ValidationReport(
            validation_id=str(uuid.uuid4()),
            timestamp=datetime.now(),
            source_record_id=source_record_id,
            mapping_origin=mapping.origin
        )

        if not isinstance(source_doc, Mapping):
            raise MappingConfigError(
                f"Source document must be an object, got {type(source_doc).__name__}",
                scope="root"
            )

        if isinstance(target_doc, Mapping):
            self._validate_scope(source_doc, target_doc, mapping.root, "", "root", report)
        else:
            report.add_assertion(FieldAssertion(
                field_path="<root>", scope="root", source_key="<root>", target_key="<root>",
                expected="object", actual=type(target_doc).__name__, passed=False,
                kind=AssertionKind.SHAPE, message="retrieved document is not an object"
            ))

        report.execution_time_ms = (time.time() - start_time) * 1000
        report.generate_summary()

        if report.passed:
            self.logger.info(f"Record {source_record_id}: {report.total_assertions} assertions PASSED")
        else:
            self.logger.warning(
                f"Record {source_record_id}: {report.total_failures} of {report.total_assertions} assertions FAILED"
            )
            for assertion in report.failed_assertions:
                self.logger.warning(f"  {assertion}")
        return report

    def _validate_scope(self, source: Mapping, target: Mapping, scope: MappingScope,
                        prefix: str, scope_path: str, report: ValidationReport) -> None:
        for rename in scope.fields:
            field_path = _join(prefix, rename.source_key)
            if rename.source_key not in source and rename.target_key not in target:
                raise MappingConfigError(
                    f"Scope '{scope_path}' names field '{rename.source_key}' -> '{rename.target_key}' "
                    f"which exists in neither document at '{field_path}'",
                    scope=scope_path,
                    field_name=rename.source_key
                )
            expected = source.get(rename.source_key)
            actual = target.get(rename.target_key)
            passed = self.comparator.compare(expected, actual, field_path)
            report.add_assertion(FieldAssertion(
                field_path=field_path,
                scope=scope_path,
                source_key=rename.source_key,
                target_key=rename.target_key,
                expected=expected,
                actual=actual,
                passed=passed
            ))
            self.logger.debug(str(report.assertions[-1]))

        for child in scope.scopes:
            child_path = child.name if scope.kind == ScopeKind.ROOT else f"{scope_path}.{child.name}"
            self._validate_child_scope(source, target, child, prefix, child_path, report)

    def _validate_child_scope(self, source: Mapping, target: Mapping, scope: MappingScope,
                              prefix: str, scope_path: str, report: ValidationReport) -> None:
        container_path = _join(prefix, scope.source_key)

        if scope.source_key not in source and scope.target_key not in target:
            raise MappingConfigError(
                f"Scope '{scope_path}' names container '{scope.source_key}' -> '{scope.target_key}' "
                f"which exists in neither document at '{container_path}'",
                scope=scope_path,
                field_name=scope.source_key
            )

        source_value = source.get(scope.source_key)
        target_value = target.get(scope.target_key)

        presence_ok = (source_value is None) == (target_value is None)
        if not presence_ok:
            self._add_failure(report, container_path, scope, scope_path, source_value, target_value,
                              AssertionKind.PRESENCE, "should both be present or both be null")
            return
        if source_value is None:
            self._add_pass(report, container_path, scope, scope_path, None, None, AssertionKind.PRESENCE)
            return

        if scope.kind == ScopeKind.ARRAY:
            self._validate_array_scope(source_value, target_value, scope, container_path, scope_path, report)
        else:
            self._validate_object_scope(source_value, target_value, scope, container_path, scope_path, report)

    def _validate_object_scope(self, source_value: Any, target_value: Any, scope: MappingScope,
                               container_path: str, scope_path: str, report: ValidationReport) -> None:
        if not isinstance(source_value, Mapping):
            raise MappingConfigError(
                f"Scope '{scope_path}' is declared as an object but source '{container_path}' "
                f"holds {type(source_value).__name__}",
                scope=scope_path,
                field_name=scope.source_key
            )
        if not isinstance(target_value, Mapping):
            self._add_failure(report, container_path, scope, scope_path, "object",
                              type(target_value).__name__, AssertionKind.SHAPE,
                              "retrieved value is not an object")
            return

        self._add_pass(report, container_path, scope, scope_path, "object", "object", AssertionKind.PRESENCE)
        self._validate_scope(source_value, target_value, scope, container_path, scope_path, report)

    def _validate_array_scope(self, source_value: Any, target_value: Any, scope: MappingScope,
                              container_path: str, scope_path: str, report: ValidationReport) -> None:
        if not _is_array(source_value):
            raise MappingConfigError(
                f"Scope '{scope_path}' is declared as an array but source '{container_path}' "
                f"holds {type(source_value).__name__}",
                scope=scope_path,
                field_name=scope.source_key
            )
        if not _is_array(target_value):
            self._add_failure(report, container_path, scope, scope_path, "array",
                              type(target_value).__name__, AssertionKind.SHAPE,
                              "retrieved value is not an array")
            return

        if len(source_value) != len(target_value):
            self._add_failure(report, container_path, scope, scope_path, len(source_value),
                              len(target_value), AssertionKind.ARRAY_LENGTH, "array size should match")
            return
        self._add_pass(report, container_path, scope, scope_path, len(source_value), len(target_value),
                       AssertionKind.ARRAY_LENGTH)

        for index, (source_element, target_element) in enumerate(zip(source_value, target_value)):
            element_path = f"{container_path}[{index}]"
            if not isinstance(source_element, Mapping):
                raise MappingConfigError(
                    f"Scope '{scope_path}' maps fields of array elements but source '{element_path}' "
                    f"holds {type(source_element).__name__}",
                    scope=scope_path,
                    field_name=scope.source_key
                )
            if not isinstance(target_element, Mapping):
                self._add_failure(report, element_path, scope, scope_path, "object",
                                  type(target_element).__name__, AssertionKind.SHAPE,
                                  "retrieved array element is not an object")
                continue
            self._validate_scope(source_element, target_element, scope, element_path, scope_path, report)

    def _add_failure(self, report: ValidationReport, field_path: str, scope: MappingScope, scope_path: str,
                     expected: Any, actual: Any, kind: AssertionKind, message: str) -> None:
        report.add_assertion(FieldAssertion(
            field_path=field_path, scope=scope_path,
            source_key=scope.source_key, target_key=scope.target_key,
            expected=expected, actual=actual, passed=False, kind=kind, message=message
        ))
        self.logger.debug(str(report.assertions[-1]))

    def _add_pass(self, report: ValidationReport, field_path: str, scope: MappingScope, scope_path: str,
                  expected: Any, actual: Any, kind: AssertionKind) -> None:
        report.add_assertion(FieldAssertion(
            field_path=field_path, scope=scope_path,
            source_key=scope.source_key, target_key=scope.target_key,
            expected=expected, actual=actual, passed=True, kind=kind
        ))


def validate_documents(source_doc: Mapping, target_doc: Mapping, mapping: FieldMappingTable,
                       comparator: Optional[ValueComparator] = None) -> ValidationReport:
    """Validate one document pair with a default MappingValidator."""
    return MappingValidator(comparator).validate(source_doc, target_doc, mapping)
