"""
Round-trip harness - store, retrieve and reconcile a batch of fixture rows.

Drives one end-to-end pipeline check:

1. Build one Record per flat row against the schema
2. Transcode every record into the store's naming convention
3. Insert the documents (any per-row error fails the run)
4. Wait for the store to settle
5. Query the documents back by identifier, ordered by identifier
6. Check the retrieved count equals the input count
7. Validate each (record, retrieved document) pair with the mapping table

Retrieved documents are matched to records by identifier text, so the order
the store returns them in never matters. A missing or duplicated identifier in
the retrieved batch fails the run.
"""

import logging
import time

from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ..interfaces import DocumentStoreInterface
from ..models import FieldMappingTable, InsertReport, QueryPredicate, Record, RecordSchema
from ..exceptions import ConfigurationError, SchemaMismatch, StoreError, ValidationFailedError
from ..mapping.naming import NamingRule, camel_to_snake, transcode
from ..mapping.record_builder import RecordBuilder
from ..validation.mapping_validator import MappingValidator
from ..validation.value_comparator import ValueComparator
from ..validation.validation_models import ValidationReport
from ..config.recon_defaults import ReconDefaults


@dataclass
class RoundTripResult:
    """
    Outcome of one round trip.

    Attributes:
        target: Store target written to and read from
        record_ids: Identifiers of the records sent, in identifier order
        insert_report: What the store reported for the insert
        reports: One ValidationReport per record, in identifier order
        retrieved_count: Number of documents the query returned
        execution_time_ms: Wall time of the whole run, settle delay included
    """
    target: str
    record_ids: List[Any] = field(default_factory=list)
    insert_report: Optional[InsertReport] = None
    reports: List[ValidationReport] = field(default_factory=list)
    retrieved_count: int = 0
    execution_time_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return all(report.passed for report in self.reports)

    @property
    def total_failures(self) -> int:
        return sum(report.total_failures for report in self.reports)

    @property
    def mismatches(self):
        return [mismatch for report in self.reports for mismatch in report.mismatches]

    def get_report(self, record_id: Any) -> Optional[ValidationReport]:
        for report in self.reports:
            if report.source_record_id == str(record_id):
                return report
        return None

    def raise_if_failed(self) -> None:
        """
        Raise ValidationFailedError listing every mismatch of every record.

        Raises:
            ValidationFailedError: If any record failed validation
        """
        if self.passed:
            return
        mismatches = self.mismatches
        raise ValidationFailedError(
            f"{len(mismatches)} field(s) mismatched across {len(self.reports)} records in {self.target}: "
            + "; ".join(str(mismatch) for mismatch in mismatches),
            mismatches=mismatches
        )

    def generate_summary(self) -> str:
        lines = [
            f"Round trip against {self.target}",
            f"Records sent: {len(self.record_ids)}",
            f"Records retrieved: {self.retrieved_count}",
            f"Records passed: {sum(1 for report in self.reports if report.passed)}",
            f"Mismatches: {self.total_failures}",
            f"Execution Time: {self.execution_time_ms:.2f}ms",
        ]
        for report in self.reports:
            if not report.passed:
                lines.append(f"Record {report.source_record_id}:")
                lines.extend(f"  - {assertion}" for assertion in report.failed_assertions)
        return "\n".join(lines)


class RoundTripHarness:
    """
    Runs fixture rows through a document store and reconciles what comes back.

    Usage:
        harness = RoundTripHarness(InMemoryDocumentStore(), schema, mapping_table, settle_seconds=0)
        result = harness.run(rows, target="orders")
        result.raise_if_failed()
    """

    def __init__(self, store: DocumentStoreInterface, schema: RecordSchema, mapping: FieldMappingTable,
                 comparator: Optional[ValueComparator] = None, naming_rule: NamingRule = camel_to_snake,
                 id_field: str = ReconDefaults.ID_FIELD, settle_seconds: float = ReconDefaults.SETTLE_SECONDS,
                 cleanup: bool = False, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the harness.

        Args:
            store: Document store to round-trip through
            schema: Schema the rows are built against
            mapping: Field-mapping table correlating records and retrieved documents
            comparator: Value comparator; defaults to the standard tolerance
            naming_rule: Rule turning record keys into store keys
            id_field: Top-level record field identifying each record
            settle_seconds: Delay between insert and query
            cleanup: Delete the run's documents after validation
            sleep: Delay function (replaced in tests)

        Raises:
            ConfigurationError: If the schema does not declare the identifier field
        """
        self.logger = logging.getLogger(__name__)

        if schema.get_field(id_field) is None:
            raise ConfigurationError(f"Identifier field '{id_field}' is not declared by schema {schema.full_name}")
        if settle_seconds < 0:
            raise ConfigurationError("settle_seconds cannot be negative")

        self.store = store
        self.schema = schema
        self.mapping = mapping
        self.naming_rule = naming_rule
        self.id_field = id_field
        self.settle_seconds = settle_seconds
        self.cleanup = cleanup
        self._sleep = sleep

        self.builder = RecordBuilder()
        self.validator = MappingValidator(comparator)

    def run(self, rows: Sequence[Mapping], target: str = ReconDefaults.TARGET_TABLE) -> RoundTripResult:
        """
        Run the full round trip for a batch of flat rows.

        Returns:
            RoundTripResult with one ValidationReport per record

        Raises:
            SchemaMismatch: If a row cannot be built, lacks its identifier or repeats one
            StoreError: If any row fails to insert, the retrieved count differs or a
                retrieved identifier is missing or repeated
            MappingConfigError: If the mapping table cannot be applied
        """
        start_time = time.time()
        result = RoundTripResult(target=target)

        records = self.builder.build_all(rows, self.schema)
        ordered = self._order_by_identifier(records)
        result.record_ids = [record_id for record_id, _ in ordered]

        documents = [transcode(record.to_dict(), self.naming_rule) for _, record in ordered]
        result.insert_report = self.store.insert(target, documents)
        if result.insert_report.has_errors:
            failed = ", ".join(str(result.record_ids[index]) for index in result.insert_report.failed_rows)
            self.logger.error(f"Insert into {target} rejected records: {failed}")
            raise StoreError(
                f"Insert into {target} failed for {len(result.insert_report.row_errors)} of "
                f"{result.insert_report.rows_attempted} rows ({failed})",
                target=target,
                row_errors=result.insert_report.row_errors
            )

        if self.settle_seconds:
            self.logger.info(f"Waiting {self.settle_seconds}s for {target} to settle")
            self._sleep(self.settle_seconds)

        store_id_field = self.naming_rule(self.id_field)
        predicate = QueryPredicate(store_id_field, tuple(result.record_ids), order_by=store_id_field)
        retrieved = self.store.query(target, predicate)
        result.retrieved_count = len(retrieved)

        if len(retrieved) != len(records):
            self.logger.error(f"Expected {len(records)} documents from {target}, retrieved {len(retrieved)}")
            raise StoreError(
                f"Retrieved document count should match: expected {len(records)}, actual {len(retrieved)}",
                target=target
            )

        by_identifier = self._index_by_identifier(retrieved, store_id_field, target)
        for record_id, record in ordered:
            document = by_identifier.get(str(record_id))
            if document is None:
                self.logger.error(f"Record {record_id} was not retrieved from {target}")
                raise StoreError(
                    f"No document with {store_id_field}={record_id!r} was retrieved from {target}",
                    target=target
                )
            report = self.validator.validate(record.to_dict(), document, self.mapping,
                                             source_record_id=str(record_id))
            result.reports.append(report)

        if self.cleanup:
            self.store.delete(target, predicate)

        result.execution_time_ms = (time.time() - start_time) * 1000
        if result.passed:
            self.logger.info(f"Round trip against {target}: all {len(records)} records matched")
        else:
            self.logger.warning(f"Round trip against {target}: {result.total_failures} mismatches")
        return result

    def _order_by_identifier(self, records: List[Record]) -> List[tuple]:
        keyed = []
        seen = set()
        for index, record in enumerate(records):
            record_id = record.get(self.id_field)
            if record_id is None:
                raise SchemaMismatch(
                    f"Row {index} has no value for identifier field '{self.id_field}'",
                    field_path=self.id_field,
                    schema_name=self.schema.full_name,
                    source_record_id=str(index)
                )
            if str(record_id) in seen:
                raise SchemaMismatch(
                    f"Row {index} repeats identifier {record_id!r}",
                    field_path=self.id_field,
                    schema_name=self.schema.full_name,
                    source_record_id=str(record_id)
                )
            seen.add(str(record_id))
            keyed.append((record_id, record))
        return sorted(keyed, key=lambda pair: str(pair[0]))

    def _index_by_identifier(self, documents: List[Any], store_id_field: str, target: str) -> dict:
        indexed = {}
        for document in documents:
            record_id = document.get(store_id_field) if isinstance(document, Mapping) else None
            if record_id is None:
                raise StoreError(
                    f"Retrieved document from {target} has no '{store_id_field}'",
                    target=target
                )
            key = str(record_id)
            if key in indexed:
                raise StoreError(
                    f"Retrieved more than one document from {target} with {store_id_field}={key!r}",
                    target=target
                )
            indexed[key] = document
        return indexed
