"""
Integration tests for RoundTripHarness against the in-memory document store.

Rows go through the real builder, transcoder, store serialization and
validator; the store subclasses below inject the failures a live store can
produce (rejected rows, lost rows, drifted values).
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from pipeline_recon.database.memory_store import InMemoryDocumentStore
from pipeline_recon.mapping.field_mapping_loader import load_field_mapping_table
from pipeline_recon.models import QueryPredicate
from pipeline_recon.processing.round_trip import RoundTripHarness
from pipeline_recon.exceptions import ConfigurationError, SchemaMismatch, StoreError, ValidationFailedError

from tests.helpers import SAMPLES_DIR, order_row, order_schema


pytestmark = pytest.mark.integration


class RejectingStore(InMemoryDocumentStore):
    """Rejects one order the way a constraint violation would."""

    def __init__(self, rejected_id):
        super().__init__()
        self.rejected_id = rejected_id

    def _check_row(self, index, record):
        if record.get("order_id") == self.rejected_id:
            return "Violation of CHECK constraint"
        return super()._check_row(index, record)


class LossyStore(InMemoryDocumentStore):
    """Loses the last matching document."""

    def query(self, target, predicate):
        return super().query(target, predicate)[:-1]


class DriftingStore(InMemoryDocumentStore):
    """Applies an edit to every retrieved document."""

    def __init__(self, edit):
        super().__init__()
        self.edit = edit

    def query(self, target, predicate):
        documents = super().query(target, predicate)
        for document in documents:
            self.edit(document)
        return documents


class CaseInsensitiveStore(InMemoryDocumentStore):
    """Orders results the way a case-insensitive collation does."""

    def query(self, target, predicate):
        documents = super().query(target, predicate)
        return sorted(documents, key=lambda document: str(document[predicate.field_name]).lower())


class SwappingStore(InMemoryDocumentStore):
    """Returns the first document twice in place of the second."""

    def query(self, target, predicate):
        documents = super().query(target, predicate)
        return [documents[0], documents[0]] + documents[2:]


@pytest.fixture
def mapping():
    return load_field_mapping_table(SAMPLES_DIR / "field-mappings.properties")


@pytest.fixture
def rows():
    second = order_row(orderId="ORD-002", totalAmount=49.5, discountApplied=True)
    second["customer"] = dict(second["customer"], customerId="CUST-002", phone=None)
    return [second, order_row()]


def _harness(store, mapping, **kwargs):
    kwargs.setdefault("settle_seconds", 0)
    return RoundTripHarness(store, order_schema(), mapping, **kwargs)


class TestRoundTrip:

    def test_all_records_match(self, mapping, rows):
        store = InMemoryDocumentStore()

        result = _harness(store, mapping).run(rows, target="orders")

        assert result.passed
        assert result.retrieved_count == 2
        assert result.record_ids == ["ORD-001", "ORD-002"]
        assert [report.source_record_id for report in result.reports] == ["ORD-001", "ORD-002"]
        assert result.insert_report.rows_inserted == 2
        result.raise_if_failed()

    def test_store_keeps_snake_case_documents(self, mapping, rows):
        store = InMemoryDocumentStore()

        _harness(store, mapping).run(rows, target="orders")

        stored = store.query("orders", QueryPredicate("order_id", ("ORD-001",)))
        assert stored[0]["shipping_address"]["zip_code"] == "62701"
        assert stored[0]["customer"]["loyalty_tier"] == "GOLD"

    def test_settle_delay(self, mapping, rows):
        sleep = Mock()

        _harness(InMemoryDocumentStore(), mapping, settle_seconds=5, sleep=sleep).run(rows)

        sleep.assert_called_once_with(5)

    def test_no_delay_when_settle_is_zero(self, mapping, rows):
        sleep = Mock()

        _harness(InMemoryDocumentStore(), mapping, sleep=sleep).run(rows)

        sleep.assert_not_called()

    def test_cleanup_removes_run_documents(self, mapping, rows):
        store = InMemoryDocumentStore()

        _harness(store, mapping, cleanup=True).run(rows, target="orders")

        assert store.query("orders", QueryPredicate("order_id", ("ORD-001", "ORD-002"))) == []

    def test_summary(self, mapping, rows):
        result = _harness(InMemoryDocumentStore(), mapping).run(rows)

        summary = result.generate_summary()

        assert "Records retrieved: 2" in summary
        assert "Mismatches: 0" in summary


class TestRoundTripFailures:

    def test_rejected_row_fails_the_run(self, mapping, rows):
        with pytest.raises(StoreError) as exc_info:
            _harness(RejectingStore("ORD-002"), mapping).run(rows, target="orders")

        assert list(exc_info.value.row_errors) == [1]
        assert "ORD-002" in str(exc_info.value)

    def test_lost_row_fails_count_check(self, mapping, rows):
        with pytest.raises(StoreError) as exc_info:
            _harness(LossyStore(), mapping).run(rows)

        assert "expected 2, actual 1" in str(exc_info.value)

    def test_drifted_value_is_reported_per_record(self, mapping, rows):
        def bump_first_order(document):
            if document["order_id"] == "ORD-001":
                document["items"][0]["quantity"] = 3

        result = _harness(DriftingStore(bump_first_order), mapping).run(rows)

        assert not result.passed
        assert result.total_failures == 1
        assert result.mismatches[0].field_path == "items[0].quantity"
        assert result.get_report("ORD-002").passed
        with pytest.raises(ValidationFailedError):
            result.raise_if_failed()

    def test_store_order_does_not_affect_pairing(self, mapping):
        rows = [order_row(orderId="a_1"), order_row(orderId="B_2", totalAmount=12.5)]

        result = _harness(CaseInsensitiveStore(), mapping).run(rows)

        assert result.passed, result.generate_summary()
        assert result.record_ids == ["B_2", "a_1"]
        assert result.get_report("B_2").get_assertion("totalAmount").actual == 12.5

    def test_repeated_retrieved_identifier(self, mapping, rows):
        with pytest.raises(StoreError) as exc_info:
            _harness(SwappingStore(), mapping).run(rows)

        assert "more than one document" in str(exc_info.value)

    def test_repeated_row_identifier(self, mapping):
        with pytest.raises(SchemaMismatch) as exc_info:
            _harness(InMemoryDocumentStore(), mapping).run([order_row(), order_row()])

        assert exc_info.value.source_record_id == "ORD-001"

    def test_numeric_drift_within_tolerance_passes(self, mapping, rows):
        def drift(document):
            document["total_amount"] += 0.0004

        result = _harness(DriftingStore(drift), mapping).run(rows)

        assert result.passed

    def test_missing_identifier(self, mapping):
        with pytest.raises(SchemaMismatch):
            _harness(InMemoryDocumentStore(), mapping).run([order_row(orderId=None)])

    def test_unknown_identifier_field(self, mapping):
        with pytest.raises(ConfigurationError):
            _harness(InMemoryDocumentStore(), mapping, id_field="orderNumber")

    def test_negative_settle_seconds(self, mapping):
        with pytest.raises(ConfigurationError):
            _harness(InMemoryDocumentStore(), mapping, settle_seconds=-1)


class TestInMemoryDocumentStore:

    def test_serialization_drift(self):
        store = InMemoryDocumentStore()

        store.insert("orders", [{"order_id": "A", "amounts": (1, 2), "total": Decimal("1.25")}])

        document = store.query("orders", QueryPredicate("order_id", ("A",)))[0]
        assert document == {"order_id": "A", "amounts": [1, 2], "total": 1.25}

    def test_non_object_row_is_a_row_error(self):
        report = InMemoryDocumentStore().insert("orders", [{"order_id": "A"}, ["B"]])

        assert report.failed_rows == [1]

    def test_missing_target(self):
        store = InMemoryDocumentStore(auto_create=False)

        with pytest.raises(StoreError):
            store.insert("orders", [{"order_id": "A"}])
        with pytest.raises(StoreError):
            store.query("orders", QueryPredicate("order_id", ("A",)))

    def test_order_by_sorts_as_text(self):
        store = InMemoryDocumentStore()
        store.insert("orders", [{"order_id": 10}, {"order_id": 9}])

        documents = store.query("orders", QueryPredicate("order_id", (9, 10), order_by="order_id"))

        assert [document["order_id"] for document in documents] == [10, 9]

    def test_delete(self):
        store = InMemoryDocumentStore()
        store.insert("orders", [{"order_id": "A"}, {"order_id": "B"}])

        assert store.delete("orders", QueryPredicate("order_id", ("A",))) == 1
        assert store.delete("missing", QueryPredicate("order_id", ("A",))) == 0
        assert store.table_exists("orders")
