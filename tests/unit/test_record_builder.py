"""
Unit tests for RecordBuilder.

Covers schema-ordered construction, nested records and arrays of records,
absent-field handling and the SchemaMismatch paths for rows that disagree
with their schema.
"""

import copy
import unittest

from pipeline_recon.mapping.record_builder import RecordBuilder, build_record, build_records
from pipeline_recon.models import FieldKind, Record, RecordSchema, SchemaField
from pipeline_recon.exceptions import SchemaMismatch

from tests.helpers import order_row, order_schema


class TestRecordConstruction(unittest.TestCase):
    """Happy-path construction against the order schema."""

    def setUp(self):
        self.schema = order_schema()
        self.builder = RecordBuilder()

    def test_fields_follow_schema_order(self):
        row = order_row()
        reordered = dict(reversed(list(row.items())))

        record = self.builder.build(reordered, self.schema)

        self.assertEqual(list(record.keys()), self.schema.field_names)

    def test_nested_record_and_array_of_records(self):
        record = self.builder.build(order_row(), self.schema)

        self.assertIsInstance(record["customer"], Record)
        self.assertEqual(record["customer"]["name"], "John Doe")
        self.assertIsInstance(record["items"], tuple)
        self.assertEqual(len(record["items"]), 1)
        self.assertIsInstance(record["items"][0], Record)
        self.assertEqual(record["items"][0]["quantity"], 2)
        self.assertEqual(record["shippingAddress"]["zipCode"], "62701")

    def test_array_order_is_preserved(self):
        row = order_row(items=[
            {"productId": "P1", "productName": "A", "quantity": 1, "unitPrice": 1.0},
            {"productId": "P2", "productName": "B", "quantity": 2, "unitPrice": 2.0},
            {"productId": "P3", "productName": "C", "quantity": 3, "unitPrice": 3.0},
        ])

        record = self.builder.build(row, self.schema)

        self.assertEqual([item["productId"] for item in record["items"]], ["P1", "P2", "P3"])
        self.assertIsNone(record["items"][0]["category"])

    def test_absent_fields_are_none_not_type_zero(self):
        row = order_row()
        del row["totalAmount"]
        del row["customer"]["phone"]
        del row["shippingAddress"]

        record = self.builder.build(row, self.schema)

        self.assertIn("totalAmount", record)
        self.assertIsNone(record["totalAmount"])
        self.assertIsNone(record["customer"]["phone"])
        self.assertIsNone(record["shippingAddress"])

    def test_empty_array_builds_empty_tuple(self):
        record = self.builder.build(order_row(items=[]), self.schema)

        self.assertEqual(record["items"], ())
        self.assertEqual(record.to_dict()["items"], [])

    def test_extra_scalar_keys_are_ignored(self):
        row = order_row(promoCode="SPRING")

        record = self.builder.build(row, self.schema)

        self.assertNotIn("promoCode", record)
        self.assertEqual(len(record), len(self.schema.fields))

    def test_row_is_not_mutated(self):
        row = order_row()
        snapshot = copy.deepcopy(row)

        self.builder.build(row, self.schema)

        self.assertEqual(row, snapshot)

    def test_to_dict_produces_plain_document(self):
        document = self.builder.build(order_row(), self.schema).to_dict()

        self.assertIs(type(document), dict)
        self.assertIs(type(document["customer"]), dict)
        self.assertIs(type(document["items"]), list)
        self.assertIs(type(document["items"][0]), dict)
        self.assertEqual(document["items"][0]["unitPrice"], 29.99)

    def test_record_is_read_only(self):
        record = self.builder.build(order_row(), self.schema)

        with self.assertRaises(TypeError):
            record["orderId"] = "changed"

    def test_build_records_preserves_row_order(self):
        rows = [order_row(orderId="B"), order_row(orderId="A")]

        records = build_records(rows, self.schema)

        self.assertEqual([record["orderId"] for record in records], ["B", "A"])

    def test_build_record_module_function(self):
        record = build_record(order_row(), self.schema)

        self.assertEqual(record["orderId"], "ORD-001")
        self.assertIs(record.schema, self.schema)


class TestSchemaMismatch(unittest.TestCase):
    """Rows whose shape disagrees with the schema fail immediately."""

    def setUp(self):
        self.schema = order_schema()
        self.builder = RecordBuilder()

    def test_undeclared_nested_group_raises(self):
        row = order_row(promotion={"code": "SPRING", "percent": 10})

        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build(row, self.schema)

        self.assertEqual(context.exception.field_path, "promotion")
        self.assertEqual(context.exception.schema_name, "org.example.orders.Order")

    def test_undeclared_group_inside_nested_record_reports_full_path(self):
        row = order_row()
        row["customer"]["address"] = {"city": "Springfield"}

        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build(row, self.schema)

        self.assertEqual(context.exception.field_path, "customer.address")

    def test_undeclared_list_of_groups_raises(self):
        row = order_row(coupons=[{"code": "A"}])

        with self.assertRaises(SchemaMismatch):
            self.builder.build(row, self.schema)

    def test_record_field_holding_scalar_raises(self):
        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build(order_row(customer="CUST-001"), self.schema)

        self.assertEqual(context.exception.field_path, "customer")

    def test_array_field_holding_mapping_raises(self):
        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build(order_row(items={"productId": "P1"}), self.schema)

        self.assertEqual(context.exception.field_path, "items")

    def test_array_entry_that_is_not_a_mapping_raises(self):
        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build(order_row(items=["PROD-001"]), self.schema)

        self.assertEqual(context.exception.field_path, "items[0]")

    def test_nested_field_without_sub_schema_raises(self):
        schema = RecordSchema("Broken", (
            SchemaField("id"),
            SchemaField("customer", FieldKind.RECORD, "record"),
        ))

        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build({"id": "1", "customer": {"name": "x"}}, schema)

        self.assertEqual(context.exception.field_path, "customer")

    def test_source_record_id_is_attached(self):
        rows = [order_row(), order_row(customer="bad")]

        with self.assertRaises(SchemaMismatch) as context:
            self.builder.build_all(rows, self.schema)

        self.assertEqual(context.exception.source_record_id, "1")


if __name__ == '__main__':
    unittest.main()
