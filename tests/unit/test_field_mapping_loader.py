"""
Unit tests for FieldMappingLoader.

Properties syntax, the structured JSON/YAML form, and load-time errors that
point at the offending line.
"""

import json

import pytest

from pipeline_recon.mapping.field_mapping_loader import (
    FieldMappingLoader, load_field_mapping_table, parse_field_mappings
)
from pipeline_recon.models import FieldRename, ScopeKind
from pipeline_recon.exceptions import MappingConfigError

from tests.helpers import SAMPLES_DIR


@pytest.fixture
def loader():
    return FieldMappingLoader()


class TestPropertiesSyntax:
    """Parsing rename declarations."""

    def test_root_renames(self, loader):
        table = loader.parse("orderId=order_id\ntotalAmount=total_amount")

        assert table.root.kind == ScopeKind.ROOT
        assert table.root.fields == (
            FieldRename("orderId", "order_id"),
            FieldRename("totalAmount", "total_amount"),
        )
        assert table.origin == "<string>"

    def test_object_and_array_scopes(self, loader):
        table = loader.parse(
            "customer={customerId=customer_id,name=name}\n"
            "items=[productId=product_id,quantity=quantity]"
        )

        customer = table.get_scope("customer")
        items = table.get_scope("items")
        assert customer.kind == ScopeKind.OBJECT
        assert customer.source_key == customer.target_key == "customer"
        assert [f.target_key for f in customer.fields] == ["customer_id", "name"]
        assert items.kind == ScopeKind.ARRAY
        assert items.fields[1] == FieldRename("quantity", "quantity")

    def test_renamed_container(self, loader):
        table = loader.parse("shippingAddress=shipping_address:{zipCode=zip_code}")

        scope = table.get_scope("shippingAddress")
        assert scope.source_key == "shippingAddress"
        assert scope.target_key == "shipping_address"
        assert scope.fields == (FieldRename("zipCode", "zip_code"),)

    def test_multi_level_scopes(self, loader):
        table = loader.parse("customer={name=name,homeAddress=home_address:{zipCode=zip_code}}")

        nested = table.get_scope("customer.homeAddress")
        assert nested.kind == ScopeKind.OBJECT
        assert nested.target_key == "home_address"
        assert [path for path, _ in table.iter_scopes()] == ["customer", "customer.homeAddress"]

    def test_comments_blank_lines_and_whitespace(self, loader):
        table = loader.parse(
            "# orders\n"
            "\n"
            "! legacy comment\n"
            "  customer = { customerId = customer_id , name = name }  \n"
        )

        assert [f.source_key for f in table.get_scope("customer").fields] == ["customerId", "name"]

    def test_empty_scope_parses(self, loader):
        table = loader.parse("customer={}")

        assert table.get_scope("customer").is_empty

    def test_parse_field_mappings_module_function(self):
        table = parse_field_mappings("orderId=order_id", origin="inline")

        assert table.origin == "inline"


class TestPropertiesErrors:
    """Malformed declarations fail at load time with the line number."""

    @pytest.mark.parametrize("text, line_number", [
        ("orderId=order_id\norderId", 2),
        ("customer={customerId=customer_id", 1),
        ("items=[productId=product_id}", 1),
        ("customer={customerId=customer_id}}", 1),
        ("orderId=", 1),
        ("=order_id", 1),
        ("customer={,}", 1),
        ("customer={name}", 1),
        ("orderId=order_id extra", 1),
        ("# header\n\norderId=order_id\norderId=order_number", 4),
        ("customer={name=a,name=b}", 1),
        ("a{b=c", 1),
        ("a:b=c", 1),
        ("orderId=order_id\ncustomer]=customer", 2),
    ])
    def test_error_carries_line_number(self, loader, text, line_number):
        with pytest.raises(MappingConfigError) as exc_info:
            loader.parse(text)

        assert exc_info.value.line_number == line_number
        assert f"Line {line_number}" in str(exc_info.value)

    def test_duplicate_reports_scope_and_field(self, loader):
        with pytest.raises(MappingConfigError) as exc_info:
            loader.parse("customer={name=a,name=b}")

        assert exc_info.value.scope == "customer"
        assert exc_info.value.field_name == "name"


class TestStructuredForm:
    """JSON and YAML mapping resources."""

    def test_yaml_sample_matches_properties_sample(self, loader):
        from_properties = loader.load(SAMPLES_DIR / "field-mappings.properties")
        from_yaml = loader.load(SAMPLES_DIR / "field-mappings.yaml")

        assert from_yaml.root == from_properties.root
        assert from_yaml.origin.endswith("field-mappings.yaml")

    def test_json_resource(self, loader, tmp_path):
        path = tmp_path / "mappings.json"
        path.write_text(json.dumps({
            "root": {
                "orderId": "order_id",
                "items": {"kind": "array", "fields": {"quantity": "qty"}},
            }
        }), encoding="utf-8")

        table = loader.load(path)

        assert table.root.fields == (FieldRename("orderId", "order_id"),)
        assert table.get_scope("items").kind == ScopeKind.ARRAY
        assert table.get_scope("items").fields == (FieldRename("quantity", "qty"),)

    def test_structure_without_root_raises(self, loader):
        with pytest.raises(MappingConfigError):
            loader.from_structure({"orderId": "order_id"})

    def test_scope_without_kind_raises(self, loader):
        with pytest.raises(MappingConfigError) as exc_info:
            loader.from_structure({"root": {"customer": {"fields": {"name": "name"}}}})

        assert exc_info.value.scope == "customer"

    def test_invalid_yaml_raises(self, loader, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("root: [unclosed", encoding="utf-8")

        with pytest.raises(MappingConfigError):
            loader.load(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(MappingConfigError):
            load_field_mapping_table(tmp_path / "absent.properties")

    def test_properties_file_origin_is_path(self, tmp_path):
        path = tmp_path / "orders.properties"
        path.write_text("orderId=order_id\n", encoding="utf-8")

        table = load_field_mapping_table(path)

        assert table.origin == str(path)
