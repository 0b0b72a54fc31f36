"""
Contract tests for the shipped sample configuration.

The sample schema, field-mapping tables and fixture must stay consistent with
each other: every mapped source key exists in the schema, every schema field
is mapped, the structured and properties tables agree, and every target key is
what the default naming rule produces.
"""

import pytest

from pipeline_recon.schema.schema_loader import AvroSchemaLoader
from pipeline_recon.mapping.field_mapping_loader import FieldMappingLoader
from pipeline_recon.mapping.naming import camel_to_snake
from pipeline_recon.fixtures.row_reader import FixtureRowReader
from pipeline_recon.mapping.record_builder import build_records
from pipeline_recon.validation.mapping_table_validator import MappingTableValidator

from tests.helpers import SAMPLES_DIR, order_schema


@pytest.fixture(scope="module")
def schema():
    return AvroSchemaLoader(SAMPLES_DIR).load_schema("orders.avsc")


@pytest.fixture(scope="module", params=["field-mappings.properties", "field-mappings.yaml"])
def table(request):
    return FieldMappingLoader().load(SAMPLES_DIR / request.param)


def _shape(schema):
    return [(f.name, f.kind, f.type_name, f.nullable, _shape(f.schema) if f.schema else None)
            for f in schema.fields]


def _all_renames(scope):
    yield from scope.fields
    for child in scope.scopes:
        yield child
        yield from _all_renames(child)


def test_table_passes_preflight_against_schema(table, schema):
    result = MappingTableValidator(table, schema).validate_table()

    assert result.is_valid, result.format_summary()
    assert result.warnings == [], result.format_summary()


def test_target_keys_follow_default_naming_rule(table):
    for entry in _all_renames(table.root):
        assert entry.target_key == camel_to_snake(entry.source_key)


def test_test_helper_schema_mirrors_sample_schema(schema):
    assert _shape(order_schema()) == _shape(schema)


def test_sample_fixture_builds_against_schema(schema):
    rows = FixtureRowReader(schema).read(SAMPLES_DIR / "orders.csv")

    records = build_records(rows, schema)

    assert len(records) == 2
    assert all(record["items"] for record in records)
