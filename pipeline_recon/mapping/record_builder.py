"""
Record Builder - schema-driven construction of nested records from flat rows.

Walks a RecordSchema and copies the matching values out of a flat row,
recursing into nested record groups and arrays of records. The schema is
interpreted as data: every field it declares participates, in declaration
order, without per-field code.

Absent row fields are carried as None rather than a type-specific zero so the
comparator can tell "absent" from "present but empty". A nested group in the
row that the schema does not know about means the schema is out of sync with
the fixture and is reported immediately as SchemaMismatch.
"""

import logging

from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Optional

from ..models import FieldKind, Record, RecordSchema, SchemaField
from ..exceptions import SchemaMismatch


class RecordBuilder:
    """
    Builds immutable Record instances from flat rows against a RecordSchema.

    Usage:
        builder = RecordBuilder()
        record = builder.build(row, schema)
        payload = record.to_dict()
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def build(self, row: Mapping, schema: RecordSchema, source_record_id: Optional[str] = None) -> Record:
        """
        Build one record from one flat row.

        Args:
            row: Flat row; nested groups are sub-mappings, arrays of records are lists of mappings
            schema: Record schema to build against
            source_record_id: Optional identifier attached to raised errors

        Returns:
            Record with exactly the schema's fields, in schema order

        Raises:
            SchemaMismatch: If a nested field cannot be resolved against the schema
                or the row's shape disagrees with the field kind
        """
        return self._build_record(row, schema, "", source_record_id)

    def build_all(self, rows: Iterable[Mapping], schema: RecordSchema) -> List[Record]:
        """Build one record per row, preserving row order."""
        records = []
        for index, row in enumerate(rows):
            records.append(self.build(row, schema, source_record_id=str(index)))
        self.logger.info(f"Built {len(records)} records against schema {schema.full_name}")
        return records

    def _build_record(self, row: Mapping, schema: RecordSchema, path: str,
                      source_record_id: Optional[str]) -> Record:
        self._check_undeclared_groups(row, schema, path, source_record_id)

        values: Dict[str, Any] = {}
        for schema_field in schema.fields:
            field_path = f"{path}.{schema_field.name}" if path else schema_field.name
            raw_value = row.get(schema_field.name)

            if raw_value is None:
                values[schema_field.name] = None
            elif schema_field.kind == FieldKind.RECORD:
                values[schema_field.name] = self._build_nested(raw_value, schema_field, field_path, source_record_id)
            elif schema_field.kind == FieldKind.ARRAY:
                values[schema_field.name] = self._build_array(raw_value, schema_field, field_path, source_record_id)
            else:
                values[schema_field.name] = _freeze(raw_value)

        return Record(schema, values)

    def _build_nested(self, raw_value: Any, schema_field: SchemaField, field_path: str,
                      source_record_id: Optional[str]) -> Record:
        sub_schema = self._require_sub_schema(schema_field, field_path, source_record_id)
        if not isinstance(raw_value, Mapping):
            raise SchemaMismatch(
                f"Field '{field_path}' is a nested record in schema {sub_schema.full_name} "
                f"but the row holds {type(raw_value).__name__}",
                field_path=field_path,
                schema_name=sub_schema.full_name,
                source_record_id=source_record_id
            )
        return self._build_record(raw_value, sub_schema, field_path, source_record_id)

    def _build_array(self, raw_value: Any, schema_field: SchemaField, field_path: str,
                     source_record_id: Optional[str]) -> tuple:
        element_schema = self._require_sub_schema(schema_field, field_path, source_record_id)
        if not isinstance(raw_value, (list, tuple)):
            raise SchemaMismatch(
                f"Field '{field_path}' is an array of {element_schema.full_name} "
                f"but the row holds {type(raw_value).__name__}",
                field_path=field_path,
                schema_name=element_schema.full_name,
                source_record_id=source_record_id
            )

        elements = []
        for index, entry in enumerate(raw_value):
            element_path = f"{field_path}[{index}]"
            if not isinstance(entry, Mapping):
                raise SchemaMismatch(
                    f"Element '{element_path}' must be a mapping for {element_schema.full_name}, "
                    f"got {type(entry).__name__}",
                    field_path=element_path,
                    schema_name=element_schema.full_name,
                    source_record_id=source_record_id
                )
            elements.append(self._build_record(entry, element_schema, element_path, source_record_id))
        return tuple(elements)

    def _require_sub_schema(self, schema_field: SchemaField, field_path: str,
                            source_record_id: Optional[str]) -> RecordSchema:
        if schema_field.schema is None:
            self.logger.error(f"Nested field '{field_path}' has no sub-schema")
            raise SchemaMismatch(
                f"Nested field '{field_path}' has no resolvable sub-schema",
                field_path=field_path,
                source_record_id=source_record_id
            )
        return schema_field.schema

    def _check_undeclared_groups(self, row: Mapping, schema: RecordSchema, path: str,
                                 source_record_id: Optional[str]) -> None:
        for key, value in row.items():
            if schema.get_field(key) is not None:
                continue
            field_path = f"{path}.{key}" if path else key
            if _is_group(value):
                self.logger.error(f"Row group '{field_path}' not declared in schema {schema.full_name}")
                raise SchemaMismatch(
                    f"Row carries nested group '{field_path}' that schema {schema.full_name} does not declare",
                    field_path=field_path,
                    schema_name=schema.full_name,
                    source_record_id=source_record_id
                )
            self.logger.debug(f"Ignoring undeclared row field '{field_path}'")


def _is_group(value: Any) -> bool:
    if isinstance(value, Mapping):
        return True
    if isinstance(value, (list, tuple)):
        return any(isinstance(entry, Mapping) for entry in value)
    return False


def _freeze(value: Any) -> Any:
    # Scalar arrays and maps are copied so later row edits cannot leak into the record
    if isinstance(value, list):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, Mapping):
        return {key: _freeze(item) for key, item in value.items()}
    return value


def build_record(row: Mapping, schema: RecordSchema) -> Record:
    """Build a record from a flat row with a default RecordBuilder."""
    return RecordBuilder().build(row, schema)


def build_records(rows: Iterable[Mapping], schema: RecordSchema) -> List[Record]:
    """Build one record per flat row, in row order."""
    return RecordBuilder().build_all(rows, schema)
