"""
Schema source backed by Avro-style JSON schema files (.avsc).

Definitions are parsed with fastavro, then the subset of Avro that describes
tabular pipeline records is translated into an immutable RecordSchema:

- record                  -> RECORD field with a sub-schema
- array of record         -> ARRAY field with the element sub-schema
- array / map of scalars  -> SCALAR field ('array<long>', 'map<string>')
- ["null", T] unions      -> T, marked nullable
- primitives, enum, fixed -> SCALAR field carrying the type name
- named type references   -> the same RecordSchema instance as the definition

Self-referencing records are not supported.
"""

import json
import logging

from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple, Union

from fastavro.schema import SchemaParseException, UnknownType, parse_schema as parse_avro_schema

from ..interfaces import SchemaSourceInterface
from ..models import FieldKind, RecordSchema, SchemaField
from ..exceptions import SchemaLoadError


PRIMITIVE_TYPES = {"null", "boolean", "int", "long", "float", "double", "bytes", "string"}

# (kind, type_name, nullable, sub-schema)
ResolvedType = Tuple[FieldKind, str, bool, Optional[RecordSchema]]


class AvroSchemaLoader(SchemaSourceInterface):
    """
    Loads RecordSchema instances from Avro-style JSON files.

    Usage:
        loader = AvroSchemaLoader("config/samples")
        schema = loader.load_schema("orders.avsc")
    """

    def __init__(self, base_path: Optional[Union[str, Path]] = None):
        """
        Initialize the loader.

        Args:
            base_path: Directory relative identifiers are resolved against. Defaults to cwd.
        """
        self.logger = logging.getLogger(__name__)
        self.base_path = Path(base_path) if base_path else Path.cwd()

    def load_schema(self, identifier: str) -> RecordSchema:
        """
        Load a record schema from a file path.

        Raises:
            SchemaLoadError: If the file is missing, is not valid JSON or uses unsupported shapes
        """
        path = Path(identifier)
        if not path.is_absolute():
            path = self.base_path / path

        if not path.exists():
            raise SchemaLoadError(f"Schema file not found: {path}", identifier=str(identifier))

        try:
            with open(path, 'r', encoding='utf-8') as file:
                data = json.load(file)
        except json.JSONDecodeError as e:
            raise SchemaLoadError(f"Failed to parse schema file {path}: {e}", identifier=str(identifier))
        except OSError as e:
            raise SchemaLoadError(f"Failed to read schema file {path}: {e}", identifier=str(identifier))

        schema = self.parse_schema(data, identifier=str(identifier))
        self.logger.info(f"Loaded schema {schema.full_name} with {len(schema.fields)} fields from {path}")
        return schema

    def parse_schema(self, data: Any, identifier: str = "<inline>") -> RecordSchema:
        """
        Build a RecordSchema from an already decoded schema definition.

        The definition is first parsed by fastavro, which checks defaults, enum symbols
        and named type definitions, then translated into RecordSchema instances.

        Raises:
            SchemaLoadError: If the definition is not a valid Avro record or uses unsupported shapes
        """
        if not isinstance(data, dict) or data.get("type") != "record":
            raise SchemaLoadError(f"Top-level schema in {identifier} must be a record", identifier=identifier)

        named_schemas: Dict[str, Any] = {}
        try:
            parsed = parse_avro_schema(data, named_schemas)
        except UnknownType as e:
            raise SchemaLoadError(f"Schema {identifier} references unknown type '{e.name}'", identifier=identifier)
        except (SchemaParseException, KeyError, TypeError, ValueError) as e:
            raise SchemaLoadError(f"Invalid Avro schema {identifier}: {e}", identifier=identifier)

        return _SchemaTranslator(identifier, named_schemas).translate_record(parsed)


class _SchemaTranslator:
    """Single-use translation of one fastavro-parsed schema into RecordSchema instances."""

    def __init__(self, identifier: str, named_schemas: Dict[str, Any]):
        self.identifier = identifier
        self.named_schemas = named_schemas
        self.records: Dict[str, RecordSchema] = {}
        self.in_progress: Set[str] = set()

    def _fail(self, message: str):
        raise SchemaLoadError(f"{message} (schema {self.identifier})", identifier=self.identifier)

    def translate_record(self, parsed: Dict[str, Any]) -> RecordSchema:
        full_name = parsed["name"]
        if full_name in self.records:
            return self.records[full_name]
        if full_name in self.in_progress:
            self._fail(f"Record '{full_name}' refers to itself, which is not supported")
        self.in_progress.add(full_name)

        namespace, _, name = full_name.rpartition(".")
        fields = []
        for parsed_field in parsed.get("fields", []):
            field_path = f"{name}.{parsed_field['name']}"
            kind, type_name, nullable, sub_schema = self._resolve(parsed_field["type"], field_path)
            fields.append(SchemaField(
                name=parsed_field["name"],
                kind=kind,
                type_name=type_name,
                nullable=nullable,
                schema=sub_schema,
                doc=parsed_field.get("doc")
            ))

        try:
            schema = RecordSchema(name=name, fields=tuple(fields), namespace=namespace or None)
        except ValueError as e:
            self._fail(str(e))

        self.in_progress.discard(full_name)
        self.records[full_name] = schema
        return schema

    def _resolve(self, type_def: Any, field_path: str) -> ResolvedType:
        if isinstance(type_def, list):
            return self._resolve_union(type_def, field_path)
        if isinstance(type_def, str):
            return self._resolve_name(type_def, field_path)
        return self._resolve_complex(type_def, field_path)

    def _resolve_union(self, members: list, field_path: str) -> ResolvedType:
        non_null = [member for member in members if member != "null"]
        if len(non_null) != 1:
            self._fail(f"Field '{field_path}' uses a union other than [\"null\", T]")
        kind, type_name, _, sub_schema = self._resolve(non_null[0], field_path)
        return kind, type_name, len(non_null) != len(members), sub_schema

    def _resolve_name(self, name: str, field_path: str) -> ResolvedType:
        if name in PRIMITIVE_TYPES:
            return FieldKind.SCALAR, name, name == "null", None

        # fastavro leaves every later reference to a named type as its full name
        named = self.named_schemas.get(name)
        if named is None:
            self._fail(f"Field '{field_path}' references unknown type '{name}'")
        if named["type"] == "record":
            return FieldKind.RECORD, "record", False, self.translate_record(named)
        return FieldKind.SCALAR, named["type"], False, None

    def _resolve_complex(self, type_def: Dict[str, Any], field_path: str) -> ResolvedType:
        avro_type = type_def["type"]

        if avro_type == "record":
            return FieldKind.RECORD, "record", False, self.translate_record(type_def)

        if avro_type == "array":
            kind, type_name, _, sub_schema = self._resolve(type_def["items"], f"{field_path}[]")
            if kind == FieldKind.RECORD:
                return FieldKind.ARRAY, "array", False, sub_schema
            if kind == FieldKind.ARRAY:
                self._fail(f"Field '{field_path}' nests arrays of records, which is not supported")
            return FieldKind.SCALAR, f"array<{type_name}>", False, None

        if avro_type == "map":
            kind, type_name, _, _ = self._resolve(type_def["values"], f"{field_path}{{}}")
            if kind != FieldKind.SCALAR:
                self._fail(f"Map field '{field_path}' must hold scalar values")
            return FieldKind.SCALAR, f"map<{type_name}>", False, None

        if avro_type in ("enum", "fixed"):
            return FieldKind.SCALAR, avro_type, False, None

        # Annotated primitive, e.g. {"type": "long", "logicalType": "timestamp-millis"}
        return self._resolve_name(avro_type, field_path)


def load_schema(identifier: str, base_path: Optional[Union[str, Path]] = None) -> RecordSchema:
    """Load a RecordSchema from an Avro-style JSON file."""
    return AvroSchemaLoader(base_path).load_schema(identifier)
