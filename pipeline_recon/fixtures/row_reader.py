"""
Fixture reader - tabular test input to flat rows.

Test scenarios describe their input as tables whose column headers are field
paths into the record:

    orderId | customer.name | items[0].productId | items[0].quantity | totalAmount
    ORD-1   | Jane Doe      | PROD-001           | 2                 | 99.99

Each table row becomes one flat row (nested groups as sub-mappings, arrays of
records as lists of mappings) ready for the RecordBuilder. Cell text is
converted using the schema's primitive types: long/int cells become int,
double/float cells become float, boolean cells become bool, everything else
stays text. Empty cells are treated as absent fields.
"""

import copy
import csv
import json
import logging
import re
import time

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..models import FieldKind, RecordSchema, SchemaField
from ..exceptions import FixtureError
from ..utils import StringUtils, ValidationUtils


_SEGMENT = re.compile(r'^([^\[\].]+)(?:\[(\d+)\])?$')
_HOLE = object()

Segment = Tuple[str, Optional[int]]


def parse_field_path(path: str) -> List[Segment]:
    """
    Split a column header into (name, index) segments.

    'items[0].quantity' -> [('items', 0), ('quantity', None)]

    Raises:
        FixtureError: If the header is not a valid field path
    """
    segments = []
    for part in path.strip().split('.'):
        match = _SEGMENT.match(part.strip())
        if not match:
            raise FixtureError(f"Invalid field path in column header: {path!r}", column=path)
        index = match.group(2)
        segments.append((match.group(1), int(index) if index is not None else None))
    return segments


class FixtureRowReader:
    """
    Reads CSV / JSON fixtures (or in-memory tables) into flat rows.

    Args:
        schema: Record schema used to convert cell text to typed values. Without a
            schema every cell stays text.

    Usage:
        reader = FixtureRowReader(schema)
        rows = reader.read("config/samples/orders.csv")
        rows = suffix_identifiers(rows, ["orderId"], timestamp_suffix())
    """

    def __init__(self, schema: Optional[RecordSchema] = None):
        self.logger = logging.getLogger(__name__)
        self.schema = schema

    def read(self, path: Union[str, Path]) -> List[Dict[str, Any]]:
        """
        Read a fixture file, choosing the format from the file suffix.

        Supported: .csv, .json (list of rows, or {"rows": [...]}), .jsonl

        Raises:
            FixtureError: If the file is missing, unreadable or malformed
        """
        full_path = Path(path)
        if not full_path.exists():
            raise FixtureError(f"Fixture file not found: {full_path}", path=str(full_path))

        suffix = full_path.suffix.lower()
        if suffix == '.csv':
            rows = self.read_csv(full_path)
        elif suffix in ('.json', '.jsonl'):
            rows = self.read_json(full_path)
        else:
            raise FixtureError(f"Unsupported fixture format: {full_path.suffix}", path=str(full_path))

        self.logger.info(f"Read {len(rows)} fixture rows from {full_path}")
        return rows

    def read_csv(self, path: Union[str, Path]) -> List[Dict[str, Any]]:
        try:
            with open(path, 'r', encoding='utf-8', newline='') as file:
                table = list(csv.DictReader(file))
        except (OSError, csv.Error) as e:
            raise FixtureError(f"Failed to read fixture file {path}: {e}", path=str(path))
        return self.rows_from_table(table, source=str(path))

    def read_json(self, path: Union[str, Path]) -> List[Dict[str, Any]]:
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as file:
                if path.suffix.lower() == '.jsonl':
                    data = [json.loads(line) for line in file if line.strip()]
                else:
                    data = json.load(file)
        except OSError as e:
            raise FixtureError(f"Failed to read fixture file {path}: {e}", path=str(path))
        except json.JSONDecodeError as e:
            raise FixtureError(f"Failed to parse fixture file {path}: {e}", path=str(path))

        if isinstance(data, dict) and isinstance(data.get('rows'), list):
            data = data['rows']
        if not isinstance(data, list) or not all(isinstance(entry, Mapping) for entry in data):
            raise FixtureError(f"Fixture {path} must hold a list of objects", path=str(path))

        rows = []
        for row_number, entry in enumerate(data, start=1):
            rows.append(self._expand(entry.items(), row_number, str(path), skip_blank=False))
        return rows

    def rows_from_table(self, table: Iterable[Mapping], source: str = "<table>") -> List[Dict[str, Any]]:
        """
        Convert table rows keyed by field-path headers into flat rows.

        Args:
            table: Rows of {header: cell text}, e.g. a csv.DictReader or a scenario data table
            source: Label used in error messages

        Returns:
            One flat row per table row, in order
        """
        rows = []
        for row_number, table_row in enumerate(table, start=1):
            rows.append(self._expand(table_row.items(), row_number, source, skip_blank=True))
        return rows

    def _expand(self, cells: Iterable[Tuple[Any, Any]], row_number: int, source: str,
                skip_blank: bool) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        for header, value in cells:
            if header is None:
                raise FixtureError(f"Row {row_number} of {source} has more cells than headers",
                                   path=source, row_number=row_number)
            if value is None or (skip_blank and isinstance(value, str) and not StringUtils.safe_string_check(value)):
                continue

            segments = parse_field_path(str(header))
            schema_field = self._field_for(segments)
            converted = self._convert(value, schema_field, segments, row_number, source, str(header))
            self._assign(row, segments, converted, row_number, source, str(header))

        self._check_holes(row, "", row_number, source)
        return row

    def _field_for(self, segments: Sequence[Segment]) -> Optional[SchemaField]:
        schema = self.schema
        schema_field = None
        for name, _ in segments:
            if schema is None:
                return None
            schema_field = schema.get_field(name)
            if schema_field is None:
                return None
            schema = schema_field.schema
        return schema_field

    def _convert(self, value: Any, schema_field: Optional[SchemaField], segments: Sequence[Segment],
                 row_number: int, source: str, column: str) -> Any:
        if schema_field is None:
            return value
        if isinstance(value, str):
            if schema_field.kind != FieldKind.SCALAR:
                return value
            type_name = schema_field.type_name
            if segments[-1][1] is not None and type_name.startswith('array<'):
                type_name = type_name[len('array<'):-1]
            return self._convert_cell(value, type_name, row_number, source, column)
        if isinstance(value, Mapping) and schema_field.kind == FieldKind.RECORD:
            return self._convert_nested(value, schema_field.schema, row_number, source, column)
        if isinstance(value, list) and schema_field.kind == FieldKind.ARRAY:
            return [self._convert_nested(entry, schema_field.schema, row_number, source, f"{column}[{index}]")
                    if isinstance(entry, Mapping) else entry
                    for index, entry in enumerate(value)]
        if isinstance(value, list) and schema_field.type_name.startswith('array<'):
            element_type = schema_field.type_name[len('array<'):-1]
            return [self._convert_cell(entry, element_type, row_number, source, column)
                    if isinstance(entry, str) else entry
                    for entry in value]
        return value

    def _convert_nested(self, value: Mapping, schema: Optional[RecordSchema], row_number: int,
                        source: str, column: str) -> Dict[str, Any]:
        converted = {}
        for key, item in value.items():
            schema_field = schema.get_field(key) if schema is not None else None
            converted[key] = self._convert(item, schema_field, [(key, None)], row_number, source, f"{column}.{key}")
        return converted

    def _convert_cell(self, text: str, type_name: str, row_number: int, source: str, column: str) -> Any:
        if type_name in ('long', 'int'):
            converted = ValidationUtils.safe_int_conversion(text)
        elif type_name in ('double', 'float'):
            converted = ValidationUtils.safe_float_conversion(text)
        elif type_name == 'boolean':
            converted = ValidationUtils.safe_bool_conversion(text)
        else:
            return text

        if converted is None:
            raise FixtureError(
                f"Row {row_number} of {source}: column '{column}' expects {type_name}, got {text!r}",
                path=source, row_number=row_number, column=column
            )
        return converted

    def _assign(self, row: Dict[str, Any], segments: Sequence[Segment], value: Any,
                row_number: int, source: str, column: str) -> None:
        def conflict():
            return FixtureError(f"Row {row_number} of {source}: column '{column}' conflicts with another column",
                                path=source, row_number=row_number, column=column)

        container = row
        for position, (name, index) in enumerate(segments):
            last = position == len(segments) - 1
            if index is None:
                if last:
                    if name in container:
                        raise conflict()
                    container[name] = value
                    return
                container = container.setdefault(name, {})
                if not isinstance(container, dict):
                    raise conflict()
                continue

            array = container.setdefault(name, [])
            if not isinstance(array, list):
                raise conflict()
            while len(array) <= index:
                array.append(_HOLE)
            if last:
                if array[index] is not _HOLE:
                    raise conflict()
                array[index] = value
                return
            if array[index] is _HOLE:
                array[index] = {}
            container = array[index]
            if not isinstance(container, dict):
                raise conflict()

    def _check_holes(self, value: Any, path: str, row_number: int, source: str) -> None:
        if isinstance(value, dict):
            for key, item in value.items():
                self._check_holes(item, f"{path}.{key}" if path else key, row_number, source)
        elif isinstance(value, list):
            for index, item in enumerate(value):
                if item is _HOLE:
                    raise FixtureError(f"Row {row_number} of {source}: '{path}[{index}]' is missing "
                                       f"while later elements are present",
                                       path=source, row_number=row_number, column=path)
                self._check_holes(item, f"{path}[{index}]", row_number, source)


def suffix_identifiers(rows: Iterable[Mapping], fields: Sequence[str], suffix: str) -> List[Dict[str, Any]]:
    """
    Return copies of `rows` with '_<suffix>' appended to each identifier field.

    Isolates one test run's records from every other run sharing the store.
    Fields that are absent or null are left alone.
    """
    suffixed = []
    for row in rows:
        new_row = copy.deepcopy(dict(row))
        for name in fields:
            if new_row.get(name) is not None:
                new_row[name] = f"{new_row[name]}_{suffix}"
        suffixed.append(new_row)
    return suffixed


def timestamp_suffix() -> str:
    """Current time in epoch milliseconds, as text."""
    return str(int(time.time() * 1000))
