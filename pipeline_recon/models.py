"""
Core data models for the Pipeline Reconciliation system.

This module defines the primary data structures used throughout the system:
schemas describing record shape, the immutable records built from them, the
declarative field-mapping table that correlates source and target documents,
and the request/response types exchanged with the external store.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple
from enum import Enum


Document = Dict[str, Any]


class FieldKind(Enum):
    """Shape of a schema field."""
    SCALAR = "scalar"
    RECORD = "record"
    ARRAY = "array"


@dataclass(frozen=True)
class SchemaField:
    """
    A single named field of a record schema.

    Attributes:
        name: Field name as it appears in flat rows and built records
        kind: SCALAR, RECORD (nested record) or ARRAY (array of records)
        type_name: Primitive type name for scalars (string, long, double, boolean, ...)
        nullable: Whether the schema declares the field as optional (union with null)
        schema: Sub-schema for RECORD and ARRAY fields
        doc: Optional documentation string from the schema source
    """
    name: str
    kind: FieldKind = FieldKind.SCALAR
    type_name: str = "string"
    nullable: bool = False
    schema: Optional["RecordSchema"] = None
    doc: Optional[str] = None

    def __post_init__(self):
        """Validate schema field definition."""
        if not self.name:
            raise ValueError("field name cannot be empty")

    @property
    def is_nested(self) -> bool:
        return self.kind in (FieldKind.RECORD, FieldKind.ARRAY)


@dataclass(frozen=True)
class RecordSchema:
    """
    Ordered, immutable set of named fields describing one record type.

    Attributes:
        name: Record type name
        fields: Fields in declaration order
        namespace: Optional namespace from the schema source
    """
    name: str
    fields: Tuple[SchemaField, ...] = ()
    namespace: Optional[str] = None

    def __post_init__(self):
        """Freeze the field list and reject duplicate field names."""
        if not self.name:
            raise ValueError("schema name cannot be empty")
        object.__setattr__(self, "fields", tuple(self.fields))
        seen = set()
        for schema_field in self.fields:
            if schema_field.name in seen:
                raise ValueError(f"Duplicate field '{schema_field.name}' in schema '{self.name}'")
            seen.add(schema_field.name)

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    @property
    def field_names(self) -> List[str]:
        return [schema_field.name for schema_field in self.fields]

    def get_field(self, name: str) -> Optional[SchemaField]:
        """Return the field called `name`, or None when the schema does not declare it."""
        for schema_field in self.fields:
            if schema_field.name == name:
                return schema_field
        return None


class Record(Mapping):
    """
    Nested, read-only document instance conforming to a RecordSchema.

    Nested records are Record instances and arrays of records are tuples of
    Record instances. Keys always follow schema order.
    """

    __slots__ = ("_schema", "_values")

    def __init__(self, schema: RecordSchema, values: Dict[str, Any]):
        self._schema = schema
        self._values = {name: values.get(name) for name in schema.field_names}

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Record({self._schema.name}, {self.to_dict()!r})"

    def to_dict(self) -> Document:
        """Return a plain, JSON-ready copy of the record (dicts and lists only)."""
        return {key: _plain(value) for key, value in self._values.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


class ScopeKind(Enum):
    """Kinds of field-mapping scopes."""
    ROOT = "root"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class FieldRename:
    """Correspondence of one source-document field to one target-document field."""
    source_key: str
    target_key: str

    def __post_init__(self):
        if not self.source_key:
            raise ValueError("source_key cannot be empty")
        if not self.target_key:
            raise ValueError("target_key cannot be empty")

    @property
    def is_identity(self) -> bool:
        return self.source_key == self.target_key


@dataclass(frozen=True)
class MappingScope:
    """
    One section of a field-mapping table.

    The root scope has no container keys. Object and array scopes name the
    container field in both documents (source_key / target_key), which may be
    renamed independently of the member fields they hold.

    Attributes:
        name: Scope name (the source container key; "root" for the root scope)
        kind: ROOT, OBJECT or ARRAY
        source_key: Container key in the source document
        target_key: Container key in the target document
        fields: Member field renames, in declaration order
        scopes: Child scopes nested under this one, in declaration order
    """
    name: str
    kind: ScopeKind
    source_key: Optional[str] = None
    target_key: Optional[str] = None
    fields: Tuple[FieldRename, ...] = ()
    scopes: Tuple["MappingScope", ...] = ()

    def __post_init__(self):
        """Freeze member collections and validate container keys."""
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "scopes", tuple(self.scopes))
        if not self.name:
            raise ValueError("scope name cannot be empty")
        if self.kind == ScopeKind.ROOT:
            if self.source_key or self.target_key:
                raise ValueError("root scope cannot declare container keys")
        elif not (self.source_key and self.target_key):
            raise ValueError(f"scope '{self.name}' must declare source and target container keys")

    @property
    def is_empty(self) -> bool:
        return not self.fields and not self.scopes

    def get_scope(self, name: str) -> Optional["MappingScope"]:
        for scope in self.scopes:
            if scope.name == name:
                return scope
        return None


@dataclass(frozen=True)
class FieldMappingTable:
    """
    Declarative, immutable rename table correlating source and target documents.

    Constructed once by the field-mapping loader and passed explicitly to the
    validator.

    Attributes:
        root: The root scope
        origin: Where the table was loaded from (path or "<string>")
    """
    root: MappingScope
    origin: Optional[str] = None

    def __post_init__(self):
        if self.root.kind != ScopeKind.ROOT:
            raise ValueError("field mapping table root must be a ROOT scope")

    @property
    def scopes(self) -> Tuple[MappingScope, ...]:
        return self.root.scopes

    def get_scope(self, path: str) -> Optional[MappingScope]:
        """Resolve a dotted scope path such as 'customer' or 'shippingAddress.geo'."""
        scope = self.root
        for name in path.split("."):
            scope = scope.get_scope(name)
            if scope is None:
                return None
        return scope

    def iter_scopes(self) -> Iterator[Tuple[str, MappingScope]]:
        """Yield (dotted path, scope) for every non-root scope, depth first."""
        def walk(prefix: str, scope: MappingScope):
            for child in scope.scopes:
                path = f"{prefix}.{child.name}" if prefix else child.name
                yield path, child
                yield from walk(path, child)
        yield from walk("", self.root)


@dataclass
class InsertReport:
    """
    Outcome of inserting a batch of documents into the external store.

    Attributes:
        target: Store target (table) written to
        rows_attempted: Number of rows submitted
        row_errors: Error messages keyed by row index; a row never disappears silently
    """
    target: str
    rows_attempted: int = 0
    row_errors: Dict[int, List[str]] = field(default_factory=dict)

    def add_row_error(self, row_index: int, message: str) -> None:
        self.row_errors.setdefault(row_index, []).append(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.row_errors)

    @property
    def failed_rows(self) -> List[int]:
        return sorted(self.row_errors)

    @property
    def rows_inserted(self) -> int:
        return self.rows_attempted - len(self.row_errors)


@dataclass(frozen=True)
class QueryPredicate:
    """
    Selection of stored documents by the value of one top-level field.

    Attributes:
        field_name: Top-level field (in the store's naming convention) to filter on
        values: Accepted values
        order_by: Optional top-level field to sort results by; store order when None
    """
    field_name: str
    values: Tuple[Any, ...] = ()
    order_by: Optional[str] = None

    def __post_init__(self):
        if not self.field_name:
            raise ValueError("field_name cannot be empty")
        object.__setattr__(self, "values", tuple(self.values))

    def matches(self, document: Document) -> bool:
        return document.get(self.field_name) in self.values
