"""
Field-Mapping Table loader.

Turns a textual rename declaration into an immutable FieldMappingTable. All
syntax problems surface here, at load time, as MappingConfigError carrying the
offending line, so validation runs never start with a broken table.

Properties syntax (one root entry per line, '#' or '!' comments):

    orderId=order_id
    customer={customerId=customer_id,name=name}
    items=[productId=product_id,quantity=quantity]
    shippingAddress=shipping_address:{street=street,zipCode=zip_code}

  - '{...}' declares an object scope, '[...]' an array-element scope
  - 'target:' before the bracket renames the container in the target document
  - pairs inside brackets may themselves open brackets (multi-level scopes)

Structured syntax (.json / .yaml / .yml):

    root:
      orderId: order_id
      shippingAddress:
        target: shipping_address
        kind: object
        fields:
          zipCode: zip_code
"""

import json
import logging
import re

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from ..models import FieldMappingTable, FieldRename, MappingScope, ScopeKind
from ..exceptions import MappingConfigError


_TOKEN_PATTERN = re.compile(r'\s*(?:([{}\[\]=,:])|([^\s{}\[\]=,:]+))')
_PUNCTUATION = frozenset('{}[]=,:')
_CLOSERS = {'{': '}', '[': ']'}
_KINDS = {'{': ScopeKind.OBJECT, '[': ScopeKind.ARRAY}

Entry = Union[FieldRename, MappingScope]


class _LineParser:
    """Recursive-descent parser for the value side of one properties line."""

    def __init__(self, text: str, line_number: int):
        self.line_number = line_number
        self.tokens = self._tokenize(text)
        self.position = 0

    def _tokenize(self, text: str) -> List[str]:
        tokens = []
        position = 0
        stripped = text.rstrip()
        while position < len(stripped):
            match = _TOKEN_PATTERN.match(stripped, position)
            if not match:
                self._fail(f"Unexpected character at column {position + 1}")
            tokens.append(match.group(1) or match.group(2))
            position = match.end()
        return tokens

    def _fail(self, message: str, scope: str = None, field_name: str = None):
        raise MappingConfigError(
            f"Line {self.line_number}: {message}",
            scope=scope,
            field_name=field_name,
            line_number=self.line_number
        )

    def _peek(self, offset: int = 0) -> Optional[str]:
        index = self.position + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def _next(self) -> Optional[str]:
        token = self._peek()
        self.position += 1
        return token

    @staticmethod
    def _is_identifier(token: Optional[str]) -> bool:
        return bool(token) and not _PUNCTUATION.intersection(token)

    def parse_entry(self, source_key: str, scope_path: str) -> Entry:
        entry = self._parse_value(source_key, scope_path)
        if self._peek() is not None:
            self._fail(f"Unexpected '{self._peek()}' after declaration of '{source_key}'",
                       scope=scope_path, field_name=source_key)
        return entry

    def _parse_value(self, source_key: str, scope_path: str) -> Entry:
        token = self._peek()
        if token is None:
            self._fail(f"Missing target for '{source_key}'", scope=scope_path, field_name=source_key)

        target_key = source_key
        if self._is_identifier(token):
            if self._peek(1) != ':':
                self._next()
                return FieldRename(source_key, token)
            target_key = token
            self.position += 2
            token = self._peek()

        if token not in _CLOSERS:
            self._fail(f"Expected '{{' or '[' for scope '{source_key}', found {token!r}",
                       scope=scope_path, field_name=source_key)
        return self._parse_scope(source_key, target_key, scope_path)

    def _parse_scope(self, source_key: str, target_key: str, parent_path: str) -> MappingScope:
        opener = self._next()
        closer = _CLOSERS[opener]
        scope_path = f"{parent_path}.{source_key}" if parent_path != "root" else source_key
        entries: List[Entry] = []

        if self._peek() == closer:
            self._next()
            return _make_scope(source_key, _KINDS[opener], source_key, target_key, entries)

        while True:
            member_key = self._next()
            if not self._is_identifier(member_key):
                if member_key is None:
                    self._fail(f"Unbalanced '{opener}' in scope '{scope_path}'", scope=scope_path)
                self._fail(f"Expected field name in scope '{scope_path}', found {member_key!r}",
                           scope=scope_path)
            if self._next() != '=':
                self._fail(f"Missing '=' after '{member_key}' in scope '{scope_path}'",
                           scope=scope_path, field_name=member_key)
            entry = self._parse_value(member_key, scope_path)
            _append_unique(entries, entry, scope_path, self.line_number)

            separator = self._next()
            if separator == ',':
                continue
            if separator == closer:
                break
            if separator is None:
                self._fail(f"Unbalanced '{opener}' in scope '{scope_path}'", scope=scope_path)
            self._fail(f"Mismatched '{separator}' in scope '{scope_path}' (expected '{closer}')",
                       scope=scope_path)

        return _make_scope(source_key, _KINDS[opener], source_key, target_key, entries)


def _entry_key(entry: Entry) -> str:
    return entry.source_key


def _append_unique(entries: List[Entry], entry: Entry, scope_path: str, line_number: Optional[int]) -> None:
    key = _entry_key(entry)
    if any(_entry_key(existing) == key for existing in entries):
        raise MappingConfigError(
            f"{'Line ' + str(line_number) + ': ' if line_number else ''}"
            f"Duplicate source field '{key}' in scope '{scope_path}'",
            scope=scope_path,
            field_name=key,
            line_number=line_number
        )
    entries.append(entry)


def _make_scope(name: str, kind: ScopeKind, source_key: Optional[str], target_key: Optional[str],
                entries: List[Entry]) -> MappingScope:
    fields = tuple(entry for entry in entries if isinstance(entry, FieldRename))
    scopes = tuple(entry for entry in entries if isinstance(entry, MappingScope))
    return MappingScope(name=name, kind=kind, source_key=source_key, target_key=target_key,
                        fields=fields, scopes=scopes)


class FieldMappingLoader:
    """
    Loads field-mapping tables from properties, JSON or YAML resources.

    Usage:
        loader = FieldMappingLoader()
        table = loader.load("config/samples/field-mappings.properties")
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def load(self, path: Union[str, Path]) -> FieldMappingTable:
        """
        Load a field-mapping table from a file.

        Args:
            path: Path to a .properties, .json, .yaml or .yml resource

        Returns:
            Immutable FieldMappingTable

        Raises:
            MappingConfigError: If the file is missing, unreadable or malformed
        """
        full_path = Path(path)
        if not full_path.exists():
            raise MappingConfigError(f"Field mapping file not found: {full_path}")

        try:
            with open(full_path, 'r', encoding='utf-8') as file:
                content = file.read()
        except OSError as e:
            raise MappingConfigError(f"Failed to read field mapping file {full_path}: {e}")

        suffix = full_path.suffix.lower()
        if suffix == '.json':
            try:
                data = json.loads(content)
            except json.JSONDecodeError as e:
                raise MappingConfigError(f"Failed to parse field mapping file {full_path}: {e}")
            table = self.from_structure(data, origin=str(full_path))
        elif suffix in ('.yaml', '.yml'):
            try:
                data = yaml.safe_load(content)
            except yaml.YAMLError as e:
                raise MappingConfigError(f"Failed to parse field mapping file {full_path}: {e}")
            table = self.from_structure(data, origin=str(full_path))
        else:
            table = self.parse(content, origin=str(full_path))

        self.logger.info(
            f"Loaded field mappings from {full_path}: {len(table.root.fields)} root fields, "
            f"{sum(1 for _ in table.iter_scopes())} scopes"
        )
        return table

    def parse(self, text: str, origin: str = "<string>") -> FieldMappingTable:
        """
        Parse properties-style rename declarations.

        Raises:
            MappingConfigError: On a missing '=', unbalanced or stray brackets,
                empty names or duplicate source keys
        """
        entries: List[Entry] = []
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith(('#', '!')):
                continue

            key, separator, value = line.partition('=')
            key = key.strip()
            if not separator:
                raise MappingConfigError(
                    f"Line {line_number}: missing '=' in declaration {line!r}",
                    line_number=line_number
                )
            if not key or not _LineParser._is_identifier(key) or re.search(r'\s', key):
                raise MappingConfigError(
                    f"Line {line_number}: invalid field name {key!r}",
                    line_number=line_number
                )

            parser = _LineParser(value, line_number)
            entry = parser.parse_entry(key, "root")
            _append_unique(entries, entry, "root", line_number)

        table = FieldMappingTable(root=_make_scope("root", ScopeKind.ROOT, None, None, entries), origin=origin)
        self.logger.debug(f"Parsed field mapping table from {origin}")
        return table

    def from_structure(self, data: Any, origin: str = "<structure>") -> FieldMappingTable:
        """
        Build a table from the structured (JSON/YAML) form.

        Raises:
            MappingConfigError: If the structure is not a mapping with a 'root' section
                or a scope declaration is incomplete
        """
        if not isinstance(data, dict) or not isinstance(data.get('root'), dict):
            raise MappingConfigError(f"Field mapping structure in {origin} must contain a 'root' mapping")
        entries = self._structured_entries(data['root'], "root")
        return FieldMappingTable(root=_make_scope("root", ScopeKind.ROOT, None, None, entries), origin=origin)

    def _structured_entries(self, declarations: Dict[str, Any], scope_path: str) -> List[Entry]:
        entries: List[Entry] = []
        for source_key, declaration in declarations.items():
            if not isinstance(source_key, str) or not source_key:
                raise MappingConfigError(f"Invalid field name {source_key!r} in scope '{scope_path}'",
                                         scope=scope_path)
            if isinstance(declaration, str) and declaration:
                entries.append(FieldRename(source_key, declaration))
                continue
            if not isinstance(declaration, dict):
                raise MappingConfigError(
                    f"Declaration for '{source_key}' in scope '{scope_path}' must be a field name or a scope",
                    scope=scope_path,
                    field_name=source_key
                )
            entries.append(self._structured_scope(source_key, declaration, scope_path))
        return entries

    def _structured_scope(self, source_key: str, declaration: Dict[str, Any], parent_path: str) -> MappingScope:
        scope_path = source_key if parent_path == "root" else f"{parent_path}.{source_key}"
        kind_name = declaration.get('kind')
        try:
            kind = ScopeKind(kind_name)
        except ValueError:
            kind = None
        if kind not in (ScopeKind.OBJECT, ScopeKind.ARRAY):
            raise MappingConfigError(
                f"Scope '{scope_path}' must declare kind 'object' or 'array', got {kind_name!r}",
                scope=scope_path,
                field_name=source_key
            )
        fields = declaration.get('fields') or {}
        if not isinstance(fields, dict):
            raise MappingConfigError(f"Scope '{scope_path}' fields must be a mapping", scope=scope_path)

        target_key = declaration.get('target') or source_key
        entries = self._structured_entries(fields, scope_path)
        return _make_scope(source_key, kind, source_key, target_key, entries)


def parse_field_mappings(text: str, origin: str = "<string>") -> FieldMappingTable:
    """Parse properties-style declarations into a FieldMappingTable."""
    return FieldMappingLoader().parse(text, origin)


def load_field_mapping_table(path: Union[str, Path]) -> FieldMappingTable:
    """Load a FieldMappingTable from a properties, JSON or YAML file."""
    return FieldMappingLoader().load(path)
