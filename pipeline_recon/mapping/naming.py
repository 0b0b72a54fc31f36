"""
Naming Transcoder - recursive re-keying of nested documents.

Rewrites every key of every object in a document from one naming convention
to another (camelCase records to the separator_case columns of the target
store, and back). Only keys change: values, array order and object
cardinality are preserved exactly.
"""

import re

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict

from ..exceptions import TranscodingError


NamingRule = Callable[[str], str]

_CAMEL_BOUNDARY = re.compile(r'([a-z])([A-Z])')
_SNAKE_BOUNDARY = re.compile(r'_([a-z0-9])')

_SCALAR_TYPES = (str, int, float, bool, Decimal, date, datetime)


class NamingConvention(Enum):
    """Supported field naming conventions."""
    CAMEL_CASE = "camel"
    SNAKE_CASE = "snake"


def camel_to_snake(name: str) -> str:
    """
    Convert a lower camel case identifier to lowercase separator case.

    A separator is inserted before every uppercase letter that immediately
    follows a lowercase letter, then the whole key is lowercased:
    'totalAmount' -> 'total_amount', 'zipCode' -> 'zip_code'.
    """
    return _CAMEL_BOUNDARY.sub(r'\1_\2', name).lower()


def snake_to_camel(name: str) -> str:
    """Convert a separator case identifier to lower camel case: 'total_amount' -> 'totalAmount'."""
    return _SNAKE_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def identity(name: str) -> str:
    return name


_RULES = {
    (NamingConvention.CAMEL_CASE, NamingConvention.SNAKE_CASE): camel_to_snake,
    (NamingConvention.SNAKE_CASE, NamingConvention.CAMEL_CASE): snake_to_camel,
}


def get_naming_rule(source, target) -> NamingRule:
    """
    Resolve the naming rule for a (source, target) convention pair.

    Args:
        source: NamingConvention or its string value ('camel', 'snake')
        target: NamingConvention or its string value

    Returns:
        Pure key conversion function

    Raises:
        ValueError: If a convention name is unknown
    """
    source = NamingConvention(source)
    target = NamingConvention(target)
    if source == target:
        return identity
    return _RULES[(source, target)]


def transcode(doc: Any, rule: NamingRule = camel_to_snake) -> Any:
    """
    Recursively rewrite every key of every object in `doc` using `rule`.

    Args:
        doc: Document (mapping, list or scalar); Record instances are accepted
        rule: Key conversion function, camel_to_snake by default

    Returns:
        A new document with converted keys; the input is not modified

    Raises:
        TranscodingError: If the document holds a value type that cannot be
            serialized, or two keys of one object map to the same converted key
    """
    return _transcode_value(doc, rule, "")


def _transcode_value(value: Any, rule: NamingRule, path: str) -> Any:
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, Mapping):
        return _transcode_object(value, rule, path)
    if isinstance(value, (list, tuple)):
        return [_transcode_value(item, rule, f"{path}[{index}]") for index, item in enumerate(value)]
    raise TranscodingError(
        f"Unsupported value type {type(value).__name__} at '{path or '<root>'}'",
        key_path=path,
        value_type=type(value).__name__
    )


def _transcode_object(value: Mapping, rule: NamingRule, path: str) -> Dict[str, Any]:
    converted: Dict[str, Any] = {}
    origins: Dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            raise TranscodingError(
                f"Non-string key {key!r} at '{path or '<root>'}'",
                key_path=path,
                value_type=type(key).__name__
            )
        new_key = rule(key)
        if new_key in converted:
            raise TranscodingError(
                f"Keys '{origins[new_key]}' and '{key}' both convert to '{new_key}'",
                key_path=f"{path}.{key}" if path else key
            )
        origins[new_key] = key
        child_path = f"{path}.{key}" if path else key
        converted[new_key] = _transcode_value(item, rule, child_path)
    return converted
