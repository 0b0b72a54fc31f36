"""
Value Comparator - semantic equality of scalar and structured values.

Used pairwise at every field the MappingValidator visits. Tolerates the
representation drift a store round-trip introduces (integral vs floating
point numbers) and ignores metadata keys the store adds to objects, while
staying strict on nulls, array length and element order.

Object comparison is asymmetric: every key of the expected object must match
the same key of the actual object, and keys only present in the actual
object are never inspected.
"""

import logging

from collections.abc import Mapping
from decimal import Decimal
from typing import Any


DEFAULT_NUMERIC_TOLERANCE = 0.001


def is_numeric(value: Any) -> bool:
    """True for int, float and Decimal values; bool is not numeric here."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


class ValueComparator:
    """
    Compares expected and actual values for semantic equality.

    Args:
        tolerance: Absolute numeric tolerance; two numbers match when
            abs(expected - actual) < tolerance
        legacy_object_leniency: When True, object-vs-object comparisons report a
            match even if a nested field differs (nested differences are still
            logged). Off by default so nested failures propagate.
    """

    def __init__(self, tolerance: float = DEFAULT_NUMERIC_TOLERANCE, legacy_object_leniency: bool = False):
        if tolerance <= 0:
            raise ValueError("tolerance must be positive")
        self.tolerance = tolerance
        self.legacy_object_leniency = legacy_object_leniency
        self.logger = logging.getLogger(__name__)

    def compare(self, expected: Any, actual: Any, field_path: str = "") -> bool:
        """
        Compare two values.

        Args:
            expected: Value from the source document
            actual: Value from the target document
            field_path: Path used in debug traces

        Returns:
            True when the values are semantically equal; never raises
        """
        if expected is None and actual is None:
            self.logger.debug(f"{field_path or '<value>'}: both null, match")
            return True
        if expected is None or actual is None:
            self.logger.debug(f"{field_path or '<value>'}: null mismatch ({expected!r} vs {actual!r})")
            return False

        if isinstance(expected, Mapping) and isinstance(actual, Mapping):
            return self._compare_objects(expected, actual, field_path)
        if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
            return self._compare_arrays(expected, actual, field_path)
        if is_numeric(expected) and is_numeric(actual):
            return self._compare_numbers(expected, actual, field_path)
        return self._compare_direct(expected, actual, field_path)

    def _compare_objects(self, expected: Mapping, actual: Mapping, field_path: str) -> bool:
        matched = True
        for key, expected_value in expected.items():
            child_path = f"{field_path}.{key}" if field_path else key
            if not self.compare(expected_value, actual.get(key), child_path):
                matched = False
        if not matched and self.legacy_object_leniency:
            self.logger.debug(f"{field_path or '<object>'}: nested mismatch ignored (legacy leniency)")
            return True
        return matched

    def _compare_arrays(self, expected, actual, field_path: str) -> bool:
        if len(expected) != len(actual):
            self.logger.debug(
                f"{field_path or '<array>'}: array size mismatch - expected {len(expected)}, actual {len(actual)}"
            )
            return False
        for index, (expected_item, actual_item) in enumerate(zip(expected, actual)):
            if not self.compare(expected_item, actual_item, f"{field_path}[{index}]"):
                return False
        return True

    def _compare_numbers(self, expected, actual, field_path: str) -> bool:
        try:
            difference = abs(float(expected) - float(actual))
        except (OverflowError, ValueError):
            return False
        match = difference < self.tolerance
        self.logger.debug(f"{field_path or '<number>'}: {expected!r} vs {actual!r}, match: {match}")
        return match

    def _compare_direct(self, expected, actual, field_path: str) -> bool:
        if isinstance(expected, bool) != isinstance(actual, bool):
            match = False
        else:
            match = expected == actual
        self.logger.debug(f"{field_path or '<value>'}: {expected!r} vs {actual!r}, match: {match}")
        return match


def compare_values(expected: Any, actual: Any) -> bool:
    """Compare two values with the default tolerance and strict object comparison."""
    return ValueComparator().compare(expected, actual)
