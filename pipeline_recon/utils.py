"""
Utility functions for common patterns across the reconciliation system.
"""

import re
from typing import Any, Optional


class StringUtils:
    """Utility methods for string validation and processing."""

    _regex_cache = {
        'whitespace': re.compile(r'\s+')
    }

    @staticmethod
    def safe_string_check(value: Any) -> bool:
        """
        Standardized string validation.

        Args:
            value: Value to check

        Returns:
            True if value is a non-empty string after stripping whitespace
        """
        return value is not None and str(value).strip() != ''

    @staticmethod
    def normalize_whitespace(value: Any) -> str:
        if value is None:
            return ''
        return StringUtils._regex_cache['whitespace'].sub(' ', str(value).strip())


class ValidationUtils:
    """Utility methods for converting fixture cells to typed values."""

    _TRUE_VALUES = {'true', '1', 'yes', 'y'}
    _FALSE_VALUES = {'false', '0', 'no', 'n'}

    @staticmethod
    def safe_int_conversion(value: Any, default: Optional[int] = None) -> Optional[int]:
        """
        Safely convert value to integer.

        Integral floats ('3.0') are accepted; fractional values are not truncated.

        Args:
            value: Value to convert
            default: Default value if conversion fails

        Returns:
            Integer value or default
        """
        if value is None or isinstance(value, bool):
            return default

        try:
            if isinstance(value, int):
                return value
            if isinstance(value, float):
                return int(value) if value.is_integer() else default
            text = str(value).strip()
            try:
                return int(text)
            except ValueError:
                number = float(text)
                return int(number) if number.is_integer() else default
        except (ValueError, TypeError, OverflowError):
            return default

    @staticmethod
    def safe_float_conversion(value: Any, default: Optional[float] = None) -> Optional[float]:
        """
        Safely convert value to float.

        Args:
            value: Value to convert
            default: Default value if conversion fails

        Returns:
            Float value or default
        """
        if value is None or isinstance(value, bool):
            return default

        try:
            if isinstance(value, (int, float)):
                return float(value)
            return float(str(value).strip())
        except (ValueError, TypeError):
            return default

    @staticmethod
    def safe_bool_conversion(value: Any, default: Optional[bool] = None) -> Optional[bool]:
        """Convert 'true'/'false' style text (and bools) to bool, or return default."""
        if isinstance(value, bool):
            return value
        if value is None:
            return default
        text = str(value).strip().lower()
        if text in ValidationUtils._TRUE_VALUES:
            return True
        if text in ValidationUtils._FALSE_VALUES:
            return False
        return default
