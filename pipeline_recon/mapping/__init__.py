"""
Record construction and field naming.

- RecordBuilder: flat rows to schema-shaped records
- transcode / naming rules: key renaming between naming conventions
- FieldMappingLoader: field-mapping tables from properties, JSON or YAML
"""

from .record_builder import RecordBuilder, build_record, build_records
from .naming import NamingConvention, camel_to_snake, snake_to_camel, get_naming_rule, transcode
from .field_mapping_loader import FieldMappingLoader, parse_field_mappings, load_field_mapping_table

__all__ = [
    'RecordBuilder',
    'build_record',
    'build_records',
    'NamingConvention',
    'camel_to_snake',
    'snake_to_camel',
    'get_naming_rule',
    'transcode',
    'FieldMappingLoader',
    'parse_field_mappings',
    'load_field_mapping_table',
]
