"""Schema sources."""

from .schema_loader import AvroSchemaLoader, load_schema

__all__ = ['AvroSchemaLoader', 'load_schema']
