"""
Centralized configuration management for the Pipeline Reconciliation system.

This module provides the ConfigManager class that serves as the single source of truth
for database connections, comparison settings, round-trip parameters, and the schema and
field-mapping resources, all configurable through PIPELINE_RECON_* environment variables.
"""

import os
import logging
from pathlib import Path
from typing import Dict, List, Any, Optional, Union
from dataclasses import dataclass, field

from ..models import FieldMappingTable, RecordSchema
from ..exceptions import ConfigurationError
from ..mapping.field_mapping_loader import FieldMappingLoader
from ..schema.schema_loader import AvroSchemaLoader
from ..validation.value_comparator import DEFAULT_NUMERIC_TOLERANCE, ValueComparator


ENV_PREFIX = "PIPELINE_RECON_"


def _env(name: str, default: Any = None) -> Any:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool) -> bool:
    return str(_env(name, 'true' if default else 'false')).strip().lower() in ('true', '1', 'yes')


def _env_number(name: str, default, cast):
    raw_value = _env(name, default)
    try:
        return cast(raw_value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Environment variable {ENV_PREFIX}{name} must be a number, got {raw_value!r}")


@dataclass
class DatabaseConfig:
    """Database configuration with environment variable support."""
    connection_string: str
    driver: str = "ODBC Driver 17 for SQL Server"
    server: str = "localhost\\SQLEXPRESS"
    database: str = "PipelineReconDB"
    trusted_connection: bool = True
    connection_timeout: int = 30
    schema_name: str = "dbo"

    @classmethod
    def from_environment(cls) -> 'DatabaseConfig':
        """Create database configuration from environment variables."""
        schema_name = _env('DB_SCHEMA', cls.schema_name)
        connection_timeout = _env_number('DB_CONNECTION_TIMEOUT', cls.connection_timeout, int)

        # Primary connection string from environment
        connection_string = _env('CONNECTION_STRING')
        if connection_string:
            return cls(connection_string=connection_string, connection_timeout=connection_timeout,
                       schema_name=schema_name)

        # Build connection string from individual components
        driver = _env('DB_DRIVER', cls.driver)
        server = _env('DB_SERVER', cls.server)
        database = _env('DB_DATABASE', cls.database)
        trusted_connection = _env_bool('DB_TRUSTED_CONNECTION', True)

        connection_string = (
            f"DRIVER={{{driver}}};"
            f"SERVER={server};"
            f"DATABASE={database};"
        )
        if trusted_connection:
            connection_string += "Trusted_Connection=yes;"
        else:
            connection_string += f"UID={_env('DB_USERNAME', '')};PWD={_env('DB_PASSWORD', '')};"
        connection_string += (
            f"Connection Timeout={connection_timeout};"
            f"Application Name=Pipeline Reconciliation;"
            f"TrustServerCertificate=yes;"
            f"Encrypt=no;"
        )

        return cls(
            connection_string=connection_string,
            driver=driver,
            server=server,
            database=database,
            trusted_connection=trusted_connection,
            connection_timeout=connection_timeout,
            schema_name=schema_name
        )


@dataclass
class ComparisonSettings:
    """Value comparison settings with environment variable support."""
    numeric_tolerance: float = DEFAULT_NUMERIC_TOLERANCE
    legacy_object_leniency: bool = False

    @classmethod
    def from_environment(cls) -> 'ComparisonSettings':
        """Create comparison settings from environment variables."""
        return cls(
            numeric_tolerance=_env_number('NUMERIC_TOLERANCE', cls.numeric_tolerance, float),
            legacy_object_leniency=_env_bool('LEGACY_OBJECT_LENIENCY', cls.legacy_object_leniency)
        )


@dataclass
class RoundTripParameters:
    """Store round-trip parameters with environment variable support."""
    settle_seconds: float = 5.0
    query_timeout: int = 30
    id_suffix_fields: List[str] = field(default_factory=lambda: ["orderId"])

    @classmethod
    def from_environment(cls) -> 'RoundTripParameters':
        """Create round-trip parameters from environment variables."""
        suffix_fields = _env('ID_SUFFIX_FIELDS')
        return cls(
            settle_seconds=_env_number('SETTLE_SECONDS', cls.settle_seconds, float),
            query_timeout=_env_number('QUERY_TIMEOUT', cls.query_timeout, int),
            id_suffix_fields=([name.strip() for name in suffix_fields.split(',') if name.strip()]
                              if suffix_fields is not None else ["orderId"])
        )


@dataclass
class ConfigPaths:
    """Configuration file paths with environment variable support."""
    base_config_path: Path = field(default_factory=lambda: Path.cwd())
    schema_path: str = "config/samples/orders.avsc"
    field_mappings_path: str = "config/samples/field-mappings.properties"

    @classmethod
    def from_environment(cls, base_path: Optional[Union[str, Path]] = None) -> 'ConfigPaths':
        """Create configuration paths from environment variables."""
        if base_path:
            base_config_path = Path(base_path)
        else:
            base_config_path = Path(_env('CONFIG_PATH', Path.cwd()))

        return cls(
            base_config_path=base_config_path,
            schema_path=_env('SCHEMA_PATH', cls.schema_path),
            field_mappings_path=_env('FIELD_MAPPINGS_PATH', cls.field_mappings_path)
        )

    def resolve(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.base_config_path / path


class ConfigManager:
    """
    Centralized configuration manager serving as single source of truth.

    This class consolidates:
    - Database connection configuration
    - Value comparison settings
    - Round-trip parameters (settle delay, query timeout, identifier fields)
    - Schema and field-mapping table loading, with caching
    - Environment variable handling

    Loaded schemas and mapping tables are immutable values handed to callers;
    the cache only avoids re-reading the same resource.
    """

    def __init__(self, base_config_path: Optional[Union[str, Path]] = None):
        """
        Initialize the centralized configuration manager.

        Args:
            base_config_path: Base path for configuration files. If None, uses
                PIPELINE_RECON_CONFIG_PATH or the current directory.
        """
        self.logger = logging.getLogger(__name__)

        self.paths = ConfigPaths.from_environment(base_config_path)
        self.database_config = DatabaseConfig.from_environment()
        self.comparison_settings = ComparisonSettings.from_environment()
        self.round_trip_params = RoundTripParameters.from_environment()

        self._schema_cache: Dict[str, RecordSchema] = {}
        self._field_mapping_cache: Dict[str, FieldMappingTable] = {}

        self.logger.info(f"ConfigManager initialized with base path: {self.paths.base_config_path}")
        self.logger.debug(f"Database server: {self.database_config.server}")

    def get_database_connection_string(self) -> str:
        return self.database_config.connection_string

    def get_comparator(self) -> ValueComparator:
        """Build a ValueComparator from the configured comparison settings."""
        return ValueComparator(
            tolerance=self.comparison_settings.numeric_tolerance,
            legacy_object_leniency=self.comparison_settings.legacy_object_leniency
        )

    def load_schema(self, schema_path: Optional[str] = None) -> RecordSchema:
        """
        Load the record schema with caching.

        Args:
            schema_path: Optional path to an .avsc file. If None, uses default from configuration.

        Returns:
            Loaded record schema
        """
        if schema_path is None:
            schema_path = self.paths.schema_path

        if schema_path in self._schema_cache:
            self.logger.debug(f"Returning cached schema for {schema_path}")
            return self._schema_cache[schema_path]

        schema = AvroSchemaLoader(self.paths.base_config_path).load_schema(str(schema_path))
        self._schema_cache[schema_path] = schema
        return schema

    def load_field_mappings(self, mappings_path: Optional[str] = None) -> FieldMappingTable:
        """
        Load the field-mapping table with caching.

        Args:
            mappings_path: Optional path to a .properties/.json/.yaml file. If None, uses default.

        Returns:
            Loaded field-mapping table
        """
        if mappings_path is None:
            mappings_path = self.paths.field_mappings_path

        if mappings_path in self._field_mapping_cache:
            self.logger.debug(f"Returning cached field mappings for {mappings_path}")
            return self._field_mapping_cache[mappings_path]

        table = FieldMappingLoader().load(self.paths.resolve(mappings_path))
        self._field_mapping_cache[mappings_path] = table
        return table

    def validate_configuration(self) -> bool:
        """
        Validate all configuration settings.

        Returns:
            True if all configurations are valid

        Raises:
            ConfigurationError: If any configuration is invalid
        """
        errors = []

        if not self.database_config.connection_string:
            errors.append("Database connection string is empty")

        if not self.paths.base_config_path.exists():
            errors.append(f"Base configuration path does not exist: {self.paths.base_config_path}")

        schema_full_path = self.paths.resolve(self.paths.schema_path)
        if not schema_full_path.exists():
            errors.append(f"Schema file does not exist: {schema_full_path}")

        mappings_full_path = self.paths.resolve(self.paths.field_mappings_path)
        if not mappings_full_path.exists():
            errors.append(f"Field mapping file does not exist: {mappings_full_path}")

        if self.comparison_settings.numeric_tolerance <= 0:
            errors.append("Numeric tolerance must be greater than 0")

        if self.round_trip_params.settle_seconds < 0:
            errors.append("Settle seconds cannot be negative")

        if self.round_trip_params.query_timeout < 0:
            errors.append("Query timeout cannot be negative")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info("Configuration validation passed")
        return True

    def get_configuration_summary(self) -> Dict[str, Any]:
        """
        Get a summary of all configuration settings.

        Returns:
            Dictionary containing configuration summary
        """
        return {
            'database': {
                'server': self.database_config.server,
                'database': self.database_config.database,
                'driver': self.database_config.driver,
                'trusted_connection': self.database_config.trusted_connection,
                'connection_timeout': self.database_config.connection_timeout,
                'schema_name': self.database_config.schema_name
            },
            'comparison': {
                'numeric_tolerance': self.comparison_settings.numeric_tolerance,
                'legacy_object_leniency': self.comparison_settings.legacy_object_leniency
            },
            'round_trip': {
                'settle_seconds': self.round_trip_params.settle_seconds,
                'query_timeout': self.round_trip_params.query_timeout,
                'id_suffix_fields': list(self.round_trip_params.id_suffix_fields)
            },
            'paths': {
                'base_config_path': str(self.paths.base_config_path),
                'schema_path': self.paths.schema_path,
                'field_mappings_path': self.paths.field_mappings_path
            }
        }

    def clear_cache(self) -> None:
        """Clear all cached schemas and field-mapping tables."""
        self._schema_cache.clear()
        self._field_mapping_cache.clear()

        self.logger.info("Configuration cache cleared")

    def reload_configuration(self) -> None:
        """Reload configuration from environment variables and clear cache."""
        self.database_config = DatabaseConfig.from_environment()
        self.comparison_settings = ComparisonSettings.from_environment()
        self.round_trip_params = RoundTripParameters.from_environment()
        self.clear_cache()

        self.logger.info("Configuration reloaded from environment variables")


# Global configuration manager instance
_global_config_manager: Optional[ConfigManager] = None


def get_config_manager(base_config_path: Optional[Union[str, Path]] = None) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        base_config_path: Base path for configuration files. Only used on first call.

    Returns:
        Global ConfigManager instance
    """
    global _global_config_manager

    if _global_config_manager is None:
        _global_config_manager = ConfigManager(base_config_path)

    return _global_config_manager


def reset_config_manager() -> None:
    """Reset the global configuration manager instance."""
    global _global_config_manager
    _global_config_manager = None
