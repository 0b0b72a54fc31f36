"""
Abstract interfaces for the Pipeline Reconciliation system.

This module defines the contracts for the external collaborators of the
reconciliation core (schema source, document store and record validator) so
that concrete backends can be swapped through dependency injection.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

from .models import FieldMappingTable, RecordSchema, InsertReport, QueryPredicate

if TYPE_CHECKING:
    from .validation.validation_models import ValidationReport


class SchemaSourceInterface(ABC):
    """Abstract interface for schema sources."""

    @abstractmethod
    def load_schema(self, identifier: str) -> RecordSchema:
        """
        Load a record schema.

        Args:
            identifier: Schema identifier (path, registry subject, ...)

        Returns:
            Immutable record schema

        Raises:
            SchemaLoadError: If the identifier cannot be resolved or parsed
        """
        pass


class DocumentStoreInterface(ABC):
    """Abstract interface for the external store a pipeline writes to."""

    @abstractmethod
    def insert(self, target: str, records: Sequence[Dict[str, Any]]) -> InsertReport:
        """
        Insert documents into a store target.

        Args:
            target: Table (or equivalent) to write to
            records: JSON-ready documents, already in the store's naming convention

        Returns:
            InsertReport enumerating per-row errors keyed by row index

        Raises:
            StoreError: If the store cannot be reached at all
        """
        pass

    @abstractmethod
    def query(self, target: str, predicate: QueryPredicate) -> List[Dict[str, Any]]:
        """
        Retrieve one document per stored row matching the predicate.

        Args:
            target: Table (or equivalent) to read from
            predicate: Field/value selection and optional sort field

        Returns:
            Retrieved documents, in store order unless predicate.order_by is set

        Raises:
            StoreError: If the query fails
        """
        pass

    @abstractmethod
    def delete(self, target: str, predicate: QueryPredicate) -> int:
        """
        Remove the documents matching the predicate.

        Returns:
            Number of documents removed

        Raises:
            StoreError: If the delete fails
        """
        pass

    @abstractmethod
    def table_exists(self, target: str) -> bool:
        """
        Check whether a store target exists.

        Args:
            target: Table (or equivalent) name

        Returns:
            True if the target exists
        """
        pass


class RecordValidatorInterface(ABC):
    """Abstract interface for validating a retrieved document against the one that was stored."""

    @abstractmethod
    def validate(self, source_doc: Mapping, target_doc: Any, mapping: FieldMappingTable,
                 source_record_id: Optional[str] = None) -> 'ValidationReport':
        """
        Validate one source/target document pair.

        Args:
            source_doc: Document in source naming
            target_doc: Document retrieved from the store, in target naming
            mapping: Field-mapping table correlating the two
            source_record_id: Optional identifier carried into the report

        Returns:
            ValidationReport with every assertion made

        Raises:
            MappingConfigError: If the mapping table cannot be resolved against the documents
        """
        pass
