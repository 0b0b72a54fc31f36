"""
In-memory document store.

Stands in for the SQL Server store in local runs and tests. Documents are
serialized to JSON on insert and decoded on query, so callers see the same
representation drift (tuples become lists, Decimals and dates become text or
floats) a real store round-trip introduces.
"""

import json
import logging

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from ..interfaces import DocumentStoreInterface
from ..models import InsertReport, QueryPredicate
from ..exceptions import StoreError


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Document store keeping serialized JSON documents per target in memory.

    Args:
        auto_create: Create unknown targets on first insert. When False, inserting
            into a missing target raises StoreError.
    """

    def __init__(self, auto_create: bool = True):
        self.logger = logging.getLogger(__name__)
        self.auto_create = auto_create
        self._tables: Dict[str, List[str]] = {}

    def ensure_table(self, target: str) -> None:
        self._tables.setdefault(target, [])

    def insert(self, target: str, records: Sequence[Dict[str, Any]]) -> InsertReport:
        if target not in self._tables:
            if not self.auto_create:
                raise StoreError(f"Target {target} does not exist", target=target)
            self.ensure_table(target)

        report = InsertReport(target=target, rows_attempted=len(records))
        for index, record in enumerate(records):
            error = self._check_row(index, record)
            if error:
                report.add_row_error(index, error)
                continue
            try:
                self._tables[target].append(json.dumps(record, default=_json_default))
            except (TypeError, ValueError) as e:
                report.add_row_error(index, f"Document is not JSON serializable: {e}")

        self.logger.info(f"Inserted {report.rows_inserted} of {report.rows_attempted} documents into {target}")
        return report

    def _check_row(self, index: int, record: Any) -> Optional[str]:
        """Return an error message for a row the store rejects, or None."""
        if not isinstance(record, dict):
            return f"Row {index} is not a JSON object"
        return None

    def query(self, target: str, predicate: QueryPredicate) -> List[Dict[str, Any]]:
        if target not in self._tables:
            raise StoreError(f"Target {target} does not exist", target=target)

        documents = [json.loads(payload) for payload in self._tables[target]]
        matching = [document for document in documents if predicate.matches(document)]
        if predicate.order_by:
            # Text ordering, as JSON_VALUE sorts in SQL Server
            matching.sort(key=lambda document: str(document.get(predicate.order_by)))

        self.logger.info(f"Retrieved {len(matching)} documents from {target}")
        return matching

    def delete(self, target: str, predicate: QueryPredicate) -> int:
        if target not in self._tables:
            return 0
        kept = [payload for payload in self._tables[target] if not predicate.matches(json.loads(payload))]
        deleted = len(self._tables[target]) - len(kept)
        self._tables[target] = kept
        self.logger.info(f"Deleted {deleted} documents from {target}")
        return deleted

    def table_exists(self, target: str) -> bool:
        return target in self._tables


def _json_default(value: Any) -> Any:
    # Decimal becomes a JSON number; dates and other scalars become text
    if isinstance(value, Decimal):
        return float(value)
    return str(value)
