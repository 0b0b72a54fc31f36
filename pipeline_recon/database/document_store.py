"""
SQL Server document store for pipeline round-trip reconciliation.

Each target table holds one JSON document per row:

    record_id    INT IDENTITY(1,1) PRIMARY KEY
    document     NVARCHAR(MAX) NOT NULL (ISJSON checked)
    inserted_at  DATETIME2 DEFAULT SYSUTCDATETIME()

Documents are selected with JSON_VALUE predicates on top-level fields, so the
store returns exactly the nested shape that was written, in its own naming
convention, ready for the mapping-driven validator.

Error Handling:
- Connection failures are raised as StoreError
- Insert failures are recorded per row in the InsertReport; a row never disappears silently
- Query failures are raised as StoreError
"""

import json
import logging
import re

from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Sequence

import pyodbc

from ..interfaces import DocumentStoreInterface
from ..models import InsertReport, QueryPredicate
from ..exceptions import StoreError
from ..config.config_manager import get_config_manager


_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class SqlServerDocumentStore(DocumentStoreInterface):
    """
    Document store writing JSON documents to SQL Server through pyodbc.

    Usage:
        store = SqlServerDocumentStore()
        store.ensure_table("orders")
        report = store.insert("orders", documents)
        retrieved = store.query("orders", QueryPredicate("order_id", ids, order_by="order_id"))
    """

    def __init__(self, connection_string: Optional[str] = None, schema_name: Optional[str] = None,
                 query_timeout: Optional[int] = None):
        """
        Initialize the store.

        Args:
            connection_string: Optional SQL Server connection string. If None, uses centralized config.
            schema_name: Database schema holding the target tables. If None, uses centralized config.
            query_timeout: Per-statement timeout in seconds (0 waits forever). If None, uses centralized config.
        """
        self.logger = logging.getLogger(__name__)

        config_manager = get_config_manager()
        self.connection_string = connection_string or config_manager.get_database_connection_string()
        self.schema_name = schema_name or config_manager.database_config.schema_name
        self.connection_timeout = config_manager.database_config.connection_timeout
        self.query_timeout = (query_timeout if query_timeout is not None
                              else config_manager.round_trip_params.query_timeout)

        if not _IDENTIFIER.match(self.schema_name):
            raise StoreError(f"Invalid database schema name: {self.schema_name!r}")

        self.logger.debug(f"SqlServerDocumentStore using schema [{self.schema_name}], "
                          f"query timeout {self.query_timeout}s")

    def _get_qualified_table_name(self, target: str) -> str:
        if not _IDENTIFIER.match(target or ""):
            raise StoreError(f"Invalid target table name: {target!r}", target=target)
        return f"[{self.schema_name}].[{target}]"

    @staticmethod
    def _json_path(field_name: str) -> str:
        if not _IDENTIFIER.match(field_name or ""):
            raise StoreError(f"Invalid document field name for a predicate: {field_name!r}")
        return f"$.{field_name}"

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections with automatic cleanup.

        Yields:
            pyodbc.Connection: Active database connection

        Raises:
            StoreError: If the connection cannot be established
        """
        try:
            connection = pyodbc.connect(self.connection_string, autocommit=False, timeout=self.connection_timeout)
        except pyodbc.Error as e:
            self.logger.error(f"Database connection failed: {e}")
            raise StoreError(f"Failed to connect to database: {e}")

        try:
            connection.timeout = self.query_timeout
            connection.setdecoding(pyodbc.SQL_CHAR, encoding='utf-8')
            connection.setdecoding(pyodbc.SQL_WCHAR, encoding='utf-8')
            connection.setencoding(encoding='utf-8')
            yield connection
        finally:
            try:
                connection.close()
            except pyodbc.Error as e:
                self.logger.debug(f"Ignoring error while closing connection: {e}")

    @contextmanager
    def transaction(self, connection):
        """
        Context manager committing on success and rolling back on error.

        Args:
            connection: Active database connection

        Yields:
            pyodbc.Connection: Connection within transaction context
        """
        try:
            yield connection
            connection.commit()
            self.logger.debug("Transaction committed")
        except Exception as e:
            try:
                connection.rollback()
                self.logger.error(f"Transaction rolled back due to error: {str(e)[:200]}")
            except pyodbc.Error as rollback_error:
                self.logger.critical(f"ROLLBACK FAILED - Database may be in inconsistent state: {rollback_error}")
            raise

    def ensure_table(self, target: str) -> None:
        """Create the document table for `target` when it does not exist yet."""
        table = self._get_qualified_table_name(target)
        sql = (
            f"IF OBJECT_ID(N'{table}', N'U') IS NULL "
            f"CREATE TABLE {table} ("
            f"record_id INT IDENTITY(1,1) PRIMARY KEY, "
            f"document NVARCHAR(MAX) NOT NULL CHECK (ISJSON(document) = 1), "
            f"inserted_at DATETIME2 NOT NULL DEFAULT SYSUTCDATETIME())"
        )
        try:
            with self.get_connection() as connection:
                with self.transaction(connection):
                    connection.cursor().execute(sql)
        except pyodbc.Error as e:
            raise StoreError(f"Failed to create table {table}: {e}", target=target)
        self.logger.info(f"Ensured document table {table}")

    def insert(self, target: str, records: Sequence[Dict[str, Any]]) -> InsertReport:
        """
        Insert documents one row at a time, recording each row's failure.

        Rows that fail are listed in the returned InsertReport by index; rows that
        succeed are committed.
        """
        table = self._get_qualified_table_name(target)
        report = InsertReport(target=target, rows_attempted=len(records))
        sql = f"INSERT INTO {table} (document) VALUES (?)"

        with self.get_connection() as connection:
            with self.transaction(connection):
                cursor = connection.cursor()
                for index, record in enumerate(records):
                    try:
                        payload = json.dumps(record, default=str)
                    except (TypeError, ValueError) as e:
                        report.add_row_error(index, f"Document is not JSON serializable: {e}")
                        continue
                    try:
                        cursor.execute(sql, payload)
                    except pyodbc.Error as e:
                        report.add_row_error(index, str(e))
                        self.logger.warning(f"Insert into {table} failed for row {index}: {e}")

        if report.has_errors:
            self.logger.error(f"Insert into {table}: {len(report.row_errors)} of {report.rows_attempted} rows failed")
        else:
            self.logger.info(f"Inserted {report.rows_inserted} documents into {table}")
        return report

    def query(self, target: str, predicate: QueryPredicate) -> List[Dict[str, Any]]:
        """Return the stored documents whose top-level field matches one of the predicate values."""
        if not predicate.values:
            return []

        table = self._get_qualified_table_name(target)
        placeholders = ", ".join("?" for _ in predicate.values)
        sql = (f"SELECT document FROM {table} "
               f"WHERE JSON_VALUE(document, '{self._json_path(predicate.field_name)}') IN ({placeholders})")
        if predicate.order_by:
            sql += f" ORDER BY JSON_VALUE(document, '{self._json_path(predicate.order_by)}')"
        else:
            sql += " ORDER BY record_id"

        # JSON_VALUE yields nvarchar, so parameters are bound as text
        parameters = [_as_json_text(value) for value in predicate.values]
        try:
            with self.get_connection() as connection:
                cursor = connection.cursor()
                cursor.execute(sql, parameters)
                rows = cursor.fetchall()
        except pyodbc.Error as e:
            self.logger.error(f"Query against {table} failed: {e}")
            raise StoreError(f"Query against {table} failed: {e}", target=target)

        documents = []
        for row in rows:
            try:
                documents.append(json.loads(row[0]))
            except (TypeError, json.JSONDecodeError) as e:
                raise StoreError(f"Stored document in {table} is not valid JSON: {e}", target=target)

        self.logger.info(f"Retrieved {len(documents)} documents from {table} "
                         f"where {predicate.field_name} in {len(predicate.values)} values")
        return documents

    def delete(self, target: str, predicate: QueryPredicate) -> int:
        """Delete the documents matching the predicate; returns the number of rows removed."""
        if not predicate.values:
            return 0

        table = self._get_qualified_table_name(target)
        placeholders = ", ".join("?" for _ in predicate.values)
        sql = (f"DELETE FROM {table} "
               f"WHERE JSON_VALUE(document, '{self._json_path(predicate.field_name)}') IN ({placeholders})")
        try:
            with self.get_connection() as connection:
                with self.transaction(connection):
                    cursor = connection.cursor()
                    cursor.execute(sql, [_as_json_text(value) for value in predicate.values])
                    deleted = cursor.rowcount
        except pyodbc.Error as e:
            raise StoreError(f"Delete from {table} failed: {e}", target=target)

        self.logger.info(f"Deleted {deleted} documents from {table}")
        return deleted

    def table_exists(self, target: str) -> bool:
        self._get_qualified_table_name(target)
        sql = "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?"
        try:
            with self.get_connection() as connection:
                cursor = connection.cursor()
                cursor.execute(sql, (self.schema_name, target))
                row = cursor.fetchone()
        except pyodbc.Error as e:
            raise StoreError(f"Failed to check for table {target}: {e}", target=target)
        return bool(row and row[0])


def _as_json_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
