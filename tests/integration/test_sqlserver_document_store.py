"""
Integration Tests for SqlServerDocumentStore

Tests verify the SQL the store sends and how it reacts to pyodbc errors:
- Per-row insert failures are reported by index, never dropped
- Queries filter and order with JSON_VALUE and bind parameters as text
- Connection, query and stored-document errors surface as StoreError
- Transactions commit on success and roll back on error

pyodbc.connect is patched; no database is needed.
"""

import json
import os

import pytest
import pyodbc

from unittest.mock import MagicMock, patch, call

from pipeline_recon.config.config_manager import reset_config_manager
from pipeline_recon.database.document_store import SqlServerDocumentStore
from pipeline_recon.models import QueryPredicate
from pipeline_recon.exceptions import StoreError


pytestmark = pytest.mark.integration


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Default configuration for every test."""
    for name in [name for name in os.environ if name.startswith('PIPELINE_RECON_')]:
        monkeypatch.delenv(name)
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture
def mock_connect():
    with patch('pipeline_recon.database.document_store.pyodbc.connect') as connect:
        connect.return_value = MagicMock()
        yield connect


@pytest.fixture
def connection(mock_connect):
    return mock_connect.return_value


@pytest.fixture
def cursor(connection):
    return connection.cursor.return_value


@pytest.fixture
def store():
    return SqlServerDocumentStore(connection_string="DRIVER={Test};SERVER=test;", schema_name="dbo",
                                  query_timeout=15)


class TestConfiguration:

    def test_defaults_come_from_config_manager(self):
        store = SqlServerDocumentStore()

        assert "DATABASE=PipelineReconDB" in store.connection_string
        assert store.schema_name == "dbo"
        assert store.query_timeout == 30

    def test_invalid_schema_name_rejected(self):
        with pytest.raises(StoreError):
            SqlServerDocumentStore(connection_string="DRIVER={Test};", schema_name="dbo; DROP")

    def test_connection_settings(self, store, mock_connect, connection):
        with store.get_connection() as active:
            assert active is connection

        mock_connect.assert_called_once_with("DRIVER={Test};SERVER=test;", autocommit=False, timeout=30)
        assert connection.timeout == 15
        connection.close.assert_called_once()

    def test_connection_failure(self, store, mock_connect):
        mock_connect.side_effect = pyodbc.Error("Login failed for user")

        with pytest.raises(StoreError) as exc_info:
            store.insert("orders", [{"order_id": "A"}])

        assert "Failed to connect" in str(exc_info.value)


class TestInsert:
    """Row-by-row insert with per-row error capture."""

    def test_success(self, store, connection, cursor):
        documents = [{"order_id": "A", "items": [{"quantity": 2}]}, {"order_id": "B", "items": []}]

        report = store.insert("orders", documents)

        assert not report.has_errors
        assert report.rows_inserted == 2
        assert cursor.execute.call_args_list == [
            call("INSERT INTO [dbo].[orders] (document) VALUES (?)", json.dumps(documents[0])),
            call("INSERT INTO [dbo].[orders] (document) VALUES (?)", json.dumps(documents[1])),
        ]
        connection.commit.assert_called_once()
        connection.close.assert_called_once()

    def test_row_error_is_reported_by_index(self, store, connection, cursor):
        cursor.execute.side_effect = [None, pyodbc.Error("The INSERT statement conflicted with the CHECK constraint"),
                                      None]

        report = store.insert("orders", [{"order_id": "A"}, {"order_id": "B"}, {"order_id": "C"}])

        assert report.failed_rows == [1]
        assert report.rows_inserted == 2
        assert "CHECK constraint" in report.row_errors[1][0]
        connection.commit.assert_called_once()

    def test_unserializable_document_is_a_row_error(self, store, cursor):
        circular = {"order_id": "A"}
        circular["self"] = circular

        report = store.insert("orders", [circular, {"order_id": "B"}])

        assert report.failed_rows == [0]
        assert cursor.execute.call_count == 1

    def test_invalid_target_rejected_before_connecting(self, store, mock_connect):
        with pytest.raises(StoreError):
            store.insert("orders; DROP TABLE orders", [{"order_id": "A"}])

        mock_connect.assert_not_called()


class TestQuery:
    """JSON_VALUE filtered queries."""

    def test_filter_and_order(self, store, cursor):
        cursor.fetchall.return_value = [('{"order_id": "A", "total_amount": 1.5}',), ('{"order_id": "B"}',)]

        documents = store.query("orders", QueryPredicate("order_id", ("A", "B"), order_by="order_id"))

        assert documents == [{"order_id": "A", "total_amount": 1.5}, {"order_id": "B"}]
        sql, parameters = cursor.execute.call_args[0]
        assert "FROM [dbo].[orders]" in sql
        assert "JSON_VALUE(document, '$.order_id') IN (?, ?)" in sql
        assert sql.endswith("ORDER BY JSON_VALUE(document, '$.order_id')")
        assert parameters == ["A", "B"]

    def test_store_order_without_order_by(self, store, cursor):
        cursor.fetchall.return_value = []

        store.query("orders", QueryPredicate("order_id", ("A",)))

        sql, _ = cursor.execute.call_args[0]
        assert sql.endswith("ORDER BY record_id")

    def test_parameters_are_bound_as_text(self, store, cursor):
        cursor.fetchall.return_value = []

        store.query("orders", QueryPredicate("discount_applied", (True, 7)))

        _, parameters = cursor.execute.call_args[0]
        assert parameters == ["true", "7"]

    def test_empty_values_skip_the_database(self, store, mock_connect):
        assert store.query("orders", QueryPredicate("order_id", ())) == []

        mock_connect.assert_not_called()

    def test_query_error(self, store, cursor):
        cursor.execute.side_effect = pyodbc.Error("Query timeout expired")

        with pytest.raises(StoreError) as exc_info:
            store.query("orders", QueryPredicate("order_id", ("A",)))

        assert exc_info.value.target == "orders"

    def test_stored_document_must_be_json(self, store, cursor):
        cursor.fetchall.return_value = [("not json",)]

        with pytest.raises(StoreError):
            store.query("orders", QueryPredicate("order_id", ("A",)))

    def test_invalid_field_name_rejected(self, store):
        with pytest.raises(StoreError):
            store.query("orders", QueryPredicate("order_id') OR 1=1 --", ("A",)))


class TestTableManagement:

    def test_ensure_table(self, store, connection, cursor):
        store.ensure_table("orders")

        sql = cursor.execute.call_args[0][0]
        assert "CREATE TABLE [dbo].[orders]" in sql
        assert "ISJSON(document) = 1" in sql
        connection.commit.assert_called_once()

    def test_table_exists(self, store, cursor):
        cursor.fetchone.return_value = (1,)

        assert store.table_exists("orders")
        assert cursor.execute.call_args[0][1] == ("dbo", "orders")

    def test_table_missing(self, store, cursor):
        cursor.fetchone.return_value = (0,)

        assert not store.table_exists("orders")

    def test_delete_returns_rowcount(self, store, connection, cursor):
        cursor.rowcount = 2

        deleted = store.delete("orders", QueryPredicate("order_id", ("A", "B")))

        assert deleted == 2
        assert cursor.execute.call_args[0][0].startswith("DELETE FROM [dbo].[orders]")
        connection.commit.assert_called_once()


class TestTransaction:

    def test_rollback_on_error(self, store):
        connection = MagicMock()

        with pytest.raises(ValueError):
            with store.transaction(connection):
                raise ValueError("boom")

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()

    def test_commit_on_success(self, store):
        connection = MagicMock()

        with store.transaction(connection):
            pass

        connection.commit.assert_called_once()
        connection.rollback.assert_not_called()
