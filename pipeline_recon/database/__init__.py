"""
Document stores.

Import the concrete store from its module: document_store needs pyodbc (and an
ODBC driver manager), memory_store does not.
"""
