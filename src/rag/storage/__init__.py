"""
Document store implementations for the knowledge base.

The default backend is SQLite (SqliteDocumentStore). SQL Server
(SqlServerDocumentStore) needs the ``sqlserver`` extra; the in-memory store
keeps nothing after close.

To select backend, pass it to create_document_store() or set RAG_BACKEND:
    - RAG_BACKEND=sqlite (default)
    - RAG_BACKEND=sqlserver
    - RAG_BACKEND=memory
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from .base import DocumentStore
from .memory_store import InMemoryDocumentStore
from .sqlite_store import SqliteDocumentStore


logger = logging.getLogger(__name__)


DEFAULT_DB_PATH = Path.home() / ".ollama-rag" / "knowledge.db"


# Lazy import to avoid import errors when pyodbc is missing
def _get_sqlserver_store():
    from .sqlserver_store import SqlServerDocumentStore
    return SqlServerDocumentStore


def create_document_store(
    backend: Optional[str] = None,
    # SQLite options
    db_path: Optional[Union[str, Path]] = None,
    timeout: float = 5.0,
    # SQL Server options
    connection_string: Optional[str] = None,
    schema: str = "rag",
    auto_init: bool = True,
) -> DocumentStore:
    """
    Factory function to create the document store for a backend.

    Args:
        backend: 'sqlite', 'sqlserver' or 'memory'. Defaults to RAG_BACKEND env var or 'sqlite'.

        SQLite options:
            db_path: Path to SQLite database file
            timeout: Lock wait in seconds

        SQL Server options:
            connection_string: Full ODBC connection string
            schema: Schema name for tables
            auto_init: Auto-create schema/tables

    Returns:
        An initialized DocumentStore

    Raises:
        ValueError: If backend is not recognized
        ImportError: If required dependencies are missing
    """
    if backend is None:
        backend = os.environ.get("RAG_BACKEND", "sqlite")
    backend = backend.lower()

    if backend == "sqlite":
        if db_path is None:
            db_path = DEFAULT_DB_PATH
        logger.debug(f"Using SQLite document store at {db_path}")
        return SqliteDocumentStore(db_path=db_path, timeout=timeout, auto_init=auto_init)

    elif backend == "sqlserver":
        SqlServerDocumentStore = _get_sqlserver_store()

        if connection_string is None:
            connection_string = os.environ.get("RAG_SQLSERVER_CONN_STR")

        return SqlServerDocumentStore(
            connection_string=connection_string,
            password=os.environ.get("RAG_SQLSERVER_PASSWORD"),
            schema=schema,
            timeout=int(timeout),
            auto_init=auto_init,
        )

    elif backend == "memory":
        return InMemoryDocumentStore()

    else:
        raise ValueError(
            f"Unknown backend: {backend}. "
            "Supported backends: 'sqlite' (default), 'sqlserver', 'memory'"
        )


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
    "create_document_store",
]
