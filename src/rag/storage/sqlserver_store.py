"""
SQL Server-based document store.

For shared knowledge bases that live in a SQL Server database instead of a
local SQLite file. Requires pyodbc and an ODBC driver.
"""

import logging
import re
from datetime import timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

try:
    import pyodbc
except ImportError:
    pyodbc = None

from ..contracts.documents import Document, SearchResult
from ..core.exceptions import DocumentNotFoundError, StorageError, StoreClosedError
from ..retrieval.search import rank_documents
from .base import DocumentStore, row_to_document, serialize_document


logger = logging.getLogger(__name__)


COLUMNS = ["id", "content", "source", "embedding", "metadata", "created_at"]

RESERVED_WORDS = {
    'select', 'insert', 'update', 'delete', 'drop', 'create', 'alter',
    'exec', 'execute', 'union', 'where', 'from', 'table', 'database',
    'schema', 'index', 'grant', 'revoke', 'truncate', 'declare', 'set'
}


def is_valid_identifier(name: str) -> bool:
    """
    Validate that a name is a safe SQL identifier.

    - Must start with a letter or underscore
    - Can only contain letters, digits, and underscores
    - Maximum length of 128 characters (SQL Server limit)
    - Cannot be a SQL reserved word
    """
    if not name or len(name) > 128:
        return False

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', name):
        return False

    return name.lower() not in RESERVED_WORDS


class SqlServerDocumentStore(DocumentStore):
    """
    SQL Server-based implementation of the document store.

    Upserts use MERGE; a batch runs inside one transaction and is rolled
    back on the first failure.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        host: str = "localhost",
        port: int = 1433,
        database: str = "Knowledge",
        username: str = "sa",
        password: Optional[str] = None,
        driver: str = "ODBC Driver 18 for SQL Server",
        schema: str = "rag",
        timeout: int = 30,
        auto_init: bool = True,
        trust_server_certificate: bool = True,
    ):
        """
        Initialize the SQL Server document store.

        Args:
            connection_string: Full ODBC connection string (if provided, other params ignored)
            host: SQL Server host
            port: SQL Server port
            database: Database name
            username: Database username
            password: Database password
            driver: ODBC driver name
            schema: Schema name for the documents table (default: 'rag')
            timeout: Login timeout in seconds
            auto_init: Whether to create schema and tables automatically
            trust_server_certificate: Whether to trust self-signed certificates
        """
        if pyodbc is None:
            raise ImportError(
                "pyodbc is required for SqlServerDocumentStore. "
                "Install with: pip install 'ollama-rag[sqlserver]'"
            )

        if not is_valid_identifier(schema):
            raise ValueError(f"Invalid schema name: {schema}")

        self.schema = schema
        self.timeout = timeout

        if connection_string:
            self.connection_string = connection_string
        else:
            trust_cert = "yes" if trust_server_certificate else "no"
            self.connection_string = (
                f"Driver={{{driver}}};"
                f"Server={host},{port};"
                f"Database={database};"
                f"UID={username};"
                f"PWD={password};"
                f"TrustServerCertificate={trust_cert}"
            )

        self.conn = None
        self._connect()

        if auto_init:
            self.initialize()

    @property
    def table(self) -> str:
        return f"[{self.schema}].[documents]"

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self.conn = pyodbc.connect(self.connection_string, timeout=self.timeout, autocommit=False)
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to SQL Server: {e}")
            raise StorageError(f"Failed to connect to SQL Server: {e}") from e
        logger.debug(f"Connected to SQL Server document store (schema: {self.schema})")

    def _get_connection(self):
        if self.conn is None:
            raise StoreClosedError("Document store is closed")
        return self.conn

    def initialize(self) -> None:
        """Initialize database schema and tables."""
        conn = self._get_connection()
        cursor = conn.cursor()

        try:
            # Schema name is validated in __init__; CREATE SCHEMA cannot take parameters.
            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = ?)
                BEGIN
                    EXEC('CREATE SCHEMA [{self.schema}]')
                END
            """, (self.schema,))

            cursor.execute(f"""
                IF NOT EXISTS (SELECT * FROM sys.tables t
                               JOIN sys.schemas s ON t.schema_id = s.schema_id
                               WHERE t.name = 'documents' AND s.name = ?)
                BEGIN
                    CREATE TABLE {self.table} (
                        id NVARCHAR(64) PRIMARY KEY,
                        content NVARCHAR(MAX) NOT NULL,
                        source NVARCHAR(850) NOT NULL,
                        embedding NVARCHAR(MAX) NOT NULL,
                        metadata NVARCHAR(MAX),
                        created_at DATETIME2 NOT NULL
                    )
                END
            """, (self.schema,))

            for index_name, column in [
                ("ix_documents_source", "source"),
                ("ix_documents_created_at", "created_at"),
            ]:
                cursor.execute(f"""
                    IF NOT EXISTS (SELECT * FROM sys.indexes
                                   WHERE name = '{index_name}'
                                   AND object_id = OBJECT_ID('{self.table}'))
                    BEGIN
                        CREATE INDEX {index_name} ON {self.table} ({column})
                    END
                """)

            conn.commit()
            logger.debug(f"Initialized schema {self.schema}")

        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize schema: {e}")
            raise StorageError(f"Failed to initialize schema: {e}") from e

    def add_document(self, doc: Document) -> None:
        self.add_documents([doc])

    def add_documents(self, docs: Sequence[Document]) -> None:
        if not docs:
            return

        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            for doc in docs:
                embedding_json, metadata_json = serialize_document(doc)
                created_at = doc.created_at.astimezone(timezone.utc).replace(tzinfo=None)
                cursor.execute(
                    f"""
                    MERGE {self.table} AS target
                    USING (SELECT ? AS id) AS src
                    ON target.id = src.id
                    WHEN MATCHED THEN
                        UPDATE SET
                            content = ?,
                            source = ?,
                            embedding = ?,
                            metadata = ?,
                            created_at = ?
                    WHEN NOT MATCHED THEN
                        INSERT (id, content, source, embedding, metadata, created_at)
                        VALUES (?, ?, ?, ?, ?, ?);
                    """,
                    (
                        doc.id,
                        doc.content, doc.source, embedding_json, metadata_json, created_at,
                        doc.id, doc.content, doc.source, embedding_json, metadata_json, created_at,
                    )
                )
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to write batch of {len(docs)} documents: {e}")
            raise StorageError(f"Failed to write documents: {e}") from e
        except BaseException:
            conn.rollback()
            logger.error(f"Rolled back batch of {len(docs)} documents")
            raise

    def search(self, query_embedding: Sequence[float], limit: int) -> List[SearchResult]:
        documents = self._select(f"SELECT {', '.join(COLUMNS)} FROM {self.table}")
        return rank_documents(query_embedding, documents, limit)

    def get_document(self, doc_id: str) -> Document:
        documents = self._select(
            f"SELECT {', '.join(COLUMNS)} FROM {self.table} WHERE id = ?",
            (doc_id,),
        )
        if not documents:
            raise DocumentNotFoundError(doc_id)
        return documents[0]

    def delete_document(self, doc_id: str) -> None:
        deleted = self._delete(f"DELETE FROM {self.table} WHERE id = ?", (doc_id,))
        if deleted == 0:
            raise DocumentNotFoundError(doc_id)

    def list_by_source(self, source: str) -> List[Document]:
        return self._select(
            f"SELECT {', '.join(COLUMNS)} FROM {self.table} WHERE source = ?",
            (source,),
        )

    def delete_by_source(self, source: str) -> int:
        return self._delete(f"DELETE FROM {self.table} WHERE source = ?", (source,))

    def count(self) -> int:
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(f"SELECT COUNT(*) FROM {self.table}")
            return cursor.fetchone()[0]
        except pyodbc.Error as e:
            raise StorageError(f"Failed to count documents: {e}") from e

    def list_sources(self) -> List[Tuple[str, int]]:
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(f"""
                SELECT source, COUNT(*) FROM {self.table}
                GROUP BY source
                ORDER BY source
            """)
            return [(row[0], row[1]) for row in cursor.fetchall()]
        except pyodbc.Error as e:
            raise StorageError(f"Failed to list sources: {e}") from e

    def close(self) -> None:
        """Close the database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQL Server document store connection")

    def _select(self, query: str, params: tuple = ()) -> List[Document]:
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(query, params)
            rows = cursor.fetchall()
        except pyodbc.Error as e:
            logger.error(f"Failed to query documents: {e}")
            raise StorageError(f"Failed to query documents: {e}") from e
        return [row_to_document(self._row_to_dict(row)) for row in rows]

    def _delete(self, query: str, params: tuple) -> int:
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            cursor.execute(query, params)
            deleted = cursor.rowcount
            conn.commit()
        except pyodbc.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete documents: {e}")
            raise StorageError(f"Failed to delete documents: {e}") from e
        return deleted

    @staticmethod
    def _row_to_dict(row) -> Dict[str, Any]:
        return dict(zip(COLUMNS, row))
