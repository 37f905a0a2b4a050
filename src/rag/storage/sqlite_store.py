"""
SQLite-based document store.

The default knowledge base backend: a single local database file holding
one ``documents`` table with JSON-encoded embedding and metadata columns.
"""

import logging
import sqlite3
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from ..contracts.documents import Document, SearchResult
from ..core.exceptions import DocumentNotFoundError, StorageError, StoreClosedError
from ..retrieval.search import rank_documents
from .base import DocumentStore, row_to_document, serialize_document


logger = logging.getLogger(__name__)


MEMORY_PATH = ":memory:"

UPSERT_SQL = """
    INSERT INTO documents (id, content, source, embedding, metadata, created_at)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(id) DO UPDATE SET
        content = excluded.content,
        source = excluded.source,
        embedding = excluded.embedding,
        metadata = excluded.metadata,
        created_at = excluded.created_at
"""

SELECT_COLUMNS = "id, content, source, embedding, metadata, created_at"


class SqliteDocumentStore(DocumentStore):
    """
    SQLite-based implementation of the document store.

    Batch writes run in one transaction. Search loads every row and ranks in
    Python; the ``source`` and ``created_at`` indexes serve lookups and
    audits only.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        timeout: float = 5.0,
        auto_init: bool = True,
    ):
        """
        Open the SQLite document store.

        Args:
            db_path: Path to the SQLite database file (``:memory:`` for a
                throwaway database)
            timeout: Seconds to wait for a database lock before failing
            auto_init: Whether to create tables automatically
        """
        self.db_path = db_path if str(db_path) == MEMORY_PATH else Path(db_path)
        self.timeout = timeout
        self.conn: Optional[sqlite3.Connection] = None
        self._connect()

        if auto_init:
            self.initialize()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.timeout,
                check_same_thread=False,
            )
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Failed to open SQLite document store {self.db_path}: {e}")
            raise StorageError(f"Failed to open database {self.db_path}: {e}") from e

        self.conn.row_factory = sqlite3.Row
        logger.debug(f"Connected to SQLite document store: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection, failing if the store was closed."""
        if self.conn is None:
            raise StoreClosedError("Document store is closed")
        return self.conn

    def initialize(self) -> None:
        """Initialize database schema."""
        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    content TEXT NOT NULL,
                    source TEXT NOT NULL,
                    embedding TEXT NOT NULL,
                    metadata TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_source
                ON documents (source)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_documents_created_at
                ON documents (created_at)
            """)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to initialize schema: {e}")
            raise StorageError(f"Failed to initialize schema: {e}") from e

        logger.debug("Initialized document store schema")

    def add_document(self, doc: Document) -> None:
        self.add_documents([doc])

    def add_documents(self, docs: Sequence[Document]) -> None:
        if not docs:
            return

        conn = self._get_connection()
        try:
            cursor = conn.cursor()
            for doc in docs:
                embedding_json, metadata_json = serialize_document(doc)
                cursor.execute(UPSERT_SQL, (
                    doc.id,
                    doc.content,
                    doc.source,
                    embedding_json,
                    metadata_json,
                    doc.created_at.isoformat(),
                ))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to write batch of {len(docs)} documents: {e}")
            raise StorageError(f"Failed to write documents: {e}") from e
        except BaseException:
            conn.rollback()
            logger.error(f"Rolled back batch of {len(docs)} documents")
            raise

        logger.debug(f"Upserted {len(docs)} documents")

    def search(self, query_embedding: Sequence[float], limit: int) -> List[SearchResult]:
        documents = self._select(f"SELECT {SELECT_COLUMNS} FROM documents")
        return rank_documents(query_embedding, documents, limit)

    def get_document(self, doc_id: str) -> Document:
        documents = self._select(
            f"SELECT {SELECT_COLUMNS} FROM documents WHERE id = ?",
            (doc_id,),
        )
        if not documents:
            raise DocumentNotFoundError(doc_id)
        return documents[0]

    def delete_document(self, doc_id: str) -> None:
        deleted = self._delete("DELETE FROM documents WHERE id = ?", (doc_id,))
        if deleted == 0:
            raise DocumentNotFoundError(doc_id)
        logger.debug(f"Deleted document {doc_id}")

    def list_by_source(self, source: str) -> List[Document]:
        return self._select(
            f"SELECT {SELECT_COLUMNS} FROM documents WHERE source = ?",
            (source,),
        )

    def delete_by_source(self, source: str) -> int:
        deleted = self._delete("DELETE FROM documents WHERE source = ?", (source,))
        logger.debug(f"Deleted {deleted} documents from source {source}")
        return deleted

    def count(self) -> int:
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT COUNT(*) FROM documents").fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count documents: {e}") from e
        return row[0]

    def list_sources(self) -> List[Tuple[str, int]]:
        conn = self._get_connection()
        try:
            rows = conn.execute("""
                SELECT source, COUNT(*) AS chunk_count
                FROM documents
                GROUP BY source
                ORDER BY source
            """).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list sources: {e}") from e
        return [(row["source"], row["chunk_count"]) for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite document store connection")

    def _select(self, query: str, params: tuple = ()) -> List[Document]:
        conn = self._get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to query documents: {e}")
            raise StorageError(f"Failed to query documents: {e}") from e
        return [row_to_document(row) for row in rows]

    def _delete(self, query: str, params: tuple) -> int:
        conn = self._get_connection()
        try:
            cursor = conn.execute(query, params)
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete documents: {e}")
            raise StorageError(f"Failed to delete documents: {e}") from e
        return cursor.rowcount
