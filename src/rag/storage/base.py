"""
Document store interface for the knowledge base.

Stores are opened once, initialized, and closed explicitly. They are not
internally synchronized: concurrent writers get whatever isolation the
backing engine provides, and upserts are last-writer-wins.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Sequence, Tuple

from ..contracts.documents import Document, SearchResult
from ..core.exceptions import StorageError


class DocumentStore(ABC):
    """
    Abstract base class for document stores.

    A document store persists chunk records keyed by id and answers
    similarity queries by scanning every stored embedding.
    """

    @abstractmethod
    def initialize(self) -> None:
        """Create tables and indexes if they do not exist. Safe to call repeatedly."""
        pass

    @abstractmethod
    def add_document(self, doc: Document) -> None:
        """
        Insert a document, replacing any existing document with the same id.

        Args:
            doc: The document to upsert
        """
        pass

    @abstractmethod
    def add_documents(self, docs: Sequence[Document]) -> None:
        """
        Upsert a batch of documents atomically.

        Either every document is written or none is.

        Args:
            docs: Documents to upsert

        Raises:
            StorageError: If any document fails; the batch is rolled back
        """
        pass

    @abstractmethod
    def search(self, query_embedding: Sequence[float], limit: int) -> List[SearchResult]:
        """
        Rank all stored documents by cosine similarity to the query.

        Args:
            query_embedding: Query vector
            limit: Maximum number of results (``<= 0`` returns all)

        Returns:
            Results ordered by similarity descending, then id ascending
        """
        pass

    @abstractmethod
    def get_document(self, doc_id: str) -> Document:
        """
        Get a document by id.

        Raises:
            DocumentNotFoundError: If no document has this id
        """
        pass

    @abstractmethod
    def delete_document(self, doc_id: str) -> None:
        """
        Delete a document by id.

        Raises:
            DocumentNotFoundError: If no document has this id
        """
        pass

    @abstractmethod
    def list_by_source(self, source: str) -> List[Document]:
        """Return every document whose source equals ``source`` (unordered)."""
        pass

    @abstractmethod
    def delete_by_source(self, source: str) -> int:
        """
        Delete every document of a source in a single operation.

        Returns:
            Number of documents deleted (0 if the source was unknown)
        """
        pass

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored documents."""
        pass

    @abstractmethod
    def list_sources(self) -> List[Tuple[str, int]]:
        """Return (source, document count) pairs ordered by source."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources. Later operations raise StoreClosedError."""
        pass

    def __enter__(self) -> "DocumentStore":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def serialize_document(doc: Document) -> Tuple[str, str]:
    """
    Encode a document's embedding and metadata as JSON text columns.

    Non-finite embedding values (NaN, inf) are rejected.

    Raises:
        StorageError: If either field cannot be serialized or created_at is
            not a datetime
    """
    if not isinstance(doc.created_at, datetime):
        raise StorageError(f"Document {doc.id} has no valid created_at: {doc.created_at!r}")
    try:
        embedding_json = json.dumps([float(v) for v in doc.embedding], allow_nan=False)
        metadata_json = json.dumps(doc.metadata or {}, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Failed to serialize document {doc.id}: {e}") from e
    return embedding_json, metadata_json


def row_to_document(row: Dict[str, Any]) -> Document:
    """
    Decode a stored row (id, content, source, embedding, metadata, created_at).

    Raises:
        StorageError: If a JSON column or the timestamp is corrupt
    """
    try:
        return Document.from_dict({
            "id": row["id"],
            "content": row["content"],
            "source": row["source"],
            "embedding": json.loads(row["embedding"]) if row["embedding"] else [],
            "metadata": json.loads(row["metadata"]) if row["metadata"] else {},
            "created_at": row["created_at"],
        })
    except (TypeError, ValueError) as e:
        raise StorageError(f"Failed to decode document {row['id']}: {e}") from e
