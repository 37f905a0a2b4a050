"""
In-memory document store.

Keeps documents in a dict. Useful for tests and throwaway sessions; nothing
survives ``close()``.
"""

import copy
import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from ..contracts.documents import Document, SearchResult
from ..core.exceptions import DocumentNotFoundError, StoreClosedError
from ..retrieval.search import rank_documents
from .base import DocumentStore, serialize_document


logger = logging.getLogger(__name__)


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed implementation of the document store.

    Documents are copied on the way in and out, so callers cannot mutate
    stored state. Batches are validated and staged before being applied,
    which keeps ``add_documents`` all-or-nothing.
    """

    def __init__(self):
        self._documents: Optional[Dict[str, Document]] = {}

    def _get_documents(self) -> Dict[str, Document]:
        if self._documents is None:
            raise StoreClosedError("Document store is closed")
        return self._documents

    def initialize(self) -> None:
        self._get_documents()

    def add_document(self, doc: Document) -> None:
        self.add_documents([doc])

    def add_documents(self, docs: Sequence[Document]) -> None:
        documents = self._get_documents()

        staged = {}
        for doc in docs:
            # Same serialization rules as the persistent backends
            serialize_document(doc)
            staged[doc.id] = copy.deepcopy(doc)

        documents.update(staged)
        logger.debug(f"Upserted {len(staged)} documents")

    def search(self, query_embedding: Sequence[float], limit: int) -> List[SearchResult]:
        documents = self._get_documents()
        return rank_documents(
            query_embedding,
            [copy.deepcopy(doc) for doc in documents.values()],
            limit,
        )

    def get_document(self, doc_id: str) -> Document:
        documents = self._get_documents()
        if doc_id not in documents:
            raise DocumentNotFoundError(doc_id)
        return copy.deepcopy(documents[doc_id])

    def delete_document(self, doc_id: str) -> None:
        documents = self._get_documents()
        if doc_id not in documents:
            raise DocumentNotFoundError(doc_id)
        del documents[doc_id]

    def list_by_source(self, source: str) -> List[Document]:
        documents = self._get_documents()
        return [copy.deepcopy(doc) for doc in documents.values() if doc.source == source]

    def delete_by_source(self, source: str) -> int:
        documents = self._get_documents()
        doomed = [doc_id for doc_id, doc in documents.items() if doc.source == source]
        for doc_id in doomed:
            del documents[doc_id]
        return len(doomed)

    def count(self) -> int:
        return len(self._get_documents())

    def list_sources(self) -> List[Tuple[str, int]]:
        counts = Counter(doc.source for doc in self._get_documents().values())
        return sorted(counts.items())

    def close(self) -> None:
        self._documents = None
