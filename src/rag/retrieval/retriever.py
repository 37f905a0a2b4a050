"""
Retriever - Ingest files into the knowledge base and look up context for queries.

Ingestion: file -> paragraph chunks -> one batched embedding call -> one
atomic batch write. Query: text -> single-item embedding -> full-corpus
cosine search -> formatted context.

Usage:
    >>> store = SqliteDocumentStore("knowledge.db")
    >>> retriever = Retriever(store, OllamaClient())
    >>> retriever.ingest_directory("docs/")
    >>> context = retriever.retrieve_context("How do I configure logging?", limit=3)
"""

import fnmatch
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from ..contracts.documents import ChunkingPolicy, Document, IngestResult, SearchResult
from ..core.exceptions import EmbeddingError, IngestionError, ProviderError
from ..core.logging import CorrelationContext, log_with_context
from ..core.utils import compute_content_hash, generate_document_id
from ..storage.base import DocumentStore
from .chunker import Chunker


logger = logging.getLogger(__name__)


DEFAULT_EMBED_MODEL = "mxbai-embed-large"

DEFAULT_PATTERNS = ["*.txt", "*.md", "*.go", "*.py", "*.js", "*.java"]

CONTEXT_HEADER = "Relevant context from knowledge base:\n\n"

PathLike = Union[str, Path]


def matches_any(name: str, patterns: Iterable[str]) -> bool:
    """Shell-glob match of ``name`` against any of ``patterns`` (case-sensitive)."""
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns)


class Retriever:
    """
    Composes a chunker, an embedding provider and a document store.

    The store and embedder are injected. The embedder is any object with
    ``embed(texts, model=...)`` returning a response whose ``embeddings``
    holds one vector per text, in order (see OllamaClient).

    Ingestion is idempotent per (source, chunk index): ids are derived from
    both and the store upserts.
    """

    def __init__(
        self,
        store: DocumentStore,
        embedder,
        embed_model: str = DEFAULT_EMBED_MODEL,
        policy: Optional[ChunkingPolicy] = None,
        allowed_files: Optional[Sequence[str]] = None,
    ):
        """
        Initialize the retriever.

        Args:
            store: Document store to read and write
            embedder: Embedding provider
            embed_model: Embedding model name passed on every embed call
            policy: Chunking policy (uses default if not provided)
            allowed_files: Optional glob patterns; when set, retrieval only
                returns documents whose file name or source path matches
        """
        self.store = store
        self.embedder = embedder
        self.embed_model = embed_model or DEFAULT_EMBED_MODEL
        self.chunker = Chunker(policy)
        self.allowed_files = list(allowed_files or [])

    # =========================================================================
    # Ingestion
    # =========================================================================

    def ingest_file(self, path: PathLike) -> IngestResult:
        """
        Chunk, embed and store one file.

        Nothing is written for the file unless every chunk was embedded.

        Args:
            path: File to ingest

        Returns:
            IngestResult describing the written documents

        Raises:
            IngestionError: If the file cannot be read
            EmbeddingError: If the embedding call fails
            StorageError: If the batch write fails
        """
        source = os.path.abspath(os.fspath(path))

        try:
            with open(source, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read file {source}: {e}")
            raise IngestionError(f"Failed to read file {source}: {e}", path=source) from e

        chunks = self.chunker.chunk_by_paragraph(content)
        if not chunks:
            logger.warning(f"No content to ingest in {source}")
            return IngestResult(source=source)

        embeddings = self._embed(chunks)

        created_at = datetime.now(timezone.utc)
        file_name = os.path.basename(source)
        docs = []
        for i, (chunk, embedding) in enumerate(zip(chunks, embeddings)):
            docs.append(Document(
                id=generate_document_id(source, i),
                content=chunk,
                source=source,
                embedding=list(embedding),
                metadata={
                    "chunk_index": str(i),
                    "file_name": file_name,
                    "content_sha256": compute_content_hash(chunk),
                },
                created_at=created_at,
            ))

        self.store.add_documents(docs)

        log_with_context(
            logger, logging.INFO,
            f"Ingested {len(docs)} chunks from {file_name}",
            source=source, chunk_count=len(docs),
        )
        return IngestResult(
            source=source,
            chunk_count=len(docs),
            document_ids=[doc.id for doc in docs],
        )

    def ingest_files(self, paths: Iterable[PathLike]) -> List[IngestResult]:
        """
        Ingest files one after another, stopping at the first failure.

        Files ingested before the failure stay in the store.

        Returns:
            One IngestResult per ingested file, in order
        """
        results = []
        with CorrelationContext(run_id=str(uuid.uuid4())[:8]):
            for path in paths:
                try:
                    results.append(self.ingest_file(path))
                except Exception as e:
                    log_with_context(
                        logger, logging.ERROR,
                        f"Failed to ingest {path}: {e}; "
                        f"aborting after {len(results)} files",
                        source=str(path),
                    )
                    raise
        return results

    def ingest_directory(
        self,
        root: PathLike,
        patterns: Optional[Sequence[str]] = None,
    ) -> List[IngestResult]:
        """
        Recursively ingest every file under ``root`` whose name matches a pattern.

        Patterns are matched against the base file name only.

        Args:
            root: Directory to walk
            patterns: Glob patterns (default: *.txt, *.md, *.go, *.py, *.js, *.java)

        Returns:
            One IngestResult per ingested file

        Raises:
            IngestionError: If root is not a directory or the walk fails
        """
        patterns = list(patterns) if patterns else DEFAULT_PATTERNS
        root = os.fspath(root)

        if not os.path.isdir(root):
            raise IngestionError(f"Not a directory: {root}", path=root)

        def _raise(error: OSError) -> None:
            raise error

        files = []
        try:
            for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
                dirnames.sort()
                for name in sorted(filenames):
                    if matches_any(name, patterns):
                        files.append(os.path.join(dirpath, name))
        except OSError as e:
            logger.error(f"Failed to walk directory {root}: {e}")
            raise IngestionError(f"Failed to walk directory {root}: {e}", path=root) from e

        logger.info(f"Found {len(files)} matching files under {root}")
        return self.ingest_files(files)

    # =========================================================================
    # Query
    # =========================================================================

    def retrieve(self, query: str, limit: int) -> List[SearchResult]:
        """
        Find the stored chunks most similar to ``query``.

        Args:
            query: Query text
            limit: Maximum number of results (``<= 0`` returns all)

        Returns:
            Results ordered by similarity descending; empty if the corpus is empty

        Raises:
            EmbeddingError: If the query cannot be embedded
            StorageError: If the search fails
        """
        query_embedding = self._embed([query])[0]

        if not self.allowed_files:
            return self.store.search(query_embedding, limit)

        results = [
            result for result in self.store.search(query_embedding, 0)
            if self._is_allowed(result.document)
        ]
        return results[:limit] if limit > 0 else results

    def retrieve_context(self, query: str, limit: int) -> str:
        """
        Render the best matches for ``query`` as a context block.

        Returns:
            The rendered context, or "" when nothing matched
        """
        results = self.retrieve(query, limit)
        if not results:
            return ""

        parts = [CONTEXT_HEADER]
        for i, result in enumerate(results, start=1):
            parts.append(f"--- Document {i} (similarity: {result.similarity:.3f}) ---\n")
            parts.append(result.document.content)
            parts.append("\n\n")

        return "".join(parts)

    def delete_source(self, source: PathLike) -> int:
        """
        Remove every document of a source file in one store operation.

        Args:
            source: Path of the source file (made absolute, as at ingestion)

        Returns:
            Number of documents removed
        """
        source = os.path.abspath(os.fspath(source))
        deleted = self.store.delete_by_source(source)
        logger.info(f"Deleted {deleted} documents from {source}")
        return deleted

    # =========================================================================
    # Helpers
    # =========================================================================

    def _embed(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in one call, verifying one vector comes back per text."""
        try:
            response = self.embedder.embed(texts, model=self.embed_model)
        except EmbeddingError:
            raise
        except ProviderError as e:
            raise EmbeddingError(str(e), provider=e.provider, status_code=e.status_code) from e

        embeddings = list(response.embeddings or [])
        if not response.success or len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}"
                + (f": {response.error_message}" if response.error_message else "")
            )
        return embeddings

    def _is_allowed(self, doc: Document) -> bool:
        file_name = doc.metadata.get("file_name") or os.path.basename(doc.source)
        return matches_any(file_name, self.allowed_files) or matches_any(doc.source, self.allowed_files)
