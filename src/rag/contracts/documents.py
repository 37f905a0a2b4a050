"""
Document Contracts - data models for the knowledge base.

These models define the unit of storage (Document), a ranked search hit
(SearchResult), the chunking parameters (ChunkingPolicy) and the summary of
an ingestion call (IngestResult).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """
    Normalize a stored timestamp to a timezone-aware UTC datetime.

    Accepts datetime objects (naive values are assumed UTC) and ISO-8601 strings.
    """
    if isinstance(value, datetime):
        created = value
    elif isinstance(value, str):
        created = datetime.fromisoformat(value)
    elif value is None:
        return _utc_now()
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")

    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


@dataclass
class ChunkingPolicy:
    """
    Policy for splitting documents into chunks.

    Attributes:
        chunk_size: Maximum chunk size in characters
        overlap: Characters shared between consecutive chunks
    """
    chunk_size: int = 500
    overlap: int = 50

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "chunk_size": self.chunk_size,
            "overlap": self.overlap,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkingPolicy":
        """Create from dictionary."""
        return cls(
            chunk_size=data.get("chunk_size", 500),
            overlap=data.get("overlap", 50),
        )


@dataclass
class Document:
    """
    A chunk of a source file, with its embedding.

    Attributes:
        id: Stable id derived from (absolute source path, chunk index)
        content: Chunk text
        source: Absolute path of the originating file
        embedding: Embedding vector; dimensionality is set by the embedding model
        metadata: String-to-string mapping (chunk_index, file_name, ...)
        created_at: When the document was written
    """
    id: str
    content: str
    source: str
    embedding: List[float] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def chunk_index(self) -> int:
        """Position of this chunk within its source (-1 if unknown)."""
        try:
            return int(self.metadata.get("chunk_index", -1))
        except (TypeError, ValueError):
            return -1

    def to_dict(self, include_embedding: bool = True) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = {
            "id": self.id,
            "content": self.content,
            "source": self.source,
            "metadata": dict(self.metadata),
            "created_at": self.created_at.isoformat(),
        }
        if include_embedding:
            data["embedding"] = list(self.embedding)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Document":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            content=data["content"],
            source=data["source"],
            embedding=list(data.get("embedding") or []),
            metadata=dict(data.get("metadata") or {}),
            created_at=parse_timestamp(data.get("created_at")),
        )


@dataclass
class SearchResult:
    """
    A stored document paired with its cosine similarity to a query.

    Attributes:
        document: The matching document
        similarity: Cosine similarity in [-1, 1]
    """
    document: Document
    similarity: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization (embedding omitted)."""
        return {
            "document": self.document.to_dict(include_embedding=False),
            "similarity": self.similarity,
        }


@dataclass
class IngestResult:
    """
    Summary of one ingested file.

    Attributes:
        source: Absolute path of the ingested file
        chunk_count: Number of documents written
        document_ids: Ids of the written documents, in chunk order
    """
    source: str
    chunk_count: int = 0
    document_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "source": self.source,
            "chunk_count": self.chunk_count,
            "document_ids": list(self.document_ids),
        }
