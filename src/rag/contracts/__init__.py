"""
Data contracts for the knowledge base.
"""

from .documents import (
    ChunkingPolicy,
    Document,
    IngestResult,
    SearchResult,
    parse_timestamp,
)

__all__ = [
    "ChunkingPolicy",
    "Document",
    "IngestResult",
    "SearchResult",
    "parse_timestamp",
]
