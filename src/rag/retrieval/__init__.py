"""
Retrieval module for RAG (Retrieval Augmented Generation).

This module provides:
- Chunking: Split documents into searchable units
- Search: Cosine similarity ranking over the whole corpus
- Retriever: Ingest files and build context for queries
"""

from .chunker import Chunker, chunk_text
from .search import cosine_similarity, rank_documents
from .retriever import DEFAULT_PATTERNS, Retriever
from .augment import DEFAULT_SYSTEM_PROMPT, build_augmented_prompt, build_chat_messages

__all__ = [
    "Chunker",
    "chunk_text",
    "cosine_similarity",
    "rank_documents",
    "DEFAULT_PATTERNS",
    "Retriever",
    "DEFAULT_SYSTEM_PROMPT",
    "build_augmented_prompt",
    "build_chat_messages",
]
