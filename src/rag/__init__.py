"""
Local Knowledge Base Module

This module provides retrieval augmented generation (RAG) for a local Ollama
server: text files are split into overlapping chunks, embedded, stored with
their vectors and later retrieved by cosine similarity to build context for
a chat prompt.

Key components:
- contracts/: Document, search result and chunking policy types
- core/: Exceptions, logging and id utilities
- retrieval/: Chunker, similarity search, Retriever and prompt augmentation
- storage/: Pluggable document stores (SQLite, SQL Server, in-memory)
- providers/: Ollama HTTP client (embeddings and chat)
- config/: YAML configuration with environment overrides
- cli.py: The ollama-rag command line
"""

__version__ = "0.1.0"
