"""
Core subpackage for the retrieval module.

Contains exceptions, logging utilities and hashing helpers.
"""

from .exceptions import (
    RAGError,
    ProviderError,
    EmbeddingError,
    StorageError,
    StoreClosedError,
    DocumentNotFoundError,
    IngestionError,
    ConfigError,
)
from .utils import compute_content_hash, generate_document_id

__all__ = [
    # Exceptions
    "RAGError",
    "ProviderError",
    "EmbeddingError",
    "StorageError",
    "StoreClosedError",
    "DocumentNotFoundError",
    "IngestionError",
    "ConfigError",
    # Utilities
    "compute_content_hash",
    "generate_document_id",
]
