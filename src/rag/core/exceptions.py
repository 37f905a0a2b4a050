"""
Custom exceptions for the retrieval module.
"""

from typing import Optional


class RAGError(Exception):
    """Base exception for all retrieval module errors."""
    pass


class ProviderError(RAGError):
    """
    Error communicating with a model provider.

    Raised when:
    - Provider is unreachable
    - Request times out
    - Provider returns an error response
    """

    def __init__(self, message: str, provider: str = None, status_code: int = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class EmbeddingError(ProviderError):
    """
    Error producing embeddings for a batch of texts.

    Raised when:
    - The embedding request fails
    - The provider returns a different number of vectors than texts sent
    """
    pass


class StorageError(RAGError):
    """
    Error persisting or reading documents.

    Raised when:
    - A batch write fails (the batch is rolled back)
    - A stored row cannot be decoded
    - The backing database reports an error
    """
    pass


class StoreClosedError(StorageError):
    """Raised when an operation is attempted on a closed document store."""
    pass


class DocumentNotFoundError(RAGError):
    """
    No document matches the requested id.

    Kept separate from StorageError so callers can tell "absent" from "broken".
    """

    def __init__(self, doc_id: str):
        super().__init__(f"Document not found: {doc_id}")
        self.doc_id = doc_id


class IngestionError(RAGError):
    """
    Error reading a file or walking a directory during ingestion.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ConfigError(RAGError):
    """
    Error in configuration.

    Raised when:
    - Configuration file exists but cannot be read or parsed
    - Configuration values are out of valid range
    """
    pass
