"""
Core Utilities - Shared hashing helpers for the retrieval module.
"""

import hashlib


DOCUMENT_ID_LENGTH = 16


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of text content.

    Args:
        content: Text content to hash

    Returns:
        Hex-encoded SHA256 hash (64 characters)

    Example:
        >>> compute_content_hash("Hello, World!")
        'dffd6021bb2bd5b0af676290809ec3a53191dd81c7f70a4b28688a362182986f'
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def generate_document_id(source: str, chunk_index: int) -> str:
    """
    Derive the stable id of a chunk from its source path and position.

    The same (source, chunk_index) pair always yields the same id, which is
    what makes re-ingesting a file an upsert instead of a duplicate.

    Args:
        source: Absolute path of the source file
        chunk_index: Position of the chunk within the source

    Returns:
        First 16 hex characters of sha256("<source>:<chunk_index>")
    """
    digest = hashlib.sha256(f"{source}:{chunk_index}".encode("utf-8")).hexdigest()
    return digest[:DOCUMENT_ID_LENGTH]
