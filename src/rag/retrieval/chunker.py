"""
Chunker - Split documents into searchable units for retrieval.

Implements boundary-aware chunking with:
- Maximum chunk size and overlap
- Sentence, then word, then hard-cut breakpoints
- Paragraph-first splitting so overlap never crosses a blank line
"""

import logging
import re
from typing import List, Optional

from ..contracts.documents import ChunkingPolicy

logger = logging.getLogger(__name__)


SENTENCE_TERMINATORS = ".!?"

# A blank line: newline, optional horizontal whitespace, newline.
PARAGRAPH_BREAK = re.compile(r"\r?\n[ \t]*\r?\n")


class Chunker:
    """
    Chunks text content into bounded, optionally overlapping segments.

    Example:
        >>> chunker = Chunker(ChunkingPolicy(chunk_size=500, overlap=50))
        >>> chunks = chunker.chunk_by_paragraph(open("notes.md").read())
    """

    def __init__(self, policy: Optional[ChunkingPolicy] = None):
        """
        Initialize the chunker.

        Args:
            policy: Chunking policy (uses default if not provided)
        """
        self.policy = policy or ChunkingPolicy()
        _validate(self.policy.chunk_size, self.policy.overlap)

    def chunk(self, text: str) -> List[str]:
        """Split text into chunks using this chunker's policy."""
        return chunk_text(
            text,
            chunk_size=self.policy.chunk_size,
            overlap=self.policy.overlap,
        )

    def chunk_by_paragraph(self, text: str) -> List[str]:
        """
        Split text on blank lines, then chunk each paragraph independently.

        Empty paragraphs are dropped. Overlap is applied only within a
        paragraph.
        """
        all_chunks = []
        for paragraph in PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            all_chunks.extend(self.chunk(paragraph))

        logger.debug(f"Split text into {len(all_chunks)} chunks")
        return all_chunks


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    if overlap < 0:
        raise ValueError("overlap must be non-negative")


def find_breakpoint(text: str, start: int, target_end: int, chunk_size: int) -> int:
    """
    Find a natural end position for the chunk starting at ``start``.

    Scans backward from ``target_end`` but never past the chunk midpoint.
    Prefers the position just after a sentence terminator that is followed by
    whitespace or end-of-text, then any whitespace, and otherwise returns
    ``target_end`` unchanged.
    """
    floor = start + chunk_size // 2

    for i in range(target_end - 1, floor, -1):
        if text[i] in SENTENCE_TERMINATORS:
            if i + 1 >= len(text) or text[i + 1].isspace():
                return i + 1

    for i in range(target_end - 1, floor, -1):
        if text[i].isspace():
            return i

    return target_end


def chunk_text(
    text: str,
    chunk_size: int = 500,
    overlap: int = 50,
) -> List[str]:
    """
    Split text into overlapping chunks at natural boundaries.

    Positions are code-point offsets into ``text``, so a multi-byte character
    is never split.

    Args:
        text: Text content to chunk
        chunk_size: Maximum size of each chunk in characters
        overlap: Characters to step back between consecutive chunks. Values
            at or above chunk_size are accepted; the start still advances by
            at least one character per chunk.

    Returns:
        Trimmed, non-empty chunks in document order
    """
    _validate(chunk_size, overlap)

    if not text:
        return []

    if len(text) <= chunk_size:
        stripped = text.strip()
        return [stripped] if stripped else []

    chunks = []
    text_len = len(text)
    start = 0

    while start < text_len:
        end = start + chunk_size
        if end >= text_len:
            end = text_len
        else:
            end = find_breakpoint(text, start, end, chunk_size)

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)

        # The tail has been emitted
        if end >= text_len:
            break

        new_start = end - overlap
        if new_start <= start:
            new_start = start + 1
        start = new_start

    return chunks
