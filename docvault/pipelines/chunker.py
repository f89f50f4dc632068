"""Document chunking pipeline for DocVault.

Splits text into bounded, overlapping segments for embedding. Splitting
prefers paragraph breaks, then line breaks, then sentence ends, then
spaces, and only cuts mid-word when nothing else fits.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from docvault.models import ChunkMetadata, DocumentChunk

logger = logging.getLogger(__name__)

DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", " ", ""]


class DocumentChunker:
    """Recursive character splitter with overlap."""

    def __init__(self,
                 chunk_size: int = 500,
                 chunk_overlap: int = 100,
                 separators: Optional[List[str]] = None):
        """Initialize chunker.

        Args:
            chunk_size: Maximum size of each chunk in characters
            chunk_overlap: Characters carried over from the end of one chunk
                into the start of the next
            separators: Split points in order of preference; ``""`` means
                a hard character cut
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} with chunk_size={chunk_size}"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators is not None else list(DEFAULT_SEPARATORS)

    def _split_on(self, text: str, separator: str) -> List[str]:
        """Split text keeping each separator at the end of the piece before it."""
        if separator == "":
            return list(text)
        pieces = re.split(f"(?<={re.escape(separator)})", text)
        return [p for p in pieces if p]

    def _merge_splits(self, splits: List[str]) -> List[str]:
        """Greedily pack small pieces into chunks, keeping a tail for overlap."""
        chunks = []
        current: List[str] = []
        total = 0

        for piece in splits:
            length = len(piece)
            if current and total + length > self.chunk_size:
                chunk = "".join(current).strip()
                if chunk:
                    chunks.append(chunk)
                # Drop from the head until only the overlap remains
                while current and (total > self.chunk_overlap or total + length > self.chunk_size):
                    total -= len(current.pop(0))
            current.append(piece)
            total += length

        chunk = "".join(current).strip()
        if chunk:
            chunks.append(chunk)
        return chunks

    def _split_recursive(self, text: str, separators: List[str]) -> List[str]:
        separator = separators[-1]
        remaining: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        results = []
        pending: List[str] = []
        for piece in self._split_on(text, separator):
            if len(piece) < self.chunk_size:
                pending.append(piece)
                continue

            if pending:
                results.extend(self._merge_splits(pending))
                pending = []
            if remaining:
                results.extend(self._split_recursive(piece, remaining))
            else:
                # Nothing finer to split on
                results.extend(self._merge_splits(list(piece)))

        if pending:
            results.extend(self._merge_splits(pending))
        return results

    def split_text(self, text: str) -> List[str]:
        """Split text into ordered segments of at most ``chunk_size`` characters."""
        if not text or not text.strip():
            return []
        return self._split_recursive(text, self.separators)

    def create_chunks(self, text: str, metadata: Optional[ChunkMetadata] = None) -> List[DocumentChunk]:
        """Split text and wrap each segment in a DocumentChunk.

        Args:
            text: Text to split
            metadata: Metadata copied onto every chunk

        Returns:
            List of DocumentChunk objects, in text order
        """
        base = metadata or ChunkMetadata()
        chunks = [
            DocumentChunk(text=segment, metadata=ChunkMetadata.from_dict(base.to_dict()))
            for segment in self.split_text(text)
        ]
        logger.debug(f"Split {len(text)} characters into {len(chunks)} chunks")
        return chunks


# Convenience functions
def split_text(text: str, chunk_size: int = 500, chunk_overlap: int = 100) -> List[str]:
    """Convenience function to split text with the default separators."""
    return DocumentChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap).split_text(text)


def chunk_text(text: str,
               metadata: Optional[Dict[str, Any]] = None,
               chunk_size: int = 500,
               chunk_overlap: int = 100) -> List[DocumentChunk]:
    """Convenience function to split text into DocumentChunk objects."""
    chunker = DocumentChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return chunker.create_chunks(text, ChunkMetadata.from_dict(metadata))
