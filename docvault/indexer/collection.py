"""In-memory collection of embedded chunks with exhaustive cosine search."""

import logging
from enum import Enum
from typing import List, Optional

import numpy as np

from docvault.indexer.embeddings import EmbeddingProvider, cosine_similarity
from docvault.models import DocumentChunk, SearchResult

logger = logging.getLogger(__name__)


class CollectionState(str, Enum):
    """Lifecycle of a collection within one process."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    RESIDENT = "resident"


class Collection:
    """Named, ordered set of chunks plus their vectors.

    Search is a linear scan over every vector, which is fine for the
    hundreds-to-thousands of chunks a local collection holds.
    """

    def __init__(self, name: str, embeddings: EmbeddingProvider):
        self.name = name
        self.embeddings = embeddings
        self.state = CollectionState.UNLOADED
        self.dirty = False
        self._chunks: List[DocumentChunk] = []
        self._matrix: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self._chunks)

    def __repr__(self) -> str:
        return f"Collection(name={self.name!r}, chunks={len(self._chunks)}, state={self.state.value})"

    @property
    def chunks(self) -> List[DocumentChunk]:
        return list(self._chunks)

    @property
    def is_resident(self) -> bool:
        return self.state == CollectionState.RESIDENT

    def begin_loading(self) -> None:
        if self.state != CollectionState.UNLOADED:
            raise RuntimeError(f"Collection '{self.name}' is already {self.state.value}")
        self.state = CollectionState.LOADING

    def finish_loading(self, chunks: Optional[List[DocumentChunk]] = None) -> None:
        """Embed loaded chunks and become resident.

        On an embedding failure the collection returns to UNLOADED so a
        later access can retry.
        """
        if self.state != CollectionState.LOADING:
            raise RuntimeError(f"Collection '{self.name}' is not loading")
        try:
            if chunks:
                self._append(chunks)
        except Exception:
            self._chunks = []
            self._matrix = None
            self.state = CollectionState.UNLOADED
            raise
        self.dirty = False
        self.state = CollectionState.RESIDENT

    def _append(self, chunks: List[DocumentChunk]) -> List[DocumentChunk]:
        missing = [i for i, chunk in enumerate(chunks) if chunk.vector is None]
        embedded = list(chunks)
        if missing:
            vectors = self.embeddings.embed([chunks[i].text for i in missing])
            for i, vector in zip(missing, vectors):
                embedded[i] = chunks[i].with_vector(vector)

        new_rows = np.vstack([chunk.vector for chunk in embedded]).astype(np.float32)
        if self._matrix is None or self._matrix.size == 0:
            self._matrix = new_rows
        else:
            if new_rows.shape[1] != self._matrix.shape[1]:
                raise ValueError(
                    f"Vector dimension {new_rows.shape[1]} does not match collection dimension {self._matrix.shape[1]}"
                )
            self._matrix = np.vstack([self._matrix, new_rows])
        self._chunks.extend(embedded)
        return embedded

    def add(self, chunks: List[DocumentChunk]) -> int:
        """Embed chunks that lack vectors and append them in order.

        Nothing is appended if embedding fails.

        Returns:
            Number of chunks added
        """
        if not self.is_resident:
            raise RuntimeError(f"Collection '{self.name}' is not loaded")
        if not chunks:
            return 0

        self._append(chunks)
        self.dirty = True
        logger.debug(f"Added {len(chunks)} chunks to collection {self.name} (total {len(self._chunks)})")
        return len(chunks)

    def mark_saved(self) -> None:
        self.dirty = False

    def similarity_search(self, query_vector: np.ndarray, k: int = 5) -> List[SearchResult]:
        """Rank chunks by cosine similarity to ``query_vector``.

        Returns the top ``k`` by descending score; equal scores keep
        insertion order.
        """
        if k <= 0 or not self._chunks or self._matrix is None:
            return []

        scores = cosine_similarity(query_vector, self._matrix)
        order = np.argsort(-scores, kind="stable")[:k]

        return [
            SearchResult(
                text=self._chunks[i].text,
                metadata=self._chunks[i].metadata.to_dict(),
                score=float(scores[i])
            )
            for i in order
        ]
