# DocVault Embeddings Module
# Provider-agnostic text embedding with batched calls

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np
from openai import OpenAI
from sentence_transformers import SentenceTransformer

from docvault.config.settings import EmbeddingProviderType, VectorStoreConfig
from docvault.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 512
DEFAULT_SENTENCE_TRANSFORMER_MODEL = "all-MiniLM-L6-v2"
DEFAULT_OPENAI_MODEL = "text-embedding-ada-002"

OPENAI_DIMENSIONS = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}


def cosine_similarity(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between one vector and each row of a matrix.

    Rows (or a query) with zero norm score 0.
    """
    query = np.asarray(query, dtype=np.float32)
    matrix = np.asarray(matrix, dtype=np.float32)
    if matrix.size == 0:
        return np.zeros(0, dtype=np.float32)
    if matrix.ndim != 2 or matrix.shape[1] != query.shape[-1]:
        raise ValueError(f"Dimension mismatch: query {query.shape} vs matrix {matrix.shape}")

    query_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    if query_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float32)

    dots = matrix @ query
    with np.errstate(divide='ignore', invalid='ignore'):
        scores = np.where(row_norms > 0, dots / (row_norms * query_norm), 0.0)
    return scores.astype(np.float32)


class EmbeddingProvider(ABC):
    """Converts text into fixed-dimension vectors.

    Subclasses implement :meth:`_embed_batch`; batching and error wrapping
    happen here. Failures are raised as :class:`EmbeddingError` and never
    retried at this layer.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...

    @property
    @abstractmethod
    def dimension(self) -> Optional[int]:
        """Vector size, or None when not known before the first call."""
        ...

    @abstractmethod
    def _embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        ...

    def embed(self, texts: List[str]) -> np.ndarray:
        """Embed texts in batches of at most ``batch_size``.

        Returns:
            Array of shape (len(texts), dimension)
        """
        if texts is None:
            raise TypeError("texts must be a list of strings")
        if not texts:
            return np.zeros((0, 0), dtype=np.float32)

        vectors: List[Sequence[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = [text if text else " " for text in texts[start:start + self.batch_size]]
            try:
                result = self._embed_batch(batch)
            except EmbeddingError:
                raise
            except Exception as e:
                raise EmbeddingError(f"Embedding request to {self.model_name} failed: {e}") from e

            if len(result) != len(batch):
                raise EmbeddingError(
                    f"Embedding provider returned {len(result)} vectors for {len(batch)} inputs"
                )
            vectors.extend(result)

        logger.debug(f"Embedded {len(texts)} texts with {self.model_name}")
        return np.asarray(vectors, dtype=np.float32)

    def embed_query(self, text: str) -> np.ndarray:
        """Embed a single query string."""
        return self.embed([text])[0]


class SentenceTransformerEmbeddings(EmbeddingProvider):
    """Local embeddings using a sentence-transformers model."""

    def __init__(self,
                 model_name: str = DEFAULT_SENTENCE_TRANSFORMER_MODEL,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 cache_dir: Optional[str] = None):
        """
        Initialize sentence-transformers provider

        Args:
            model_name: Sentence transformer model name
            batch_size: Maximum texts per encode call
            cache_dir: Optional model cache folder
        """
        super().__init__(batch_size)
        self._model_name = model_name
        self.cache_dir = cache_dir
        self.model = None

    @property
    def model_name(self) -> str:
        return self._model_name

    def _load_model(self):
        """Load the sentence transformer model on first use"""
        if self.model is not None:
            return self.model

        try:
            logger.info(f"Loading embedding model: {self._model_name}")
            if self.cache_dir:
                self.model = SentenceTransformer(self._model_name, cache_folder=self.cache_dir)
            else:
                self.model = SentenceTransformer(self._model_name)
            logger.info(f"Model loaded successfully. Embedding dimension: {self.model.get_sentence_embedding_dimension()}")
        except Exception as e:
            logger.error(f"Failed to load embedding model: {e}")
            raise EmbeddingError(f"Could not load embedding model '{self._model_name}': {e}") from e
        return self.model

    @property
    def dimension(self) -> Optional[int]:
        return self._load_model().get_sentence_embedding_dimension()

    def _embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        model = self._load_model()
        embeddings = model.encode(texts, convert_to_numpy=True, show_progress_bar=False)
        return list(embeddings)


class OpenAIEmbeddings(EmbeddingProvider):
    """Embeddings from the OpenAI API."""

    def __init__(self,
                 api_key: str,
                 model_name: str = DEFAULT_OPENAI_MODEL,
                 batch_size: int = DEFAULT_BATCH_SIZE,
                 strip_new_lines: bool = True):
        super().__init__(batch_size)
        if not api_key:
            raise ConfigurationError(
                "OpenAI API key is missing. Set the OPENAI_API_KEY environment variable "
                "or 'openai_api_key' in docvault.yaml.",
                setting="OPENAI_API_KEY",
            )
        self._model_name = model_name
        self.strip_new_lines = strip_new_lines
        self.client = OpenAI(api_key=api_key)
        self._dimension: Optional[int] = OPENAI_DIMENSIONS.get(model_name)

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    def _embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        if self.strip_new_lines:
            texts = [text.replace("\n", " ") for text in texts]
        response = self.client.embeddings.create(model=self._model_name, input=texts)
        vectors = [item.embedding for item in sorted(response.data, key=lambda item: item.index)]
        if vectors and self._dimension is None:
            self._dimension = len(vectors[0])
        return vectors


def create_embedding_provider(config: VectorStoreConfig) -> EmbeddingProvider:
    """Build the embedding provider selected by the configuration.

    Raises:
        ConfigurationError: If the provider needs a credential that is not
            set, or the provider name is unknown
    """
    provider = config.embedding_provider
    if provider == EmbeddingProviderType.OPENAI:
        return OpenAIEmbeddings(
            api_key=config.openai_api_key or "",
            model_name=config.embedding_model or DEFAULT_OPENAI_MODEL,
            batch_size=config.embedding_batch_size,
        )
    if provider == EmbeddingProviderType.SENTENCE_TRANSFORMERS:
        return SentenceTransformerEmbeddings(
            model_name=config.embedding_model or DEFAULT_SENTENCE_TRANSFORMER_MODEL,
            batch_size=config.embedding_batch_size,
        )
    raise ConfigurationError(f"Unknown embedding provider: {provider}", setting="embedding_provider")
