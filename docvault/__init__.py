"""DocVault: a local semantic document store.

Crawls documentation sites or ingests files and text, splits the content
into overlapping chunks, embeds them and answers similarity queries over
named, JSON-persisted collections.
"""

from .errors import (
    DocVaultError,
    FetchError,
    ExtractionError,
    EmbeddingError,
    PersistenceError,
    ConfigurationError
)
from .models import ChunkMetadata, DocumentChunk, SearchResult, PLACEHOLDER_TEXT
from .config import VectorStoreConfig
from .indexer import VectorStore

__version__ = "0.1.0"

__all__ = [
    'DocVaultError',
    'FetchError',
    'ExtractionError',
    'EmbeddingError',
    'PersistenceError',
    'ConfigurationError',
    'ChunkMetadata',
    'DocumentChunk',
    'SearchResult',
    'PLACEHOLDER_TEXT',
    'VectorStoreConfig',
    'VectorStore'
]
