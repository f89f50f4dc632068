"""Indexer package for DocVault.

Provides embeddings, collections, persistence and the VectorStore facade.
"""

from .embeddings import (
    EmbeddingProvider,
    SentenceTransformerEmbeddings,
    OpenAIEmbeddings,
    create_embedding_provider,
    cosine_similarity
)
from .collection import Collection, CollectionState
from .persistence import CollectionPersistence, validate_collection_name, REGISTRY_FILE
from .store import VectorStore

__all__ = [
    # Embeddings
    'EmbeddingProvider',
    'SentenceTransformerEmbeddings',
    'OpenAIEmbeddings',
    'create_embedding_provider',
    'cosine_similarity',

    # Collections
    'Collection',
    'CollectionState',

    # Persistence
    'CollectionPersistence',
    'validate_collection_name',
    'REGISTRY_FILE',

    # Store
    'VectorStore'
]
