"""Configuration module for DocVault.

Provides configuration for storage, chunking, embeddings and crawling.
"""

from .settings import (
    VectorStoreConfig,
    EmbeddingProviderType,
    MAX_PAGES_CEILING,
    POLITENESS_DELAY,
    DEFAULT_CONFIG_FILE
)

__all__ = [
    'VectorStoreConfig',
    'EmbeddingProviderType',
    'MAX_PAGES_CEILING',
    'POLITENESS_DELAY',
    'DEFAULT_CONFIG_FILE'
]
