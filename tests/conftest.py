"""Shared fixtures for the DocVault test suite."""

import hashlib
import logging
import re
from typing import List, Sequence

import numpy as np
import pytest

from docvault.config.settings import VectorStoreConfig
from docvault.indexer.embeddings import EmbeddingProvider
from docvault.indexer.store import VectorStore


class HashingEmbeddings(EmbeddingProvider):
    """Deterministic bag-of-words embeddings; no model download needed."""

    def __init__(self, dimension: int = 1024, batch_size: int = 512):
        super().__init__(batch_size)
        self._dimension = dimension
        self.calls: List[List[str]] = []

    @property
    def model_name(self) -> str:
        return "hashing-test"

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_batch(self, texts: List[str]) -> List[Sequence[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            vector = np.zeros(self._dimension, dtype=np.float32)
            for token in re.findall(r"[a-z0-9]+", text.lower()):
                index = int(hashlib.md5(token.encode("utf-8")).hexdigest(), 16) % self._dimension
                vector[index] += 1.0
            vectors.append(vector)
        return vectors


@pytest.fixture
def embeddings():
    return HashingEmbeddings()


@pytest.fixture
def config(tmp_path):
    return VectorStoreConfig(
        data_dir=str(tmp_path / "vector-db"),
        politeness_delay=0,
        max_retries=0,
    )


@pytest.fixture
def store(config, embeddings):
    return VectorStore(config=config, embeddings=embeddings)


@pytest.fixture
def make_store(config, embeddings):
    """Build a second store over the same data directory (a 'new process')."""
    def _make():
        return VectorStore(config=config, embeddings=HashingEmbeddings(embeddings.dimension))
    return _make


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
