"""Tests for configuration loading."""

import pytest

from docvault.config.settings import (
    DEFAULT_CONFIG_FILE,
    MAX_PAGES_CEILING,
    EmbeddingProviderType,
    VectorStoreConfig,
)
from docvault.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ("DOCVAULT_DATA_DIR", "DOCVAULT_CHUNK_SIZE", "DOCVAULT_CHUNK_OVERLAP",
                 "DOCVAULT_EMBEDDING_PROVIDER", "DOCVAULT_EMBEDDING_MODEL", "DOCVAULT_EMBEDDING_BATCH_SIZE",
                 "DOCVAULT_MAX_PAGES_CEILING", "DOCVAULT_POLITENESS_DELAY", "DOCVAULT_REQUEST_TIMEOUT",
                 "DOCVAULT_MAX_RETRIES", "DOCVAULT_LOG_LEVEL", "OPENAI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    config = VectorStoreConfig.load()

    assert config.data_dir == ".vector-db"
    assert config.chunk_size == 500
    assert config.chunk_overlap == 100
    assert config.embedding_provider == EmbeddingProviderType.SENTENCE_TRANSFORMERS
    assert config.max_pages_ceiling == MAX_PAGES_CEILING == 30
    assert config.default_max_depth == 3
    assert config.politeness_delay == 0.5


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DOCVAULT_DATA_DIR", "/tmp/vault")
    monkeypatch.setenv("DOCVAULT_CHUNK_SIZE", "800")
    monkeypatch.setenv("DOCVAULT_EMBEDDING_PROVIDER", "openai")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    config = VectorStoreConfig.load()

    assert config.data_dir == "/tmp/vault"
    assert config.chunk_size == 800
    assert config.embedding_provider == EmbeddingProviderType.OPENAI
    assert config.openai_api_key == "sk-test"


def test_yaml_file(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("chunk_size: 300\nchunk_overlap: 50\nembedding_model: all-mpnet-base-v2\n", encoding="utf-8")

    config = VectorStoreConfig.load(path)

    assert config.chunk_size == 300
    assert config.chunk_overlap == 50
    assert config.embedding_model == "all-mpnet-base-v2"


def test_default_yaml_in_working_directory(tmp_path):
    (tmp_path / DEFAULT_CONFIG_FILE).write_text("data_dir: from-yaml\n", encoding="utf-8")

    assert VectorStoreConfig.load().data_dir == "from-yaml"


def test_environment_beats_yaml(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("chunk_size: 300\n", encoding="utf-8")
    monkeypatch.setenv("DOCVAULT_CHUNK_SIZE", "900")

    assert VectorStoreConfig.load(path).chunk_size == 900


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert VectorStoreConfig.load(path).chunk_size == 500


@pytest.mark.parametrize("content", ["- a\n- b\n", "key: [unclosed\n"])
def test_invalid_yaml(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigurationError):
        VectorStoreConfig.load(path)


def test_missing_yaml_file(tmp_path):
    with pytest.raises(ConfigurationError):
        VectorStoreConfig.load(tmp_path / "missing.yaml")


def test_invalid_value(monkeypatch):
    monkeypatch.setenv("DOCVAULT_CHUNK_SIZE", "not-a-number")

    with pytest.raises(ConfigurationError):
        VectorStoreConfig.load()


def test_overlap_must_be_smaller_than_size(monkeypatch):
    monkeypatch.setenv("DOCVAULT_CHUNK_SIZE", "100")
    monkeypatch.setenv("DOCVAULT_CHUNK_OVERLAP", "100")

    with pytest.raises(ConfigurationError) as exc_info:
        VectorStoreConfig.load()
    assert exc_info.value.setting == "chunk_overlap"


def test_unknown_provider(monkeypatch):
    monkeypatch.setenv("DOCVAULT_EMBEDDING_PROVIDER", "word2vec")

    with pytest.raises(ConfigurationError):
        VectorStoreConfig.load()
