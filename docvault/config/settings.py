"""Configuration for DocVault.

Settings are resolved from built-in defaults, an optional YAML file and
environment variables, in that order of precedence (environment wins).
"""

import os
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from docvault.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "docvault.yaml"

# Hard ceiling on pages per crawl, applied regardless of the requested value
MAX_PAGES_CEILING = 30
POLITENESS_DELAY = 0.5


class EmbeddingProviderType(str, Enum):
    """Supported embedding backends."""
    SENTENCE_TRANSFORMERS = "sentence-transformers"
    OPENAI = "openai"


class VectorStoreConfig(BaseModel):
    """Vector store configuration."""
    data_dir: str = Field(default=".vector-db", description="Directory holding the registry and collection files")

    # Chunking
    chunk_size: int = Field(default=500, gt=0, description="Maximum characters per chunk")
    chunk_overlap: int = Field(default=100, ge=0, description="Characters shared between consecutive chunks")

    # Embeddings
    embedding_provider: EmbeddingProviderType = Field(
        default=EmbeddingProviderType.SENTENCE_TRANSFORMERS, description="Embedding backend"
    )
    embedding_model: Optional[str] = Field(default=None, description="Model name (provider default when unset)")
    embedding_batch_size: int = Field(default=512, gt=0, le=2048, description="Maximum inputs per embedding call")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")

    # Crawling
    max_pages_ceiling: int = Field(default=MAX_PAGES_CEILING, gt=0, description="Upper bound on pages per crawl")
    default_max_depth: int = Field(default=3, ge=0, description="Crawl depth used when none is given")
    politeness_delay: float = Field(default=POLITENESS_DELAY, ge=0, description="Seconds between successive fetches")
    request_timeout: int = Field(default=30, gt=0, description="HTTP request timeout in seconds")
    max_retries: int = Field(default=2, ge=0, description="Retries for transient fetch failures")
    user_agent: str = Field(default="DocVault/0.1 (+https://github.com/docvault/docvault)", description="HTTP User-Agent")

    # Extraction
    min_extracted_chars: int = Field(default=100, ge=1, description="Minimum text length for an extraction tier to succeed")

    log_level: str = Field(default="INFO", description="Log level")

    @classmethod
    def from_env(cls, base: Optional[Dict[str, Any]] = None) -> 'VectorStoreConfig':
        """Create configuration from environment variables.

        Args:
            base: Values to start from (e.g. parsed from a YAML file)
        """
        data = dict(base or {})
        env_map = {
            'DOCVAULT_DATA_DIR': 'data_dir',
            'DOCVAULT_CHUNK_SIZE': 'chunk_size',
            'DOCVAULT_CHUNK_OVERLAP': 'chunk_overlap',
            'DOCVAULT_EMBEDDING_PROVIDER': 'embedding_provider',
            'DOCVAULT_EMBEDDING_MODEL': 'embedding_model',
            'DOCVAULT_EMBEDDING_BATCH_SIZE': 'embedding_batch_size',
            'DOCVAULT_MAX_PAGES_CEILING': 'max_pages_ceiling',
            'DOCVAULT_POLITENESS_DELAY': 'politeness_delay',
            'DOCVAULT_REQUEST_TIMEOUT': 'request_timeout',
            'DOCVAULT_MAX_RETRIES': 'max_retries',
            'DOCVAULT_LOG_LEVEL': 'log_level',
            'OPENAI_API_KEY': 'openai_api_key',
        }
        for env_name, field_name in env_map.items():
            value = os.getenv(env_name)
            if value is not None and value != "":
                data[field_name] = value

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid DocVault configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> Dict[str, Any]:
        """Read raw configuration values from a YAML file."""
        yaml_file = Path(path)
        try:
            with open(yaml_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse config file {yaml_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {yaml_file}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {yaml_file} must contain a mapping")
        return data

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> 'VectorStoreConfig':
        """Load configuration from defaults, YAML file and environment.

        Args:
            path: Explicit YAML file. When omitted, ``docvault.yaml`` in the
                working directory is used if it exists.
        """
        base: Dict[str, Any] = {}
        if path is not None:
            base = cls.from_yaml(path)
        elif Path(DEFAULT_CONFIG_FILE).exists():
            logger.debug(f"Loading configuration from {DEFAULT_CONFIG_FILE}")
            base = cls.from_yaml(DEFAULT_CONFIG_FILE)

        config = cls.from_env(base)
        if config.chunk_overlap >= config.chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({config.chunk_overlap}) must be smaller than chunk_size ({config.chunk_size})",
                setting="chunk_overlap",
            )
        return config

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir)
