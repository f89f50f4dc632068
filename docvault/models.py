"""Data model shared by the pipelines and the indexer."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

import numpy as np

# Stored in place of text when a page or record yields nothing usable
PLACEHOLDER_TEXT = "No content"

# Python attribute -> on-disk key
_WELL_KNOWN_KEYS = {
    'source': 'source',
    'title': 'title',
    'url': 'url',
    'site_name': 'siteName',
    'author': 'author',
    'crawl_time': 'crawlTime',
}


@dataclass
class ChunkMetadata:
    """Metadata attached to every chunk.

    The well-known fields are typed; anything else a caller supplies
    (``type``, ``extension``, ...) lives in ``extra``.
    """
    source: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None
    site_name: Optional[str] = None
    author: Optional[str] = None
    crawl_time: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to the on-disk representation, omitting unset fields."""
        result = dict(self.extra)
        for attr, key in _WELL_KNOWN_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'ChunkMetadata':
        """Build metadata from a flat mapping.

        Accepts both the on-disk keys (``siteName``) and the attribute
        names (``site_name``).
        """
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}
        for attr, key in _WELL_KNOWN_KEYS.items():
            if key in data:
                kwargs[attr] = data.pop(key)
            elif attr in data:
                kwargs[attr] = data.pop(attr)
        for attr in list(kwargs):
            if kwargs[attr] is not None:
                kwargs[attr] = str(kwargs[attr])
        extra = {key: value if isinstance(value, str) else str(value)
                 for key, value in data.items() if value is not None}
        return cls(extra=extra, **kwargs)

    def merged(self, overrides: Optional[Dict[str, Any]]) -> 'ChunkMetadata':
        """Return a copy with ``overrides`` applied on top."""
        combined = self.to_dict()
        combined.update(overrides or {})
        return ChunkMetadata.from_dict(combined)


@dataclass(frozen=True)
class DocumentChunk:
    """A single stored unit of text; immutable once created."""
    text: str
    metadata: ChunkMetadata = field(default_factory=ChunkMetadata)
    vector: Optional[np.ndarray] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if not self.text or not self.text.strip():
            object.__setattr__(self, 'text', PLACEHOLDER_TEXT)

    def with_vector(self, vector: np.ndarray) -> 'DocumentChunk':
        """Return a copy of this chunk carrying ``vector``."""
        return replace(self, vector=np.asarray(vector, dtype=np.float32))

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the ``{pageContent, metadata}`` record stored on disk."""
        return {
            "pageContent": self.text,
            "metadata": self.metadata.to_dict()
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'DocumentChunk':
        return cls(
            text=record.get("pageContent") or PLACEHOLDER_TEXT,
            metadata=ChunkMetadata.from_dict(record.get("metadata"))
        )


@dataclass
class SearchResult:
    """One ranked hit from a similarity search."""
    text: str
    metadata: Dict[str, Any]
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "metadata": self.metadata,
            "score": self.score
        }
