"""Pipelines package for DocVault.

Provides crawling, content extraction and chunking functionality.
"""

from .crawler import (
    WebCrawler,
    CrawlResult,
    CrawlStats,
    normalize_url,
    clamp_max_pages,
    crawl_site,
    crawl_site_sync
)
from .extractor import (
    ContentExtractor,
    ExtractionResult,
    ExtractionStrategy,
    ReaderModeStrategy,
    StructuralStrategy,
    BodyTextStrategy,
    extract_content,
    normalize_whitespace
)
from .chunker import DocumentChunker, split_text, chunk_text

__all__ = [
    # Crawler
    'WebCrawler',
    'CrawlResult',
    'CrawlStats',
    'normalize_url',
    'clamp_max_pages',
    'crawl_site',
    'crawl_site_sync',

    # Extractor
    'ContentExtractor',
    'ExtractionResult',
    'ExtractionStrategy',
    'ReaderModeStrategy',
    'StructuralStrategy',
    'BodyTextStrategy',
    'extract_content',
    'normalize_whitespace',

    # Chunker
    'DocumentChunker',
    'split_text',
    'chunk_text'
]
