"""Public entry point of DocVault: ingestion and similarity search.

A :class:`VectorStore` owns every collection resident in this process.
Collections are loaded from disk on first access (their chunks are
re-embedded, since vectors are not persisted) and written back after
every ingestion step.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from docvault.config.settings import VectorStoreConfig
from docvault.indexer.collection import Collection
from docvault.indexer.embeddings import EmbeddingProvider, create_embedding_provider
from docvault.indexer.persistence import CollectionPersistence, validate_collection_name
from docvault.models import PLACEHOLDER_TEXT, ChunkMetadata, DocumentChunk, SearchResult
from docvault.pipelines.chunker import DocumentChunker
from docvault.pipelines.crawler import CrawlResult, WebCrawler, clamp_max_pages
from docvault.pipelines.extractor import ContentExtractor, ExtractionResult

logger = logging.getLogger(__name__)

HTML_SUFFIXES = {".html", ".htm", ".xhtml"}


class VectorStore:
    """Local semantic document store."""

    def __init__(self,
                 config: Optional[VectorStoreConfig] = None,
                 embeddings: Optional[EmbeddingProvider] = None,
                 extractor: Optional[ContentExtractor] = None,
                 chunker: Optional[DocumentChunker] = None):
        """Initialize the store.

        Args:
            config: Configuration; loaded from YAML/environment when omitted
            embeddings: Embedding provider; built from ``config`` when omitted
            extractor: HTML content extractor
            chunker: Text chunker; built from ``config`` when omitted

        Raises:
            ConfigurationError: If the embedding provider cannot be configured
        """
        self.config = config or VectorStoreConfig.load()
        self.embeddings = embeddings or create_embedding_provider(self.config)
        self.extractor = extractor or ContentExtractor(min_text_length=self.config.min_extracted_chars)
        self.chunker = chunker or DocumentChunker(
            chunk_size=self.config.chunk_size,
            chunk_overlap=self.config.chunk_overlap
        )
        self.persistence = CollectionPersistence(self.config.data_path)
        self._collections: Dict[str, Collection] = {}

    def get_collection(self, name: str) -> Collection:
        """Return a resident collection, loading or creating it on first access."""
        validate_collection_name(name)

        collection = self._collections.get(name)
        if collection is not None and collection.is_resident:
            logger.debug(f"Using existing collection from memory: {name} ({len(collection)} chunks)")
            return collection

        collection = Collection(name, self.embeddings)
        collection.begin_loading()

        chunks = self.persistence.load_collection(name)
        if chunks is None:
            logger.info(f"Creating new collection: {name}")
        else:
            logger.info(f"Loading collection from disk: {name} ({len(chunks)} chunks)")

        collection.finish_loading(chunks)
        self._collections[name] = collection

        if chunks is not None and name not in self.persistence.load_registry():
            logger.warning(f"Collection file for '{name}' had no registry entry; registering it")
            self.persistence.register(name)

        return collection

    def _persist(self, collection: Collection) -> None:
        if self.persistence.save_collection(collection.name, collection.chunks):
            collection.mark_saved()

    def _ingest(self, collection: Collection, chunks: List[DocumentChunk]) -> int:
        added = collection.add(chunks)
        if added:
            self._persist(collection)
        return added

    def _page_chunks(self, result: CrawlResult, extraction: ExtractionResult) -> List[DocumentChunk]:
        metadata = ChunkMetadata(
            source=result.url,
            url=result.url,
            title=extraction.title or result.url,
            site_name=extraction.site_name,
            author=extraction.author,
            crawl_time=result.crawl_time.isoformat() if result.crawl_time else None
        )
        if not extraction.ok:
            logger.warning(f"No usable text content found in {result.url}; storing placeholder")
            return [DocumentChunk(text=PLACEHOLDER_TEXT, metadata=metadata)]
        return self.chunker.create_chunks(extraction.text, metadata)

    async def add_docs(self,
                       collection_name: str,
                       url: str,
                       crawl: bool = False,
                       max_pages: Optional[int] = None,
                       max_depth: Optional[int] = None,
                       cancel_event: Optional[asyncio.Event] = None) -> int:
        """Fetch a URL (optionally crawling its site) into a collection.

        Each page is extracted, chunked, embedded and persisted before the
        next one is fetched, so a failure part way through keeps earlier
        pages.

        Args:
            collection_name: Target collection
            url: Seed URL
            crawl: Follow same-host links breadth-first
            max_pages: Page budget, capped at the configured ceiling
            max_depth: Link depth limit when crawling
            cancel_event: Stops the crawl before the next fetch when set

        Returns:
            Number of chunks added

        Raises:
            EmbeddingError: If the embedding provider fails
        """
        collection = self.get_collection(collection_name)

        if crawl:
            page_budget = clamp_max_pages(max_pages, self.config.max_pages_ceiling)
            depth_limit = self.config.default_max_depth if max_depth is None else max_depth
        else:
            page_budget, depth_limit = 1, 0

        logger.info(f"Adding documents from {url} to collection '{collection_name}' "
                    f"(crawl={crawl}, max_pages={page_budget}, max_depth={depth_limit})")

        added = 0
        async with WebCrawler(request_timeout=self.config.request_timeout,
                              user_agent=self.config.user_agent,
                              max_retries=self.config.max_retries,
                              politeness_delay=self.config.politeness_delay,
                              max_pages_ceiling=self.config.max_pages_ceiling) as crawler:
            async for result in crawler.crawl(url,
                                              max_pages=page_budget,
                                              max_depth=depth_limit,
                                              cancel_event=cancel_event):
                if not result.ok:
                    continue
                extraction = self.extractor.extract(result.content, result.final_url or result.url)
                added += self._ingest(collection, self._page_chunks(result, extraction))

        logger.info(f"Added {added} chunks to collection {collection_name}")
        return added

    def add_docs_sync(self, collection_name: str, url: str, **kwargs) -> int:
        """Synchronous wrapper for add_docs."""
        return asyncio.run(self.add_docs(collection_name, url, **kwargs))

    def add_file(self,
                 collection_name: str,
                 path: Union[str, Path],
                 metadata: Optional[Dict[str, Any]] = None) -> int:
        """Add a text file to a collection.

        HTML files go through the content extractor first.

        Returns:
            Number of chunks added
        """
        file_path = Path(path)
        text = file_path.read_text(encoding="utf-8")

        title = file_path.name
        if file_path.suffix.lower() in HTML_SUFFIXES:
            extraction = self.extractor.extract(text, file_path.resolve().as_uri())
            text = extraction.text
            title = extraction.title or title

        file_metadata = ChunkMetadata(
            source=str(file_path),
            title=title,
            extra={"type": "file", "extension": file_path.suffix},
        ).merged(metadata)

        if not text or not text.strip():
            logger.info(f"No usable text content found in {file_path}")
            return 0

        collection = self.get_collection(collection_name)
        chunks = self.chunker.create_chunks(text, file_metadata)
        added = self._ingest(collection, chunks)
        logger.info(f"Added {added} chunks from {file_path} to collection {collection_name}")
        return added

    def add_text(self,
                 collection_name: str,
                 text: str,
                 metadata: Optional[Dict[str, Any]] = None) -> int:
        """Add raw text to a collection.

        Returns:
            Number of chunks added; 0 for blank text
        """
        if not text or not text.strip():
            logger.info("No usable text content provided")
            return 0

        collection = self.get_collection(collection_name)
        chunks = self.chunker.create_chunks(text, ChunkMetadata.from_dict(metadata))
        added = self._ingest(collection, chunks)
        logger.info(f"Added {added} chunks from text to collection {collection_name}")
        return added

    def search(self, collection_name: str, query: str, k: int = 5) -> List[SearchResult]:
        """Return the ``k`` chunks most similar to ``query``.

        An unknown collection behaves like an empty one.

        Raises:
            EmbeddingError: If the query (or a lazily loaded collection)
                cannot be embedded
        """
        if not query or not query.strip():
            logger.warning("Search query is empty")
            return []
        if k <= 0:
            return []

        collection = self.get_collection(collection_name)
        if len(collection) == 0:
            logger.info(f"Collection {collection_name} has no documents to search")
            return []

        query_vector = self.embeddings.embed_query(query)
        results = collection.similarity_search(query_vector, k)
        logger.info(f"Found {len(results)} results for query: \"{query}\" in {collection_name}")
        return results

    def list_collections(self) -> List[str]:
        """Names of all persisted collections."""
        return self.persistence.list_collection_names()

    def reset(self) -> None:
        """Drop every collection, in memory and on disk."""
        self._collections.clear()
        self.persistence.reset()
