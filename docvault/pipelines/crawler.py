"""Web crawler pipeline for DocVault.

Breadth-first crawl over same-host links with a page budget, a depth
limit and a politeness delay between requests.
"""

import asyncio
import logging
import random
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Deque, Dict, List, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse, urlunparse

import aiohttp
from bs4 import BeautifulSoup

from docvault.config.settings import MAX_PAGES_CEILING, POLITENESS_DELAY
from docvault.errors import FetchError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
FOLLOWED_SCHEMES = {"http", "https"}


@dataclass
class CrawlResult:
    """Result of crawling a single URL."""
    url: str
    status_code: int
    depth: int = 0
    content: Optional[str] = None
    content_type: Optional[str] = None
    error: Optional[str] = None
    crawl_time: Optional[datetime] = None
    response_time: Optional[float] = None
    retry_count: int = 0
    final_url: Optional[str] = None  # After redirects

    def __post_init__(self):
        if self.crawl_time is None:
            self.crawl_time = datetime.now(timezone.utc)

    @property
    def ok(self) -> bool:
        return self.error is None and self.content is not None


@dataclass
class CrawlStats:
    """Statistics for a crawl session."""
    total_urls: int = 0
    successful: int = 0
    failed: int = 0
    retried: int = 0
    redirected: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        if self.start_time is None:
            self.start_time = datetime.now(timezone.utc)

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        return None

    def finish(self):
        """Mark crawl as finished."""
        self.end_time = datetime.now(timezone.utc)


def normalize_url(url: str) -> str:
    """Key used for the visited set: scheme, host and path only."""
    parsed = urlparse(url)
    path = parsed.path or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, "", "", ""))


def clamp_max_pages(max_pages: Optional[int], ceiling: int = MAX_PAGES_CEILING) -> int:
    """Apply the page ceiling to a requested page budget."""
    if max_pages is None:
        return ceiling
    return max(1, min(int(max_pages), ceiling))


class WebCrawler:
    """Sequential breadth-first web crawler."""

    def __init__(self,
                 request_timeout: int = 30,
                 user_agent: str = "DocVault/0.1",
                 max_retries: int = 2,
                 retry_delay: float = 1.0,
                 max_retry_delay: float = 30.0,
                 politeness_delay: float = POLITENESS_DELAY,
                 max_pages_ceiling: int = MAX_PAGES_CEILING):
        """Initialize crawler.

        Args:
            request_timeout: Request timeout in seconds
            user_agent: User agent string
            max_retries: Maximum number of retry attempts for transient failures
            retry_delay: Base delay between retries (seconds)
            max_retry_delay: Maximum delay between retries (seconds)
            politeness_delay: Minimum seconds between requests to the same host
            max_pages_ceiling: Upper bound applied to every crawl's page budget
        """
        self.request_timeout = request_timeout
        self.user_agent = user_agent
        self.session: Optional[aiohttp.ClientSession] = None

        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_retry_delay = max_retry_delay

        self.politeness_delay = politeness_delay
        self.max_pages_ceiling = max_pages_ceiling
        self.last_request_time: Dict[str, float] = {}

        self.stats = CrawlStats()

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self):
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.request_timeout)
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                headers={'User-Agent': self.user_agent}
            )

    async def close(self):
        """Close the crawler session."""
        if self.session:
            await self.session.close()
            self.session = None

    def _get_domain(self, url: str) -> str:
        return urlparse(url).netloc

    async def _respect_rate_limit(self, url: str):
        """Sleep until ``politeness_delay`` has passed since the last request to this host."""
        domain = self._get_domain(url)

        if domain in self.last_request_time:
            elapsed = time.monotonic() - self.last_request_time[domain]
            if elapsed < self.politeness_delay:
                sleep_time = self.politeness_delay - elapsed
                logger.debug(f"Rate limiting {domain}: sleeping {sleep_time:.2f}s")
                await asyncio.sleep(sleep_time)

        self.last_request_time[domain] = time.monotonic()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        base_delay = self.retry_delay * (2 ** attempt)
        jitter = random.uniform(0.1, 0.3) * base_delay
        return min(base_delay + jitter, self.max_retry_delay)

    def _is_retryable_error(self, exception: Optional[Exception], status_code: Optional[int] = None) -> bool:
        """Determine if an error is worth another attempt."""
        if status_code is not None and status_code in RETRYABLE_STATUS_CODES:
            return True

        if isinstance(exception, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
            return True

        # Connection problems are transient; 4xx client errors are not
        return isinstance(exception, (aiohttp.ClientConnectionError,
                                      aiohttp.ServerDisconnectedError))

    async def _request(self, url: str) -> Tuple[int, str, str, str]:
        """Perform one GET request.

        Returns:
            Tuple of (status, content_type, body, final_url)

        Raises:
            FetchError: On non-2xx status or non-text content
        """
        await self._ensure_session()
        async with self.session.get(url, allow_redirects=True) as response:
            content_type = response.headers.get('content-type', '')
            final_url = str(response.url)

            if response.status >= 400:
                raise FetchError(f"HTTP {response.status} for {url}", url=url, status=response.status)

            if content_type and not content_type.startswith('text/'):
                raise FetchError(f"Non-text content type: {content_type}", url=url, status=response.status)

            body = await response.text(errors='replace')
            return response.status, content_type, body, final_url

    async def _fetch_url(self, url: str, depth: int = 0) -> CrawlResult:
        """Fetch a single URL with retry logic. Never raises."""
        start_time = time.monotonic()
        last_error: Optional[Exception] = None
        status_code = 0

        for attempt in range(self.max_retries + 1):
            await self._respect_rate_limit(url)
            logger.debug(f"Fetching {url} (attempt {attempt + 1}/{self.max_retries + 1})")

            try:
                status_code, content_type, body, final_url = await self._request(url)
                return CrawlResult(
                    url=url,
                    status_code=status_code,
                    depth=depth,
                    content=body,
                    content_type=content_type,
                    response_time=time.monotonic() - start_time,
                    retry_count=attempt,
                    final_url=final_url
                )
            except FetchError as e:
                last_error = e
                status_code = e.status or 0
                retryable = self._is_retryable_error(None, e.status)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                last_error = e
                status_code = 408 if isinstance(e, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)) else 0
                retryable = self._is_retryable_error(e)

            if retryable and attempt < self.max_retries:
                delay = self._calculate_retry_delay(attempt)
                logger.warning(f"Error fetching {url}: {last_error}, retrying in {delay:.2f}s "
                               f"(attempt {attempt + 1}/{self.max_retries + 1})")
                await asyncio.sleep(delay)
                continue
            break

        return CrawlResult(
            url=url,
            status_code=status_code,
            depth=depth,
            error=str(last_error) if last_error else "Unknown error",
            response_time=time.monotonic() - start_time,
            retry_count=attempt
        )

    def _extract_links(self, content: str, base_url: str) -> List[str]:
        """Extract absolute, fragment-free links from HTML, in document order."""
        links: List[str] = []
        seen: Set[str] = set()

        try:
            soup = BeautifulSoup(content, 'html.parser')
        except Exception as e:
            logger.warning(f"Failed to extract links from {base_url}: {e}")
            return links

        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith(('#', 'mailto:', 'javascript:', 'tel:')):
                continue
            absolute_url = urljoin(base_url, href)
            parsed = urlparse(absolute_url)
            if parsed.scheme not in FOLLOWED_SCHEMES:
                continue
            clean_url = urlunparse(parsed._replace(fragment=''))
            if clean_url not in seen:
                seen.add(clean_url)
                links.append(clean_url)

        return links

    def _should_follow_link(self, url: str, seed_host: str, same_domain_only: bool) -> bool:
        if not same_domain_only:
            return True
        return (urlparse(url).hostname or "") == seed_host

    async def crawl(self,
                    seed_url: str,
                    max_pages: Optional[int] = None,
                    max_depth: int = 3,
                    same_domain_only: bool = True,
                    cancel_event: Optional[asyncio.Event] = None) -> AsyncIterator[CrawlResult]:
        """Crawl breadth-first from ``seed_url``.

        Every processed URL is yielded, failed ones included (check
        ``result.ok``). The consumer finishes with each page before the
        next one is fetched.

        Args:
            seed_url: Starting URL (depth 0)
            max_pages: Page budget; clamped to ``max_pages_ceiling``
            max_depth: Links are followed only from pages with depth < max_depth
            same_domain_only: Only follow links on the seed's hostname
            cancel_event: When set, the crawl stops before the next fetch
        """
        page_budget = clamp_max_pages(max_pages, self.max_pages_ceiling)
        seed_host = urlparse(seed_url).hostname or ""

        self.stats = CrawlStats()
        frontier: Deque[Tuple[str, int]] = deque([(seed_url, 0)])
        visited: Set[str] = set()
        processed = 0

        logger.info(f"Starting crawl of {seed_url} (max_pages={page_budget}, max_depth={max_depth})")

        try:
            while frontier and processed < page_budget:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Crawl of {seed_url} cancelled after {processed} pages")
                    break

                url, depth = frontier.popleft()
                key = normalize_url(url)
                if key in visited:
                    continue
                visited.add(key)
                processed += 1

                logger.info(f"Fetching {url} (depth: {depth})")
                result = await self._fetch_url(url, depth)
                self.stats.total_urls += 1

                if result.retry_count > 0:
                    self.stats.retried += 1
                if result.final_url and result.final_url != url:
                    self.stats.redirected += 1

                if not result.ok:
                    self.stats.failed += 1
                    logger.warning(f"Skipping {url}: {result.error}")
                    yield result
                    continue

                self.stats.successful += 1
                if result.final_url:
                    visited.add(normalize_url(result.final_url))

                if depth < max_depth:
                    base = result.final_url or url
                    for link in self._extract_links(result.content, base):
                        if not self._should_follow_link(link, seed_host, same_domain_only):
                            continue
                        if normalize_url(link) in visited:
                            continue
                        frontier.append((link, depth + 1))

                yield result
        finally:
            self.stats.finish()
            logger.info(f"Crawl completed: {self.stats.successful} successful, {self.stats.failed} failed, "
                        f"{self.stats.retried} retried, {self.stats.redirected} redirected "
                        f"out of {self.stats.total_urls} total URLs")

    async def crawl_all(self, seed_url: str, **kwargs) -> Tuple[List[CrawlResult], CrawlStats]:
        """Run a crawl to completion and collect the results."""
        results = [result async for result in self.crawl(seed_url, **kwargs)]
        return results, self.stats


# Convenience functions
async def crawl_site(seed_url: str,
                     max_pages: Optional[int] = None,
                     max_depth: int = 3,
                     **crawler_kwargs) -> Tuple[List[CrawlResult], CrawlStats]:
    """Convenience function to crawl a site.

    Returns:
        Tuple of (results, stats)
    """
    async with WebCrawler(**crawler_kwargs) as crawler:
        return await crawler.crawl_all(seed_url, max_pages=max_pages, max_depth=max_depth)


def crawl_site_sync(seed_url: str,
                    max_pages: Optional[int] = None,
                    max_depth: int = 3,
                    **crawler_kwargs) -> Tuple[List[CrawlResult], CrawlStats]:
    """Synchronous wrapper for crawl_site."""
    return asyncio.run(crawl_site(seed_url, max_pages, max_depth, **crawler_kwargs))
