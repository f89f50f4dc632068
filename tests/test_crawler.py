"""Unit tests for the breadth-first web crawler."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from docvault.errors import FetchError
from docvault.pipelines.crawler import CrawlResult, WebCrawler, clamp_max_pages, crawl_site_sync, normalize_url

SITE = {
    "https://docs.example.com/": '<a href="/b">B</a> <a href="/c">C</a> <a href="https://other.example.org/x">ext</a>',
    "https://docs.example.com/b": '<a href="/d">D</a>',
    "https://docs.example.com/c": '<p>leaf</p>',
    "https://docs.example.com/d": '<p>deep</p>',
}


def fake_fetch(site):
    async def _fetch(url, depth=0):
        if url not in site:
            return CrawlResult(url=url, status_code=404, depth=depth, error=f"HTTP 404 for {url}")
        return CrawlResult(url=url, status_code=200, depth=depth, content=site[url],
                           content_type="text/html", final_url=url)
    return AsyncMock(side_effect=_fetch)


def fetched_urls(crawler):
    return [call.args[0] for call in crawler._fetch_url.call_args_list]


def run_crawl(crawler, seed, **kwargs):
    async def _collect():
        return [result async for result in crawler.crawl(seed, **kwargs)]
    return asyncio.run(_collect())


@pytest.fixture
def crawler():
    crawler = WebCrawler(politeness_delay=0, retry_delay=0)
    crawler._fetch_url = fake_fetch(SITE)
    return crawler


class TestCrawl:

    def test_depth_limit_stops_before_grandchildren(self, crawler):
        results = run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=1)

        assert fetched_urls(crawler) == [
            "https://docs.example.com/",
            "https://docs.example.com/b",
            "https://docs.example.com/c",
        ]
        assert [r.depth for r in results] == [0, 1, 1]
        assert all(r.ok for r in results)

    def test_deeper_crawl_reaches_grandchildren(self, crawler):
        run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=3)

        assert "https://docs.example.com/d" in fetched_urls(crawler)

    def test_depth_zero_fetches_seed_only(self, crawler):
        results = run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=0)

        assert len(results) == 1
        assert fetched_urls(crawler) == ["https://docs.example.com/"]

    def test_page_budget(self, crawler):
        results = run_crawl(crawler, "https://docs.example.com/", max_pages=2, max_depth=3)

        assert len(results) == 2
        assert crawler._fetch_url.call_count == 2

    def test_page_budget_is_capped_by_ceiling(self):
        site = {"https://docs.example.com/": " ".join(f'<a href="/p{i}">p</a>' for i in range(20))}
        site.update({f"https://docs.example.com/p{i}": "<p>page</p>" for i in range(20)})
        crawler = WebCrawler(politeness_delay=0, max_pages_ceiling=3)
        crawler._fetch_url = fake_fetch(site)

        results = run_crawl(crawler, "https://docs.example.com/", max_pages=100, max_depth=2)

        assert len(results) == 3

    def test_external_links_not_followed(self, crawler):
        run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=3)

        assert not any("other.example.org" in url for url in fetched_urls(crawler))

    def test_failed_page_does_not_stop_crawl(self, crawler):
        site = dict(SITE)
        del site["https://docs.example.com/b"]
        crawler._fetch_url = fake_fetch(site)

        results = run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=1)

        assert [r.ok for r in results] == [True, False, True]
        assert crawler.stats.failed == 1
        assert crawler.stats.successful == 2
        assert crawler.stats.end_time is not None

    def test_duplicate_links_fetched_once(self):
        site = {
            "https://docs.example.com/": '<a href="/b">1</a><a href="/b#part">2</a><a href="/b/">3</a>',
            "https://docs.example.com/b": '<a href="/">home</a>',
        }
        crawler = WebCrawler(politeness_delay=0)
        crawler._fetch_url = fake_fetch(site)

        run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=3)

        assert fetched_urls(crawler) == ["https://docs.example.com/", "https://docs.example.com/b"]

    def test_redirect_target_fetched_once(self):
        async def _fetch(url, depth=0):
            if url == "https://docs.example.com/":
                return CrawlResult(url=url, status_code=200, depth=depth, content='<a href="/guide">G</a>',
                                   content_type="text/html", final_url="https://docs.example.com/start")
            content = '<a href="/start">again</a>' if url.endswith("/guide") else "<p>start</p>"
            return CrawlResult(url=url, status_code=200, depth=depth, content=content,
                               content_type="text/html", final_url=url)
        crawler = WebCrawler(politeness_delay=0)
        crawler._fetch_url = AsyncMock(side_effect=_fetch)

        run_crawl(crawler, "https://docs.example.com/", max_pages=10, max_depth=3)

        assert fetched_urls(crawler) == ["https://docs.example.com/", "https://docs.example.com/guide"]
        assert crawler.stats.redirected == 1

    def test_cancellation_stops_before_next_fetch(self, crawler):
        async def _run():
            cancel = asyncio.Event()
            results = []
            async for result in crawler.crawl("https://docs.example.com/", max_pages=10,
                                              max_depth=3, cancel_event=cancel):
                results.append(result)
                cancel.set()
            return results

        results = asyncio.run(_run())

        assert len(results) == 1
        assert crawler._fetch_url.call_count == 1


class TestFetchRetries:

    def test_retries_transient_status(self):
        crawler = WebCrawler(politeness_delay=0, retry_delay=0, max_retries=2)
        url = "https://docs.example.com/"
        crawler._request = AsyncMock(side_effect=[
            FetchError("HTTP 503", url=url, status=503),
            (200, "text/html", "<p>ok</p>", url),
        ])

        result = asyncio.run(crawler._fetch_url(url))

        assert result.ok
        assert result.retry_count == 1
        assert crawler._request.call_count == 2

    def test_client_error_not_retried(self):
        crawler = WebCrawler(politeness_delay=0, retry_delay=0, max_retries=2)
        url = "https://docs.example.com/missing"
        crawler._request = AsyncMock(side_effect=FetchError("HTTP 404", url=url, status=404))

        result = asyncio.run(crawler._fetch_url(url))

        assert not result.ok
        assert result.status_code == 404
        assert crawler._request.call_count == 1

    def test_gives_up_after_max_retries(self):
        crawler = WebCrawler(politeness_delay=0, retry_delay=0, max_retries=1)
        url = "https://docs.example.com/"
        crawler._request = AsyncMock(side_effect=asyncio.TimeoutError())

        result = asyncio.run(crawler._fetch_url(url))

        assert not result.ok
        assert result.status_code == 408
        assert crawler._request.call_count == 2


class TestPoliteness:

    def _fetch_all(self, crawler, urls):
        async def _run():
            with patch("docvault.pipelines.crawler.asyncio.sleep", new=AsyncMock()) as sleep:
                for url in urls:
                    await crawler._fetch_url(url)
            return sleep
        return asyncio.run(_run())

    def test_same_host_requests_are_spaced(self):
        crawler = WebCrawler(politeness_delay=0.5, retry_delay=0)
        crawler._request = AsyncMock(return_value=(200, "text/html", "<p>ok</p>", None))

        sleep = self._fetch_all(crawler, ["https://docs.example.com/a", "https://docs.example.com/b"])

        assert sleep.await_count == 1
        assert sleep.await_args.args[0] == pytest.approx(0.5, abs=0.05)

    def test_other_hosts_are_not_delayed(self):
        crawler = WebCrawler(politeness_delay=0.5, retry_delay=0)
        crawler._request = AsyncMock(return_value=(200, "text/html", "<p>ok</p>", None))

        sleep = self._fetch_all(crawler, [
            "https://docs.example.com/a",
            "https://other.example.org/a",
            "https://third.example.net/a",
        ])

        sleep.assert_not_awaited()


class TestHelpers:

    @pytest.mark.parametrize("url,expected", [
        ("https://Docs.Example.com/guide/", "https://docs.example.com/guide"),
        ("https://docs.example.com/guide?x=1#top", "https://docs.example.com/guide"),
        ("https://docs.example.com", "https://docs.example.com/"),
        ("https://docs.example.com/", "https://docs.example.com/"),
    ])
    def test_normalize_url(self, url, expected):
        assert normalize_url(url) == expected

    @pytest.mark.parametrize("requested,expected", [(None, 30), (0, 1), (-5, 1), (5, 5), (30, 30), (31, 30), (1000, 30)])
    def test_clamp_max_pages(self, requested, expected):
        assert clamp_max_pages(requested, 30) == expected

    def test_extract_links(self):
        html = """
        <a href="/a">a</a>
        <a href="b.html#frag">b</a>
        <a href="#only-fragment">skip</a>
        <a href="mailto:someone@example.com">skip</a>
        <a href="ftp://example.com/file">skip</a>
        <a href="/a">dup</a>
        """
        links = WebCrawler()._extract_links(html, "https://docs.example.com/guide/")

        assert links == ["https://docs.example.com/a", "https://docs.example.com/guide/b.html"]


def test_crawl_site_sync_collects_results_and_stats():
    async def _fetch(self, url, depth=0):
        return CrawlResult(url=url, status_code=200, depth=depth, content=SITE.get(url, ""),
                           content_type="text/html", final_url=url)

    with patch.object(WebCrawler, "_fetch_url", new=_fetch):
        results, stats = crawl_site_sync("https://docs.example.com/", max_pages=10, max_depth=1,
                                         politeness_delay=0)

    assert [r.url for r in results] == [
        "https://docs.example.com/",
        "https://docs.example.com/b",
        "https://docs.example.com/c",
    ]
    assert stats.successful == 3
    assert stats.duration is not None
