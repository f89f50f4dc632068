"""HTML content extraction for DocVault.

Turns fetched HTML into clean text using an ordered list of strategies.
Each strategy is tried in turn and the first one producing enough text
wins:

1. Reader mode (trafilatura main-content detection)
2. Structural walk of the DOM with Markdown-style markers
3. Visible text of ``<body>``
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence
from urllib.parse import urlparse

import trafilatura
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from docvault.errors import ExtractionError

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 100

NON_CONTENT_TAGS = ["script", "style", "noscript", "template", "iframe", "svg", "nav", "footer", "header", "aside", "form"]

MAIN_CONTENT_SELECTORS = [
    "main",
    "article",
    "[role=main]",
    ".content",
    ".documentation",
    ".docs",
    "#content",
    "#main",
]

HEADING_TAGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
BLOCK_CONTAINERS = {"div", "section", "main", "article", "body", "blockquote", "details", "figure", "dl", "center"}


@dataclass
class ExtractionResult:
    """Text and page metadata derived from one HTML document."""
    title: str
    text: str
    site_name: Optional[str] = None
    author: Optional[str] = None
    ok: bool = True
    strategy: Optional[str] = None


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces, strip lines and allow at most one blank line.

    Lines inside ``` fences keep their indentation.
    """
    if not text:
        return ""

    lines = []
    in_fence = False
    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        stripped = raw.strip()
        if stripped.startswith("```"):
            in_fence = not in_fence
            lines.append(stripped)
            continue
        if in_fence:
            lines.append(raw.rstrip())
            continue
        lines.append(re.sub(r"[ \t\f\v\u00a0]+", " ", stripped))

    out = []
    blank = False
    for line in lines:
        if not line.strip():
            if out and not blank:
                out.append("")
            blank = True
            continue
        out.append(line)
        blank = False

    return "\n".join(out).strip()


def _meta_content(soup: BeautifulSoup, *queries: dict) -> Optional[str]:
    for attrs in queries:
        tag = soup.find("meta", attrs=attrs)
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


def _fallback_title(soup: Optional[BeautifulSoup], base_url: str) -> str:
    if soup is not None:
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(strip=True)
        h1 = soup.find("h1")
        if h1 and h1.get_text(strip=True):
            return h1.get_text(strip=True)
    segment = urlparse(base_url).path.rstrip("/").split("/")[-1] if base_url else ""
    return segment or base_url


def _strip_non_content(soup: BeautifulSoup) -> None:
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()


class ExtractionStrategy(ABC):
    """One tier of the extraction fallback chain."""

    name = "base"

    @abstractmethod
    def extract(self, html: str, base_url: str) -> ExtractionResult:
        """Extract readable text from ``html`` fetched from ``base_url``."""
        ...

class ReaderModeStrategy(ExtractionStrategy):
    """Main-content detection scored on text density and tag semantics."""

    name = "reader"

    def extract(self, html: str, base_url: str) -> ExtractionResult:
        soup = BeautifulSoup(html, "html.parser")
        site_name = _meta_content(soup, {"property": "og:site_name"}, {"name": "application-name"})
        author = _meta_content(soup, {"name": "author"}, {"property": "article:author"})
        title = _fallback_title(soup, base_url)

        _strip_non_content(soup)
        try:
            text = trafilatura.extract(
                str(soup),
                url=base_url or None,
                include_comments=False,
                include_tables=True,
                include_links=False,
                favor_recall=True,
            )
        except Exception as e:
            raise ExtractionError(f"Reader-mode extraction failed for {base_url}: {e}") from e

        try:
            metadata = trafilatura.extract_metadata(html, default_url=base_url or None)
        except Exception as e:
            logger.debug(f"Metadata extraction failed for {base_url}: {e}")
            metadata = None

        if metadata is not None:
            title = getattr(metadata, "title", None) or title
            site_name = site_name or getattr(metadata, "sitename", None)
            author = author or getattr(metadata, "author", None)

        return ExtractionResult(
            title=title,
            text=normalize_whitespace(text or ""),
            site_name=site_name,
            author=author,
            strategy=self.name
        )


class StructuralStrategy(ExtractionStrategy):
    """Walk the main container and emit Markdown-flavoured text."""

    name = "structural"

    def __init__(self, selectors: Sequence[str] = MAIN_CONTENT_SELECTORS):
        self.selectors = list(selectors)

    def _select_container(self, soup: BeautifulSoup) -> Optional[Tag]:
        for selector in self.selectors:
            match = soup.select_one(selector)
            if match is not None and match.get_text(strip=True):
                return match
        return soup.body or soup

    def _inline_text(self, element: Tag) -> str:
        return re.sub(r"\s+", " ", element.get_text(" ")).strip()

    def _table_lines(self, table: Tag) -> List[str]:
        lines = []
        for row in table.find_all("tr"):
            cells = [self._inline_text(cell) for cell in row.find_all(["th", "td"])]
            if any(cells):
                lines.append(" | ".join(cells))
        return lines

    def _render(self, element: Tag, blocks: List[str]) -> None:
        inline: List[str] = []

        def flush():
            text = re.sub(r"\s+", " ", " ".join(inline)).strip()
            if text:
                blocks.append(text)
            inline.clear()

        for child in element.children:
            if isinstance(child, PreformattedString):
                # comments, doctype, CDATA
                continue
            if isinstance(child, NavigableString):
                if child.strip():
                    inline.append(str(child))
                continue
            if not isinstance(child, Tag):
                continue

            name = child.name
            if name in HEADING_TAGS:
                flush()
                heading = self._inline_text(child)
                if heading:
                    blocks.append(f"{'#' * HEADING_TAGS[name]} {heading}")
            elif name == "p":
                flush()
                paragraph = self._inline_text(child)
                if paragraph:
                    blocks.append(paragraph)
            elif name in ("ul", "ol"):
                flush()
                items = [self._inline_text(li) for li in child.find_all("li", recursive=False)]
                items = [item for item in items if item]
                if items:
                    blocks.append("\n".join(f"- {item}" for item in items))
            elif name == "table":
                flush()
                rows = self._table_lines(child)
                if rows:
                    blocks.append("\n".join(rows))
            elif name == "pre":
                flush()
                code = child.get_text().strip("\n")
                if code.strip():
                    blocks.append(f"```\n{code}\n```")
            elif name == "br":
                flush()
            elif name in BLOCK_CONTAINERS:
                flush()
                self._render(child, blocks)
            else:
                # inline element (a, em, strong, code, ...)
                inline.append(child.get_text(" "))
        flush()

    def extract(self, html: str, base_url: str) -> ExtractionResult:
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as e:
            raise ExtractionError(f"Could not parse HTML from {base_url}: {e}") from e

        title = _fallback_title(soup, base_url)
        site_name = _meta_content(soup, {"property": "og:site_name"})
        author = _meta_content(soup, {"name": "author"})

        _strip_non_content(soup)
        container = self._select_container(soup)

        blocks: List[str] = []
        self._render(container, blocks)

        return ExtractionResult(
            title=title,
            text=normalize_whitespace("\n\n".join(blocks)),
            site_name=site_name,
            author=author,
            strategy=self.name
        )


class BodyTextStrategy(ExtractionStrategy):
    """Last resort: every visible string in the body."""

    name = "body"

    def extract(self, html: str, base_url: str) -> ExtractionResult:
        soup = BeautifulSoup(html, "html.parser")
        title = _fallback_title(soup, base_url)
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()
        root = soup.body or soup
        return ExtractionResult(
            title=title,
            text=normalize_whitespace(root.get_text("\n")),
            strategy=self.name
        )


class ContentExtractor:
    """Runs extraction strategies in order until one yields enough text."""

    def __init__(self,
                 strategies: Optional[Sequence[ExtractionStrategy]] = None,
                 min_text_length: int = MIN_TEXT_LENGTH):
        """Initialize extractor.

        Args:
            strategies: Tiers to try, in order. Defaults to reader mode,
                structural walk, then body text.
            min_text_length: Characters a tier must produce to be accepted
        """
        if strategies is None:
            strategies = [ReaderModeStrategy(), StructuralStrategy(), BodyTextStrategy()]
        self.strategies = list(strategies)
        self.min_text_length = min_text_length

    def is_sufficient(self, result: Optional[ExtractionResult]) -> bool:
        return result is not None and len(result.text) >= self.min_text_length

    def extract(self, html: str, base_url: str = "") -> ExtractionResult:
        """Extract readable text from HTML.

        Returns the first result that passes :meth:`is_sufficient`. When
        none does, the longest non-empty result is returned; ``ok`` is
        False only if every tier produced empty text.
        """
        best: Optional[ExtractionResult] = None

        if html and html.strip():
            for strategy in self.strategies:
                try:
                    result = strategy.extract(html, base_url)
                except Exception as e:
                    logger.warning(f"Extraction strategy '{strategy.name}' failed for {base_url}: {e}")
                    continue

                if self.is_sufficient(result):
                    logger.debug(f"Extracted {len(result.text)} chars from {base_url} using '{strategy.name}'")
                    return result

                if result.text and (best is None or len(result.text) > len(best.text)):
                    best = result

        if best is not None:
            return best

        logger.warning(f"No text could be extracted from {base_url}")
        return ExtractionResult(
            title=_fallback_title(None, base_url),
            text="",
            ok=False
        )


def extract_content(html: str, base_url: str = "", min_text_length: int = MIN_TEXT_LENGTH) -> ExtractionResult:
    """Convenience function to extract text with the default strategies."""
    return ContentExtractor(min_text_length=min_text_length).extract(html, base_url)
