"""Web page scraper used as the content source for URL ingestion.

Uses httpx + beautifulsoup4 to fetch a page and extract its main text,
with a minimum interval between requests and exponential-backoff retries.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from datetime import datetime, timezone

import httpx
from bs4 import BeautifulSoup

from ragkit_engine.knowledge.errors import ScrapeError
from ragkit_engine.knowledge.schema import SourceDocument

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; ragkit-engine/1.0)"

REQUEST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

STRIP_SELECTOR = (
    "script, style, noscript, iframe, nav, header, footer, aside, "
    ".advertisement, .ads, .sidebar, .menu, .navigation"
)

# Tried in order; the first one with enough text wins.
CONTENT_SELECTORS = (
    "article",
    "main",
    '[role="main"]',
    ".content",
    ".main-content",
    ".article-content",
    ".post-content",
    "#content",
    "#main",
    "body",
)
MIN_MAIN_CONTENT = 100

_WHITESPACE = re.compile(r"\s+")


def clean_text(text: str) -> str:
    """Collapse whitespace runs into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def extract_content(page: str, url: str) -> SourceDocument:
    """Extract title, main text and description from an HTML page."""
    soup = BeautifulSoup(page, "html.parser")

    for tag in soup.select(STRIP_SELECTOR):
        tag.decompose()

    title = ""
    if soup.title is not None:
        title = soup.title.get_text(strip=True)
    if not title:
        h1 = soup.find("h1")
        title = h1.get_text(strip=True) if h1 else ""
    if not title:
        og_title = soup.find("meta", attrs={"property": "og:title"})
        title = og_title.get("content", "") if og_title else ""

    content = ""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        content = element.get_text(separator=" ")
        if len(content.strip()) > MIN_MAIN_CONTENT:
            break

    meta = (
        soup.find("meta", attrs={"name": "description"})
        or soup.find("meta", attrs={"property": "og:description"})
    )
    description = meta.get("content", "") if meta else ""

    return SourceDocument(
        title=clean_text(title) or "Untitled",
        content=clean_text(content),
        url=url,
        description=clean_text(description),
        scraped_at=datetime.now(timezone.utc).isoformat(),
    )


def parse_sitemap(xml: str) -> list[str]:
    """Extract the <loc> URLs of a sitemap document."""
    soup = BeautifulSoup(xml, "html.parser")
    locs = (loc.get_text(strip=True) for loc in soup.find_all("loc"))
    return [loc for loc in locs if loc]


class WebScraper:
    """Fetches pages politely and turns them into SourceDocuments."""

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limit: float = 2.0,
        max_retries: int = 3,
        timeout: float = 15.0,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.user_agent = user_agent
        self.rate_limit = rate_limit
        self.max_retries = max_retries
        self.timeout = timeout
        self.backoff_base = backoff_base
        self._transport = transport
        self._last_request = 0.0

    async def _enforce_rate_limit(self) -> None:
        elapsed = time.monotonic() - self._last_request
        if elapsed < self.rate_limit:
            await asyncio.sleep(self.rate_limit - elapsed)
        self._last_request = time.monotonic()

    async def fetch_html(self, url: str) -> str:
        """GET a URL and return its body text."""
        headers = {"User-Agent": self.user_agent, **REQUEST_HEADERS}
        async with httpx.AsyncClient(
            headers=headers,
            timeout=self.timeout,
            follow_redirects=True,
            max_redirects=5,
            transport=self._transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.text

    async def scrape(self, url: str) -> SourceDocument:
        """Fetch and extract a page, retrying with exponential backoff."""
        logger.info("Scraping: %s", url)
        await self._enforce_rate_limit()

        for attempt in range(1, self.max_retries + 1):
            try:
                page = await self.fetch_html(url)
            except httpx.HTTPError as e:
                logger.warning("Attempt %d/%d failed for %s: %s", attempt, self.max_retries, url, e)
                if attempt == self.max_retries:
                    raise ScrapeError(
                        f"Failed to scrape {url} after {self.max_retries} attempts: {e}"
                    ) from e
                await asyncio.sleep(self.backoff_base * 2 ** attempt)
                continue

            document = extract_content(page, url)
            logger.info("Scraped: %s", document.title)
            return document

        raise ScrapeError(f"Failed to scrape {url}: no attempts made")
