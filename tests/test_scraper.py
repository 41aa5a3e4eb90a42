"""Tests for the web scraper.

HTTP is served by httpx.MockTransport, nothing touches the network.
"""

from __future__ import annotations

import httpx
import pytest

from ragkit_engine.knowledge.errors import ScrapeError
from ragkit_engine.knowledge.scraper import WebScraper, clean_text, extract_content, parse_sitemap


SAMPLE_HTML = """\
<!DOCTYPE html>
<html>
<head>
<title>Return Policy | Example Shop</title>
<meta name="description" content="How   returns work">
<script>var tracking = "ignore me";</script>
</head>
<body>
<nav><a href="/">Home</a> <a href="/shop">Shop</a></nav>
<header>Site header</header>
<div class="sidebar">Sidebar links</div>
<main>
<h1>Returns</h1>
<p>Our return policy allows returns within 30 days of purchase for a full refund.</p>
<p>Items must be unused and in original packaging, with the receipt included.</p>
<div class="advertisement">Buy now!</div>
</main>
<footer><p>Copyright 2024</p></footer>
</body>
</html>
"""


def _scraper(handler, **kwargs) -> WebScraper:
    return WebScraper(
        rate_limit=0,
        backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestExtractContent:
    def test_title_from_title_tag(self):
        doc = extract_content(SAMPLE_HTML, "https://shop.test/returns")
        assert doc.title == "Return Policy | Example Shop"
        assert doc.url == "https://shop.test/returns"

    def test_main_content_cleaned(self):
        doc = extract_content(SAMPLE_HTML, "https://shop.test/returns")
        assert "Our return policy allows returns within 30 days" in doc.content
        assert "original packaging" in doc.content
        assert "  " not in doc.content

    def test_boilerplate_stripped(self):
        doc = extract_content(SAMPLE_HTML, "https://shop.test/returns")
        for noise in ("Home", "Site header", "Sidebar links", "Buy now!", "Copyright", "ignore me"):
            assert noise not in doc.content

    def test_description(self):
        doc = extract_content(SAMPLE_HTML, "https://shop.test/returns")
        assert doc.description == "How returns work"

    def test_scraped_at_set(self):
        doc = extract_content(SAMPLE_HTML, "https://shop.test/returns")
        assert doc.scraped_at is not None
        assert doc.scraped_at.endswith("+00:00")

    def test_title_falls_back_to_h1(self):
        page = "<html><body><h1>Heading Title</h1><p>text</p></body></html>"
        assert extract_content(page, "https://x.test").title == "Heading Title"

    def test_title_falls_back_to_og_title(self):
        page = '<html><head><meta property="og:title" content="OG Title"></head><body>x</body></html>'
        assert extract_content(page, "https://x.test").title == "OG Title"

    def test_untitled(self):
        assert extract_content("<html><body>x</body></html>", "https://x.test").title == "Untitled"

    def test_short_article_falls_through_to_body(self):
        long_text = "Body paragraph with plenty of words. " * 5
        page = f"<html><body><article>Tiny</article><p>{long_text}</p></body></html>"
        doc = extract_content(page, "https://x.test")
        assert "Body paragraph with plenty of words." in doc.content

    def test_og_description(self):
        page = '<html><head><meta property="og:description" content="From OG"></head><body>x</body></html>'
        assert extract_content(page, "https://x.test").description == "From OG"


class TestHelpers:
    def test_clean_text(self):
        assert clean_text("  a \n\n b\t c  ") == "a b c"

    def test_parse_sitemap(self):
        xml = (
            "<urlset><url><loc>https://x.test/a</loc></url>"
            "<url><loc>\n  https://x.test/b?x=1&amp;y=2\n</loc></url></urlset>"
        )
        assert parse_sitemap(xml) == ["https://x.test/a", "https://x.test/b?x=1&y=2"]

    def test_parse_sitemap_empty(self):
        assert parse_sitemap("<urlset></urlset>") == []

    def test_parse_sitemap_index_with_declaration(self):
        xml = (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            '<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
            "<sitemap><LOC>https://x.test/pages.xml</LOC><lastmod>2024-01-01</lastmod></sitemap>"
            "<sitemap><loc>   </loc></sitemap>"
            "</sitemapindex>"
        )
        assert parse_sitemap(xml) == ["https://x.test/pages.xml"]


class TestWebScraper:
    @pytest.mark.asyncio
    async def test_scrape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=SAMPLE_HTML)

        doc = await _scraper(handler, user_agent="test-agent/1.0").scrape("https://shop.test/returns")
        assert doc.title == "Return Policy | Example Shop"
        assert seen[0].headers["User-Agent"] == "test-agent/1.0"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, text=SAMPLE_HTML)

        doc = await _scraper(handler, max_retries=3).scrape("https://shop.test/returns")
        assert len(attempts) == 3
        assert "full refund" in doc.content

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(404)

        with pytest.raises(ScrapeError, match="after 2 attempts"):
            await _scraper(handler, max_retries=2).scrape("https://shop.test/missing")
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_transport_error_retried(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ScrapeError):
            await _scraper(handler, max_retries=2).scrape("https://down.test")

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "https://shop.test/new"})
            return httpx.Response(200, text=SAMPLE_HTML)

        html = await _scraper(handler).fetch_html("https://shop.test/old")
        assert "Return Policy" in html

    @pytest.mark.asyncio
    async def test_fetch_html_raises_on_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        with pytest.raises(httpx.HTTPStatusError):
            await _scraper(handler).fetch_html("https://shop.test/sitemap.xml")
