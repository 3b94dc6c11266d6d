"""
Tests for page discovery: manual lists, sitemaps, BFS crawl and margin discovery.
"""

from unittest.mock import MagicMock, patch

import requests
from selenium.common.exceptions import WebDriverException

from app.features.audit.schemas.audit import AuthConfig
from app.features.audit.services.discovery.page_discovery import (
    LINKS_SCRIPT,
    NAVIGATION_STATUS_SCRIPT,
    PageDiscoveryService,
    is_within_path_scope,
    matches_exclude_path,
)
from app.platform.config import settings

SEED = "https://example.com/"


class FakeSiteDriver:
    """Minimal WebDriver stand-in serving a fixed link graph."""

    def __init__(self, pages):
        # url -> (status, [(raw_href, resolved_href), ...])
        self.pages = pages
        self.current = None
        self.visited = []

    def get(self, url):
        self.current = url
        self.visited.append(url)

    def execute_script(self, script, *args):
        status, links = self.pages.get(self.current, (404, []))
        if script == NAVIGATION_STATUS_SCRIPT:
            return status
        if script == LINKS_SCRIPT:
            return links
        return None


def link(path):
    return [path, f"https://example.com{path}"]


def site(b_status=200):
    return FakeSiteDriver({
        "https://example.com/": (200, [
            link("/a"),
            link("/b/"),
            ["https://blog.example.com/post", "https://blog.example.com/post"],
            link("/file.pdf"),
            ["mailto:contato@example.com", "mailto:contato@example.com"],
            ["#top", "https://example.com/#top"],
        ]),
        "https://example.com/a": (200, [link("/c"), link("/")]),
        "https://example.com/b": (b_status, []),
        "https://example.com/c": (200, []),
        "https://blog.example.com/post": (200, []),
    })


def sitemap_response(body, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.content = body.encode("utf-8")
    return response


class TestDiscoverManual:
    """Test cases for manual URL lists."""

    def test_normalizes_dedupes_and_keeps_order(self):
        urls = [
            "https://Example.com/b/",
            "https://example.com/a",
            "https://example.com/b",
            "   ",
            "ftp://example.com/file",
            "https://example.com/a#section",
        ]
        assert PageDiscoveryService.discover_manual(urls) == [
            "https://example.com/b",
            "https://example.com/a",
        ]

    def test_limit(self):
        urls = [f"https://example.com/p{i}" for i in range(10)]
        assert len(PageDiscoveryService.discover_manual(urls, limit=3)) == 3


class TestSitemapDiscovery:
    """Test cases for sitemap fetching (requests, no browser)."""

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_fetch_sitemap_filters_origin_and_assets(self, mock_get):
        xml = """<?xml version="1.0"?>
        <urlset>
          <url><loc>https://example.com/</loc></url>
          <url><loc> https://example.com/servicos/ </loc></url>
          <url><loc>https://example.com/servicos</loc></url>
          <url><loc>https://example.com/busca?q=a&amp;p=2</loc></url>
          <url><loc>https://example.com/edital.pdf</loc></url>
          <url><loc>https://other.com/page</loc></url>
        </urlset>"""
        mock_get.return_value = sitemap_response(xml)

        pages = PageDiscoveryService.fetch_sitemap("https://example.com/some/page")

        assert pages == [
            "https://example.com/",
            "https://example.com/servicos",
            "https://example.com/busca?q=a&p=2",
        ]
        assert mock_get.call_args[0][0] == "https://example.com/sitemap.xml"

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_sitemap_index_is_followed(self, mock_get):
        index = """<sitemapindex>
          <sitemap><loc>https://example.com/sitemap-pages.xml</loc></sitemap>
        </sitemapindex>"""
        child = "<urlset><url><loc>https://example.com/sobre</loc></url></urlset>"
        responses = {
            "https://example.com/sitemap.xml": sitemap_response(index),
            "https://example.com/sitemap-pages.xml": sitemap_response(child),
        }
        mock_get.side_effect = lambda url, **kwargs: responses[url]

        assert PageDiscoveryService.fetch_sitemap(SEED) == ["https://example.com/sobre"]

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_prefixed_namespace_cdata_and_comments(self, mock_get):
        xml = """<?xml version="1.0" encoding="UTF-8"?>
        <s:urlset xmlns:s="http://www.sitemaps.org/schemas/sitemap/0.9">
          <!-- <loc>https://example.com/rascunho</loc> -->
          <s:url><s:loc>https://example.com/contato</s:loc></s:url>
          <s:url><s:loc><![CDATA[https://example.com/noticias?pagina=2&ordem=data]]></s:loc></s:url>
        </s:urlset>"""
        mock_get.return_value = sitemap_response(xml)

        assert PageDiscoveryService.fetch_sitemap(SEED) == [
            "https://example.com/contato",
            "https://example.com/noticias?pagina=2&ordem=data",
        ]

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_namespaced_sitemap_index(self, mock_get):
        ns = 'xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"'
        index = f"<sitemapindex {ns}><sitemap><loc>https://example.com/s1.xml</loc></sitemap></sitemapindex>"
        child = f"<urlset {ns}><url><loc>https://example.com/servicos</loc></url></urlset>"
        responses = {
            "https://example.com/sitemap.xml": sitemap_response(index),
            "https://example.com/s1.xml": sitemap_response(child),
        }
        mock_get.side_effect = lambda url, **kwargs: responses[url]

        assert PageDiscoveryService.fetch_sitemap(SEED) == ["https://example.com/servicos"]

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_malformed_sitemap_is_skipped(self, mock_get):
        mock_get.side_effect = [
            sitemap_response("<html><body>Página não encontrada"),
            sitemap_response("<urlset><url><loc>https://example.com/a</loc></url></urlset>"),
        ]
        assert PageDiscoveryService.fetch_sitemap(SEED) == ["https://example.com/a"]
        assert mock_get.call_count == 2

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_no_sitemap_returns_empty(self, mock_get):
        mock_get.side_effect = [
            sitemap_response("", 404),
            requests.ConnectionError("refused"),
            sitemap_response("", 500),
        ]
        assert PageDiscoveryService.fetch_sitemap(SEED) == []
        assert mock_get.call_count == 3

    @patch("app.features.audit.services.discovery.page_discovery.requests.get")
    def test_discover_from_sitemap_caps_and_sends_auth(self, mock_get):
        locs = "".join(f"<url><loc>https://example.com/p{i}</loc></url>" for i in range(10))
        mock_get.return_value = sitemap_response(f"<urlset>{locs}</urlset>")

        pages = PageDiscoveryService.discover_from_sitemap(
            "https://example.com/sitemap.xml", 4, auth=AuthConfig(type="bearer", token="abc")
        )

        assert pages == [f"https://example.com/p{i}" for i in range(4)]
        headers = mock_get.call_args[1]["headers"]
        assert headers["Authorization"] == "Bearer abc"


class TestCrawl:
    """Test cases for the breadth-first crawl."""

    def test_breadth_first_same_site_pages(self):
        driver = site()
        pages = PageDiscoveryService.crawl(driver, SEED, max_pages=10, max_depth=3, stabilize_wait=0)
        assert pages == [
            "https://example.com/",
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/c",
        ]

    def test_broken_pages_are_dropped(self):
        driver = site(b_status=404)
        pages = PageDiscoveryService.crawl(driver, SEED, max_pages=10, max_depth=3, stabilize_wait=0)
        assert "https://example.com/b" not in pages
        assert "https://example.com/c" in pages

    def test_max_pages(self):
        pages = PageDiscoveryService.crawl(site(), SEED, max_pages=2, max_depth=3, stabilize_wait=0)
        assert pages == ["https://example.com/", "https://example.com/a"]

    def test_max_depth_zero_only_seed(self):
        driver = site()
        pages = PageDiscoveryService.crawl(driver, SEED, max_pages=10, max_depth=0, stabilize_wait=0)
        assert pages == ["https://example.com/"]
        assert driver.visited == ["https://example.com/"]

    def test_exclude_paths(self):
        pages = PageDiscoveryService.crawl(
            site(), SEED, max_pages=10, max_depth=3, exclude_paths=["/a"], stabilize_wait=0
        )
        assert pages == ["https://example.com/", "https://example.com/b"]

    def test_all_subdomains_policy(self):
        pages = PageDiscoveryService.crawl(
            site(), SEED, max_pages=10, max_depth=1, subdomain_policy="all_subdomains", stabilize_wait=0
        )
        assert "https://blog.example.com/post" in pages

    def test_load_failure_is_dropped(self):
        driver = site()
        driver.get = MagicMock()
        driver.get.side_effect = WebDriverException("net::ERR_NAME_NOT_RESOLVED")
        pages = PageDiscoveryService.crawl(driver, SEED, max_pages=10, stabilize_wait=0)
        assert pages == []


class TestMarginDiscovery:
    """Test cases for sitemap-first discovery with a surplus margin."""

    def test_sitemap_alone_is_enough(self):
        sitemap = [f"https://example.com/p{i}" for i in range(10)]
        driver = MagicMock()
        with patch.object(PageDiscoveryService, "fetch_sitemap", return_value=sitemap):
            result = PageDiscoveryService.discover_with_margin(driver, SEED, target_count=4, margin=1.5)

        assert result.source == "sitemap"
        assert result.target == 6
        assert result.urls == sitemap[:6]
        driver.get.assert_not_called()

    def test_crawl_tops_up_sitemap(self):
        with patch.object(PageDiscoveryService, "fetch_sitemap", return_value=["https://example.com/b"]), \
                patch.object(settings, "STABILITY_POLL_INTERVAL_SECONDS", 0.0):
            result = PageDiscoveryService.discover_with_margin(
                site(), SEED, target_count=2, margin=1.5, max_depth=3
            )

        assert result.source == "mixed"
        assert result.target == 3
        assert result.urls == [
            "https://example.com/",
            "https://example.com/b",
            "https://example.com/a",
        ]

    def test_path_scope_filters_sitemap(self):
        sitemap = [
            "https://example.com/docs/a",
            "https://example.com/docs/b",
            "https://example.com/docsx/c",
            "https://example.com/blog/d",
        ]
        with patch.object(PageDiscoveryService, "fetch_sitemap", return_value=sitemap):
            result = PageDiscoveryService.discover_with_path_scope(
                MagicMock(), "https://example.com/docs/", target_count=1, margin=2
            )

        assert result.urls == ["https://example.com/docs/a", "https://example.com/docs/b"]


class TestPathHelpers:
    def test_path_scope_boundary(self):
        assert is_within_path_scope("https://example.com/docs", "/docs")
        assert is_within_path_scope("https://example.com/docs/guia", "/docs/")
        assert not is_within_path_scope("https://example.com/docsx", "/docs")
        assert is_within_path_scope("https://example.com/anything", "/")

    def test_exclude_globs(self):
        assert matches_exclude_path("https://example.com/admin/users", ["/admin/*"])
        assert not matches_exclude_path("https://example.com/administracao", ["/admin/*"])
        assert not matches_exclude_path("https://example.com/admin", ["", "  "])
