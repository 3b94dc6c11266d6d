import logging
import math
import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

import requests
from lxml import etree
from selenium.common.exceptions import TimeoutException, WebDriverException

from app.features.audit.schemas.audit import AuthConfig
from app.features.audit.services.discovery.auth import build_auth_headers
from app.features.audit.services.discovery.subdomain_policy import should_follow_link
from app.features.audit.services.stabilization.selenium_tracker import SeleniumStateReader
from app.features.audit.services.stabilization.stabilizer import wait_for_page_stable
from app.platform.config import settings
from app.platform.utils.url_normalizer import (
    is_skippable_href,
    is_static_asset,
    normalize_url,
    origin_and_path,
    origin_of,
)

logger = logging.getLogger(__name__)

SITEMAP_PATHS = ('/sitemap.xml', '/sitemap_index.xml', '/sitemap/sitemap.xml')
LOC_XPATH = "//*[local-name()='loc']"
MAX_CHILD_SITEMAPS = 5

LINKS_SCRIPT = """
return Array.prototype.map.call(
  document.querySelectorAll('a[href]'),
  function (a) { return [a.getAttribute('href') || '', a.href || '']; }
);
"""

NAVIGATION_STATUS_SCRIPT = """
var entries = performance.getEntriesByType('navigation');
return entries.length && entries[0].responseStatus ? entries[0].responseStatus : null;
"""


@dataclass
class DiscoveryResult:
    urls: List[str]
    source: str  # sitemap | crawl | mixed | manual
    target: int = 0
    skipped: List[str] = field(default_factory=list)


def glob_to_regex(pattern: str) -> re.Pattern:
    """'/blog/*' -> ^/blog/.*$ ; everything except '*' matches literally."""
    escaped = re.escape(pattern.strip()).replace(r'\*', '.*')
    return re.compile(f'^{escaped}$')


def matches_exclude_path(url: str, patterns: Iterable[str]) -> bool:
    path = urlsplit(url).path or '/'
    return any(glob_to_regex(p).match(path) for p in patterns if p and p.strip())


def is_within_path_scope(url: str, scope_path: str) -> bool:
    scope = scope_path.rstrip('/')
    if not scope:
        return True
    path = urlsplit(url).path.rstrip('/')
    return path == scope or path.startswith(f'{scope}/')


class PageDiscoveryService:

    @staticmethod
    def discover_manual(urls: Sequence[str], limit: int = None) -> List[str]:
        """Normalize, dedupe (first occurrence wins) and cap a user-supplied list."""
        limit = settings.MANUAL_URL_LIMIT if limit is None else min(limit, settings.MANUAL_URL_LIMIT)
        result = []
        seen = set()
        for raw in urls:
            if not raw or not raw.strip():
                continue
            url = normalize_url(raw.strip())
            if not url.startswith(('http://', 'https://')) or url in seen:
                continue
            seen.add(url)
            result.append(url)
            if len(result) >= limit:
                break
        return result

    @staticmethod
    def _get_sitemap(url: str, auth: Optional[AuthConfig]) -> Optional[bytes]:
        headers = {'User-Agent': settings.DISCOVERY_USER_AGENT, **build_auth_headers(auth)}
        try:
            response = requests.get(url, headers=headers, timeout=settings.SITEMAP_TIMEOUT_SECONDS)
        except requests.RequestException as e:
            logger.warning(f"Sitemap request failed for {url}: {e}")
            return None
        if response.status_code != 200:
            logger.info(f"No sitemap at {url} (HTTP {response.status_code})")
            return None
        return response.content

    @staticmethod
    def _parse_sitemap(content: bytes, url: str):
        """Root element of a sitemap document, or None when it is not XML."""
        if not content:
            return None
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            return etree.fromstring(content, parser=parser)
        except etree.XMLSyntaxError as e:
            logger.warning(f"Sitemap XML parse error at {url}: {e}")
            return None

    @staticmethod
    def _extract_locs(root, origin: str) -> List[str]:
        """<loc> values under any namespace prefix (or none) on the given origin."""
        locs = []
        for element in root.xpath(LOC_XPATH):
            loc = (element.text or '').strip()
            if loc.startswith(origin):
                locs.append(loc)
        return locs

    @staticmethod
    def _read_sitemap(url: str, origin: str, auth: Optional[AuthConfig]) -> List[str]:
        root = PageDiscoveryService._parse_sitemap(PageDiscoveryService._get_sitemap(url, auth), url)
        if root is None:
            return []
        locs = PageDiscoveryService._extract_locs(root, origin)
        if etree.QName(root).localname != 'sitemapindex':
            return locs

        pages = []
        for child in locs[:MAX_CHILD_SITEMAPS]:
            child_root = PageDiscoveryService._parse_sitemap(
                PageDiscoveryService._get_sitemap(child, auth), child
            )
            if child_root is not None:
                pages.extend(PageDiscoveryService._extract_locs(child_root, origin))
        return pages

    @staticmethod
    def _dedupe_pages(urls: Iterable[str], limit: Optional[int] = None) -> List[str]:
        result = []
        seen = set()
        for raw in urls:
            if is_static_asset(raw):
                continue
            url = normalize_url(raw)
            if url in seen:
                continue
            seen.add(url)
            result.append(url)
            if limit is not None and len(result) >= limit:
                break
        return result

    @staticmethod
    def fetch_sitemap(base_url: str, auth: Optional[AuthConfig] = None) -> List[str]:
        """
        Try the conventional sitemap locations of base_url's origin.

        Stops at the first sitemap that yields same-origin URLs. No browser
        involved; failures are logged and the next location is tried.
        """
        origin = origin_of(base_url)
        for path in SITEMAP_PATHS:
            urls = PageDiscoveryService._read_sitemap(f'{origin}{path}', origin, auth)
            if urls:
                pages = PageDiscoveryService._dedupe_pages(urls)
                logger.info(f"Sitemap {origin}{path} listed {len(pages)} pages")
                return pages
        logger.info(f"No usable sitemap found for {origin}")
        return []

    @staticmethod
    def discover_from_sitemap(
        sitemap_url: str,
        max_pages: int,
        auth: Optional[AuthConfig] = None,
    ) -> List[str]:
        origin = origin_of(sitemap_url)
        urls = PageDiscoveryService._read_sitemap(sitemap_url, origin, auth)
        pages = PageDiscoveryService._dedupe_pages(urls, limit=max_pages)
        logger.info(f"Discovered {len(pages)} pages from sitemap {sitemap_url}")
        return pages

    @staticmethod
    def _visit(driver, url: str, stabilize_wait: float) -> Optional[int]:
        """Load url; returns the HTTP status when the browser exposes it."""
        driver.get(url)
        if stabilize_wait > 0:
            wait_for_page_stable(SeleniumStateReader(driver), None, max_wait=stabilize_wait, url=url)
        try:
            status = driver.execute_script(NAVIGATION_STATUS_SCRIPT)
        except WebDriverException:
            return None
        return int(status) if status else None

    @staticmethod
    def extract_links(
        driver,
        seed_url: str,
        subdomain_policy: str = 'main_only',
        allowed_subdomains: Iterable[str] = (),
    ) -> List[str]:
        """Same-site page links from the rendered DOM, reduced to origin + path."""
        try:
            anchors = driver.execute_script(LINKS_SCRIPT) or []
        except WebDriverException as e:
            logger.warning(f"Link extraction failed: {e}")
            return []

        links = []
        seen = set()
        for raw_href, resolved in anchors:
            if is_skippable_href(raw_href) or not resolved.startswith(('http://', 'https://')):
                continue
            if not should_follow_link(resolved, seed_url, subdomain_policy, allowed_subdomains):
                continue
            if is_static_asset(resolved):
                continue
            clean = normalize_url(origin_and_path(resolved))
            if clean not in seen:
                seen.add(clean)
                links.append(clean)
        return links

    @staticmethod
    def crawl(
        driver,
        seed_url: str,
        max_pages: int = 20,
        max_depth: int = None,
        subdomain_policy: str = 'main_only',
        allowed_subdomains: Iterable[str] = (),
        path_scope: Optional[str] = None,
        exclude_paths: Iterable[str] = (),
        initial_urls: Iterable[str] = (),
        stabilize_wait: float = 10.0,
    ) -> List[str]:
        """
        Breadth-first crawl from seed_url with one browser session.

        Discovered links count as candidates as soon as they are seen; pages
        are only visited to find more links. Pages answering >= 400 or failing
        to load are dropped from the candidates. Stops at max_pages candidates
        or when the queue (bounded by max_depth) runs dry.
        """
        max_depth = settings.DISCOVERY_MAX_DEPTH if max_depth is None else max_depth
        exclude_paths = list(exclude_paths)
        seed = normalize_url(seed_url)

        def accept(url: str) -> bool:
            if path_scope is not None and not is_within_path_scope(url, path_scope):
                return False
            return not matches_exclude_path(url, exclude_paths)

        candidates: List[str] = []
        seen = set()
        for url in [seed, *initial_urls]:
            url = normalize_url(url)
            if url not in seen and accept(url):
                seen.add(url)
                candidates.append(url)

        queue = deque([(seed, 0)])
        while queue and len(candidates) < max_pages:
            current, depth = queue.popleft()
            try:
                status = PageDiscoveryService._visit(driver, current, stabilize_wait)
            except (TimeoutException, WebDriverException) as e:
                logger.warning(f"Failed to load page {current}: {e}")
                if current in candidates:
                    candidates.remove(current)
                continue

            if status is not None and status >= 400:
                logger.info(f"Skipping {current} (HTTP {status})")
                if current in candidates:
                    candidates.remove(current)
                continue

            if depth >= max_depth:
                continue

            for link in PageDiscoveryService.extract_links(
                driver, seed_url, subdomain_policy, allowed_subdomains
            ):
                if link in seen or not accept(link):
                    continue
                seen.add(link)
                candidates.append(link)
                queue.append((link, depth + 1))
                if len(candidates) >= max_pages:
                    break

        logger.info(f"Discovered {len(candidates)} pages from {seed_url}")
        return candidates[:max_pages]

    @staticmethod
    def discover_with_margin(
        driver,
        seed_url: str,
        target_count: int,
        margin: float = None,
        max_depth: int = None,
        subdomain_policy: str = 'main_only',
        allowed_subdomains: Iterable[str] = (),
        auth: Optional[AuthConfig] = None,
        path_scope: Optional[str] = None,
        exclude_paths: Iterable[str] = (),
    ) -> DiscoveryResult:
        """
        Gather ceil(target_count * margin) URLs: sitemap first, then crawl
        only as far as needed to top it up. The surplus lets the caller drop
        broken pages and still audit target_count pages.
        """
        margin = settings.DISCOVERY_MARGIN if margin is None else margin
        target = max(1, math.ceil(target_count * margin))
        exclude_paths = list(exclude_paths)

        sitemap_urls = [
            url for url in PageDiscoveryService.fetch_sitemap(seed_url, auth)
            if (path_scope is None or is_within_path_scope(url, path_scope))
            and not matches_exclude_path(url, exclude_paths)
        ]
        if len(sitemap_urls) >= target:
            return DiscoveryResult(urls=sitemap_urls[:target], source='sitemap', target=target)

        urls = PageDiscoveryService.crawl(
            driver,
            seed_url,
            max_pages=target,
            max_depth=max_depth,
            subdomain_policy=subdomain_policy,
            allowed_subdomains=allowed_subdomains,
            path_scope=path_scope,
            exclude_paths=exclude_paths,
            initial_urls=sitemap_urls,
        )
        return DiscoveryResult(urls=urls, source='mixed' if sitemap_urls else 'crawl', target=target)

    @staticmethod
    def discover_with_path_scope(
        driver,
        seed_url: str,
        target_count: int,
        exclude_paths: Iterable[str] = (),
        margin: float = None,
        max_depth: int = None,
        subdomain_policy: str = 'main_only',
        allowed_subdomains: Iterable[str] = (),
        auth: Optional[AuthConfig] = None,
    ) -> DiscoveryResult:
        """Margin discovery restricted to URLs under the seed's path."""
        scope = urlsplit(seed_url).path.rstrip('/')
        return PageDiscoveryService.discover_with_margin(
            driver,
            seed_url,
            target_count,
            margin=margin,
            max_depth=max_depth,
            subdomain_policy=subdomain_policy,
            allowed_subdomains=allowed_subdomains,
            auth=auth,
            path_scope=scope,
            exclude_paths=exclude_paths,
        )
