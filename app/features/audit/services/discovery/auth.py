import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

from selenium.common.exceptions import WebDriverException

from app.features.audit.schemas.audit import AuthConfig

logger = logging.getLogger(__name__)


def parse_cookie_string(raw: Optional[str]) -> List[Tuple[str, str]]:
    """Split "a=1; b=two=2" into [("a", "1"), ("b", "two=2")]; pairs without '=' are dropped."""
    cookies = []
    for part in (raw or '').split(';'):
        name, sep, value = part.strip().partition('=')
        if not sep or not name.strip():
            continue
        cookies.append((name.strip(), value.strip()))
    return cookies


def build_auth_headers(auth: Optional[AuthConfig]) -> Dict[str, str]:
    """Headers for plain HTTP requests (sitemap fetches)."""
    if auth is None:
        return {}
    if auth.type == 'bearer' and auth.token:
        return {'Authorization': f'Bearer {auth.token}'}
    if auth.type == 'cookie' and auth.cookies:
        return {'Cookie': '; '.join(f'{k}={v}' for k, v in parse_cookie_string(auth.cookies))}
    return {}


def apply_browser_auth(driver, seed_url: str, auth: Optional[AuthConfig]) -> None:
    """
    Inject credentials into a Chrome session before crawling.

    Bearer tokens become an extra header on every request (CDP). Cookies are
    scoped to the seed host; Selenium only accepts cookies for the current
    domain, so the origin is loaded once first.
    """
    if auth is None or auth.type == 'none':
        return

    if auth.type == 'bearer' and auth.token:
        driver.execute_cdp_cmd('Network.enable', {})
        driver.execute_cdp_cmd(
            'Network.setExtraHTTPHeaders',
            {'headers': {'Authorization': f'Bearer {auth.token}'}},
        )
        logger.info("Bearer token applied to browser session")
        return

    if auth.type == 'cookie' and auth.cookies:
        parsed = urlsplit(seed_url)
        driver.get(f'{parsed.scheme}://{parsed.netloc}/')
        added = 0
        for name, value in parse_cookie_string(auth.cookies):
            try:
                driver.add_cookie({
                    'name': name,
                    'value': value,
                    'domain': parsed.hostname,
                    'path': '/',
                    'secure': parsed.scheme == 'https',
                    'sameSite': 'Lax',
                })
                added += 1
            except WebDriverException as e:
                logger.warning(f"Cookie '{name}' rejected by browser: {e}")
        logger.info(f"{added} auth cookie(s) applied for {parsed.hostname}")
