import re
from typing import Iterable, Optional
from urllib.parse import urlsplit

COMMON_PREFIX_RE = re.compile(r'^(www\.|m\.|mobile\.|api\.|cdn\.|static\.|assets\.)')

# Aliases of the main site; followed under every policy.
MAIN_SITE_SUBDOMAINS = frozenset({'www', 'm', 'mobile'})

POLICIES = ('main_only', 'all_subdomains', 'specific')


def get_base_domain(hostname: str) -> str:
    """example.com for www.example.com, cdn.example.com, m.example.com ..."""
    return COMMON_PREFIX_RE.sub('', (hostname or '').lower())


def get_subdomain(hostname: str, base_domain: str) -> Optional[str]:
    """
    Label(s) to the left of base_domain, or None for the bare domain.
    Hosts outside base_domain also return None; check is_same_site first.
    """
    host = (hostname or '').lower()
    if host == base_domain:
        return None
    suffix = f'.{base_domain}'
    if host.endswith(suffix):
        return host[:-len(suffix)]
    return None


def is_same_site(hostname: str, base_domain: str) -> bool:
    host = (hostname or '').lower()
    return host == base_domain or host.endswith(f'.{base_domain}')


def should_follow_link(
    link: str,
    seed_url: str,
    policy: str = 'main_only',
    allowed_subdomains: Iterable[str] = (),
) -> bool:
    """
    Decide whether a discovered link may be queued under the subdomain policy.

    - Different base domain: never.
    - Bare domain or www/m/mobile: always.
    - main_only: no other subdomain.
    - all_subdomains: any subdomain of the seed's base domain.
    - specific: only subdomains in allowed_subdomains.
    """
    try:
        link_host = urlsplit(link).hostname
        seed_host = urlsplit(seed_url).hostname
    except ValueError:
        return False
    if not link_host or not seed_host:
        return False

    base_domain = get_base_domain(seed_host)
    if not is_same_site(link_host, base_domain):
        return False

    subdomain = get_subdomain(link_host, base_domain)
    if subdomain is None or subdomain in MAIN_SITE_SUBDOMAINS:
        return True

    if policy == 'all_subdomains':
        return True
    if policy == 'specific':
        allowed = {s.strip().lower() for s in allowed_subdomains if s}
        return subdomain in allowed
    return False
