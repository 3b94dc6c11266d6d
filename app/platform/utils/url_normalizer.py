import re
from typing import Optional
from urllib.parse import unquote, urlsplit

# Query keys that never change rendered content; matched case-insensitively.
TRACKING_PARAMS = frozenset({
    # Google Analytics / Ads
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_term', 'utm_content',
    'gclid', 'gclsrc', 'dclid',
    # Facebook
    'fbclid', 'fb_action_ids', 'fb_action_types', 'fb_source',
    # Microsoft Ads
    'msclkid',
    # HubSpot
    'hsa_acc', 'hsa_cam', 'hsa_grp', 'hsa_ad', 'hsa_src', 'hsa_tgt',
    'hsa_kw', 'hsa_mt', 'hsa_net', 'hsa_ver',
    # Mailchimp
    'mc_cid', 'mc_eid',
    # generic
    '_ga', '_gl', 'ref', 'source', 'campaign',
})

STATIC_ASSET_RE = re.compile(
    r'\.(pdf|zip|png|jpg|jpeg|gif|svg|css|js|ico|xml|json|woff|woff2|ttf|eot)$',
    re.IGNORECASE,
)

SKIPPED_HREF_PREFIXES = ('#', 'javascript:', 'mailto:', 'tel:')


def _strip_tracking(query: str) -> str:
    kept = []
    for pair in query.split('&'):
        if not pair:
            continue
        key = unquote(pair.split('=', 1)[0]).lower()
        if key in TRACKING_PARAMS:
            continue
        kept.append(pair)
    return '&'.join(kept)


def _netloc(host: str, port: Optional[int]) -> str:
    if ':' in host:
        host = f'[{host}]'
    return f'{host}:{port}' if port else host


def normalize_url(url: str) -> str:
    """
    Canonicalize a URL so the same logical page is never visited twice.

    Lowercases the host, strips a single trailing slash (except for the root
    path), drops known tracking parameters and the fragment. Every other
    query parameter is kept verbatim and in order. Anything unparseable comes
    back unchanged.
    """
    try:
        parsed = urlsplit(url)
        host = parsed.hostname
        if not parsed.scheme or not host:
            return url
        netloc = _netloc(host.lower(), parsed.port)
    except (ValueError, AttributeError, TypeError):
        return url

    path = parsed.path or '/'
    if len(path) > 1 and path.endswith('/'):
        path = path[:-1]
    query = _strip_tracking(parsed.query)

    normalized = f'{parsed.scheme}://{netloc}{path}'
    if query:
        normalized = f'{normalized}?{query}'
    return normalized


def origin_of(url: str) -> str:
    parsed = urlsplit(url)
    return f'{parsed.scheme}://{parsed.netloc.lower()}'


def origin_and_path(url: str) -> str:
    """Reduce a link to origin + path; crawled links ignore query and fragment."""
    parsed = urlsplit(url)
    return f'{parsed.scheme}://{parsed.netloc.lower()}{parsed.path or "/"}'


def is_static_asset(url: str) -> bool:
    try:
        path = urlsplit(url).path
    except ValueError:
        return False
    return bool(STATIC_ASSET_RE.search(path))


def is_skippable_href(href: Optional[str]) -> bool:
    if not href:
        return True
    return href.strip().lower().startswith(SKIPPED_HREF_PREFIXES)
