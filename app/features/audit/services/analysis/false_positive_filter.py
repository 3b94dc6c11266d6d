"""
False-positive filter.

Predicates for cases where a finding is known NOT to be a real violation.
They only look at the finding itself (its html, selector, summary and the
in-page details recorded with it), never at the live page, so the filter
is pure and cheap to run after every rule pass.
"""
import logging
import re
from collections import Counter
from typing import Callable, Dict, List, Optional, Tuple

from app.features.audit.schemas.finding import Finding

logger = logging.getLogger(__name__)

Predicate = Callable[[Finding], Optional[str]]
RemovedFinding = Tuple[Finding, List[str]]

DISPLAY_NONE_RE = re.compile(r'style\s*=\s*["\'][^"\']*display\s*:\s*none', re.I)
VISIBILITY_HIDDEN_RE = re.compile(r'style\s*=\s*["\'][^"\']*visibility\s*:\s*hidden', re.I)
HIDDEN_ATTR_RE = re.compile(r'\shidden[\s>=]', re.I)
ARIA_HIDDEN_RE = re.compile(r'aria-hidden\s*=\s*["\']true["\']', re.I)
PRESENTATION_ROLE_RE = re.compile(r'role\s*=\s*["\'](presentation|none)["\']', re.I)
IMG_EMPTY_ALT_RE = re.compile(r'^\s*<img\b[^>]*\salt\s*=\s*(""|\'\'|(?=[\s/>]))', re.I)
DISABLED_RE = re.compile(r'\sdisabled[\s>=]|aria-disabled\s*=\s*["\']true["\']', re.I)
SR_ONLY_TEXT_RE = re.compile(r'<span[^>]*(?:sr-only|visually-hidden|screen-reader)[^>]*>([^<]+)<', re.I)
NEW_TAB_WORDS_RE = re.compile(r'nova|new|external|abre', re.I)
TAG_RE = re.compile(r'<[^>]+>')
ALT_RE = re.compile(r'alt\s*=\s*["\']([^"\']+)["\']', re.I)
ARIA_LABEL_RE = re.compile(r'aria-label\s*=\s*["\']([^"\']+)["\']', re.I)

DECORATIVE_CLASSES = ('decorative', 'decoration', 'ornament', 'icon-only', 'visual-only', 'presentational')
EXTERNAL_ICON_MARKERS = (
    'external-link', 'arrow-up-right', 'open-in-new', 'fa-external', 'bi-box-arrow',
    'icon-external', 'launch', 'open_in_new', 'north_east',
)
SEMANTIC_SMALL_TAGS = ('sup', 'sub', 'small', 'figcaption', 'caption')
HELPER_CLASSES = ('helper', 'hint', 'note', 'caption', 'footnote', 'fine-print')
DESCRIPTIVE_ALT_WORDS = ('logo', 'banner', 'icon', 'photo of', 'image of', 'picture of')

MIN_JUSTIFIED_TEXT = 100
MAX_UPPERCASE_UI_WORDS = 3
MIN_ARIA_LABEL = 3


def _text_of(html: str) -> str:
    return TAG_RE.sub('', html or '').strip()


def hidden_element(f: Finding) -> Optional[str]:
    html = f.html or ''
    details = f.details or {}
    if DISPLAY_NONE_RE.search(html) or details.get('display') == 'none':
        return 'element_display_none'
    if VISIBILITY_HIDDEN_RE.search(html) or details.get('visibility') == 'hidden':
        return 'element_visibility_hidden'
    if HIDDEN_ATTR_RE.search(html.split('>', 1)[0] + '>'):
        return 'element_hidden_attribute'
    if ARIA_HIDDEN_RE.search(html) or details.get('ariaHidden') is True:
        return 'element_aria_hidden'
    return None


def decorative_element(f: Finding) -> Optional[str]:
    html = (f.html or '').lower()
    selector = (f.selector or '').lower()
    classes = str((f.details or {}).get('classList') or '').lower()
    if any(c in html or c in selector or c in classes for c in DECORATIVE_CLASSES):
        return 'element_decorative_class'
    if PRESENTATION_ROLE_RE.search(html):
        return 'element_presentation_role'
    # alt="" is how authors mark an image as decorative
    if IMG_EMPTY_ALT_RE.search(html):
        return 'image_empty_alt_intentional'
    return None


def color_contrast(f: Finding) -> Optional[str]:
    if f.rule_id != 'color-contrast':
        return None
    html = f.html or ''
    if 'placeholder' in html.lower():
        return 'color_contrast_placeholder'
    if DISABLED_RE.search(html):
        return 'color_contrast_disabled'
    return None


def new_tab_link(f: Finding) -> Optional[str]:
    if f.rule_id != 'link-nova-aba-sem-aviso':
        return None
    html = (f.html or '').lower()
    details = f.details or {}
    if any(marker in html for marker in EXTERNAL_ICON_MARKERS):
        return 'link_has_external_icon'
    sr_text = details.get('srOnlyText') or ''
    match = SR_ONLY_TEXT_RE.search(html)
    if match:
        sr_text = f"{sr_text} {match.group(1)}"
    if sr_text and NEW_TAB_WORDS_RE.search(sr_text):
        return 'link_has_sr_only_text'
    return None


def small_font(f: Finding) -> Optional[str]:
    if f.rule_id != 'fonte-muito-pequena':
        return None
    html = (f.html or '').lower()
    selector = (f.selector or '').lower()
    tag = str((f.details or {}).get('tag') or '')
    if tag in SEMANTIC_SMALL_TAGS or any(
        t in selector or html.startswith(f'<{t}') for t in SEMANTIC_SMALL_TAGS
    ):
        return 'font_semantic_small_element'
    if any(c in html or c in selector for c in HELPER_CLASSES):
        return 'font_helper_text'
    return None


def justified_text(f: Finding) -> Optional[str]:
    if f.rule_id != 'texto-justificado':
        return None
    text = (f.details or {}).get('text') or _text_of(f.html)
    if len(text.strip()) < MIN_JUSTIFIED_TEXT:
        return 'justified_text_too_short'
    return None


def breadcrumb_root(f: Finding) -> Optional[str]:
    if f.rule_id != 'emag-breadcrumb':
        return None
    depth = (f.details or {}).get('depth')
    if (depth is not None and depth < 2) or (
        f.selector == 'body' and '1 níveis' in (f.failure_summary or '')
    ):
        return 'breadcrumb_root_page'
    return None


def filename_alt(f: Finding) -> Optional[str]:
    if f.rule_id != 'imagem-alt-nome-arquivo':
        return None
    match = ALT_RE.search(f.html or '')
    alt = (match.group(1) if match else (f.details or {}).get('alt') or '').lower()
    if alt and any(w in alt for w in DESCRIPTIVE_ALT_WORDS):
        return 'image_alt_has_description'
    return None


def uppercase_text(f: Finding) -> Optional[str]:
    if f.rule_id != 'texto-maiusculo-css':
        return None
    text = _text_of(f.html)
    if len(text.split()) <= MAX_UPPERCASE_UI_WORDS:
        return 'uppercase_short_ui_text'
    return None


def short_label(f: Finding) -> Optional[str]:
    if f.rule_id != 'rotulo-curto-ambiguo':
        return None
    match = ARIA_LABEL_RE.search(f.html or '')
    if match and len(match.group(1)) > MIN_ARIA_LABEL:
        return 'short_label_has_aria_label'
    return None


FILTERS: Tuple[Predicate, ...] = (
    hidden_element,
    decorative_element,
    color_contrast,
    new_tab_link,
    small_font,
    justified_text,
    breadcrumb_root,
    filename_alt,
    uppercase_text,
    short_label,
)


def filter_reasons(finding: Finding) -> List[str]:
    return [reason for reason in (p(finding) for p in FILTERS) if reason]


def filter_false_positives(findings: List[Finding]) -> Tuple[List[Finding], List[RemovedFinding]]:
    """Split findings into (kept, removed); every removed finding carries its reasons."""
    kept: List[Finding] = []
    removed: List[RemovedFinding] = []
    for finding in findings:
        reasons = filter_reasons(finding)
        if reasons:
            removed.append((finding, reasons))
        else:
            kept.append(finding)

    if removed:
        logger.info(
            f"Filtered {len(removed)} false positives: "
            + ', '.join(f"{f.rule_id} ({', '.join(r)})" for f, r in removed)
        )
    return kept, removed


def get_filter_stats(removed: List[RemovedFinding]) -> Dict[str, int]:
    stats = Counter()
    for _, reasons in removed:
        stats.update(reasons)
    return dict(stats)
