"""
Per-rule confidence tables.

Pure lookup data, built once at import and exposed read-only. The scorer
receives the tables as constructor arguments so tests can pass their own.
"""
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Tuple

from app.features.audit.schemas.finding import ConfidenceSignal


@dataclass(frozen=True)
class ElementContext:
    html: str = ""
    selector: str = ""
    parent_html: Optional[str] = None
    page_url: Optional[str] = None
    surrounding_text: Optional[str] = None
    font_size: Optional[float] = None
    class_list: str = ""


@dataclass(frozen=True)
class Adjustment:
    delta: float = 0.0
    signals: Tuple[ConfidenceSignal, ...] = ()
    reason: Optional[str] = None
    level: Optional[str] = None


Adjuster = Callable[[ElementContext], Adjustment]


@dataclass(frozen=True)
class RuleConfidenceConfig:
    base_level: str
    base_score: float
    adjust: Optional[Adjuster] = None
    review_reason: Optional[str] = None
    experimental: bool = False


def _neg(signal: str, weight: float, description: str) -> ConfidenceSignal:
    return ConfidenceSignal(type="negative", signal=signal, weight=weight, description=description)


def _pos(signal: str, weight: float, description: str) -> ConfidenceSignal:
    return ConfidenceSignal(type="positive", signal=signal, weight=weight, description=description)


def fixed(*signals: ConfidenceSignal, reason: Optional[str] = None) -> Adjuster:
    """Adjuster that always reports the same signals and no score change."""
    result = Adjustment(signals=tuple(signals), reason=reason)
    return lambda ctx: result


def when(pattern: str, field_name: str, delta: float, signal: ConfidenceSignal,
         reason: Optional[str] = None) -> Adjuster:
    """Adjuster applying `delta` when `pattern` matches the given context field."""
    compiled = re.compile(pattern, re.I)

    def adjust(ctx: ElementContext) -> Adjustment:
        if compiled.search(getattr(ctx, field_name) or ""):
            return Adjustment(delta=delta, signals=(signal,), reason=reason)
        return Adjustment()

    return adjust


# ── axe-core ────────────────────────────────────

DECORATIVE_RE = re.compile(r'\b(decorat|icon|logo|brand)\w*', re.I)


def _color_contrast(ctx: ElementContext) -> Adjustment:
    signals: List[ConfidenceSignal] = []
    delta = 0.0
    if DECORATIVE_RE.search(ctx.html) or DECORATIVE_RE.search(ctx.class_list):
        signals.append(_neg('possibly_decorative_class', 0.3,
                            'Element may be decorative based on CSS classes'))
        delta -= 0.3
    if ctx.font_size is not None and ctx.font_size < 10:
        signals.append(_neg('very_small_text', 0.2, 'Very small text, may be icon or decorative'))
        delta -= 0.2
    return Adjustment(delta=delta, signals=tuple(signals))


AXE_RULE_CONFIDENCE: Mapping[str, RuleConfidenceConfig] = MappingProxyType({
    'image-alt': RuleConfidenceConfig('certain', 1.0),
    'button-name': RuleConfidenceConfig('certain', 1.0),
    'link-name': RuleConfidenceConfig('certain', 1.0),
    'color-contrast': RuleConfidenceConfig('likely', 0.85, adjust=_color_contrast),
    'landmark-one-main': RuleConfidenceConfig(
        'needs_review', 0.6,
        adjust=fixed(_neg('structural_choice', 0.4,
                          'Missing main landmark may be valid architectural choice'),
                     reason='context_dependent'),
    ),
    'region': RuleConfidenceConfig(
        'needs_review', 0.5,
        adjust=fixed(_neg('structural_flexibility', 0.5,
                          'Not all content needs to be in a landmark'),
                     reason='context_dependent'),
    ),
})


# ── custom rules ────────────────────────────────

ALT_RE = re.compile(r'alt=["\']([^"\']+)["\']', re.I)
CLEAR_FILENAME_RE = re.compile(r'^(IMG_|DSC|PHOTO_|Screenshot)\d+', re.I)
COMMON_ACRONYMS = ('HTML', 'CSS', 'URL', 'API', 'PDF', 'FAQ', 'CEO', 'CFO')
TAG_RE = re.compile(r'<[^>]+>')


def _new_tab_link(ctx: ElementContext) -> Adjustment:
    signals: List[ConfidenceSignal] = []
    delta = 0.0
    if re.search(r'external|arrow|open|window', ctx.html, re.I):
        signals.append(_neg('has_external_icon', 0.5, 'May have icon indicating external link'))
        delta -= 0.5
    if re.search(r'sr-only|visually-hidden|screen-reader', ctx.html, re.I):
        signals.append(_neg('has_sr_text', 0.7, 'May have hidden text for screen readers'))
        delta -= 0.7
    return Adjustment(delta=delta, signals=tuple(signals))


def _filename_alt(ctx: ElementContext) -> Adjustment:
    match = ALT_RE.search(ctx.html)
    alt = match.group(1) if match else ''
    if CLEAR_FILENAME_RE.search(alt):
        return Adjustment(delta=0.05, signals=(
            _pos('clear_filename_pattern', 0.95, 'Alt text follows clear filename pattern'),))
    if re.search(r'logo|brand|icon', alt, re.I):
        return Adjustment(delta=-0.3, reason='possibly_intentional', signals=(
            _neg('possibly_intentional_name', 0.3,
                 'Name may be intentional description of logo/icon'),))
    return Adjustment()


def _generic_link(ctx: ElementContext) -> Adjustment:
    signals: List[ConfidenceSignal] = []
    delta = 0.0
    if ctx.parent_html and re.search(r'article|card|product|item', ctx.parent_html, re.I):
        signals.append(_neg('has_surrounding_context', 0.4,
                            'Link is in context that may provide meaning'))
        delta -= 0.4
    if re.search(r'aria-(describedby|labelledby)', ctx.html, re.I):
        signals.append(_neg('has_aria_description', 0.6, 'Link has description via ARIA'))
        delta -= 0.6
    return Adjustment(delta=delta, signals=tuple(signals), reason='context_dependent')


def _skip_links(ctx: ElementContext) -> Adjustment:
    if ctx.surrounding_text and len(ctx.surrounding_text) < 500:
        return Adjustment(delta=-0.3, reason='context_dependent', signals=(
            _neg('simple_page', 0.3, 'Simple page may not need skip links'),))
    return Adjustment()


def _justified_text(ctx: ElementContext) -> Adjustment:
    if len(TAG_RE.sub('', ctx.html)) < 200:
        return Adjustment(delta=-0.3, reason='possibly_intentional', signals=(
            _neg('short_text_block', 0.3, 'Short text block has lower impact'),))
    return Adjustment()


def _acronyms(ctx: ElementContext) -> Adjustment:
    if any(a in ctx.html for a in COMMON_ACRONYMS):
        return Adjustment(delta=-0.5, reason='context_dependent', signals=(
            _neg('common_acronym', 0.5, 'Acronym is widely known'),))
    return Adjustment()


CUSTOM_RULE_CONFIDENCE: Mapping[str, RuleConfidenceConfig] = MappingProxyType({
    'link-nova-aba-sem-aviso': RuleConfidenceConfig('certain', 0.95, adjust=_new_tab_link),
    'imagem-alt-nome-arquivo': RuleConfidenceConfig('likely', 0.90, adjust=_filename_alt),
    'link-texto-generico': RuleConfidenceConfig('needs_review', 0.70, adjust=_generic_link),
    'brasil-libras-plugin': RuleConfidenceConfig(
        'needs_review', 0.60, experimental=True,
        adjust=fixed(_neg('cannot_verify_functionality', 0.4,
                          'Cannot verify if sign language plugin is working correctly'),
                     reason='external_resource'),
    ),
    'emag-skip-links': RuleConfidenceConfig('likely', 0.80, adjust=_skip_links),
    'emag-breadcrumb': RuleConfidenceConfig(
        'needs_review', 0.50, experimental=True,
        adjust=fixed(_neg('design_choice', 0.5, 'Breadcrumb is a recommendation, not a requirement'),
                     reason='user_preference'),
    ),
    'texto-justificado': RuleConfidenceConfig('likely', 0.75, adjust=_justified_text),
    'fonte-muito-pequena': RuleConfidenceConfig(
        'likely', 0.80,
        adjust=when(r'label|legend|caption|footnote|small|sup|sub', 'selector', -0.4,
                    _neg('semantic_small_text', 0.4, 'Small text may be semantically appropriate'),
                    reason='possibly_intentional'),
    ),
    'legibilidade-texto-complexo': RuleConfidenceConfig(
        'needs_review', 0.60, experimental=True,
        adjust=fixed(_neg('subjective_metric', 0.4,
                          'Readability is a subjective metric, varies by target audience'),
                     reason='context_dependent'),
    ),
    'siglas-sem-expansao': RuleConfidenceConfig(
        'needs_review', 0.65, experimental=True, adjust=_acronyms),
    'texto-maiusculo-css': RuleConfidenceConfig(
        'likely', 0.75,
        adjust=when(r'nav|button|btn|header|h[1-6]', 'selector', -0.3,
                    _neg('ui_element', 0.3, 'Uppercase in UI elements is common design choice'),
                    reason='possibly_intentional'),
    ),
    'br-excessivo-layout': RuleConfidenceConfig(
        'likely', 0.80,
        adjust=fixed(_pos('clear_layout_issue', 0.8,
                          'Multiple BR tags for layout is a clear anti-pattern')),
    ),
    'atributo-title-redundante': RuleConfidenceConfig(
        'likely', 0.70,
        adjust=fixed(_neg('may_be_intentional', 0.3, 'Redundant title may provide touch device tooltip'),
                     reason='user_preference'),
    ),
    'rotulo-curto-ambiguo': RuleConfidenceConfig(
        'needs_review', 0.65,
        adjust=when(r'aria-label|title=', 'html', -0.4,
                    _neg('has_accessible_name', 0.6,
                         'Element may have accessible name via ARIA or title'),
                    reason='context_dependent'),
    ),
    'conteudo-lorem-ipsum': RuleConfidenceConfig(
        'certain', 0.95,
        adjust=fixed(_pos('clear_placeholder', 0.95, 'Lorem ipsum is clearly placeholder content')),
    ),
    'emag-atalhos-teclado': RuleConfidenceConfig(
        'needs_review', 0.60, experimental=True,
        adjust=fixed(_neg('gov_specific', 0.4, 'Keyboard shortcuts are specific to gov.br sites'),
                     reason='context_dependent'),
    ),
    'emag-links-adjacentes': RuleConfidenceConfig(
        'likely', 0.75,
        adjust=fixed(_neg('visual_separation_may_exist', 0.25, 'Visual separation may exist via CSS'),
                     reason='detection_limited'),
    ),
    'emag-tabela-layout': RuleConfidenceConfig(
        'likely', 0.80,
        adjust=when(r'role=["\']presentation["\']', 'html', -0.6,
                    _neg('has_presentation_role', 0.8, 'Table is marked as presentational'),
                    reason='possibly_intentional'),
    ),
    'emag-pdf-acessivel': RuleConfidenceConfig(
        'needs_review', 0.55, experimental=True,
        adjust=fixed(_neg('cannot_verify_pdf_content', 0.45,
                          'Cannot automatically verify PDF accessibility'),
                     reason='external_resource'),
    ),
    'autoplay-video-audio': RuleConfidenceConfig(
        'certain', 0.90,
        adjust=when(r'muted', 'html', -0.2,
                    _neg('is_muted', 0.3, 'Muted autoplay is less disruptive'),
                    reason='possibly_intentional'),
    ),
    'carrossel-sem-controles': RuleConfidenceConfig(
        'likely', 0.80,
        adjust=fixed(_neg('controls_may_be_dynamic', 0.2,
                          'Controls may be added dynamically via JavaScript'),
                     reason='detection_limited'),
    ),
    'refresh-automatico': RuleConfidenceConfig(
        'certain', 0.95,
        adjust=fixed(_pos('clear_violation', 0.95, 'Auto-refresh is a clear accessibility barrier')),
    ),
    'barra-acessibilidade-gov-br': RuleConfidenceConfig(
        'needs_review', 0.60, experimental=True,
        adjust=fixed(_neg('gov_specific_requirement', 0.4,
                          'Accessibility bar is specific to gov.br sites'),
                     reason='context_dependent'),
    ),
    'linguagem-inconsistente': RuleConfidenceConfig(
        'needs_review', 0.60, experimental=True,
        adjust=fixed(_neg('language_detection_imperfect', 0.4,
                          'Language detection may have false positives'),
                     reason='detection_limited'),
    ),
    'timeout-sem-aviso': RuleConfidenceConfig(
        'needs_review', 0.65, experimental=True,
        adjust=fixed(_neg('timeout_detection_limited', 0.35, 'Timeout warning detection is limited'),
                     reason='detection_limited'),
    ),
    'captcha-sem-alternativa': RuleConfidenceConfig(
        'likely', 0.75,
        adjust=when(r'recaptcha.*v3|invisible', 'html', -0.5,
                    _neg('invisible_captcha', 0.7,
                         'Invisible CAPTCHA does not require user interaction'),
                    reason='possibly_intentional'),
    ),
    'animacao-sem-pause': RuleConfidenceConfig(
        'likely', 0.80,
        adjust=when(r'prefers-reduced-motion', 'html', -0.4,
                    _neg('respects_reduced_motion', 0.6,
                         'Animation respects reduced motion preference'),
                    reason='possibly_intentional'),
    ),
})
