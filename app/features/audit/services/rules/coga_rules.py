"""
Cognitive accessibility (COGA) rules. Opt-in per audit.

Text legibility is scored in Python: the page only collects candidate text
blocks and the PT-BR readability estimator decides which ones fail.
"""
from typing import Optional

from app.features.audit.services.rules.dom_rule import DomRule, RuleRegistry
from app.features.audit.utils.readability import MIN_SCORE, estimate_readability

UNDERSTANDING_URL = 'https://www.w3.org/WAI/WCAG21/Understanding/{}.html'

# Blocks with fewer words than this are not scored.
MIN_WORDS_FOR_READABILITY = 20
VERY_DIFFICULT_SCORE = 25

# Acronyms readers are expected to know without expansion.
COMMON_ACRONYMS = [
    'HTML', 'CSS', 'PDF', 'URL', 'HTTP', 'HTTPS', 'API', 'XML', 'JSON', 'SQL', 'PHP', 'RSS',
    'WWW', 'FTP', 'SSL', 'TLS', 'DNS', 'IP', 'USB', 'RAM', 'ROM', 'CPU', 'GPU', 'SSD', 'HD',
    'GB', 'MB', 'KB', 'TB',
    'CPF', 'CNPJ', 'RG', 'CEP', 'PIX', 'INSS', 'FGTS', 'CLT', 'MEI', 'IPTU', 'IPVA', 'IR',
    'ICMS', 'ISS', 'PIS', 'COFINS', 'SUS', 'IBGE',
    'OK', 'TV', 'DVD', 'CD', 'FM', 'AM', 'AC', 'DC', 'QR', 'PIN', 'ATM', 'FAQ', 'CEO', 'CFO',
    'CTO', 'RH', 'TI', 'EUA', 'ONU', 'OMS', 'FIFA', 'NBA', 'UFC', 'F1', 'GP',
    'WCAG', 'WAI', 'ARIA', 'COGA',
    'PT', 'BR', 'EN', 'US', 'ES', 'UK', 'FR', 'DE', 'IT',
]

ENGLISH_MARKERS = [
    'the', 'and', 'for', 'with', 'this', 'that', 'from', 'have', 'been', 'will', 'would',
    'could', 'should', 'their', 'which', 'about', 'into', 'through', 'during', 'before',
    'after', 'between', 'under', 'again', 'there', 'where', 'when', 'while',
    'click here', 'read more', 'learn more', 'sign up', 'log in', 'login', 'logout',
    'sign in', 'sign out', 'download', 'upload', 'subscribe', 'newsletter', 'submit',
    'search', 'loading', 'please wait', 'copyright', 'all rights reserved', 'privacy policy',
    'terms of service', 'contact us', 'about us', 'our team', 'follow us', 'share', 'like',
    'comment',
]


def score_text_block(record: dict) -> Optional[dict]:
    """Keep a collected text block only when it reads as too difficult."""
    text = (record.get('details') or {}).get('blockText') or ''
    result = estimate_readability(text)
    if result is None or result.words < MIN_WORDS_FOR_READABILITY or result.score >= MIN_SCORE:
        return None

    level = 'muito difícil' if result.score < VERY_DIFFICULT_SCORE else 'difícil'
    details = dict(record.get('details') or {})
    details.pop('blockText', None)
    details['readability'] = {
        'score': result.score,
        'asl': result.asl,
        'asw': result.asw,
        'words': result.words,
        'sentences': result.sentences,
        'interpretation': result.interpretation,
    }
    return {
        **record,
        'details': details,
        'message': (
            f"Texto {level} (score: {result.score:.0f}/100). "
            f"Média: {result.asl} palavras/sentença, {result.asw} sílabas/palavra."
        ),
    }


TEXT_LEGIBILITY = DomRule(
    id='legibilidade-texto-complexo',
    impact='moderate',
    wcag_level='AAA',
    wcag_criteria=('3.1.5',),
    help='Texto deve ser claro e fácil de entender',
    description='O texto tem baixa legibilidade (Flesch PT-BR < 50). Considere simplificar sentenças '
                'longas e usar palavras mais simples.',
    help_url=UNDERSTANDING_URL.format('reading-level'),
    post_process=score_text_block,
    script="""
var seen = new Set();
var out = [];
document.querySelectorAll('p, li, td, dd, blockquote, article > div').forEach(function (el) {
  var style = window.getComputedStyle(el);
  if (style.display === 'none' || style.visibility === 'hidden') { return; }
  if (el.closest('code, pre, script, style, noscript')) { return; }
  var own = '';
  el.childNodes.forEach(function (node) { if (node.nodeType === Node.TEXT_NODE) { own += node.textContent + ' '; } });
  var body = own.trim().length >= 100 ? own : (el.textContent || '');
  body = body.replace(/https?:\\/\\/\\S+/gi, '').replace(/\\S+@\\S+/g, '').trim();
  if (body.length < 100) { return; }
  var key = body.substring(0, 50);
  if (seen.has(key)) { return; }
  seen.add(key);
  out.push(ctx.record(el, {details: {blockText: body.substring(0, 5000)}}));
});
return out;
""",
)

ACRONYMS_WITHOUT_EXPANSION = DomRule(
    id='siglas-sem-expansao',
    impact='minor',
    wcag_level='AAA',
    wcag_criteria=('3.1.4',),
    help='Siglas devem ter expansão na primeira ocorrência',
    description='Siglas e abreviaturas devem ser explicadas usando <abbr title="..."> '
                'ou expandindo na primeira ocorrência.',
    help_url=UNDERSTANDING_URL.format('abbreviations'),
    params={'common': COMMON_ACRONYMS},
    script="""
var found = new Map();
var abbrTexts = new Set(Array.prototype.map.call(document.querySelectorAll('abbr[title]'),
  function (a) { return (a.textContent || '').trim(); }));
function expanded(acronym, context) {
  var re = new RegExp(acronym + '\\\\s*\\\\([A-Z][^)]{5,}\\\\)|\\\\([A-Z][^)]{5,}\\\\)\\\\s*' + acronym, 'i');
  return re.test(context);
}
var selector = 'p, li, td, th, dd, h1, h2, h3, h4, h5, h6, span, a, label, button';
document.querySelectorAll(selector).forEach(function (el) {
  var style = window.getComputedStyle(el);
  if (style.display === 'none' || style.visibility === 'hidden') { return; }
  if (el.closest('code, pre, script, style, noscript, abbr')) { return; }
  var content = el.textContent || '';
  var matches = content.match(/\\b[A-Z]{2,6}\\b/g);
  if (!matches) { return; }
  var context = (el.parentElement && el.parentElement.textContent) || content;
  matches.forEach(function (acronym) {
    if (params.common.indexOf(acronym) !== -1 || found.has(acronym)) { return; }
    if (abbrTexts.has(acronym) || expanded(acronym, context)) { found.set(acronym, null); return; }
    found.set(acronym, el);
  });
});
var out = [];
found.forEach(function (el, acronym) {
  if (el) {
    out.push(ctx.record(el, {message: 'Sigla "' + acronym + '" sem expansão ou <abbr title>', details: {acronym: acronym}}));
  }
});
return out;
""",
)

INCONSISTENT_LANGUAGE = DomRule(
    id='linguagem-inconsistente',
    impact='minor',
    wcag_level='AA',
    wcag_criteria=('3.1.2',),
    help='Trechos em outro idioma devem ter atributo lang',
    description='Texto em idioma diferente do principal deve ter atributo lang apropriado '
                '(ex: lang="en" para inglês).',
    help_url=UNDERSTANDING_URL.format('language-of-parts'),
    params={'markers': ENGLISH_MARKERS},
    script="""
var pageLang = (document.documentElement.getAttribute('lang') || 'pt-BR').toLowerCase();
if (pageLang.indexOf('pt') === -1) { return []; }
var patterns = params.markers.map(function (m) { return [m, new RegExp('\\\\b' + m + '\\\\b', 'gi')]; });
var seen = new Set();
var out = [];
document.querySelectorAll('p, li, td, dd, blockquote, span, div').forEach(function (el) {
  var style = window.getComputedStyle(el);
  if (style.display === 'none' || style.visibility === 'hidden') { return; }
  if (el.closest('code, pre, script, style, noscript')) { return; }
  var marked = el.closest('[lang]');
  if (marked && marked !== document.documentElement) { return; }
  var content = (el.textContent || '').toLowerCase().trim();
  if (content.length < 20) { return; }
  var key = content.substring(0, 50);
  if (seen.has(key)) { return; }
  var count = 0;
  var words = [];
  patterns.forEach(function (p) {
    var hits = content.match(p[1]);
    if (hits) { count += hits.length; words.push(p[0]); }
  });
  if (count >= 3 && words.length >= 2) {
    seen.add(key);
    out.push(ctx.record(el, {
      message: 'Texto aparenta estar em inglês sem marcação lang="en". Palavras detectadas: ' + words.slice(0, 5).join(', '),
      details: {englishMarkers: words.slice(0, 5)}
    }));
  }
});
return out;
""",
)

TIMEOUT_WITHOUT_WARNING = DomRule(
    id='timeout-sem-aviso',
    impact='serious',
    wcag_level='A',
    wcag_criteria=('2.2.1',),
    help='Timeout de página deve avisar o usuário',
    description='A página tem timeout automático sem aviso visível. O usuário deve ser avisado e ter '
                'opção de estender o tempo.',
    help_url=UNDERSTANDING_URL.format('timing-adjustable'),
    script="""
var out = [];
var bodyText = (document.body.textContent || '').toLowerCase();
var meta = document.querySelector('meta[http-equiv="refresh" i]');
if (meta) {
  var content = meta.getAttribute('content') || '';
  var match = content.match(/^(\\d+)\\s*;?\\s*(?:url=(.*))?$/i);
  if (match) {
    var seconds = parseInt(match[1], 10);
    var target = (match[2] || '').toLowerCase();
    var sessionTarget = /login|logout|signin|sign-in|session|sessao|sessão|entrar|sair/.test(target);
    var warned = ['sessao', 'sessão', 'tempo', 'expirar', 'minutos', 'timeout', 'session']
      .some(function (w) { return bodyText.indexOf(w) !== -1; });
    if (seconds > 20 && seconds < 1200 && (sessionTarget || !warned)) {
      out.push(ctx.record(meta, {
        message: 'Página com timeout de ' + seconds + ' segundos sem aviso visível',
        details: {seconds: seconds, target: target}
      }));
    }
  }
}
document.querySelectorAll('form').forEach(function (form) {
  var password = form.querySelector('input[type="password"]');
  var card = form.querySelector('input[name*="card" i], input[name*="credit" i], input[name*="cartao" i], ' +
    'input[autocomplete*="cc-"], input[name*="cvv" i], input[name*="cvc" i]');
  if (!password && !card) { return; }
  var container = form.closest('main, section, article, div[class*="container"]') || form.parentElement;
  var text = ((container && container.textContent) || '').toLowerCase();
  var warned = ['sessao expira', 'sessão expira', 'tempo limite', 'inatividade', 'timeout', 'session expire']
    .some(function (w) { return text.indexOf(w) !== -1; });
  var timer = container && container.querySelector('[class*="timer" i], [class*="countdown" i], ' +
    '[class*="tempo" i], [id*="timer" i], [id*="countdown" i]');
  if (warned || timer) { return; }
  var kind = card ? 'pagamento' : 'login';
  out.push(ctx.record(form, {
    impact: 'moderate',
    wcagCriteria: ['2.2.1', '2.2.6'],
    help: 'Formulários com timeout devem avisar o usuário',
    message: 'Formulário de ' + kind + ' sem aviso visível de timeout/sessão',
    details: {formType: kind}
  }));
});
return out;
""",
)

CAPTCHA_WITHOUT_ALTERNATIVE = DomRule(
    id='captcha-sem-alternativa',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('1.1.1',),
    help='CAPTCHA deve ter alternativa acessível',
    description='CAPTCHAs visuais excluem usuários cegos. Forneça alternativa de áudio ou use um serviço '
                'com áudio integrado.',
    help_url=UNDERSTANDING_URL.format('non-text-content'),
    script="""
var out = [];
function untitled(iframe) { return !(iframe.getAttribute('title') || '').trim(); }
document.querySelectorAll('iframe[src*="recaptcha"]').forEach(function (iframe) {
  var src = iframe.getAttribute('src') || '';
  if ((src.indexOf('anchor') !== -1 || src.indexOf('bframe') !== -1) && untitled(iframe)) {
    out.push(ctx.record(iframe, {message: 'Iframe de reCAPTCHA sem atributo title'}));
  }
});
document.querySelectorAll('iframe[src*="hcaptcha"]').forEach(function (iframe) {
  if (untitled(iframe)) {
    out.push(ctx.record(iframe, {message: 'Iframe de hCaptcha sem atributo title'}));
  }
});
function unloaded(selector, frameSelector, keyAttrs, name) {
  document.querySelectorAll(selector).forEach(function (div) {
    var form = div.closest('form');
    var loaded = div.querySelector('iframe') || (form && form.querySelector(frameSelector));
    var configured = keyAttrs.some(function (a) { return div.hasAttribute(a); });
    if (!loaded && configured) {
      out.push(ctx.record(div, {
        impact: 'serious',
        help: 'CAPTCHA deve estar funcional e acessível',
        message: 'Container ' + name + ' sem iframe - CAPTCHA pode não estar carregado'
      }));
    }
  });
}
unloaded('.g-recaptcha, [data-sitekey], [class*="recaptcha"]', 'iframe[src*="recaptcha"]', ['data-sitekey'], 'reCAPTCHA');
unloaded('.h-captcha, [data-hcaptcha-sitekey]', 'iframe[src*="hcaptcha"]', ['data-sitekey', 'data-hcaptcha-sitekey'], 'hCaptcha');
var images = 'img[src*="captcha" i], img[alt*="captcha" i], img[class*="captcha" i], img[id*="captcha" i], [class*="captcha"] img';
document.querySelectorAll(images).forEach(function (img) {
  var container = img.closest('div, form, fieldset') || img.parentElement;
  if (!container) { return; }
  var audio = container.querySelector('audio, button[aria-label*="audio" i], a[href*="audio" i], ' +
    'button[title*="audio" i], [class*="audio" i]');
  var input = container.querySelector('input[type="text"], input[name*="captcha" i]');
  if (input && !audio) {
    out.push(ctx.record(img, {
      impact: 'critical',
      help: 'CAPTCHA visual deve ter alternativa de áudio',
      message: 'CAPTCHA visual customizado sem alternativa de áudio'
    }));
  }
});
return out;
""",
)

ANIMATION_WITHOUT_PAUSE = DomRule(
    id='animacao-sem-pause',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('2.2.2',),
    help='Animações devem ter controle de pausa',
    description='Animações em loop infinito podem distrair usuários. Forneça botão de pause ou use '
                'prefers-reduced-motion.',
    help_url=UNDERSTANDING_URL.format('pause-stop-hide'),
    script="""
var seen = new Set();
var out = [];
function hidden(el) {
  var style = window.getComputedStyle(el);
  return style.display === 'none' || style.visibility === 'hidden';
}
document.querySelectorAll('body *').forEach(function (el) {
  var style = window.getComputedStyle(el);
  if (!style.animationName || style.animationName === 'none') { return; }
  if (!(parseFloat(style.animationDuration) > 0) || style.animationIterationCount !== 'infinite') { return; }
  if (hidden(el)) { return; }
  var rect = el.getBoundingClientRect();
  if (rect.width < 20 || rect.height < 20) { return; }
  var selector = ctx.getSelector(el);
  if (seen.has(selector)) { return; }
  var container = el.closest('section, article, div[class]') || el.parentElement;
  var pause = container && container.querySelector('[class*="pause" i], [aria-label*="pause" i], ' +
    '[aria-label*="pausar" i], [title*="pause" i], [title*="pausar" i], button[class*="play" i]');
  if (!pause) {
    seen.add(selector);
    out.push(ctx.record(el, {message: 'Animação CSS infinita (' + style.animationName + ') sem botão de pause'}));
  }
});
document.querySelectorAll('img[src$=".gif" i], img[src*=".gif?" i]').forEach(function (img) {
  if (hidden(img)) { return; }
  var rect = img.getBoundingClientRect();
  if (rect.width < 50 || rect.height < 50) { return; }
  var selector = ctx.getSelector(img);
  if (seen.has(selector)) { return; }
  var container = img.closest('figure, div, section') || img.parentElement;
  var control = container && container.querySelector('[class*="pause" i], [aria-label*="pause" i], button, ' +
    '[class*="play" i], [class*="stop" i]');
  if (!control && (rect.width > 100 || rect.height > 100)) {
    seen.add(selector);
    out.push(ctx.record(img, {
      impact: 'minor',
      help: 'GIFs animados devem ter controle de pausa',
      message: 'GIF animado (' + rect.width.toFixed(0) + 'x' + rect.height.toFixed(0) + 'px) sem controle de pausa'
    }));
  }
});
document.querySelectorAll('svg animate, svg animateTransform, svg animateMotion').forEach(function (anim) {
  var svg = anim.closest('svg');
  if (!svg || hidden(svg) || anim.getAttribute('repeatCount') !== 'indefinite') { return; }
  var selector = ctx.getSelector(svg);
  if (seen.has(selector)) { return; }
  var container = svg.closest('div, section, figure') || svg.parentElement;
  var control = container && container.querySelector('[class*="pause" i], [aria-label*="pause" i], button');
  if (!control) {
    seen.add(selector);
    out.push(ctx.record(svg, {
      help: 'SVG animado deve ter controle de pausa',
      message: 'SVG com animação infinita sem controle de pausa'
    }));
  }
});
return out;
""",
)

COGA_RULES = (
    TEXT_LEGIBILITY,
    ACRONYMS_WITHOUT_EXPANSION,
    INCONSISTENT_LANGUAGE,
    TIMEOUT_WITHOUT_WARNING,
    CAPTCHA_WITHOUT_ALTERNATIVE,
    ANIMATION_WITHOUT_PAUSE,
)


def build_coga_registry() -> RuleRegistry:
    return RuleRegistry(COGA_RULES)
