"""
Partial-detection WCAG rules.

These cover criteria that normally need a human check; they catch the common
cases only and prefer missing a violation to reporting a wrong one. Every
finding is marked needs_review and carries an i18n message key plus params
instead of display text.
"""
import json
from typing import Optional

from app.features.audit.services.rules.dom_rule import DomRule, RuleRegistry

UNDERSTANDING_22_URL = 'https://www.w3.org/WAI/WCAG22/Understanding/{}'

# autocomplete token -> field keywords (EN / PT-BR / ES)
AUTOCOMPLETE_MAP = {
    'name': ['name', 'nome', 'nombre', 'full-name', 'fullname', 'your-name', 'nome-completo'],
    'given-name': ['first-name', 'firstname', 'fname', 'primeiro-nome', 'given-name', 'primer-nombre'],
    'family-name': ['last-name', 'lastname', 'lname', 'sobrenome', 'surname', 'apellido', 'family-name'],
    'email': ['email', 'e-mail', 'mail', 'correo', 'correo-electronico'],
    'tel': ['phone', 'telefone', 'tel', 'celular', 'mobile', 'whatsapp', 'telephone',
            'cell', 'phone-number', 'telefono', 'movil'],
    'street-address': ['address', 'endereco', 'street', 'rua', 'logradouro', 'direccion',
                       'calle', 'street-address', 'address-line1'],
    'postal-code': ['zip', 'cep', 'postal', 'zipcode', 'postal-code', 'postcode', 'codigo-postal'],
    'address-level2': ['city', 'cidade', 'locality', 'ciudad', 'town'],
    'address-level1': ['state', 'estado', 'region', 'uf', 'province', 'provincia'],
    'country': ['country', 'pais', 'nation', 'country-name'],
    'cc-number': ['card-number', 'cc-number', 'cardnumber', 'numero-cartao', 'credit-card',
                  'card', 'numero-tarjeta'],
    'cc-exp': ['expiry', 'exp-date', 'validade', 'cc-exp', 'expiration', 'exp-month', 'exp-year',
               'vencimiento', 'fecha-expiracion'],
    'cc-csc': ['cvv', 'cvc', 'csc', 'security-code', 'codigo-seguranca', 'codigo-seguridad'],
    'cc-name': ['cc-name', 'cardholder', 'card-holder', 'nome-cartao', 'titular'],
    # Brazilian documents have no dedicated token; suggest enabling autocomplete.
    'on': ['cpf', 'tax-id', 'taxpayer-id', 'cnpj', 'company-tax-id', 'business-id', 'rg',
           'identidade', 'identity-card'],
    'bday': ['birthday', 'birth-date', 'nascimento', 'data-nascimento', 'dob', 'date-of-birth',
             'birthdate', 'fecha-nacimiento', 'cumpleanos'],
    'username': ['username', 'user', 'usuario', 'login', 'user-name', 'account', 'cuenta'],
    'new-password': ['new-password', 'nova-senha', 'create-password', 'nueva-contrasena'],
    'current-password': ['current-password', 'senha-atual', 'password', 'senha', 'old-password',
                         'contrasena', 'clave'],
    'organization': ['organization', 'company', 'empresa', 'organizacao', 'org', 'compania'],
}

NAVIGATION_PATTERNS = [
    'location.href', 'location.assign', 'location.replace', 'window.location', 'document.location',
    'navigate(', 'router.push', 'router.replace', 'this.form.submit', '.submit()',
    'history.push', 'history.replace', 'href=',
]


def attach_message(record: dict) -> Optional[dict]:
    """Failure summary of a partial finding is its JSON-encoded message params."""
    details = record.setdefault('details', {})
    record['message'] = json.dumps(details.get('messageParams') or {}, ensure_ascii=False)
    return record


def partial_rule(rule_id, impact, level, criterion, understanding, description, script, params=None):
    return DomRule(
        id=rule_id,
        impact=impact,
        wcag_level=level,
        wcag_version='2.2',
        wcag_criteria=(criterion,),
        help=f'WcagPartial.{rule_id}',
        description=description,
        help_url=UNDERSTANDING_22_URL.format(understanding),
        needs_review=True,
        params=params or {},
        script=script,
        post_process=attach_message,
    )


INPUT_AUTOCOMPLETE = partial_rule(
    'input-sem-autocomplete', 'serious', 'AA', '1.3.5', 'identify-input-purpose',
    'Detecta inputs de dados pessoais sem atributo autocomplete',
    params={'map': AUTOCOMPLETE_MAP},
    script="""
var ignored = ['hidden', 'submit', 'button', 'reset', 'image', 'file', 'checkbox', 'radio'];
var entries = Object.keys(params.map).map(function (k) { return [k, params.map[k]]; });
var out = [];
document.querySelectorAll('input, select').forEach(function (input) {
  var type = (input.getAttribute('type') || 'text').toLowerCase();
  if (ignored.indexOf(type) !== -1) { return; }
  if (input.getAttribute('autocomplete')) { return; }
  if (input.closest('[role="search"]')) { return; }
  var label = input.labels && input.labels[0] ? (input.labels[0].textContent || '') : '';
  var haystack = [input.getAttribute('name'), input.getAttribute('id'), input.getAttribute('placeholder'),
                  input.getAttribute('aria-label'), label].map(function (v) { return (v || '').toLowerCase(); }).join(' ');
  for (var i = 0; i < entries.length; i++) {
    var token = entries[i][0];
    var keywords = entries[i][1];
    for (var j = 0; j < keywords.length; j++) {
      var re = new RegExp('(^|[^a-z])' + keywords[j].replace(/-/g, '[-_]?') + '($|[^a-z])', 'i');
      if (re.test(haystack)) {
        out.push(ctx.record(input, {details: {
          messageKey: 'WcagPartial.inputSemAutocomplete.message',
          messageParams: {fieldType: keywords[j], suggestedValue: token}
        }}));
        return;
      }
    }
  }
});
return out;
""",
)

LINK_UNDERLINE = partial_rule(
    'link-sem-underline-em-texto', 'serious', 'A', '1.4.1', 'use-of-color',
    'Detecta links em texto que dependem apenas de cor para diferenciação',
    script="""
var seen = new Set();
var out = [];
document.querySelectorAll('p, li, td, dd, figcaption, blockquote').forEach(function (container) {
  container.querySelectorAll('a[href]').forEach(function (link) {
    var selector = ctx.getSelector(link);
    if (seen.has(selector)) { return; }
    if (link.closest('nav, header, footer, [role="navigation"], [role="banner"], [role="contentinfo"]')) { return; }
    if ((container.textContent || '').trim() === (link.textContent || '').trim()) { return; }
    var classes = link.classList.toString();
    if (link.getAttribute('role') === 'button' || link.classList.contains('btn') ||
        link.classList.contains('button') || classes.indexOf('btn-') !== -1) { return; }
    if (link.querySelector('svg, img, i[class*="icon"], span[class*="icon"]')) { return; }
    var style = window.getComputedStyle(link);
    var decoration = style.textDecoration || style.textDecorationLine || '';
    if (decoration.indexOf('underline') !== -1 || parseFloat(style.borderBottomWidth) > 0) { return; }
    seen.add(selector);
    out.push(ctx.record(link, {details: {messageKey: 'WcagPartial.linkSemUnderline.message', messageParams: {}}}));
  });
});
return out;
""",
)

VIDEO_CAPTIONS = partial_rule(
    'video-sem-legendas', 'critical', 'A', '1.2.2', 'captions-prerecorded',
    'Detecta vídeos sem track de legendas',
    script="""
var out = [];
document.querySelectorAll('video').forEach(function (video) {
  if (video.querySelector('track[kind="captions"], track[kind="subtitles"]') === null) {
    out.push(ctx.record(video, {details: {messageKey: 'WcagPartial.videoSemLegendas.messageNativo', messageParams: {}}}));
  }
});
document.querySelectorAll('iframe').forEach(function (iframe) {
  var src = (iframe.getAttribute('src') || '').toLowerCase();
  var platform = null;
  if (src.indexOf('youtube.com') !== -1 || src.indexOf('youtu.be') !== -1) { platform = 'YouTube'; }
  else if (src.indexOf('vimeo.com') !== -1) { platform = 'Vimeo'; }
  else if (src.indexOf('dailymotion.com') !== -1) { platform = 'Dailymotion'; }
  else if (src.indexOf('wistia.com') !== -1 || src.indexOf('wistia.net') !== -1) { platform = 'Wistia'; }
  if (platform) {
    out.push(ctx.record(iframe, {impact: 'serious', details: {
      messageKey: 'WcagPartial.videoSemLegendas.messageIframe', messageParams: {platform: platform}
    }}));
  }
});
return out;
""",
)

VIDEO_AUDIO_DESCRIPTION = partial_rule(
    'video-sem-audiodescricao', 'serious', 'AA', '1.2.5', 'audio-description-prerecorded',
    'Detecta vídeos sem track de audiodescrição',
    script="""
var out = [];
document.querySelectorAll('video').forEach(function (video) {
  if (video.querySelector('track[kind="descriptions"]') === null) {
    out.push(ctx.record(video, {details: {messageKey: 'WcagPartial.videoSemAudiodescricao.message', messageParams: {}}}));
  }
});
return out;
""",
)

SELECT_NAVIGATES = partial_rule(
    'select-onchange-navega', 'serious', 'A', '3.2.2', 'on-input',
    'Detecta select que navega automaticamente ao mudar seleção',
    params={'patterns': NAVIGATION_PATTERNS},
    script="""
var out = [];
document.querySelectorAll('select').forEach(function (select) {
  var onchange = (select.getAttribute('onchange') || '').toLowerCase();
  var navigates = params.patterns.some(function (p) { return onchange.indexOf(p.toLowerCase()) !== -1; });
  if (navigates) {
    out.push(ctx.record(select, {details: {messageKey: 'WcagPartial.selectOnchangeNavega.message', messageParams: {}}}));
  }
});
return out;
""",
)

PARTIAL_RULES = (
    INPUT_AUTOCOMPLETE,
    LINK_UNDERLINE,
    VIDEO_CAPTIONS,
    VIDEO_AUDIO_DESCRIPTION,
    SELECT_NAVIGATES,
)


def build_partial_registry() -> RuleRegistry:
    return RuleRegistry(PARTIAL_RULES)
