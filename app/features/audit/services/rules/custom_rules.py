"""
Brazilian accessibility rules (ABNT / eMAG / gov.br conventions) that axe-core
does not cover. Each rule is a DomRule; the registry is built once and run by
the page auditor.
"""
from app.features.audit.services.rules.dom_rule import DomRule, RuleRegistry

UNDERSTANDING_URL = 'https://www.w3.org/WAI/WCAG21/Understanding/{}.html'
EMAG_URL = 'https://emag.governoeletronico.gov.br/'

GENERIC_LINK_TEXTS = [
    'clique aqui', 'clique', 'aqui', 'saiba mais', 'leia mais', 'veja mais', 'mais',
    'continue lendo', 'click here', 'read more', 'learn more', 'more', 'link',
]

AMBIGUOUS_LABELS = ['x', '>', '<', '+', '-', '...', '•', '→', '←', '↑', '↓', 'ok', 'ir']

SKIP_LINK_PATTERNS = [
    'pular para', 'ir para', 'skip to', 'jump to', 'go to content',
    'ir ao conteudo', 'pular navegacao', 'skip navigation',
]

LINK_GENERIC_TEXT = DomRule(
    id='link-texto-generico',
    impact='serious',
    wcag_level='A',
    wcag_criteria=('2.4.4',),
    help='Links devem ter texto descritivo',
    description='Links com texto genérico como "clique aqui" não informam ao usuário para onde o link leva.',
    help_url=UNDERSTANDING_URL.format('link-purpose-in-context'),
    params={'texts': GENERIC_LINK_TEXTS},
    script="""
var out = [];
document.querySelectorAll('a').forEach(function (link) {
  var label = (link.textContent || '').trim().toLowerCase();
  if (params.texts.indexOf(label) !== -1) {
    out.push(ctx.record(link, {message: 'Link usa texto genérico: "' + label + '"'}));
  }
});
return out;
""",
)

LINK_NEW_TAB = DomRule(
    id='link-nova-aba-sem-aviso',
    impact='moderate',
    wcag_level='AA',
    wcag_version='2.1',
    wcag_criteria=('3.2.5',),
    help='Links que abrem nova aba devem avisar o usuário',
    description='Usuários de leitores de tela podem se confundir quando uma nova aba abre sem aviso.',
    help_url=UNDERSTANDING_URL.format('change-on-request'),
    script="""
var markers = ['nova aba', 'nova janela', 'new tab', 'new window', '(external)', '(externo)'];
var out = [];
document.querySelectorAll('a[target="_blank"]').forEach(function (link) {
  var label = (link.textContent || '').toLowerCase();
  var aria = (link.getAttribute('aria-label') || '').toLowerCase();
  var title = (link.getAttribute('title') || '').toLowerCase();
  var warned = markers.some(function (m) { return label.indexOf(m) !== -1; }) ||
    aria.indexOf('nova aba') !== -1 || aria.indexOf('nova janela') !== -1 ||
    title.indexOf('nova aba') !== -1 || title.indexOf('nova janela') !== -1 ||
    link.querySelector('[aria-hidden="true"]') !== null;
  if (!warned) {
    out.push(ctx.record(link, {
      message: 'Link abre nova aba sem indicação visual ou textual',
      details: {
        hasExternalIcon: link.querySelector('svg, i, [class*="icon"], [class*="external"]') !== null,
        srOnlyText: Array.prototype.map.call(
          link.querySelectorAll('.sr-only, .visually-hidden, .screen-reader-text'),
          function (s) { return (s.textContent || '').trim(); }
        ).join(' ')
      }
    }));
  }
});
return out;
""",
)

IMAGE_ALT_FILENAME = DomRule(
    id='imagem-alt-nome-arquivo',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('1.1.1',),
    help='Alt text deve descrever a imagem, não ser nome de arquivo',
    description='O texto alternativo da imagem parece ser um nome de arquivo em vez de uma descrição útil.',
    help_url=UNDERSTANDING_URL.format('non-text-content'),
    script="""
var filename = /\\.(jpg|jpeg|png|gif|webp|svg|bmp|ico)$/i;
var generic = /^(img|image|foto|photo|picture|banner|icon|logo)[-_]?\\d*$/i;
var underscored = /^[a-z0-9]+(_[a-z0-9]+)+$/i;
var out = [];
document.querySelectorAll('img[alt]').forEach(function (img) {
  var alt = img.getAttribute('alt') || '';
  if (filename.test(alt) || generic.test(alt) || (underscored.test(alt) && alt.length > 10)) {
    out.push(ctx.record(img, {
      message: 'Alt text parece ser nome de arquivo: "' + alt + '"',
      details: {alt: alt}
    }));
  }
});
return out;
""",
)

JUSTIFIED_TEXT = DomRule(
    id='texto-justificado',
    impact='minor',
    wcag_level='AAA',
    wcag_criteria=('1.4.8',),
    help='Evite texto justificado',
    description='Texto justificado pode criar espaços irregulares que dificultam a leitura para pessoas com dislexia.',
    help_url=UNDERSTANDING_URL.format('visual-presentation'),
    script="""
var out = [];
document.querySelectorAll('p, div, span, li, td, th').forEach(function (el) {
  if (window.getComputedStyle(el).textAlign === 'justify' && (el.textContent || '').length > 50) {
    out.push(ctx.record(el, {message: 'Elemento usa text-align: justify'}));
  }
});
return out;
""",
)

UPPERCASE_TEXT = DomRule(
    id='texto-maiusculo-css',
    impact='minor',
    wcag_level='AAA',
    wcag_criteria=('1.4.8',),
    help='Evite blocos de texto em maiúsculas',
    description='Texto longo em maiúsculas é mais difícil de ler para pessoas com dislexia.',
    help_url=UNDERSTANDING_URL.format('visual-presentation'),
    script="""
var skipped = ['BUTTON', 'INPUT', 'A'];
var out = [];
document.querySelectorAll('body *').forEach(function (el) {
  if (skipped.indexOf(el.tagName) !== -1) { return; }
  if (window.getComputedStyle(el).textTransform === 'uppercase' && (el.textContent || '').length > 20) {
    out.push(ctx.record(el, {message: 'Texto com text-transform: uppercase (mais de 20 caracteres)'}));
  }
});
return out;
""",
)

EXCESSIVE_BR = DomRule(
    id='br-excessivo-layout',
    impact='minor',
    wcag_level='A',
    wcag_criteria=('1.3.1',),
    help='Não use <br> múltiplos para espaçamento',
    description='Use CSS (margin, padding) para espaçamento em vez de múltiplas tags <br>.',
    help_url=UNDERSTANDING_URL.format('info-and-relationships'),
    script="""
var seen = new Set();
var out = [];
document.querySelectorAll('br').forEach(function (br) {
  var count = 1;
  var node = br;
  while ((node = node.nextElementSibling) && node.tagName === 'BR') { count++; }
  if (count >= 3 && br.parentElement && !seen.has(br.parentElement)) {
    seen.add(br.parentElement);
    out.push(ctx.record(br, {message: count + ' tags <br> consecutivas encontradas', details: {count: count}}));
  }
});
return out;
""",
)

REDUNDANT_TITLE = DomRule(
    id='atributo-title-redundante',
    impact='minor',
    wcag_level='A',
    wcag_criteria=('4.1.2',),
    help='Atributo title não deve duplicar conteúdo existente',
    description='O atributo title repete informação já disponível, causando redundância para leitores de tela.',
    help_url=UNDERSTANDING_URL.format('name-role-value'),
    script="""
var out = [];
document.querySelectorAll('[title]').forEach(function (el) {
  var title = (el.getAttribute('title') || '').trim().toLowerCase();
  if (!title) { return; }
  var label = (el.textContent || '').trim().toLowerCase();
  var alt = (el.getAttribute('alt') || '').trim().toLowerCase();
  var aria = (el.getAttribute('aria-label') || '').trim().toLowerCase();
  if (title === label || title === alt || title === aria) {
    out.push(ctx.record(el, {message: 'Atributo title "' + title + '" duplica texto/alt/aria-label'}));
  }
});
return out;
""",
)

AMBIGUOUS_LABEL = DomRule(
    id='rotulo-curto-ambiguo',
    impact='serious',
    wcag_level='A',
    wcag_version='2.1',
    wcag_criteria=('2.4.4', '2.5.3'),
    help='Botões e links precisam de rótulos descritivos',
    description='Rótulos de um único caractere ou muito curtos não comunicam a função do elemento.',
    help_url=UNDERSTANDING_URL.format('link-purpose-in-context'),
    params={'labels': AMBIGUOUS_LABELS},
    script="""
var out = [];
document.querySelectorAll('button, a, [role="button"], [role="link"]').forEach(function (el) {
  var label = (el.textContent || '').trim().toLowerCase();
  if (params.labels.indexOf(label) === -1) { return; }
  var aria = el.getAttribute('aria-label');
  if (!aria) {
    out.push(ctx.record(el, {message: 'Rótulo ambíguo: "' + label + '"', details: {ariaLabel: aria || ''}}));
  }
});
return out;
""",
)

LOREM_IPSUM = DomRule(
    id='conteudo-lorem-ipsum',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('1.1.1',),
    help='Remova texto placeholder antes de publicar',
    description='Conteúdo "Lorem ipsum" indica texto placeholder que não foi substituído por conteúdo real.',
    script="""
var body = (document.body.textContent || '').toLowerCase();
if (body.indexOf('lorem ipsum') === -1) { return []; }
return [ctx.pageRecord('<body>... lorem ipsum ...</body>', {message: 'Página contém texto "Lorem ipsum"'})];
""",
)

SMALL_FONT = DomRule(
    id='fonte-muito-pequena',
    impact='minor',
    wcag_level='AA',
    wcag_criteria=('1.4.4',),
    help='Tamanho de fonte deve ser pelo menos 12px',
    description='Texto muito pequeno é difícil de ler para pessoas com baixa visão.',
    help_url=UNDERSTANDING_URL.format('resize-text'),
    script="""
var seen = new Set();
var out = [];
document.querySelectorAll('p, span, a, li, td, th, label').forEach(function (el) {
  var size = parseFloat(window.getComputedStyle(el).fontSize);
  if (!(size < 12) || (el.textContent || '').trim().length <= 10) { return; }
  var selector = ctx.getSelector(el);
  if (seen.has(selector)) { return; }
  seen.add(selector);
  out.push(ctx.record(el, {message: 'Fonte com ' + size + 'px (menor que 12px)'}));
});
return out;
""",
)

LIBRAS_PLUGIN = DomRule(
    id='brasil-libras-plugin',
    impact='moderate',
    wcag_level='AAA',
    wcag_criteria=('1.2.6',),
    help='Sites brasileiros devem considerar plugin de Libras',
    description='Para atender à comunidade surda brasileira, considere adicionar VLibras ou Hand Talk.',
    help_url='https://www.vlibras.gov.br/',
    script="""
if (!ctx.isBrazilianPage()) { return []; }
var vlibras = document.querySelector('script[src*="vlibras"], [vw], .vw-access') !== null;
var handtalk = document.querySelector('script[src*="handtalk"], [data-ht], .ht-button') !== null;
if (vlibras || handtalk) { return []; }
return [ctx.pageRecord('<body>... (sem plugin de Libras)</body>', {
  message: 'Nenhum plugin de Libras (VLibras/Hand Talk) detectado'
})];
""",
)

EMAG_SKIP_LINKS = DomRule(
    id='emag-skip-links',
    impact='serious',
    wcag_level='A',
    wcag_criteria=('2.4.1',),
    help='Forneça links para pular blocos de conteúdo',
    description='O eMAG recomenda links "Pular para conteúdo principal", "Pular para menu" no início da página.',
    help_url=EMAG_URL + 'cursodesenvolvedor/desenvolvimento-web/recomendacoes-marcacao.html',
    params={'patterns': SKIP_LINK_PATTERNS},
    script="""
var found = Array.prototype.some.call(document.querySelectorAll('a[href^="#"]'), function (link) {
  var label = (link.textContent || '').toLowerCase().trim();
  return params.patterns.some(function (p) { return label.indexOf(p) !== -1; });
});
if (found) { return []; }
return [ctx.pageRecord('<body>... (sem skip links)</body>', {
  message: 'Nenhum link "pular para conteúdo" encontrado'
})];
""",
)

EMAG_SHORTCUTS = DomRule(
    id='emag-atalhos-teclado',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('2.4.1',),
    help='Sites governamentais devem ter atalhos Alt+1, Alt+2, Alt+3',
    description='O eMAG recomenda atalhos de teclado padrão: Alt+1 (conteúdo), Alt+2 (menu), Alt+3 (busca).',
    help_url=EMAG_URL,
    script="""
if (!ctx.isGovHost()) { return []; }
if (document.querySelector('[accesskey="1"], [accesskey="2"], [accesskey="3"]') !== null) { return []; }
var body = document.body.textContent || '';
var mentions = ['Alt+1', 'Alt+2', 'Alt+3', 'atalhos de teclado', 'teclas de atalho'];
if (mentions.some(function (m) { return body.indexOf(m) !== -1; })) { return []; }
return [ctx.pageRecord('<body>... (sem atalhos de teclado)</body>', {
  message: 'Atalhos de teclado padrão do governo (Alt+1, Alt+2, Alt+3) não encontrados'
})];
""",
)

EMAG_ADJACENT_LINKS = DomRule(
    id='emag-links-adjacentes',
    impact='minor',
    wcag_level='A',
    wcag_criteria=('1.3.1',),
    help='Separe links adjacentes com mais que espaço em branco',
    description='Links adjacentes devem ser separados por caractere (|, •) ou estar em lista.',
    help_url=EMAG_URL,
    script="""
var seen = new Set();
var out = [];
document.querySelectorAll('nav, ul, ol, div, p').forEach(function (container) {
  var links = container.querySelectorAll(':scope > a, :scope > li > a');
  for (var i = 0; i < links.length - 1; i++) {
    var link = links[i];
    var next = links[i + 1];
    var separated = false;
    var node = link.nextSibling;
    while (node && node !== next && node !== next.parentElement) {
      if (node.nodeType === Node.ELEMENT_NODE || (node.nodeType === Node.TEXT_NODE && node.textContent.trim())) {
        separated = true;
        break;
      }
      node = node.nextSibling;
    }
    if (separated || link.nextElementSibling !== next) { continue; }
    var selector = ctx.getSelector(link);
    if (seen.has(selector)) { continue; }
    seen.add(selector);
    out.push(ctx.record(link, {message: 'Links adjacentes sem separação adequada'}));
  }
});
return out;
""",
)

EMAG_BREADCRUMB = DomRule(
    id='emag-breadcrumb',
    impact='minor',
    wcag_level='AAA',
    wcag_criteria=('2.4.8',),
    help='Forneça breadcrumb para orientar o usuário',
    description='O eMAG recomenda breadcrumb (migalha de pão) para informar a localização do usuário no site.',
    help_url=EMAG_URL,
    script="""
var depth = location.pathname.split('/').filter(Boolean).length;
if (depth < 2) { return []; }
var found = document.querySelector(
  '[aria-label*="breadcrumb" i], [aria-label*="migalha" i], [role="navigation"][aria-label*="trilha" i], ' +
  'nav.breadcrumb, .breadcrumb, .breadcrumbs, ol[class*="breadcrumb"], ul[class*="breadcrumb"]'
) !== null;
if (found) { return []; }
return [ctx.pageRecord('<body>... (sem breadcrumb)</body>', {
  message: 'Página com ' + depth + ' níveis de profundidade sem breadcrumb',
  details: {depth: depth}
})];
""",
)

EMAG_LAYOUT_TABLE = DomRule(
    id='emag-tabela-layout',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('1.3.1',),
    help='Não use tabelas para layout',
    description='Tabelas devem ser usadas apenas para dados tabulares. Use CSS para layout. '
                'Se for layout, adicione role="presentation".',
    help_url=EMAG_URL,
    script="""
var out = [];
document.querySelectorAll('table').forEach(function (table) {
  var role = table.getAttribute('role');
  if (table.querySelector('th, caption') !== null || role === 'grid' || role === 'table' ||
      role === 'presentation' || role === 'none' || table.hasAttribute('summary')) {
    return;
  }
  var cells = table.querySelectorAll('td');
  var firstRow = table.querySelector('tr');
  var rows = table.querySelectorAll('tr').length;
  var cols = firstRow ? firstRow.querySelectorAll('td').length : 0;
  if (rows > 1 && cols > 1 && cells.length > 4) {
    out.push(ctx.record(table, {message: 'Tabela sem cabeçalhos (th) pode estar sendo usada para layout'}));
  }
});
return out;
""",
)

EMAG_PDF = DomRule(
    id='emag-pdf-acessivel',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('1.1.1', '1.3.1'),
    help='Ofereça alternativas para documentos PDF',
    description='Links para PDF devem indicar o formato e tamanho, ou oferecer versão HTML acessível.',
    help_url=EMAG_URL,
    script="""
var out = [];
document.querySelectorAll('a[href$=".pdf"], a[href*=".pdf?"], a[href*=".pdf#"]').forEach(function (link) {
  var href = link.getAttribute('href') || '';
  var label = (link.textContent || '').toLowerCase();
  var aria = (link.getAttribute('aria-label') || '').toLowerCase();
  var title = (link.getAttribute('title') || '').toLowerCase();
  var parent = link.parentElement;
  var parentText = ((parent && parent.textContent) || '').toLowerCase();
  var formatInfo = label.indexOf('pdf') !== -1 || label.indexOf('mb)') !== -1 || label.indexOf('kb)') !== -1 ||
    aria.indexOf('pdf') !== -1 || title.indexOf('pdf') !== -1 || parentText.indexOf('(pdf') !== -1;
  var htmlAlternative = (parent && parent.querySelector('a[href$=".html"], a[href$=".htm"]') !== null) ||
    parentText.indexOf('versao html') !== -1 || parentText.indexOf('versão html') !== -1 ||
    parentText.indexOf('html version') !== -1;
  var accessible = label.indexOf('acessivel') !== -1 || label.indexOf('acessível') !== -1 ||
    aria.indexOf('acessivel') !== -1 || title.indexOf('acessivel') !== -1;
  if (!formatInfo && !htmlAlternative && !accessible) {
    out.push(ctx.record(link, {
      message: 'Link para PDF sem indicação de formato ou alternativa HTML: ' + href.substring(0, 100)
    }));
  }
});
return out;
""",
)

AUTOPLAY_MEDIA = DomRule(
    id='autoplay-video-audio',
    impact='serious',
    wcag_level='A',
    wcag_criteria=('1.4.2',),
    help='Mídia com autoplay deve ter controles para pausar',
    description='Mídia com autoplay deve permitir que o usuário pause ou pare a reprodução.',
    help_url=UNDERSTANDING_URL.format('audio-control'),
    script="""
var out = [];
document.querySelectorAll('video[autoplay]').forEach(function (video) {
  if (!video.hasAttribute('controls')) {
    out.push(ctx.record(video, {
      message: 'Vídeo com autoplay sem atributo controls' + (video.hasAttribute('muted') ? ' (muted)' : ' (com áudio)')
    }));
  }
});
document.querySelectorAll('audio[autoplay]').forEach(function (audio) {
  if (!audio.hasAttribute('controls')) {
    out.push(ctx.record(audio, {message: 'Áudio com autoplay sem atributo controls'}));
  }
});
document.querySelectorAll('iframe').forEach(function (iframe) {
  var src = (iframe.getAttribute('src') || '').toLowerCase();
  var autoplay = src.indexOf('autoplay=1') !== -1 || src.indexOf('autoplay=true') !== -1;
  if (!autoplay) { return; }
  var platform = null;
  if (src.indexOf('youtube.com') !== -1 || src.indexOf('youtu.be') !== -1) { platform = 'YouTube'; }
  else if (src.indexOf('vimeo.com') !== -1) { platform = 'Vimeo'; }
  if (platform) {
    out.push(ctx.record(iframe, {message: 'Iframe de ' + platform + ' com autoplay ativado', details: {platform: platform}}));
  }
});
var players = '.video-js, .vjs-tech, .plyr, [data-plyr], .jwplayer, [id^="jwplayer"], ' +
  '.mejs__container, .mejs-player, .flowplayer';
document.querySelectorAll(players).forEach(function (player) {
  var setup = player.getAttribute('data-setup') || '';
  var autoplay = player.getAttribute('data-autoplay') || setup.indexOf('"autoplay"') !== -1 ||
    player.classList.contains('vjs-playing');
  if (!autoplay) { return; }
  var pause = player.querySelector(
    '[class*="pause" i], [aria-label*="pause" i], [title*="pause" i], button[class*="play"], .vjs-play-control'
  );
  if (!pause || !ctx.isVisible(pause)) {
    out.push(ctx.record(player, {message: 'Player customizado com autoplay sem botão de pause visível'}));
  }
});
return out;
""",
)

CAROUSEL_CONTROLS = DomRule(
    id='carrossel-sem-controles',
    impact='moderate',
    wcag_level='A',
    wcag_criteria=('2.2.2',),
    help='Carrossel deve ter controles de navegação',
    description='Carrosséis devem ter botões anterior/próximo ou indicadores de slides para navegação.',
    help_url=UNDERSTANDING_URL.format('pause-stop-hide'),
    script="""
var carousels = [
  '.swiper', '.swiper-container', '.swiper-wrapper', '.slick-slider', '.slick-track', '.slick-list',
  '.owl-carousel', '.owl-stage', '.owl-stage-outer', '.flickity-slider', '.flickity-viewport',
  '.glide', '.glide__slides', '.glide__track', '.splide', '.splide__list', '.splide__track',
  '.carousel', '.carousel-inner', '[data-carousel]', '[data-slider]', '[data-slick]',
  '[data-flickity]', '[data-glide]', '[data-splide]', '.embla', '.embla__container', '.keen-slider',
  '[class*="carousel"]', '[class*="slider"]', '[class*="slideshow"]'
].join(', ');
var slideSelector = '.swiper-slide, .slick-slide, .owl-item, .flickity-cell, .glide__slide, ' +
  '.splide__slide, .carousel-item, [class*="slide"], [data-slide]';
var prevNext = '[class*="prev"], [class*="next"], [class*="arrow"], [aria-label*="anterior"], ' +
  '[aria-label*="próximo"], [aria-label*="previous"], [aria-label*="next"], .swiper-button-prev, ' +
  '.swiper-button-next, .slick-prev, .slick-next, .owl-prev, .owl-next, .flickity-prev-next-button, ' +
  '.glide__arrow, .splide__arrow';
var dots = '[class*="dot"], [class*="indicator"], [class*="pagination"], .swiper-pagination, .slick-dots, ' +
  '.owl-dots, .flickity-page-dots, .glide__bullets, .splide__pagination, [role="tablist"]';
var pause = '[class*="pause"], [class*="play"], [aria-label*="pause"], [aria-label*="pausar"], ' +
  '[aria-label*="parar"], [title*="pause"], [title*="pausar"]';
var seen = new Set();
var out = [];
document.querySelectorAll(carousels).forEach(function (carousel) {
  var selector = ctx.getSelector(carousel);
  if (seen.has(selector)) { return; }
  if (carousel.querySelectorAll(slideSelector).length <= 1 && carousel.children.length <= 1) { return; }
  seen.add(selector);
  var autoplay = carousel.hasAttribute('data-autoplay') || carousel.hasAttribute('data-auto-play') ||
    (carousel.getAttribute('data-options') || '').indexOf('autoplay') !== -1 ||
    (carousel.getAttribute('data-slick') || '').indexOf('autoPlay') !== -1 ||
    carousel.classList.contains('swiper-autoplay') ||
    carousel.querySelector('[data-swiper-autoplay]') !== null;
  var container = carousel.closest('[class*="carousel"], [class*="slider"], section, div') || carousel.parentElement;
  var has = function (sel) { return !!container && container.querySelector(sel) !== null; };
  if (autoplay && !has(pause)) {
    out.push(ctx.record(carousel, {
      impact: 'serious',
      help: 'Carrossel com autoplay deve ter botão de pause',
      description: 'Carrosséis com rotação automática devem ter controle para pausar/parar a animação.',
      message: 'Carrossel com autoplay sem botão de pause'
    }));
  } else if (!has(prevNext) && !has(dots)) {
    out.push(ctx.record(carousel, {message: 'Carrossel sem controles de navegação (prev/next ou indicadores)'}));
  }
});
return out;
""",
)

AUTO_REFRESH = DomRule(
    id='refresh-automatico',
    impact='serious',
    wcag_level='AA',
    wcag_criteria=('3.2.5',),
    help='Não use atualização ou redirecionamento automático',
    description='Páginas não devem atualizar ou redirecionar automaticamente via meta refresh.',
    help_url=UNDERSTANDING_URL.format('change-on-request'),
    script="""
var meta = document.querySelector('meta[http-equiv="refresh" i]');
if (!meta) { return []; }
var content = meta.getAttribute('content') || '';
var match = content.match(/^(\\d+)\\s*;?\\s*(url=.*)?$/i);
if (!match) { return []; }
var seconds = parseInt(match[1], 10);
var hasUrl = !!match[2];
var rec = ctx.record(meta, {details: {seconds: seconds, hasUrl: hasUrl}});
if (seconds === 0 && hasUrl) {
  rec.wcagVersion = '2.1';
  rec.help = 'Não use redirecionamento automático via meta refresh';
  rec.message = 'Redirecionamento automático via meta refresh: ' + content;
  return [rec];
}
if (seconds > 0) {
  rec.wcagCriteria = ['2.2.1', '3.2.5'];
  rec.helpUrl = 'https://www.w3.org/WAI/WCAG21/Understanding/timing-adjustable.html';
  rec.help = 'Não use atualização automática de página';
  rec.message = 'Página atualiza automaticamente após ' + seconds + ' segundos' + (hasUrl ? ' com redirecionamento' : '');
  return [rec];
}
return [];
""",
)

GOV_BR_ACCESSIBILITY_BAR = DomRule(
    id='barra-acessibilidade-gov-br',
    impact='moderate',
    wcag_level='AAA',
    wcag_criteria=('1.4.3', '1.4.4'),
    help='Sites governamentais devem ter barra de acessibilidade',
    description='O eMAG recomenda que sites governamentais brasileiros ofereçam controles de alto contraste '
                'e ajuste de tamanho de fonte.',
    help_url=EMAG_URL,
    script="""
if (!ctx.isGovHost(['.edu.br', '.mil.br'])) { return []; }
var bodyText = (document.body.textContent || '').toLowerCase();
var bodyHtml = document.body.innerHTML.toLowerCase();
var any = function (sel) { return document.querySelector(sel) !== null; };
var contrast = any('[class*="contrast" i], [id*="contrast" i], [aria-label*="contraste" i], [title*="contraste" i], ' +
  'a[href*="contrast"], button[onclick*="contrast"]') ||
  bodyText.indexOf('alto contraste') !== -1 || bodyText.indexOf('high contrast') !== -1;
var fontControls = any('[class*="font-size" i], [class*="fontSize" i], [aria-label*="aumentar" i], ' +
  '[aria-label*="diminuir" i], [title*="fonte" i]') ||
  bodyHtml.indexOf('>a+<') !== -1 || bodyHtml.indexOf('>a-<') !== -1 ||
  bodyText.indexOf('aumentar fonte') !== -1 || bodyText.indexOf('diminuir fonte') !== -1 ||
  bodyText.indexOf('tamanho da fonte') !== -1;
var bar = any('[class*="accessibility" i], [class*="acessibilidade" i], [id*="accessibility" i], ' +
  '[id*="acessibilidade" i], [role="toolbar"][aria-label*="acessibilidade" i], nav[aria-label*="acessibilidade" i]');
var dsGov = any('.br-header, .br-menu, [class*="dsgov"], [data-toggle="contrast"]');
if (contrast || fontControls || bar || dsGov) { return []; }
return [ctx.pageRecord('<body>... (sem barra de acessibilidade)</body>', {
  message: 'Site governamental sem barra de acessibilidade (alto contraste/ajuste de fonte)'
})];
""",
)

CUSTOM_RULES = (
    LINK_GENERIC_TEXT,
    LINK_NEW_TAB,
    IMAGE_ALT_FILENAME,
    JUSTIFIED_TEXT,
    UPPERCASE_TEXT,
    EXCESSIVE_BR,
    REDUNDANT_TITLE,
    AMBIGUOUS_LABEL,
    LOREM_IPSUM,
    SMALL_FONT,
    LIBRAS_PLUGIN,
    EMAG_SKIP_LINKS,
    EMAG_SHORTCUTS,
    EMAG_ADJACENT_LINKS,
    EMAG_BREADCRUMB,
    EMAG_LAYOUT_TABLE,
    EMAG_PDF,
    AUTOPLAY_MEDIA,
    CAROUSEL_CONTROLS,
    AUTO_REFRESH,
    GOV_BR_ACCESSIBILITY_BAR,
)


def build_custom_registry() -> RuleRegistry:
    return RuleRegistry(CUSTOM_RULES)
