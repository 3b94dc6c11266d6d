"""
In-page rule framework.

A rule ships a self-contained JavaScript body to the browser and gets plain
records back ({selector, xpath, html, parentHtml, details, ...}). Python turns
those records into Findings. Nothing but JSON-serializable data crosses the
boundary.
"""
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from app.features.audit.schemas.finding import Finding
from app.platform.config import settings

logger = logging.getLogger(__name__)

# Helpers available to every rule body as `ctx.*`.
HELPERS_JS = r"""
function getSelector(el) {
  if (!el || el.nodeType !== 1) { return ''; }
  var parts = [];
  var node = el;
  while (node && node.nodeType === 1 && node !== document.documentElement) {
    if (node.id && /^[A-Za-z][\w-]*$/.test(node.id)) { parts.unshift('#' + node.id); break; }
    var part = node.tagName.toLowerCase();
    var classes = (typeof node.className === 'string' ? node.className : '')
      .trim().split(/\s+/).filter(Boolean).slice(0, 2);
    if (classes.length) { part += '.' + classes.map(function (c) { return CSS.escape(c); }).join('.'); }
    var parent = node.parentElement;
    if (parent) {
      var siblings = Array.prototype.filter.call(parent.children, function (c) { return c.tagName === node.tagName; });
      if (siblings.length > 1) {
        part += ':nth-child(' + (Array.prototype.indexOf.call(parent.children, node) + 1) + ')';
      }
    }
    parts.unshift(part);
    node = parent;
  }
  return parts.join(' > ');
}
function getXPath(el) {
  var parts = [];
  var node = el;
  while (node && node.nodeType === 1) {
    var index = 1;
    var sibling = node.previousElementSibling;
    while (sibling) { if (sibling.tagName === node.tagName) { index++; } sibling = sibling.previousElementSibling; }
    parts.unshift(node.tagName.toLowerCase() + '[' + index + ']');
    node = node.parentElement;
  }
  return '/' + parts.join('/');
}
function isVisible(el) {
  var style = window.getComputedStyle(el);
  if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') { return false; }
  var rect = el.getBoundingClientRect();
  return rect.width > 0 || rect.height > 0;
}
function text(el) {
  return ((el && (el.innerText || el.textContent)) || '').replace(/\s+/g, ' ').trim();
}
function record(el, extra) {
  var style = window.getComputedStyle(el);
  var parent = el.parentElement;
  var selector = getSelector(el);
  var rec = {
    selector: selector,
    fullPath: selector,
    xpath: getXPath(el),
    html: el.outerHTML.substring(0, 500),
    parentHtml: parent ? parent.outerHTML.substring(0, 500) : null,
    details: {
      tag: el.tagName.toLowerCase(),
      classList: typeof el.className === 'string' ? el.className : '',
      fontSize: parseFloat(style.fontSize) || null,
      display: style.display,
      visibility: style.visibility,
      ariaHidden: el.closest('[aria-hidden="true"]') !== null,
      text: text(el).substring(0, 300),
      surroundingText: parent ? text(parent).substring(0, 1000) : ''
    }
  };
  extra = extra || {};
  Object.keys(extra).forEach(function (key) {
    if (key === 'details') {
      Object.keys(extra.details).forEach(function (d) { rec.details[d] = extra.details[d]; });
    } else {
      rec[key] = extra[key];
    }
  });
  return rec;
}
function pageRecord(snippet, extra) {
  var rec = record(document.body, extra);
  rec.selector = 'body';
  rec.fullPath = 'body';
  rec.xpath = '/html/body';
  rec.html = snippet;
  rec.parentHtml = null;
  rec.details.pageTextLength = text(document.body).length;
  return rec;
}
function isBrazilianPage() {
  var lang = (document.documentElement.getAttribute('lang') || '').toLowerCase();
  var host = location.hostname.toLowerCase();
  return lang.indexOf('pt') !== -1 || /\.br$/.test(host) || host.indexOf('.com.br') !== -1;
}
function isGovHost(extra) {
  var host = location.hostname.toLowerCase();
  var suffixes = ['.gov.br', '.jus.br', '.leg.br', '.mp.br', '.def.br'].concat(extra || []);
  return suffixes.some(function (s) { return host.slice(-s.length) === s; });
}
"""

SCRIPT_TEMPLATE = """
var ctx = (function () {
%(helpers)s
  return {getSelector: getSelector, getXPath: getXPath, isVisible: isVisible, text: text,
          record: record, pageRecord: pageRecord, isBrazilianPage: isBrazilianPage, isGovHost: isGovHost};
})();
var params = %(params)s;
var records = (function (ctx, params) {
%(body)s
})(ctx, params);
return records || [];
"""


def wcag_tags_for(level: Optional[str], criteria: Iterable[str]) -> List[str]:
    """('AA', ['1.4.4']) -> ['wcag2aa', 'wcag144']"""
    tags = [f"wcag2{level.lower()}"] if level else []
    tags.extend(f"wcag{c.replace('.', '')}" for c in criteria)
    return tags


@dataclass(frozen=True)
class DomRule:
    """
    One in-page check. `script` is a JS function body that sees `ctx`
    (selector/xpath/record helpers) and `params`, and returns a list of
    records. Records may override impact, wcagLevel, wcagVersion, wcagCriteria,
    help, description and message.
    """
    id: str
    impact: str
    wcag_level: Optional[str]
    wcag_criteria: Tuple[str, ...]
    help: str
    description: str
    script: str
    wcag_version: str = "2.0"
    help_url: Optional[str] = None
    needs_review: bool = False
    params: Dict = field(default_factory=dict)
    post_process: Optional[Callable[[dict], Optional[dict]]] = None

    def build_script(self) -> str:
        return SCRIPT_TEMPLATE % {
            'helpers': HELPERS_JS,
            'params': json.dumps(self.params),
            'body': self.script,
        }

    def to_finding(self, record: dict, page_url: Optional[str] = None) -> Finding:
        criteria = list(record.get('wcagCriteria') or self.wcag_criteria)
        level = record.get('wcagLevel') or self.wcag_level
        return Finding(
            rule_id=self.id,
            is_custom_rule=True,
            impact=record.get('impact') or self.impact,
            wcag_level=level,
            wcag_version=record.get('wcagVersion') or self.wcag_version,
            wcag_criteria=criteria,
            wcag_tags=wcag_tags_for(level, criteria),
            help=record.get('help') or self.help,
            description=record.get('description') or self.description,
            help_url=record.get('helpUrl') or self.help_url,
            selector=record.get('selector') or '',
            full_path=record.get('fullPath') or record.get('selector'),
            xpath=record.get('xpath'),
            html=(record.get('html') or '')[:500],
            parent_html=record.get('parentHtml'),
            failure_summary=record.get('message'),
            page_url=page_url,
            details=record.get('details') or {},
            needs_review=self.needs_review,
            fingerprint=self.id,
        )

    def evaluate(self, driver, page_url: Optional[str] = None) -> List[Finding]:
        records = driver.execute_script(self.build_script()) or []
        findings = []
        for record in records:
            if self.post_process is not None:
                record = self.post_process(record)
                if record is None:
                    continue
            findings.append(self.to_finding(record, page_url))
        return findings


class RuleRegistry:
    """Ordered, id-keyed collection of rules run uniformly by the pipeline."""

    def __init__(self, rules: Iterable[DomRule] = ()):
        self._rules: Dict[str, DomRule] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: DomRule) -> None:
        if rule.id in self._rules:
            raise ValueError(f"Rule '{rule.id}' is already registered")
        self._rules[rule.id] = rule

    def unregister(self, rule_id: str) -> None:
        self._rules.pop(rule_id, None)

    def get(self, rule_id: str) -> Optional[DomRule]:
        return self._rules.get(rule_id)

    def ids(self) -> List[str]:
        return list(self._rules)

    def __iter__(self) -> Iterator[DomRule]:
        return iter(list(self._rules.values()))

    def __len__(self) -> int:
        return len(self._rules)


def run_rule_safely(driver, rule: DomRule, page_url: Optional[str] = None) -> List[Finding]:
    """A failing rule contributes zero findings; it never fails the page."""
    try:
        return rule.evaluate(driver, page_url)
    except Exception as e:
        logger.warning(f"Rule {rule.id} failed on {page_url}: {e}")
        return []


def run_rules(
    driver,
    rules: Iterable[DomRule],
    page_url: Optional[str] = None,
    max_workers: int = None,
) -> List[Finding]:
    """
    Run independent read-only rules concurrently and join them in
    registration order. chromedriver serializes commands per session, so
    the pool overlaps the Python side and the HTTP round trips only.
    """
    rules = list(rules)
    if not rules:
        return []
    max_workers = max_workers or settings.CUSTOM_RULE_WORKERS

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='dom-rule') as pool:
        futures = [pool.submit(run_rule_safely, driver, rule, page_url) for rule in rules]
        findings: List[Finding] = []
        for future in futures:
            findings.extend(future.result())
    return findings
