import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List, Optional

from selenium.common.exceptions import WebDriverException

from app.features.audit.schemas.finding import Finding
from app.platform.config import settings
from app.platform.exceptions import RuleEngineError

logger = logging.getLogger(__name__)

LEVEL_TAGS = {
    'A': ('wcag2a', 'wcag21a', 'wcag22a'),
    'AA': ('wcag2aa', 'wcag21aa', 'wcag22aa'),
    'AAA': ('wcag2aaa', 'wcag21aaa'),
}

CRITERION_TAG_RE = re.compile(r'^wcag(\d)(\d)(\d+)$')

RUN_SCRIPT = """
var done = arguments[arguments.length - 1];
axe.run(document, {runOnly: {type: 'tag', values: arguments[0]}, resultTypes: ['violations']})
  .then(function (results) { done({violations: results.violations}); })
  .catch(function (err) { done({error: String(err && err.message || err)}); });
"""

PATHS_SCRIPT = r"""
function fullPath(el) {
  var parts = [];
  var node = el;
  while (node && node !== document.documentElement) {
    if (node.id) { parts.unshift('#' + node.id); break; }
    var part = node.tagName.toLowerCase();
    var classes = Array.prototype.slice.call(node.classList, 0, 3).join('.');
    if (classes) { part += '.' + classes; }
    parts.unshift(part);
    node = node.parentElement;
  }
  return parts.join(' > ');
}
function xpath(el) {
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
return arguments[0].map(function (selector) {
  try {
    var el = document.querySelector(selector);
    if (!el) { return null; }
    var style = window.getComputedStyle(el);
    var parent = el.parentElement;
    return {
      fullPath: fullPath(el),
      xpath: xpath(el),
      parentHtml: parent ? parent.outerHTML.substring(0, 500) : null,
      details: {
        tag: el.tagName.toLowerCase(),
        classList: typeof el.className === 'string' ? el.className : '',
        fontSize: parseFloat(style.fontSize) || null,
        display: style.display,
        visibility: style.visibility,
        ariaHidden: el.closest('[aria-hidden="true"]') !== null,
        text: ((el.innerText || el.textContent) || '').replace(/\s+/g, ' ').trim().substring(0, 300),
        surroundingText: parent ? (parent.textContent || '').replace(/\s+/g, ' ').trim().substring(0, 1000) : ''
      }
    };
  } catch (e) {
    return null;
  }
});
"""


def build_wcag_tags(levels: Iterable[str]) -> List[str]:
    """Tags passed to axe runOnly for the requested conformance levels."""
    tags = ['best-practice']
    for level in levels:
        tags.extend(LEVEL_TAGS.get(level.upper(), ()))
    return tags


def extract_wcag_level(tags: Iterable[str]) -> Optional[str]:
    tags = list(tags)
    if any('aaa' in t for t in tags):
        return 'AAA'
    if any('aa' in t for t in tags):
        return 'AA'
    if any(t in ('wcag2a', 'wcag21a', 'wcag22a') for t in tags):
        return 'A'
    return None


def extract_wcag_version(tags: Iterable[str]) -> Optional[str]:
    tags = list(tags)
    if any('wcag22' in t for t in tags):
        return '2.2'
    if any('wcag21' in t for t in tags):
        return '2.1'
    if any('wcag2' in t for t in tags):
        return '2.0'
    return None


def extract_wcag_criteria(tags: Iterable[str]) -> List[str]:
    """wcag111 -> 1.1.1, wcag1410 -> 1.4.10; order kept, duplicates dropped."""
    criteria = []
    for tag in tags:
        match = CRITERION_TAG_RE.match(tag)
        if match:
            criterion = '.'.join(match.groups())
            if criterion not in criteria:
                criteria.append(criterion)
    return criteria


def node_selector(target) -> str:
    """First axe target; shadow DOM targets are nested lists."""
    if not target:
        return ''
    first = target[0]
    if isinstance(first, list):
        return ' '.join(first)
    return str(first)


@lru_cache(maxsize=4)
def load_axe_source(path: str) -> str:
    try:
        return Path(path).read_text(encoding='utf-8')
    except OSError as e:
        raise RuleEngineError(f"axe-core script not readable at {path}: {e}")


class AxeEngine:
    """Runs axe-core in the current page. Treated as a black box."""

    def __init__(self, script_path: str = None):
        self.script_path = script_path or settings.AXE_SCRIPT_PATH

    def run(self, driver, wcag_levels: Iterable[str]) -> List[dict]:
        source = load_axe_source(str(self.script_path))
        tags = build_wcag_tags(wcag_levels)
        try:
            driver.execute_script(source)
            result = driver.execute_async_script(RUN_SCRIPT, tags)
        except WebDriverException as e:
            raise RuleEngineError(f"axe-core failed: {e.msg or e}")

        if not isinstance(result, dict) or 'error' in result:
            error = result.get('error') if isinstance(result, dict) else result
            raise RuleEngineError(f"axe-core failed: {error}")

        violations = result.get('violations') or []
        logger.info(f"axe-core found {len(violations)} violation types with tags {', '.join(tags)}")
        return violations

    @staticmethod
    def _element_info(driver, selectors: List[str]) -> List[dict]:
        """fullPath, xpath, parentHtml and details per selector, computed in-page."""
        if not selectors:
            return []
        try:
            infos = driver.execute_script(PATHS_SCRIPT, selectors) or []
        except WebDriverException as e:
            logger.warning(f"Could not resolve axe node elements: {e}")
            infos = []
        if len(infos) != len(selectors):
            return [{} for _ in selectors]
        return [info or {} for info in infos]

    def audit(self, driver, wcag_levels: Iterable[str], page_url: Optional[str] = None) -> List[Finding]:
        """One Finding per violating node."""
        violations = self.run(driver, wcag_levels)

        nodes = [(v, n) for v in violations for n in v.get('nodes') or []]
        selectors = [node_selector(n.get('target')) for _, n in nodes]
        infos = self._element_info(driver, selectors)

        findings = []
        for (violation, node), selector, info in zip(nodes, selectors, infos):
            tags = violation.get('tags') or []
            findings.append(Finding(
                rule_id=violation['id'],
                is_custom_rule=False,
                impact=violation.get('impact') or 'moderate',
                wcag_level=extract_wcag_level(tags),
                wcag_version=extract_wcag_version(tags),
                wcag_criteria=extract_wcag_criteria(tags),
                wcag_tags=list(tags),
                help=violation.get('help') or '',
                description=violation.get('description') or '',
                help_url=violation.get('helpUrl'),
                selector=selector,
                full_path=info.get('fullPath'),
                xpath=info.get('xpath'),
                html=(node.get('html') or '')[:500],
                parent_html=info.get('parentHtml'),
                failure_summary=node.get('failureSummary'),
                page_url=page_url,
                details=info.get('details') or {},
                fingerprint=violation['id'],
            ))
        return findings
