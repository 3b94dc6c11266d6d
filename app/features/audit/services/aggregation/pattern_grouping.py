"""
Pattern grouping.

Collapses selectors that only differ by position or generated ids, so that
the same violation repeated by a template or component counts as one
pattern:

    .card:nth-child(1) > img
    .card:nth-child(2) > img      ->  .card > img  (1 pattern, 3 occurrences)
    .card:nth-child(3) > img
"""
import re
from collections import OrderedDict
from typing import Any, Dict, Iterable, List

SELECTOR_RULES = (
    (re.compile(r':nth-(?:last-)?(?:child|of-type)\(\d+\)'), ''),
    (re.compile(r':(?:first|last)-(?:child|of-type)'), ''),
    (re.compile(r'#([\w-]+)-\d+'), r'#\1-*'),
    (re.compile(r'#([\w-]+)_\d+'), r'#\1_*'),
    (re.compile(r'#\d+'), '#*'),
    (re.compile(r'\.([\w-]+)-\d+'), r'.\1-*'),
    (re.compile(r'\.([\w-]+)_\d+'), r'.\1_*'),
    (re.compile(r'\.([\w-]+)-[a-f0-9]{6,}', re.I), r'.\1-*'),
    (re.compile(r'\[([^\]=]+)="?\d+"?\]'), r'[\1]'),
    (re.compile(r'\[([^\]=]+)="[^"]*\d+[^"]*"\]'), r'[\1]'),
)

XPATH_RULES = (
    (re.compile(r'\[\d+\]'), ''),
    (re.compile(r"\[@([^\]=]+)='?\d+'?\]"), r'[@\1]'),
    (re.compile(r"@id='[^']*\d+[^']*'"), "@id='*'"),
    (re.compile(r"contains\(@class,\s*'[^']*\d+[^']*'\)"), "contains(@class,'*')"),
)

WHITESPACE_RE = re.compile(r'\s+')
LEADING_CHILD_RE = re.compile(r'^(?:\s*>\s*)+')
TRAILING_CHILD_RE = re.compile(r'(?:\s*>\s*)+$')

SEVERITIES = ('critical', 'serious', 'moderate', 'minor')


def _apply_until_stable(value: str, rules) -> str:
    """Rerun the rules until nothing changes; `.a-1-2` needs two passes."""
    previous = None
    while value != previous:
        previous = value
        for pattern, replacement in rules:
            value = pattern.sub(replacement, value)
    return value


def normalize_selector(selector: str) -> str:
    if not selector:
        return ''
    selector = _apply_until_stable(selector, SELECTOR_RULES)
    selector = WHITESPACE_RE.sub(' ', selector).strip()
    selector = LEADING_CHILD_RE.sub('', selector)
    return TRAILING_CHILD_RE.sub('', selector)


def normalize_xpath(xpath: str) -> str:
    if not xpath:
        return ''
    xpath = _apply_until_stable(xpath, XPATH_RULES)
    return WHITESPACE_RE.sub(' ', xpath).strip()


def _value(element: Any, *names: str):
    """First non-empty attribute/key among names; elements may be dicts or models."""
    for name in names:
        value = element.get(name) if isinstance(element, dict) else getattr(element, name, None)
        if value:
            return value
    return None


def group_by_pattern(elements: Iterable[Any], use_xpath: bool = False) -> Dict[str, List[str]]:
    """Normalized pattern -> original paths, in first-seen order."""
    groups: Dict[str, List[str]] = OrderedDict()
    for element in elements:
        if use_xpath:
            original = _value(element, 'xPath', 'xpath')
            normalized = normalize_xpath(original) if original else ''
        else:
            original = _value(element, 'fullPath', 'full_path', 'selector')
            normalized = normalize_selector(original) if original else ''
        if not normalized:
            continue
        groups.setdefault(normalized, []).append(original)
    return groups


def count_unique_patterns(elements: Iterable[Any], use_xpath: bool = False) -> int:
    return len(group_by_pattern(elements, use_xpath))


def get_pattern_groups(elements: Iterable[Any], use_xpath: bool = False) -> List[Dict[str, Any]]:
    groups = [
        {'pattern': pattern, 'occurrences': len(originals), 'examples': originals[:3]}
        for pattern, originals in group_by_pattern(elements, use_xpath).items()
    ]
    return sorted(groups, key=lambda g: g['occurrences'], reverse=True)


def calculate_pattern_stats(elements: Iterable[Any], use_xpath: bool = False) -> Dict[str, Any]:
    """templateRatio is the share of occurrences that belong to a repeated pattern."""
    groups = get_pattern_groups(elements, use_xpath)
    total = sum(g['occurrences'] for g in groups)
    templated = sum(g['occurrences'] for g in groups if g['occurrences'] > 1)
    return {
        'totalOccurrences': total,
        'uniquePatterns': len(groups),
        'byPattern': groups,
        'templateRatio': templated / total if total else 0,
    }


def calculate_severity_pattern_summary(violations: Iterable[Any], use_xpath: bool = False) -> Dict[str, Dict[str, int]]:
    """Unique element and pattern counts per severity, plus totals."""
    by_severity: Dict[str, List[Any]] = {s: [] for s in SEVERITIES}
    summary = {s: {'occurrences': 0, 'patterns': 0} for s in (*SEVERITIES, 'total')}

    for violation in violations:
        impact = _value(violation, 'impact') or 'minor'
        elements = list(_value(violation, 'unique_elements', 'uniqueElements') or [])
        by_severity[impact].extend(elements)
        summary[impact]['occurrences'] += len(elements)

    for severity in SEVERITIES:
        summary[severity]['patterns'] = count_unique_patterns(by_severity[severity], use_xpath)

    summary['total']['occurrences'] = sum(summary[s]['occurrences'] for s in SEVERITIES)
    summary['total']['patterns'] = sum(summary[s]['patterns'] for s in SEVERITIES)
    return summary
