"""
Health score for a whole audit.

The current model estimates passed and failed rules per severity and weighs
a failed rule twice as heavily as a passed one:

    score = weighted_passed / (weighted_passed + weighted_failed) * 100

Failed rules are counted from unique selector patterns when the summary
has them, since fixing one template fixes every instance. The linear
penalty formula is kept for audits that were scored with it.
"""
import math
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from app.features.audit.schemas.audit import Audit, AuditSummary

SEVERITIES = ('critical', 'serious', 'moderate', 'minor')

SEVERITY_WEIGHTS = {'critical': 10, 'serious': 7, 'moderate': 3, 'minor': 1}
PASS_WEIGHTS = {'critical': 10, 'serious': 7, 'moderate': 3, 'minor': 1}
FAIL_WEIGHTS = {'critical': 20, 'serious': 14, 'moderate': 6, 'minor': 2}

TOTAL_RULES_ESTIMATE = 100
# Share of passed rules assigned to critical, serious and moderate; minor takes the rest.
DEFAULT_PASSED_SPLIT = (0.3, 0.4, 0.2)

WCAG_CRITERIA_COUNTS = {'A': 25, 'AA': 13, 'AAA': 10}
PRINCIPLES = {'1': 'perceivable', '2': 'operable', '3': 'understandable', '4': 'robust'}
PRINCIPLE_RE = re.compile(r'^(\d)\.')


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class ScoreData:
    score: int
    passed_rules: Dict[str, int]
    failed_rules: Dict[str, int]
    score_impact: Dict[str, int] = field(default_factory=dict)
    weighted_passed: int = 0
    weighted_failed: int = 0


def _counts(source) -> Dict[str, int]:
    if isinstance(source, Mapping):
        return {s: int(source.get(s, 0) or 0) for s in SEVERITIES}
    return {s: int(getattr(source, s, 0) or 0) for s in SEVERITIES}


def calculate_weighted_penalty(summary) -> int:
    counts = _counts(summary)
    return sum(counts[s] * SEVERITY_WEIGHTS[s] for s in SEVERITIES)


def calculate_accessibility_score(passed, failed) -> ScoreData:
    passed, failed = _counts(passed), _counts(failed)
    weighted_passed = sum(passed[s] * PASS_WEIGHTS[s] for s in SEVERITIES)
    weighted_failed = sum(failed[s] * FAIL_WEIGHTS[s] for s in SEVERITIES)
    total = weighted_passed + weighted_failed
    return ScoreData(
        score=round_half_up(weighted_passed / total * 100) if total > 0 else 100,
        passed_rules=passed,
        failed_rules=failed,
        score_impact={s: -(failed[s] * FAIL_WEIGHTS[s]) if failed[s] > 0 else 0 for s in SEVERITIES},
        weighted_passed=weighted_passed,
        weighted_failed=weighted_failed,
    )


def calculate_rules_from_audit(total_rules_run: int, failed_by_impact, split=DEFAULT_PASSED_SPLIT):
    """
    Estimate passed rules from the failed ones. The engine only reports
    violations, so passed rules are the remainder of total_rules_run spread
    over the severities by `split`.
    """
    failed = _counts(failed_by_impact)
    total_passed = max(0, total_rules_run - sum(failed.values()))
    critical_share, serious_share, moderate_share = split
    passed = {
        'critical': round_half_up(total_passed * critical_share),
        'serious': round_half_up(total_passed * serious_share),
        'moderate': round_half_up(total_passed * moderate_share),
        'minor': max(0, total_passed - round_half_up(
            total_passed * (critical_share + serious_share + moderate_share))),
    }
    return passed, failed


def calculate_health_score(summary: Optional[AuditSummary], total_rules: int = TOTAL_RULES_ESTIMATE) -> int:
    if summary is None or not summary.total:
        return 100

    source = summary.patterns if summary.patterns is not None else summary
    passed, failed = calculate_rules_from_audit(total_rules, source)
    score = calculate_accessibility_score(passed, failed).score
    # there is always something left to fix
    return min(score, 99)


def calculate_health_score_legacy(summary: Optional[AuditSummary]) -> int:
    if summary is None or not summary.total:
        return 100
    max_penalty = summary.total * SEVERITY_WEIGHTS['critical']
    penalty = calculate_weighted_penalty(summary)
    return round_half_up(max(0.0, 100 - penalty / max_penalty * 100))


def resolve_health_score(audit: Audit) -> int:
    """Stored scores win; historical audits are never rescored."""
    if audit.health_score is not None:
        return audit.health_score
    return calculate_health_score(audit.summary)


def get_health_label(score: float) -> str:
    if score >= 90:
        return 'Excelente'
    if score >= 70:
        return 'Bom'
    if score >= 50:
        return 'Regular'
    return 'Critico'


def get_guidance(summary: Optional[AuditSummary]) -> Dict[str, object]:
    """What to fix first, as a message key for the caller to render."""
    if summary is None or not summary.total:
        return {'title_key': 'guidance.success', 'priority': 'success', 'count': 0}
    for severity in SEVERITIES[:-1]:
        count = getattr(summary, severity)
        if count > 0:
            return {'title_key': f'guidance.{severity}', 'priority': severity, 'count': count}
    return {'title_key': 'guidance.minor', 'priority': 'minor', 'count': summary.minor}


def calculate_wcag_principle_breakdown(violations: Iterable) -> Dict[str, int]:
    """Distinct affected criteria per POUR principle."""
    breakdown = {name: 0 for name in PRINCIPLES.values()}
    counted = set()
    for violation in violations:
        for criterion in violation.wcag_criteria or []:
            if criterion in counted:
                continue
            counted.add(criterion)
            match = PRINCIPLE_RE.match(criterion)
            if match and match.group(1) in PRINCIPLES:
                breakdown[PRINCIPLES[match.group(1)]] += 1
    return breakdown


def calculate_wcag_conformance(violations, wcag_levels: Iterable[str]) -> Dict[str, object]:
    violations = list(violations)
    levels = [lvl.upper() for lvl in wcag_levels if lvl.upper() in WCAG_CRITERIA_COUNTS]
    by_principle = calculate_wcag_principle_breakdown(violations)
    if not levels:
        return {
            'conformance_percent': 100,
            'affected_criteria': 0,
            'total_criteria': 0,
            'by_principle': by_principle,
        }

    affected = {c for v in violations for c in (v.wcag_criteria or [])}
    total = sum(WCAG_CRITERIA_COUNTS[lvl] for lvl in levels)
    return {
        'conformance_percent': round_half_up((total - len(affected)) / total * 100),
        'affected_criteria': len(affected),
        'total_criteria': total,
        'by_principle': by_principle,
    }


def build_report(audit: Audit, violations) -> Dict[str, object]:
    """Reader-facing verdict for a finished audit."""
    score = resolve_health_score(audit)
    return {
        'health_score': score,
        'health_label': get_health_label(score),
        'guidance': get_guidance(audit.summary),
        'conformance': calculate_wcag_conformance(violations, audit.wcag_levels),
    }
