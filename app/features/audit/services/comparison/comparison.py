from typing import Dict, Iterable, List, Optional

from app.features.audit.schemas.audit import AggregatedViolation, Audit
from app.features.audit.schemas.comparison import (
    ChangeAmount,
    ComparisonCounts,
    ComparisonDelta,
    ComparisonResult,
    ComparisonViolations,
    ViolationChangeDetail,
    ViolationSnapshot,
)
from app.features.audit.schemas.finding import IMPACT_ORDER
from app.features.audit.services.scoring.health import resolve_health_score

SIGNIFICANT_SCORE_DROP = -5
SIGNIFICANT_TOTAL_RISE = 10


def _snapshot(violation: Optional[AggregatedViolation]) -> Optional[ViolationSnapshot]:
    if violation is None:
        return None
    return ViolationSnapshot(
        occurrences=violation.occurrences,
        page_count=violation.page_count,
        impact=violation.impact,
    )


def build_change_detail(
    change_type: str,
    current: Optional[AggregatedViolation],
    previous: Optional[AggregatedViolation],
) -> ViolationChangeDetail:
    source = current or previous
    if source is None:
        raise ValueError("A change needs a current or a previous violation")
    return ViolationChangeDetail(
        type=change_type,
        rule_id=source.rule_id,
        fingerprint=source.fingerprint,
        help=source.help,
        description=source.description,
        current=_snapshot(current),
        previous=_snapshot(previous),
        delta=ChangeAmount(
            occurrences=(current.occurrences if current else 0) - (previous.occurrences if previous else 0),
            page_count=(current.page_count if current else 0) - (previous.page_count if previous else 0),
        ),
    )


def calculate_delta(current: Audit, previous: Audit) -> ComparisonDelta:
    """Signed current - previous for every summary field; stored health scores are used as-is."""
    def field(audit: Audit, name: str) -> int:
        return getattr(audit.summary, name) if audit.summary is not None else 0

    return ComparisonDelta(
        health_score=resolve_health_score(current) - resolve_health_score(previous),
        critical=field(current, 'critical') - field(previous, 'critical'),
        serious=field(current, 'serious') - field(previous, 'serious'),
        moderate=field(current, 'moderate') - field(previous, 'moderate'),
        minor=field(current, 'minor') - field(previous, 'minor'),
        total=field(current, 'total') - field(previous, 'total'),
        pages_audited=current.processed_pages - previous.processed_pages,
        broken_pages=current.broken_pages_count - previous.broken_pages_count,
    )


def _by_impact(changes: List[ViolationChangeDetail]) -> List[ViolationChangeDetail]:
    # sorted() is stable, so ties keep discovery order
    return sorted(changes, key=lambda c: IMPACT_ORDER.get(c.impact, IMPACT_ORDER['minor']))


def calculate_violation_changes(
    current_violations: Iterable[AggregatedViolation],
    previous_violations: Iterable[AggregatedViolation],
) -> ComparisonResult:
    """
    Classify every fingerprint of either audit exactly once:
    new, fixed, worsened (more occurrences or pages), improved (fewer),
    or persistent.
    """
    current_map: Dict[str, AggregatedViolation] = {v.fingerprint: v for v in current_violations}
    previous_map: Dict[str, AggregatedViolation] = {v.fingerprint: v for v in previous_violations}
    groups: Dict[str, List[ViolationChangeDetail]] = {
        'new': [], 'fixed': [], 'persistent': [], 'worsened': [], 'improved': [],
    }

    for fingerprint, current in current_map.items():
        previous = previous_map.get(fingerprint)
        if previous is None:
            change_type = 'new'
        else:
            delta_occurrences = current.occurrences - previous.occurrences
            delta_pages = current.page_count - previous.page_count
            if delta_occurrences > 0 or delta_pages > 0:
                change_type = 'worsened'
            elif delta_occurrences < 0 or delta_pages < 0:
                change_type = 'improved'
            else:
                change_type = 'persistent'
        groups[change_type].append(build_change_detail(change_type, current, previous))

    for fingerprint, previous in previous_map.items():
        if fingerprint not in current_map:
            groups['fixed'].append(build_change_detail('fixed', None, previous))

    sorted_groups = {name: _by_impact(changes) for name, changes in groups.items()}
    return ComparisonResult(
        delta=ComparisonDelta(),
        violations=ComparisonViolations(**sorted_groups),
        counts=ComparisonCounts(**{name: len(changes) for name, changes in sorted_groups.items()}),
    )


def calculate_comparison(
    current: Audit,
    current_violations: Iterable[AggregatedViolation],
    previous: Audit,
    previous_violations: Iterable[AggregatedViolation],
) -> Optional[ComparisonResult]:
    """None when either audit has no summary: there is nothing to compare."""
    if current.summary is None or previous.summary is None:
        return None
    changes = calculate_violation_changes(current_violations, previous_violations)
    return changes.model_copy(update={'delta': calculate_delta(current, previous)})


def has_overall_improvement(delta: ComparisonDelta) -> bool:
    return delta.health_score > 0 or (delta.total < 0 and delta.critical <= 0)


def has_overall_regression(delta: ComparisonDelta) -> bool:
    return (
        delta.health_score < SIGNIFICANT_SCORE_DROP
        or delta.critical > 0
        or delta.total > SIGNIFICANT_TOTAL_RISE
    )


def calculate_trend_direction(delta: ComparisonDelta) -> str:
    if has_overall_improvement(delta):
        return 'improving'
    if has_overall_regression(delta):
        return 'worsening'
    return 'stable'
