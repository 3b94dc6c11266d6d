"""
Insights and trends.

Insights are (type, key, params) seeds ranked by a fixed priority so the
most severity-relevant signal comes first; the caller renders the text.
"""
from typing import List, Optional, Sequence

from app.features.audit.schemas.audit import AuditSummary
from app.features.audit.schemas.comparison import (
    AuditSnapshot,
    ComparisonDelta,
    ComparisonViolations,
    EvolutionTrends,
    Insight,
    TrendData,
    TrendPoint,
)
from app.features.audit.services.scoring.health import round_half_up

MAX_COMPARISON_INSIGHTS = 4
MAX_EVOLUTION_INSIGHTS = 3
TREND_THRESHOLD_PERCENT = 5
SPIKE_THRESHOLD = 10


def _count_impact(changes, side: str, impact: str) -> int:
    return sum(1 for c in changes if getattr(c, side) is not None and getattr(c, side).impact == impact)


def generate_comparison_insights(
    delta: ComparisonDelta,
    violations: ComparisonViolations,
    current_summary: Optional[AuditSummary],
) -> List[Insight]:
    if current_summary is None:
        return []

    insights: List[Insight] = []
    critical_fixed = _count_impact(violations.fixed, 'previous', 'critical')
    serious_fixed = _count_impact(violations.fixed, 'previous', 'serious')
    new_critical = _count_impact(violations.new, 'current', 'critical')
    new_serious = _count_impact(violations.new, 'current', 'serious')

    if critical_fixed > 0:
        insights.append(Insight(type='positive', key='criticalFixed', params={'count': critical_fixed}))
    if serious_fixed > 0 and critical_fixed == 0:
        insights.append(Insight(type='positive', key='seriousFixed', params={'count': serious_fixed}))
    if new_critical > 0:
        insights.append(Insight(type='negative', key='newCritical', params={'count': new_critical}))
    if new_serious > 0 and new_critical == 0:
        insights.append(Insight(type='negative', key='newSerious', params={'count': new_serious}))

    if delta.health_score >= 5:
        insights.append(Insight(type='positive', key='scoreImproved',
                                params={'percent': round_half_up(delta.health_score)}))
    if delta.health_score <= -5:
        insights.append(Insight(type='negative', key='scoreDecreased',
                                params={'percent': abs(round_half_up(delta.health_score))}))

    if len(violations.fixed) >= 5 and critical_fixed == 0 and serious_fixed == 0:
        insights.append(Insight(type='positive', key='manyFixed', params={'count': len(violations.fixed)}))
    if len(violations.new) >= 5 and new_critical == 0 and new_serious == 0:
        insights.append(Insight(type='warning', key='manyNew', params={'count': len(violations.new)}))

    remaining = current_summary.critical
    if 0 < remaining <= 5 and delta.critical <= 0:
        insights.append(Insight(type='warning', key='focusOn', params={'count': remaining}))

    if delta.total <= -10 and delta.health_score > 0 and new_critical == 0:
        insights.append(Insight(type='positive', key='greatProgress'))
    if delta.total >= 10 and delta.health_score < -5:
        insights.append(Insight(type='negative', key='significantRegression', params={'count': delta.total}))

    if current_summary.total == 0:
        insights.append(Insight(type='positive', key='noViolations'))

    if not insights and abs(delta.total) < 3 and abs(delta.health_score) < 3:
        insights.append(Insight(type='neutral', key='stable'))

    return insights[:MAX_COMPARISON_INSIGHTS]


def generate_first_audit_insight() -> Insight:
    return Insight(type='neutral', key='firstAudit')


def calculate_trend(values: Sequence[float]) -> TrendData:
    """Two-point trend between the first and last value."""
    if not values:
        return TrendData()
    if len(values) == 1:
        return TrendData(values=[TrendPoint(value=values[0])])

    first, last = values[0], values[-1]
    if first != 0:
        change_percent = (last - first) / first * 100
    else:
        change_percent = 100 if last != 0 else 0

    direction = 'stable'
    if change_percent > TREND_THRESHOLD_PERCENT:
        direction = 'up'
    elif change_percent < -TREND_THRESHOLD_PERCENT:
        direction = 'down'

    return TrendData(direction=direction, change_percent=change_percent, change_absolute=last - first)


def calculate_evolution_trends(audits: Sequence[AuditSnapshot]) -> EvolutionTrends:
    ordered = sorted(audits, key=lambda a: a.created_at)
    dates = [a.created_at.isoformat() for a in ordered]

    def series(values: List[float]) -> TrendData:
        trend = calculate_trend(values)
        points = [TrendPoint(date=d, value=v) for d, v in zip(dates, values)]
        return trend.model_copy(update={'values': points})

    def summary_field(name: str) -> List[float]:
        return [getattr(a.summary, name) if a.summary is not None else 0 for a in ordered]

    return EvolutionTrends(
        health_score=series([a.health_score if a.health_score is not None else 0 for a in ordered]),
        critical=series(summary_field('critical')),
        serious=series(summary_field('serious')),
        moderate=series(summary_field('moderate')),
        minor=series(summary_field('minor')),
        total=series(summary_field('total')),
    )


def generate_evolution_insights(audits: Sequence[AuditSnapshot], trends: EvolutionTrends) -> List[Insight]:
    """`audits` is newest first."""
    if len(audits) < 2:
        return [generate_first_audit_insight()]

    insights: List[Insight] = []
    health = trends.health_score
    if health.direction == 'up' and health.change_percent >= 10:
        insights.append(Insight(type='positive', key='consistentImprovement',
                                params={'percent': round_half_up(health.change_percent)}))
    elif health.direction == 'down' and health.change_percent <= -10:
        insights.append(Insight(type='negative', key='consistentWorsening',
                                params={'percent': abs(round_half_up(health.change_percent))}))

    critical = trends.critical
    if critical.direction == 'up' and critical.change_absolute > 0:
        insights.append(Insight(type='negative', key='criticalTrend',
                                params={'count': critical.change_absolute, 'direction': 'up'}))
    elif critical.direction == 'down' and critical.change_absolute < 0:
        insights.append(Insight(type='positive', key='criticalTrend',
                                params={'count': abs(critical.change_absolute), 'direction': 'down'}))

    latest, previous = audits[0], audits[1]
    if latest.summary is not None and previous.summary is not None:
        diff = latest.summary.total - previous.summary.total
        if diff > SPIKE_THRESHOLD:
            insights.append(Insight(type='warning', key='recentSpike', params={'count': diff}))
        elif diff < -SPIKE_THRESHOLD:
            insights.append(Insight(type='positive', key='recentDrop', params={'count': abs(diff)}))

    return insights[:MAX_EVOLUTION_INSIGHTS]
