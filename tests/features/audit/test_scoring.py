"""
Tests for health scoring, guidance and WCAG conformance.
"""
from datetime import datetime

from app.features.audit.schemas.audit import AggregatedViolation, Audit, AuditSummary, SeverityCounts
from app.features.audit.services.scoring.health import (
    build_report,
    calculate_accessibility_score,
    calculate_health_score,
    calculate_health_score_legacy,
    calculate_rules_from_audit,
    calculate_wcag_conformance,
    get_guidance,
    get_health_label,
    resolve_health_score,
    round_half_up,
)


def make_audit(health_score=None, summary=None):
    return Audit(
        id="a1",
        base_url="https://example.com/",
        created_at=datetime(2024, 3, 1),
        summary=summary,
        health_score=health_score,
    )


class TestRoundHalfUp:
    def test_halves_round_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(-2.5) == -2
        assert round_half_up(78.1) == 78


class TestAccessibilityScore:
    """Test cases for the weighted passed/failed score."""

    def test_failed_rules_weigh_double(self):
        data = calculate_accessibility_score({"critical": 1}, {"critical": 1})
        assert data.weighted_passed == 10
        assert data.weighted_failed == 20
        assert data.score == 33
        assert data.score_impact["critical"] == -20
        assert data.score_impact["minor"] == 0

    def test_nothing_evaluated_is_perfect(self):
        assert calculate_accessibility_score({}, {}).score == 100

    def test_passed_rules_estimate(self):
        passed, failed = calculate_rules_from_audit(100, {"critical": 4, "serious": 6})
        assert failed == {"critical": 4, "serious": 6, "moderate": 0, "minor": 0}
        assert passed == {"critical": 27, "serious": 36, "moderate": 18, "minor": 9}

    def test_more_failures_than_rules(self):
        passed, _ = calculate_rules_from_audit(5, {"minor": 10})
        assert sum(passed.values()) == 0


class TestHealthScore:
    """Test cases for calculate_health_score and friends."""

    def test_empty_audit_is_100(self):
        assert calculate_health_score(None) == 100
        assert calculate_health_score(AuditSummary()) == 100

    def test_score_from_counts(self):
        summary = AuditSummary(critical=4, serious=6, total=10)
        assert calculate_health_score(summary) == 78

    def test_patterns_take_precedence(self):
        summary = AuditSummary(
            critical=40,
            serious=60,
            total=100,
            patterns=SeverityCounts(critical=4, serious=6),
        )
        assert calculate_health_score(summary) == 78

    def test_never_perfect_with_violations(self):
        summary = AuditSummary(minor=1, total=1)
        assert calculate_health_score(summary) == 99

    def test_monotonic_in_critical(self):
        scores = [calculate_health_score(AuditSummary(critical=n, total=n)) for n in (1, 5, 20, 60)]
        assert scores == sorted(scores, reverse=True)

    def test_legacy_penalty(self):
        assert calculate_health_score_legacy(AuditSummary(critical=1, minor=1, total=2)) == 45
        assert calculate_health_score_legacy(AuditSummary(critical=3, total=3)) == 0
        assert calculate_health_score_legacy(None) == 100

    def test_stored_score_is_never_recomputed(self):
        summary = AuditSummary(critical=4, serious=6, total=10)
        assert resolve_health_score(make_audit(health_score=42, summary=summary)) == 42
        assert resolve_health_score(make_audit(summary=summary)) == 78
        assert resolve_health_score(make_audit()) == 100

    def test_labels(self):
        assert get_health_label(95) == "Excelente"
        assert get_health_label(70) == "Bom"
        assert get_health_label(50) == "Regular"
        assert get_health_label(49.9) == "Critico"


class TestGuidance:
    def test_most_severe_first(self):
        guidance = get_guidance(AuditSummary(serious=2, moderate=1, total=3))
        assert guidance == {"title_key": "guidance.serious", "priority": "serious", "count": 2}

    def test_minor_only(self):
        assert get_guidance(AuditSummary(minor=4, total=4))["priority"] == "minor"

    def test_clean_audit(self):
        assert get_guidance(None)["priority"] == "success"
        assert get_guidance(AuditSummary())["title_key"] == "guidance.success"


class TestWcagConformance:
    def make_violation(self, rule_id, criteria):
        return AggregatedViolation(fingerprint=rule_id, rule_id=rule_id, impact="serious", wcag_criteria=criteria)

    def test_distinct_criteria_per_level(self):
        violations = [
            self.make_violation("image-alt", ["1.1.1", "1.4.3"]),
            self.make_violation("link-name", ["1.1.1", "2.4.4"]),
        ]
        result = calculate_wcag_conformance(violations, ["A", "AA"])

        assert result["affected_criteria"] == 3
        assert result["total_criteria"] == 38
        assert result["conformance_percent"] == 92
        assert result["by_principle"] == {
            "perceivable": 2,
            "operable": 1,
            "understandable": 0,
            "robust": 0,
        }

    def test_no_levels(self):
        result = calculate_wcag_conformance([self.make_violation("x", ["4.1.2"])], [])
        assert result["conformance_percent"] == 100
        assert result["by_principle"]["robust"] == 1


class TestBuildReport:
    def test_clean_audit(self):
        report = build_report(make_audit(summary=AuditSummary()), [])
        assert report["health_score"] == 100
        assert report["health_label"] == "Excelente"
        assert report["guidance"]["priority"] == "success"
        assert report["conformance"]["conformance_percent"] == 100

    def test_unscored_audit_is_scored_from_summary(self):
        audit = make_audit(summary=AuditSummary(critical=4, serious=6, total=10))
        audit = audit.model_copy(update={"wcag_levels": ["A", "AA"]})
        violations = [AggregatedViolation(fingerprint="image-alt", rule_id="image-alt", impact="critical",
                                          wcag_criteria=["1.1.1"])]

        report = build_report(audit, violations)

        assert report["health_score"] == 78
        assert report["health_label"] == "Bom"
        assert report["guidance"] == {"title_key": "guidance.critical", "priority": "critical", "count": 4}
        assert report["conformance"]["affected_criteria"] == 1
        assert report["conformance"]["total_criteria"] == 38
