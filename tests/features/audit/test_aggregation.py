"""
Tests for pattern grouping, cross-page aggregation and priority scoring.
"""

import random

from app.features.audit.schemas.audit import UniqueElement
from app.features.audit.schemas.finding import Finding
from app.features.audit.services.aggregation.aggregator import (
    MAX_UNIQUE_ELEMENTS,
    ViolationAggregator,
    element_key,
)
from app.features.audit.services.aggregation.pattern_grouping import (
    calculate_pattern_stats,
    calculate_severity_pattern_summary,
    count_unique_patterns,
    get_pattern_groups,
    group_by_pattern,
    normalize_selector,
    normalize_xpath,
)
from app.features.audit.services.scoring.priority import calculate_priority


def make_finding(rule_id="image-alt", impact="critical", html="<img>", selector="img", criteria=("1.1.1",)):
    return Finding(
        rule_id=rule_id,
        impact=impact,
        html=html,
        selector=selector,
        full_path=selector,
        wcag_criteria=list(criteria),
        fingerprint=rule_id,
    )


class TestPatternNormalization:
    """Test cases for selector and xpath normalization."""

    def test_card_template_collapses_to_one_pattern(self):
        elements = [
            {"fullPath": ".card:nth-child(1) > img"},
            {"fullPath": ".card:nth-child(2) > img"},
            {"fullPath": ".card:nth-child(3) > img"},
        ]
        groups = group_by_pattern(elements)
        assert list(groups) == [".card > img"]
        assert groups[".card > img"] == [e["fullPath"] for e in elements]
        assert count_unique_patterns(elements) == 1

    def test_generated_ids_and_classes(self):
        assert normalize_selector("#item-42 > a") == "#item-* > a"
        assert normalize_selector("#row_7") == "#row_*"
        assert normalize_selector("div.css-a1b2c3d4 span") == "div.css-* span"
        assert normalize_selector('li[data-index="3"]') == "li[data-index]"
        assert normalize_selector("ul > li:first-child > a") == "ul > li > a"
        assert normalize_selector("") == ""

    def test_normalization_is_idempotent(self):
        for selector in [
            ".card:nth-child(2) > img",
            "#item-42 > a",
            'li[data-index="3"] span.x-12',
            ".a-1-2 > li.item-3-4",
            "#row_1_2 .col-3-4-5",
            "> ul > li >",
        ]:
            once = normalize_selector(selector)
            assert normalize_selector(once) == once

    def test_multi_segment_ids_collapse_to_one_pattern(self):
        assert normalize_selector(".a-1-2 > li.item-3-4") == ".a-*-* > li.item-*-*"
        assert count_unique_patterns([
            {"fullPath": ".a-1-2 > li.item-3-4"},
            {"fullPath": ".a-5-6 > li.item-7-8"},
        ]) == 1
        assert normalize_xpath("//div[@id='row-1-2']/span[3]") == "//div[@id='*']/span"

    def test_xpath(self):
        assert normalize_xpath("/html[1]/body[1]/div[3]/img[2]") == "/html/body/div/img"
        assert normalize_xpath("//div[@id='card-12']") == "//div[@id='*']"
        groups = group_by_pattern([{"xpath": "/html/body/ul/li[1]"}, {"xPath": "/html/body/ul/li[2]"}], use_xpath=True)
        assert list(groups) == ["/html/body/ul/li"]

    def test_selector_fallback_and_empty(self):
        elements = [UniqueElement(html="<a>", selector="a.more:nth-child(2)"), {"fullPath": ""}]
        assert list(group_by_pattern(elements)) == ["a.more"]

    def test_pattern_groups_and_stats(self):
        elements = [
            {"fullPath": ".card:nth-child(1) > img"},
            {"fullPath": ".card:nth-child(2) > img"},
            {"fullPath": "#logo"},
        ]
        groups = get_pattern_groups(elements)
        assert groups[0] == {
            "pattern": ".card > img",
            "occurrences": 2,
            "examples": [".card:nth-child(1) > img", ".card:nth-child(2) > img"],
        }
        stats = calculate_pattern_stats(elements)
        assert stats["uniquePatterns"] == 2
        assert stats["totalOccurrences"] == 3
        assert abs(stats["templateRatio"] - 2 / 3) < 1e-9
        assert calculate_pattern_stats([])["templateRatio"] == 0

    def test_severity_pattern_summary(self):
        violations = [
            {"impact": "critical", "uniqueElements": [
                {"fullPath": ".card:nth-child(1) > img"}, {"fullPath": ".card:nth-child(2) > img"},
            ]},
            {"impact": "minor", "uniqueElements": [{"fullPath": "footer p"}]},
        ]
        summary = calculate_severity_pattern_summary(violations)
        assert summary["critical"] == {"occurrences": 2, "patterns": 1}
        assert summary["minor"] == {"occurrences": 1, "patterns": 1}
        assert summary["total"] == {"occurrences": 3, "patterns": 2}


class TestPriority:
    def test_formula_and_caps(self):
        assert calculate_priority("critical", 1, 1) == 45
        assert calculate_priority("minor", 3, 2) == 22
        assert calculate_priority("serious", 100, 100) == 90
        assert calculate_priority("critical", 100, 100) == 100
        assert calculate_priority("unknown", 0, 0) == 10


class TestViolationAggregator:
    """Test cases for ViolationAggregator."""

    def test_merges_pages_by_fingerprint(self):
        aggregator = ViolationAggregator()
        aggregator.add_page("https://example.com/", [
            make_finding(html='<img src="a.png">'),
            make_finding(html='<img src="b.png">'),
            make_finding("color-contrast", "serious", "<p>x</p>", "p", ("1.4.3",)),
        ])
        aggregator.add_page("https://example.com/sobre/", [
            make_finding(html='<img src="a.png">', criteria=("1.1.1", "4.1.2")),
        ])

        violations = aggregator.aggregated()
        by_rule = {v.rule_id: v for v in violations}
        image = by_rule["image-alt"]

        assert image.occurrences == 3
        assert image.page_urls == ["https://example.com/", "https://example.com/sobre"]
        assert image.page_count == 2
        assert image.wcag_criteria == ["1.1.1", "4.1.2"]
        assert [e.count for e in image.unique_elements] == [2, 1]
        assert image.unique_elements[0].pages == ["https://example.com/", "https://example.com/sobre"]
        assert image.priority == calculate_priority("critical", 3, 2)
        assert violations[0].rule_id == "image-alt"

    def test_unique_elements_capped(self):
        aggregator = ViolationAggregator()
        findings = [make_finding(html=f'<img src="{i}.png">') for i in range(30)]
        aggregator.add_page("https://example.com/", findings)

        violation = aggregator.aggregated()[0]
        assert len(violation.unique_elements) == MAX_UNIQUE_ELEMENTS
        assert violation.occurrences == 30

    def test_occurrences_never_below_page_count(self):
        aggregator = ViolationAggregator()
        for i in range(5):
            aggregator.add_page(f"https://example.com/p{i}", [make_finding()])
        violation = aggregator.aggregated()[0]
        assert violation.occurrences >= violation.page_count == 5

    def test_summary_counts_and_patterns(self):
        aggregator = ViolationAggregator()
        aggregator.add_page("https://example.com/", [
            make_finding(html="<img 1>", selector=".card:nth-child(1) > img"),
            make_finding(html="<img 2>", selector=".card:nth-child(2) > img"),
            make_finding("link-name", "serious", "<a>", "a.more"),
            make_finding("region", "moderate", "<div>", "div.x"),
        ])
        summary = aggregator.summary()

        assert summary.as_dict() == {"critical": 2, "serious": 1, "moderate": 1, "minor": 0}
        assert summary.total == 4
        assert summary.patterns.critical == 1
        assert summary.patterns.serious == 1

    def test_summary_matches_violation_occurrences(self):
        aggregator = ViolationAggregator()
        aggregator.add_page("https://example.com/", [make_finding(html=f"<img {i}>") for i in range(25)])
        aggregator.add_page("https://example.com/b", [make_finding("region", "moderate", "<div>")])
        violations = aggregator.aggregated()
        summary = aggregator.summary(violations)
        for severity in ("critical", "serious", "moderate", "minor"):
            assert getattr(summary, severity) == sum(v.occurrences for v in violations if v.impact == severity)

    def test_screenshot_attached_to_first_element(self):
        aggregator = ViolationAggregator()
        aggregator.add_page(
            "https://example.com/",
            [make_finding("color-contrast", "serious", "<p>a</p>", "p"), make_finding("color-contrast", "serious", "<p>b</p>", "p")],
            screenshots={"color-contrast": "iVBOR"},
        )
        violation = aggregator.aggregated()[0]
        assert violation.unique_elements[0].screenshot == "iVBOR"
        assert violation.unique_elements[1].screenshot is None

    def test_element_key_uses_first_500_chars(self):
        base = "x" * 500
        assert element_key(base + "a") == element_key(base + "b")
        assert element_key("a") != element_key("b")

    def test_mixed_impact_rule_is_counted_once_at_its_worst_impact(self):
        aggregator = ViolationAggregator()
        aggregator.add_page("https://example.com/", [
            make_finding("carrossel-sem-controles", "moderate", "<div class='slider'>", "div.slider"),
            make_finding("carrossel-sem-controles", "serious", "<div class='hero'>", "div.hero"),
        ])
        violations = aggregator.aggregated()
        summary = aggregator.summary(violations)

        assert len(violations) == 1
        assert violations[0].impact == "serious"
        assert violations[0].priority == calculate_priority("serious", 2, 1)
        assert (summary.serious, summary.moderate) == (2, 0)
        assert summary.total == 2

    def test_summary_always_matches_aggregates(self):
        rng = random.Random(20240301)
        impacts = ["critical", "serious", "moderate", "minor"]
        rules = [f"rule-{n}" for n in range(8)]
        aggregator = ViolationAggregator()
        for page in range(12):
            findings = [
                make_finding(
                    rule_id=rng.choice(rules),
                    impact=rng.choice(impacts),
                    html=f"<el {rng.randint(0, 40)}>",
                    selector=f".item-{rng.randint(0, 9)} > span",
                )
                for _ in range(rng.randint(0, 15))
            ]
            aggregator.add_page(f"https://example.com/p{page}", findings)

        violations = aggregator.aggregated()
        summary = aggregator.summary(violations)
        for severity in impacts:
            expected = sum(v.occurrences for v in violations if v.impact == severity)
            assert getattr(summary, severity) == expected
        assert summary.total == sum(v.occurrences for v in violations)
        assert all(v.occurrences >= v.page_count for v in violations)
