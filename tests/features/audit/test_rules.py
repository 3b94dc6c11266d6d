"""
Tests for the in-page rule framework, the bundled rule sets and the axe-core adapter.
"""

from unittest.mock import MagicMock

import pytest
from selenium.common.exceptions import WebDriverException

from app.features.audit.services.rules.axe_engine import (
    AxeEngine,
    build_wcag_tags,
    extract_wcag_criteria,
    extract_wcag_level,
    extract_wcag_version,
    node_selector,
)
from app.features.audit.services.rules.coga_rules import build_coga_registry, score_text_block
from app.features.audit.services.rules.custom_rules import build_custom_registry
from app.features.audit.services.rules.dom_rule import (
    DomRule,
    RuleRegistry,
    run_rule_safely,
    run_rules,
    wcag_tags_for,
)
from app.features.audit.services.rules.partial_rules import build_partial_registry
from app.platform.exceptions import RuleEngineError


def make_rule(rule_id, post_process=None):
    return DomRule(
        id=rule_id,
        impact="serious",
        wcag_level="AA",
        wcag_criteria=("2.4.4",),
        help="Links need context",
        description="Link text must describe the target",
        script="return [];",
        post_process=post_process,
    )


class ScriptDriver:
    """Returns canned records keyed by a marker found in the executed script."""

    def __init__(self, records_by_marker):
        self.records_by_marker = records_by_marker

    def execute_script(self, script, *args):
        for marker, records in self.records_by_marker.items():
            if f"'{marker}'" in script:
                if isinstance(records, Exception):
                    raise records
                return records
        return []


def marked_rule(rule_id):
    return DomRule(
        id=rule_id,
        impact="minor",
        wcag_level="A",
        wcag_criteria=("1.1.1",),
        help="h",
        description="d",
        script=f"var marker = '{rule_id}'; return [];",
    )


class TestDomRule:
    """Test cases for DomRule."""

    def test_to_finding_uses_rule_defaults(self):
        rule = make_rule("link-texto-generico")
        finding = rule.to_finding(
            {"selector": "a.more", "html": "<a class=\"more\">clique aqui</a>", "details": {"text": "clique aqui"}},
            page_url="https://example.com/",
        )
        assert finding.rule_id == "link-texto-generico"
        assert finding.is_custom_rule is True
        assert finding.impact == "serious"
        assert finding.wcag_criteria == ["2.4.4"]
        assert finding.wcag_tags == ["wcag2aa", "wcag244"]
        assert finding.full_path == "a.more"
        assert finding.fingerprint == "link-texto-generico"
        assert finding.details == {"text": "clique aqui"}

    def test_record_overrides(self):
        finding = make_rule("r").to_finding({
            "selector": "body",
            "impact": "critical",
            "wcagLevel": "A",
            "wcagCriteria": ["2.2.2"],
            "message": "Autoplay detectado",
        })
        assert finding.impact == "critical"
        assert finding.wcag_level == "A"
        assert finding.wcag_criteria == ["2.2.2"]
        assert finding.failure_summary == "Autoplay detectado"

    def test_html_truncated(self):
        finding = make_rule("r").to_finding({"selector": "div", "html": "x" * 900})
        assert len(finding.html) == 500

    def test_post_process_can_drop_records(self):
        rule = make_rule("r", post_process=lambda rec: rec if rec["selector"] != "skip" else None)
        driver = MagicMock()
        driver.execute_script.return_value = [{"selector": "keep"}, {"selector": "skip"}]
        findings = rule.evaluate(driver)
        assert [f.selector for f in findings] == ["keep"]

    def test_build_script_embeds_params(self):
        rule = DomRule(
            id="r", impact="minor", wcag_level=None, wcag_criteria=(), help="", description="",
            script="return params.words;", params={"words": ["saiba mais"]},
        )
        script = rule.build_script()
        assert '"words": ["saiba mais"]' in script
        assert "function getSelector" in script
        assert "return params.words;" in script

    def test_wcag_tags_for(self):
        assert wcag_tags_for("AAA", ["3.1.5"]) == ["wcag2aaa", "wcag315"]
        assert wcag_tags_for(None, []) == []


class TestRuleRegistry:
    """Test cases for RuleRegistry."""

    def test_keeps_registration_order(self):
        registry = RuleRegistry([make_rule("b"), make_rule("a")])
        assert registry.ids() == ["b", "a"]
        assert len(registry) == 2
        assert registry.get("a").id == "a"

    def test_duplicate_ids_rejected(self):
        registry = RuleRegistry([make_rule("a")])
        with pytest.raises(ValueError):
            registry.register(make_rule("a"))

    def test_unregister(self):
        registry = RuleRegistry([make_rule("a"), make_rule("b")])
        registry.unregister("a")
        registry.unregister("missing")
        assert registry.ids() == ["b"]


class TestRunRules:
    """Test cases for concurrent rule execution."""

    def test_failing_rule_yields_no_findings(self):
        driver = MagicMock()
        driver.execute_script.side_effect = WebDriverException("stale element")
        assert run_rule_safely(driver, make_rule("r")) == []

    def test_results_joined_in_registration_order(self):
        driver = ScriptDriver({
            "one": [{"selector": "#a"}],
            "two": RuntimeError("script error"),
            "three": [{"selector": "#b"}, {"selector": "#c"}],
        })
        rules = [marked_rule("one"), marked_rule("two"), marked_rule("three")]
        findings = run_rules(driver, rules, "https://example.com/", max_workers=3)
        assert [(f.rule_id, f.selector) for f in findings] == [
            ("one", "#a"), ("three", "#b"), ("three", "#c"),
        ]
        assert all(f.page_url == "https://example.com/" for f in findings)

    def test_no_rules(self):
        driver = MagicMock()
        assert run_rules(driver, []) == []
        driver.execute_script.assert_not_called()


class TestBundledRuleSets:
    """Sanity checks over the shipped rule registries."""

    def test_custom_rules(self):
        registry = build_custom_registry()
        assert len(registry) == 21
        assert "link-texto-generico" in registry.ids()
        assert "barra-acessibilidade-gov-br" in registry.ids()
        assert not any(rule.needs_review for rule in registry)

    def test_partial_rules_need_review(self):
        registry = build_partial_registry()
        assert len(registry) == 5
        assert all(rule.needs_review for rule in registry)
        assert all(rule.wcag_version == "2.2" for rule in registry)

    def test_coga_rules(self):
        registry = build_coga_registry()
        assert len(registry) == 6
        assert "legibilidade-texto-complexo" in registry.ids()
        assert "linguagem-inconsistente" in registry.ids()

    def test_rule_ids_do_not_overlap(self):
        ids = build_custom_registry().ids() + build_partial_registry().ids() + build_coga_registry().ids()
        assert len(ids) == len(set(ids))

    def test_readability_post_process(self):
        easy = {"selector": "p", "details": {"blockText": "O gato é meu. " * 10}}
        assert score_text_block(easy) is None

        hard_text = (
            "A implementação institucional das responsabilidades administrativas, "
            "considerando a complexidade organizacional e as especificidades "
            "regulamentares, pressupõe a compatibilização interdisciplinar das "
            "competências governamentais estabelecidas constitucionalmente e "
            "devidamente regulamentadas pelas autoridades correspondentes."
        )
        record = score_text_block({"selector": "p", "details": {"blockText": hard_text, "tag": "p"}})
        assert record is not None
        assert "blockText" not in record["details"]
        assert record["details"]["readability"]["score"] < 50
        assert record["message"].startswith("Texto")


class TestAxeHelpers:
    """Test cases for the axe tag helpers."""

    def test_build_wcag_tags(self):
        assert build_wcag_tags(["A"]) == ["best-practice", "wcag2a", "wcag21a", "wcag22a"]
        assert "wcag2aa" in build_wcag_tags(["a", "AA"])

    def test_extract_level_and_version(self):
        assert extract_wcag_level(["wcag2a", "wcag111"]) == "A"
        assert extract_wcag_level(["wcag21aa", "wcag1410"]) == "AA"
        assert extract_wcag_level(["best-practice"]) is None
        assert extract_wcag_version(["wcag22aa"]) == "2.2"
        assert extract_wcag_version(["wcag21a"]) == "2.1"
        assert extract_wcag_version(["wcag2a"]) == "2.0"

    def test_extract_criteria(self):
        assert extract_wcag_criteria(["wcag2aa", "wcag143", "wcag1410", "wcag143"]) == ["1.4.3", "1.4.10"]

    def test_node_selector(self):
        assert node_selector(["#main > img"]) == "#main > img"
        assert node_selector([["my-widget", "button.close"]]) == "my-widget button.close"
        assert node_selector([]) == ""


class TestAxeEngine:
    """Test cases for AxeEngine with a mocked driver."""

    @pytest.fixture
    def axe_script(self, tmp_path):
        path = tmp_path / "axe.min.js"
        path.write_text("window.axe = {};", encoding="utf-8")
        return str(path)

    def test_audit_builds_one_finding_per_node(self, axe_script):
        driver = MagicMock()
        driver.execute_async_script.return_value = {"violations": [{
            "id": "image-alt",
            "impact": "critical",
            "tags": ["cat.text-alternatives", "wcag2a", "wcag111"],
            "help": "Images must have alternate text",
            "description": "Ensures <img> elements have alternate text",
            "helpUrl": "https://dequeuniversity.com/rules/axe/4.8/image-alt",
            "nodes": [
                {"target": ["img.hero"], "html": "<img class=\"hero\">", "failureSummary": "Fix any"},
                {"target": ["img.logo"], "html": "<img class=\"logo\">", "failureSummary": "Fix any"},
            ],
        }]}
        driver.execute_script.side_effect = lambda script, *args: (
            [{"xpath": "/html[1]/body[1]/img[1]", "details": {"classList": "hero"}}, None] if args else None
        )

        findings = AxeEngine(axe_script).audit(driver, ["A", "AA"], page_url="https://example.com/")

        assert len(findings) == 2
        first = findings[0]
        assert first.rule_id == "image-alt"
        assert first.is_custom_rule is False
        assert first.wcag_level == "A"
        assert first.wcag_criteria == ["1.1.1"]
        assert first.selector == "img.hero"
        assert first.xpath == "/html[1]/body[1]/img[1]"
        assert first.details == {"classList": "hero"}
        assert first.fingerprint == "image-alt"
        assert findings[1].xpath is None

    def test_engine_error_raises(self, axe_script):
        driver = MagicMock()
        driver.execute_async_script.return_value = {"error": "axe is not defined"}
        with pytest.raises(RuleEngineError):
            AxeEngine(axe_script).run(driver, ["A"])

    def test_driver_failure_raises(self, axe_script):
        driver = MagicMock()
        driver.execute_async_script.side_effect = WebDriverException("script timeout")
        with pytest.raises(RuleEngineError):
            AxeEngine(axe_script).run(driver, ["A"])

    def test_missing_script_raises(self, tmp_path):
        with pytest.raises(RuleEngineError):
            AxeEngine(str(tmp_path / "missing.js")).run(MagicMock(), ["A"])
