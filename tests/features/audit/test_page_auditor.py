"""
Tests for the per-page audit pipeline and screenshot capture.
"""

from unittest.mock import MagicMock, patch

from selenium.common.exceptions import NoSuchElementException, WebDriverException
from selenium.webdriver.common.by import By

from app.features.audit.schemas.finding import Finding
from app.features.audit.services.analysis.page_auditor import PageAuditor
from app.features.audit.services.analysis.screenshots import capture_element_screenshots
from app.features.audit.services.stabilization.stabilizer import StabilityResult
from app.platform.exceptions import RuleEngineError

URL = "https://example.com/servicos"


def axe_finding(rule_id, html, impact="serious"):
    return Finding(rule_id=rule_id, html=html, impact=impact, selector="img", fingerprint=rule_id)


def make_driver(status=200):
    driver = MagicMock()
    driver.session_id = "session-1"
    driver.execute_cdp_cmd.return_value = {"identifier": "7"}
    driver.execute_script.return_value = status
    return driver


def make_auditor(findings=None, custom_rules=None, partial_rules=None, **kwargs):
    axe = MagicMock()
    if isinstance(findings, Exception):
        axe.audit.side_effect = findings
    else:
        axe.audit.return_value = list(findings or [])
    auditor = PageAuditor(
        axe_engine=axe,
        custom_rules=custom_rules or [],
        partial_rules=partial_rules or [],
        coga_rules=[],
        stabilize=False,
        **kwargs,
    )
    return auditor, axe


def detached(driver):
    return any(
        c[0][0] == "Page.removeScriptToEvaluateOnNewDocument" for c in driver.execute_cdp_cmd.call_args_list
    )


class TestPageAuditor:
    """Test cases for PageAuditor.audit_page."""

    def test_pipeline_filters_scores_and_fingerprints(self):
        auditor, axe = make_auditor([
            axe_finding("image-alt", '<img src="hero.png">', "critical"),
            axe_finding("image-alt", '<img src="divider.png" alt="">', "minor"),
            axe_finding("color-contrast", "<p>Texto claro</p>"),
        ])
        driver = make_driver()

        result = auditor.audit_page(driver, URL, wcag_levels=["A", "AA"])

        driver.get.assert_called_once_with(URL)
        axe.audit.assert_called_once_with(driver, ["A", "AA"], page_url=URL)
        assert result.visit.is_broken is False
        assert result.visit.http_status == 200
        assert [f.rule_id for f in result.findings] == ["image-alt", "color-contrast"]
        assert result.findings[0].confidence_level == "certain"
        assert result.findings[0].confidence_score == 1.0
        assert result.findings[1].confidence_level == "likely"
        assert all(f.fingerprint == f.rule_id for f in result.findings)
        assert result.filtered_count == 1
        assert result.filter_stats == {"image_empty_alt_intentional": 1}
        assert detached(driver)

    def test_tracker_attached_before_navigation(self):
        auditor, _ = make_auditor()
        driver = make_driver()
        order = []
        driver.execute_cdp_cmd.side_effect = lambda cmd, params: order.append(cmd) or {"identifier": "7"}
        driver.get.side_effect = lambda url: order.append("get")

        auditor.audit_page(driver, URL)

        assert order == [
            "Page.addScriptToEvaluateOnNewDocument",
            "get",
            "Page.removeScriptToEvaluateOnNewDocument",
        ]

    def test_navigation_failure_is_recorded_not_raised(self):
        auditor, axe = make_auditor()
        driver = make_driver()
        driver.get.side_effect = WebDriverException("unknown error: net::ERR_NAME_NOT_RESOLVED")

        result = auditor.audit_page(driver, URL)

        assert result.visit.is_broken is True
        assert result.visit.error_type == "connection_error"
        assert result.findings == []
        axe.audit.assert_not_called()
        assert detached(driver)

    def test_http_error_status(self):
        auditor, axe = make_auditor()
        driver = make_driver(status=404)

        result = auditor.audit_page(driver, URL)

        assert result.visit.error_type == "http_error"
        assert result.visit.http_status == 404
        axe.audit.assert_not_called()
        assert detached(driver)

    def test_rule_engine_failure_marks_page_broken(self):
        auditor, _ = make_auditor(RuleEngineError("axe-core failed: axe is not defined"))
        result = auditor.audit_page(make_driver(), URL)
        assert result.visit.error_type == "other"
        assert "axe is not defined" in result.visit.error_message

    def test_tracker_unavailable_still_audits(self):
        auditor, axe = make_auditor([axe_finding("image-alt", "<img>")])
        driver = make_driver()
        driver.execute_cdp_cmd.side_effect = WebDriverException("CDP not supported")

        result = auditor.audit_page(driver, URL)

        assert result.visit.is_broken is False
        assert len(result.findings) == 1

    def test_partial_rules_only_when_requested(self):
        partial = MagicMock()
        partial.id = "input-sem-autocomplete"
        partial.evaluate.return_value = [
            Finding(rule_id="input-sem-autocomplete", is_custom_rule=True, html="<input name=\"email\">",
                    needs_review=True, fingerprint="input-sem-autocomplete"),
        ]
        auditor, _ = make_auditor(partial_rules=[partial])

        without = auditor.audit_page(make_driver(), URL)
        with_partial = auditor.audit_page(make_driver(), URL, include_partial=True)

        assert without.findings == []
        assert [f.rule_id for f in with_partial.findings] == ["input-sem-autocomplete"]
        assert with_partial.findings[0].needs_review is True

    def test_stabilization_timeout_is_reported(self):
        auditor, _ = make_auditor()
        auditor.stabilize = True
        timeout = StabilityResult(stable=False, timed_out=True, polls=10, elapsed=60.0)
        with patch(
            "app.features.audit.services.analysis.page_auditor.wait_for_page_stable", return_value=timeout
        ) as wait:
            result = auditor.audit_page(make_driver(), URL)

        wait.assert_called_once()
        assert result.visit.stabilized is False
        assert result.visit.is_broken is False


class TestScreenshots:
    """Test cases for capture_element_screenshots."""

    def test_first_element_per_visual_rule(self):
        driver = make_driver()
        element = MagicMock()
        element.screenshot_as_base64 = "iVBORw0KGgo="
        driver.find_element.return_value = element
        findings = [
            Finding(rule_id="color-contrast", xpath="/html[1]/body[1]/p[1]", selector="p"),
            Finding(rule_id="color-contrast", xpath="/html[1]/body[1]/p[2]", selector="p"),
            Finding(rule_id="image-alt", selector="img"),
            Finding(rule_id="fonte-muito-pequena", selector="small.note", is_custom_rule=True),
        ]

        shots = capture_element_screenshots(driver, findings, budget_seconds=15)

        assert shots == {"color-contrast": "iVBORw0KGgo=", "fonte-muito-pequena": "iVBORw0KGgo="}
        assert driver.find_element.call_args_list[0][0] == (By.XPATH, "/html[1]/body[1]/p[1]")
        assert driver.find_element.call_args_list[1][0] == (By.CSS_SELECTOR, "small.note")

    def test_failed_capture_is_skipped(self):
        driver = make_driver()
        element = MagicMock()
        element.screenshot_as_base64 = "abc"
        driver.find_element.side_effect = [NoSuchElementException("gone"), element]
        findings = [
            Finding(rule_id="texto-justificado", selector="p.a"),
            Finding(rule_id="br-excessivo-layout", selector="div.b"),
        ]

        assert capture_element_screenshots(driver, findings, budget_seconds=15) == {"br-excessivo-layout": "abc"}

    def test_budget_spent(self):
        driver = make_driver()
        ticks = iter([0.0, 0.0, 20.0])
        findings = [
            Finding(rule_id="texto-justificado", selector="p.a"),
            Finding(rule_id="br-excessivo-layout", selector="div.b"),
        ]
        driver.find_element.return_value.screenshot_as_base64 = "abc"

        shots = capture_element_screenshots(driver, findings, budget_seconds=15, clock=lambda: next(ticks))

        assert list(shots) == ["texto-justificado"]

    def test_dead_session_stops_capture(self):
        driver = make_driver()
        driver.session_id = None
        shots = capture_element_screenshots(driver, [Finding(rule_id="color-contrast", selector="p")])
        assert shots == {}
        driver.find_element.assert_not_called()
