import logging
import time
from typing import Callable, Dict, Iterable

from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.by import By

from app.features.audit.schemas.finding import Finding
from app.platform.browser import is_driver_alive
from app.platform.config import settings

logger = logging.getLogger(__name__)

# Rules where seeing the element explains the problem (colour, size, layout).
VISUAL_RULES = frozenset({
    'color-contrast',
    'color-contrast-enhanced',
    'fonte-muito-pequena',
    'texto-justificado',
    'texto-maiusculo-css',
    'br-excessivo-layout',
    'emag-tabela-layout',
})

SCROLL_SCRIPT = "arguments[0].scrollIntoView({block: 'center', inline: 'nearest'});"


def is_visual_rule(rule_id: str) -> bool:
    return rule_id in VISUAL_RULES


def _locate(driver, finding: Finding):
    """Prefer the indexed xpath; fall back to the CSS selector."""
    if finding.xpath:
        return driver.find_element(By.XPATH, finding.xpath)
    return driver.find_element(By.CSS_SELECTOR, finding.selector)


def capture_element_screenshots(
    driver,
    findings: Iterable[Finding],
    budget_seconds: float = None,
    clock: Callable[[], float] = time.monotonic,
) -> Dict[str, str]:
    """
    Base64 PNG of the first offending element per visual rule.

    Stops when the budget is spent or the session is gone. A failed capture
    is logged and skipped; it never fails the page.
    """
    budget_seconds = settings.SCREENSHOT_BUDGET_SECONDS if budget_seconds is None else budget_seconds
    first_by_rule: Dict[str, Finding] = {}
    for finding in findings:
        if is_visual_rule(finding.rule_id) and finding.rule_id not in first_by_rule:
            first_by_rule[finding.rule_id] = finding

    screenshots: Dict[str, str] = {}
    start = clock()
    for rule_id, finding in first_by_rule.items():
        elapsed = clock() - start
        if elapsed > budget_seconds:
            logger.warning(f"Screenshot budget spent ({elapsed:.1f}s), skipping remaining rules")
            break
        if not is_driver_alive(driver):
            logger.warning("Browser session gone, stopping screenshot capture")
            break
        try:
            element = _locate(driver, finding)
            driver.execute_script(SCROLL_SCRIPT, element)
            screenshots[rule_id] = element.screenshot_as_base64
        except WebDriverException as e:
            logger.warning(f"Failed to capture screenshot for {rule_id}: {e.msg or e}")

    if screenshots:
        logger.info(f"Captured {len(screenshots)} visual screenshots")
    return screenshots
