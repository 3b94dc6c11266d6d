import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from selenium.common.exceptions import WebDriverException

from app.features.audit.schemas.finding import Finding, PageVisit
from app.features.audit.services.analysis.confidence import ConfidenceScorer
from app.features.audit.services.analysis.false_positive_filter import (
    filter_false_positives,
    get_filter_stats,
)
from app.features.audit.services.analysis.screenshots import capture_element_screenshots
from app.features.audit.services.discovery.page_discovery import (
    NAVIGATION_STATUS_SCRIPT,
    PageDiscoveryService,
)
from app.features.audit.services.rules.axe_engine import AxeEngine
from app.features.audit.services.rules.coga_rules import build_coga_registry
from app.features.audit.services.rules.custom_rules import build_custom_registry
from app.features.audit.services.rules.dom_rule import RuleRegistry, run_rules
from app.features.audit.services.rules.partial_rules import build_partial_registry
from app.features.audit.services.stabilization.selenium_tracker import (
    SeleniumRequestTracker,
    SeleniumStateReader,
)
from app.features.audit.services.stabilization.stabilizer import wait_for_page_stable
from app.features.audit.utils.error_classifier import classify_error
from app.platform.exceptions import RuleEngineError

logger = logging.getLogger(__name__)


@dataclass
class PageResult:
    visit: PageVisit
    findings: List[Finding] = field(default_factory=list)
    filtered_count: int = 0
    filter_stats: Dict[str, int] = field(default_factory=dict)
    screenshots: Dict[str, str] = field(default_factory=dict)


class PageAuditor:
    """
    Runs every rule set over one page of an already-open browser session.

    Pipeline: attach tracker, navigate, status check, stabilize, axe,
    custom rules, partial and cognitive rules, false-positive filter,
    confidence. The tracker is always detached, whatever happens.
    """

    def __init__(
        self,
        axe_engine: AxeEngine = None,
        custom_rules: RuleRegistry = None,
        partial_rules: RuleRegistry = None,
        coga_rules: RuleRegistry = None,
        scorer: ConfidenceScorer = None,
        max_workers: int = None,
        stabilize: bool = True,
    ):
        self.axe_engine = axe_engine or AxeEngine()
        self.custom_rules = custom_rules if custom_rules is not None else build_custom_registry()
        self.partial_rules = partial_rules if partial_rules is not None else build_partial_registry()
        self.coga_rules = coga_rules if coga_rules is not None else build_coga_registry()
        self.scorer = scorer or ConfidenceScorer()
        self.max_workers = max_workers
        self.stabilize = stabilize

    @staticmethod
    def _http_status(driver) -> Optional[int]:
        try:
            status = driver.execute_script(NAVIGATION_STATUS_SCRIPT)
        except WebDriverException:
            return None
        return int(status) if status else None

    def _broken(self, url: str, started: float, error_type: str, message: str,
                status: Optional[int] = None) -> PageResult:
        return PageResult(visit=PageVisit(
            url=url,
            http_status=status,
            load_time_ms=int((time.monotonic() - started) * 1000),
            error_type=error_type,
            error_message=message,
        ))

    def evaluate_rules(
        self,
        driver,
        url: str,
        wcag_levels: Iterable[str],
        include_partial: bool = False,
        include_coga: bool = False,
    ) -> List[Finding]:
        """axe first (its failure aborts the page), then the DOM rule sets."""
        findings = self.axe_engine.audit(driver, wcag_levels, page_url=url)
        findings.extend(run_rules(driver, self.custom_rules, url, self.max_workers))

        extra: List = []
        if include_partial:
            extra.extend(self.partial_rules)
        if include_coga:
            extra.extend(self.coga_rules)
        findings.extend(run_rules(driver, extra, url, self.max_workers))
        return findings

    def audit_page(
        self,
        driver,
        url: str,
        wcag_levels: Iterable[str] = ('A', 'AA'),
        include_partial: bool = False,
        include_coga: bool = False,
        capture_screenshots: bool = False,
        extract_links: bool = False,
        seed_url: Optional[str] = None,
    ) -> PageResult:
        logger.info(f"Auditing {url}")
        started = time.monotonic()
        tracker = SeleniumRequestTracker(driver)
        stabilized = True
        try:
            try:
                tracker.attach()
            except WebDriverException as e:
                logger.warning(f"Request tracker unavailable on {url}: {e.msg or e}")
            try:
                driver.get(url)
            except WebDriverException as e:
                error_type, status = classify_error(e)
                logger.error(f"Failed to load {url} ({error_type}): {e.msg or e}")
                return self._broken(url, started, error_type, e.msg or str(e), status)

            status = self._http_status(driver)
            if status is not None and status >= 400:
                logger.error(f"HTTP {status} error for {url}")
                return self._broken(url, started, 'http_error', f'HTTP {status}', status)

            if self.stabilize:
                result = wait_for_page_stable(
                    SeleniumStateReader(driver), tracker if tracker.attached else None, url=url
                )
                stabilized = result.stable
        finally:
            tracker.detach()

        load_time_ms = int((time.monotonic() - started) * 1000)

        try:
            raw = self.evaluate_rules(driver, url, wcag_levels, include_partial, include_coga)
        except RuleEngineError as e:
            logger.error(f"axe-core failed on {url}: {e}")
            return self._broken(url, started, 'other', str(e), status)
        except WebDriverException as e:
            error_type, error_status = classify_error(e)
            logger.error(f"Driver failure while auditing {url}: {e.msg or e}")
            return self._broken(url, started, error_type, e.msg or str(e), error_status)

        kept, removed = filter_false_positives(raw)
        findings = [
            self.scorer.apply(finding).model_copy(update={'fingerprint': finding.rule_id})
            for finding in kept
        ]

        screenshots = capture_element_screenshots(driver, findings) if capture_screenshots else {}
        links = PageDiscoveryService.extract_links(driver, seed_url or url) if extract_links else []

        logger.info(
            f"Total violations for {url}: {len(findings)} ({len(removed)} filtered)"
        )
        return PageResult(
            visit=PageVisit(
                url=url,
                http_status=status,
                load_time_ms=load_time_ms,
                links=links,
                stabilized=stabilized,
            ),
            findings=findings,
            filtered_count=len(removed),
            filter_stats=get_filter_stats(removed),
            screenshots=screenshots,
        )
