import logging
import uuid
from datetime import datetime
from typing import Callable, List, Tuple
from urllib.parse import urlsplit

from app.features.audit.schemas.audit import AggregatedViolation, Audit, AuditRequest
from app.features.audit.schemas.finding import PageVisit
from app.features.audit.services.aggregation.aggregator import ViolationAggregator
from app.features.audit.services.analysis.page_auditor import PageAuditor
from app.features.audit.services.discovery.auth import apply_browser_auth
from app.features.audit.services.discovery.page_discovery import PageDiscoveryService
from app.features.audit.services.scoring.health import calculate_health_score
from app.features.audit.utils.error_classifier import classify_error
from app.platform.browser import build_driver
from app.platform.exceptions import DiscoveryError
from app.platform.utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)


class AuditRunner:
    """
    Runs one full site audit with a single browser session.

    Discovery and page audits share the driver and run strictly one page
    at a time. A broken page, or one whose audit raises, is recorded and
    skipped; it never fails the audit. The driver is always quit.
    """

    def __init__(self, page_auditor: PageAuditor = None):
        self.page_auditor = page_auditor or PageAuditor()

    @staticmethod
    def discover(driver, request: AuditRequest) -> List[str]:
        base_url = str(request.base_url)
        method = request.discovery_method

        if method == 'manual':
            return PageDiscoveryService.discover_manual(request.urls or [base_url], limit=request.max_pages)

        if method == 'sitemap':
            if request.sitemap_url:
                return PageDiscoveryService.discover_from_sitemap(
                    request.sitemap_url, request.max_pages, auth=request.auth
                )
            return PageDiscoveryService.fetch_sitemap(base_url, auth=request.auth)[:request.max_pages]

        if method == 'crawl':
            return PageDiscoveryService.crawl(
                driver,
                base_url,
                max_pages=request.max_pages,
                max_depth=request.max_depth,
                subdomain_policy=request.subdomain_policy,
                allowed_subdomains=request.allowed_subdomains,
                path_scope=urlsplit(base_url).path.rstrip('/') if request.path_scope else None,
                exclude_paths=request.exclude_paths,
            )

        if request.path_scope:
            result = PageDiscoveryService.discover_with_path_scope(
                driver,
                base_url,
                request.max_pages,
                exclude_paths=request.exclude_paths,
                max_depth=request.max_depth,
                subdomain_policy=request.subdomain_policy,
                allowed_subdomains=request.allowed_subdomains,
                auth=request.auth,
            )
        else:
            result = PageDiscoveryService.discover_with_margin(
                driver,
                base_url,
                request.max_pages,
                max_depth=request.max_depth,
                subdomain_policy=request.subdomain_policy,
                allowed_subdomains=request.allowed_subdomains,
                auth=request.auth,
                exclude_paths=request.exclude_paths,
            )
        logger.info(f"Margin discovery ({result.source}) found {len(result.urls)}/{result.target} URLs")
        return result.urls

    def run(
        self,
        request: AuditRequest,
        driver_factory: Callable = build_driver,
    ) -> Tuple[Audit, List[AggregatedViolation]]:
        base_url = normalize_url(str(request.base_url))
        created_at = datetime.utcnow()
        logger.info(f"Starting {request.discovery_method} audit of {base_url}")

        driver = driver_factory()
        try:
            apply_browser_auth(driver, base_url, request.auth)
            urls = self.discover(driver, request)
            if not urls:
                raise DiscoveryError(f"No pages discovered for {base_url}")

            aggregator = ViolationAggregator()
            pages: List[PageVisit] = []
            broken: List[PageVisit] = []
            for url in urls:
                if len(pages) >= request.max_pages:
                    break
                try:
                    result = self.page_auditor.audit_page(
                        driver,
                        url,
                        wcag_levels=request.wcag_levels,
                        include_partial=request.include_partial,
                        include_coga=request.include_coga,
                        capture_screenshots=request.capture_screenshots,
                    )
                except Exception as e:
                    logger.exception(f"Unexpected failure auditing {url}: {e}")
                    error_type, status = classify_error(e)
                    broken.append(PageVisit(
                        url=normalize_url(url),
                        http_status=status,
                        error_type=error_type,
                        error_message=str(e) or type(e).__name__,
                    ))
                    continue
                if result.visit.is_broken:
                    broken.append(result.visit)
                    continue
                pages.append(result.visit)
                aggregator.add_page(url, result.findings, result.screenshots)
        finally:
            try:
                driver.quit()
            except Exception as e:
                logger.warning(f"Failed to quit browser session: {e}")

        violations = aggregator.aggregated()
        summary = aggregator.summary(violations)
        audit = Audit(
            id=str(uuid.uuid4()),
            base_url=base_url,
            created_at=created_at,
            completed_at=datetime.utcnow(),
            summary=summary,
            health_score=calculate_health_score(summary),
            processed_pages=len(pages),
            broken_pages_count=len(broken),
            broken_pages=broken,
            pages=pages,
            wcag_levels=list(request.wcag_levels),
        )
        logger.info(
            f"Audit {audit.id} finished: {audit.processed_pages} pages, "
            f"{len(broken)} broken, {summary.total} violations, health {audit.health_score}"
        )
        return audit, violations
