import hashlib
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from app.features.audit.schemas.audit import (
    AggregatedViolation,
    AuditSummary,
    SeverityCounts,
    UniqueElement,
)
from app.features.audit.schemas.finding import IMPACT_ORDER, Finding
from app.features.audit.services.aggregation.pattern_grouping import (
    calculate_severity_pattern_summary,
    count_unique_patterns,
)
from app.features.audit.services.scoring.priority import calculate_priority
from app.platform.utils.url_normalizer import normalize_url

logger = logging.getLogger(__name__)

HTML_KEY_LENGTH = 500
MAX_UNIQUE_ELEMENTS = 20


def element_key(html: str) -> str:
    return hashlib.md5((html or '')[:HTML_KEY_LENGTH].encode('utf-8')).hexdigest()


@dataclass
class _Bucket:
    sample: Finding
    occurrences: int = 0
    page_urls: List[str] = field(default_factory=list)
    elements: Dict[str, UniqueElement] = field(default_factory=dict)
    criteria: List[str] = field(default_factory=list)
    impact: str = 'minor'


class ViolationAggregator:
    """
    Merges per-page findings into one AggregatedViolation per fingerprint.

    Pages are fed one at a time so an audit never keeps every raw finding
    alive. Unique elements are keyed by the hash of their html snippet and
    kept in discovery order, at most 20 per violation. A rule that reports
    records at different impacts is aggregated at the most severe one.
    """

    def __init__(self):
        self._buckets: Dict[str, _Bucket] = {}
        self._screenshots: Dict[str, str] = {}

    def add_page(self, page_url: str, findings: Iterable[Finding],
                 screenshots: Optional[Dict[str, str]] = None) -> None:
        page = normalize_url(page_url)
        for finding in findings:
            key = finding.fingerprint or finding.rule_id
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = self._buckets[key] = _Bucket(sample=finding, impact=finding.impact)
            elif IMPACT_ORDER[finding.impact] < IMPACT_ORDER[bucket.impact]:
                bucket.impact = finding.impact

            bucket.occurrences += 1
            if page not in bucket.page_urls:
                bucket.page_urls.append(page)
            for criterion in finding.wcag_criteria:
                if criterion not in bucket.criteria:
                    bucket.criteria.append(criterion)

            html_key = element_key(finding.html)
            element = bucket.elements.get(html_key)
            if element is not None:
                element.count += 1
                if page not in element.pages:
                    element.pages.append(page)
            elif len(bucket.elements) < MAX_UNIQUE_ELEMENTS:
                bucket.elements[html_key] = UniqueElement(
                    html=(finding.html or '')[:HTML_KEY_LENGTH],
                    selector=finding.selector,
                    full_path=finding.full_path,
                    xpath=finding.xpath,
                    pages=[page],
                )

        for rule_id, image in (screenshots or {}).items():
            self._screenshots.setdefault(rule_id, image)

    def _build(self, fingerprint: str, bucket: _Bucket) -> AggregatedViolation:
        sample = bucket.sample
        elements = list(bucket.elements.values())
        screenshot = self._screenshots.get(sample.rule_id)
        if screenshot and elements and elements[0].screenshot is None:
            elements[0] = elements[0].model_copy(update={'screenshot': screenshot})

        return AggregatedViolation(
            fingerprint=fingerprint,
            rule_id=sample.rule_id,
            is_custom_rule=sample.is_custom_rule,
            impact=bucket.impact,
            wcag_level=sample.wcag_level,
            wcag_version=sample.wcag_version,
            wcag_criteria=list(bucket.criteria),
            help=sample.help,
            description=sample.description,
            help_url=sample.help_url,
            occurrences=bucket.occurrences,
            page_urls=list(bucket.page_urls),
            unique_elements=elements,
            patterns=count_unique_patterns(elements),
            priority=calculate_priority(bucket.impact, bucket.occurrences, len(bucket.page_urls)),
            needs_review=sample.needs_review,
            confidence_level=sample.confidence_level,
            confidence_score=sample.confidence_score,
            is_experimental=sample.is_experimental,
            sample=sample,
        )

    def aggregated(self) -> List[AggregatedViolation]:
        """Highest priority first, ties broken by occurrences."""
        violations = [self._build(key, bucket) for key, bucket in self._buckets.items()]
        violations.sort(key=lambda v: (v.priority, v.occurrences), reverse=True)
        logger.info(f"Aggregated {len(violations)} unique violations")
        return violations

    def summary(self, violations: Optional[List[AggregatedViolation]] = None) -> AuditSummary:
        """
        Occurrence counts per severity plus unique selector patterns per
        severity, both read from the aggregated violations so the two always
        agree.
        """
        violations = violations if violations is not None else self.aggregated()
        counts = {'critical': 0, 'serious': 0, 'moderate': 0, 'minor': 0}
        for violation in violations:
            counts[violation.impact] += violation.occurrences

        patterns = calculate_severity_pattern_summary(violations)
        return AuditSummary(
            **counts,
            total=sum(counts.values()),
            patterns=SeverityCounts(**{s: patterns[s]['patterns'] for s in counts}),
        )
