from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from app.features.audit.schemas.finding import ConfidenceSignal, Finding
from app.features.audit.services.analysis.rule_tables import (
    AXE_RULE_CONFIDENCE,
    CUSTOM_RULE_CONFIDENCE,
    Adjustment,
    ElementContext,
    RuleConfidenceConfig,
)

CERTAIN_THRESHOLD = 0.9
LIKELY_THRESHOLD = 0.7

AXE_DEFAULT = ('certain', 0.95)
CUSTOM_DEFAULT = ('likely', 0.85)


@dataclass(frozen=True)
class ConfidenceResult:
    level: str
    score: float
    signals: Tuple[ConfidenceSignal, ...] = ()
    review_reason: Optional[str] = None
    is_experimental: bool = False


def level_for_score(score: float) -> str:
    if score >= CERTAIN_THRESHOLD:
        return 'certain'
    if score >= LIKELY_THRESHOLD:
        return 'likely'
    return 'needs_review'


def context_for(finding: Finding) -> ElementContext:
    """Scoring context built from what the rule recorded in-page."""
    details = finding.details or {}
    font_size = details.get('fontSize')
    return ElementContext(
        html=finding.html or '',
        selector=finding.selector or '',
        parent_html=finding.parent_html,
        page_url=finding.page_url,
        surrounding_text=details.get('surroundingText'),
        font_size=float(font_size) if isinstance(font_size, (int, float)) else None,
        class_list=str(details.get('classList') or ''),
    )


class ConfidenceScorer:
    """
    Scores how likely a finding is a true positive.

    The per-rule tables are injected; the defaults are the module-level
    read-only tables.
    """

    def __init__(
        self,
        axe_table: Mapping[str, RuleConfidenceConfig] = AXE_RULE_CONFIDENCE,
        custom_table: Mapping[str, RuleConfidenceConfig] = CUSTOM_RULE_CONFIDENCE,
    ):
        self.axe_table = axe_table
        self.custom_table = custom_table

    def config_for(self, finding: Finding) -> Optional[RuleConfidenceConfig]:
        table = self.custom_table if finding.is_custom_rule else self.axe_table
        return table.get(finding.rule_id)

    def is_experimental(self, finding: Finding) -> bool:
        if not finding.is_custom_rule:
            return False
        config = self.custom_table.get(finding.rule_id)
        return bool(config and config.experimental)

    def score(self, finding: Finding, context: Optional[ElementContext] = None) -> ConfidenceResult:
        config = self.config_for(finding)
        if config is None:
            level, score = CUSTOM_DEFAULT if finding.is_custom_rule else AXE_DEFAULT
            return ConfidenceResult(level=level, score=score)

        context = context or context_for(finding)
        adjustment = config.adjust(context) if config.adjust else Adjustment()

        delta = max(-1.0, min(1.0, adjustment.delta))
        final = max(0.0, min(1.0, config.base_score + delta))

        return ConfidenceResult(
            level=adjustment.level or level_for_score(final),
            score=round(final, 2),
            signals=tuple(adjustment.signals),
            review_reason=adjustment.reason or config.review_reason,
            is_experimental=config.experimental and finding.is_custom_rule,
        )

    def apply(self, finding: Finding, context: Optional[ElementContext] = None) -> Finding:
        result = self.score(finding, context)
        return finding.model_copy(update={
            'confidence_level': result.level,
            'confidence_score': result.score,
            'confidence_signals': list(result.signals),
            'confidence_reason': result.review_reason,
            'is_experimental': result.is_experimental,
        })
