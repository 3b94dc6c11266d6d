"""
Finding Schemas

A Finding is one raw rule violation on one page. Findings are frozen:
pipeline stages return enriched copies (model_copy) instead of mutating.
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

ImpactLevel = Literal["critical", "serious", "moderate", "minor"]
ConfidenceLevel = Literal["certain", "likely", "needs_review"]
ReviewReason = Literal[
    "context_dependent",
    "possibly_intentional",
    "external_resource",
    "user_preference",
    "detection_limited",
]
PageErrorType = Literal["timeout", "ssl_error", "connection_error", "http_error", "other"]

IMPACT_ORDER: Dict[str, int] = {"critical": 0, "serious": 1, "moderate": 2, "minor": 3}


class ConfidenceSignal(BaseModel):
    type: Literal["positive", "negative"]
    signal: str
    weight: float
    description: str

    class Config:
        frozen = True


class Finding(BaseModel):
    """One rule violation for one element on one page."""
    rule_id: str
    is_custom_rule: bool = False
    impact: ImpactLevel = "moderate"

    wcag_level: Optional[Literal["A", "AA", "AAA"]] = None
    wcag_version: Optional[str] = None
    wcag_criteria: List[str] = Field(default_factory=list)
    wcag_tags: List[str] = Field(default_factory=list)

    help: str = ""
    description: str = ""
    help_url: Optional[str] = None

    selector: str = ""
    full_path: Optional[str] = None
    xpath: Optional[str] = None
    html: str = ""
    parent_html: Optional[str] = None
    failure_summary: Optional[str] = None
    page_url: Optional[str] = None

    # Plain data measured in-page (font size, class list, surrounding text...)
    details: Dict[str, Any] = Field(default_factory=dict)

    needs_review: bool = False
    fingerprint: str = ""

    confidence_level: Optional[ConfidenceLevel] = None
    confidence_score: Optional[float] = None
    confidence_signals: List[ConfidenceSignal] = Field(default_factory=list)
    confidence_reason: Optional[ReviewReason] = None
    is_experimental: bool = False

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "rule_id": "image-alt",
                "impact": "critical",
                "wcag_level": "A",
                "wcag_criteria": ["1.1.1"],
                "selector": "img.hero",
                "html": "<img class=\"hero\" src=\"/hero.png\">",
                "fingerprint": "image-alt",
            }
        }


class PageVisit(BaseModel):
    url: str
    http_status: Optional[int] = None
    load_time_ms: int = 0
    error_type: Optional[PageErrorType] = None
    error_message: Optional[str] = None
    links: List[str] = Field(default_factory=list)
    stabilized: bool = True

    class Config:
        frozen = True

    @property
    def is_broken(self) -> bool:
        return self.error_type is not None
