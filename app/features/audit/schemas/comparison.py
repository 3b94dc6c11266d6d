"""
Comparison Schemas

Plain structured records for audit-to-audit deltas, trends and insights.
No formatting or localization happens here: insights are (type, key, params)
seeds that the caller renders.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.features.audit.schemas.audit import AggregatedViolation, Audit, AuditSummary
from app.features.audit.schemas.finding import ImpactLevel

ViolationChangeType = Literal["new", "fixed", "persistent", "worsened", "improved"]
InsightType = Literal["positive", "negative", "warning", "neutral"]
TrendDirection = Literal["up", "down", "stable"]


class ComparisonDelta(BaseModel):
    health_score: int = 0
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    minor: int = 0
    total: int = 0
    pages_audited: int = 0
    broken_pages: int = 0


class ViolationSnapshot(BaseModel):
    occurrences: int
    page_count: int
    impact: ImpactLevel


class ChangeAmount(BaseModel):
    occurrences: int = 0
    page_count: int = 0


class ViolationChangeDetail(BaseModel):
    type: ViolationChangeType
    rule_id: str
    fingerprint: str
    help: str = ""
    description: str = ""
    current: Optional[ViolationSnapshot] = None
    previous: Optional[ViolationSnapshot] = None
    delta: ChangeAmount = Field(default_factory=ChangeAmount)

    @property
    def impact(self) -> str:
        source = self.current or self.previous
        return source.impact if source else "minor"


class ComparisonViolations(BaseModel):
    new: List[ViolationChangeDetail] = Field(default_factory=list)
    fixed: List[ViolationChangeDetail] = Field(default_factory=list)
    persistent: List[ViolationChangeDetail] = Field(default_factory=list)
    worsened: List[ViolationChangeDetail] = Field(default_factory=list)
    improved: List[ViolationChangeDetail] = Field(default_factory=list)


class ComparisonCounts(BaseModel):
    new: int = 0
    fixed: int = 0
    persistent: int = 0
    worsened: int = 0
    improved: int = 0


class ComparisonResult(BaseModel):
    delta: ComparisonDelta
    violations: ComparisonViolations
    counts: ComparisonCounts


class Insight(BaseModel):
    type: InsightType
    key: str
    params: Dict[str, Any] = Field(default_factory=dict)


class TrendPoint(BaseModel):
    date: str = ""
    value: float


class TrendData(BaseModel):
    direction: TrendDirection = "stable"
    change_percent: float = 0.0
    change_absolute: float = 0.0
    values: List[TrendPoint] = Field(default_factory=list)


class EvolutionTrends(BaseModel):
    health_score: TrendData
    critical: TrendData
    serious: TrendData
    moderate: TrendData
    minor: TrendData
    total: TrendData


class AuditSnapshot(BaseModel):
    """One point of an audit time series."""
    id: str = ""
    created_at: datetime
    summary: Optional[AuditSummary] = None
    health_score: Optional[float] = None


class CompareRequest(BaseModel):
    current: Audit
    current_violations: List[AggregatedViolation] = Field(default_factory=list)
    previous: Audit
    previous_violations: List[AggregatedViolation] = Field(default_factory=list)


class TrendsRequest(BaseModel):
    audits: List[AuditSnapshot]
