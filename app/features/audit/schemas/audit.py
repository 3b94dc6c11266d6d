"""
Audit Schemas

Request model for starting an audit plus the audit-level aggregates it
produces (UniqueElement, AggregatedViolation, AuditSummary, Audit).
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl

from app.features.audit.schemas.finding import Finding, ImpactLevel, PageVisit

DiscoveryMethod = Literal["manual", "sitemap", "crawl", "margin"]
SubdomainPolicyName = Literal["main_only", "all_subdomains", "specific"]
WcagLevel = Literal["A", "AA", "AAA"]


class AuthConfig(BaseModel):
    """Credentials injected into the browser context (and sitemap requests)."""
    type: Literal["none", "bearer", "cookie"] = "none"
    token: Optional[str] = None
    cookies: Optional[str] = None  # raw "k=v; k2=v2"


class AuditRequest(BaseModel):
    """Request to audit a site."""
    base_url: HttpUrl
    discovery_method: DiscoveryMethod = "crawl"
    urls: List[str] = Field(default_factory=list)
    sitemap_url: Optional[str] = None
    max_pages: int = Field(default=20, ge=1, le=500)
    max_depth: int = Field(default=3, ge=0, le=10)
    path_scope: bool = False
    exclude_paths: List[str] = Field(default_factory=list)
    wcag_levels: List[WcagLevel] = Field(default_factory=lambda: ["A", "AA"])
    include_partial: bool = False
    include_coga: bool = False
    subdomain_policy: SubdomainPolicyName = "main_only"
    allowed_subdomains: List[str] = Field(default_factory=list)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    capture_screenshots: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "base_url": "https://example.com.br",
                "discovery_method": "margin",
                "max_pages": 20,
                "wcag_levels": ["A", "AA"],
                "include_partial": True,
                "subdomain_policy": "main_only",
            }
        }


class UniqueElement(BaseModel):
    html: str
    selector: str = ""
    full_path: Optional[str] = None
    xpath: Optional[str] = None
    count: int = 1
    pages: List[str] = Field(default_factory=list)
    screenshot: Optional[str] = None  # base64 PNG when captured


class AggregatedViolation(BaseModel):
    """All occurrences of one fingerprint across an audit."""
    fingerprint: str
    rule_id: str
    is_custom_rule: bool = False
    impact: ImpactLevel
    wcag_level: Optional[str] = None
    wcag_version: Optional[str] = None
    wcag_criteria: List[str] = Field(default_factory=list)
    help: str = ""
    description: str = ""
    help_url: Optional[str] = None
    occurrences: int = 0
    page_urls: List[str] = Field(default_factory=list)
    unique_elements: List[UniqueElement] = Field(default_factory=list)
    patterns: int = 0
    priority: int = 0
    needs_review: bool = False
    confidence_level: Optional[str] = None
    confidence_score: Optional[float] = None
    is_experimental: bool = False
    sample: Optional[Finding] = None

    @property
    def page_count(self) -> int:
        return len(self.page_urls)


class SeverityCounts(BaseModel):
    critical: int = 0
    serious: int = 0
    moderate: int = 0
    minor: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "serious": self.serious,
            "moderate": self.moderate,
            "minor": self.minor,
        }


class AuditSummary(SeverityCounts):
    """Occurrence counts per severity; `patterns` holds unique template counts."""
    total: int = 0
    patterns: Optional[SeverityCounts] = None


class Audit(BaseModel):
    id: str
    base_url: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    summary: Optional[AuditSummary] = None
    health_score: Optional[int] = None
    processed_pages: int = 0
    broken_pages_count: int = 0
    broken_pages: List[PageVisit] = Field(default_factory=list)
    pages: List[PageVisit] = Field(default_factory=list)
    wcag_levels: List[str] = Field(default_factory=list)

    class Config:
        frozen = True
