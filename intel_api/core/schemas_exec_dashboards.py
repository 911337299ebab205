"""Pydantic schemas for the Executive Command Center.

Database rows are snake_case; the JSON surface is camelCase. Every model
accepts either spelling on input and serialises with camelCase aliases.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# JSONB columns that may come back as NULL from older rows
_JSON_OBJECT_COLUMNS = ("filters", "meta", "metric_trend", "context_snapshot", "source_breakdown")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_api(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")

    @field_validator(*_JSON_OBJECT_COLUMNS, mode="before", check_fields=False)
    @classmethod
    def _null_json_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


# ============================================================================
# Enums
# ============================================================================


class TimeWindow(str, Enum):
    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    LAST_90D = "90d"


class PrimaryFocus(str, Enum):
    RISK = "risk"
    REPUTATION = "reputation"
    GROWTH = "growth"
    GOVERNANCE = "governance"
    MIXED = "mixed"


class SourceSystem(str, Enum):
    RISK_RADAR = "risk_radar"
    CRISIS = "crisis"
    REPUTATION = "reputation"
    GOVERNANCE = "governance"
    MEDIA_PERFORMANCE = "media_performance"
    COMPETITIVE_INTEL = "competitive_intel"
    PERSONAS = "personas"
    OUTREACH = "outreach"
    MEDIA_MONITORING = "media_monitoring"
    PRESS_RELEASES = "press_releases"
    PITCHES = "pitches"
    MEDIA_LISTS = "media_lists"
    JOURNALIST_DISCOVERY = "journalist_discovery"
    OTHER = "other"


class ActionType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    VIEWED = "viewed"
    REFRESHED = "refreshed"
    NARRATIVE_GENERATED = "narrative_generated"
    EXPORTED = "exported"


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class InsightSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


SOURCE_SYSTEM_LABELS: dict[str, str] = {
    "risk_radar": "Risk Radar",
    "crisis": "Crisis Response",
    "reputation": "Brand Reputation",
    "governance": "Governance & Compliance",
    "media_performance": "Media Performance",
    "competitive_intel": "Competitive Intelligence",
    "personas": "Audience Personas",
    "outreach": "PR Outreach",
    "media_monitoring": "Media Monitoring",
    "press_releases": "Press Releases",
    "pitches": "Pitch Engine",
    "media_lists": "Media Lists",
    "journalist_discovery": "Journalist Discovery",
    "other": "Other",
}

TIME_WINDOW_LABELS: dict[str, str] = {
    "24h": "Last 24 Hours",
    "7d": "Last 7 Days",
    "30d": "Last 30 Days",
    "90d": "Last 90 Days",
}

PRIMARY_FOCUS_LABELS: dict[str, str] = {
    "risk": "Risk Management",
    "reputation": "Brand Reputation",
    "growth": "Growth & Opportunities",
    "governance": "Governance & Compliance",
    "mixed": "Mixed Overview",
}

# Minimum severity_or_impact for each severity threshold filter
SEVERITY_THRESHOLDS: dict[str, float] = {
    "critical": 90,
    "high": 70,
    "medium": 40,
    "low": 10,
    "info": 0,
}


# ============================================================================
# Value objects
# ============================================================================


class KpiTrend(CamelModel):
    direction: TrendDirection = TrendDirection.FLAT
    change: float = 0
    previous_value: float | None = None
    change_percent: float | None = None


class CustomDateRange(CamelModel):
    start_date: datetime
    end_date: datetime


class DashboardFilters(CamelModel):
    source_systems_included: list[SourceSystem] | None = None
    source_systems_excluded: list[SourceSystem] | None = None
    severity_threshold: InsightSeverity | None = None
    categories: list[str] | None = None
    exclude_archived: bool | None = None
    custom_date_range: CustomDateRange | None = None


class DashboardSummary(CamelModel):
    total_insights: int = 0
    top_risks_count: int = 0
    top_opportunities_count: int = 0
    active_kpis: int = 0
    overall_risk_index: float | None = None
    reputation_score: float | None = None
    crisis_count: float | None = None
    governance_score: float | None = None
    last_updated: datetime | None = None
    source_breakdown: dict[str, int] = Field(default_factory=dict)


# ============================================================================
# Entities
# ============================================================================


class ExecDashboard(CamelModel):
    id: str
    org_id: str
    title: str
    description: str | None = None
    time_window: TimeWindow
    primary_focus: PrimaryFocus
    filters: DashboardFilters = Field(default_factory=DashboardFilters)
    summary: DashboardSummary | None = None
    is_default: bool = False
    is_archived: bool = False
    last_refreshed_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ExecDashboardWithCounts(ExecDashboard):
    insights_count: int = 0
    kpis_count: int = 0
    has_narrative: bool = False


class ExecInsight(CamelModel):
    id: str
    org_id: str
    dashboard_id: str
    source_system: SourceSystem
    insight_type: str
    severity_or_impact: float = 0
    category: str | None = None
    title: str
    description: str | None = None
    link_url: str | None = None
    linked_entity_type: str | None = None
    linked_entity_id: str | None = None
    is_top_insight: bool = False
    is_opportunity: bool = False
    is_risk: bool = False
    sort_order: int = 0
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class ExecKpi(CamelModel):
    id: str
    org_id: str
    dashboard_id: str
    metric_key: str
    metric_label: str
    metric_value: float = 0
    metric_unit: str | None = None
    metric_trend: KpiTrend = Field(default_factory=KpiTrend)
    display_order: int = 0
    category: str | None = None
    source_system: SourceSystem | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class NarrativeRiskSummary(CamelModel):
    title: str
    severity: float
    source: SourceSystem
    description: str | None = None


class NarrativeOpportunitySummary(CamelModel):
    title: str
    impact: float
    source: SourceSystem
    description: str | None = None


class NarrativeKpiSnapshot(CamelModel):
    key: str
    label: str
    value: float
    trend: TrendDirection = TrendDirection.FLAT
    change_percent: float | None = None


class NarrativeContext(CamelModel):
    time_window: TimeWindow
    primary_focus: PrimaryFocus
    top_risks: list[NarrativeRiskSummary] = Field(default_factory=list)
    top_opportunities: list[NarrativeOpportunitySummary] = Field(default_factory=list)
    kpi_snapshot: list[NarrativeKpiSnapshot] = Field(default_factory=list)
    source_system_stats: dict[str, int] = Field(default_factory=dict)
    custom_prompt_hint: str | None = None
    generated_at: datetime


class ExecNarrative(CamelModel):
    id: str
    org_id: str
    dashboard_id: str
    model_name: str
    tokens_used: int = 0
    duration_ms: int = 0
    narrative_text: str
    risks_section: str | None = None
    opportunities_section: str | None = None
    storyline_section: str | None = None
    context_snapshot: dict[str, Any] = Field(default_factory=dict)
    is_current: bool = True
    created_by: str | None = None
    created_at: datetime | None = None


class ExecAuditEntry(CamelModel):
    id: str
    org_id: str
    dashboard_id: str | None = None
    action_type: ActionType
    user_id: str | None = None
    description: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime | None = None


# ============================================================================
# Drafts produced by upstream aggregation (not yet persisted)
# ============================================================================


class KpiDraft(CamelModel):
    metric_key: str
    metric_label: str
    metric_value: float
    metric_unit: str | None = None
    metric_trend: KpiTrend = Field(default_factory=KpiTrend)
    category: str | None = None
    source_system: SourceSystem | None = None
    display_order: int = 0
    meta: dict[str, Any] = Field(default_factory=dict)


class InsightDraft(CamelModel):
    source_system: SourceSystem
    insight_type: str
    severity_or_impact: float = 0
    category: str | None = None
    title: str
    description: str | None = None
    link_url: str | None = None
    linked_entity_type: str | None = None
    linked_entity_id: str | None = None
    is_top_insight: bool = False
    is_risk: bool = False
    is_opportunity: bool = False
    sort_order: int = 0
    meta: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Request bodies
# ============================================================================


class CreateDashboardInput(CamelModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    time_window: TimeWindow | None = None
    primary_focus: PrimaryFocus | None = None
    filters: DashboardFilters | None = None
    is_default: bool | None = None


class UpdateDashboardInput(CamelModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    time_window: TimeWindow | None = None
    primary_focus: PrimaryFocus | None = None
    filters: DashboardFilters | None = None
    is_default: bool | None = None
    is_archived: bool | None = None


class RefreshDashboardInput(CamelModel):
    time_window_override: TimeWindow | None = None
    primary_focus_override: PrimaryFocus | None = None
    regenerate_narrative: bool = True
    force_refresh: bool = False


class GenerateNarrativeInput(CamelModel):
    custom_prompt_hint: str | None = Field(default=None, max_length=500)


# ============================================================================
# Response payloads
# ============================================================================


class ListDashboardsResponse(CamelModel):
    dashboards: list[ExecDashboardWithCounts]
    total: int
    has_more: bool


class DashboardDetailResponse(CamelModel):
    dashboard: ExecDashboard
    kpis: list[ExecKpi]
    top_insights: list[ExecInsight]
    current_narrative: ExecNarrative | None = None


class RefreshDashboardResponse(CamelModel):
    dashboard: ExecDashboard
    kpis_created: int
    insights_created: int
    narrative_generated: bool
    duration_ms: int


class InsightsBySource(CamelModel):
    source_system: SourceSystem
    source_label: str
    insights: list[ExecInsight]
    count: int


class KpisByCategory(CamelModel):
    category: str
    kpis: list[ExecKpi]
    count: int


class ListInsightsResponse(CamelModel):
    insights: list[ExecInsight]
    total: int
    has_more: bool
    by_source: list[InsightsBySource] = Field(default_factory=list)


class ListKpisResponse(CamelModel):
    kpis: list[ExecKpi]
    total: int
    by_category: list[KpisByCategory] = Field(default_factory=list)


class ListNarrativesResponse(CamelModel):
    narratives: list[ExecNarrative]
    total: int
    has_more: bool


class GenerateNarrativeResponse(CamelModel):
    narrative: ExecNarrative
    tokens_used: int
    duration_ms: int


class ListAuditLogResponse(CamelModel):
    entries: list[ExecAuditEntry]
    total: int
    has_more: bool
