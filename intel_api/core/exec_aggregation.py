"""
Upstream aggregation for executive dashboards.

Pulls the latest signal from each upstream intelligence system that matches
the dashboard's primary focus and turns it into KPI and insight drafts.
Sources that are missing or fail are skipped; a refresh never fails because
one upstream system is down.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from intel_api.core.config import get_settings
from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import (
    SEVERITY_THRESHOLDS,
    DashboardFilters,
    InsightDraft,
    KpiDraft,
    KpiTrend,
    PrimaryFocus,
    SourceSystem,
    TimeWindow,
    TrendDirection,
)
from intel_api.db import upstream_signals

logger = get_logger(__name__)

TIME_WINDOW_DELTAS: dict[str, timedelta] = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}

_RISK = {PrimaryFocus.RISK.value, PrimaryFocus.MIXED.value}
_REPUTATION = {PrimaryFocus.REPUTATION.value, PrimaryFocus.MIXED.value}
_GOVERNANCE = {PrimaryFocus.GOVERNANCE.value, PrimaryFocus.MIXED.value}
_GROWTH = {PrimaryFocus.GROWTH.value, PrimaryFocus.MIXED.value}


@dataclass
class AggregationResult:
    kpis: list[KpiDraft] = field(default_factory=list)
    insights: list[InsightDraft] = field(default_factory=list)


def window_start(time_window: TimeWindow | str, now: datetime | None = None) -> datetime:
    """Start of the lookback window ending at ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    key = time_window.value if isinstance(time_window, TimeWindow) else time_window
    return now - TIME_WINDOW_DELTAS.get(key, TIME_WINDOW_DELTAS["7d"])


def _kpi(
    key: str,
    label: str,
    value: float,
    unit: str,
    category: str,
    source: SourceSystem,
    direction: TrendDirection = TrendDirection.FLAT,
) -> KpiDraft:
    return KpiDraft(
        metric_key=key,
        metric_label=label,
        metric_value=value,
        metric_unit=unit,
        metric_trend=KpiTrend(direction=direction, change=0),
        category=category,
        source_system=source,
    )


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


# ============================================================================
# Per-source collectors
# ============================================================================


def _collect_risk_radar(org_id: str, since: datetime, result: AggregationResult) -> None:
    snapshot = upstream_signals.get_active_risk_snapshot(org_id)
    if not snapshot:
        return

    index = snapshot.get("overall_risk_index") or 0
    result.kpis.append(
        _kpi("overall_risk_index", "Overall Risk Index", index, "score", "risk", SourceSystem.RISK_RADAR)
    )

    level = (snapshot.get("risk_level") or "").lower()
    if level in ("high", "critical"):
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.RISK_RADAR,
                insight_type="risk_level_alert",
                severity_or_impact=index or 75,
                category="risk",
                title=f"Risk Level: {level.upper()}",
                description=f"Overall risk index at {index}. Immediate attention required.",
                is_top_insight=True,
                is_risk=True,
            )
        )


def _collect_crisis(org_id: str, since: datetime, result: AggregationResult) -> None:
    incidents, active = upstream_signals.list_active_crises(org_id, since)

    result.kpis.append(
        _kpi(
            "active_crises",
            "Active Crises",
            active,
            "count",
            "risk",
            SourceSystem.CRISIS,
            direction=TrendDirection.UP if active > 0 else TrendDirection.FLAT,
        )
    )

    critical = [i for i in incidents if i.get("severity") == "critical"]
    if critical:
        n = len(critical)
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.CRISIS,
                insight_type="critical_crisis",
                severity_or_impact=95,
                category="crisis",
                title=f"{n} Critical {_plural(n, 'Crisis', 'Crises')} Active",
                description="Critical crisis incidents require immediate executive attention.",
                is_top_insight=True,
                is_risk=True,
            )
        )


def _collect_reputation(org_id: str, since: datetime, result: AggregationResult) -> None:
    snapshot = upstream_signals.get_latest_snapshot("brand_reputation_snapshots", org_id)
    if not snapshot:
        return

    score = snapshot.get("overall_score") or 0
    result.kpis.append(
        _kpi("reputation_score", "Reputation Score", score, "score", "reputation", SourceSystem.REPUTATION)
    )

    if score >= 80:
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.REPUTATION,
                insight_type="strong_reputation",
                severity_or_impact=score,
                category="reputation",
                title="Strong Brand Reputation",
                description=(
                    f"Brand reputation score of {score} indicates positive market perception."
                ),
                is_top_insight=True,
                is_opportunity=True,
            )
        )
    elif score < 50:
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.REPUTATION,
                insight_type="reputation_concern",
                severity_or_impact=100 - score,
                category="reputation",
                title="Reputation Needs Attention",
                description=f"Brand reputation score of {score} suggests improvement needed.",
                is_top_insight=True,
                is_risk=True,
            )
        )


def _collect_governance(org_id: str, since: datetime, result: AggregationResult) -> None:
    snapshot = upstream_signals.get_latest_snapshot("governance_compliance_snapshots", org_id)
    if not snapshot:
        return

    score = snapshot.get("compliance_score") or 0
    result.kpis.append(
        _kpi("compliance_score", "Compliance Score", score, "percent", "governance", SourceSystem.GOVERNANCE)
    )

    if score < 70:
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.GOVERNANCE,
                insight_type="compliance_gap",
                severity_or_impact=100 - score,
                category="governance",
                title="Compliance Gap Identified",
                description=f"Compliance score of {score}% requires remediation.",
                is_top_insight=True,
                is_risk=True,
            )
        )


def _collect_media_performance(org_id: str, since: datetime, result: AggregationResult) -> None:
    snapshot = upstream_signals.get_latest_snapshot("media_performance_snapshots", org_id)
    if not snapshot:
        return

    evi = snapshot.get("evi_score") or 0
    result.kpis.append(
        _kpi("media_evi", "Media EVI", evi, "score", "media", SourceSystem.MEDIA_PERFORMANCE)
    )

    if evi >= 75:
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.MEDIA_PERFORMANCE,
                insight_type="strong_media_performance",
                severity_or_impact=evi,
                category="media",
                title="Strong Media Performance",
                description=f"EVI score of {evi} indicates effective media coverage.",
                is_top_insight=True,
                is_opportunity=True,
            )
        )


def _collect_competitive_intel(org_id: str, since: datetime, result: AggregationResult) -> None:
    snapshot = upstream_signals.get_latest_snapshot("competitive_intel_snapshots", org_id)
    if not snapshot:
        return

    sov = snapshot.get("share_of_voice") or 0
    result.kpis.append(
        _kpi("share_of_voice", "Share of Voice", sov, "percent", "competitive", SourceSystem.COMPETITIVE_INTEL)
    )

    if sov >= 30:
        result.insights.append(
            InsightDraft(
                source_system=SourceSystem.COMPETITIVE_INTEL,
                insight_type="market_leadership",
                severity_or_impact=sov,
                category="competitive",
                title="Strong Market Position",
                description=f"Share of voice at {sov}% indicates market leadership.",
                is_top_insight=True,
                is_opportunity=True,
            )
        )


def _collect_outreach(org_id: str, since: datetime, result: AggregationResult) -> None:
    active = upstream_signals.count_active_outreach_campaigns(org_id, since)
    if active <= 0:
        return

    result.kpis.append(
        _kpi("active_campaigns", "Active Campaigns", active, "count", "outreach", SourceSystem.OUTREACH)
    )
    result.insights.append(
        InsightDraft(
            source_system=SourceSystem.OUTREACH,
            insight_type="active_campaigns",
            severity_or_impact=min(active * 10, 100),
            category="outreach",
            title=f"{active} Active Outreach {_plural(active, 'Campaign', 'Campaigns')}",
            description="PR outreach campaigns are in progress, driving media engagement.",
            is_top_insight=False,
            is_opportunity=True,
        )
    )


Collector = Callable[[str, datetime, AggregationResult], None]

# Collection order determines KPI display order
COLLECTORS: list[tuple[SourceSystem, set[str], Collector]] = [
    (SourceSystem.RISK_RADAR, _RISK, _collect_risk_radar),
    (SourceSystem.CRISIS, _RISK, _collect_crisis),
    (SourceSystem.REPUTATION, _REPUTATION, _collect_reputation),
    (SourceSystem.GOVERNANCE, _GOVERNANCE, _collect_governance),
    (SourceSystem.MEDIA_PERFORMANCE, _GROWTH, _collect_media_performance),
    (SourceSystem.COMPETITIVE_INTEL, _GROWTH, _collect_competitive_intel),
    (SourceSystem.OUTREACH, _GROWTH, _collect_outreach),
]


# ============================================================================
# Filtering and ordering
# ============================================================================


def _source_allowed(source: str | None, filters: DashboardFilters) -> bool:
    if source is None:
        return True
    if filters.source_systems_included and source not in filters.source_systems_included:
        return False
    if filters.source_systems_excluded and source in filters.source_systems_excluded:
        return False
    return True


def _category_allowed(category: str | None, filters: DashboardFilters) -> bool:
    if not filters.categories:
        return True
    return category in filters.categories


def apply_filters(result: AggregationResult, filters: DashboardFilters | None) -> AggregationResult:
    """Restrict KPIs and insights to the dashboard's configured sources and categories."""
    if filters is None:
        return result

    kpis = [
        k
        for k in result.kpis
        if _source_allowed(k.source_system, filters) and _category_allowed(k.category, filters)
    ]
    insights = [
        i
        for i in result.insights
        if _source_allowed(i.source_system, filters) and _category_allowed(i.category, filters)
    ]

    if filters.severity_threshold:
        minimum = SEVERITY_THRESHOLDS.get(filters.severity_threshold, 0)
        insights = [i for i in insights if i.severity_or_impact >= minimum]

    return AggregationResult(kpis=kpis, insights=insights)


def order_and_cap(result: AggregationResult) -> AggregationResult:
    """
    Sort insights top-first then by severity, number KPIs and insights in
    their final order, and cap both lists at the configured maximums.
    """
    settings = get_settings()

    insights = sorted(
        result.insights,
        key=lambda i: (not i.is_top_insight, -i.severity_or_impact),
    )[: settings.EXEC_MAX_INSIGHTS_PER_DASHBOARD]
    for position, insight in enumerate(insights):
        insight.sort_order = position

    kpis = result.kpis[: settings.EXEC_MAX_KPIS_PER_DASHBOARD]
    for position, kpi in enumerate(kpis):
        kpi.display_order = position

    return AggregationResult(kpis=kpis, insights=insights)


def aggregate_upstream_data(
    org_id: str,
    time_window: TimeWindow | str,
    primary_focus: PrimaryFocus | str,
    filters: DashboardFilters | None = None,
    now: datetime | None = None,
) -> AggregationResult:
    """
    Collect KPI and insight drafts from every upstream system relevant to
    ``primary_focus``.

    Args:
        org_id: Org whose upstream data is read
        time_window: Lookback window for count-based sources
        primary_focus: Which upstream systems to consult
        filters: Dashboard filters restricting sources and categories
        now: Reference time (defaults to current UTC time)

    Returns:
        AggregationResult with ordered, capped drafts
    """
    focus = primary_focus.value if isinstance(primary_focus, PrimaryFocus) else primary_focus
    since = window_start(time_window, now)
    result = AggregationResult()

    for source, focuses, collect in COLLECTORS:
        if focus not in focuses:
            continue
        if filters is not None and not _source_allowed(source.value, filters):
            continue
        try:
            collect(org_id, since, result)
        except Exception as e:
            logger.debug(f"{source.value} data unavailable for org {org_id}: {e}")

    result = order_and_cap(apply_filters(result, filters))

    logger.info(
        f"Aggregated upstream data for org {org_id}",
        extra={
            "focus": focus,
            "kpis": len(result.kpis),
            "insights": len(result.insights),
        },
    )
    return result
