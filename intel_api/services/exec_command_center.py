"""
Executive Command Center orchestration.

Route handlers stay thin; everything that touches more than one table
(create with default handling, refresh, narrative generation, grouped
listings) lives here.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import Request

from intel_api.core.auth_middleware import OrgContext
from intel_api.core.config import get_settings
from intel_api.core.errors import NotFoundError
from intel_api.core.exec_aggregation import aggregate_upstream_data
from intel_api.core.exec_narrative import build_context, generate_narrative_content
from intel_api.core.llm_usage import log_llm_usage
from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import (
    SOURCE_SYSTEM_LABELS,
    ActionType,
    CreateDashboardInput,
    DashboardDetailResponse,
    DashboardSummary,
    ExecDashboard,
    ExecInsight,
    ExecKpi,
    ExecNarrative,
    GenerateNarrativeInput,
    GenerateNarrativeResponse,
    InsightsBySource,
    KpisByCategory,
    NarrativeContext,
    RefreshDashboardInput,
    RefreshDashboardResponse,
    UpdateDashboardInput,
)
from intel_api.db import exec_dashboards, exec_insights, exec_kpis, exec_narratives
from intel_api.db.exec_audit_log import log_dashboard_action

logger = get_logger(__name__)

DEFAULT_DASHBOARD_TITLE = "Executive Dashboard"
TOP_INSIGHTS_LIMIT = 10
UNCATEGORIZED = "uncategorized"

# Columns that may be cleared with an explicit null in a PATCH body
_NULLABLE_COLUMNS = {"description"}


@dataclass
class Actor:
    """Who is acting, in which org, and from where (for the audit trail)."""

    org_id: str
    user_id: str | None
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls, org: OrgContext, request: Request | None = None) -> "Actor":
        # API key callers have no users row to reference
        is_system = bool(org.auth and org.auth.is_system)
        return cls(
            org_id=org.org_id,
            user_id=None if is_system else org.user_id,
            ip_address=request.client.host if request and request.client else None,
            user_agent=request.headers.get("user-agent") if request else None,
        )


def _audit(
    actor: Actor,
    dashboard_id: str | None,
    action: ActionType,
    description: str,
    meta: dict[str, Any] | None = None,
) -> None:
    log_dashboard_action(
        actor.org_id,
        dashboard_id,
        actor.user_id,
        action,
        description,
        meta=meta,
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
    )


def require_dashboard(org_id: str, dashboard_id: str) -> ExecDashboard:
    """Load a dashboard of the org or raise DASHBOARD_NOT_FOUND."""
    dashboard = exec_dashboards.get_dashboard(org_id, dashboard_id)
    if not dashboard:
        raise NotFoundError("Dashboard not found", code="DASHBOARD_NOT_FOUND")
    return dashboard


# ============================================================================
# Dashboard CRUD
# ============================================================================


def create_dashboard(actor: Actor, data: CreateDashboardInput) -> ExecDashboard:
    settings = get_settings()
    fields = {
        "title": data.title or DEFAULT_DASHBOARD_TITLE,
        "description": data.description,
        "time_window": data.time_window or settings.EXEC_DEFAULT_TIME_WINDOW,
        "primary_focus": data.primary_focus or settings.EXEC_DEFAULT_PRIMARY_FOCUS,
        "filters": (
            data.filters.model_dump(by_alias=True, exclude_none=True, mode="json")
            if data.filters
            else {}
        ),
        "is_default": bool(data.is_default),
    }

    dashboard = exec_dashboards.create_dashboard(actor.org_id, actor.user_id, fields)
    _audit(
        actor,
        dashboard.id,
        ActionType.CREATED,
        f"Dashboard '{dashboard.title}' created",
        {"timeWindow": dashboard.time_window, "primaryFocus": dashboard.primary_focus},
    )
    return dashboard


def get_dashboard_detail(actor: Actor, dashboard_id: str) -> DashboardDetailResponse:
    """Dashboard with its latest KPIs, top insights and current narrative."""
    dashboard = require_dashboard(actor.org_id, dashboard_id)

    kpis = exec_kpis.list_latest_kpis(actor.org_id, dashboard_id)
    top_insights = [
        i for i in exec_insights.list_latest_insights(actor.org_id, dashboard_id) if i.is_top_insight
    ][:TOP_INSIGHTS_LIMIT]
    narrative = exec_narratives.get_current_narrative(actor.org_id, dashboard_id)

    _audit(actor, dashboard_id, ActionType.VIEWED, "Dashboard viewed")

    return DashboardDetailResponse(
        dashboard=dashboard,
        kpis=kpis,
        top_insights=top_insights,
        current_narrative=narrative,
    )


def update_dashboard(actor: Actor, dashboard_id: str, data: UpdateDashboardInput) -> ExecDashboard:
    """Apply a partial update. Keys absent from the body are left untouched."""
    provided = data.model_dump(exclude_unset=True, mode="json")

    updates: dict[str, Any] = {}
    for key, value in provided.items():
        if key == "filters":
            updates["filters"] = (
                data.filters.model_dump(by_alias=True, exclude_none=True, mode="json")
                if data.filters
                else {}
            )
        elif value is not None or key in _NULLABLE_COLUMNS:
            updates[key] = value

    if not updates:
        return require_dashboard(actor.org_id, dashboard_id)

    dashboard = exec_dashboards.update_dashboard(actor.org_id, dashboard_id, updates)
    if not dashboard:
        raise NotFoundError("Dashboard not found", code="DASHBOARD_NOT_FOUND")

    _audit(
        actor,
        dashboard_id,
        ActionType.UPDATED,
        "Dashboard updated",
        {"updatedFields": sorted(updates)},
    )
    return dashboard


def delete_dashboard(actor: Actor, dashboard_id: str, hard_delete: bool = False) -> dict[str, bool]:
    """Archive (default) or permanently delete a dashboard."""
    dashboard = require_dashboard(actor.org_id, dashboard_id)

    if hard_delete:
        # Written first so the row exists when the audit entry references it
        _audit(
            actor,
            dashboard_id,
            ActionType.DELETED,
            f"Dashboard '{dashboard.title}' deleted",
            {"hardDelete": True},
        )
        exec_dashboards.delete_dashboard(actor.org_id, dashboard_id)
    else:
        exec_dashboards.archive_dashboard(actor.org_id, dashboard_id)
        _audit(
            actor,
            dashboard_id,
            ActionType.DELETED,
            f"Dashboard '{dashboard.title}' archived",
            {"hardDelete": False},
        )

    return {"deleted": True, "archived": not hard_delete}


# ============================================================================
# Narratives
# ============================================================================


def _store_narrative(actor: Actor, dashboard_id: str, context: NarrativeContext) -> ExecNarrative:
    content = generate_narrative_content(context)

    narrative = exec_narratives.create_narrative(
        actor.org_id,
        dashboard_id,
        actor.user_id,
        {
            "model_name": content.model_name,
            "tokens_used": content.tokens_used,
            "duration_ms": content.duration_ms,
            "narrative_text": content.text,
            "risks_section": content.sections.risks,
            "opportunities_section": content.sections.opportunities,
            "storyline_section": content.sections.storyline,
            "context_snapshot": context.model_dump(by_alias=True, mode="json"),
        },
    )

    if not content.is_template:
        log_llm_usage(
            feature="exec_narrative",
            model=content.model_name,
            provider=content.provider,
            tokens_input=content.tokens_input,
            tokens_output=content.tokens_output,
            duration_ms=content.duration_ms,
            org_id=actor.org_id,
            user_id=actor.user_id,
        )

    _audit(
        actor,
        dashboard_id,
        ActionType.NARRATIVE_GENERATED,
        "Narrative generated",
        {
            "tokensUsed": content.tokens_used,
            "durationMs": content.duration_ms,
            "modelName": content.model_name,
        },
    )
    return narrative


def generate_narrative(
    actor: Actor, dashboard_id: str, data: GenerateNarrativeInput
) -> GenerateNarrativeResponse:
    """Generate a narrative from the newest stored KPI and insight per key."""
    dashboard = require_dashboard(actor.org_id, dashboard_id)

    kpis = exec_kpis.list_latest_kpis(actor.org_id, dashboard_id)
    insights = exec_insights.list_latest_insights(actor.org_id, dashboard_id)

    context = build_context(
        dashboard.time_window,
        dashboard.primary_focus,
        kpis,
        insights,
        custom_prompt_hint=data.custom_prompt_hint,
    )
    narrative = _store_narrative(actor, dashboard_id, context)

    return GenerateNarrativeResponse(
        narrative=narrative,
        tokens_used=narrative.tokens_used,
        duration_ms=narrative.duration_ms,
    )


# ============================================================================
# Refresh
# ============================================================================


def _build_summary(
    kpis: list, insights: list, kpis_created: int, insights_created: int
) -> DashboardSummary:
    breakdown: dict[str, int] = {}
    for insight in insights:
        breakdown[insight.source_system] = breakdown.get(insight.source_system, 0) + 1

    by_key = {k.metric_key: k.metric_value for k in kpis}
    return DashboardSummary(
        total_insights=insights_created,
        top_risks_count=sum(1 for i in insights if i.is_risk),
        top_opportunities_count=sum(1 for i in insights if i.is_opportunity),
        active_kpis=kpis_created,
        overall_risk_index=by_key.get("overall_risk_index"),
        reputation_score=by_key.get("reputation_score"),
        crisis_count=by_key.get("active_crises"),
        governance_score=by_key.get("compliance_score"),
        last_updated=datetime.now(timezone.utc),
        source_breakdown=breakdown,
    )


def refresh_dashboard(
    actor: Actor, dashboard_id: str, data: RefreshDashboardInput
) -> RefreshDashboardResponse:
    """
    Re-aggregate upstream data into the dashboard.

    Individual KPI/insight insert failures are logged and skipped, and a
    failed narrative leaves ``narrativeGenerated`` false without failing
    the refresh.
    """
    start = time.time()
    dashboard = require_dashboard(actor.org_id, dashboard_id)

    time_window = data.time_window_override or dashboard.time_window
    primary_focus = data.primary_focus_override or dashboard.primary_focus

    if data.force_refresh:
        exec_kpis.clear_kpis(actor.org_id, dashboard_id)
        exec_insights.clear_insights(actor.org_id, dashboard_id)

    aggregated = aggregate_upstream_data(
        actor.org_id, time_window, primary_focus, filters=dashboard.filters
    )

    kpis_created = 0
    for kpi in aggregated.kpis:
        try:
            exec_kpis.insert_kpi(actor.org_id, dashboard_id, kpi)
            kpis_created += 1
        except Exception as e:
            logger.warning(f"Skipping KPI {kpi.metric_key}: {e}")

    insights_created = 0
    for insight in aggregated.insights:
        try:
            exec_insights.insert_insight(actor.org_id, dashboard_id, insight)
            insights_created += 1
        except Exception as e:
            logger.warning(f"Skipping insight '{insight.title}': {e}")

    narrative_generated = False
    if data.regenerate_narrative:
        context = build_context(time_window, primary_focus, aggregated.kpis, aggregated.insights)
        try:
            _store_narrative(actor, dashboard_id, context)
            narrative_generated = True
        except Exception as e:
            logger.error(f"Failed to generate narrative for dashboard {dashboard_id}: {e}")

    summary = _build_summary(aggregated.kpis, aggregated.insights, kpis_created, insights_created)
    updated = exec_dashboards.record_refresh(
        actor.org_id, dashboard_id, summary, time_window, primary_focus
    )

    duration_ms = int((time.time() - start) * 1000)
    _audit(
        actor,
        dashboard_id,
        ActionType.REFRESHED,
        "Dashboard refreshed",
        {
            "kpisCreated": kpis_created,
            "insightsCreated": insights_created,
            "narrativeGenerated": narrative_generated,
            "durationMs": duration_ms,
        },
    )

    return RefreshDashboardResponse(
        dashboard=updated or dashboard,
        kpis_created=kpis_created,
        insights_created=insights_created,
        narrative_generated=narrative_generated,
        duration_ms=duration_ms,
    )


# ============================================================================
# Grouping helpers for listings
# ============================================================================


def group_insights_by_source(insights: list[ExecInsight]) -> list[InsightsBySource]:
    """Group a page of insights by source system, in order of first appearance."""
    groups: dict[str, list[ExecInsight]] = {}
    for insight in insights:
        groups.setdefault(insight.source_system, []).append(insight)

    return [
        InsightsBySource(
            source_system=source,
            source_label=SOURCE_SYSTEM_LABELS.get(source, source),
            insights=items,
            count=len(items),
        )
        for source, items in groups.items()
    ]


def group_kpis_by_category(kpis: list[ExecKpi]) -> list[KpisByCategory]:
    groups: dict[str, list[ExecKpi]] = {}
    for kpi in kpis:
        groups.setdefault(kpi.category or UNCATEGORIZED, []).append(kpi)

    return [
        KpisByCategory(category=category, kpis=items, count=len(items))
        for category, items in groups.items()
    ]
