"""Executive Command Center API endpoints."""

from fastapi import APIRouter, Depends, Query, Request, status

from intel_api.core.auth_middleware import OrgContext, require_org
from intel_api.core.errors import APIError, UpstreamError
from intel_api.core.feature_flags import FeatureFlag, require_feature_flag
from intel_api.core.logging import get_logger
from intel_api.core.responses import ok
from intel_api.core.schemas_exec_dashboards import (
    ActionType,
    CreateDashboardInput,
    GenerateNarrativeInput,
    ListAuditLogResponse,
    ListDashboardsResponse,
    ListInsightsResponse,
    ListKpisResponse,
    ListNarrativesResponse,
    PrimaryFocus,
    RefreshDashboardInput,
    SourceSystem,
    UpdateDashboardInput,
)
from intel_api.db import exec_audit_log, exec_dashboards, exec_insights, exec_kpis, exec_narratives
from intel_api.services import exec_command_center as service
from intel_api.services.exec_command_center import Actor

logger = get_logger(__name__)

router = APIRouter(
    dependencies=[Depends(require_feature_flag(FeatureFlag.ENABLE_EXECUTIVE_COMMAND_CENTER))]
)


def _actor(org: OrgContext, request: Request) -> Actor:
    return Actor.from_request(org, request)


# ============================================================================
# Dashboards
# ============================================================================


@router.get("")
async def list_dashboards(
    include_archived: bool = Query(False, alias="includeArchived"),
    primary_focus: PrimaryFocus | None = Query(None, alias="primaryFocus"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    org: OrgContext = Depends(require_org),
) -> dict:
    """List the org's dashboards, default dashboard first."""
    try:
        dashboards, total = exec_dashboards.list_dashboards(
            org.org_id,
            include_archived=include_archived,
            primary_focus=primary_focus.value if primary_focus else None,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        raise UpstreamError("LIST_DASHBOARDS_FAILED", "Failed to list dashboards") from e

    return ok(
        ListDashboardsResponse(
            dashboards=dashboards, total=total, has_more=total > offset + limit
        )
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_dashboard(
    request: Request,
    body: CreateDashboardInput | None = None,
    org: OrgContext = Depends(require_org),
) -> dict:
    """Create a dashboard. Title, window and focus fall back to configured defaults."""
    try:
        dashboard = service.create_dashboard(_actor(org, request), body or CreateDashboardInput())
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("CREATE_DASHBOARD_FAILED", "Failed to create dashboard") from e

    return ok({"dashboard": dashboard.to_api()})


@router.get("/{dashboard_id}")
async def get_dashboard(
    dashboard_id: str,
    request: Request,
    org: OrgContext = Depends(require_org),
) -> dict:
    """Dashboard with KPIs, top insights and the current narrative."""
    try:
        detail = service.get_dashboard_detail(_actor(org, request), dashboard_id)
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("GET_DASHBOARD_FAILED", "Failed to get dashboard") from e

    return ok(detail)


@router.patch("/{dashboard_id}")
async def update_dashboard(
    dashboard_id: str,
    request: Request,
    body: UpdateDashboardInput | None = None,
    org: OrgContext = Depends(require_org),
) -> dict:
    try:
        dashboard = service.update_dashboard(
            _actor(org, request), dashboard_id, body or UpdateDashboardInput()
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("UPDATE_DASHBOARD_FAILED", "Failed to update dashboard") from e

    return ok({"dashboard": dashboard.to_api()})


@router.delete("/{dashboard_id}")
async def delete_dashboard(
    dashboard_id: str,
    request: Request,
    hard_delete: bool = Query(False, alias="hardDelete"),
    org: OrgContext = Depends(require_org),
) -> dict:
    """Archive a dashboard, or delete it permanently with ``hardDelete=true``."""
    try:
        result = service.delete_dashboard(_actor(org, request), dashboard_id, hard_delete)
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("DELETE_DASHBOARD_FAILED", "Failed to delete dashboard") from e

    return ok(result)


@router.post("/{dashboard_id}/refresh")
async def refresh_dashboard(
    dashboard_id: str,
    request: Request,
    body: RefreshDashboardInput | None = None,
    org: OrgContext = Depends(require_org),
) -> dict:
    """Re-aggregate upstream data into the dashboard and optionally regenerate its narrative."""
    try:
        result = service.refresh_dashboard(
            _actor(org, request), dashboard_id, body or RefreshDashboardInput()
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("REFRESH_DASHBOARD_FAILED", "Failed to refresh dashboard") from e

    return ok(result)


# ============================================================================
# Sub-resources
# ============================================================================


@router.get("/{dashboard_id}/insights")
async def list_insights(
    dashboard_id: str,
    source_system: SourceSystem | None = Query(None, alias="sourceSystem"),
    category: str | None = Query(None),
    is_top_insight: bool | None = Query(None, alias="isTopInsight"),
    is_risk: bool | None = Query(None, alias="isRisk"),
    is_opportunity: bool | None = Query(None, alias="isOpportunity"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    org: OrgContext = Depends(require_org),
) -> dict:
    """List insights, with the page also grouped by source system."""
    try:
        service.require_dashboard(org.org_id, dashboard_id)
        insights, total = exec_insights.list_insights(
            org.org_id,
            dashboard_id,
            source_system=source_system.value if source_system else None,
            category=category,
            is_top_insight=is_top_insight,
            is_risk=is_risk,
            is_opportunity=is_opportunity,
            limit=limit,
            offset=offset,
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("LIST_INSIGHTS_FAILED", "Failed to list insights") from e

    return ok(
        ListInsightsResponse(
            insights=insights,
            total=total,
            has_more=total > offset + limit,
            by_source=service.group_insights_by_source(insights),
        )
    )


@router.get("/{dashboard_id}/kpis")
async def list_kpis(
    dashboard_id: str,
    category: str | None = Query(None),
    source_system: SourceSystem | None = Query(None, alias="sourceSystem"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    org: OrgContext = Depends(require_org),
) -> dict:
    """List KPIs, with the page also grouped by category."""
    try:
        service.require_dashboard(org.org_id, dashboard_id)
        kpis, total = exec_kpis.list_kpis(
            org.org_id,
            dashboard_id,
            category=category,
            source_system=source_system.value if source_system else None,
            limit=limit,
            offset=offset,
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("LIST_KPIS_FAILED", "Failed to list KPIs") from e

    return ok(
        ListKpisResponse(
            kpis=kpis, total=total, by_category=service.group_kpis_by_category(kpis)
        )
    )


@router.get("/{dashboard_id}/narratives")
async def list_narratives(
    dashboard_id: str,
    limit: int = Query(10, ge=1, le=50),
    offset: int = Query(0, ge=0),
    org: OrgContext = Depends(require_org),
) -> dict:
    try:
        service.require_dashboard(org.org_id, dashboard_id)
        narratives, total = exec_narratives.list_narratives(
            org.org_id, dashboard_id, limit=limit, offset=offset
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("LIST_NARRATIVES_FAILED", "Failed to list narratives") from e

    return ok(
        ListNarrativesResponse(
            narratives=narratives, total=total, has_more=total > offset + limit
        )
    )


@router.post("/{dashboard_id}/narratives", status_code=status.HTTP_201_CREATED)
async def generate_narrative(
    dashboard_id: str,
    request: Request,
    body: GenerateNarrativeInput | None = None,
    org: OrgContext = Depends(require_org),
) -> dict:
    """Generate a new current narrative from the dashboard's stored data."""
    try:
        result = service.generate_narrative(
            _actor(org, request), dashboard_id, body or GenerateNarrativeInput()
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("GENERATE_NARRATIVE_FAILED", "Failed to generate narrative") from e

    return ok(result)


@router.get("/{dashboard_id}/audit-log")
async def list_audit_log(
    dashboard_id: str,
    action_type: ActionType | None = Query(None, alias="actionType"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    org: OrgContext = Depends(require_org),
) -> dict:
    try:
        service.require_dashboard(org.org_id, dashboard_id)
        entries, total = exec_audit_log.list_audit_log(
            org.org_id,
            dashboard_id,
            action_type=action_type.value if action_type else None,
            limit=limit,
            offset=offset,
        )
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("LIST_AUDIT_LOG_FAILED", "Failed to list audit log") from e

    return ok(
        ListAuditLogResponse(entries=entries, total=total, has_more=total > offset + limit)
    )
