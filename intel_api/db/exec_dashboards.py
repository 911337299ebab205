"""Database operations for executive dashboards."""

from datetime import datetime, timezone
from typing import Any

from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import (
    DashboardSummary,
    ExecDashboard,
    ExecDashboardWithCounts,
)
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "exec_dashboards"

# Embedded counts of child rows, returned as [{"count": n}] per relation
LIST_SELECT = (
    "*, exec_dashboard_insights(count), exec_dashboard_kpis(count), "
    "exec_dashboard_narratives(count)"
)


def _embedded_count(row: dict[str, Any], relation: str) -> int:
    value = row.pop(relation, None)
    if isinstance(value, list) and value:
        return int(value[0].get("count", 0) or 0)
    return 0


def _row_to_dashboard_with_counts(row: dict[str, Any]) -> ExecDashboardWithCounts:
    row = dict(row)
    insights = _embedded_count(row, "exec_dashboard_insights")
    kpis = _embedded_count(row, "exec_dashboard_kpis")
    narratives = _embedded_count(row, "exec_dashboard_narratives")
    return ExecDashboardWithCounts(
        **row,
        insights_count=insights,
        kpis_count=kpis,
        has_narrative=narratives > 0,
    )


def list_dashboards(
    org_id: str,
    include_archived: bool = False,
    primary_focus: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[ExecDashboardWithCounts], int]:
    """
    List an org's dashboards, default first then newest first.

    Returns:
        Tuple of (dashboards with child counts, total matching rows)
    """
    supabase = get_supabase()

    try:
        query = supabase.table(TABLE).select(LIST_SELECT, count="exact").eq("org_id", org_id)
        if not include_archived:
            query = query.eq("is_archived", False)
        if primary_focus:
            query = query.eq("primary_focus", primary_focus)

        response = (
            query.order("is_default", desc=True)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        dashboards = [_row_to_dashboard_with_counts(row) for row in response.data or []]
        total = response.count if response.count is not None else len(dashboards)
        return dashboards, total

    except Exception as e:
        logger.error(f"Failed to list dashboards for org {org_id}: {e}")
        raise


def get_dashboard(org_id: str, dashboard_id: str) -> ExecDashboard | None:
    """Get a dashboard by ID, scoped to the org."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .select("*")
            .eq("org_id", org_id)
            .eq("id", dashboard_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return ExecDashboard(**response.data[0])

    except Exception as e:
        logger.error(f"Failed to get dashboard {dashboard_id}: {e}")
        raise


def clear_default(org_id: str, keep_id: str | None = None) -> None:
    """Unset is_default on the org's dashboards, except ``keep_id``."""
    supabase = get_supabase()

    try:
        query = (
            supabase.table(TABLE)
            .update({"is_default": False})
            .eq("org_id", org_id)
            .eq("is_default", True)
        )
        if keep_id:
            query = query.neq("id", keep_id)
        query.execute()

    except Exception as e:
        logger.error(f"Failed to clear default dashboard for org {org_id}: {e}")
        raise


def create_dashboard(org_id: str, created_by: str | None, fields: dict[str, Any]) -> ExecDashboard:
    """
    Insert a dashboard row.

    Args:
        org_id: Owning org
        created_by: User creating the dashboard (None for system callers)
        fields: Column values (title, description, time_window, primary_focus,
            filters, is_default)

    Returns:
        The created dashboard
    """
    supabase = get_supabase()

    try:
        row = {**fields, "org_id": org_id, "created_by": created_by}
        response = supabase.table(TABLE).insert(row).execute()
        if not response.data:
            raise ValueError("Failed to create dashboard - no data returned")

        dashboard = ExecDashboard(**response.data[0])
        if dashboard.is_default:
            clear_default(org_id, keep_id=dashboard.id)

        logger.info(
            f"Created dashboard {dashboard.id} for org {org_id}",
            extra={"org_id": org_id, "dashboard_id": dashboard.id},
        )
        return dashboard

    except Exception as e:
        logger.error(f"Failed to create dashboard for org {org_id}: {e}")
        raise


def update_dashboard(
    org_id: str, dashboard_id: str, updates: dict[str, Any]
) -> ExecDashboard | None:
    """Apply a partial update. Returns None when the dashboard does not exist."""
    if not updates:
        return get_dashboard(org_id, dashboard_id)

    supabase = get_supabase()

    try:
        payload = {**updates, "updated_at": datetime.now(timezone.utc).isoformat()}
        response = (
            supabase.table(TABLE)
            .update(payload)
            .eq("org_id", org_id)
            .eq("id", dashboard_id)
            .execute()
        )
        if not response.data:
            return None

        dashboard = ExecDashboard(**response.data[0])
        if updates.get("is_default"):
            clear_default(org_id, keep_id=dashboard.id)
        return dashboard

    except Exception as e:
        logger.error(f"Failed to update dashboard {dashboard_id}: {e}")
        raise


def archive_dashboard(org_id: str, dashboard_id: str) -> bool:
    """Soft delete: mark archived and drop default status."""
    archived = update_dashboard(org_id, dashboard_id, {"is_archived": True, "is_default": False})
    return archived is not None


def delete_dashboard(org_id: str, dashboard_id: str) -> bool:
    """Hard delete a dashboard. Child rows cascade in the database."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .delete()
            .eq("org_id", org_id)
            .eq("id", dashboard_id)
            .execute()
        )
        deleted = bool(response.data)
        if deleted:
            logger.info(f"Deleted dashboard {dashboard_id}", extra={"org_id": org_id})
        return deleted

    except Exception as e:
        logger.error(f"Failed to delete dashboard {dashboard_id}: {e}")
        raise


def record_refresh(
    org_id: str,
    dashboard_id: str,
    summary: DashboardSummary,
    time_window: str,
    primary_focus: str,
) -> ExecDashboard | None:
    """Store a refresh's summary, window and focus and stamp last_refreshed_at."""
    now = datetime.now(timezone.utc).isoformat()
    return update_dashboard(
        org_id,
        dashboard_id,
        {
            "summary": summary.model_dump(by_alias=True, mode="json", exclude_none=True),
            "last_refreshed_at": now,
            "time_window": time_window,
            "primary_focus": primary_focus,
        },
    )
