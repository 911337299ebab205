"""Database operations for executive dashboard KPIs."""

from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import ExecKpi, KpiDraft
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "exec_dashboard_kpis"

# Rows read when collapsing accumulated refreshes to the newest per key
SCAN_LIMIT = 1000


def insert_kpi(org_id: str, dashboard_id: str, draft: KpiDraft) -> ExecKpi:
    """Insert one KPI row. The trend is stored with camelCase keys."""
    supabase = get_supabase()

    try:
        row = draft.model_dump(mode="json")
        row["metric_trend"] = draft.metric_trend.model_dump(by_alias=True, mode="json")
        row.update({"org_id": org_id, "dashboard_id": dashboard_id})
        response = supabase.table(TABLE).insert(row).execute()
        if not response.data:
            raise ValueError("Failed to create KPI - no data returned")
        return ExecKpi(**response.data[0])

    except Exception as e:
        logger.error(f"Failed to create KPI {draft.metric_key} for dashboard {dashboard_id}: {e}")
        raise


def list_kpis(
    org_id: str,
    dashboard_id: str,
    category: str | None = None,
    source_system: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[ExecKpi], int]:
    """
    List a dashboard's KPIs in display order.

    Returns:
        Tuple of (KPI page, total matching rows)
    """
    supabase = get_supabase()

    try:
        query = (
            supabase.table(TABLE)
            .select("*", count="exact")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
        )
        if category:
            query = query.eq("category", category)
        if source_system:
            query = query.eq("source_system", source_system)

        response = (
            query.order("display_order")
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        kpis = [ExecKpi(**row) for row in response.data or []]
        total = response.count if response.count is not None else len(kpis)
        return kpis, total

    except Exception as e:
        logger.error(f"Failed to list KPIs for dashboard {dashboard_id}: {e}")
        raise


def clear_kpis(org_id: str, dashboard_id: str) -> None:
    """Delete every KPI of a dashboard."""
    supabase = get_supabase()

    try:
        supabase.table(TABLE).delete().eq("org_id", org_id).eq("dashboard_id", dashboard_id).execute()

    except Exception as e:
        logger.error(f"Failed to clear KPIs for dashboard {dashboard_id}: {e}")
        raise


def list_latest_kpis(org_id: str, dashboard_id: str) -> list[ExecKpi]:
    """
    Newest KPI per metric_key, in display order.

    Refreshes without force_refresh append rows, so older snapshots of the
    same metric stay in the table until the next forced refresh.
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .select("*")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
            .order("created_at", desc=True)
            .limit(SCAN_LIMIT)
            .execute()
        )

        latest: dict[str, ExecKpi] = {}
        for row in response.data or []:
            kpi = ExecKpi(**row)
            latest.setdefault(kpi.metric_key, kpi)
        return sorted(latest.values(), key=lambda k: k.display_order)

    except Exception as e:
        logger.error(f"Failed to list latest KPIs for dashboard {dashboard_id}: {e}")
        raise
