"""Database operations for executive dashboard insights."""

from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import ExecInsight, InsightDraft
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "exec_dashboard_insights"

SCAN_LIMIT = 1000


def insert_insight(org_id: str, dashboard_id: str, draft: InsightDraft) -> ExecInsight:
    """Insert one insight row."""
    supabase = get_supabase()

    try:
        row = draft.model_dump(mode="json")
        row.update({"org_id": org_id, "dashboard_id": dashboard_id})
        response = supabase.table(TABLE).insert(row).execute()
        if not response.data:
            raise ValueError("Failed to create insight - no data returned")
        return ExecInsight(**response.data[0])

    except Exception as e:
        logger.error(f"Failed to create insight '{draft.title}' for dashboard {dashboard_id}: {e}")
        raise


def list_insights(
    org_id: str,
    dashboard_id: str,
    source_system: str | None = None,
    category: str | None = None,
    is_top_insight: bool | None = None,
    is_risk: bool | None = None,
    is_opportunity: bool | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ExecInsight], int]:
    """
    List a dashboard's insights ordered by sort_order then severity.

    Returns:
        Tuple of (insights page, total matching rows)
    """
    supabase = get_supabase()

    try:
        query = (
            supabase.table(TABLE)
            .select("*", count="exact")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
        )
        if source_system:
            query = query.eq("source_system", source_system)
        if category:
            query = query.eq("category", category)
        if is_top_insight is not None:
            query = query.eq("is_top_insight", is_top_insight)
        if is_risk is not None:
            query = query.eq("is_risk", is_risk)
        if is_opportunity is not None:
            query = query.eq("is_opportunity", is_opportunity)

        response = (
            query.order("sort_order")
            .order("severity_or_impact", desc=True)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )

        insights = [ExecInsight(**row) for row in response.data or []]
        total = response.count if response.count is not None else len(insights)
        return insights, total

    except Exception as e:
        logger.error(f"Failed to list insights for dashboard {dashboard_id}: {e}")
        raise


def clear_insights(org_id: str, dashboard_id: str) -> None:
    """Delete every insight of a dashboard."""
    supabase = get_supabase()

    try:
        supabase.table(TABLE).delete().eq("org_id", org_id).eq("dashboard_id", dashboard_id).execute()

    except Exception as e:
        logger.error(f"Failed to clear insights for dashboard {dashboard_id}: {e}")
        raise


def list_latest_insights(org_id: str, dashboard_id: str) -> list[ExecInsight]:
    """Newest insight per (source_system, insight_type), in listing order."""
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

        latest: dict[tuple[str, str], ExecInsight] = {}
        for row in response.data or []:
            insight = ExecInsight(**row)
            latest.setdefault((insight.source_system, insight.insight_type), insight)
        return sorted(latest.values(), key=lambda i: (i.sort_order, -i.severity_or_impact))

    except Exception as e:
        logger.error(f"Failed to list latest insights for dashboard {dashboard_id}: {e}")
        raise
