"""Database operations for executive dashboard narratives."""

from typing import Any

from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import ExecNarrative
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "exec_dashboard_narratives"


def create_narrative(
    org_id: str,
    dashboard_id: str,
    created_by: str | None,
    fields: dict[str, Any],
) -> ExecNarrative:
    """
    Store a new current narrative for a dashboard.

    Other current narratives of the dashboard are flipped to
    ``is_current = false`` once the new row is stored, so a failed insert
    leaves the previous narrative current.

    Args:
        org_id: Owning org
        dashboard_id: Dashboard the narrative belongs to
        created_by: Requesting user (None for system callers)
        fields: model_name, tokens_used, duration_ms, narrative_text,
            risks_section, opportunities_section, storyline_section,
            context_snapshot

    Returns:
        The stored narrative
    """
    supabase = get_supabase()

    try:
        row = {
            **fields,
            "org_id": org_id,
            "dashboard_id": dashboard_id,
            "created_by": created_by,
            "is_current": True,
        }
        response = supabase.table(TABLE).insert(row).execute()
        if not response.data:
            raise ValueError("Failed to save narrative - no data returned")

        narrative = ExecNarrative(**response.data[0])
        (
            supabase.table(TABLE)
            .update({"is_current": False})
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
            .eq("is_current", True)
            .neq("id", narrative.id)
            .execute()
        )

        logger.info(
            f"Stored narrative {narrative.id} for dashboard {dashboard_id}",
            extra={"org_id": org_id, "model": narrative.model_name},
        )
        return narrative

    except Exception as e:
        logger.error(f"Failed to save narrative for dashboard {dashboard_id}: {e}")
        raise


def get_current_narrative(org_id: str, dashboard_id: str) -> ExecNarrative | None:
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .select("*")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
            .eq("is_current", True)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        return ExecNarrative(**response.data[0]) if response.data else None

    except Exception as e:
        logger.error(f"Failed to get current narrative for dashboard {dashboard_id}: {e}")
        raise


def list_narratives(
    org_id: str, dashboard_id: str, limit: int = 10, offset: int = 0
) -> tuple[list[ExecNarrative], int]:
    """List a dashboard's narratives, newest first."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table(TABLE)
            .select("*", count="exact")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
            .order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        narratives = [ExecNarrative(**row) for row in response.data or []]
        total = response.count if response.count is not None else len(narratives)
        return narratives, total

    except Exception as e:
        logger.error(f"Failed to list narratives for dashboard {dashboard_id}: {e}")
        raise
