"""Audit trail for executive dashboard actions."""

from typing import Any

from intel_api.core.feature_flags import FeatureFlag, is_feature_enabled
from intel_api.core.logging import get_logger
from intel_api.core.schemas_exec_dashboards import ActionType, ExecAuditEntry
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

TABLE = "exec_dashboard_audit_log"


def log_dashboard_action(
    org_id: str,
    dashboard_id: str | None,
    user_id: str | None,
    action_type: ActionType | str,
    description: str,
    meta: dict[str, Any] | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Append an audit row. Fire-and-forget: failures are logged, never raised.
    """
    if not is_feature_enabled(FeatureFlag.ENABLE_AUDIT_LOGGING):
        return

    action = action_type.value if isinstance(action_type, ActionType) else action_type

    try:
        supabase = get_supabase()
        supabase.table(TABLE).insert(
            {
                "org_id": org_id,
                "dashboard_id": dashboard_id,
                "user_id": user_id,
                "action_type": action,
                "description": description,
                "meta": meta or {},
                "ip_address": ip_address,
                "user_agent": user_agent,
            }
        ).execute()
    except Exception as e:
        logger.warning(f"Failed to write audit log ({action}) for dashboard {dashboard_id}: {e}")


def list_audit_log(
    org_id: str,
    dashboard_id: str,
    action_type: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ExecAuditEntry], int]:
    """List audit entries for a dashboard, newest first."""
    supabase = get_supabase()

    try:
        query = (
            supabase.table(TABLE)
            .select("*", count="exact")
            .eq("org_id", org_id)
            .eq("dashboard_id", dashboard_id)
        )
        if action_type:
            query = query.eq("action_type", action_type)

        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()

        entries = [ExecAuditEntry(**row) for row in response.data or []]
        total = response.count if response.count is not None else len(entries)
        return entries, total

    except Exception as e:
        logger.error(f"Failed to list audit log for dashboard {dashboard_id}: {e}")
        raise
