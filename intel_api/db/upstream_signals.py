"""Read-only queries against the upstream intelligence tables.

These tables are owned by other services (risk radar, crisis response,
reputation, governance, media performance, competitive intel, PR outreach).
Every function raises on query failure; callers decide whether a missing
source matters.
"""

from datetime import datetime
from typing import Any

from intel_api.core.logging import get_logger
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)

# Upstream tables that expose a "latest snapshot per org" row
SNAPSHOT_TABLES = (
    "brand_reputation_snapshots",
    "governance_compliance_snapshots",
    "media_performance_snapshots",
    "competitive_intel_snapshots",
)


def get_active_risk_snapshot(org_id: str) -> dict[str, Any] | None:
    """Get the org's active risk radar snapshot."""
    supabase = get_supabase()
    response = (
        supabase.table("risk_radar_snapshots")
        .select("*")
        .eq("org_id", org_id)
        .eq("is_active", True)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def get_latest_snapshot(table: str, org_id: str) -> dict[str, Any] | None:
    """Get the most recent snapshot row for an org from one of SNAPSHOT_TABLES."""
    if table not in SNAPSHOT_TABLES:
        raise ValueError(f"Unknown snapshot table: {table}")

    supabase = get_supabase()
    response = (
        supabase.table(table)
        .select("*")
        .eq("org_id", org_id)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    return response.data[0] if response.data else None


def list_active_crises(org_id: str, since: datetime) -> tuple[list[dict[str, Any]], int]:
    """
    List active or escalated crisis incidents opened since ``since``.

    Returns:
        Tuple of (incident rows, exact count)
    """
    supabase = get_supabase()
    response = (
        supabase.table("crisis_incidents")
        .select("*", count="exact")
        .eq("org_id", org_id)
        .in_("status", ["active", "escalated"])
        .gte("created_at", since.isoformat())
        .execute()
    )
    rows = response.data or []
    return rows, response.count if response.count is not None else len(rows)


def count_active_outreach_campaigns(org_id: str, since: datetime) -> int:
    """Count active PR outreach campaigns created since ``since``."""
    supabase = get_supabase()
    response = (
        supabase.table("pr_outreach_campaigns")
        .select("id", count="exact")
        .eq("org_id", org_id)
        .eq("status", "active")
        .gte("created_at", since.isoformat())
        .execute()
    )
    if response.count is not None:
        return response.count
    return len(response.data or [])
