"""Database operations for orgs and org memberships."""

from typing import Any

from intel_api.core.logging import get_logger
from intel_api.db.supabase_client import get_supabase

logger = get_logger(__name__)


def create_org(name: str) -> dict[str, Any]:
    """Insert a new org row and return it."""
    supabase = get_supabase()

    try:
        response = supabase.table("orgs").insert({"name": name}).execute()
        if not response.data:
            raise ValueError("Failed to create org - no data returned")
        org = response.data[0]
        logger.info(f"Created org {org['id']}", extra={"org_id": org["id"]})
        return org

    except Exception as e:
        logger.error(f"Failed to create org '{name}': {e}")
        raise


def delete_org(org_id: str) -> None:
    """Hard delete an org. Used to roll back a half-created org."""
    supabase = get_supabase()

    try:
        supabase.table("orgs").delete().eq("id", org_id).execute()
        logger.info(f"Deleted org {org_id}")

    except Exception as e:
        logger.error(f"Failed to delete org {org_id}: {e}")
        raise


def create_membership(org_id: str, user_id: str, role: str = "owner") -> dict[str, Any]:
    """Insert an org_members row."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table("org_members")
            .insert({"org_id": org_id, "user_id": user_id, "role": role})
            .execute()
        )
        if not response.data:
            raise ValueError("Failed to create membership - no data returned")
        return response.data[0]

    except Exception as e:
        logger.error(f"Failed to add user {user_id} to org {org_id}: {e}")
        raise


def list_user_memberships(user_id: str) -> list[dict[str, Any]]:
    """
    List a user's memberships joined with their orgs, oldest first.

    Each row carries the membership columns plus an ``orgs`` object.
    """
    supabase = get_supabase()

    try:
        response = (
            supabase.table("org_members")
            .select("*, orgs!inner(*)")
            .eq("user_id", user_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list memberships for user {user_id}: {e}")
        raise


def get_membership(org_id: str, user_id: str) -> dict[str, Any] | None:
    """Get a single membership row, or None when the user is not a member."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table("org_members")
            .select("*")
            .eq("org_id", org_id)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    except Exception as e:
        logger.error(f"Failed to get membership for user {user_id} in org {org_id}: {e}")
        raise


def list_org_members(org_id: str) -> list[dict[str, Any]]:
    """List members of an org with their public user profile."""
    supabase = get_supabase()

    try:
        response = (
            supabase.table("org_members")
            .select("*, users!inner(id, full_name, avatar_url, email)")
            .eq("org_id", org_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

    except Exception as e:
        logger.error(f"Failed to list members for org {org_id}: {e}")
        raise
