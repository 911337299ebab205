"""API endpoints for org management."""

from fastapi import APIRouter, Depends, status

from intel_api.core.auth_middleware import AuthContext, require_auth
from intel_api.core.errors import APIError, ForbiddenError, UpstreamError, ValidationFailedError
from intel_api.core.feature_flags import FeatureFlag, require_feature_flag
from intel_api.core.logging import get_logger
from intel_api.core.responses import ok
from intel_api.core.schemas_organizations import (
    CreateOrgRequest,
    Org,
    OrgMember,
    OrgMembership,
    OrgRole,
    OrgWithRole,
)
from intel_api.db.organizations import (
    create_membership,
    create_org,
    delete_org,
    get_membership,
    list_org_members,
    list_user_memberships,
)

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(require_feature_flag(FeatureFlag.ENABLE_ORG_MANAGEMENT))])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_org_endpoint(
    body: CreateOrgRequest,
    auth: AuthContext = Depends(require_auth),
) -> dict:
    """
    Create an org and make the caller its owner.

    If the owner membership cannot be written the org is removed again so no
    orphaned org is left behind.
    """
    if auth.is_system:
        raise ValidationFailedError("Orgs must be created by a signed-in user")

    try:
        org_row = create_org(body.name)
    except Exception as e:
        raise UpstreamError("ORG_CREATE_FAILED", "Failed to create org") from e

    try:
        membership_row = create_membership(org_row["id"], auth.user_id, OrgRole.OWNER.value)
    except Exception as e:
        logger.error(f"Rolling back org {org_row['id']} after membership failure")
        try:
            delete_org(org_row["id"])
        except Exception:
            logger.exception(f"Rollback of org {org_row['id']} failed")
        raise APIError(
            "MEMBERSHIP_CREATE_FAILED",
            "Failed to create org membership",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        ) from e

    return ok(
        {
            "org": Org(**org_row).to_api(),
            "membership": OrgMembership(**membership_row).to_api(),
        }
    )


@router.get("")
async def list_orgs_endpoint(auth: AuthContext = Depends(require_auth)) -> dict:
    """List the orgs the caller belongs to, with the caller's role in each."""
    try:
        rows = list_user_memberships(auth.user_id)
    except Exception as e:
        raise UpstreamError("ORG_LIST_FAILED", "Failed to list orgs") from e

    orgs = [
        OrgWithRole(**row["orgs"], role=row.get("role", OrgRole.MEMBER)).to_api()
        for row in rows
        if row.get("orgs")
    ]
    return ok({"orgs": orgs})


@router.get("/{org_id}/members")
async def list_members_endpoint(org_id: str, auth: AuthContext = Depends(require_auth)) -> dict:
    """List an org's members. The caller must belong to the org."""
    try:
        if not auth.is_system and not get_membership(org_id, auth.user_id):
            raise ForbiddenError("Not a member of this organization")
        rows = list_org_members(org_id)
    except APIError:
        raise
    except Exception as e:
        raise UpstreamError("MEMBERS_LIST_FAILED", "Failed to list org members") from e

    return ok({"members": [OrgMember.from_row(row).to_api() for row in rows]})
