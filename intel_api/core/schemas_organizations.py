"""Pydantic schemas for orgs and org memberships."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import Field

from intel_api.core.schemas_exec_dashboards import CamelModel


class OrgRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class CreateOrgRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)


class Org(CamelModel):
    id: str
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrgMembership(CamelModel):
    id: str | None = None
    org_id: str
    user_id: str
    role: OrgRole = OrgRole.MEMBER
    created_at: datetime | None = None


class OrgWithRole(Org):
    role: OrgRole


class OrgMember(CamelModel):
    user_id: str
    role: OrgRole
    joined_at: datetime | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    email: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "OrgMember":
        """Build from an org_members row with an embedded ``users`` object."""
        user = row.get("users") or {}
        return cls(
            user_id=row["user_id"],
            role=row.get("role", OrgRole.MEMBER),
            joined_at=row.get("created_at"),
            full_name=user.get("full_name"),
            avatar_url=user.get("avatar_url"),
            email=user.get("email"),
        )
