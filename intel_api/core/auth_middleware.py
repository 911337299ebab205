"""Authentication and org scoping dependencies for FastAPI."""

import logging
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from intel_api.core.config import get_settings
from intel_api.core.errors import AuthenticationError, ForbiddenError, ValidationFailedError

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)

# Identity used for admin API key requests
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000001"
SYSTEM_USER_EMAIL = "system@pravado.internal"


class AuthContext:
    """Context object containing authenticated user info."""

    def __init__(
        self,
        user_id: str,
        token: str,
        email: Optional[str] = None,
        is_system: bool = False,
    ):
        self.user_id = user_id
        self.token = token
        self.email = email
        self.is_system = is_system

    def is_super_admin(self) -> bool:
        return self.is_system


class OrgContext:
    """Authenticated user plus the org the request is scoped to."""

    def __init__(self, org_id: str, user_id: str, role: str, auth: Optional[AuthContext] = None):
        self.org_id = org_id
        self.user_id = user_id
        self.role = role
        self.auth = auth


def _extract_token(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    cookie_name = get_settings().SESSION_COOKIE_NAME
    return request.cookies.get(cookie_name)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> Optional[AuthContext]:
    """
    Extract and validate the current user from the request.

    Supports three credential sources:
    1. Admin API key (X-API-Key header) - for internal tools
    2. Supabase JWT in the Authorization header (Bearer auth)
    3. Supabase JWT in the session cookie

    Returns None if no valid auth is present (for optional auth endpoints).
    """
    admin_key = get_settings().ADMIN_API_KEY
    if x_api_key and admin_key and x_api_key == admin_key:
        logger.debug("Authenticated via admin API key")
        return AuthContext(
            user_id=SYSTEM_USER_ID,
            token="api-key",
            email=SYSTEM_USER_EMAIL,
            is_system=True,
        )

    token = _extract_token(request, credentials)
    if not token:
        return None

    try:
        from intel_api.db.supabase_client import get_supabase

        client = get_supabase()

        # Validates the JWT signature and expiration
        auth_response = client.auth.get_user(token)

        if not auth_response or not auth_response.user:
            return None

        return AuthContext(
            user_id=str(auth_response.user.id),
            token=token,
            email=auth_response.user.email,
        )

    except Exception as e:
        logger.warning(f"Auth error: {e}")
        return None


async def require_auth(
    auth: Optional[AuthContext] = Depends(get_current_user),
) -> AuthContext:
    """Require authentication. Raises 401 if not authenticated."""
    if not auth:
        raise AuthenticationError()
    return auth


async def require_org(
    auth: AuthContext = Depends(require_auth),
    x_org_id: Optional[str] = Header(None, alias="X-Org-Id"),
) -> OrgContext:
    """
    Resolve the org a request is scoped to.

    ``X-Org-Id`` picks an org the caller belongs to; without it the caller's
    oldest membership is used. API key callers must always name the org.
    """
    if auth.is_system:
        if not x_org_id:
            raise ValidationFailedError("X-Org-Id header is required for API key access")
        return OrgContext(org_id=x_org_id, user_id=auth.user_id, role="owner", auth=auth)

    from intel_api.db.organizations import get_membership, list_user_memberships

    if x_org_id:
        membership = get_membership(x_org_id, auth.user_id)
        if not membership:
            raise ForbiddenError("Not a member of this organization")
        return OrgContext(
            org_id=x_org_id, user_id=auth.user_id, role=membership.get("role", "member"), auth=auth
        )

    memberships = list_user_memberships(auth.user_id)
    if not memberships:
        raise ForbiddenError("User does not belong to any organization", code="NO_ORG")

    first = memberships[0]
    return OrgContext(
        org_id=first["org_id"], user_id=auth.user_id, role=first.get("role", "member"), auth=auth
    )
