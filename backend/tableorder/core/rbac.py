"""Authentication and role-gated route dependencies."""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from tableorder.core.rbac_policy import RoleGrant, Route, can_access
from tableorder.core.security import COOKIE_ACCESS_NAME, decode_access_token
from tableorder.db.session import DbSession
from tableorder.models.user import RoleAssignment, User
from tableorder.services.order_lifecycle import StaffMember

logger = logging.getLogger(__name__)


class TokenData:
    """Authenticated user.

    Attributes:
        user_id: The user's database ID.
        email: The user's email address.
        full_name: Display name (defaults to email prefix).
        grants: Role grants, filled in by ``require_route``.
    """

    def __init__(self, user_id: int, email: str, full_name: str = ""):
        self.user_id = user_id
        self.email = email
        self.full_name = full_name or email.split("@")[0]
        self.grants: list[RoleGrant] = []

    def as_staff(self) -> StaffMember:
        return StaffMember(user_id=self.user_id, email=self.email, display_name=self.full_name)


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        if token:
            return token
    return request.cookies.get(COOKIE_ACCESS_NAME)


def authenticate_token(token: Optional[str], db: Session) -> Optional[TokenData]:
    """Resolve a JWT to an active user, or None."""
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if user_id is None or email is None:
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        logger.info(f"Rejected token for missing or disabled user {user_id}")
        return None
    return TokenData(user_id=user.id, email=user.email, full_name=user.full_name or "")


def get_current_user(request: Request, db: DbSession) -> TokenData:
    """Get the current user from ``Authorization: Bearer`` or the access_token cookie."""
    token = _token_from_request(request)
    current = authenticate_token(token, db)
    if current is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return current


def get_optional_current_user(request: Request, db: DbSession) -> Optional[TokenData]:
    return authenticate_token(_token_from_request(request), db)


CurrentUser = Annotated[TokenData, Depends(get_current_user)]
OptionalCurrentUser = Annotated[Optional[TokenData], Depends(get_optional_current_user)]


def load_role_grants(db: Session, user_id: int) -> list[RoleGrant]:
    rows = db.execute(select(RoleAssignment).where(RoleAssignment.user_id == user_id)).scalars()
    return [RoleGrant(role=row.role, tenant_id=row.tenant_id) for row in rows]


def require_route(route: Route):
    """Dependency admitting only users the route policy allows for the path's tenant.

    401 without a valid session, 403 when no grant matches. The handler never
    runs before the decision is made.
    """

    def route_checker(request: Request, db: DbSession, current_user: CurrentUser) -> TokenData:
        tenant_id = request.path_params.get("tenant_id")
        grants = load_role_grants(db, current_user.user_id)
        if not can_access(route, grants, tenant_id):
            logger.warning(
                f"Access denied: user {current_user.user_id} to {route.value} for tenant {tenant_id}"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have access to this page",
            )
        current_user.grants = grants
        return current_user

    return route_checker


RequireChef = Annotated[TokenData, Depends(require_route(Route.CHEF))]
RequireBilling = Annotated[TokenData, Depends(require_route(Route.BILLING))]
RequireAnalytics = Annotated[TokenData, Depends(require_route(Route.ANALYTICS))]
RequireTenantAdmin = Annotated[TokenData, Depends(require_route(Route.TENANT_ADMIN))]
RequireStaffUsers = Annotated[TokenData, Depends(require_route(Route.STAFF_USERS))]
RequireUniversalAdmin = Annotated[TokenData, Depends(require_route(Route.UNIVERSAL_ADMIN))]
