"""
Route access policy.

Every role-gated view is named here together with the roles allowed to use
it. A role grant only counts for the tenant it was issued for; the universal
admin (role ``admin`` with no tenant) is admitted to cross-tenant views only.

Views:
- chef: live kitchen board and order status actions
- billing: order list, payment toggling and bills
- analytics: statistics and CSV export
- tenant_admin: settings, tables and QR codes
- staff_users: creating staff accounts
- universal_admin: tenant registration and activation
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from tableorder.models.user import AppRole


class Route(str, Enum):
    CHEF = "chef"
    BILLING = "billing"
    ANALYTICS = "analytics"
    TENANT_ADMIN = "tenant_admin"
    STAFF_USERS = "staff_users"
    UNIVERSAL_ADMIN = "universal_admin"


@dataclass(frozen=True)
class RoutePolicy:
    roles: frozenset
    # Universal admin may enter even without a grant for the tenant
    cross_tenant: bool = False


ROUTE_POLICIES: dict[Route, RoutePolicy] = {
    Route.CHEF: RoutePolicy(frozenset({AppRole.CHEF, AppRole.COOK, AppRole.MANAGER})),
    Route.BILLING: RoutePolicy(frozenset({AppRole.WAITER, AppRole.MANAGER, AppRole.TENANT_ADMIN})),
    Route.ANALYTICS: RoutePolicy(frozenset({AppRole.MANAGER, AppRole.TENANT_ADMIN})),
    Route.TENANT_ADMIN: RoutePolicy(frozenset({AppRole.TENANT_ADMIN, AppRole.MANAGER}), cross_tenant=True),
    Route.STAFF_USERS: RoutePolicy(frozenset({AppRole.TENANT_ADMIN}), cross_tenant=True),
    Route.UNIVERSAL_ADMIN: RoutePolicy(frozenset(), cross_tenant=True),
}


@dataclass(frozen=True)
class RoleGrant:
    role: AppRole
    tenant_id: Optional[str]

    @property
    def is_universal_admin(self) -> bool:
        return self.role == AppRole.ADMIN and self.tenant_id is None


def can_access(route: Route | str, grants: Iterable[RoleGrant], tenant_id: Optional[str]) -> bool:
    """Decide whether a user holding ``grants`` may open ``route`` for ``tenant_id``.

    Unknown routes are denied.
    """
    try:
        policy = ROUTE_POLICIES[Route(route)]
    except ValueError:
        return False

    for grant in grants:
        if grant.is_universal_admin:
            if policy.cross_tenant:
                return True
            continue
        if tenant_id is None or grant.tenant_id != tenant_id:
            continue
        if grant.role in policy.roles:
            return True
    return False


def staff_tenants(grants: Iterable[RoleGrant]) -> set[str]:
    """Tenants where the user holds any staff role."""
    return {g.tenant_id for g in grants if g.tenant_id is not None}
