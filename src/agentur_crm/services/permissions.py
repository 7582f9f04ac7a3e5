"""Role-based permission gate.

Every capability check in the application goes through this module.
``ROLE_CAPABILITIES`` is the single mapping from role to capability
set; the named ``can_*`` helpers are thin readers of it.

All checks are pure functions of the user's role. A missing user
(nobody signed in) or an unknown role never holds any capability.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol
from uuid import UUID

from agentur_crm.core.exceptions import PermissionDeniedError, UnauthorizedError
from agentur_crm.domain import Role


class Capability(str, Enum):
    """Named permission."""

    ACCESS_MAIN_NAVIGATION = "access_main_navigation"
    VIEW_CUSTOMERS = "view_customers"
    CREATE_CUSTOMERS = "create_customers"
    EDIT_CUSTOMERS = "edit_customers"
    DELETE_CUSTOMERS = "delete_customers"
    MANAGE_APPOINTMENTS = "manage_appointments"
    MANAGE_REVENUES = "manage_revenues"
    CREATE_TODOS = "create_todos"
    VIEW_TODOS = "view_todos"
    COMPLETE_TODOS = "complete_todos"
    MANAGE_HOT_LEADS = "manage_hot_leads"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    CLEAR_AUDIT_LOGS = "clear_audit_logs"
    ACCESS_SETTINGS = "access_settings"
    VIEW_TEAM_MEMBERS = "view_team_members"
    MANAGE_TEAM_MEMBERS = "manage_team_members"
    VIEW_USER_MANAGEMENT = "view_user_management"
    VIEW_CUSTOMER_DASHBOARDS = "view_customer_dashboards"
    VIEW_OWN_DASHBOARD = "view_own_dashboard"


_STAFF = frozenset({
    Capability.ACCESS_MAIN_NAVIGATION,
    Capability.VIEW_CUSTOMERS,
    Capability.MANAGE_APPOINTMENTS,
    Capability.VIEW_TODOS,
    Capability.COMPLETE_TODOS,
    Capability.MANAGE_HOT_LEADS,
})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability) - {Capability.VIEW_OWN_DASHBOARD},
    Role.MEMBER: _STAFF,
    Role.KUNDE: frozenset({Capability.VIEW_OWN_DASHBOARD}),
}


class HasRole(Protocol):
    """Anything carrying a ``user_role`` (CurrentUser, TeamMemberModel)."""

    user_role: Any


def role_of(user: HasRole | None) -> Role | None:
    """Resolve the role of ``user``; None when absent or unknown."""
    if user is None:
        return None
    try:
        return Role(getattr(user, "user_role", None))
    except ValueError:
        return None


def capabilities_of(user: HasRole | None) -> frozenset[Capability]:
    """Full capability set of ``user`` (empty when nobody is signed in)."""
    role = role_of(user)
    if role is None:
        return frozenset()
    return ROLE_CAPABILITIES[role]


def has_capability(user: HasRole | None, capability: Capability) -> bool:
    """Check one capability."""
    return capability in capabilities_of(user)


def require(user: HasRole | None, capability: Capability) -> None:
    """Raise unless ``user`` holds ``capability``.

    Raises:
        UnauthorizedError: Nobody is signed in
        PermissionDeniedError: Signed in, but the role lacks the capability
    """
    if user is None:
        raise UnauthorizedError("Bitte melden Sie sich an.")
    if not has_capability(user, capability):
        raise PermissionDeniedError(details={"capability": capability.value})


# =============================================================================
# Named Checks
# =============================================================================


def is_admin(user: HasRole | None) -> bool:
    return role_of(user) is Role.ADMIN


def is_member(user: HasRole | None) -> bool:
    return role_of(user) is Role.MEMBER


def is_customer(user: HasRole | None) -> bool:
    return role_of(user) is Role.KUNDE


def can_access_main_navigation(user: HasRole | None) -> bool:
    return has_capability(user, Capability.ACCESS_MAIN_NAVIGATION)


def can_view_customers(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_CUSTOMERS)


def can_create_customers(user: HasRole | None) -> bool:
    return has_capability(user, Capability.CREATE_CUSTOMERS)


def can_edit_customers(user: HasRole | None) -> bool:
    return has_capability(user, Capability.EDIT_CUSTOMERS)


def can_manage_revenues(user: HasRole | None) -> bool:
    return has_capability(user, Capability.MANAGE_REVENUES)


def can_create_todos(user: HasRole | None) -> bool:
    return has_capability(user, Capability.CREATE_TODOS)


def can_view_todos(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_TODOS)


def can_complete_todos(user: HasRole | None) -> bool:
    return has_capability(user, Capability.COMPLETE_TODOS)


def can_view_audit_logs(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_AUDIT_LOGS)


def can_access_settings(user: HasRole | None) -> bool:
    return has_capability(user, Capability.ACCESS_SETTINGS)


def can_view_team_members(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_TEAM_MEMBERS)


def can_view_user_management(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_USER_MANAGEMENT)


def can_view_customer_dashboards(user: HasRole | None) -> bool:
    return has_capability(user, Capability.VIEW_CUSTOMER_DASHBOARDS)


def can_view_dashboard_of(user: HasRole | None, customer_id: UUID | str | None) -> bool:
    """Whether ``user`` may open the portal dashboard of one customer.

    Admins see every customer dashboard; a ``kunde`` account only the
    one of the customer it is linked to.
    """
    if can_view_customer_dashboards(user):
        return True
    if not has_capability(user, Capability.VIEW_OWN_DASHBOARD) or customer_id is None:
        return False
    linked = getattr(user, "customer_id", None)
    return linked is not None and str(linked) == str(customer_id)


def permission_map(user: HasRole | None) -> dict[str, bool]:
    """Every capability as a flat ``{name: allowed}`` mapping for clients."""
    granted = capabilities_of(user)
    return {capability.value: capability in granted for capability in Capability}
