from rest_framework.permissions import BasePermission

from apps.accounts.models import UserRole


VIEW_CAPABILITIES = {
    "customers.view",
    "catalog.view",
    "quotations.view",
    "orders.view",
    "invoices.view",
    "payments.view",
    "settings.view",
    "teams.view",
}

ROLE_CAPABILITIES = {
    UserRole.ADMIN: VIEW_CAPABILITIES
    | {
        "customers.manage",
        "catalog.manage",
        "quotations.manage",
        "orders.manage",
        "invoices.manage",
        "payments.record",
        "payments.correct",
        "settings.manage",
        "teams.manage",
        "users.view",
        "users.manage",
    },
    UserRole.MANAGER: VIEW_CAPABILITIES
    | {
        "customers.manage",
        "catalog.manage",
        "quotations.manage",
        "orders.manage",
        "invoices.manage",
        "payments.record",
        "users.view",
    },
    UserRole.DESIGNER: VIEW_CAPABILITIES
    | {
        "customers.manage",
        "quotations.manage",
    },
    UserRole.VIEWER: set(VIEW_CAPABILITIES),
}


def resolve_role(user):
    group_names = set(user.groups.values_list("name", flat=True))
    for role in (UserRole.ADMIN, UserRole.MANAGER, UserRole.DESIGNER, UserRole.VIEWER):
        if role in group_names:
            return role
    return getattr(user, "role", UserRole.VIEWER)


def has_capability(user, capability):
    return capability in ROLE_CAPABILITIES.get(resolve_role(user), set())


class RolePermission(BasePermission):
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        capability_map = getattr(view, "capability_map", {})
        method = request.method.lower()
        action = getattr(view, "action", None) or method
        required = (
            capability_map.get(f"{action}:{method}")
            or capability_map.get(action)
            or capability_map.get(method)
            or set()
        )
        if not required:
            return True

        user_caps = ROLE_CAPABILITIES.get(resolve_role(request.user), set())
        return all(cap in user_caps for cap in required)
