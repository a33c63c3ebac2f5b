"""Role-based access: each view maps its actions to a capability name and
the capability table decides which roles hold it.

Staff record sales, generate invoices and read reports; client records,
price overrides and the product catalogue are admin-only.
"""

import logging

from rest_framework.permissions import BasePermission

from core.models import User

logger = logging.getLogger("security.authorization")

ANY_ROLE = frozenset({User.Role.STAFF, User.Role.ADMIN})
ADMIN_ONLY = frozenset({User.Role.ADMIN})

CAPABILITIES = {
    "clients.manage": ADMIN_ONLY,
    "products.view": ANY_ROLE,
    "products.manage": ADMIN_ONLY,
    "sales.view": ANY_ROLE,
    "sales.create": ANY_ROLE,
    "invoices.view": ANY_ROLE,
    "invoices.generate": ANY_ROLE,
    "reports.view": ANY_ROLE,
}


def role_of(user):
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return User.Role.ADMIN
    return getattr(user, "role", None) or User.Role.STAFF


def has_capability(user, capability):
    role = role_of(user)
    if role is None:
        return False
    return role in CAPABILITIES.get(capability, ())


class RoleCapabilityPermission(BasePermission):
    """Looks up ``view.permission_action_map[action]``; unmapped actions are open to any authenticated user."""

    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        action = getattr(view, "action", None) or request.method.lower()
        capability = getattr(view, "permission_action_map", {}).get(action)
        if capability is None or has_capability(request.user, capability):
            return True

        logger.warning(
            "permission_denied capability=%s user=%s role=%s %s %s",
            capability,
            getattr(request.user, "username", "anonymous"),
            role_of(request.user),
            request.method,
            request.path,
            extra={"view": type(view).__name__},
        )
        return False
