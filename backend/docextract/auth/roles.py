"""
Role-Based Access Control (RBAC)

Role hierarchy (highest → lowest privilege):
    superadmin > admin > user

Roles are ordered, and each role also carries an explicit capability set.
Route-level gates use either:

    user: Principal = Depends(require_role(Role.ADMIN))                 # admin or above
    user: Principal = Depends(require_permission(Permission.REASSIGN_OWNER))

Sharing is intentionally absent from the capability table: only the owner of
an extraction may share or unshare it, whatever their role.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated

from fastapi import Depends

from docextract.auth.session import Principal, Role, get_current_principal
from docextract.core.exceptions import AuthorizationDeniedError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Role ordering: higher index = more privilege
# ---------------------------------------------------------------------------

_ROLE_ORDER: dict[Role, int] = {
    Role.USER:       0,
    Role.ADMIN:      1,
    Role.SUPERADMIN: 2,
}


def has_role(user_role: Role, required_role: Role) -> bool:
    """Return True if user_role meets or exceeds required_role."""
    return _ROLE_ORDER.get(user_role, -1) >= _ROLE_ORDER.get(required_role, 999)


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

class Permission(str, Enum):
    READ_ANY       = "extractions:read_any"
    WRITE_ANY      = "extractions:write_any"
    DELETE_ANY     = "extractions:delete_any"
    REASSIGN_OWNER = "extractions:reassign_owner"


_ADMIN_PERMISSIONS = frozenset({
    Permission.READ_ANY,
    Permission.WRITE_ANY,
    Permission.DELETE_ANY,
})

ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.USER:       frozenset(),
    Role.ADMIN:      _ADMIN_PERMISSIONS,
    Role.SUPERADMIN: _ADMIN_PERMISSIONS | {Permission.REASSIGN_OWNER},
}


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


# ---------------------------------------------------------------------------
# Dependency factories
# ---------------------------------------------------------------------------

def require_role(minimum_role: Role):
    """
    Returns a FastAPI dependency that resolves the session principal and
    raises 403 if its role is below minimum_role.
    """
    async def _dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not has_role(principal.role, minimum_role):
            logger.info(
                "Role check denied | user=%s role=%s required=%s",
                principal.id, principal.role.value, minimum_role.value,
            )
            raise AuthorizationDeniedError(
                f"Insufficient permissions. Required: '{minimum_role.value}', "
                f"your role: '{principal.role.value}'."
            )
        return principal

    return _dependency


def require_permission(permission: Permission):
    """Same as require_role, keyed on a single capability."""
    async def _dependency(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not has_permission(principal.role, permission):
            logger.info(
                "Permission denied | user=%s role=%s permission=%s",
                principal.id, principal.role.value, permission.value,
            )
            raise AuthorizationDeniedError()
        return principal

    return _dependency

