from docextract.auth.session import (
    Principal,
    Role,
    decode_session_token,
    get_current_principal,
    issue_session_token,
)
from docextract.auth.roles import Permission, has_permission, has_role, require_permission, require_role
from docextract.auth.policy import can_delete, can_read, can_share, can_write, visibility_clause

__all__ = [
    "Principal", "Role", "decode_session_token", "get_current_principal", "issue_session_token",
    "Permission", "has_permission", "has_role", "require_permission", "require_role",
    "can_delete", "can_read", "can_share", "can_write", "visibility_clause",
]
