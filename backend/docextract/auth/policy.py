"""
Record-level authorization.

Each predicate is a pure function of (principal.id, principal.role,
record.owner_id, record shared user ids):

    can_read    owner | shared | READ_ANY
    can_write   owner | shared | WRITE_ANY
    can_delete  owner | DELETE_ANY            (shared collaborators excluded)
    can_share   owner                          (no role bypass)

By construction can_delete => can_write => can_read for every pair.

visibility_clause() is the same read rule expressed as a SQL filter for
list queries, so listing never loads rows the caller cannot see.
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import ColumnElement, exists, or_, select, true

from docextract.auth.roles import Permission, has_permission
from docextract.auth.session import Principal
from docextract.models.extractions import Extraction, extraction_shares


def _is_owner(principal: Principal, owner_id: UUID) -> bool:
    return principal.id == owner_id


def _is_shared(principal: Principal, shared_user_ids: Iterable[UUID]) -> bool:
    return principal.id in set(shared_user_ids)


def can_read(principal: Principal, record: Extraction) -> bool:
    return (
        _is_owner(principal, record.owner_id)
        or _is_shared(principal, record.shared_user_ids)
        or has_permission(principal.role, Permission.READ_ANY)
    )


def can_write(principal: Principal, record: Extraction) -> bool:
    return (
        _is_owner(principal, record.owner_id)
        or _is_shared(principal, record.shared_user_ids)
        or has_permission(principal.role, Permission.WRITE_ANY)
    )


def can_delete(principal: Principal, record: Extraction) -> bool:
    return (
        _is_owner(principal, record.owner_id)
        or has_permission(principal.role, Permission.DELETE_ANY)
    )


def can_share(principal: Principal, record: Extraction) -> bool:
    return _is_owner(principal, record.owner_id)


def visibility_clause(principal: Principal) -> Optional[ColumnElement[bool]]:
    """
    WHERE clause restricting extractions to those the principal may read.
    Returns None when no restriction applies.
    """
    if has_permission(principal.role, Permission.READ_ANY):
        return None

    shared = exists(
        select(extraction_shares.c.extraction_id).where(
            extraction_shares.c.extraction_id == Extraction.id,
            extraction_shares.c.user_id == principal.id,
        )
    )
    return or_(Extraction.owner_id == principal.id, shared)


def visible(principal: Principal) -> ColumnElement[bool]:
    clause = visibility_clause(principal)
    return true() if clause is None else clause
