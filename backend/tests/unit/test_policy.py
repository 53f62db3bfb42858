"""
Unit Tests: Authorization predicates + role capabilities
════════════════════════════════════════════════════════
Tests for:
  • can_read / can_write / can_delete / can_share over every
    (role × relationship) combination
  • delete ⇒ write ⇒ read for every combination
  • visibility_clause against a real database
  • Role ordering, permission table, require_role / require_permission
"""

from __future__ import annotations

import itertools
import uuid

import pytest
from sqlalchemy import select

from docextract.auth.policy import can_delete, can_read, can_share, can_write, visible
from docextract.auth.roles import (
    ROLE_PERMISSIONS,
    Permission,
    has_permission,
    has_role,
    require_permission,
    require_role,
)
from docextract.auth.session import Principal, Role
from docextract.core.exceptions import AuthorizationDeniedError
from docextract.models.extractions import Extraction, User

RELATIONSHIPS = ("owner", "shared", "stranger")


def _scenario(role: Role, relationship: str) -> tuple[Principal, Extraction]:
    caller_id = uuid.uuid4()
    owner_id  = caller_id if relationship == "owner" else uuid.uuid4()
    shared    = [User(id=caller_id, email="caller@example.com", role=role.value)] if relationship == "shared" else []

    record = Extraction(
        owner_id=owner_id,
        status="completed",
        file_name="doc.txt",
        document_type="text/plain",
        shared_with=shared,
    )
    return Principal(id=caller_id, email="caller@example.com", role=role), record


# ─────────────────────────────────────────────────────────────────────────────
# Predicate matrix
# ─────────────────────────────────────────────────────────────────────────────

EXPECTED = {
    # (role, relationship): (read, write, delete, share)
    (Role.USER,       "owner"):    (True,  True,  True,  True),
    (Role.USER,       "shared"):   (True,  True,  False, False),
    (Role.USER,       "stranger"): (False, False, False, False),
    (Role.ADMIN,      "owner"):    (True,  True,  True,  True),
    (Role.ADMIN,      "shared"):   (True,  True,  True,  False),
    (Role.ADMIN,      "stranger"): (True,  True,  True,  False),
    (Role.SUPERADMIN, "owner"):    (True,  True,  True,  True),
    (Role.SUPERADMIN, "shared"):   (True,  True,  True,  False),
    (Role.SUPERADMIN, "stranger"): (True,  True,  True,  False),
}


@pytest.mark.unit
class TestPredicates:

    @pytest.mark.parametrize("role,relationship", list(EXPECTED))
    def test_matrix(self, role, relationship):
        principal, record = _scenario(role, relationship)
        actual = (
            can_read(principal, record),
            can_write(principal, record),
            can_delete(principal, record),
            can_share(principal, record),
        )
        assert actual == EXPECTED[(role, relationship)]

    @pytest.mark.parametrize("role,relationship", list(itertools.product(list(Role), RELATIONSHIPS)))
    def test_delete_implies_write_implies_read(self, role, relationship):
        principal, record = _scenario(role, relationship)
        if can_delete(principal, record):
            assert can_write(principal, record)
        if can_write(principal, record):
            assert can_read(principal, record)

    @pytest.mark.parametrize("role", [Role.ADMIN, Role.SUPERADMIN])
    def test_privileged_roles_never_bypass_sharing(self, role):
        principal, record = _scenario(role, "stranger")
        assert can_share(principal, record) is False


# ─────────────────────────────────────────────────────────────────────────────
# Visibility filter against the database
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestVisibilityClause:

    async def test_filters_to_owned_and_shared(self, make_user, db_session, principal_for):
        alice = await make_user(email="alice@example.com")
        bob   = await make_user(email="bob@example.com")
        admin = await make_user(role="admin")

        alice_row = await db_session.get(User, alice.id)
        db_session.add_all([
            Extraction(owner_id=alice.id, file_name="a.txt", document_type="text/plain"),
            Extraction(owner_id=bob.id,   file_name="b.txt", document_type="text/plain"),
            Extraction(owner_id=bob.id,   file_name="c.txt", document_type="text/plain",
                       shared_with=[alice_row]),
        ])
        await db_session.commit()

        async def _names(user) -> set[str]:
            rows = await db_session.scalars(select(Extraction).where(visible(principal_for(user))))
            return {r.file_name for r in rows}

        assert await _names(alice) == {"a.txt", "c.txt"}
        assert await _names(bob)   == {"b.txt", "c.txt"}
        assert await _names(admin) == {"a.txt", "b.txt", "c.txt"}


# ─────────────────────────────────────────────────────────────────────────────
# Roles + capabilities
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.unit
class TestRoles:

    def test_role_ordering(self):
        assert has_role(Role.SUPERADMIN, Role.ADMIN)
        assert has_role(Role.ADMIN, Role.ADMIN)
        assert has_role(Role.ADMIN, Role.USER)
        assert not has_role(Role.USER, Role.ADMIN)
        assert not has_role(Role.ADMIN, Role.SUPERADMIN)

    def test_reassign_is_superadmin_only(self):
        assert has_permission(Role.SUPERADMIN, Permission.REASSIGN_OWNER)
        assert not has_permission(Role.ADMIN, Permission.REASSIGN_OWNER)
        assert not has_permission(Role.USER, Permission.REASSIGN_OWNER)

    def test_plain_users_have_no_capabilities(self):
        assert ROLE_PERMISSIONS[Role.USER] == frozenset()

    def test_superadmin_is_a_superset_of_admin(self):
        assert ROLE_PERMISSIONS[Role.ADMIN] < ROLE_PERMISSIONS[Role.SUPERADMIN]

    async def test_require_role_rejects_lower_role(self):
        dependency = require_role(Role.SUPERADMIN)
        admin = Principal(id=uuid.uuid4(), email="a@example.com", role=Role.ADMIN)
        with pytest.raises(AuthorizationDeniedError) as exc_info:
            await dependency(principal=admin)
        assert exc_info.value.status_code == 403

    async def test_require_role_passes_principal_through(self):
        dependency = require_role(Role.ADMIN)
        boss = Principal(id=uuid.uuid4(), email="s@example.com", role=Role.SUPERADMIN)
        assert await dependency(principal=boss) is boss

    async def test_require_permission(self):
        dependency = require_permission(Permission.DELETE_ANY)
        user  = Principal(id=uuid.uuid4(), email="u@example.com", role=Role.USER)
        admin = Principal(id=uuid.uuid4(), email="a@example.com", role=Role.ADMIN)

        assert await dependency(principal=admin) is admin
        with pytest.raises(AuthorizationDeniedError):
            await dependency(principal=user)
