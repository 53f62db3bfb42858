"""
Integration Tests: share / unshare / reassign
═════════════════════════════════════════════
  POST   /api/extractions/{id}/share      owner only
  DELETE /api/extractions/{id}/unshare    owner only
  PUT    /api/extractions/{id}/reassign   superadmin only

How to run
──────────
  pytest -m integration tests/integration/test_sharing_api.py -v
"""

from __future__ import annotations

import uuid

import pytest


@pytest.fixture
def owned_record(upload, make_user):
    """(owner, extraction_id) for a freshly uploaded text file."""
    async def _create():
        owner = await make_user()
        extraction_id = (await upload(owner, "shared.txt", b"Shared. Notes.")).json()["extractionId"]
        return owner, extraction_id
    return _create


def _share_url(extraction_id: str) -> str:
    return f"/api/extractions/{extraction_id}/share"


def _unshare_url(extraction_id: str) -> str:
    return f"/api/extractions/{extraction_id}/unshare"


# ─────────────────────────────────────────────────────────────────────────────
# Share
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestShare:

    async def test_owner_shares_with_user(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob = await make_user(email="bob@example.com")

        resp = await client.post(_share_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner))

        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Extraction shared successfully"
        assert body["extraction"]["sharedWith"] == [{"id": str(bob.id), "email": "bob@example.com", "role": "user"}]

        listing = (await client.get("/api/extractions", headers=auth_headers(bob))).json()
        assert [i["id"] for i in listing] == [extraction_id]

    async def test_duplicate_share_is_400(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob = await make_user()
        payload = {"userId": str(bob.id)}

        await client.post(_share_url(extraction_id), json=payload, headers=auth_headers(owner))
        resp = await client.post(_share_url(extraction_id), json=payload, headers=auth_headers(owner))

        assert resp.status_code == 400
        assert resp.json()["errorCode"] == "ALREADY_SHARED"

    async def test_share_with_owner_is_400(self, client, owned_record, auth_headers):
        owner, extraction_id = await owned_record()
        resp = await client.post(_share_url(extraction_id), json={"userId": str(owner.id)}, headers=auth_headers(owner))
        assert resp.status_code == 400

    async def test_unknown_target_is_404(self, client, owned_record, auth_headers):
        owner, extraction_id = await owned_record()
        resp = await client.post(_share_url(extraction_id), json={"userId": str(uuid.uuid4())}, headers=auth_headers(owner))
        assert resp.status_code == 404
        assert resp.json()["errorCode"] == "USER_NOT_FOUND"

    async def test_unknown_record_is_404(self, client, make_user, auth_headers):
        alice = await make_user()
        bob   = await make_user()
        resp = await client.post(_share_url(str(uuid.uuid4())), json={"userId": str(bob.id)}, headers=auth_headers(alice))
        assert resp.status_code == 404
        assert resp.json()["errorCode"] == "EXTRACTION_NOT_FOUND"

    @pytest.mark.parametrize("role", ["user", "admin", "superadmin"])
    async def test_non_owner_gets_403_whatever_the_role(self, client, owned_record, make_user, auth_headers, role):
        _, extraction_id = await owned_record()
        caller = await make_user(role=role)
        target = await make_user()

        resp = await client.post(_share_url(extraction_id), json={"userId": str(target.id)}, headers=auth_headers(caller))

        assert resp.status_code == 403
        assert resp.json()["errorCode"] == "OWNER_ONLY"

    async def test_collaborator_cannot_reshare(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob   = await make_user()
        carol = await make_user()
        await client.post(_share_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner))

        resp = await client.post(_share_url(extraction_id), json={"userId": str(carol.id)}, headers=auth_headers(bob))

        assert resp.status_code == 403

    async def test_missing_user_id_is_400(self, client, owned_record, auth_headers):
        owner, extraction_id = await owned_record()
        resp = await client.post(_share_url(extraction_id), json={}, headers=auth_headers(owner))
        assert resp.status_code == 400


# ─────────────────────────────────────────────────────────────────────────────
# Unshare
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestUnshare:

    async def test_owner_removes_collaborator(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob = await make_user()
        await client.post(_share_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner))

        resp = await client.request(
            "DELETE", _unshare_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner),
        )

        assert resp.status_code == 200
        assert resp.json()["message"] == "User removed from sharing successfully"
        assert resp.json()["extraction"]["sharedWith"] == []

        resp = await client.get(f"/api/extractions/{extraction_id}", headers=auth_headers(bob))
        assert resp.status_code == 404

    async def test_unsharing_a_non_member_is_a_no_op(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob = await make_user()

        resp = await client.request(
            "DELETE", _unshare_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner),
        )

        assert resp.status_code == 200
        assert resp.json()["extraction"]["sharedWith"] == []

    async def test_admin_cannot_unshare(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        bob   = await make_user()
        admin = await make_user(role="admin")
        await client.post(_share_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner))

        resp = await client.request(
            "DELETE", _unshare_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(admin),
        )

        assert resp.status_code == 403


# ─────────────────────────────────────────────────────────────────────────────
# Reassign
# ─────────────────────────────────────────────────────────────────────────────

@pytest.mark.integration
class TestReassign:

    async def test_superadmin_moves_ownership(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        boss = await make_user(role="superadmin")
        bob  = await make_user()

        resp = await client.put(
            f"/api/extractions/{extraction_id}/reassign", json={"userId": str(bob.id)}, headers=auth_headers(boss),
        )

        assert resp.status_code == 200
        assert resp.json()["message"] == "Extraction ownership reassigned successfully"
        assert resp.json()["extraction"]["ownerId"] == str(bob.id)

        assert (await client.get(f"/api/extractions/{extraction_id}", headers=auth_headers(owner))).status_code == 404
        assert (await client.get(f"/api/extractions/{extraction_id}", headers=auth_headers(bob))).status_code == 200

    async def test_new_owner_leaves_collaborator_set(self, client, owned_record, make_user, auth_headers):
        owner, extraction_id = await owned_record()
        boss = await make_user(role="superadmin")
        bob  = await make_user()
        await client.post(_share_url(extraction_id), json={"userId": str(bob.id)}, headers=auth_headers(owner))

        resp = await client.put(
            f"/api/extractions/{extraction_id}/reassign", json={"userId": str(bob.id)}, headers=auth_headers(boss),
        )

        assert resp.json()["extraction"]["sharedWith"] == []

    @pytest.mark.parametrize("role", ["user", "admin"])
    async def test_below_superadmin_is_403(self, client, owned_record, make_user, auth_headers, role):
        _, extraction_id = await owned_record()
        caller = await make_user(role=role)
        target = await make_user()

        resp = await client.put(
            f"/api/extractions/{extraction_id}/reassign", json={"userId": str(target.id)}, headers=auth_headers(caller),
        )

        assert resp.status_code == 403

    async def test_unknown_new_owner_is_404(self, client, owned_record, make_user, auth_headers):
        _, extraction_id = await owned_record()
        boss = await make_user(role="superadmin")

        resp = await client.put(
            f"/api/extractions/{extraction_id}/reassign", json={"userId": str(uuid.uuid4())}, headers=auth_headers(boss),
        )

        assert resp.status_code == 404
        assert resp.json()["errorCode"] == "USER_NOT_FOUND"
