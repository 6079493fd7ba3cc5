"""
Integration tests for the platform-admin endpoints.
"""

from __future__ import annotations

import pytest

from supplyhub_shared.schemas.roles import UserRole

from conftest import auth_headers

BASE = "/api/v1/admin"


@pytest.fixture
async def admin(make_user):
    return await make_user(role=UserRole.ADMIN, first_name="Ada", last_name="Admin")


async def _admin_org(client, admin, owner, **extra) -> dict:
    resp = await client.post(
        f"{BASE}/organizations",
        json={"name": "Acme Supply", "ownerId": str(owner.id), **extra},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["organization"]


class TestAdminAccess:
    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        resp = await client.post(f"{BASE}/organizations", json={})
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client, make_user):
        user = await make_user(role=UserRole.TEAM_LEADER)
        resp = await client.post(
            f"{BASE}/organizations",
            json={"name": "Acme", "ownerId": str(user.id)},
            headers=auth_headers(user),
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"


class TestAdminOrganizations:
    @pytest.mark.asyncio
    async def test_create_on_behalf_of_user(self, client, admin, make_user):
        owner = await make_user()
        org = await _admin_org(client, admin, owner, maxMembers=3)
        assert org["ownerId"] == str(owner.id)
        assert org["maxMembers"] == 3
        assert org["memberCount"] == 1

        resp = await client.get(
            f"/api/v1/organizations/{org['id']}", headers=auth_headers(owner)
        )
        assert resp.json()["organization"]["myRole"] == "OWNER"

    @pytest.mark.asyncio
    async def test_create_for_inactive_user(self, client, admin, make_user):
        owner = await make_user(is_active=False)
        resp = await client.post(
            f"{BASE}/organizations",
            json={"name": "Acme", "ownerId": str(owner.id)},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_deactivate_blocks_new_members(self, client, admin, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _admin_org(client, admin, owner)

        resp = await client.delete(
            f"{BASE}/organizations/{org['id']}", headers=auth_headers(admin)
        )
        assert resp.status_code == 200
        assert resp.json()["organization"]["isActive"] is False

        resp = await client.post(
            f"/api/v1/organizations/{org['id']}/members",
            json={"userId": str(member.id)},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "SCOPE_INACTIVE"

    @pytest.mark.asyncio
    async def test_update_reactivates(self, client, admin, make_user):
        owner = await make_user()
        org = await _admin_org(client, admin, owner)
        await client.delete(f"{BASE}/organizations/{org['id']}", headers=auth_headers(admin))

        resp = await client.patch(
            f"{BASE}/organizations/{org['id']}",
            json={"isActive": True, "maxTeams": 10},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json()["organization"]["isActive"] is True
        assert resp.json()["organization"]["maxTeams"] == 10

    @pytest.mark.asyncio
    async def test_transfer_to_non_member(self, client, admin, make_user):
        owner = await make_user()
        successor = await make_user()
        org = await _admin_org(client, admin, owner)

        resp = await client.post(
            f"{BASE}/organizations/{org['id']}/transfer-ownership",
            json={"newOwnerId": str(successor.id)},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json()["member"]["role"] == "OWNER"

        resp = await client.get(
            f"/api/v1/organizations/{org['id']}/members", headers=auth_headers(admin)
        )
        roles = {m["userId"]: m["role"] for m in resp.json()["members"]}
        assert roles == {str(successor.id): "OWNER", str(owner.id): "ADMIN"}


class TestAdminTeams:
    @pytest.mark.asyncio
    async def test_create_and_delete(self, client, admin, make_user):
        owner = await make_user()
        member = await make_user()
        resp = await client.post(
            f"{BASE}/teams",
            json={"name": "Logistics", "ownerId": str(owner.id)},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        team = resp.json()["team"]
        assert team["slug"] == "logistics"
        assert team["ownerId"] == str(owner.id)

        await client.post(
            f"/api/v1/teams/{team['id']}/invite",
            json={"userId": str(member.id), "role": "LEADER"},
            headers=auth_headers(owner),
        )

        resp = await client.delete(f"{BASE}/teams/{team['id']}", headers=auth_headers(admin))
        assert resp.status_code == 200

        for user in (owner, member):
            resp = await client.get("/api/v1/auth/session", headers=auth_headers(user))
            assert resp.json()["session"]["role"] == "MEMBER"

    @pytest.mark.asyncio
    async def test_update_capacity(self, client, admin, make_user):
        owner = await make_user()
        resp = await client.post(
            f"{BASE}/teams",
            json={"name": "Logistics", "ownerId": str(owner.id)},
            headers=auth_headers(admin),
        )
        team_id = resp.json()["team"]["id"]

        resp = await client.patch(
            f"{BASE}/teams/{team_id}", json={"maxMembers": 25}, headers=auth_headers(admin)
        )
        assert resp.status_code == 200
        assert resp.json()["team"]["maxMembers"] == 25


class TestAdminUsers:
    @pytest.mark.asyncio
    async def test_set_role(self, client, admin, make_user):
        user = await make_user()
        resp = await client.patch(
            f"{BASE}/users/{user.id}/role",
            json={"role": "viewer"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "VIEWER"

    @pytest.mark.asyncio
    async def test_cannot_remove_own_admin_role(self, client, admin):
        resp = await client.patch(
            f"{BASE}/users/{admin.id}/role",
            json={"role": "MEMBER"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_deactivate_ends_sessions(self, client, admin, make_user):
        user = await make_user()
        resp = await client.patch(
            f"{BASE}/users/{user.id}/status",
            json={"isActive": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "User deactivated"

        resp = await client.get("/api/v1/auth/session", headers=auth_headers(user))
        assert resp.status_code == 401
