"""
Integration tests for Organization endpoints.

Tests cover:
- Org CRUD (create, list, get, update, delete)
- Membership through the API (add, role change, transfer, remove, leave)
- Error envelope and status codes
- Membership notifications
"""

from __future__ import annotations

import json
import uuid

import pytest

from supplyhub_shared.schemas.roles import UserRole

from conftest import auth_headers

BASE = "/api/v1/organizations"


async def _create_org(client, owner, name="Acme Supply", **extra) -> dict:
    resp = await client.post(BASE, json={"name": name, **extra}, headers=auth_headers(owner))
    assert resp.status_code == 201, resp.text
    return resp.json()["organization"]


async def _add(client, actor, org_id, user, role="MEMBER"):
    return await client.post(
        f"{BASE}/{org_id}/members",
        json={"userId": str(user.id), "role": role},
        headers=auth_headers(actor),
    )


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

class TestOrganizationCrud:
    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        resp = await client.get(BASE)
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_create(self, client, make_user):
        owner = await make_user()
        org = await _create_org(client, owner)
        assert org["slug"] == "acme-supply"
        assert org["ownerId"] == str(owner.id)
        assert org["myRole"] == "OWNER"
        assert org["memberCount"] == 1
        assert org["teamCount"] == 0
        assert org["maxMembers"] == 50
        assert org["maxTeams"] == 5

    @pytest.mark.asyncio
    async def test_create_duplicate_slug(self, client, make_user):
        owner = await make_user()
        await _create_org(client, owner, slug="acme")
        resp = await client.post(
            BASE, json={"name": "Other", "slug": "acme"}, headers=auth_headers(owner)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "SLUG_TAKEN"

    @pytest.mark.asyncio
    async def test_create_validation_error(self, client, make_user):
        owner = await make_user()
        resp = await client.post(BASE, json={"name": "A"}, headers=auth_headers(owner))
        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"].startswith("name:")

    @pytest.mark.asyncio
    async def test_list_only_own_organizations(self, client, make_user):
        alice = await make_user()
        bob = await make_user()
        await _create_org(client, alice, name="Alpha")
        await _create_org(client, bob, name="Bravo")

        resp = await client.get(BASE, headers=auth_headers(alice))
        assert resp.status_code == 200
        names = [o["name"] for o in resp.json()["organizations"]]
        assert names == ["Alpha"]

    @pytest.mark.asyncio
    async def test_get_hidden_from_non_members(self, client, make_user):
        owner = await make_user()
        stranger = await make_user()
        org = await _create_org(client, owner)

        resp = await client.get(f"{BASE}/{org['id']}", headers=auth_headers(stranger))
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_unknown(self, client, make_user):
        user = await make_user()
        resp = await client.get(f"{BASE}/{uuid.uuid4()}", headers=auth_headers(user))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_platform_admin_can_view_any(self, client, make_user):
        owner = await make_user()
        admin = await make_user(role=UserRole.ADMIN)
        org = await _create_org(client, owner)

        resp = await client.get(f"{BASE}/{org['id']}", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json()["organization"]["myRole"] is None

    @pytest.mark.asyncio
    async def test_update(self, client, make_user):
        owner = await make_user()
        org = await _create_org(client, owner)
        resp = await client.patch(
            f"{BASE}/{org['id']}",
            json={"name": "Acme Global", "maxTeams": 8},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        updated = resp.json()["organization"]
        assert updated["name"] == "Acme Global"
        assert updated["maxTeams"] == 8
        assert updated["slug"] == "acme-supply"

    @pytest.mark.asyncio
    async def test_update_forbidden_for_members(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await client.patch(
            f"{BASE}/{org['id']}", json={"name": "Renamed"}, headers=auth_headers(member)
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_delete_requires_empty_organization(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await client.delete(f"{BASE}/{org['id']}", headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.json()["code"] == "ORGANIZATION_NOT_EMPTY"

        await client.post(f"{BASE}/{org['id']}/leave", headers=auth_headers(member))
        resp = await client.delete(f"{BASE}/{org['id']}", headers=auth_headers(owner))
        assert resp.status_code == 200
        assert resp.json()["success"] is True

        resp = await client.get(f"{BASE}/{org['id']}", headers=auth_headers(owner))
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------

class TestOrganizationMembership:
    @pytest.mark.asyncio
    async def test_add_member(self, client, make_user):
        owner = await make_user()
        member = await make_user(first_name="Mia", last_name="Chen")
        org = await _create_org(client, owner)

        resp = await _add(client, owner, org["id"], member, role="admin")
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Member added"
        assert body["member"]["userId"] == str(member.id)
        assert body["member"]["role"] == "ADMIN"
        assert body["member"]["user"]["firstName"] == "Mia"

    @pytest.mark.asyncio
    async def test_add_member_by_email(self, client, make_user):
        owner = await make_user()
        member = await make_user(email="buyer@example.com")
        org = await _create_org(client, owner)

        resp = await client.post(
            f"{BASE}/{org['id']}/members",
            json={"email": "Buyer@Example.com"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 201
        assert resp.json()["member"]["userId"] == str(member.id)

    @pytest.mark.asyncio
    async def test_add_owner_role_rejected(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)

        resp = await _add(client, owner, org["id"], member, role="OWNER")
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_add_twice(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await _add(client, owner, org["id"], member)
        assert resp.status_code == 400
        assert resp.json()["code"] == "ALREADY_MEMBER"

    @pytest.mark.asyncio
    async def test_capacity_enforced(self, client, make_user):
        owner = await make_user()
        first = await make_user()
        second = await make_user()
        org = await _create_org(client, owner)

        resp = await client.patch(
            f"{BASE}/{org['id']}", json={"maxMembers": 2}, headers=auth_headers(owner)
        )
        assert resp.status_code == 200

        assert (await _add(client, owner, org["id"], first)).status_code == 201
        resp = await _add(client, owner, org["id"], second)
        assert resp.status_code == 400
        assert resp.json() == {
            "success": False,
            "error": "Maximum member capacity (2) reached",
            "code": "CAPACITY_EXCEEDED",
        }

    @pytest.mark.asyncio
    async def test_capacity_cannot_drop_below_members(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await client.patch(
            f"{BASE}/{org['id']}", json={"maxMembers": 1}, headers=auth_headers(owner)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_member_cannot_add(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        outsider = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await _add(client, member, org["id"], outsider)
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_members_listed_owner_first(self, client, make_user):
        owner = await make_user()
        a = await make_user()
        b = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], a)
        await _add(client, owner, org["id"], b, role="ADMIN")

        resp = await client.get(f"{BASE}/{org['id']}/members", headers=auth_headers(a))
        assert resp.status_code == 200
        members = resp.json()["members"]
        assert [m["userId"] for m in members] == [str(owner.id), str(a.id), str(b.id)]
        assert members[0]["role"] == "OWNER"

    @pytest.mark.asyncio
    async def test_change_role(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await client.patch(
            f"{BASE}/{org['id']}/members/{member.id}",
            json={"role": "GUEST"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        assert resp.json()["member"]["role"] == "GUEST"
        assert resp.json()["message"] == "Member role updated"

    @pytest.mark.asyncio
    async def test_transfer_ownership(self, client, make_user):
        owner = await make_user()
        successor = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], successor, role="ADMIN")

        resp = await client.patch(
            f"{BASE}/{org['id']}/members/{successor.id}",
            json={"role": "OWNER"},
            headers=auth_headers(owner),
        )
        assert resp.status_code == 200
        assert resp.json()["member"]["role"] == "OWNER"
        assert resp.json()["message"] == "Ownership transferred"

        resp = await client.get(f"{BASE}/{org['id']}", headers=auth_headers(owner))
        detail = resp.json()["organization"]
        assert detail["ownerId"] == str(successor.id)
        assert detail["myRole"] == "ADMIN"

        resp = await client.get(f"{BASE}/{org['id']}/members", headers=auth_headers(owner))
        roles = [m["role"] for m in resp.json()["members"]]
        assert roles.count("OWNER") == 1

    @pytest.mark.asyncio
    async def test_org_admin_cannot_transfer(self, client, make_user):
        owner = await make_user()
        admin = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], admin, role="ADMIN")
        await _add(client, owner, org["id"], member)

        resp = await client.patch(
            f"{BASE}/{org['id']}/members/{member.id}",
            json={"role": "OWNER"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, client, make_user):
        owner = await make_user()
        admin = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], admin, role="ADMIN")

        resp = await client.delete(
            f"{BASE}/{org['id']}/members/{owner.id}", headers=auth_headers(admin)
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "CANNOT_REMOVE_OWNER"

    @pytest.mark.asyncio
    async def test_remove_member(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        url = f"{BASE}/{org['id']}/members/{member.id}"
        resp = await client.delete(url, headers=auth_headers(owner))
        assert resp.status_code == 200

        resp = await client.delete(url, headers=auth_headers(owner))
        assert resp.status_code == 404
        assert resp.json()["code"] == "MEMBER_NOT_FOUND"

        resp = await client.get(f"{BASE}/{org['id']}", headers=auth_headers(member))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_leave(self, client, make_user):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        await _add(client, owner, org["id"], member)

        resp = await client.post(f"{BASE}/{org['id']}/leave", headers=auth_headers(owner))
        assert resp.status_code == 400
        assert resp.json()["code"] == "OWNER_MUST_TRANSFER_FIRST"

        resp = await client.post(f"{BASE}/{org['id']}/leave", headers=auth_headers(member))
        assert resp.status_code == 200

        resp = await client.get(BASE, headers=auth_headers(member))
        assert resp.json()["organizations"] == []


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class TestOrganizationNotifications:
    @pytest.mark.asyncio
    async def test_member_added_is_published(self, client, make_user, redis_mock):
        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)

        await _add(client, owner, org["id"], member)

        assert redis_mock.lpush.await_count == 1
        queue, payload = redis_mock.lpush.await_args.args
        assert queue == "sh:notifications:outbox"
        event = json.loads(payload)
        assert event["type"] == "member.added"
        assert event["recipient_id"] == str(member.id)
        assert event["scope_type"] == "organization"
        assert event["scope_name"] == "Acme Supply"
        assert event["data"] == {"role": "MEMBER"}

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_request(self, client, make_user, redis_mock):
        from redis.exceptions import ConnectionError as RedisConnectionError

        owner = await make_user()
        member = await make_user()
        org = await _create_org(client, owner)
        redis_mock.lpush.side_effect = RedisConnectionError("down")

        resp = await _add(client, owner, org["id"], member)
        assert resp.status_code == 201

        resp = await client.get(f"{BASE}/{org['id']}/members", headers=auth_headers(owner))
        assert len(resp.json()["members"]) == 2
