"""
Authorization gate tests: the permission table, the admin bypass and the
target-rank rule.
"""

from __future__ import annotations

import uuid

import pytest

from app.core.auth import SessionUser
from app.core.authorization import PERMISSIONS, Action, authorize, can_act_on_target
from supplyhub_shared.schemas.roles import OrgRole, ScopeType, TeamRole, UserRole


def _caller(role: UserRole = UserRole.MEMBER) -> SessionUser:
    return SessionUser(user_id=uuid.uuid4(), global_role=role)


ORG = ScopeType.ORGANIZATION
TEAM = ScopeType.TEAM


class TestPermissionTable:
    @pytest.mark.parametrize(
        "action,allowed,denied",
        [
            (Action.VIEW_MEMBERS, OrgRole.GUEST, None),
            (Action.ADD_MEMBER, OrgRole.ADMIN, OrgRole.MEMBER),
            (Action.CHANGE_ROLE, OrgRole.ADMIN, OrgRole.MEMBER),
            (Action.REMOVE_MEMBER, OrgRole.ADMIN, OrgRole.MEMBER),
            (Action.TRANSFER_OWNERSHIP, OrgRole.OWNER, OrgRole.ADMIN),
            (Action.UPDATE_SETTINGS, OrgRole.ADMIN, OrgRole.GUEST),
            (Action.DELETE_SCOPE, OrgRole.OWNER, OrgRole.ADMIN),
        ],
    )
    def test_organization_minimums(self, action, allowed, denied):
        assert authorize(_caller(), ORG, allowed, action)
        if denied is not None:
            assert not authorize(_caller(), ORG, denied, action)

    @pytest.mark.parametrize(
        "action,allowed,denied",
        [
            (Action.VIEW_MEMBERS, TeamRole.VIEWER, None),
            (Action.ADD_MEMBER, TeamRole.LEADER, TeamRole.MEMBER),
            (Action.CHANGE_ROLE, TeamRole.LEADER, TeamRole.MEMBER),
            (Action.REMOVE_MEMBER, TeamRole.LEADER, TeamRole.MEMBER),
            (Action.TRANSFER_OWNERSHIP, TeamRole.OWNER, TeamRole.LEADER),
            (Action.DELETE_SCOPE, TeamRole.OWNER, TeamRole.LEADER),
        ],
    )
    def test_team_minimums(self, action, allowed, denied):
        assert authorize(_caller(), TEAM, allowed, action)
        if denied is not None:
            assert not authorize(_caller(), TEAM, denied, action)

    def test_owner_passes_everything_but_admin_override(self):
        for action in PERMISSIONS[ORG]:
            assert authorize(_caller(), ORG, OrgRole.OWNER, action)
        assert not authorize(_caller(), ORG, OrgRole.OWNER, Action.ADMIN_OVERRIDE)

    def test_non_member_is_denied(self):
        assert not authorize(_caller(), ORG, None, Action.VIEW_MEMBERS)
        assert not authorize(_caller(UserRole.TEAM_LEADER), TEAM, None, Action.ADD_MEMBER)


class TestAdminBypass:
    def test_platform_admin_passes_without_membership(self):
        admin = _caller(UserRole.ADMIN)
        for action in Action:
            assert authorize(admin, ORG, None, action)
            assert authorize(admin, TEAM, None, action)

    def test_admin_override_only_for_platform_admin(self):
        assert not authorize(_caller(UserRole.TEAM_LEADER), ORG, OrgRole.OWNER, Action.ADMIN_OVERRIDE)
        assert authorize(_caller(UserRole.ADMIN), ORG, None, Action.ADMIN_OVERRIDE)


class TestTargetRank:
    def test_admin_cannot_manage_another_admin(self):
        assert not can_act_on_target(_caller(), OrgRole.ADMIN, OrgRole.ADMIN)

    def test_admin_can_manage_members(self):
        assert can_act_on_target(_caller(), OrgRole.ADMIN, OrgRole.MEMBER)

    def test_owner_can_manage_anyone(self):
        assert can_act_on_target(_caller(), OrgRole.OWNER, OrgRole.ADMIN)
        assert can_act_on_target(_caller(), TeamRole.OWNER, TeamRole.LEADER)

    def test_leader_cannot_manage_leader(self):
        assert not can_act_on_target(_caller(), TeamRole.LEADER, TeamRole.LEADER)

    def test_platform_admin_exempt(self):
        assert can_act_on_target(_caller(UserRole.ADMIN), None, OrgRole.ADMIN)
