"""Tests for the authorization gate."""

import pytest

from vanguard_engine.auth.gate import (
    authorize,
    authorize_role,
    authorize_super_admin,
    check_permissions,
    check_roles,
    check_super_admin,
)
from vanguard_engine.auth.tokens import SessionClaims
from vanguard_engine.common.exceptions import AuthorizationError
from vanguard_engine.rbac.catalog import DEFAULT_ROLES


def claims_with(permissions=(), roles=(), is_super_admin=False) -> SessionClaims:
    return SessionClaims(
        sub="u", tenant_id="t",
        permissions=tuple(permissions), roles=tuple(roles),
        is_super_admin=is_super_admin,
    )


class TestPermissions:
    def test_all_required(self):
        claims = claims_with(["visit.view", "visit.checkin"])
        assert check_permissions(claims, ["visit.view", "visit.checkin"])

    def test_one_missing_denies(self):
        decision = check_permissions(claims_with(["visit.view"]), ["visit.view", "visit.checkin"])
        assert not decision
        assert "visit.checkin" in decision.reason

    def test_unknown_permission_denies(self):
        assert not check_permissions(claims_with(["visit.view"]), ["no.such.key"])

    def test_empty_requirement_allows(self):
        assert check_permissions(claims_with(), [])

    def test_super_admin_bypasses(self):
        assert check_permissions(claims_with(is_super_admin=True), ["anything.at.all"])

    def test_security_role_cannot_check_in(self):
        claims = claims_with(DEFAULT_ROLES["security"].permissions, roles=["security"])
        assert check_permissions(claims, ["visit.checkout"])
        assert not check_permissions(claims, ["visit.checkin"])

    def test_authorize_raises(self):
        with pytest.raises(AuthorizationError):
            authorize(claims_with(), ["visit.view"])


class TestRoles:
    def test_any_of(self):
        assert check_roles(claims_with(roles=["security"]), ["receptionist", "security"])

    def test_none_match(self):
        assert not check_roles(claims_with(roles=["resident"]), ["receptionist", "security"])

    def test_empty_requirement_allows(self):
        assert check_roles(claims_with(), [])

    def test_authorize_role_raises(self):
        with pytest.raises(AuthorizationError):
            authorize_role(claims_with(roles=["resident"]), ["tenant_owner"])


class TestSuperAdmin:
    def test_flag(self):
        assert check_super_admin(claims_with(is_super_admin=True))
        assert not check_super_admin(claims_with(["tenant.manage"]))

    def test_authorize_super_admin_raises(self):
        with pytest.raises(AuthorizationError) as exc:
            authorize_super_admin(claims_with())
        assert exc.value.status_code == 403
